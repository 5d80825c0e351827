"""
Route Dependencies

Services live on app.state.services (built in the lifespan).
Rate limits are per client IP, with a per-minute limit per endpoint
group and an hourly cap shared by all groups.
"""
import logging
from typing import Dict

from fastapi import Depends, HTTPException, Request, status

from services.factory import AssistantServices

logger = logging.getLogger(__name__)

MINUTE = 60
HOUR = 3600


def get_services(request: Request) -> AssistantServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialized"
        )
    return services


def client_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _too_many_requests(scope: str, ip: str, state: Dict[str, int]) -> HTTPException:
    limit, window = state["limit"], state["window_seconds"]
    logger.info("Rejected %s request from %s (%d/%ds)", scope, ip, limit, window)
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Rate limit exceeded: maximum {limit} requests per {window} seconds",
        headers={
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(state["remaining"]),
            "X-RateLimit-Reset": str(state["reset_in_seconds"]),
            "Retry-After": str(state["reset_in_seconds"]),
        },
    )


def rate_limited(scope: str, per_minute_setting: str):
    """
    Dependency factory for rate-limited endpoints

    Args:
        scope: Counter namespace ("analyze", "analyze-file", ...)
        per_minute_setting: AnalyzerConfig attribute holding the limit

    Returns:
        Dependency raising 429 with X-RateLimit-* headers when exceeded
    """

    async def check_rate_limit(
        request: Request,
        services: AssistantServices = Depends(get_services)
    ) -> None:
        limiter = services.rate_limiter
        ip = client_identity(request)
        per_minute = getattr(services.config, per_minute_setting)
        per_hour = services.config.rate_limit_per_hour

        checks = (
            (f"{scope}:{ip}", per_minute, MINUTE),
            (f"hourly:{ip}", per_hour, HOUR),
        )
        # Both windows are checked before either counter moves
        for identity, limit, window in checks:
            state = await limiter.get_status(identity, limit, window)
            if state["remaining"] <= 0:
                raise _too_many_requests(scope, ip, state)

        for identity, limit, window in checks:
            if not await limiter.is_allowed(identity, limit, window):
                raise _too_many_requests(
                    scope, ip, await limiter.get_status(identity, limit, window)
                )

    return check_rate_limit
