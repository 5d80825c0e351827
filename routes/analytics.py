"""
Monitoring Endpoints

Cache counters, aggregated analysis metrics and the caller's rate limit
status. Read-only apart from the cache clear endpoint.
"""
from fastapi import APIRouter, Depends, Request

from routes.dependencies import MINUTE, client_identity, get_services
from schemas.metrics import AggregatedAnalysisMetrics, CacheMetrics
from schemas.requests import MetricsQueryRequest
from services.factory import AssistantServices

router = APIRouter(prefix="/ai-dev-assistant", tags=["Monitoring"])


@router.get(
    "/metrics/cache",
    response_model=CacheMetrics,
    summary="Response cache counters"
)
async def cache_metrics(services: AssistantServices = Depends(get_services)):
    return services.analysis_cache.get_metrics()


@router.delete("/cache", summary="Clear cached analyses")
async def clear_cache(services: AssistantServices = Depends(get_services)):
    """Drops per-analyzer and aggregate cache entries"""
    deleted = await services.analysis_cache.clear()
    deleted += await services.result_cache.clear()
    return {"deleted": deleted}


@router.post(
    "/metrics/aggregated",
    response_model=AggregatedAnalysisMetrics,
    summary="Aggregated analysis metrics"
)
async def aggregated_metrics(
    query: MetricsQueryRequest,
    services: AssistantServices = Depends(get_services)
):
    """Counts, timings and risk distribution of the last N minutes"""
    return services.monitor.get_aggregated_metrics(
        time_window_minutes=query.time_window_minutes
    )


@router.get("/metrics/rate-limit", summary="Caller's rate limit status")
async def rate_limit_status(
    request: Request,
    services: AssistantServices = Depends(get_services)
):
    """Does not consume a request"""
    ip = client_identity(request)
    return {
        "identity": ip,
        "analyze": await services.rate_limiter.get_status(
            f"analyze:{ip}", services.config.rate_limit_per_minute, MINUTE
        ),
        "analyze_file": await services.rate_limiter.get_status(
            f"analyze-file:{ip}", services.config.rate_limit_file_per_minute, MINUTE
        ),
    }
