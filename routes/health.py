"""
Health Endpoints
/ and /ai-dev-assistant/health
"""
import time
from datetime import datetime

from fastapi import APIRouter, Depends, status

from database.kv_store import RedisKeyValueStore
from database.redis_connection import RedisManager
from routes.dependencies import get_services
from schemas.responses import HealthResponse
from services.factory import AssistantServices

router = APIRouter(tags=["Health"])

# Process start time (uptime)
app_start_time = time.time()


@router.get("/", summary="Home")
async def root():
    """Confirms the API is running"""
    return {
        "message": "AI Dev Assistant is running",
        "documentation": "/docs",
        "health_check": "/ai-dev-assistant/health"
    }


@router.get(
    "/ai-dev-assistant/health",
    response_model=HealthResponse,
    summary="Health check",
    status_code=status.HTTP_200_OK
)
async def health_check(services: AssistantServices = Depends(get_services)):
    """
    Service health

    status is "ok" when at least one provider is available and the
    store backend is reachable, "degraded" otherwise.
    """
    providers = {p.name: p.is_available() for p in services.ai_manager.providers}

    if isinstance(services.store, RedisKeyValueStore):
        store_health = await RedisManager.health_check()
        store_health["backend"] = "redis"
    else:
        store_health = {"status": "healthy", "backend": "memory"}

    is_healthy = any(providers.values()) and store_health.get("status") == "healthy"

    return HealthResponse(
        status="ok" if is_healthy else "degraded",
        timestamp=datetime.utcnow().isoformat() + "Z",
        uptime_seconds=round(time.time() - app_start_time, 2),
        analyzers=services.code_analyzer.get_analyzer_names(),
        providers=providers,
        services={
            "store": store_health,
            "cache_enabled": services.config.cache_enabled,
            "result_cache": await services.result_cache.get_stats(),
        },
    )
