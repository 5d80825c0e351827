"""
AI Dev Assistant - FastAPI Application
LLM-backed PHP code review: security, performance, quality, documentation
"""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.exceptions import AssistantError
from core.logging_config import setup_logging
from database.kv_store import InMemoryKeyValueStore, RedisKeyValueStore
from database.redis_connection import RedisManager
from routes import analysis, analytics, health
from services.analyzer.config import AnalyzerConfig
from services.factory import build_services

logger = logging.getLogger(__name__)


# ============================================================================
# LIFECYCLE
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: configuration, Redis (in-memory fallback), services
    Shutdown: HTTP client and Redis pool
    """
    config = AnalyzerConfig.from_env()
    setup_logging(config.log_level)
    logger.info("Starting AI Dev Assistant: %s", config)

    for problem in config.validate()["errors"]:
        logger.warning("Configuration: %s", problem)

    if await RedisManager.initialize(config.redis_url):
        store = RedisKeyValueStore(RedisManager.get_client())
    else:
        logger.warning("Redis unavailable, using in-memory store (not shared across workers)")
        store = InMemoryKeyValueStore()

    http_client = httpx.AsyncClient(timeout=config.provider_timeout)
    app.state.services = build_services(config, store, http_client=http_client)

    yield

    await app.state.services.aclose()
    await RedisManager.close()
    logger.info("AI Dev Assistant stopped")


app = FastAPI(
    title="AI Dev Assistant",
    description="PHP code analysis through OpenAI, Anthropic and Google models",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(analysis.router)
app.include_router(analytics.router)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(AssistantError)
async def assistant_error_handler(request: Request, exc: AssistantError):
    """Typed errors → JSON {error, type, context} with the error's status"""
    if exc.http_status >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())
