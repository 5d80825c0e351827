"""
Service Wiring

Builds the provider chain, caches, limiter and coordinator from an
AnalyzerConfig and a key/value store. Used by the API lifespan and the CLI.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from core.exceptions import ConfigurationError
from core.rate_limiter import RateLimiter
from database.kv_store import KeyValueStore
from services.ai_manager import AIManager
from services.analysis_cache import AnalysisCache
from services.analyzer.analyzers import build_analyzers
from services.analyzer.config import AnalyzerConfig
from services.analyzer.orchestrator import CodeAnalyzer
from services.cache_service import CacheService
from services.metrics_tracker import AnalysisMonitor
from services.providers import AIProvider, AnthropicProvider, GoogleProvider, OpenAIProvider
from services.syntax_checker import SyntaxChecker

logger = logging.getLogger(__name__)


@dataclass
class AssistantServices:
    """Everything the API and the CLI need"""

    config: AnalyzerConfig
    store: KeyValueStore
    ai_manager: AIManager
    analysis_cache: AnalysisCache
    result_cache: CacheService
    rate_limiter: RateLimiter
    monitor: AnalysisMonitor
    code_analyzer: CodeAnalyzer
    http_client: Optional[httpx.AsyncClient] = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()


def build_providers(
    config: AnalyzerConfig,
    http_client: Optional[httpx.AsyncClient] = None
) -> List[AIProvider]:
    """
    One adapter per provider, whether or not it has a key

    Unavailable adapters are skipped by the AIManager at request time.
    """
    common = dict(
        temperature=config.temperature,
        timeout=config.provider_timeout,
        max_attempts=config.provider_max_attempts,
    )
    providers: List[AIProvider] = [
        OpenAIProvider(config.openai, http_client=http_client, **common),
        AnthropicProvider(config.anthropic, http_client=http_client, **common),
        GoogleProvider(config.google, **common),
    ]

    available = [p.name for p in providers if p.is_available()]
    if available:
        logger.info("AI providers available: %s", ", ".join(available))
    else:
        logger.warning("No AI provider has a usable API key; analyses will fail")

    return providers


def build_services(
    config: AnalyzerConfig,
    store: KeyValueStore,
    providers: Optional[List[AIProvider]] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    strict: bool = False
) -> AssistantServices:
    """
    Wire all services on top of one store

    Args:
        config: Settings
        store: Shared key/value store (Redis or in-memory)
        providers: Adapters to use (None → build_providers(config))
        http_client: Shared httpx client for the HTTP adapters
        strict: Refuse to wire without an available provider

    Returns:
        AssistantServices

    Raises:
        ConfigurationError: strict and no provider is available
    """
    monitor = AnalysisMonitor(
        slow_analysis_seconds=config.slow_analysis_seconds,
        large_code_bytes=config.large_code_bytes,
    )

    if providers is None:
        providers = build_providers(config, http_client)
    ai_manager = AIManager(providers)
    ai_manager.add_failure_listener(monitor.on_provider_failure)

    if strict and not ai_manager.has_available_provider():
        # A key is set but rejected by the adapter's format check
        malformed = [
            p.name for p in ai_manager.providers
            if p.name in config.providers and config.providers[p.name].is_configured
        ]
        if malformed:
            raise ConfigurationError.invalid_api_key(malformed[0])
        raise ConfigurationError.missing_api_keys()

    analysis_cache = AnalysisCache(
        CacheService(store, "cache_analysis", config.cache_ttl, config.cache_enabled),
        ttl=config.cache_ttl,
        similarity_threshold=config.similarity_threshold,
        max_scan_keys=config.similarity_scan_limit,
    )
    result_cache = CacheService(store, "analysis_result", config.cache_ttl, config.cache_enabled)

    syntax_checker = SyntaxChecker(
        command=config.syntax_check_command,
        timeout=config.syntax_check_timeout,
        enabled=config.syntax_check_enabled,
    )

    code_analyzer = CodeAnalyzer(
        analyzers=build_analyzers(ai_manager),
        config=config,
        ai_manager=ai_manager,
        analysis_cache=analysis_cache,
        result_cache=result_cache,
        syntax_checker=syntax_checker,
        monitor=monitor,
    )

    return AssistantServices(
        config=config,
        store=store,
        ai_manager=ai_manager,
        analysis_cache=analysis_cache,
        result_cache=result_cache,
        rate_limiter=RateLimiter(store),
        monitor=monitor,
        code_analyzer=code_analyzer,
        http_client=http_client,
    )
