"""Tests for service wiring."""

import pytest

from core.exceptions import ConfigurationError, ProviderError
from services.analyzer.config import AnalyzerConfig, ProviderSettings
from services.factory import build_services
from tests.conftest import FakeProvider


async def test_monitor_receives_provider_failures(config, store):
    services = build_services(config, store, providers=[
        FakeProvider("openai", priority=2, error=ProviderError.server_error("openai", 500)),
        FakeProvider("google", priority=1, response="ok"),
    ])

    assert await services.ai_manager.request("prompt") == "ok"

    assert [f.provider for f in services.monitor.provider_failures] == ["openai"]


def test_lenient_wiring_without_providers(config, store):
    services = build_services(config, store, providers=[FakeProvider("openai", available=False)])

    assert services.ai_manager.has_available_provider() is False


def test_strict_without_keys(config, store):
    with pytest.raises(ConfigurationError, match="No AI provider API key is configured"):
        build_services(
            config, store, providers=[FakeProvider("openai", available=False)], strict=True
        )


def test_strict_with_malformed_key(store):
    config = AnalyzerConfig(
        openai=ProviderSettings(api_key="not-an-openai-key"),
        syntax_check_enabled=False,
    )

    with pytest.raises(ConfigurationError) as exc_info:
        build_services(
            config, store, providers=[FakeProvider("openai", available=False)], strict=True
        )

    assert exc_info.value.config_key == "openai_api_key"
    assert exc_info.value.context["provider"] == "openai"


def test_strict_with_available_provider(config, store):
    services = build_services(config, store, providers=[FakeProvider("openai")], strict=True)

    assert services.ai_manager.provider_names() == ["openai"]
