"""Tests for environment configuration."""

import pytest

from core.exceptions import ConfigurationError
from services.analyzer.config import AnalyzerConfig, ProviderSettings, is_api_key_configured

ENV_KEYS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_AI_API_KEY",
    "AI_ENABLED_ANALYZERS",
    "AI_CACHE_ENABLED",
    "AI_RATE_LIMIT_PER_MINUTE",
    "AI_PROVIDER_MAX_ATTEMPTS",
    "AI_CACHE_SIMILARITY_THRESHOLD",
    "AI_SYNTAX_CHECK_ENABLED",
    "AI_SYNTAX_CHECK_COMMAND",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.mark.parametrize("key, expected", [
    ("sk-real", True),
    (None, False),
    ("", False),
    ("your_openai_api_key_here", False),
    ("CHANGE_ME", False),
    ("null", False),
])
def test_is_api_key_configured(key, expected):
    assert is_api_key_configured(key) is expected


def test_defaults(clean_env):
    config = AnalyzerConfig.from_env()

    assert config.openai.model == "gpt-4"
    assert [config.openai.priority, config.anthropic.priority, config.google.priority] == [30, 20, 10]
    assert config.enabled_analyzers == ["security", "performance", "quality", "documentation"]
    assert config.rate_limit_per_minute == 60
    assert config.rate_limit_file_per_minute == 30
    assert config.rate_limit_per_hour == 1000
    assert config.provider_max_attempts == 1
    assert config.cache_ttl == 3600


def test_reads_environment(clean_env):
    clean_env.setenv("OPENAI_API_KEY", "sk-from-env")
    clean_env.setenv("AI_ENABLED_ANALYZERS", "security, quality")
    clean_env.setenv("AI_CACHE_ENABLED", "false")
    clean_env.setenv("AI_RATE_LIMIT_PER_MINUTE", "5")

    config = AnalyzerConfig.from_env()

    assert config.openai.api_key == "sk-from-env"
    assert config.enabled_analyzers == ["security", "quality"]
    assert config.cache_enabled is False
    assert config.rate_limit_per_minute == 5
    assert config.is_configured


@pytest.mark.parametrize("name, value", [
    ("AI_RATE_LIMIT_PER_MINUTE", "sixty"),
    ("AI_CACHE_SIMILARITY_THRESHOLD", "high"),
])
def test_unparsable_number_is_rejected(clean_env, name, value):
    clean_env.setenv(name, value)

    with pytest.raises(ConfigurationError) as exc_info:
        AnalyzerConfig.from_env()

    assert exc_info.value.config_key == name
    assert exc_info.value.config_value == value
    assert exc_info.value.context == {"config_key": name}


def test_blank_syntax_command_is_missing(clean_env):
    clean_env.setenv("AI_SYNTAX_CHECK_COMMAND", "  ")

    with pytest.raises(ConfigurationError, match="AI_SYNTAX_CHECK_COMMAND"):
        AnalyzerConfig.from_env()


def test_blank_syntax_command_allowed_when_check_disabled(clean_env):
    clean_env.setenv("AI_SYNTAX_CHECK_COMMAND", "")
    clean_env.setenv("AI_SYNTAX_CHECK_ENABLED", "false")

    assert AnalyzerConfig.from_env().syntax_check_enabled is False


def test_validate_reports_missing_keys(clean_env):
    report = AnalyzerConfig.from_env().validate()

    assert any("No AI provider API key" in e for e in report["errors"])


def test_validate_unknown_analyzer():
    config = AnalyzerConfig(
        openai=ProviderSettings(api_key="sk-x", model="gpt-4"),
        enabled_analyzers=["security", "style"],
    )

    assert not config.is_valid
    assert config.validate()["errors"] == ["Unknown analyzers enabled: style"]


def test_str_never_shows_keys():
    config = AnalyzerConfig(openai=ProviderSettings(api_key="sk-secret-value"))

    assert "sk-secret-value" not in str(config)
    assert "openai" in str(config)


def test_generate_env_content():
    content = AnalyzerConfig().generate_env_content()

    assert "OPENAI_API_KEY=your_openai_api_key_here" in content
    assert "GOOGLE_AI_API_KEY=your_google_api_key_here" in content
