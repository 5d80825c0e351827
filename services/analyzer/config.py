"""
Assistant Configuration

Central settings loaded from environment variables (.env via python-dotenv).
Defaults match a single-node setup with every analyzer enabled.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from core.exceptions import ConfigurationError

load_dotenv()

ALL_ANALYZERS = ["security", "performance", "quality", "documentation"]

DEFAULT_EXCLUDED_PATHS = [
    "vendor/",
    "var/cache/",
    "var/log/",
    "node_modules/",
    "public/build/",
]

# Values that look like a key but are template leftovers
_PLACEHOLDER_KEYS = {
    "placeholder",
    "change_me",
    "changeme",
    "null",
    "false",
    "none",
    "sk-placeholder",
}

PROVIDER_INSTRUCTIONS: Dict[str, Dict[str, str]] = {
    "openai": {
        "name": "OpenAI",
        "env": "OPENAI_API_KEY",
        "url": "https://platform.openai.com/api-keys",
        "format": "sk-...",
    },
    "anthropic": {
        "name": "Anthropic",
        "env": "ANTHROPIC_API_KEY",
        "url": "https://console.anthropic.com/settings/keys",
        "format": "sk-ant-...",
    },
    "google": {
        "name": "Google AI",
        "env": "GOOGLE_AI_API_KEY",
        "url": "https://aistudio.google.com/app/apikey",
        "format": "AI...",
    },
}


def is_api_key_configured(api_key: Optional[str]) -> bool:
    """
    Key present and not a template placeholder

    Rejects "your_*_api_key_here" and the usual dummy values.
    """
    if not api_key or not api_key.strip():
        return False
    key = api_key.strip().lower()
    if key in _PLACEHOLDER_KEYS:
        return False
    if key.startswith("your_") and key.endswith("_here"):
        return False
    return True


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError.invalid_value(name, value, "an integer") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError.invalid_value(name, value, "a number") from None


@dataclass
class ProviderSettings:
    """Settings of one LLM provider"""

    api_key: str = ""
    model: str = ""
    max_tokens: int = 4000
    priority: int = 0

    @property
    def is_configured(self) -> bool:
        return is_api_key_configured(self.api_key)


@dataclass
class AnalyzerConfig:
    """
    Configuration container for the whole assistant

    Read from environment variables, defaults provided.
    """

    # Providers
    openai: ProviderSettings = field(default_factory=lambda: ProviderSettings(
        model="gpt-4", priority=30))
    anthropic: ProviderSettings = field(default_factory=lambda: ProviderSettings(
        model="claude-3-sonnet-20240229", priority=20))
    google: ProviderSettings = field(default_factory=lambda: ProviderSettings(
        model="gemini-pro", priority=10))
    temperature: float = 0.7
    provider_timeout: float = 30.0
    # 1 = no retry at the same provider; failover is the AIManager's job
    provider_max_attempts: int = 1

    # Analysis
    enabled_analyzers: List[str] = field(default_factory=lambda: list(ALL_ANALYZERS))
    max_file_size: int = 1024 * 1024
    supported_extensions: List[str] = field(default_factory=lambda: ["php"])
    excluded_paths: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_PATHS))
    max_files: int = 100

    # Cache
    cache_enabled: bool = True
    cache_ttl: int = 3600
    similarity_threshold: float = 0.85
    similarity_scan_limit: int = 200

    # Rate limits
    rate_limit_per_minute: int = 60
    rate_limit_file_per_minute: int = 30
    rate_limit_per_hour: int = 1000

    # Syntax check
    syntax_check_enabled: bool = True
    syntax_check_command: str = "php -l"
    syntax_check_timeout: float = 10.0

    # Monitoring
    slow_analysis_seconds: float = 10.0
    large_code_bytes: int = 100 * 1024

    # Infrastructure
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AnalyzerConfig":
        """
        Load configuration from environment variables

        Returns:
            AnalyzerConfig: Configured instance

        Raises:
            ConfigurationError: Unparsable number, or syntax check enabled
                without a command
        """
        config = cls(
            # Providers
            openai=ProviderSettings(
                api_key=os.getenv("OPENAI_API_KEY", ""),
                model=os.getenv("OPENAI_MODEL", "gpt-4"),
                max_tokens=_env_int("OPENAI_MAX_TOKENS", 4000),
                priority=_env_int("OPENAI_PRIORITY", 30),
            ),
            anthropic=ProviderSettings(
                api_key=os.getenv("ANTHROPIC_API_KEY", ""),
                model=os.getenv("ANTHROPIC_MODEL", "claude-3-sonnet-20240229"),
                max_tokens=_env_int("ANTHROPIC_MAX_TOKENS", 4000),
                priority=_env_int("ANTHROPIC_PRIORITY", 20),
            ),
            google=ProviderSettings(
                api_key=os.getenv("GOOGLE_AI_API_KEY", ""),
                model=os.getenv("GOOGLE_AI_MODEL", "gemini-pro"),
                max_tokens=_env_int("GOOGLE_AI_MAX_TOKENS", 4000),
                priority=_env_int("GOOGLE_AI_PRIORITY", 10),
            ),
            temperature=_env_float("AI_TEMPERATURE", 0.7),
            provider_timeout=_env_float("AI_PROVIDER_TIMEOUT", 30),
            provider_max_attempts=_env_int("AI_PROVIDER_MAX_ATTEMPTS", 1),

            # Analysis
            enabled_analyzers=_env_list("AI_ENABLED_ANALYZERS", ALL_ANALYZERS),
            max_file_size=_env_int("AI_MAX_FILE_SIZE", 1024 * 1024),
            supported_extensions=_env_list("AI_SUPPORTED_EXTENSIONS", ["php"]),
            excluded_paths=_env_list("AI_EXCLUDED_PATHS", DEFAULT_EXCLUDED_PATHS),
            max_files=_env_int("AI_MAX_FILES", 100),

            # Cache
            cache_enabled=_env_bool("AI_CACHE_ENABLED", True),
            cache_ttl=_env_int("AI_CACHE_TTL", 3600),
            similarity_threshold=_env_float("AI_CACHE_SIMILARITY_THRESHOLD", 0.85),
            similarity_scan_limit=_env_int("AI_CACHE_SIMILARITY_SCAN_LIMIT", 200),

            # Rate limits
            rate_limit_per_minute=_env_int("AI_RATE_LIMIT_PER_MINUTE", 60),
            rate_limit_file_per_minute=_env_int("AI_RATE_LIMIT_FILE_PER_MINUTE", 30),
            rate_limit_per_hour=_env_int("AI_RATE_LIMIT_PER_HOUR", 1000),

            # Syntax check
            syntax_check_enabled=_env_bool("AI_SYNTAX_CHECK_ENABLED", True),
            syntax_check_command=os.getenv("AI_SYNTAX_CHECK_COMMAND", "php -l"),
            syntax_check_timeout=_env_float("AI_SYNTAX_CHECK_TIMEOUT", 10),

            # Monitoring
            slow_analysis_seconds=_env_float("AI_SLOW_ANALYSIS_SECONDS", 10),
            large_code_bytes=_env_int("AI_LARGE_CODE_BYTES", 100 * 1024),

            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        if config.syntax_check_enabled and not config.syntax_check_command.strip():
            raise ConfigurationError.missing_required("AI_SYNTAX_CHECK_COMMAND")

        return config

    @property
    def providers(self) -> Dict[str, ProviderSettings]:
        return {
            "openai": self.openai,
            "anthropic": self.anthropic,
            "google": self.google,
        }

    @property
    def is_configured(self) -> bool:
        """At least one provider has a usable API key"""
        return any(p.is_configured for p in self.providers.values())

    def validate(self) -> Dict[str, List[str]]:
        """
        Check the configuration for problems

        Returns:
            dict: {"errors": [...], "warnings": [...]}
        """
        errors: List[str] = []
        warnings: List[str] = []

        if not self.is_configured:
            errors.append(
                "No AI provider API key configured "
                "(OPENAI_API_KEY, ANTHROPIC_API_KEY or GOOGLE_AI_API_KEY)"
            )

        unknown = [a for a in self.enabled_analyzers if a not in ALL_ANALYZERS]
        if unknown:
            errors.append(f"Unknown analyzers enabled: {', '.join(unknown)}")
        if not self.enabled_analyzers:
            warnings.append("No analyzers are enabled")

        if not self.cache_enabled:
            warnings.append("Cache is disabled, every request will call a provider")
        if not 0.0 < self.similarity_threshold <= 1.0:
            errors.append("AI_CACHE_SIMILARITY_THRESHOLD must be in (0, 1]")
        if self.provider_max_attempts < 1:
            errors.append("AI_PROVIDER_MAX_ATTEMPTS must be at least 1")
        if self.max_file_size <= 0:
            errors.append("AI_MAX_FILE_SIZE must be positive")

        return {"errors": errors, "warnings": warnings}

    @property
    def is_valid(self) -> bool:
        return not self.validate()["errors"]

    def generate_env_content(self) -> str:
        """.env template with one line per provider key"""
        lines = ["# AI Dev Assistant configuration"]
        for name, info in PROVIDER_INSTRUCTIONS.items():
            lines.append(f"# {info['name']}: {info['url']} (format {info['format']})")
            lines.append(f"{info['env']}=your_{name}_api_key_here")
        lines.append(f"REDIS_URL={self.redis_url}")
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        """Debug representation (never prints keys)"""
        configured = [n for n, p in self.providers.items() if p.is_configured]
        return (
            f"AnalyzerConfig("
            f"providers={configured}, "
            f"analyzers={self.enabled_analyzers}, "
            f"cache_ttl={self.cache_ttl}s, "
            f"rate_limit={self.rate_limit_per_minute}/min)"
        )
