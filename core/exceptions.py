"""
Exception Hierarchy

Every error raised by the assistant derives from AssistantError and carries:
- context: extra key/value data for logs and API responses
- http_status: status code used by the FastAPI exception handler

Tree:
    AssistantError
    ├── ConfigurationError
    ├── ProviderError
    │   └── AllProvidersFailedError
    │       └── NoAvailableProviderError
    └── AnalysisError
        ├── FileError
        └── InvalidCodeError

StoreError is separate: key/value backend failures are absorbed by the
cache and the rate limiter and never reach API callers.
"""
from typing import Any, Dict, List, Optional, Tuple


class AssistantError(Exception):
    """Base error with a context dictionary"""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})
        if http_status is not None:
            self.http_status = http_status

    def get_context_value(self, key: str, default: Any = None) -> Any:
        return self.context.get(key, default)

    def add_context(self, key: str, value: Any) -> "AssistantError":
        self.context[key] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        """JSON payload for the API error handler"""
        return {
            "error": self.message,
            "type": type(self).__name__,
            "context": self.context,
        }


# ============================================================================
# CONFIGURATION
# ============================================================================

class ConfigurationError(AssistantError):
    """Missing or invalid setting"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Any = None,
        context: Optional[Dict[str, Any]] = None
    ):
        context = dict(context or {})
        if config_key is not None:
            context["config_key"] = config_key
        super().__init__(message, context)
        self.config_key = config_key
        self.config_value = config_value

    @classmethod
    def missing_required(cls, config_key: str) -> "ConfigurationError":
        return cls(f"Required configuration '{config_key}' is missing", config_key)

    @classmethod
    def invalid_value(
        cls, config_key: str, value: Any, expected: str
    ) -> "ConfigurationError":
        return cls(
            f"Invalid value for '{config_key}': expected {expected}",
            config_key,
            value,
        )

    @classmethod
    def missing_api_keys(cls) -> "ConfigurationError":
        return cls(
            "No AI provider API key is configured. "
            "Set OPENAI_API_KEY, ANTHROPIC_API_KEY or GOOGLE_AI_API_KEY."
        )

    @classmethod
    def invalid_api_key(cls, provider: str) -> "ConfigurationError":
        return cls(
            f"API key for provider '{provider}' has an invalid format",
            f"{provider}_api_key",
            context={"provider": provider},
        )


# ============================================================================
# PROVIDERS
# ============================================================================

class ProviderError(AssistantError):
    """
    Remote LLM call failure

    status_code follows HTTP semantics; 0 means no response was received
    (network error). is_retryable tells the adapter's retry policy whether
    another attempt at the same provider can help.
    """

    http_status = 502

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: int = 0,
        is_retryable: bool = False,
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        context = dict(context or {})
        context.setdefault("provider", provider)
        context.setdefault("status_code", status_code)
        super().__init__(message, context)
        self.provider = provider
        self.status_code = status_code
        self.is_retryable = is_retryable
        self.retry_after = retry_after

    @classmethod
    def rate_limit_exceeded(
        cls, provider: str, retry_after: Optional[int] = None
    ) -> "ProviderError":
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f", retry after {retry_after}s"
        return cls(message, provider, 429, True, retry_after)

    @classmethod
    def authentication_failed(cls, provider: str) -> "ProviderError":
        return cls(f"Authentication failed for provider '{provider}'", provider, 401)

    @classmethod
    def quota_exceeded(cls, provider: str) -> "ProviderError":
        return cls(f"Quota exceeded for provider '{provider}'", provider, 402)

    @classmethod
    def network_error(cls, provider: str, reason: str) -> "ProviderError":
        return cls(
            f"Network error while calling provider '{provider}': {reason}",
            provider,
            0,
            True,
        )

    @classmethod
    def server_error(cls, provider: str, status_code: int, reason: str = "") -> "ProviderError":
        message = f"Provider '{provider}' returned server error {status_code}"
        if reason:
            message += f": {reason}"
        return cls(message, provider, status_code, True)

    @classmethod
    def invalid_response(cls, provider: str, reason: str) -> "ProviderError":
        return cls(f"Invalid response from provider '{provider}': {reason}", provider, 0)

    @classmethod
    def not_available(cls, provider: str) -> "ProviderError":
        return cls(f"Provider '{provider}' is not available", provider, 503)

    @classmethod
    def from_status(
        cls,
        provider: str,
        status_code: int,
        reason: str = "",
        retry_after: Optional[int] = None
    ) -> "ProviderError":
        """
        Classify a non-2xx HTTP status

        Args:
            provider: Provider name
            status_code: HTTP status returned by the vendor
            reason: Short error text from the response body
            retry_after: Parsed Retry-After header (seconds)

        Returns:
            ProviderError: Error with the matching retry flag
        """
        if status_code in (401, 403):
            return cls.authentication_failed(provider)
        if status_code == 402:
            return cls.quota_exceeded(provider)
        if status_code == 429:
            return cls.rate_limit_exceeded(provider, retry_after)
        if status_code >= 500:
            return cls.server_error(provider, status_code, reason)
        return cls(
            f"Provider '{provider}' request failed with status {status_code}: {reason}",
            provider,
            status_code,
        )


class AllProvidersFailedError(ProviderError):
    """Every available provider in the fallback chain raised"""

    http_status = 503

    def __init__(
        self,
        message: str,
        failures: Optional[List[Tuple[str, Exception]]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, provider="all", status_code=503, context=context)
        self.failures: List[Tuple[str, Exception]] = list(failures or [])
        self.context["failed_providers"] = [name for name, _ in self.failures]

    @property
    def last_error(self) -> Optional[Exception]:
        return self.failures[-1][1] if self.failures else None


class NoAvailableProviderError(AllProvidersFailedError):
    """No provider passed its availability check"""

    def __init__(self, message: str = "No AI providers available", context=None):
        super().__init__(message, [], context)


# ============================================================================
# ANALYSIS
# ============================================================================

class AnalysisError(AssistantError):
    """Analysis could not be completed"""

    http_status = 500

    @classmethod
    def timeout(cls, seconds: float, filename: str = "") -> "AnalysisError":
        return cls(
            f"Analysis timed out after {seconds} seconds",
            {"timeout": seconds, "filename": filename},
            http_status=504,
        )

    @classmethod
    def analyzer_failed(cls, analyzer: str, reason: str) -> "AnalysisError":
        return cls(
            f"Analyzer '{analyzer}' failed: {reason}",
            {"analyzer": analyzer},
        )

    @classmethod
    def wrap(cls, error: Exception, **context) -> "AnalysisError":
        """Wrap a lower-level error, keeping its context"""
        merged = dict(getattr(error, "context", {}) or {})
        merged.update(context)
        http_status = 503 if isinstance(error, ProviderError) else None
        wrapped = cls(f"Analysis failed: {error}", merged, http_status=http_status)
        wrapped.__cause__ = error
        return wrapped


class FileError(AnalysisError):
    """File or directory cannot be used as input"""

    http_status = 400

    @classmethod
    def file_not_found(cls, path: str) -> "FileError":
        return cls(f"File not found: {path}", {"file_path": path}, http_status=404)

    @classmethod
    def file_not_readable(cls, path: str) -> "FileError":
        return cls(f"File is not readable: {path}", {"file_path": path})

    @classmethod
    def directory_not_found(cls, path: str) -> "FileError":
        return cls(f"Directory not found: {path}", {"directory": path}, http_status=404)

    @classmethod
    def file_too_big(cls, path: str, size: int, max_size: int) -> "FileError":
        return cls(
            f"File too large: {path} ({size} bytes, max {max_size})",
            {"file_path": path, "size": size, "max_size": max_size},
            http_status=413,
        )


class InvalidCodeError(AnalysisError):
    """Input code rejected before any provider call"""

    http_status = 400

    @classmethod
    def empty_code(cls) -> "InvalidCodeError":
        return cls("Code cannot be empty")

    @classmethod
    def invalid_syntax(cls, output: str, filename: str = "") -> "InvalidCodeError":
        return cls(
            f"Invalid PHP syntax: {output.strip()}",
            {"filename": filename, "linter_output": output},
            http_status=422,
        )

    @classmethod
    def unsupported_file_type(
        cls, extension: str, supported: List[str]
    ) -> "InvalidCodeError":
        return cls(
            f"Unsupported file type '{extension}'. "
            f"Supported: {', '.join(supported)}",
            {"extension": extension, "supported": list(supported)},
        )

    @classmethod
    def unknown_analyzers(
        cls, names: List[str], available: List[str]
    ) -> "InvalidCodeError":
        return cls(
            f"Unknown analyzers: {', '.join(names)}. "
            f"Available: {', '.join(available)}",
            {"unknown": list(names), "available": list(available)},
        )


# ============================================================================
# STORAGE
# ============================================================================

class StoreError(Exception):
    """Key/value backend failure"""
    pass
