"""
Provider Adapter Base

Uniform contract over the remote LLM APIs:
- name / priority
- is_available(): key present, not a placeholder, expected format
- request(prompt, options) -> text

Retry policy (Tenacity) lives here, not in the fallback manager.
Only ProviderErrors flagged is_retryable are retried:
- 429 rate limit, 5xx server errors, network errors / timeouts

Never retried:
- 401/403 authentication, 402 quota, malformed responses

max_attempts defaults to 1, i.e. a failed call goes straight to the
next provider in the chain.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from core.exceptions import ProviderError
from services.analyzer.config import ProviderSettings, is_api_key_configured

logger = logging.getLogger(__name__)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.is_retryable


class AIProvider(ABC):
    """
    Base class of every provider adapter

    Subclasses set `name`, `key_prefixes` and implement `_send`.
    """

    name: str = ""
    key_prefixes: Tuple[str, ...] = ()

    def __init__(
        self,
        settings: ProviderSettings,
        temperature: float = 0.7,
        timeout: float = 30.0,
        max_attempts: int = 1,
        retry_wait=None
    ):
        """
        Args:
            settings: API key, model, max tokens and priority
            temperature: Default sampling temperature
            timeout: Default request timeout (seconds)
            max_attempts: Attempts per request at this provider
            retry_wait: Tenacity wait strategy (default: exponential + jitter)
        """
        self.settings = settings
        self.temperature = temperature
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.retry_wait = retry_wait or (
            wait_exponential(multiplier=1, min=1, max=10) + wait_random(0, 1)
        )

    @property
    def priority(self) -> int:
        return self.settings.priority

    @property
    def model(self) -> str:
        return self.settings.model

    def _key_format_ok(self, api_key: str) -> bool:
        return api_key.startswith(self.key_prefixes)

    def is_available(self) -> bool:
        """Usable API key with the provider's expected format"""
        api_key = (self.settings.api_key or "").strip()
        return is_api_key_configured(api_key) and self._key_format_ok(api_key)

    async def request(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Send a prompt and return the completion text

        Args:
            prompt: Prompt text
            options: model, max_tokens, temperature, timeout overrides

        Returns:
            str: Completion text

        Raises:
            ProviderError: Classified failure (after retries, if any)
        """
        if not self.is_available():
            raise ProviderError.not_available(self.name)

        options = options or {}
        text = ""

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                retry=retry_if_exception(_is_retryable),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    text = await self._send(prompt, options)
        except ProviderError as e:
            logger.error(
                "%s request failed (status=%s, retryable=%s, prompt_length=%d): %s",
                self.name, e.status_code, e.is_retryable, len(prompt), e,
            )
            raise

        return text

    def _log_retry(self, retry_state) -> None:
        logger.warning(
            "%s retry #%d, waiting %.1fs",
            self.name,
            retry_state.attempt_number,
            retry_state.next_action.sleep,
        )

    def _options(self, options: Dict[str, Any]) -> Tuple[str, int, float, float]:
        """(model, max_tokens, temperature, timeout) with overrides applied"""
        return (
            options.get("model") or self.settings.model,
            int(options.get("max_tokens") or self.settings.max_tokens),
            float(options.get("temperature", self.temperature)),
            float(options.get("timeout") or self.timeout),
        )

    @abstractmethod
    async def _send(self, prompt: str, options: Dict[str, Any]) -> str:
        """Single attempt; must raise ProviderError on failure"""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model}, priority={self.priority})"


class HttpAIProvider(AIProvider):
    """
    Adapter for JSON-over-HTTP completion APIs (httpx)

    An httpx.AsyncClient can be injected (shared pool, MockTransport in
    tests); otherwise a short-lived client is opened per request.
    """

    endpoint: str = ""

    def __init__(
        self,
        settings: ProviderSettings,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs
    ):
        super().__init__(settings, **kwargs)
        self.http_client = http_client

    async def _post_json(
        self,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        timeout: float,
        url: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        POST payload and return the decoded JSON body

        Raises:
            ProviderError: network error, non-2xx status or non-JSON body
        """
        url = url or self.endpoint

        try:
            if self.http_client is not None:
                response = await self.http_client.post(
                    url, json=payload, headers=headers, timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderError.network_error(self.name, f"timeout after {timeout}s") from e
        except httpx.HTTPError as e:
            raise ProviderError.network_error(self.name, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            raise ProviderError.from_status(
                self.name,
                response.status_code,
                self._error_text(response),
                retry_after=self._retry_after(response),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError.invalid_response(self.name, "body is not JSON") from e

        if not isinstance(data, dict):
            raise ProviderError.invalid_response(self.name, "body is not a JSON object")
        return data

    @staticmethod
    def _retry_after(response: httpx.Response) -> Optional[int]:
        value = response.headers.get("retry-after")
        if value and value.strip().isdigit():
            return int(value.strip())
        return None

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        """Vendor error message ({"error": {"message": ...}}) or raw body"""
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return str(error.get("message", ""))[:200]
        if error:
            return str(error)[:200]
        return response.text[:200]
