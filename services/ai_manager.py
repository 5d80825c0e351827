"""
Provider Fallback Manager

Sequential, health-aware failover across the configured providers:
1. Order providers by priority (highest first, stable for ties)
2. Skip providers whose is_available() is False (never invoked)
3. Try the rest in order, first success wins
4. Every failure is logged and reported to the failure listeners
5. Nothing left → AllProvidersFailedError wrapping the last failure

No retries here: retrying a single provider is the adapter's concern.
"""
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple

from core.exceptions import AllProvidersFailedError, NoAvailableProviderError

if TYPE_CHECKING:
    from services.providers.base import AIProvider

logger = logging.getLogger(__name__)

# listener(provider_name, error, prompt_length)
FailureListener = Callable[[str, Exception, int], None]


class AIManager:
    """Ordered provider chain with failover"""

    def __init__(
        self,
        providers: Sequence["AIProvider"],
        failure_listeners: Optional[List[FailureListener]] = None
    ):
        """
        Args:
            providers: Adapters in any order (sorted by priority here)
            failure_listeners: Callbacks notified of each provider failure
        """
        # sorted() is stable, so equal priorities keep their given order
        self.providers: Tuple["AIProvider", ...] = tuple(
            sorted(providers, key=lambda p: p.priority, reverse=True)
        )
        self.failure_listeners: List[FailureListener] = list(failure_listeners or [])

    def add_failure_listener(self, listener: FailureListener) -> None:
        self.failure_listeners.append(listener)

    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    def get_available_providers(self) -> List["AIProvider"]:
        return [p for p in self.providers if p.is_available()]

    def has_available_provider(self) -> bool:
        return any(p.is_available() for p in self.providers)

    def _notify_failure(self, provider: str, error: Exception, prompt_length: int) -> None:
        for listener in self.failure_listeners:
            try:
                listener(provider, error, prompt_length)
            except Exception:
                logger.exception("Provider failure listener raised")

    async def request(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Send the prompt through the fallback chain

        Args:
            prompt: Prompt text
            options: Passed unchanged to each provider

        Returns:
            str: Text of the first successful provider

        Raises:
            NoAvailableProviderError: No provider passed its availability check
            AllProvidersFailedError: Every available provider raised
        """
        failures: List[Tuple[str, Exception]] = []

        for provider in self.providers:
            if not provider.is_available():
                logger.debug("Skipping unavailable provider %s", provider.name)
                continue

            try:
                response = await provider.request(prompt, options)
            except Exception as e:
                failures.append((provider.name, e))
                logger.warning(
                    "Provider %s failed, trying next (prompt_length=%d): %s",
                    provider.name, len(prompt), e,
                )
                self._notify_failure(provider.name, e, len(prompt))
                continue

            logger.info(
                "Provider %s answered (prompt_length=%d, response_length=%d)",
                provider.name, len(prompt), len(response),
            )
            return response

        if not failures:
            logger.error("No AI providers available (%d configured)", len(self.providers))
            raise NoAvailableProviderError(
                "No AI providers available",
                {"configured": self.provider_names()},
            )

        last_provider, last_error = failures[-1]
        raise AllProvidersFailedError(
            f"All AI providers failed. Last error ({last_provider}): {last_error}",
            failures,
        ) from last_error
