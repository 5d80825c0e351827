"""
Fixed Window Rate Limiter

Algorithm:
1. window_start = floor(now / window) * window
2. Key = "rate_limit:{sha256(identity)}:{window_start}"
3. First request in the window → counter = 1, TTL = window
4. Later requests → increment while count < max_requests, else reject

Counters reset exactly at window boundaries. A burst straddling two
windows can therefore see up to 2 x max_requests inside one rolling
window; this imprecision is accepted.

The read-increment-write sequence is not atomic. Concurrent callers with
the same identity can under-count.

Store failures fail open: the request is allowed and the error logged.
"""
import hashlib
import logging
import time
from typing import Callable, Dict

from core.exceptions import StoreError
from database.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-identity fixed window counter on top of a KeyValueStore

    Identity is usually the client IP; it is hashed so raw addresses
    never appear in the store.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: str = "rate_limit",
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            store: Shared key/value store
            key_prefix: Key prefix for counters
            clock: Time source (seconds), injectable for tests
        """
        self.store = store
        self.key_prefix = key_prefix
        self._clock = clock

    @staticmethod
    def _validate(window_seconds: int, max_requests: int = 1) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")

    def _window_start(self, window_seconds: int) -> int:
        return int(self._clock() // window_seconds) * window_seconds

    def _get_key(self, identity: str, window_seconds: int) -> str:
        """
        Counter key for the current window

        Returns:
            str: e.g. "rate_limit:9f86d081...:1700000040"
        """
        digest = hashlib.sha256(identity.encode()).hexdigest()
        return f"{self.key_prefix}:{digest}:{self._window_start(window_seconds)}"

    async def is_allowed(
        self,
        identity: str,
        max_requests: int,
        window_seconds: int
    ) -> bool:
        """
        Count the request if the window still has room

        Args:
            identity: Caller identity (IP, API key, ...)
            max_requests: Allowed requests per window
            window_seconds: Window length

        Returns:
            bool: False when the limit is reached (counter not incremented)
        """
        self._validate(window_seconds, max_requests)
        key = self._get_key(identity, window_seconds)

        try:
            current = await self.store.get(key)

            if current is None:
                await self.store.set(key, "1", ttl=window_seconds)
                return True

            count = int(current)
            if count >= max_requests:
                logger.warning(
                    "Rate limit exceeded for identity %s (%d/%d in %ds window)",
                    identity, count, max_requests, window_seconds,
                )
                return False

            await self.store.set(key, str(count + 1), keep_ttl=True)
            return True

        except (StoreError, ValueError) as e:
            logger.error("Rate limiter store error, allowing request: %s", e)
            return True

    async def get_current_count(self, identity: str, window_seconds: int) -> int:
        """Requests counted in the current window (0 on miss or store error)"""
        self._validate(window_seconds)
        try:
            value = await self.store.get(self._get_key(identity, window_seconds))
            return int(value) if value is not None else 0
        except (StoreError, ValueError) as e:
            logger.warning("Could not read rate limit counter: %s", e)
            return 0

    async def reset(self, identity: str, window_seconds: int) -> bool:
        """
        Delete the current window's counter

        Returns:
            bool: True if a counter was removed
        """
        self._validate(window_seconds)
        try:
            return await self.store.delete(self._get_key(identity, window_seconds))
        except StoreError as e:
            logger.error("Could not reset rate limit counter: %s", e)
            return False

    async def get_status(
        self,
        identity: str,
        max_requests: int,
        window_seconds: int
    ) -> Dict[str, int]:
        """
        Limit status without consuming a request

        Returns:
            dict: current, limit, remaining, reset_in_seconds, window_seconds
        """
        self._validate(window_seconds, max_requests)
        current = await self.get_current_count(identity, window_seconds)
        window_end = self._window_start(window_seconds) + window_seconds

        return {
            "current": current,
            "limit": max_requests,
            "remaining": max(0, max_requests - current),
            "reset_in_seconds": max(0, int(window_end - self._clock())),
            "window_seconds": window_seconds,
        }
