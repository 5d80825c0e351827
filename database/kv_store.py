"""
Key/Value Store

The cache and the rate limiter only need a small contract:
get / set (with TTL) / delete / clear and, optionally, prefix scan.

Backends:
- RedisKeyValueStore: shared across workers (SETEX, KEEPTTL, SCAN)
- InMemoryKeyValueStore: single process, used for tests and when Redis
  is unreachable at startup

Backend errors surface as StoreError so callers can decide whether to
fail open (rate limiter) or degrade to a miss (cache).
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from core.exceptions import StoreError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """
    String key/value contract shared by all backends

    supports_scan=False means prefix enumeration is unavailable; the
    similarity cache then always misses.
    """

    supports_scan: bool = True

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        value: str,
        ttl: Optional[int] = None,
        keep_ttl: bool = False
    ) -> None:
        """
        Args:
            key: Key
            value: String value
            ttl: Expiry in seconds (None = no expiry)
            keep_ttl: Keep the existing expiry of the key (ttl ignored)
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    async def clear(self) -> int:
        """Remove every key owned by this store, returns the count"""
        ...

    @abstractmethod
    async def scan(self, prefix: str, limit: Optional[int] = None) -> List[str]:
        """Keys starting with prefix (at most limit)"""
        ...


class RedisKeyValueStore(KeyValueStore):
    """
    Redis backend

    All keys are stored under "{namespace}:" so clear() only touches
    this application's data. Enumeration uses SCAN, never KEYS
    (KEYS blocks Redis on large keyspaces).
    """

    def __init__(self, redis_client: redis.Redis, namespace: str = "ai_dev_assistant"):
        """
        Args:
            redis_client: Client from RedisManager.get_client()
            namespace: Key prefix for every stored key
        """
        self.redis = redis_client
        self.namespace = namespace

    def _get_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _strip(self, full_key: str) -> str:
        return full_key[len(self.namespace) + 1:]

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis.get(self._get_key(key))
        except RedisError as e:
            raise StoreError(f"Redis GET failed: {e}") from e

    async def set(
        self,
        key: str,
        value: str,
        ttl: Optional[int] = None,
        keep_ttl: bool = False
    ) -> None:
        full_key = self._get_key(key)
        try:
            if keep_ttl:
                await self.redis.set(full_key, value, keepttl=True)
            elif ttl:
                await self.redis.setex(full_key, ttl, value)
            else:
                await self.redis.set(full_key, value)
        except RedisError as e:
            raise StoreError(f"Redis SET failed: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            return await self.redis.delete(self._get_key(key)) > 0
        except RedisError as e:
            raise StoreError(f"Redis DEL failed: {e}") from e

    async def _scan_full_keys(self, prefix: str, limit: Optional[int]) -> List[str]:
        pattern = f"{self._get_key(prefix)}*"
        cursor = 0
        found: List[str] = []

        while True:
            cursor, keys = await self.redis.scan(cursor=cursor, match=pattern, count=100)
            found.extend(keys)
            if limit is not None and len(found) >= limit:
                return found[:limit]
            # Cursor 0 means the iteration is complete
            if cursor == 0:
                break

        return found

    async def scan(self, prefix: str, limit: Optional[int] = None) -> List[str]:
        try:
            keys = await self._scan_full_keys(prefix, limit)
        except RedisError as e:
            raise StoreError(f"Redis SCAN failed: {e}") from e
        return [self._strip(k) for k in keys]

    async def clear(self) -> int:
        deleted = 0
        try:
            cursor = 0
            pattern = f"{self.namespace}:*"
            while True:
                cursor, keys = await self.redis.scan(cursor=cursor, match=pattern, count=100)
                if keys:
                    deleted += await self.redis.delete(*keys)
                if cursor == 0:
                    break
        except RedisError as e:
            raise StoreError(f"Redis clear failed: {e}") from e

        logger.info("Cleared %d keys from namespace '%s'", deleted, self.namespace)
        return deleted


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local backend with TTL support

    Expired entries are dropped lazily on access. The clock is injectable
    so tests can move time forward without sleeping.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        supports_scan: bool = True
    ):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock
        self.supports_scan = supports_scan

    def _alive(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._alive(key)
        return entry[0] if entry else None

    async def set(
        self,
        key: str,
        value: str,
        ttl: Optional[int] = None,
        keep_ttl: bool = False
    ) -> None:
        if keep_ttl:
            entry = self._alive(key)
            expires_at = entry[1] if entry else None
        else:
            expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def clear(self) -> int:
        count = len(self._data)
        self._data.clear()
        return count

    async def scan(self, prefix: str, limit: Optional[int] = None) -> List[str]:
        if not self.supports_scan:
            return []
        keys = [k for k in list(self._data) if k.startswith(prefix) and self._alive(k)]
        return keys[:limit] if limit is not None else keys

    def __len__(self) -> int:
        return sum(1 for k in list(self._data) if self._alive(k))
