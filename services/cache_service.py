"""
Cache Service

Pydantic model cache on top of the key/value store.
String/JSON strategy with automatic (de)serialization.

Features:
- model_dump_json on write, model_validate_json on read
- Deterministic cache keys (SHA256)
- TTL management
- Prefix scan for stats and clearing (backend permitting)
- Read/write failures degrade to miss / no-op, never to an exception
"""
import hashlib
import json
import logging
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.exceptions import StoreError
from database.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

# Generic type for Pydantic models
T = TypeVar("T", bound=BaseModel)


class CacheService:
    """
    Cache-aside helper for pydantic models

    1. Request arrives
    2. In cache? → YES → return it (HIT)
                 → NO  → compute → store → return (MISS)
    """

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: str = "cache",
        default_ttl: int = 3600,
        enabled: bool = True
    ):
        """
        Args:
            store: Key/value backend
            key_prefix: Prefix of every key written by this cache
            default_ttl: TTL in seconds when set() gets none
            enabled: A disabled cache always misses and stores nothing
        """
        self.store = store
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl
        self.enabled = enabled

    def _get_key(self, identifier: str) -> str:
        """
        Full key

        Returns:
            str: e.g. "cache_analysis:security:abc123..."
        """
        return f"{self.key_prefix}:{identifier}"

    @staticmethod
    def generate_hash_key(*args, **kwargs) -> str:
        """
        Deterministic cache key (SHA256)

        Same arguments always produce the same key. Keyword order does
        not matter; non-JSON values are stringified.

        Returns:
            str: 32-character hex digest

        Example:
            >>> CacheService.generate_hash_key("abc", analyzers=["security"])
            '5b0c8f1e...'
        """
        cache_data = {
            "args": args,
            "kwargs": kwargs
        }
        json_str = json.dumps(cache_data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    async def get(self, key: str, model_class: Type[T]) -> Optional[T]:
        """
        Read a model from the cache

        Args:
            key: Identifier (without prefix)
            model_class: Model to validate the JSON into

        Returns:
            Model instance or None on miss / error
        """
        if not self.enabled:
            return None

        try:
            data = await self.store.get(self._get_key(key))
            if data is None:
                return None
            return model_class.model_validate_json(data)
        except (StoreError, ValidationError) as e:
            logger.warning("Cache read failed for key %s: %s", key, e)
            return None

    async def set(self, key: str, value: BaseModel, ttl: Optional[int] = None) -> bool:
        """
        Write a model to the cache

        Args:
            key: Identifier (without prefix)
            value: Model to store
            ttl: TTL in seconds (None = default_ttl)

        Returns:
            bool: True when written
        """
        if not self.enabled:
            return False

        try:
            await self.store.set(
                self._get_key(key),
                value.model_dump_json(),
                ttl=ttl or self.default_ttl,
            )
            return True
        except StoreError as e:
            logger.warning("Cache write failed for key %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self.store.delete(self._get_key(key))
        except StoreError as e:
            logger.warning("Cache delete failed for key %s: %s", key, e)
            return False

    async def scan_keys(self, prefix: str = "", limit: Optional[int] = None) -> List[str]:
        """
        Identifiers (without key_prefix) starting with prefix

        Returns an empty list when the backend cannot enumerate keys.
        """
        if not self.enabled or not self.store.supports_scan:
            return []

        try:
            full_keys = await self.store.scan(self._get_key(prefix), limit=limit)
        except StoreError as e:
            logger.warning("Cache scan failed for prefix %s: %s", prefix, e)
            return []

        offset = len(self.key_prefix) + 1
        return [k[offset:] for k in full_keys]

    async def clear(self, prefix: str = "") -> int:
        """
        Delete every entry under prefix

        Returns:
            int: Deleted entry count
        """
        deleted = 0
        for identifier in await self.scan_keys(prefix):
            if await self.delete(identifier):
                deleted += 1
        logger.info("Cleared %d cache entries under %s", deleted, self._get_key(prefix))
        return deleted

    async def get_stats(self) -> dict:
        """
        Cache statistics (debug)

        Returns:
            dict: prefix, cached_items, default_ttl, enabled
        """
        keys = await self.scan_keys()
        return {
            "prefix": self.key_prefix,
            "cached_items": len(keys),
            "default_ttl": self.default_ttl,
            "enabled": self.enabled,
        }
