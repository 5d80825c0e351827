"""
Async Redis Connection Management
Singleton pool shared by the cache and the rate limiter store
"""
import logging
import os
from typing import Optional

import redis.asyncio as redis
from dotenv import load_dotenv
from redis.asyncio.connection import ConnectionPool

load_dotenv()

logger = logging.getLogger(__name__)


class RedisManager:
    """
    Redis connection pool manager

    One pool per process; the key/value store is built on top of
    get_client() once initialize() succeeded.
    """

    _pool: Optional[ConnectionPool] = None
    _client: Optional[redis.Redis] = None

    @classmethod
    async def initialize(cls, redis_url: Optional[str] = None) -> bool:
        """
        Create the pool and ping the server (application startup)

        Args:
            redis_url: Connection URL (default: REDIS_URL env var)

        Returns:
            bool: True when the server answered the ping
        """
        if cls._client is not None:
            return True

        redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")

        cls._pool = ConnectionPool.from_url(
            redis_url,
            max_connections=20,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        cls._client = redis.Redis(connection_pool=cls._pool)

        try:
            await cls._client.ping()
            logger.info("Redis connection established (%s)", redis_url)
            return True
        except (redis.ConnectionError, redis.TimeoutError, OSError) as e:
            logger.warning("Redis connection failed: %s", e)
            await cls.close()
            return False

    @classmethod
    async def close(cls) -> None:
        """Close the client and disconnect the pool (application shutdown)"""
        if cls._client is not None:
            await cls._client.aclose()
        if cls._pool is not None:
            await cls._pool.disconnect()

        cls._client = None
        cls._pool = None
        logger.debug("Redis connection closed")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._client is not None

    @classmethod
    def get_client(cls) -> redis.Redis:
        """
        Active Redis client

        Raises:
            RuntimeError: initialize() was not called or failed
        """
        if cls._client is None:
            raise RuntimeError(
                "Redis is not initialized. "
                "Make sure RedisManager.initialize() was awaited."
            )
        return cls._client

    @classmethod
    async def health_check(cls) -> dict:
        """
        Status block for the /health endpoint

        Returns:
            dict: Redis status and memory usage
        """
        if cls._client is None:
            return {
                "status": "disconnected",
                "error": "Redis client not initialized"
            }

        try:
            await cls._client.ping()
            info = await cls._client.info("memory")

            return {
                "status": "healthy",
                "used_memory": info.get("used_memory_human", "unknown"),
                "connected_clients": (await cls._client.info("clients")).get("connected_clients", 0),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e)
            }
