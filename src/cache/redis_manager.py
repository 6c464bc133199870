# coding: utf-8
"""
Redis Manager for the quote snapshot store

Async Redis client with connection pooling. Reads raise on failure: a
stalled or unreachable snapshot store must fail the enclosing operation.
"""
import json
from typing import Any, Optional

from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
from loguru import logger

from config.cache_config import CacheConfig


class RedisManager:
    """
    Redis manager with connection pooling

    Features:
    - Async Redis operations
    - Connection pooling for efficiency
    - JSON deserialization
    - Read statistics

    Usage:
        >>> redis_mgr = RedisManager()
        >>> await redis_mgr.initialize()
        >>> quotes = await redis_mgr.get_json("server:crypto:quotes", default=[])
        >>> await redis_mgr.close()
    """

    def __init__(self, url: Optional[str] = None, client: Optional[Redis] = None):
        """
        Args:
            url: Redis URL (defaults to CacheConfig.REDIS_URL)
            client: Pre-built client, skips pool construction
        """
        self._url = url or CacheConfig.REDIS_URL
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client
        self._is_available = client is not None
        self._stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
        }

    async def initialize(self) -> bool:
        """
        Initialize Redis connection pool

        Returns:
            True if Redis answered PING, False otherwise

        Note:
            A failed initialization is not fatal at startup; every later
            read raises until the connection comes back.
        """
        if self._client is None:
            self._pool = ConnectionPool.from_url(
                self._url,
                max_connections=CacheConfig.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_connect_timeout=CacheConfig.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=CacheConfig.REDIS_SOCKET_TIMEOUT,
            )
            self._client = Redis(connection_pool=self._pool)

        try:
            await self._client.ping()
            self._is_available = True
            logger.info(
                f"Redis initialized successfully (max_connections={CacheConfig.REDIS_MAX_CONNECTIONS})"
            )
        except RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Quote reads will fail until it recovers.")
            self._is_available = False

        return self._is_available

    async def close(self):
        """Close Redis connections gracefully"""
        if self._client:
            try:
                await self._client.aclose()  # type: ignore
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis connection: {e}")

        if self._pool:
            try:
                await self._pool.aclose()  # type: ignore
                logger.debug("Redis connection pool closed")
            except RedisError as e:
                logger.error(f"Error closing Redis pool: {e}")

        self._is_available = False

    async def get_json(self, key: str, default: Any = None) -> Any:
        """
        Get a JSON value

        Args:
            key: Redis key
            default: Returned when the key does not exist

        Returns:
            Deserialized value or default

        Raises:
            RedisError: connection not initialized, unreachable or timed out
            ValueError: stored value is not valid JSON
        """
        if self._client is None:
            raise RedisConnectionError("Redis client is not initialized")

        try:
            value = await self._client.get(key)
        except RedisError as e:
            self._stats["errors"] += 1
            self._is_available = False
            logger.warning(f"Redis GET error for key '{key}': {e}")
            raise

        self._is_available = True
        if value is None:
            self._stats["misses"] += 1
            if CacheConfig.CACHE_LOG_MISSES:
                logger.debug(f"Cache MISS: {key}")
            return default

        self._stats["hits"] += 1
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            self._stats["errors"] += 1
            logger.error(f"Malformed JSON under '{key}': {e}")
            raise ValueError(f"malformed JSON under {key}") from e

    async def ping(self) -> bool:
        """Check Redis liveness without raising"""
        if self._client is None:
            return False
        try:
            await self._client.ping()
            self._is_available = True
        except RedisError as e:
            logger.warning(f"Redis PING failed: {e}")
            self._is_available = False
        return self._is_available

    def get_stats(self) -> dict:
        """
        Get read statistics

        Examples:
            >>> redis_mgr.get_stats()
            {"hits": 100, "misses": 2, "errors": 0, "total_requests": 102, "is_available": True}
        """
        total = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "total_requests": total,
            "is_available": self._is_available,
        }

    def is_available(self) -> bool:
        """Check if Redis answered the last call"""
        return self._is_available
