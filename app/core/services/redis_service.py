"""
Redis client wrapper used by the Redis rate limit backend and the health check.

Every operation degrades to a neutral value (None/False) and logs when the
client is missing or Redis errors, so callers never fail because Redis is down.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import redis_logger, settings


R = TypeVar("R")


class RedisService:
    """
    Singleton async Redis client.

    Example:
        >>> await RedisService.init("redis://localhost:6379/0")
        >>> await RedisService.incr("rate_limit:ip:127.0.0.1:/otp/generate")
        1
        >>> await RedisService.aclose()
    """

    _client: Redis | None = None
    _url: str = settings.REDIS_URL

    @classmethod
    async def init(cls, url: str | None = None) -> None:
        """Create the client, closing any previous one."""
        if url is not None:
            cls._url = url

        await cls.aclose()
        cls._client = Redis.from_url(cls._url, decode_responses=True)
        redis_logger.info(f"Redis client initialized with URL: {cls._url}")

    @classmethod
    async def aclose(cls) -> None:
        if cls._client is None:
            return
        try:
            await cls._client.aclose()
            redis_logger.info("Redis client closed")
        except RedisError as e:
            redis_logger.warning(f"Error closing Redis client: {e}")
        finally:
            cls._client = None

    @classmethod
    def is_connected(cls) -> bool:
        return cls._client is not None

    @classmethod
    async def _run(
        cls,
        name: str,
        operation: Callable[[Redis], Awaitable[R]],
        default: Any = None,
    ) -> R | Any:
        if cls._client is None:
            redis_logger.warning(f"Redis {name} attempted but client not initialized")
            return default
        try:
            return await operation(cls._client)
        except (RedisError, OSError) as e:
            redis_logger.error(f"Redis {name} failed: {e}")
            return default

    @classmethod
    async def ping(cls) -> bool:
        return bool(await cls._run("ping()", lambda r: r.ping(), default=False))  # type: ignore[arg-type, return-value]

    @classmethod
    async def incr(cls, key: str) -> int | None:
        """Increment ``key`` (created at 1); None on failure."""
        return await cls._run(f"incr({key})", lambda r: r.incr(key))

    @classmethod
    async def expire(cls, key: str, ttl: int) -> bool:
        return bool(
            await cls._run(f"expire({key})", lambda r: r.expire(key, ttl), default=False)
        )

    @classmethod
    async def ttl(cls, key: str) -> int | None:
        """Seconds until ``key`` expires (-1 no expiry, -2 missing); None on failure."""
        return await cls._run(f"ttl({key})", lambda r: r.ttl(key))

    @classmethod
    async def delete(cls, key: str) -> bool:
        return bool(
            await cls._run(f"delete({key})", lambda r: r.delete(key), default=False)
        )


__all__ = ["RedisService"]
