"""
Request rate limiting with an in-memory or Redis counter store.

The public OTP endpoints and the login/forgot-password endpoints depend on
``rate_limit_by_ip``; ``rate_limit_by_email`` additionally caps how often
codes can be requested for one address.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Literal

from fastapi import Request

from app.core.config import rate_limit_logger, settings
from app.core.exceptions.types import RateLimitExceededException
from app.core.services.redis_service import RedisService
from app.core.utils import utc_now


Backend = Literal["memory", "redis"]


@dataclass
class RateLimitResult:
    """
    Outcome of one counter check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests left in the current window.
        limit: Configured maximum per window.
        reset_at: End of the current window.
        retry_after: Whole seconds to wait; only set when refused.
    """

    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime
    retry_after: int | None = None


class RateLimitBackend(ABC):
    """Fixed-window counter store."""

    @abstractmethod
    async def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is allowed."""

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Forget the counter of ``key``."""


class MemoryBackend(RateLimitBackend):
    """
    Per-process counters in a dict.

    Counters are lost on restart and not shared between workers; use the
    Redis backend when running more than one process.
    """

    def __init__(self):
        self._store: dict[str, tuple[int, datetime]] = {}

    async def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        now = utc_now()
        count, reset_at = self._store.get(key, (0, now))

        if now >= reset_at:
            count, reset_at = 0, now + timedelta(seconds=window)

        if count >= limit:
            retry_after = max(1, int((reset_at - now).total_seconds()))
            rate_limit_logger.warning(
                f"Rate limit exceeded for key: {key}, retry after: {retry_after}s"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=limit,
                reset_at=reset_at,
                retry_after=retry_after,
            )

        self._store[key] = (count + 1, reset_at)
        return RateLimitResult(
            allowed=True,
            remaining=limit - count - 1,
            limit=limit,
            reset_at=reset_at,
        )

    async def reset(self, key: str) -> None:
        self._store.pop(key, None)


class RedisBackend(RateLimitBackend):
    """
    Shared counters in Redis (``INCR`` plus ``EXPIRE`` on the first hit).

    Requests are allowed when Redis is unreachable.
    """

    async def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        now = utc_now()
        count = await RedisService.incr(key)

        if count is None:
            rate_limit_logger.warning(
                f"Redis unavailable during rate limit check for key: {key}, allowing request"
            )
            return RateLimitResult(
                allowed=True,
                remaining=limit - 1,
                limit=limit,
                reset_at=now + timedelta(seconds=window),
            )

        if count == 1:
            await RedisService.expire(key, window)

        ttl = await RedisService.ttl(key)
        if ttl is None or ttl < 0:
            ttl = window
        reset_at = now + timedelta(seconds=ttl)

        if count > limit:
            rate_limit_logger.warning(
                f"Rate limit exceeded for key: {key}, count: {count}, retry after: {ttl}s"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=limit,
                reset_at=reset_at,
                retry_after=max(1, ttl),
            )

        return RateLimitResult(
            allowed=True,
            remaining=limit - count,
            limit=limit,
            reset_at=reset_at,
        )

    async def reset(self, key: str) -> None:
        await RedisService.delete(key)


class RateLimiter:
    """
    Rate limiter over the configured backend.

    Example:
        >>> limiter = RateLimiter(backend="memory")
        >>> result = await limiter.check("rate_limit:ip:1.2.3.4:/otp/generate", 10, 60)
        >>> result.allowed
        True
    """

    def __init__(self, backend: Backend | None = None):
        backend = backend or settings.RATE_LIMIT_BACKEND
        self.backend_name: Backend = backend
        self._backend: RateLimitBackend = (
            RedisBackend() if backend == "redis" else MemoryBackend()
        )

    async def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        return await self._backend.check(key, limit, window)

    async def reset(self, key: str) -> None:
        await self._backend.reset(key)


# One limiter per backend so in-memory counters survive across requests
_limiters: dict[str, RateLimiter] = {}


def get_rate_limiter(backend: Backend | None = None) -> RateLimiter:
    backend = backend or settings.RATE_LIMIT_BACKEND
    if backend not in _limiters:
        _limiters[backend] = RateLimiter(backend=backend)
    return _limiters[backend]


def reset_rate_limiters() -> None:
    """Drop every limiter and its counters (used by tests)."""
    _limiters.clear()


def format_rate_limit_key(
    key_type: Literal["ip", "email"], identifier: str, endpoint: str
) -> str:
    """
    Example:
        >>> format_rate_limit_key("ip", "192.168.1.1", "/otp/generate")
        'rate_limit:ip:192.168.1.1:/otp/generate'
    """
    return f"rate_limit:{key_type}:{identifier}:{endpoint}"


async def _enforce(key: str, limit: int, window: int, backend: Backend | None):
    result = await get_rate_limiter(backend).check(key, limit, window)
    if not result.allowed:
        raise RateLimitExceededException(
            message=f"Rate limit exceeded. Try again in {result.retry_after} seconds.",
            retry_after=result.retry_after,
        )
    return result


def rate_limit_by_ip(
    limit: int | None = None,
    window: int | None = None,
    backend: Backend | None = None,
) -> Callable[[Request], Awaitable[RateLimitResult]]:
    """
    FastAPI dependency limiting each client IP per endpoint path.

    Args:
        limit: Requests per window. Defaults to ``RATE_LIMIT_DEFAULT_REQUESTS``.
        window: Window in seconds. Defaults to ``RATE_LIMIT_DEFAULT_WINDOW``.
        backend: Overrides ``RATE_LIMIT_BACKEND``.

    Example:
        @router.post("/generate", dependencies=[Depends(rate_limit_by_ip(10, 60))])
    """
    _limit = limit if limit is not None else settings.RATE_LIMIT_DEFAULT_REQUESTS
    _window = window if window is not None else settings.RATE_LIMIT_DEFAULT_WINDOW

    async def dependency(request: Request) -> RateLimitResult:
        client_ip = request.client.host if request.client else "unknown"
        key = format_rate_limit_key("ip", client_ip, request.url.path)
        return await _enforce(key, _limit, _window, backend)

    return dependency


def rate_limit_by_email(
    limit: int | None = None,
    window: int | None = None,
    backend: Backend | None = None,
) -> Callable[[str, str], Awaitable[RateLimitResult]]:
    """
    Checker limiting requests per email address; call it from the handler
    once the body is parsed.

    Example:
        check = rate_limit_by_email(limit=5, window=3600)
        await check(body.email, request.url.path)
    """
    _limit = limit if limit is not None else settings.RATE_LIMIT_DEFAULT_REQUESTS
    _window = window if window is not None else settings.RATE_LIMIT_DEFAULT_WINDOW

    async def check(email: str, endpoint: str) -> RateLimitResult:
        key = format_rate_limit_key("email", email.strip().lower(), endpoint)
        return await _enforce(key, _limit, _window, backend)

    return check


__all__ = [
    "RateLimitResult",
    "RateLimitBackend",
    "MemoryBackend",
    "RedisBackend",
    "RateLimiter",
    "get_rate_limiter",
    "reset_rate_limiters",
    "format_rate_limit_key",
    "rate_limit_by_ip",
    "rate_limit_by_email",
]
