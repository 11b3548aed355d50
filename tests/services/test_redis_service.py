"""
Unit tests for RedisService.

Covers initialization, connection management and the counter operations used
by the Redis rate limit backend.
"""

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError


@pytest.fixture
async def redis_client():
    """Install an AsyncMock as the Redis client and remove it afterwards."""
    from app.core.services.redis_service import RedisService

    with patch("app.core.services.redis_service.Redis") as mock_redis_class:
        mock_client = AsyncMock()
        mock_redis_class.from_url.return_value = mock_client
        await RedisService.init("redis://localhost:6379/0")

    yield mock_client

    await RedisService.aclose()


class TestRedisServiceInit:
    """Test suite for RedisService initialization."""

    @pytest.mark.asyncio
    async def test_init_success(self):
        from app.core.services.redis_service import RedisService

        with patch("app.core.services.redis_service.Redis") as mock_redis_class:
            mock_redis_class.from_url.return_value = AsyncMock()

            await RedisService.init("redis://localhost:6379/0")

            mock_redis_class.from_url.assert_called_once_with(
                "redis://localhost:6379/0", decode_responses=True
            )
            assert RedisService.is_connected() is True

        await RedisService.aclose()
        assert RedisService.is_connected() is False

    @pytest.mark.asyncio
    async def test_init_closes_existing_connection(self):
        from app.core.services.redis_service import RedisService

        with patch("app.core.services.redis_service.Redis") as mock_redis_class:
            first_client = AsyncMock()
            second_client = AsyncMock()
            mock_redis_class.from_url.side_effect = [first_client, second_client]

            await RedisService.init("redis://localhost:6379/0")
            await RedisService.init("redis://localhost:6379/1")

            first_client.aclose.assert_awaited_once()
            assert RedisService._client is second_client

        await RedisService.aclose()

    @pytest.mark.asyncio
    async def test_aclose_without_client(self):
        from app.core.services.redis_service import RedisService

        await RedisService.aclose()

        assert RedisService._client is None


class TestRedisServiceOperations:
    """Test suite for the Redis operations."""

    @pytest.mark.asyncio
    async def test_incr(self, redis_client):
        from app.core.services.redis_service import RedisService

        redis_client.incr.return_value = 3

        assert await RedisService.incr("counter") == 3
        redis_client.incr.assert_awaited_once_with("counter")

    @pytest.mark.asyncio
    async def test_expire_and_ttl(self, redis_client):
        from app.core.services.redis_service import RedisService

        redis_client.expire.return_value = True
        redis_client.ttl.return_value = 42

        assert await RedisService.expire("counter", 60) is True
        assert await RedisService.ttl("counter") == 42
        redis_client.expire.assert_awaited_once_with("counter", 60)

    @pytest.mark.asyncio
    async def test_delete(self, redis_client):
        from app.core.services.redis_service import RedisService

        redis_client.delete.return_value = 1

        assert await RedisService.delete("counter") is True

    @pytest.mark.asyncio
    async def test_ping(self, redis_client):
        from app.core.services.redis_service import RedisService

        redis_client.ping.return_value = True

        assert await RedisService.ping() is True

    @pytest.mark.asyncio
    async def test_errors_return_defaults(self, redis_client):
        from app.core.services.redis_service import RedisService

        redis_client.incr.side_effect = RedisConnectionError("down")
        redis_client.ping.side_effect = RedisConnectionError("down")

        with patch("app.core.services.redis_service.redis_logger") as mock_logger:
            assert await RedisService.incr("counter") is None
            assert await RedisService.ping() is False

            assert mock_logger.error.call_count == 2


class TestRedisServiceNotInitialized:

    @pytest.mark.asyncio
    async def test_operations_without_client(self):
        from app.core.services.redis_service import RedisService

        await RedisService.aclose()

        with patch("app.core.services.redis_service.redis_logger") as mock_logger:
            assert await RedisService.incr("counter") is None
            assert await RedisService.expire("counter", 60) is False
            assert await RedisService.ttl("counter") is None
            assert await RedisService.delete("counter") is False
            assert await RedisService.ping() is False

            assert mock_logger.warning.call_count == 5
