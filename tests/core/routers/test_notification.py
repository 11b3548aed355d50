"""
Integration tests for the two-factor settings router.

Run tests:
    pytest tests/core/routers/test_notification.py -v
"""

import pytest
from httpx import AsyncClient


@pytest.fixture
def verify_profile_update(client: AsyncClient, client_user, last_code):
    """Returns a coroutine that verifies a profile_update code for client_user."""

    async def _verify() -> None:
        await client.post(
            "/otp/generate",
            json={"email": client_user.email, "purpose": "profile_update"},
        )
        response = await client.post(
            "/otp/verify",
            json={
                "email": client_user.email,
                "purpose": "profile_update",
                "otp": last_code(),
            },
        )
        assert response.status_code == 200

    return _verify


class TestTwoFactorSettings:

    @pytest.mark.asyncio
    async def test_status_defaults(self, client: AsyncClient, client_headers):
        response = await client.get("/notifications/2fa", headers=client_headers)

        assert response.status_code == 200
        assert response.json() == {"enabled": False, "method": "email"}

    @pytest.mark.asyncio
    async def test_enable_requires_verification(
        self, client: AsyncClient, client_headers
    ):
        response = await client.post(
            "/notifications/2fa/enable", json={}, headers=client_headers
        )

        assert response.status_code == 403
        assert response.json()["require_otp"] is True

    @pytest.mark.asyncio
    async def test_enable_and_disable(
        self, client: AsyncClient, client_headers, verify_profile_update
    ):
        await verify_profile_update()

        enabled = await client.post(
            "/notifications/2fa/enable", json={"method": "email"}, headers=client_headers
        )
        disabled = await client.post(
            "/notifications/2fa/disable", headers=client_headers
        )

        assert enabled.status_code == 200
        assert enabled.json()["enabled"] is True
        assert disabled.status_code == 200
        assert disabled.json()["enabled"] is False

    @pytest.mark.asyncio
    async def test_app_method_is_not_supported(
        self, client: AsyncClient, client_headers, verify_profile_update
    ):
        await verify_profile_update()

        response = await client.post(
            "/notifications/2fa/enable", json={"method": "app"}, headers=client_headers
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "not_implemented"
