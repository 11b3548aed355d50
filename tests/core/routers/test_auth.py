"""
Integration tests for auth router endpoints.

Tests all auth endpoints with a real database and per-test rollback.
"""

import pytest
from httpx import AsyncClient

from app.core.config import settings


PASSWORD = "SecurePass123"


class TestRegisterEndpoint:

    @pytest.mark.asyncio
    async def test_register_success(self, client: AsyncClient, email_outbox):
        payload = {
            "name": "New User",
            "email": "newuser@example.com",
            "password": PASSWORD,
        }
        response = await client.post("/auth/register", json=payload)

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["user"]["email"] == "newuser@example.com"
        assert data["user"]["role"] == "client"
        assert "password_hash" not in data["user"]
        email_outbox.send_welcome_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient, client_user):
        payload = {"name": "Again", "email": client_user.email, "password": PASSWORD}

        response = await client.post("/auth/register", json=payload)

        assert response.status_code == 409

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"]
    )
    async def test_register_weak_password(self, client: AsyncClient, password):
        payload = {"name": "Weak", "email": "weak@example.com", "password": password}

        response = await client.post("/auth/register", json=payload)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_register_invalid_email(self, client: AsyncClient):
        payload = {"name": "Bad", "email": "notanemail", "password": PASSWORD}

        response = await client.post("/auth/register", json=payload)

        assert response.status_code == 422


class TestLoginEndpoint:

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, client_user):
        response = await client.post(
            "/auth/login", json={"email": client_user.email, "password": PASSWORD}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        assert data["user"]["last_login"] is not None

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, client_user):
        response = await client.post(
            "/auth/login", json={"email": client_user.email, "password": "Wrong1234"}
        )

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_login_two_factor(
        self, client: AsyncClient, db_session, client_user, last_code
    ):
        from app.core.db.crud import user_db

        await user_db.update(
            db_session, client_user.id, {"two_factor_enabled": True}, commit_self=False
        )
        credentials = {"email": client_user.email, "password": PASSWORD}

        first = await client.post("/auth/login", json=credentials)

        assert first.status_code == 200
        assert first.json()["require_otp"] is True
        assert "access_token" not in first.json()

        second = await client.post(
            "/auth/login", json={**credentials, "otp": last_code()}
        )

        assert second.status_code == 200
        assert second.json()["access_token"]

    @pytest.mark.asyncio
    async def test_login_is_rate_limited(self, client: AsyncClient, client_user):
        credentials = {"email": client_user.email, "password": "Wrong1234"}

        for _ in range(settings.RATE_LIMIT_AUTH_REQUESTS):
            await client.post("/auth/login", json=credentials)

        response = await client.post("/auth/login", json=credentials)

        assert response.status_code == 429


class TestMeEndpoint:

    @pytest.mark.asyncio
    async def test_me_with_client_profile(self, client: AsyncClient, client_headers):
        response = await client.get("/auth/me", headers=client_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "jane@example.com"
        assert data["client"]["client_id"] == "CL-10001"

    @pytest.mark.asyncio
    async def test_me_staff_has_no_profile(self, client: AsyncClient, staff_headers):
        response = await client.get("/auth/me", headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["client"] is None

    @pytest.mark.asyncio
    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get("/auth/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_with_invalid_token(self, client: AsyncClient):
        response = await client.get(
            "/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401


class TestUpdateDetailsEndpoint:

    @pytest.mark.asyncio
    async def test_requires_profile_update_code(
        self, client: AsyncClient, client_headers
    ):
        response = await client.put(
            "/auth/details", json={"name": "Janet Doe"}, headers=client_headers
        )

        assert response.status_code == 403
        data = response.json()
        assert data["require_otp"] is True
        assert data["purpose"] == "profile_update"

    @pytest.mark.asyncio
    async def test_update_after_verification(
        self, client: AsyncClient, client_user, client_headers, last_code
    ):
        await client.post(
            "/otp/generate",
            json={"email": client_user.email, "purpose": "profile_update"},
        )
        await client.post(
            "/otp/verify",
            json={
                "email": client_user.email,
                "purpose": "profile_update",
                "otp": last_code(),
            },
        )

        response = await client.put(
            "/auth/details", json={"name": "Janet Doe"}, headers=client_headers
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Janet Doe"

    @pytest.mark.asyncio
    async def test_login_code_does_not_authorize_update(
        self, client: AsyncClient, client_user, client_headers, last_code
    ):
        await client.post(
            "/otp/generate", json={"email": client_user.email, "purpose": "login"}
        )
        await client.post(
            "/otp/verify",
            json={"email": client_user.email, "purpose": "login", "otp": last_code()},
        )

        response = await client.put(
            "/auth/details", json={"name": "Janet Doe"}, headers=client_headers
        )

        assert response.status_code == 403


class TestPasswordEndpoints:

    @pytest.mark.asyncio
    async def test_change_password(self, client: AsyncClient, client_user, client_headers):
        response = await client.put(
            "/auth/password",
            json={"current_password": PASSWORD, "new_password": "NewSecure456"},
            headers=client_headers,
        )

        assert response.status_code == 200

        login = await client.post(
            "/auth/login",
            json={"email": client_user.email, "password": "NewSecure456"},
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(
        self, client: AsyncClient, client_headers
    ):
        response = await client.put(
            "/auth/password",
            json={"current_password": "Wrong1234", "new_password": "NewSecure456"},
            headers=client_headers,
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_forgot_and_reset_password(
        self, client: AsyncClient, client_user, email_outbox
    ):
        forgot = await client.post(
            "/auth/forgot-password", json={"email": client_user.email}
        )
        assert forgot.status_code == 200
        token = email_outbox.send_password_reset_email.call_args.args[1]

        reset = await client.put(
            f"/auth/reset-password/{token}", json={"password": "BrandNew789"}
        )

        assert reset.status_code == 200
        assert reset.json()["user"]["email"] == client_user.email

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email(self, client: AsyncClient):
        response = await client.post(
            "/auth/forgot-password", json={"email": "nobody@example.com"}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_reset_password_invalid_token(self, client: AsyncClient):
        response = await client.put(
            "/auth/reset-password/bogus", json={"password": "BrandNew789"}
        )

        assert response.status_code == 400


class TestLogoutEndpoint:

    @pytest.mark.asyncio
    async def test_logout(self, client: AsyncClient, client_headers):
        response = await client.get("/auth/logout", headers=client_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"
