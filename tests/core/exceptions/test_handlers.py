"""
Test suite for exception handlers.

Run tests:
    pytest tests/core/exceptions/test_handlers.py -v

Run with coverage:
    pytest tests/core/exceptions/test_handlers.py --cov=app.core.exceptions.handlers --cov-report=term-missing -v
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import status

from app.core.exceptions.handlers import (
    authentication_exception_handler,
    bad_request_exception_handler,
    database_exception_handler,
    delivery_failed_exception_handler,
    exception_schema,
    forbidden_exception_handler,
    general_exception_handler,
    otp_throttled_exception_handler,
    rate_limit_exception_handler,
)
from app.core.exceptions.types import (
    AppException,
    AuthenticationException,
    DatabaseException,
    DeliveryFailedException,
    OTPInvalidException,
    OTPThrottledException,
    RateLimitExceededException,
    VerificationRequiredException,
)


class TestGeneralExceptionHandler:

    @pytest.mark.asyncio
    async def test_general_exception_handler_returns_json_response(self):
        mock_request = MagicMock()
        exc = AppException("Test error", status_code=status.HTTP_400_BAD_REQUEST)

        with patch("app.core.exceptions.handlers.request_logger") as mock_logger:
            response = await general_exception_handler(mock_request, exc)

            mock_logger.error.assert_called_once()
            assert response.status_code == status.HTTP_400_BAD_REQUEST
            assert json.loads(response.body) == {"detail": "Test error", "kind": "error"}

    @pytest.mark.asyncio
    async def test_general_exception_handler_includes_details(self):
        exc = AppException("Unhealthy", status_code=503, details={"status": "degraded"})

        with patch("app.core.exceptions.handlers.request_logger"):
            response = await general_exception_handler(MagicMock(), exc)

        assert response.status_code == 503
        assert json.loads(response.body)["status"] == "degraded"


class TestDatabaseExceptionHandler:

    @pytest.mark.asyncio
    async def test_database_error_is_not_leaked(self):
        exc = DatabaseException("Connection lost to 10.0.0.5")

        with patch("app.core.exceptions.handlers.request_logger") as mock_logger:
            response = await database_exception_handler(MagicMock(), exc)

            mock_logger.error.assert_called_once()

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert b"A database error occurred" in response.body
        assert b"10.0.0.5" not in response.body


class TestClientErrorHandlers:

    @pytest.mark.asyncio
    async def test_authentication_sets_challenge_header(self):
        response = await authentication_exception_handler(
            MagicMock(), AuthenticationException()
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_forbidden_carries_require_otp(self):
        response = await forbidden_exception_handler(
            MagicMock(), VerificationRequiredException(purpose="profile_update")
        )
        body = json.loads(response.body)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert body["require_otp"] is True
        assert body["purpose"] == "profile_update"
        assert body["kind"] == "verification_required"

    @pytest.mark.asyncio
    async def test_bad_request_carries_attempts_left(self):
        response = await bad_request_exception_handler(
            MagicMock(), OTPInvalidException(attempts_left=2)
        )
        body = json.loads(response.body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert body["kind"] == "invalid_code"
        assert body["attempts_left"] == 2


class TestRetryAfterHandlers:

    @pytest.mark.asyncio
    async def test_throttled_sets_retry_after(self):
        response = await otp_throttled_exception_handler(
            MagicMock(), OTPThrottledException(retry_after=30)
        )

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.headers["Retry-After"] == "30"
        assert json.loads(response.body)["retry_after"] == 30

    @pytest.mark.asyncio
    async def test_rate_limit_sets_retry_after(self):
        response = await rate_limit_exception_handler(
            MagicMock(), RateLimitExceededException(retry_after=12)
        )

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.headers["Retry-After"] == "12"

    @pytest.mark.asyncio
    async def test_rate_limit_without_retry_after(self):
        response = await rate_limit_exception_handler(
            MagicMock(), RateLimitExceededException()
        )

        assert "Retry-After" not in response.headers


class TestDeliveryFailedHandler:

    @pytest.mark.asyncio
    async def test_delivery_failure_is_logged_as_operational_error(self):
        mock_request = MagicMock()
        mock_request.method = "POST"
        mock_request.url.path = "/otp/generate"

        with patch(
            "app.core.exceptions.handlers.email_manager_logger"
        ) as mock_logger:
            response = await delivery_failed_exception_handler(
                mock_request, DeliveryFailedException()
            )

            mock_logger.error.assert_called_once()

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert json.loads(response.body)["kind"] == "delivery_failed"


class TestExceptionSchema:

    def test_exception_schema_structure(self):
        assert isinstance(exception_schema, dict)
        assert status.HTTP_500_INTERNAL_SERVER_ERROR in exception_schema

        schema_entry = exception_schema[status.HTTP_500_INTERNAL_SERVER_ERROR]
        assert "description" in schema_entry
        assert "example" in schema_entry["content"]["application/json"]
