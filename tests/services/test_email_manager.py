"""
Test suite for EmailManagerService.

- OTP, welcome, password reset and withdrawal status emails
- Template rendering integration
- Error handling and logging

Run all tests:
    pytest tests/services/test_email_manager.py -v

Run with coverage:
    pytest tests/services/test_email_manager.py --cov=app.core.services.email_manager --cov-report=term-missing -v
"""

from unittest.mock import AsyncMock, patch

import pytest

from app.core.config import settings
from app.core.enums import OTPPurpose, WithdrawalStatus
from app.core.services.email_manager import EmailManagerService


@pytest.fixture(autouse=True)
def email_outbox():
    """The real senders run here; only the renderer and Brevo are mocked."""
    yield None


@pytest.fixture
def mock_renderer():
    with patch("app.core.services.email_manager.Renderer") as mock_renderer:
        mock_renderer.render_template = AsyncMock(return_value="<p>rendered</p>")
        yield mock_renderer


@pytest.fixture
def mock_brevo():
    with patch("app.core.services.email_manager.BrevoService") as mock_brevo:
        mock_brevo.send_transactional_email = AsyncMock(
            return_value={"messageId": "msg-1"}
        )
        yield mock_brevo


def _rendered_context(mock_renderer) -> dict:
    return mock_renderer.render_template.call_args.kwargs["context"]


class TestEmailManagerServiceInit:
    """Test suite for EmailManagerService initialization."""

    @pytest.fixture(autouse=True)
    def reset_service(self):
        yield
        EmailManagerService._initialized = False

    def test_init_sets_initialized_flag(self):
        EmailManagerService.init()

        assert EmailManagerService._initialized is True

    def test_is_initialized_returns_correct_state(self):
        assert EmailManagerService.is_initialized() is False

        EmailManagerService.init()

        assert EmailManagerService.is_initialized() is True


class TestPurposeDisplayText:

    @pytest.mark.parametrize(
        "purpose, expected",
        [
            (OTPPurpose.LOGIN, "Two-Factor Authentication"),
            (OTPPurpose.WITHDRAWAL, "Withdrawal Verification"),
            (OTPPurpose.PROFILE_UPDATE, "Profile Update Verification"),
            (OTPPurpose.EMAIL_VERIFICATION, "Email Verification"),
            (OTPPurpose.OTHER, "Account Verification"),
        ],
    )
    def test_display_text(self, purpose, expected):
        assert EmailManagerService._get_purpose_display_text(purpose) == expected


# ============================================================================
# Tests for send_email
# ============================================================================


class TestSendEmail:

    @pytest.mark.asyncio
    async def test_renders_both_templates(self, mock_renderer, mock_brevo):
        result = await EmailManagerService.send_email(
            email="jane@example.com",
            subject="Subject",
            html_template="welcome_email.html",
            text_template="welcome_email.txt",
            context={"user_name": "Jane"},
            recipient_name="Jane",
        )

        assert result is True
        assert mock_renderer.render_template.await_count == 2
        kwargs = mock_brevo.send_transactional_email.call_args.kwargs
        assert kwargs["subject"] == "Subject"
        assert kwargs["to"].to[0].email == "jane@example.com"
        assert kwargs["to"].to[0].name == "Jane"
        assert kwargs["htmlContent"] == "<p>rendered</p>"
        assert kwargs["textContent"] == "<p>rendered</p>"

    @pytest.mark.asyncio
    async def test_html_only(self, mock_renderer, mock_brevo):
        await EmailManagerService.send_email(
            email="jane@example.com",
            subject="Subject",
            html_template="welcome_email.html",
            context={},
        )

        mock_renderer.render_template.assert_awaited_once()
        assert mock_brevo.send_transactional_email.call_args.kwargs["textContent"] is None

    @pytest.mark.asyncio
    async def test_delivery_error_returns_false(self, mock_renderer, mock_brevo):
        from app.core.exceptions.types import AppException

        mock_brevo.send_transactional_email.side_effect = AppException("Brevo down")

        with patch(
            "app.core.services.email_manager.email_manager_logger"
        ) as mock_logger:
            result = await EmailManagerService.send_email(
                email="jane@example.com",
                subject="Subject",
                html_template="welcome_email.html",
                context={},
            )

            mock_logger.error.assert_called_once()

        assert result is False

    @pytest.mark.asyncio
    async def test_rendering_error_returns_false(self, mock_renderer, mock_brevo):
        mock_renderer.render_template.side_effect = RuntimeError("not initialized")

        result = await EmailManagerService.send_email(
            email="jane@example.com",
            subject="Subject",
            html_template="welcome_email.html",
            context={},
        )

        assert result is False
        mock_brevo.send_transactional_email.assert_not_called()


# ============================================================================
# Tests for the send_* helpers
# ============================================================================


class TestSendOtpEmail:

    @pytest.mark.asyncio
    async def test_withdrawal_code(self, mock_renderer, mock_brevo):
        result = await EmailManagerService.send_otp_email(
            email="jane@example.com",
            otp_code="482913",
            purpose=OTPPurpose.WITHDRAWAL,
            user_name="Jane",
            expiry_text="48 hours",
            reference="WD-10001",
        )

        assert result is True
        context = _rendered_context(mock_renderer)
        assert context["otp_code"] == "482913"
        assert context["purpose"] == "Withdrawal Verification (WD-10001)"
        assert context["expiry_text"] == "48 hours"
        assert context["app_name"] == settings.APP_NAME
        subject = mock_brevo.send_transactional_email.call_args.kwargs["subject"]
        assert subject.startswith("Your OTP for Withdrawal Verification (WD-10001)")

    @pytest.mark.asyncio
    async def test_defaults(self, mock_renderer, mock_brevo):
        await EmailManagerService.send_otp_email(
            email="jane@example.com", otp_code="123456", purpose=OTPPurpose.LOGIN
        )

        context = _rendered_context(mock_renderer)
        assert context["user_name"] == "User"
        assert context["expiry_text"] == f"{settings.OTP_EXPIRY_MINUTES} minutes"

    @pytest.mark.asyncio
    async def test_code_is_masked_in_logs(self, mock_renderer, mock_brevo):
        with patch(
            "app.core.services.email_manager.email_manager_logger"
        ) as mock_logger:
            await EmailManagerService.send_otp_email(
                email="jane@example.com", otp_code="482913", purpose=OTPPurpose.LOGIN
            )

        logged = " ".join(str(call.args[0]) for call in mock_logger.info.call_args_list)
        assert "482913" not in logged


class TestNotificationEmails:

    @pytest.mark.asyncio
    async def test_welcome_email(self, mock_renderer, mock_brevo):
        assert await EmailManagerService.send_welcome_email("jane@example.com", "Jane")

        context = _rendered_context(mock_renderer)
        assert context["login_url"] == f"{settings.FRONTEND_URL}/login"

    @pytest.mark.asyncio
    async def test_password_reset_email(self, mock_renderer, mock_brevo):
        await EmailManagerService.send_password_reset_email(
            "jane@example.com", "reset-token-abc", "Jane"
        )

        context = _rendered_context(mock_renderer)
        assert context["reset_url"].endswith("/reset-password/reset-token-abc")
        assert context["expiry_minutes"] == settings.PASSWORD_RESET_EXPIRY_MINUTES

    @pytest.mark.asyncio
    async def test_withdrawal_status_email(self, mock_renderer, mock_brevo):
        await EmailManagerService.send_withdrawal_status_email(
            email="jane@example.com",
            withdrawal_id="WD-10001",
            amount=1234.5,
            status=WithdrawalStatus.REJECTED,
            notes="Account details mismatch",
        )

        context = _rendered_context(mock_renderer)
        assert context["amount"] == "1,234.50"
        assert context["status"] == "rejected"
        assert context["notes"] == "Account details mismatch"
        subject = mock_brevo.send_transactional_email.call_args.kwargs["subject"]
        assert subject.startswith("Withdrawal Rejected")
