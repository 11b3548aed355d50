"""
Email Manager Service for centralized email sending.

Renders Jinja2 templates with ``Renderer`` and delivers them through
``BrevoService``. Every ``send_*`` method returns True on success and False
on failure; callers decide whether a failure is fatal. Code delivery is
fatal (the code is rolled back), notifications are best effort.

Example usage:
    EmailManagerService.init()

    delivered = await EmailManagerService.send_otp_email(
        email="user@example.com",
        otp_code="123456",
        purpose=OTPPurpose.LOGIN,
        user_name="Jane",
        expiry_text="10 minutes",
    )
"""

from datetime import datetime, timezone
from typing import Any

from app.core.config import email_manager_logger, settings
from app.core.enums import OTPPurpose, WithdrawalStatus
from app.core.services.brevo import BrevoService, Contact, ListContact
from app.core.services.template import Renderer
from app.core.utils import mask_otp


__all__ = ["EmailManagerService"]


class EmailManagerService:
    """
    Centralized email management service.

    Follows the singleton pattern with class methods; ``init()`` is called
    during application startup after ``BrevoService`` and ``Renderer``.

    Attributes:
        _initialized: Flag indicating whether the service has been initialized.
    """

    _initialized: bool = False

    @classmethod
    def init(cls) -> None:
        cls._initialized = True
        email_manager_logger.info("EmailManagerService initialized")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized

    @classmethod
    def _get_purpose_display_text(cls, purpose: OTPPurpose) -> str:
        """
        Human-readable title for an OTP purpose, used in subject and body.

        Examples:
            >>> EmailManagerService._get_purpose_display_text(OTPPurpose.LOGIN)
            'Two-Factor Authentication'
        """
        purpose_map = {
            OTPPurpose.LOGIN: "Two-Factor Authentication",
            OTPPurpose.WITHDRAWAL: "Withdrawal Verification",
            OTPPurpose.PROFILE_UPDATE: "Profile Update Verification",
            OTPPurpose.EMAIL_VERIFICATION: "Email Verification",
        }
        return purpose_map.get(purpose, "Account Verification")

    @classmethod
    def _context(cls, **extra: Any) -> dict[str, Any]:
        return {
            "app_name": settings.APP_NAME,
            "dashboard_url": f"{settings.FRONTEND_URL}/dashboard",
            "year": datetime.now(timezone.utc).year,
            **extra,
        }

    @classmethod
    async def send_email(
        cls,
        email: str,
        subject: str,
        html_template: str,
        context: dict[str, Any],
        text_template: str | None = None,
        recipient_name: str | None = None,
    ) -> bool:
        """
        Render the given templates and send them to ``email``.

        This is the base method every ``send_*`` helper goes through. Any
        rendering or delivery error is logged and reported as False.

        Args:
            email: Recipient email address.
            subject: Email subject line.
            html_template: Name of the HTML template file.
            context: Template context.
            text_template: Optional name of the plain text template file.
            recipient_name: Optional recipient name for personalization.

        Returns:
            bool: True if the email was sent, False otherwise.
        """
        try:
            html_content = await Renderer.render_template(
                html_template, context=context
            )

            text_content = None
            if text_template:
                text_content = await Renderer.render_template(
                    text_template, context=context
                )

            await BrevoService.send_transactional_email(
                to=ListContact(to=[Contact(email=email, name=recipient_name)]),
                subject=subject,
                htmlContent=html_content,
                textContent=text_content,
            )

            email_manager_logger.info(
                f"Email sent successfully: subject='{subject}', to='{email}'"
            )
            return True

        except Exception as e:
            email_manager_logger.error(
                f"Failed to send email: subject='{subject}', to='{email}', error={e}"
            )
            return False

    @classmethod
    async def send_otp_email(
        cls,
        email: str,
        otp_code: str,
        purpose: OTPPurpose,
        user_name: str | None = None,
        expiry_text: str | None = None,
        reference: str | None = None,
    ) -> bool:
        """
        Send a one-time code.

        Args:
            email: Recipient email address.
            otp_code: The plaintext code.
            purpose: The purpose the code is scoped to.
            user_name: Optional recipient name.
            expiry_text: Lifetime shown to the user, e.g. ``"10 minutes"``.
            reference: Optional reference appended to the title, such as a
                withdrawal identifier.

        Returns:
            bool: True if the email was sent, False otherwise.
        """
        display_name = user_name or "User"
        purpose_text = cls._get_purpose_display_text(purpose)
        if reference:
            purpose_text = f"{purpose_text} ({reference})"

        email_manager_logger.info(
            f"Sending {purpose.value} code {mask_otp(otp_code)} to {email}"
        )

        return await cls.send_email(
            email=email,
            subject=f"Your OTP for {purpose_text} - {settings.APP_NAME}",
            html_template="otp_email.html",
            text_template="otp_email.txt",
            context=cls._context(
                user_name=display_name,
                otp_code=otp_code,
                purpose=purpose_text,
                expiry_text=expiry_text
                or f"{settings.OTP_EXPIRY_MINUTES} minutes",
            ),
            recipient_name=display_name,
        )

    @classmethod
    async def send_welcome_email(
        cls,
        email: str,
        user_name: str | None = None,
    ) -> bool:
        """Send the welcome email after registration."""
        display_name = user_name or "User"

        return await cls.send_email(
            email=email,
            subject=f"Welcome to {settings.APP_NAME}",
            html_template="welcome_email.html",
            text_template="welcome_email.txt",
            context=cls._context(
                user_name=display_name,
                login_url=f"{settings.FRONTEND_URL}/login",
            ),
            recipient_name=display_name,
        )

    @classmethod
    async def send_password_reset_email(
        cls,
        email: str,
        reset_token: str,
        user_name: str | None = None,
    ) -> bool:
        """
        Send the password reset link.

        Args:
            email: Recipient email address.
            reset_token: The plaintext reset token; only its hash is stored.
            user_name: Optional recipient name.
        """
        display_name = user_name or "User"

        return await cls.send_email(
            email=email,
            subject=f"Password Reset - {settings.APP_NAME}",
            html_template="password_reset_email.html",
            text_template="password_reset_email.txt",
            context=cls._context(
                user_name=display_name,
                reset_url=f"{settings.FRONTEND_URL}/reset-password/{reset_token}",
                expiry_minutes=settings.PASSWORD_RESET_EXPIRY_MINUTES,
            ),
            recipient_name=display_name,
        )

    @classmethod
    async def send_withdrawal_status_email(
        cls,
        email: str,
        withdrawal_id: str,
        amount: float,
        status: WithdrawalStatus,
        notes: str | None = None,
        user_name: str | None = None,
    ) -> bool:
        """
        Notify a client that one of their withdrawals changed status.

        Args:
            email: Recipient email address.
            withdrawal_id: Human-readable identifier, e.g. ``WD-10001``.
            amount: Withdrawal amount.
            status: The new status.
            notes: Optional reviewer notes.
            user_name: Optional recipient name.
        """
        display_name = user_name or "User"

        return await cls.send_email(
            email=email,
            subject=f"Withdrawal {status.value.capitalize()} - {settings.APP_NAME}",
            html_template="withdrawal_status_email.html",
            text_template="withdrawal_status_email.txt",
            context=cls._context(
                user_name=display_name,
                withdrawal_id=withdrawal_id,
                amount=f"{amount:,.2f}",
                status=status.value,
                notes=notes or "",
                date=datetime.now(timezone.utc).strftime("%B %d, %Y"),
            ),
            recipient_name=display_name,
        )
