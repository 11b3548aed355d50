"""
Authentication Service for managing user authentication flows.

This module provides a centralized authentication service that handles:
- Registration (user plus client profile) with a best-effort welcome email
- Password login with optional emailed two-factor codes
- Access token generation
- Password change and the forgot/reset password flow
- Account detail and two-factor settings updates

Example usage:
    from app.core.services.auth import AuthService

    # Registration
    user = await AuthService.register(
        session=db_session,
        name="Jane Doe",
        email="jane@example.com",
        password="SecurePassword123!",
    )

    # Login; ``result.token`` is None while a second factor is pending
    result = await AuthService.login(
        session=db_session,
        email="jane@example.com",
        password="SecurePassword123!",
    )
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import auth_logger, settings
from app.core.db.crud import client_db, user_db
from app.core.db.models import User
from app.core.enums import OTPPurpose, TwoFactorMethod, UserRole, UserStatus
from app.core.exceptions.types import (
    AppException,
    AuthenticationException,
    BadRequestException,
    InvalidCredentialsException,
    NotImplementedException,
    UserAlreadyExistsException,
)
from app.core.services.client import ClientService
from app.core.services.email_manager import EmailManagerService
from app.core.services.otp import OTPService
from app.core.utils import (
    create_jwt_token,
    ensure_utc,
    generate_reset_token,
    hash_code,
    hash_password,
    utc_now,
    verify_password,
)


__all__ = ["AuthService", "AccessToken", "LoginResult"]


@dataclass
class AccessToken:
    """
    Data class representing an issued access token.

    Attributes:
        access_token: Signed JWT.
        token_type: The type of token (always "bearer").
        expires_in: Token lifetime in seconds.
    """

    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


@dataclass
class LoginResult:
    """
    Outcome of a password login.

    Either ``token`` is set, or ``require_otp`` is True and a login code was
    emailed (``otp_expires_at`` is its expiry).
    """

    user: User
    token: AccessToken | None = None
    require_otp: bool = False
    otp_expires_at: datetime | None = None


class AuthService:
    """
    Centralized authentication service.

    Every coroutine opens its own transactions and must be called with no
    transaction open on ``session``.

    Example:
        >>> AuthService.init()
        >>> user = await AuthService.authenticate(
        ...     session=db_session,
        ...     email="user@example.com",
        ...     password="password123",
        ... )
    """

    _initialized: bool = False

    # =========================================================================
    # Initialization
    # =========================================================================

    @classmethod
    def init(cls) -> None:
        """
        Initialize the AuthService. Called during application startup.
        """
        cls._initialized = True
        auth_logger.info("AuthService initialized")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized

    # =========================================================================
    # Tokens
    # =========================================================================

    @classmethod
    def create_access_token(cls, user: User) -> AccessToken:
        """
        Create an access token for ``user``.

        Example:
            >>> token = AuthService.create_access_token(user)
            >>> token.token_type
            'bearer'
        """
        expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_jwt_token(
            data={
                "sub": str(user.id),
                "email": user.email,
                "role": user.role.value,
                "type": "access",
            },
            expires_delta=expires,
        )
        return AccessToken(
            access_token=token, expires_in=int(expires.total_seconds())
        )

    # =========================================================================
    # Registration and login
    # =========================================================================

    @classmethod
    async def register(
        cls,
        session: AsyncSession,
        name: str,
        email: str,
        password: str,
        phone: str | None = None,
    ) -> User:
        """
        Register a client account: a ``User`` with the client role and its
        ``Client`` profile, then send a welcome email (best effort).

        Args:
            session: The database session.
            name: Display name; split into first and last name on the profile.
            email: Login email, stored lowercase.
            password: Plain text password (will be hashed).
            phone: Optional phone number.

        Returns:
            User: The created user.

        Raises:
            UserAlreadyExistsException: If the email is already registered.
        """
        email = email.strip().lower()

        async with session.begin():
            if await user_db.get_by_email(session, email):
                auth_logger.warning(f"Registration failed: email already exists {email}")
                raise UserAlreadyExistsException()

            user = await user_db.create(
                session,
                {
                    "name": name,
                    "email": email,
                    "password_hash": hash_password(password),
                    "phone": phone,
                    "role": UserRole.CLIENT,
                    "status": UserStatus.ACTIVE,
                },
                commit_self=False,
            )
            await ClientService.create_profile(session, user, phone=phone)

        auth_logger.info(f"User registered: email={email}")

        if not await EmailManagerService.send_welcome_email(email, user.name):
            auth_logger.warning(f"Welcome email not sent to {email}")

        return user

    @classmethod
    async def authenticate(
        cls, session: AsyncSession, email: str, password: str
    ) -> User:
        """
        Check an email/password pair.

        Raises:
            InvalidCredentialsException: If email or password is incorrect.
            AuthenticationException: If the account is not active.
        """
        async with session.begin():
            user = await user_db.get_by_email(session, email)

        if user is None or not verify_password(password, user.password_hash):
            auth_logger.warning(f"Login failed: invalid credentials for {email}")
            raise InvalidCredentialsException()

        if not user.is_active:
            auth_logger.warning(f"Login failed: account {user.status.value} {email}")
            raise AuthenticationException(
                f"Account is {user.status.value}. Please contact support."
            )

        return user

    @classmethod
    async def login(
        cls,
        session: AsyncSession,
        email: str,
        password: str,
        otp: str | None = None,
    ) -> LoginResult:
        """
        Password login with the optional email second factor.

        When two-factor is enabled and no ``otp`` is given, a ``login`` code
        is emailed and the result carries ``require_otp=True`` and no token.
        With ``otp``, the code is verified before the token is issued.

        Raises:
            InvalidCredentialsException, AuthenticationException: See
                ``authenticate``.
            DeliveryFailedException: The login code could not be sent.
            OTPNotFoundException, OTPExpiredException,
            OTPAttemptsExhaustedException, OTPInvalidException,
            OTPAlreadyVerifiedException: The submitted code was refused.
        """
        user = await cls.authenticate(session, email, password)

        if user.two_factor_enabled:
            if not otp:
                issued = await OTPService.issue(session, user, OTPPurpose.LOGIN)
                auth_logger.info(f"Login code sent: user={user.id}")
                return LoginResult(
                    user=user, require_otp=True, otp_expires_at=issued.expires_at
                )
            await OTPService.verify(session, user.id, OTPPurpose.LOGIN, otp)

        async with session.begin():
            updated = await user_db.update(
                session, user.id, {"last_login": utc_now()}, commit_self=False
            )
        user = updated or user

        auth_logger.info(f"User logged in: email={user.email}")
        return LoginResult(user=user, token=cls.create_access_token(user))

    # =========================================================================
    # Account management
    # =========================================================================

    @classmethod
    async def update_details(
        cls,
        session: AsyncSession,
        user: User,
        updates: dict[str, Any],
    ) -> User:
        """
        Update name, email and phone; names, email and phone are mirrored to
        the client profile. A new email must be verified again.

        Raises:
            UserAlreadyExistsException: The new email belongs to another user.
        """
        updates = {k: v for k, v in updates.items() if v is not None}
        if "email" in updates:
            updates["email"] = updates["email"].strip().lower()

        async with session.begin():
            new_email = updates.get("email")
            if new_email and new_email != user.email:
                existing = await user_db.get_by_email(session, new_email)
                if existing and existing.id != user.id:
                    raise UserAlreadyExistsException()
                updates["is_email_verified"] = False

            updated = await user_db.update(session, user.id, updates, commit_self=False)
            assert updated is not None

            client = await client_db.get_by_user_id(session, user.id)
            if client is not None:
                await ClientService.sync_from_user(session, client, updated)

        auth_logger.info(f"Account details updated: user={user.id}")
        return updated

    @classmethod
    async def change_password(
        cls,
        session: AsyncSession,
        user: User,
        current_password: str,
        new_password: str,
    ) -> User:
        """
        Change the password after checking the current one.

        Raises:
            InvalidCredentialsException: The current password is wrong.
        """
        if not verify_password(current_password, user.password_hash):
            auth_logger.warning(f"Password change failed: wrong password user={user.id}")
            raise InvalidCredentialsException("Current password is incorrect.")

        async with session.begin():
            updated = await user_db.update(
                session,
                user.id,
                {"password_hash": hash_password(new_password)},
                commit_self=False,
            )
        assert updated is not None
        auth_logger.info(f"Password changed: user={user.id}")
        return updated

    @classmethod
    async def forgot_password(cls, session: AsyncSession, email: str) -> None:
        """
        Store the hash of a new reset token and email the plaintext link.

        Unknown emails are ignored so the endpoint does not reveal accounts.

        Raises:
            AppException: The email could not be sent; the token is cleared.
        """
        async with session.begin():
            user = await user_db.get_by_email(session, email)
            if user is None:
                auth_logger.info(f"Password reset requested for unknown email {email}")
                return

            token = generate_reset_token()
            await user_db.update(
                session,
                user.id,
                {
                    "reset_password_token_hash": hash_code(token),
                    "reset_password_expires_at": utc_now()
                    + timedelta(minutes=settings.PASSWORD_RESET_EXPIRY_MINUTES),
                },
                commit_self=False,
            )

        if not await EmailManagerService.send_password_reset_email(
            user.email, token, user.name
        ):
            async with session.begin():
                await user_db.update(
                    session,
                    user.id,
                    {
                        "reset_password_token_hash": None,
                        "reset_password_expires_at": None,
                    },
                    commit_self=False,
                )
            auth_logger.error(f"Password reset email could not be sent to {user.email}")
            raise AppException("Email could not be sent.")

        auth_logger.info(f"Password reset email sent: user={user.id}")

    @classmethod
    async def reset_password(
        cls, session: AsyncSession, token: str, password: str
    ) -> User:
        """
        Set a new password using a reset token and clear the token.

        Raises:
            BadRequestException: Unknown or expired token.
        """
        async with session.begin():
            user = await user_db.get_by_reset_token_hash(session, hash_code(token))
            expires_at = ensure_utc(user.reset_password_expires_at) if user else None

            if user is None or expires_at is None or utc_now() > expires_at:
                auth_logger.warning("Password reset failed: invalid or expired token")
                raise BadRequestException("Invalid or expired token.")

            updated = await user_db.update(
                session,
                user.id,
                {
                    "password_hash": hash_password(password),
                    "reset_password_token_hash": None,
                    "reset_password_expires_at": None,
                },
                commit_self=False,
            )
        assert updated is not None
        auth_logger.info(f"Password reset: user={updated.id}")
        return updated

    @classmethod
    async def set_two_factor(
        cls,
        session: AsyncSession,
        user: User,
        enabled: bool,
        method: TwoFactorMethod = TwoFactorMethod.EMAIL,
    ) -> User:
        """
        Enable or disable the login second factor.

        Raises:
            NotImplementedException: Authenticator app codes are requested.
        """
        if enabled and method == TwoFactorMethod.APP:
            raise NotImplementedException(
                "App-based two-factor authentication is not yet implemented."
            )

        updates: dict[str, Any] = {"two_factor_enabled": enabled}
        if enabled:
            updates["two_factor_method"] = method

        async with session.begin():
            updated = await user_db.update(session, user.id, updates, commit_self=False)
        assert updated is not None
        auth_logger.info(
            f"Two-factor {'enabled' if enabled else 'disabled'}: user={user.id}"
        )
        return updated

    @classmethod
    async def mark_email_verified(cls, session: AsyncSession, user_id: UUID) -> None:
        """Set ``is_email_verified`` inside the caller's transaction."""
        await user_db.update(
            session, user_id, {"is_email_verified": True}, commit_self=False
        )
