from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db.models.base import BaseModel
from app.core.enums import TwoFactorMethod, UserRole, UserStatus


def _default_notification_preferences() -> dict[str, Any]:
    return {
        "account_updates": True,
        "transaction_alerts": True,
        "investment_updates": True,
        "marketing_emails": False,
        "security_alerts": True,
    }


class User(BaseModel):
    """
    Back office account. Clients, staff, managers and admins all sign in
    through this table; client accounts additionally own a ``Client`` row.

    Attributes:
        name: Display name.
        email: Unique login email (stored lowercase).
        role: Access role used by the role guards.
        password_hash: bcrypt hash of the password.
        status: Only ``active`` accounts can sign in.
        reset_password_token_hash: SHA-256 of the pending reset token.
        reset_password_expires_at: Expiry of the pending reset token.
        two_factor_enabled: Whether login requires an emailed code.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, name="user_role"),
        default=UserRole.CLIENT,
        nullable=False,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )

    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus, native_enum=False, name="user_status"),
        default=UserStatus.ACTIVE,
        nullable=False,
    )

    reset_password_token_hash: Mapped[str | None] = mapped_column(
        String(64),  # SHA256 hex digest is 64 characters
        nullable=True,
        index=True,
    )

    reset_password_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    is_email_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    two_factor_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    two_factor_method: Mapped[TwoFactorMethod] = mapped_column(
        Enum(TwoFactorMethod, native_enum=False, name="two_factor_method"),
        default=TwoFactorMethod.EMAIL,
        nullable=False,
    )

    email_notifications: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    notification_preferences: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=_default_notification_preferences,
        nullable=False,
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


__all__ = ["User"]
