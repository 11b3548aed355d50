"""
One-time code model shared by every verification flow.

Login codes, profile-update codes, email-verification codes and withdrawal
PINs all live in this table and go through the same verification engine.

"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db.models.base import BaseModel, _utcnow
from app.core.enums import OTPPurpose


class OneTimeCode(BaseModel):
    """
    Model for storing hashed one-time codes.

    Codes are stored as SHA-256 hex digests; the plaintext only exists in the
    issuing request and the email sent to the user. Each record tracks its
    expiry, the attempts consumed against it and whether it was verified.

    There is at most one record per (subject, purpose) for generic codes and
    at most one per withdrawal for PINs. Both are enforced by partial unique
    indexes since ``withdrawal_id`` is NULL for generic codes.

    Attributes:
        subject_id: The user the code was issued for.
        email: Email address the code was sent to.
        purpose: Flow the code is scoped to; codes never cross purposes.
        withdrawal_id: The withdrawal a PIN authorizes (None otherwise).
        code_hash: SHA-256 hex digest of the code.
        issued_at: Issuance time, used by the resend throttle.
        expires_at: Absolute expiry.
        attempts: Verification attempts consumed, wrong or right.
        max_attempts: Attempt ceiling captured at issuance.
        verified: Terminal once true.
        verified_at: Time of the first successful verification.
    """

    __tablename__ = "one_time_codes"
    __table_args__ = (
        Index(
            "uq_one_time_codes_subject_purpose",
            "subject_id",
            "purpose",
            unique=True,
            postgresql_where=text("withdrawal_id IS NULL"),
            sqlite_where=text("withdrawal_id IS NULL"),
        ),
        Index(
            "uq_one_time_codes_withdrawal",
            "withdrawal_id",
            unique=True,
            postgresql_where=text("withdrawal_id IS NOT NULL"),
            sqlite_where=text("withdrawal_id IS NOT NULL"),
        ),
    )

    subject_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey(
            "users.id",
            ondelete="CASCADE",
            comment="Delete codes when user is deleted",
        ),
        nullable=False,
        index=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    purpose: Mapped[OTPPurpose] = mapped_column(
        Enum(OTPPurpose, native_enum=False, name="otp_purpose"),
        nullable=False,
    )

    withdrawal_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey(
            "withdrawals.id",
            ondelete="CASCADE",
            comment="Delete the PIN when its withdrawal is deleted",
        ),
        nullable=True,
    )

    code_hash: Mapped[str] = mapped_column(
        String(64),  # SHA256 hex digest is 64 characters
        nullable=False,
    )

    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    max_attempts: Mapped[int] = mapped_column(
        Integer,
        default=5,
        nullable=False,
    )

    verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def attempts_left(self) -> int:
        return max(self.max_attempts - self.attempts, 0)


__all__ = ["OneTimeCode"]
