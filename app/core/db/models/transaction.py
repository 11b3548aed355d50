from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db.models.base import BaseModel
from app.core.enums import TransactionMethod, TransactionStatus, TransactionType


class Transaction(BaseModel):
    """
    Ledger entry on a client account.

    Completing a transaction applies it to the client's balance; see
    ``TransactionDB.apply_to_balance``.
    """

    __tablename__ = "transactions"

    transaction_id: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        index=True,
        nullable=False,
    )

    client_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, native_enum=False, name="transaction_type"),
        nullable=False,
        index=True,
    )

    amount: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(10),
        default="USD",
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus, native_enum=False, name="transaction_status"),
        default=TransactionStatus.PENDING,
        nullable=False,
        index=True,
    )

    method: Mapped[TransactionMethod | None] = mapped_column(
        Enum(TransactionMethod, native_enum=False, name="transaction_method"),
        nullable=True,
    )

    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    related_withdrawal_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("withdrawals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    fee_amount: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    processed_by: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )


__all__ = ["Transaction"]
