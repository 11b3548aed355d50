from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Enum, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db.models.base import BaseModel, _utcnow
from app.core.enums import WithdrawalMethod, WithdrawalStatus


class Withdrawal(BaseModel):
    """
    A client's request to move funds out of their account.

    The PIN that authorizes the request is a ``OneTimeCode`` bound to this
    row, not a column here.

    Attributes:
        withdrawal_id: Human-readable identifier such as ``WD-10001``.
        destination: ``{"bank_account": {...}}`` or ``{"crypto_wallet": {...}}``
            depending on ``method``.
        fee_amount: ``amount * fee_percentage / 100``.
        transaction_id: The ledger entry created with the request.
    """

    __tablename__ = "withdrawals"

    withdrawal_id: Mapped[str] = mapped_column(
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

    amount: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(10),
        default="USD",
        nullable=False,
    )

    method: Mapped[WithdrawalMethod] = mapped_column(
        Enum(WithdrawalMethod, native_enum=False, name="withdrawal_method"),
        nullable=False,
    )

    status: Mapped[WithdrawalStatus] = mapped_column(
        Enum(WithdrawalStatus, native_enum=False, name="withdrawal_status"),
        default=WithdrawalStatus.PENDING,
        nullable=False,
        index=True,
    )

    destination: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )

    fee_amount: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
    )

    fee_percentage: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
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

    # The foreign key lives on transactions.related_withdrawal_id
    transaction_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )

    @property
    def net_amount(self) -> float:
        return self.amount - self.fee_amount


__all__ = ["Withdrawal"]
