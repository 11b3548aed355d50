from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Enum, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db.models.base import BaseModel
from app.core.enums import ClientStatus


class Client(BaseModel):
    """
    Investment account profile of a user with the ``client`` role.

    Attributes:
        user_id: The owning user (one client per user).
        client_id: Human-readable identifier such as ``CL-10001``.
        account_balance: Settled balance available for withdrawals.
        pending_withdrawals: Sum of pending and processing withdrawal amounts.
        total_investments: Running total of completed investment transactions.
    """

    __tablename__ = "clients"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    client_id: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        index=True,
        nullable=False,
    )

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )

    address: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )

    account_balance: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
    )

    pending_withdrawals: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
    )

    total_investments: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
    )

    status: Mapped[ClientStatus] = mapped_column(
        Enum(ClientStatus, native_enum=False, name="client_status"),
        default=ClientStatus.PENDING,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def available_balance(self) -> float:
        return self.account_balance - self.pending_withdrawals


__all__ = ["Client"]
