"""
Transaction (ledger entry) schemas.
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import TransactionMethod, TransactionStatus, TransactionType


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transaction_id: Annotated[str, Field(description="Human-readable id, e.g. TX-10001")]
    client_id: UUID
    type: TransactionType
    amount: float
    currency: str
    description: str | None = None
    status: TransactionStatus
    method: TransactionMethod | None = None
    reference: str | None = None
    related_withdrawal_id: UUID | None = None
    fee_amount: float
    notes: str | None = None
    processed_by: UUID | None = None
    processed_at: datetime | None = None
    created_at: datetime


class TransactionCreateRequest(BaseModel):
    """
    Record a ledger entry for a client (admin/manager).

    A ``completed`` entry is applied to the client's balance immediately.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "client_id": "550e8400-e29b-41d4-a716-446655440000",
                "type": "deposit",
                "amount": 5000.0,
                "status": "completed",
                "method": "bankTransfer",
                "description": "Initial deposit",
            }
        }
    )

    client_id: UUID
    type: TransactionType
    amount: Annotated[float, Field(gt=0)]
    currency: Annotated[str, Field(min_length=3, max_length=10)] = "USD"
    status: TransactionStatus = TransactionStatus.PENDING
    method: TransactionMethod | None = None
    description: str | None = None
    reference: str | None = None
    fee_amount: Annotated[float, Field(ge=0)] = 0.0
    notes: str | None = None


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    total: int
    page: int
    limit: int


__all__ = [
    "TransactionResponse",
    "TransactionCreateRequest",
    "TransactionListResponse",
]
