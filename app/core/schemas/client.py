"""
Client schemas: profiles, staff create/update and the dashboard.
"""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

from app.core.enums import ClientStatus
from app.core.schemas.transaction import TransactionResponse
from app.core.schemas.withdrawal import WithdrawalResponse


ClientNameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=100),
]


class Address(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: Annotated[str, Field(description="Human-readable id, e.g. CL-10001")]
    user_id: UUID
    first_name: str
    last_name: str
    email: EmailStr
    phone: str | None = None
    address: dict[str, Any] | None = None
    account_balance: float
    pending_withdrawals: float
    total_investments: float
    status: ClientStatus
    notes: str | None = None
    created_at: datetime


class ClientCreateRequest(BaseModel):
    """Request schema for creating a client (staff)."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "first_name": "Jane",
                "last_name": "Doe",
                "email": "jane@example.com",
                "phone": "+15555550100",
                "address": {"city": "Boston", "country": "US"},
            }
        }
    )

    first_name: ClientNameStr
    last_name: ClientNameStr
    email: EmailStr
    phone: str | None = None
    address: Address | None = None
    notes: str | None = None


class ClientUpdateRequest(BaseModel):
    """Partial update of a client (staff). Omitted fields are unchanged."""

    first_name: ClientNameStr | None = None
    last_name: ClientNameStr | None = None
    email: EmailStr | None = None
    phone: str | None = None
    address: Address | None = None
    status: ClientStatus | None = None
    notes: str | None = None


class ClientListResponse(BaseModel):
    items: list[ClientResponse]
    total: int
    page: int
    limit: int


class AccountSummary(BaseModel):
    account_balance: float
    available_balance: float
    pending_withdrawals: float
    total_investments: float


class ClientDashboardResponse(BaseModel):
    client: ClientResponse
    account_summary: AccountSummary
    recent_transactions: list[TransactionResponse]
    recent_withdrawals: list[WithdrawalResponse]


__all__ = [
    "Address",
    "ClientResponse",
    "ClientCreateRequest",
    "ClientUpdateRequest",
    "ClientListResponse",
    "AccountSummary",
    "ClientDashboardResponse",
]
