"""
Withdrawal schemas: requests, PIN verification, reviews and statistics.

The PIN itself is never part of a response; it only travels by email.
"""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from app.core.config import MAX_CODE_LENGTH
from app.core.enums import CryptoCurrency, WithdrawalMethod, WithdrawalStatus


class BankAccount(BaseModel):
    bank_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    account_number: Annotated[str, StringConstraints(strip_whitespace=True, min_length=4)]
    account_holder_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    routing_number: str | None = None
    account_type: str | None = None


class CryptoWallet(BaseModel):
    currency: CryptoCurrency
    address: Annotated[str, StringConstraints(strip_whitespace=True, min_length=10)]


class WithdrawalCreateRequest(BaseModel):
    """
    Request schema for a withdrawal.

    ``bank_account`` is required for ``bankTransfer``, ``crypto_wallet`` for
    ``cryptocurrency``.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "amount": 1000.0,
                "method": "bankTransfer",
                "bank_account": {
                    "bank_name": "First Bank",
                    "account_number": "000123456789",
                    "account_holder_name": "Jane Doe",
                    "routing_number": "021000021",
                },
            }
        }
    )

    amount: Annotated[float, Field(gt=0)]
    currency: Annotated[str, Field(min_length=3, max_length=10)] = "USD"
    method: WithdrawalMethod
    bank_account: BankAccount | None = None
    crypto_wallet: CryptoWallet | None = None
    notes: Annotated[str | None, Field(max_length=1000)] = None

    @model_validator(mode="after")
    def check_destination(self) -> "WithdrawalCreateRequest":
        if self.method == WithdrawalMethod.BANK_TRANSFER and self.bank_account is None:
            raise ValueError("bank_account is required for bank transfers")
        if self.method == WithdrawalMethod.CRYPTOCURRENCY and self.crypto_wallet is None:
            raise ValueError("crypto_wallet is required for cryptocurrency withdrawals")
        return self

    def destination(self) -> dict[str, Any]:
        """Destination payload stored on the withdrawal."""
        if self.method == WithdrawalMethod.BANK_TRANSFER:
            assert self.bank_account is not None
            return {"bank_account": self.bank_account.model_dump(mode="json")}
        assert self.crypto_wallet is not None
        return {"crypto_wallet": self.crypto_wallet.model_dump(mode="json")}


class WithdrawalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    withdrawal_id: Annotated[str, Field(description="Human-readable id, e.g. WD-10001")]
    client_id: UUID
    amount: float
    currency: str
    method: WithdrawalMethod
    status: WithdrawalStatus
    destination: dict[str, Any]
    fee_amount: float
    fee_percentage: float
    net_amount: float
    notes: str | None = None
    requested_at: datetime
    processed_by: UUID | None = None
    processed_at: datetime | None = None
    transaction_id: UUID | None = None
    created_at: datetime


class WithdrawalCreatedResponse(BaseModel):
    message: str = "Withdrawal request created. A verification PIN was sent to your email."
    withdrawal: WithdrawalResponse
    pin_expires_at: datetime


class PinVerifyRequest(BaseModel):
    model_config = ConfigDict(json_schema_extra={"example": {"pin": "482913"}})

    pin: Annotated[
        str,
        StringConstraints(
            strip_whitespace=True,
            min_length=1,
            max_length=MAX_CODE_LENGTH,
            pattern=r"^\d+$",
        ),
    ]


class PinIssuedResponse(BaseModel):
    message: str = "A new PIN was sent to the client."
    withdrawal_id: str
    pin_expires_at: datetime


class WithdrawalStatusUpdateRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"example": {"status": "completed", "notes": "Paid out"}}
    )

    status: WithdrawalStatus
    notes: Annotated[str | None, Field(max_length=1000)] = None


class WithdrawalListResponse(BaseModel):
    items: list[WithdrawalResponse]
    total: int
    page: int
    limit: int


class WithdrawalStatsResponse(BaseModel):
    total_withdrawals: int
    pending_withdrawals: int
    processing_withdrawals: int
    completed_withdrawals: int
    rejected_withdrawals: int
    cancelled_withdrawals: int
    total_amount: Annotated[
        float, Field(description="Sum of pending and processing amounts")
    ]
    processed_today: int
    average_processing_hours: float


__all__ = [
    "BankAccount",
    "CryptoWallet",
    "WithdrawalCreateRequest",
    "WithdrawalResponse",
    "WithdrawalCreatedResponse",
    "PinVerifyRequest",
    "PinIssuedResponse",
    "WithdrawalStatusUpdateRequest",
    "WithdrawalListResponse",
    "WithdrawalStatsResponse",
]
