"""
Shared schemas for API request validation and response serialization.

"""

from app.core.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    OTPRequiredResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UpdateDetailsRequest,
    UserResponse,
)
from app.core.schemas.client import (
    AccountSummary,
    Address,
    ClientCreateRequest,
    ClientDashboardResponse,
    ClientListResponse,
    ClientResponse,
    ClientUpdateRequest,
)
from app.core.schemas.notification import (
    TwoFactorEnableRequest,
    TwoFactorStatusResponse,
)
from app.core.schemas.otp import (
    OTPIssuedResponse,
    OTPRequest,
    OTPVerifiedResponse,
    OTPVerifyRequest,
)
from app.core.schemas.transaction import (
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
)
from app.core.schemas.withdrawal import (
    BankAccount,
    CryptoWallet,
    PinIssuedResponse,
    PinVerifyRequest,
    WithdrawalCreateRequest,
    WithdrawalCreatedResponse,
    WithdrawalListResponse,
    WithdrawalResponse,
    WithdrawalStatsResponse,
    WithdrawalStatusUpdateRequest,
)

__all__ = [
    # Auth
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "LoginRequest",
    "MeResponse",
    "MessageResponse",
    "OTPRequiredResponse",
    "RegisterRequest",
    "ResetPasswordRequest",
    "TokenResponse",
    "UpdateDetailsRequest",
    "UserResponse",
    # Clients
    "AccountSummary",
    "Address",
    "ClientCreateRequest",
    "ClientDashboardResponse",
    "ClientListResponse",
    "ClientResponse",
    "ClientUpdateRequest",
    # Two-factor
    "TwoFactorEnableRequest",
    "TwoFactorStatusResponse",
    # One-time codes
    "OTPIssuedResponse",
    "OTPRequest",
    "OTPVerifiedResponse",
    "OTPVerifyRequest",
    # Transactions
    "TransactionCreateRequest",
    "TransactionListResponse",
    "TransactionResponse",
    # Withdrawals
    "BankAccount",
    "CryptoWallet",
    "PinIssuedResponse",
    "PinVerifyRequest",
    "WithdrawalCreateRequest",
    "WithdrawalCreatedResponse",
    "WithdrawalListResponse",
    "WithdrawalResponse",
    "WithdrawalStatsResponse",
    "WithdrawalStatusUpdateRequest",
]
