from enum import Enum


class OTPPurpose(str, Enum):
    """Use-case a one-time code is scoped to. Codes never cross purposes."""

    LOGIN = "login"
    WITHDRAWAL = "withdrawal"
    PROFILE_UPDATE = "profile_update"
    EMAIL_VERIFICATION = "email_verification"
    OTHER = "other"


class UserRole(str, Enum):
    """Role of a back office user."""

    CLIENT = "client"
    STAFF = "staff"
    MANAGER = "manager"
    ADMIN = "admin"


class UserStatus(str, Enum):
    """Status of a user account."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class TwoFactorMethod(str, Enum):
    """Delivery method for second-factor codes."""

    EMAIL = "email"
    APP = "app"  # Authenticator apps are not supported yet


class ClientStatus(str, Enum):
    """Status of a client record."""

    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class TransactionType(str, Enum):
    """Kind of ledger entry."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    INVESTMENT = "investment"
    RETURN = "return"
    FEE = "fee"
    TRANSFER = "transfer"
    OTHER = "other"


class TransactionStatus(str, Enum):
    """Status of a ledger entry."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TransactionMethod(str, Enum):
    """Payment channel recorded on a ledger entry."""

    BANK_TRANSFER = "bankTransfer"
    CREDIT_CARD = "creditCard"
    CRYPTOCURRENCY = "cryptocurrency"
    CASH = "cash"
    CHECK = "check"
    OTHER = "other"


class WithdrawalMethod(str, Enum):
    """Payout channel of a withdrawal."""

    BANK_TRANSFER = "bankTransfer"
    CRYPTOCURRENCY = "cryptocurrency"


class CryptoCurrency(str, Enum):
    """Supported payout currencies for crypto withdrawals."""

    BTC = "BTC"
    ETH = "ETH"
    USDT = "USDT"
    BNB = "BNB"


class WithdrawalStatus(str, Enum):
    """
    Status of a withdrawal request.

    pending -> processing -> completed | rejected, with cancelled reachable
    from pending and processing.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            WithdrawalStatus.COMPLETED,
            WithdrawalStatus.REJECTED,
            WithdrawalStatus.CANCELLED,
        )


# Allowed withdrawal status transitions
WITHDRAWAL_TRANSITIONS: dict[WithdrawalStatus, set[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: {
        WithdrawalStatus.PROCESSING,
        WithdrawalStatus.REJECTED,
        WithdrawalStatus.CANCELLED,
    },
    WithdrawalStatus.PROCESSING: {
        WithdrawalStatus.COMPLETED,
        WithdrawalStatus.REJECTED,
        WithdrawalStatus.CANCELLED,
    },
    WithdrawalStatus.COMPLETED: set(),
    WithdrawalStatus.REJECTED: set(),
    WithdrawalStatus.CANCELLED: set(),
}

# Transaction status mirrored from a withdrawal status change
WITHDRAWAL_TO_TRANSACTION_STATUS: dict[WithdrawalStatus, TransactionStatus] = {
    WithdrawalStatus.PENDING: TransactionStatus.PENDING,
    WithdrawalStatus.PROCESSING: TransactionStatus.PROCESSING,
    WithdrawalStatus.COMPLETED: TransactionStatus.COMPLETED,
    WithdrawalStatus.REJECTED: TransactionStatus.FAILED,
    WithdrawalStatus.CANCELLED: TransactionStatus.CANCELLED,
}
