from app.core.db.models.user import User
from app.core.db.models.client import Client
from app.core.db.models.withdrawal import Withdrawal
from app.core.db.models.transaction import Transaction
from app.core.db.models.otp import OneTimeCode

__all__ = [
    "Client",
    "OneTimeCode",
    "Transaction",
    "User",
    "Withdrawal",
]
