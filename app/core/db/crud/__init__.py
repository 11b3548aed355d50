from app.core.db.crud.base import BaseDB
from app.core.db.crud.client import ClientDB
from app.core.db.crud.otp import OneTimeCodeDB
from app.core.db.crud.transaction import TransactionDB
from app.core.db.crud.user import UserDB
from app.core.db.crud.withdrawal import WithdrawalDB

# Global CRUD instances - use these instead of creating new instances
user_db = UserDB()
client_db = ClientDB()
transaction_db = TransactionDB()
withdrawal_db = WithdrawalDB()
one_time_code_db = OneTimeCodeDB()

__all__ = [
    # Classes (for type hints and subclassing)
    "BaseDB",
    "ClientDB",
    "OneTimeCodeDB",
    "TransactionDB",
    "UserDB",
    "WithdrawalDB",
    # Global instances (for actual usage)
    "client_db",
    "one_time_code_db",
    "transaction_db",
    "user_db",
    "withdrawal_db",
]
