"""
Transaction Service for manual ledger entries.

Staff record deposits, returns, fees and other entries for a client. An
entry recorded as ``completed`` moves the client's balance in the same
database transaction.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import client_logger
from app.core.db.crud import client_db, transaction_db
from app.core.db.models import Transaction, User
from app.core.enums import TransactionStatus, TransactionType
from app.core.exceptions.types import BadRequestException, NotFoundException
from app.core.utils import utc_now


__all__ = ["TransactionService"]


class TransactionService:

    @classmethod
    async def create(
        cls, session: AsyncSession, actor: User, data: dict[str, Any]
    ) -> Transaction:
        """
        Record a ledger entry. Opens its own transaction.

        Raises:
            NotFoundException: Unknown client.
            BadRequestException: A completed debit larger than the balance.
        """
        async with session.begin():
            client = await client_db.get_by_id(session, data["client_id"])
            if client is None:
                raise NotFoundException("Client not found.")

            completed = data.get("status") == TransactionStatus.COMPLETED
            debit = data["type"] in (
                TransactionType.WITHDRAWAL,
                TransactionType.INVESTMENT,
                TransactionType.FEE,
            )
            if completed and debit and client.account_balance < data["amount"]:
                raise BadRequestException("Insufficient balance for this entry.")

            values = dict(data)
            if completed:
                values["processed_at"] = utc_now()
                values["processed_by"] = actor.id

            transaction = await transaction_db.create_numbered(
                session, values, "transaction_id", transaction_db.next_transaction_id
            )
            if completed:
                await transaction_db.apply_to_balance(
                    session, transaction, commit_self=False
                )

        client_logger.info(
            f"Transaction {transaction.transaction_id} recorded by {actor.id}: "
            f"{transaction.type.value} {transaction.amount} ({transaction.status.value})"
        )
        return transaction
