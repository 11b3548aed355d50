from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.crud.client import ClientDB
from app.core.db.models import Client, Transaction
from app.core.enums import TransactionType
from app.core.utils import generate_public_id

# Sign applied to the client balance when a transaction of each type completes
_BALANCE_SIGN: dict[TransactionType, int] = {
    TransactionType.DEPOSIT: 1,
    TransactionType.RETURN: 1,
    TransactionType.WITHDRAWAL: -1,
    TransactionType.INVESTMENT: -1,
    TransactionType.FEE: -1,
}


class TransactionDB(BaseDB[Transaction]):
    """CRUD operations for Transaction model."""

    def __init__(self):
        super().__init__(model=Transaction)

    async def next_transaction_id(self, session: AsyncSession) -> str:
        """Next free ``TX-XXXXX`` identifier."""
        sequence = await self.count(session) + 1
        while await self.exists(
            session,
            [Transaction.transaction_id == generate_public_id("TX", sequence)],
        ):
            sequence += 1
        return generate_public_id("TX", sequence)

    async def get_by_withdrawal(
        self, session: AsyncSession, withdrawal_id: UUID
    ) -> Transaction | None:
        return await self.get_one_by_conditions(
            session, [Transaction.related_withdrawal_id == withdrawal_id]
        )

    async def apply_to_balance(
        self,
        session: AsyncSession,
        transaction: Transaction,
        commit_self: bool = True,
    ) -> Client | None:
        """
        Apply a completed transaction to its client's balance.

        Deposits and returns credit the balance; withdrawals, investments and
        fees debit it. Investments also add to ``total_investments``.
        Transfers and other entries leave the balance untouched.

        Args:
            session: Database session.
            transaction: The transaction that just completed.
            commit_self: Commit when True, only flush when False.

        Returns:
            The updated client, or None when the type does not move money.
        """
        sign = _BALANCE_SIGN.get(transaction.type)
        if sign is None:
            return None

        updates = {
            "account_balance": Client.account_balance + sign * transaction.amount
        }
        if transaction.type == TransactionType.INVESTMENT:
            updates["total_investments"] = (
                Client.total_investments + transaction.amount
            )

        return await ClientDB().update(
            session, transaction.client_id, updates, commit_self=commit_self
        )
