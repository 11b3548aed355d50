"""
CRUD operations for the Client model.

"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models import Client, Withdrawal
from app.core.enums import WithdrawalStatus
from app.core.exceptions.types import DatabaseException
from app.core.utils import generate_public_id


class ClientDB(BaseDB[Client]):
    """CRUD operations for Client model."""

    def __init__(self):
        super().__init__(model=Client)

    async def get_by_user_id(
        self, session: AsyncSession, user_id: UUID
    ) -> Client | None:
        return await self.get_one_by_conditions(session, [Client.user_id == user_id])

    async def next_client_id(self, session: AsyncSession) -> str:
        """
        Next free ``CL-XXXXX`` identifier.

        Starts from the current row count and skips identifiers already
        taken (rows may have been deleted since they were numbered).
        """
        sequence = await self.count(session) + 1
        while await self.exists(
            session, [Client.client_id == generate_public_id("CL", sequence)]
        ):
            sequence += 1
        return generate_public_id("CL", sequence)

    async def recompute_pending_withdrawals(
        self, session: AsyncSession, client_id: UUID, commit_self: bool = True
    ) -> float:
        """
        Recompute ``pending_withdrawals`` as the sum of the client's pending
        and processing withdrawal amounts.

        Args:
            session: Database session.
            client_id: Primary key of the client.
            commit_self: Commit when True, only flush when False.

        Returns:
            The new pending total.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(func.coalesce(func.sum(Withdrawal.amount), 0.0)).where(
                Withdrawal.client_id == client_id,
                Withdrawal.status.in_(
                    [WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING]
                ),
            )
            result = await session.execute(stmt)
            total = float(result.scalar_one())
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error computing pending withdrawals for client {client_id}: {str(e)}"
            ) from e

        await self.update(
            session, client_id, {"pending_withdrawals": total}, commit_self=commit_self
        )
        return total
