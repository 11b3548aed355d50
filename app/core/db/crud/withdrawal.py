"""
CRUD operations for the Withdrawal model.

"""

from datetime import timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models import Withdrawal
from app.core.enums import WithdrawalStatus
from app.core.exceptions.types import DatabaseException
from app.core.utils import ensure_utc, generate_public_id, utc_now


class WithdrawalDB(BaseDB[Withdrawal]):
    """CRUD operations for Withdrawal model."""

    def __init__(self):
        super().__init__(model=Withdrawal)

    async def next_withdrawal_id(self, session: AsyncSession) -> str:
        """Next free ``WD-XXXXX`` identifier."""
        sequence = await self.count(session) + 1
        while await self.exists(
            session,
            [Withdrawal.withdrawal_id == generate_public_id("WD", sequence)],
        ):
            sequence += 1
        return generate_public_id("WD", sequence)

    async def get_for_client(
        self, session: AsyncSession, client_id: UUID
    ) -> Sequence[Withdrawal]:
        """All withdrawals of a client, newest first."""
        return await self.get_all(
            session,
            filters=[Withdrawal.client_id == client_id],
            order_by=[Withdrawal.created_at.desc()],
        )

    async def get_stats(self, session: AsyncSession) -> dict[str, Any]:
        """
        Aggregate figures for the admin dashboard.

        Returns:
            dict: Counts per status, the total amount still outstanding
            (pending + processing), the number of withdrawals completed or
            rejected since midnight UTC, and the average hours between
            request and completion.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            counts_stmt = select(Withdrawal.status, func.count()).group_by(
                Withdrawal.status
            )
            counts = {
                status: count
                for status, count in (await session.execute(counts_stmt)).all()
            }

            outstanding_stmt = select(
                func.coalesce(func.sum(Withdrawal.amount), 0.0)
            ).where(
                Withdrawal.status.in_(
                    [WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING]
                )
            )
            outstanding = float((await session.execute(outstanding_stmt)).scalar_one())

            midnight = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
            processed_today_stmt = (
                select(func.count())
                .select_from(Withdrawal)
                .where(
                    Withdrawal.processed_at >= midnight,
                    Withdrawal.status.in_(
                        [WithdrawalStatus.COMPLETED, WithdrawalStatus.REJECTED]
                    ),
                )
            )
            processed_today = int(
                (await session.execute(processed_today_stmt)).scalar_one()
            )

            completed_stmt = select(
                Withdrawal.requested_at, Withdrawal.processed_at
            ).where(
                Withdrawal.status == WithdrawalStatus.COMPLETED,
                Withdrawal.processed_at.is_not(None),
            )
            durations: list[timedelta] = [
                ensure_utc(processed_at) - ensure_utc(requested_at)  # type: ignore[operator]
                for requested_at, processed_at in (
                    await session.execute(completed_stmt)
                ).all()
            ]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error computing withdrawal statistics: {str(e)}"
            ) from e

        average_hours = (
            sum(d.total_seconds() for d in durations) / len(durations) / 3600
            if durations
            else 0.0
        )

        return {
            "total_withdrawals": sum(counts.values()),
            "pending_withdrawals": counts.get(WithdrawalStatus.PENDING, 0),
            "processing_withdrawals": counts.get(WithdrawalStatus.PROCESSING, 0),
            "completed_withdrawals": counts.get(WithdrawalStatus.COMPLETED, 0),
            "rejected_withdrawals": counts.get(WithdrawalStatus.REJECTED, 0),
            "cancelled_withdrawals": counts.get(WithdrawalStatus.CANCELLED, 0),
            "total_amount": outstanding,
            "processed_today": processed_today,
            "average_processing_hours": round(average_hours, 2),
        }

