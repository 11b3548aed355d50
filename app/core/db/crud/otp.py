"""
CRUD operations for one-time codes.

Counter and flag writes are single conditional UPDATE statements so
concurrent verifications of the same record cannot both win.

"""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import SQLColumnExpression, and_, or_, select, update as sa_update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models import OneTimeCode
from app.core.enums import OTPPurpose
from app.core.exceptions.types import DatabaseException

_DIALECT_INSERTS = {"postgresql": postgresql_insert, "sqlite": sqlite_insert}

# Overwritten when a pair's record is re-issued; id and created_at are kept
_REISSUED_COLUMNS = (
    "subject_id",
    "email",
    "purpose",
    "code_hash",
    "issued_at",
    "expires_at",
    "attempts",
    "max_attempts",
    "verified",
    "updated_at",
)


def _pair_conditions(
    subject_id: UUID, purpose: OTPPurpose, withdrawal_id: UUID | None
) -> list[SQLColumnExpression]:
    # Withdrawal PINs are keyed by the withdrawal alone
    if withdrawal_id is not None:
        return [OneTimeCode.withdrawal_id == withdrawal_id]
    return [
        OneTimeCode.subject_id == subject_id,
        OneTimeCode.purpose == purpose,
        OneTimeCode.withdrawal_id.is_(None),
    ]


class OneTimeCodeDB(BaseDB[OneTimeCode]):
    """CRUD operations for OneTimeCode model."""

    def __init__(self):
        super().__init__(model=OneTimeCode)

    async def get_for_pair(
        self,
        session: AsyncSession,
        subject_id: UUID,
        purpose: OTPPurpose,
        withdrawal_id: UUID | None = None,
    ) -> OneTimeCode | None:
        """
        Get the record for a (subject, purpose) pair, or the PIN of a withdrawal.

        Args:
            session: Database session.
            subject_id: The user the code was issued for.
            purpose: The purpose the code is scoped to.
            withdrawal_id: Set to look up a withdrawal PIN instead.

        Returns:
            The record or None if none exists.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        # Attempt counters are bumped with bulk UPDATEs; reload identity-mapped rows
        try:
            stmt = (
                select(OneTimeCode)
                .where(and_(*_pair_conditions(subject_id, purpose, withdrawal_id)))
                .execution_options(populate_existing=True)
            )
            result = await session.execute(stmt)
            return result.scalars().first()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving OneTimeCode for subject {subject_id}: {str(e)}"
            ) from e

    async def upsert_for_pair(
        self, session: AsyncSession, data: dict, commit_self: bool = True
    ) -> OneTimeCode:
        """
        Insert a fresh record for the pair in ``data``, or overwrite the
        existing one in place.

        A single ``INSERT ... ON CONFLICT DO UPDATE`` against the partial
        unique index of the pair (or of the withdrawal for PINs), so two
        concurrent issues never collide: the later one overwrites the
        earlier. The overwritten record starts over with no attempts used
        and unverified.

        Args:
            session: Database session.
            data: Column values of the new record.
            commit_self: Commit when True, only flush when False.

        Returns:
            The stored record.

        Raises:
            DatabaseException: If an error occurs while writing the record.
        """
        try:
            insert = _DIALECT_INSERTS[session.get_bind().dialect.name]
            if data.get("withdrawal_id") is not None:
                target = {
                    "index_elements": ["withdrawal_id"],
                    "index_where": OneTimeCode.withdrawal_id.is_not(None),
                }
            else:
                target = {
                    "index_elements": ["subject_id", "purpose"],
                    "index_where": OneTimeCode.withdrawal_id.is_(None),
                }

            stmt = insert(OneTimeCode).values(**data)
            stmt = stmt.on_conflict_do_update(
                **target,
                set_={
                    **{column: stmt.excluded[column] for column in _REISSUED_COLUMNS},
                    "verified_at": None,
                },
            ).returning(OneTimeCode)
            result = await session.execute(
                stmt, execution_options={"populate_existing": True}
            )
            record = result.scalar_one()
            await self._finish(session, commit_self)
            return record
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error storing OneTimeCode for subject {data.get('subject_id')}: {str(e)}"
            ) from e

    async def increment_attempts(
        self, session: AsyncSession, id: UUID, commit_self: bool = True
    ) -> int | None:
        """
        Consume one verification attempt.

        The increment only applies while the record is unverified and below
        its ceiling, so two concurrent attempts can never push ``attempts``
        past ``max_attempts``.

        Args:
            session: Database session.
            id: Primary key of the record.
            commit_self: Commit when True, only flush when False.

        Returns:
            int | None: The new attempt count, or None if no attempt was left
            (or the record was verified or removed meanwhile).

        Raises:
            DatabaseException: If an error occurs while updating the record.
        """
        try:
            stmt = (
                sa_update(OneTimeCode)
                .where(
                    OneTimeCode.id == id,
                    OneTimeCode.attempts < OneTimeCode.max_attempts,
                    OneTimeCode.verified.is_(False),
                )
                .values(attempts=OneTimeCode.attempts + 1)
                .returning(OneTimeCode.attempts)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            attempts = result.scalar_one_or_none()
            await self._finish(session, commit_self)
            return attempts
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error incrementing attempts of OneTimeCode {id}: {str(e)}"
            ) from e

    async def mark_verified(
        self,
        session: AsyncSession,
        id: UUID,
        verified_at: datetime,
        commit_self: bool = True,
    ) -> bool:
        """
        Set ``verified`` and ``verified_at`` unless the record is already verified.

        Returns:
            bool: True if this call performed the transition.
        """
        updated = await self.update_by_conditions(
            session,
            [OneTimeCode.id == id, OneTimeCode.verified.is_(False)],
            {"verified": True, "verified_at": verified_at},
            commit_self=commit_self,
        )
        return updated == 1

    async def purge_expired(
        self,
        session: AsyncSession,
        now: datetime,
        freshness: timedelta,
        commit_self: bool = True,
    ) -> int:
        """
        Delete expired records that can no longer serve as verification evidence.

        A record is removed once ``expires_at`` has passed and it is either
        unverified, or was verified longer ago than ``freshness``.

        Returns:
            int: The number of records deleted.
        """
        return await self.delete_by_conditions(
            session,
            [
                OneTimeCode.expires_at < now,
                or_(
                    OneTimeCode.verified.is_(False),
                    and_(
                        OneTimeCode.verified_at.is_not(None),
                        OneTimeCode.verified_at < now - freshness,
                    ),
                ),
            ],
            commit_self=commit_self,
        )
