from contextlib import contextmanager
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Iterator,
    Sequence,
    Type,
    TypeVar,
)
from uuid import UUID

from sqlalchemy import (
    SQLColumnExpression,
    and_,
    delete as sa_delete,
    func,
    select,
    update as sa_update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions.types import DatabaseException

T = TypeVar("T")


@contextmanager
def _db_errors(message: str, *extra: type[Exception]) -> Iterator[None]:
    """Re-raise SQLAlchemy (and ``extra``) errors as DatabaseException."""
    try:
        yield
    except (SQLAlchemyError, *extra) as e:
        raise DatabaseException(f"{message}: {str(e)}") from e


class BaseDB(Generic[T]):
    """
    Generic async CRUD helpers shared by every model.

    Write methods accept ``commit_self``. Services run their unit of work
    inside ``async with session.begin()`` and pass ``commit_self=False`` so
    only the surrounding transaction commits; the write is flushed so later
    reads in the same transaction see it.
    """

    def __init__(self, model: Type[T]):
        self.model = model

    @property
    def _name(self) -> str:
        return self.model.__name__

    async def _finish(self, session: AsyncSession, commit_self: bool) -> None:
        if commit_self:
            await session.commit()
        else:
            await session.flush()

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_by_id(
        self, session: AsyncSession, id: UUID, options: list[Any] = []
    ) -> T | None:
        """
        Fetch one row by primary key.

        Args:
            session: Database session.
            id: Primary key.
            options: Loader options such as ``selectinload(...)``.

        Returns:
            The row, or None.
        """
        with _db_errors(f"Error retrieving {self._name} with ID {id}"):
            stmt = (
                select(self.model)
                .options(*options)
                .where(getattr(self.model, "id") == id)
            )
            return (await session.execute(stmt)).scalar_one_or_none()

    async def get_all(
        self,
        session: AsyncSession,
        filters: list[Any] | None = None,
        order_by: list[Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        options: list[Any] = [],
    ) -> Sequence[T]:
        """
        List rows, optionally filtered, ordered and sliced for paging.

        Args:
            session: Database session.
            filters: WHERE conditions, AND-ed together.
            order_by: ORDER BY expressions.
            limit: Page size.
            offset: Rows to skip.
            options: Loader options.
        """
        with _db_errors(f"Error retrieving all {self._name} records"):
            stmt = select(self.model).options(*options)
            if filters:
                stmt = stmt.where(*filters)
            if order_by:
                stmt = stmt.order_by(*order_by)
            if offset:
                stmt = stmt.offset(offset)
            if limit:
                stmt = stmt.limit(limit)
            return (await session.execute(stmt)).scalars().all()

    async def count(
        self, session: AsyncSession, filters: list[Any] | None = None
    ) -> int:
        """Number of rows matching ``filters`` (all rows when omitted)."""
        with _db_errors(f"Error counting {self._name} records"):
            stmt = select(func.count()).select_from(self.model)
            if filters:
                stmt = stmt.where(*filters)
            return int((await session.execute(stmt)).scalar_one())

    async def get_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        options: list[Any] = [],
    ) -> Sequence[T]:
        """Every row matching all ``conditions``."""
        with _db_errors(
            f"Error retrieving {self._name} with conditions {conditions}", ValueError
        ):
            stmt = select(self.model).options(*options).where(and_(*conditions))
            return (await session.execute(stmt)).scalars().all()

    async def get_one_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        options: list[Any] = [],
    ) -> T | None:
        """The first row matching all ``conditions``, or None."""
        with _db_errors(
            f"Error retrieving one {self._name} with conditions {conditions}",
            ValueError,
        ):
            stmt = select(self.model).options(*options).where(and_(*conditions))
            return (await session.execute(stmt)).scalars().first()

    async def exists(
        self, session: AsyncSession, conditions: list[SQLColumnExpression]
    ) -> bool:
        """Whether any row matches ``conditions``."""
        with _db_errors(f"Error checking existence of {self._name}"):
            stmt = (
                select(getattr(self.model, "id")).where(and_(*conditions)).limit(1)
            )
            return (await session.execute(stmt)).first() is not None

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        validate: Callable[[dict], dict] | None = None,
        commit_self: bool = True,
    ) -> T:
        """
        Insert a row built from ``data`` and return it refreshed.

        Args:
            session: Database session.
            data: Column values.
            validate: Optional hook that checks or transforms ``data`` first.
            commit_self: Commit when True, only flush when False.
        """
        with _db_errors(f"Error creating {self._name}", ValueError):
            if validate:
                data = validate(data)

            obj = self.model(**data)
            session.add(obj)
            await self._finish(session, commit_self)
            await session.refresh(obj)
            return obj

    async def _insert_in_savepoint(self, session: AsyncSession, values: dict) -> T:
        obj = self.model(**values)
        async with session.begin_nested():
            session.add(obj)
        await session.refresh(obj)
        return obj

    async def create_numbered(
        self,
        session: AsyncSession,
        data: dict,
        field: str,
        next_id: Callable[[AsyncSession], Awaitable[str]],
        retries: int = 3,
    ) -> T:
        """
        Insert a row whose public identifier (``CL-``, ``TX-``, ``WD-``) is
        computed by ``next_id``.

        Identifiers are derived from what is already stored, so two requests
        can pick the same one. Each insert runs in a SAVEPOINT; when it hits
        the unique constraint only the savepoint is rolled back and the
        identifier is computed again. Always flushes; the caller commits.

        Args:
            session: Database session inside an open transaction.
            data: Column values without ``field``.
            field: Name of the public identifier column.
            next_id: Coroutine returning the next free identifier.
            retries: Inserts tried before giving up.

        Raises:
            DatabaseException: Still conflicting after ``retries`` inserts, or
                any other database error.
        """
        with _db_errors(f"Error creating {self._name}"):
            for _ in range(retries - 1):
                try:
                    return await self._insert_in_savepoint(
                        session, {**data, field: await next_id(session)}
                    )
                except IntegrityError:
                    continue
            return await self._insert_in_savepoint(
                session, {**data, field: await next_id(session)}
            )

    async def update(
        self, session: AsyncSession, id: UUID, updates: dict, commit_self: bool = True
    ) -> T | None:
        """
        Apply ``updates`` to the row with primary key ``id``.

        Values may be SQL expressions (``Client.account_balance + 100``), so
        increments happen in the database rather than from a stale read. The
        identity-mapped instance is refreshed with the returned row.

        Returns:
            The updated row, or None when no row has that id.
        """
        with _db_errors(f"Error updating {self._name} with ID {id}"):
            stmt = (
                sa_update(self.model)
                .where(getattr(self.model, "id") == id)
                .values(**updates)
                .returning(self.model)
                .execution_options(populate_existing=True)
            )
            obj = (await session.execute(stmt)).scalar_one_or_none()
            await self._finish(session, commit_self)
            return obj

    async def update_by_conditions(
        self,
        session: AsyncSession,
        conditions: list[SQLColumnExpression],
        updates: dict,
        commit_self: bool = True,
    ) -> int:
        """
        Apply ``updates`` to every row matching ``conditions``.

        Returns:
            The number of rows changed. Conditional writes compare it with 1
            to learn whether they won.
        """
        with _db_errors(f"Error updating {self._name} with conditions {conditions}"):
            stmt = (
                sa_update(self.model)
                .where(and_(*conditions))
                .values(**updates)
                .execution_options(synchronize_session="fetch")
            )
            result = await session.execute(stmt)
            await self._finish(session, commit_self)
            return result.rowcount  # type: ignore[attr-defined]

    async def delete(
        self, session: AsyncSession, id: UUID, commit_self: bool = True
    ) -> bool:
        """Delete the row with primary key ``id``. True if one was removed."""
        with _db_errors(f"Error deleting {self._name} with ID {id}", ValueError):
            stmt = (
                sa_delete(self.model)
                .where(getattr(self.model, "id") == id)
                .execution_options(synchronize_session="fetch")
            )
            result = await session.execute(stmt)
            await self._finish(session, commit_self)
            return bool(result.rowcount)  # type: ignore[attr-defined]

    async def delete_by_conditions(
        self,
        session: AsyncSession,
        conditions: list[SQLColumnExpression],
        commit_self: bool = True,
    ) -> int:
        """Delete every row matching ``conditions``. Returns the count."""
        with _db_errors(f"Error deleting {self._name} with conditions {conditions}"):
            stmt = (
                sa_delete(self.model)
                .where(and_(*conditions))
                .execution_options(synchronize_session="fetch")
            )
            result = await session.execute(stmt)
            await self._finish(session, commit_self)
            return result.rowcount  # type: ignore[attr-defined]
