from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import AsyncSessionLocal


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped database session.

    Services open their own ``session.begin()`` blocks on it; the session
    itself is closed once the response has been sent.
    """
    async with AsyncSessionLocal() as session:
        yield session
