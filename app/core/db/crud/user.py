from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models import User


class UserDB(BaseDB[User]):
    def __init__(self):
        super().__init__(model=User)

    async def get_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Case-insensitive lookup by email."""
        return await self.get_one_by_conditions(
            session, [func.lower(User.email) == email.strip().lower()]
        )

    async def get_by_reset_token_hash(
        self, session: AsyncSession, token_hash: str
    ) -> User | None:
        return await self.get_one_by_conditions(
            session, [User.reset_password_token_hash == token_hash]
        )
