"""
Client Service for client profiles.

- Creating the profile that goes with a client account
- Staff creation, update and deletion of clients (user row included)
- The client dashboard summary
"""

from dataclasses import dataclass, field
import secrets
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import client_logger
from app.core.db.crud import (
    client_db,
    one_time_code_db,
    transaction_db,
    user_db,
    withdrawal_db,
)
from app.core.db.models import Client, OneTimeCode, Transaction, User, Withdrawal
from app.core.enums import ClientStatus, UserRole, UserStatus
from app.core.exceptions.types import NotFoundException, UserAlreadyExistsException
from app.core.services.email_manager import EmailManagerService
from app.core.utils import hash_password


__all__ = ["ClientService", "ClientDashboard"]


def split_name(name: str) -> tuple[str, str]:
    """
    Split a display name into first and last name.

    Examples:
        >>> split_name("Jane van Doe")
        ('Jane', 'van Doe')
        >>> split_name("Cher")
        ('Cher', '')
    """
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


@dataclass
class ClientDashboard:
    client: Client
    recent_transactions: Sequence[Transaction] = field(default_factory=list)
    recent_withdrawals: Sequence[Withdrawal] = field(default_factory=list)


class ClientService:
    """Client profile operations. Public coroutines open their own transactions."""

    RECENT_ITEMS: int = 5

    @classmethod
    async def create_profile(
        cls,
        session: AsyncSession,
        user: User,
        phone: str | None = None,
        address: dict[str, Any] | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        status: ClientStatus = ClientStatus.PENDING,
    ) -> Client:
        """Create the ``Client`` row of ``user`` inside the caller's transaction."""
        default_first, default_last = split_name(user.name)
        client = await client_db.create_numbered(
            session,
            {
                "user_id": user.id,
                "first_name": first_name or default_first,
                "last_name": last_name if last_name is not None else default_last,
                "email": user.email,
                "phone": phone,
                "address": address,
                "status": status,
            },
            "client_id",
            client_db.next_client_id,
        )
        client_logger.info(f"Client profile {client.client_id} created for user {user.id}")
        return client

    @classmethod
    async def sync_from_user(
        cls, session: AsyncSession, client: Client, user: User
    ) -> Client | None:
        """Mirror the user's name, email and phone onto the client profile."""
        first_name, last_name = split_name(user.name)
        return await client_db.update(
            session,
            client.id,
            {
                "first_name": first_name,
                "last_name": last_name,
                "email": user.email,
                "phone": user.phone,
            },
            commit_self=False,
        )

    @classmethod
    async def create(
        cls,
        session: AsyncSession,
        first_name: str,
        last_name: str,
        email: str,
        phone: str | None = None,
        address: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> Client:
        """
        Create a client and its login (staff action).

        The account gets a random password; the client sets their own through
        the forgot-password flow.

        Raises:
            UserAlreadyExistsException: If the email is already registered.
        """
        email = email.strip().lower()

        async with session.begin():
            if await user_db.get_by_email(session, email):
                client_logger.warning(f"Client creation failed: email exists {email}")
                raise UserAlreadyExistsException("Email already registered.")

            user = await user_db.create(
                session,
                {
                    "name": f"{first_name} {last_name}".strip(),
                    "email": email,
                    "password_hash": hash_password(secrets.token_urlsafe(16)),
                    "phone": phone,
                    "role": UserRole.CLIENT,
                    "status": UserStatus.ACTIVE,
                },
                commit_self=False,
            )
            client = await cls.create_profile(
                session,
                user,
                phone=phone,
                address=address,
                first_name=first_name,
                last_name=last_name,
            )
            if notes:
                client = await client_db.update(
                    session, client.id, {"notes": notes}, commit_self=False
                ) or client

        if not await EmailManagerService.send_welcome_email(email, first_name):
            client_logger.warning(f"Welcome email not sent to {email}")

        return client

    @classmethod
    async def update(
        cls, session: AsyncSession, client_id: UUID, updates: dict[str, Any]
    ) -> Client:
        """
        Update a client (staff action). Name and email changes are mirrored
        to the login account.

        Raises:
            NotFoundException: Unknown client.
            UserAlreadyExistsException: The new email belongs to another user.
        """
        updates = {k: v for k, v in updates.items() if v is not None}
        if "email" in updates:
            updates["email"] = updates["email"].strip().lower()

        async with session.begin():
            client = await client_db.get_by_id(session, client_id)
            if client is None:
                raise NotFoundException("Client not found.")

            user_updates: dict[str, Any] = {}
            if "email" in updates and updates["email"] != client.email:
                existing = await user_db.get_by_email(session, updates["email"])
                if existing and existing.id != client.user_id:
                    raise UserAlreadyExistsException("Email already registered.")
                user_updates["email"] = updates["email"]
                user_updates["is_email_verified"] = False
            if "first_name" in updates or "last_name" in updates:
                first = updates.get("first_name", client.first_name)
                last = updates.get("last_name", client.last_name)
                user_updates["name"] = f"{first} {last}".strip()

            updated = await client_db.update(
                session, client.id, updates, commit_self=False
            )
            if user_updates:
                await user_db.update(
                    session, client.user_id, user_updates, commit_self=False
                )

        assert updated is not None
        client_logger.info(f"Client {updated.client_id} updated")
        return updated

    @classmethod
    async def delete(cls, session: AsyncSession, client_id: UUID) -> None:
        """
        Delete a client with its ledger, withdrawals, codes and login.

        Raises:
            NotFoundException: Unknown client.
        """
        async with session.begin():
            client = await client_db.get_by_id(session, client_id)
            if client is None:
                raise NotFoundException("Client not found.")

            await one_time_code_db.delete_by_conditions(
                session, [OneTimeCode.subject_id == client.user_id], commit_self=False
            )
            await transaction_db.delete_by_conditions(
                session, [Transaction.client_id == client.id], commit_self=False
            )
            await withdrawal_db.delete_by_conditions(
                session, [Withdrawal.client_id == client.id], commit_self=False
            )
            await client_db.delete(session, client.id, commit_self=False)
            await user_db.delete(session, client.user_id, commit_self=False)

        client_logger.info(f"Client {client.client_id} deleted")

    @classmethod
    async def get_dashboard(cls, session: AsyncSession, user: User) -> ClientDashboard:
        """
        Balance figures plus the latest transactions and withdrawals of the
        user's client profile.

        Raises:
            NotFoundException: The user has no client profile.
        """
        async with session.begin():
            client = await client_db.get_by_user_id(session, user.id)
            if client is None:
                raise NotFoundException("Client not found.")

            transactions = await transaction_db.get_all(
                session,
                filters=[Transaction.client_id == client.id],
                order_by=[Transaction.created_at.desc()],
                limit=cls.RECENT_ITEMS,
            )
            withdrawals = await withdrawal_db.get_all(
                session,
                filters=[Withdrawal.client_id == client.id],
                order_by=[Withdrawal.created_at.desc()],
                limit=cls.RECENT_ITEMS,
            )

        return ClientDashboard(
            client=client,
            recent_transactions=transactions,
            recent_withdrawals=withdrawals,
        )
