"""
Withdrawal Service for the PIN-gated withdrawal workflow.

- Creating a withdrawal request with its pending ledger entry and PIN
- Verifying the PIN (pending -> processing)
- Re-issuing the PIN (admin)
- Reviewing (admin/manager status changes) and cancelling requests

Status changes follow ``WITHDRAWAL_TRANSITIONS``; every change is mirrored
to the linked transaction and the client's ``pending_withdrawals`` is
recomputed in the same database transaction.

Example usage:
    withdrawal, issued = await WithdrawalService.create(
        session,
        user=current_user,
        amount=250.0,
        method=WithdrawalMethod.BANK_TRANSFER,
        destination={"bank_account": {...}},
    )
    await WithdrawalService.verify_pin(session, current_user, withdrawal.id, "123456")
"""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings, withdrawal_logger
from app.core.db.crud import client_db, transaction_db, user_db, withdrawal_db
from app.core.db.models import Client, OneTimeCode, User, Withdrawal
from app.core.enums import (
    WITHDRAWAL_TO_TRANSACTION_STATUS,
    WITHDRAWAL_TRANSITIONS,
    TransactionMethod,
    TransactionStatus,
    TransactionType,
    UserRole,
    WithdrawalMethod,
    WithdrawalStatus,
)
from app.core.exceptions.types import (
    BadRequestException,
    DeliveryFailedException,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidWithdrawalTransitionException,
    NotFoundException,
)
from app.core.services.email_manager import EmailManagerService
from app.core.services.otp import IssuedCode, OTPService, VerificationResult
from app.core.utils import utc_now


__all__ = ["WithdrawalService", "STAFF_ROLES", "REVIEWER_ROLES"]


# Roles that may see every withdrawal
STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER, UserRole.STAFF})
# Roles that may change a withdrawal's status
REVIEWER_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER})


class WithdrawalService:
    """
    Withdrawal workflow service.

    Methods that open their own transactions say so; they must be called
    with no transaction open on ``session``.
    """

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def compute_fee(cls, amount: float, percentage: float | None = None) -> float:
        """
        Fee charged on a withdrawal, rounded to cents.

        Example:
            >>> WithdrawalService.compute_fee(1000.0, 1.5)
            15.0
        """
        if percentage is None:
            percentage = settings.WITHDRAWAL_FEE_PERCENTAGE
        return round(amount * percentage / 100, 2)

    @classmethod
    def ensure_transition(
        cls, current: WithdrawalStatus, target: WithdrawalStatus
    ) -> None:
        """
        Raise unless ``current -> target`` is an allowed status change.

        Raises:
            InvalidWithdrawalTransitionException: For any other change,
                including a change to the same status.
        """
        if target not in WITHDRAWAL_TRANSITIONS[current]:
            raise InvalidWithdrawalTransitionException(current.value, target.value)

    @classmethod
    async def _get_or_404(cls, session: AsyncSession, withdrawal_id: UUID) -> Withdrawal:
        withdrawal = await withdrawal_db.get_by_id(session, withdrawal_id)
        if withdrawal is None:
            raise NotFoundException("Withdrawal not found.")
        return withdrawal

    @classmethod
    async def _client_of(cls, session: AsyncSession, user: User) -> Client:
        client = await client_db.get_by_user_id(session, user.id)
        if client is None:
            raise NotFoundException("Client not found.")
        return client

    @classmethod
    async def get_accessible(
        cls, session: AsyncSession, user: User, withdrawal_id: UUID
    ) -> Withdrawal:
        """
        Load a withdrawal the user may see: staff see all, clients their own.

        Runs inside the caller's transaction.

        Raises:
            NotFoundException: Unknown withdrawal.
            ForbiddenException: A client asking for someone else's withdrawal.
        """
        withdrawal = await cls._get_or_404(session, withdrawal_id)
        if user.role in STAFF_ROLES:
            return withdrawal

        client = await client_db.get_by_user_id(session, user.id)
        if client is None or client.id != withdrawal.client_id:
            withdrawal_logger.warning(
                f"Access denied: user={user.id} on withdrawal={withdrawal_id}"
            )
            raise ForbiddenException("Not authorized to access this withdrawal.")
        return withdrawal

    @classmethod
    async def _apply_transition(
        cls,
        session: AsyncSession,
        withdrawal: Withdrawal,
        target: WithdrawalStatus,
        actor: User | None = None,
        notes: str | None = None,
    ) -> Withdrawal:
        """
        Move ``withdrawal`` to ``target`` inside the caller's transaction.

        Mirrors the status to the linked transaction, applies a completed
        transaction to the client's balance and recomputes the client's
        pending total. Completed and rejected requests are stamped with the
        reviewer and time.
        """
        cls.ensure_transition(withdrawal.status, target)

        now = utc_now()
        updates: dict[str, Any] = {"status": target}
        if notes:
            updates["notes"] = notes
        stamps = target in (WithdrawalStatus.COMPLETED, WithdrawalStatus.REJECTED)
        if stamps:
            updates["processed_at"] = now
            updates["processed_by"] = actor.id if actor else None

        updated = await withdrawal_db.update(
            session, withdrawal.id, updates, commit_self=False
        )
        assert updated is not None

        if updated.transaction_id is not None:
            tx_updates: dict[str, Any] = {
                "status": WITHDRAWAL_TO_TRANSACTION_STATUS[target]
            }
            if stamps:
                tx_updates["processed_at"] = now
                tx_updates["processed_by"] = actor.id if actor else None
            transaction = await transaction_db.update(
                session, updated.transaction_id, tx_updates, commit_self=False
            )
            if (
                transaction is not None
                and transaction.status == TransactionStatus.COMPLETED
            ):
                await transaction_db.apply_to_balance(
                    session, transaction, commit_self=False
                )

        await client_db.recompute_pending_withdrawals(
            session, updated.client_id, commit_self=False
        )

        withdrawal_logger.info(
            f"Withdrawal {updated.withdrawal_id} moved to {target.value}"
            + (f" by {actor.id}" if actor else "")
        )
        return updated

    @classmethod
    async def _notify_status(
        cls, session: AsyncSession, withdrawal: Withdrawal
    ) -> None:
        """Best effort status email to the owning client."""
        async with session.begin():
            client = await client_db.get_by_id(session, withdrawal.client_id)
        if client is None:
            return
        sent = await EmailManagerService.send_withdrawal_status_email(
            email=client.email,
            withdrawal_id=withdrawal.withdrawal_id,
            amount=withdrawal.amount,
            status=withdrawal.status,
            notes=withdrawal.notes,
            user_name=client.first_name,
        )
        if not sent:
            withdrawal_logger.warning(
                f"Status email for withdrawal {withdrawal.withdrawal_id} not sent"
            )

    # =========================================================================
    # Workflow
    # =========================================================================

    @classmethod
    async def create(
        cls,
        session: AsyncSession,
        user: User,
        amount: float,
        method: WithdrawalMethod,
        destination: dict[str, Any],
        currency: str = "USD",
        notes: str | None = None,
    ) -> tuple[Withdrawal, IssuedCode]:
        """
        Create a pending withdrawal, its pending transaction and its PIN.

        Opens its own transactions. If the PIN email cannot be sent, the
        withdrawal and its transaction are removed again.

        Args:
            session: Database session with no open transaction.
            user: The requesting client user.
            amount: Requested amount, within the configured limits.
            method: Payout channel.
            destination: Bank account or crypto wallet details.
            currency: Currency code.
            notes: Optional client notes.

        Returns:
            tuple[Withdrawal, IssuedCode]: The withdrawal and the issued PIN.

        Raises:
            NotFoundException: The user has no client profile.
            BadRequestException: Amount outside the configured limits.
            InsufficientBalanceException: Available balance below the amount.
            DeliveryFailedException: The PIN email could not be sent.
        """
        if amount < settings.MIN_WITHDRAWAL_AMOUNT:
            raise BadRequestException(
                f"Minimum withdrawal amount is ${settings.MIN_WITHDRAWAL_AMOUNT:,.2f}"
            )
        if amount > settings.MAX_WITHDRAWAL_AMOUNT:
            raise BadRequestException(
                f"Maximum withdrawal amount is ${settings.MAX_WITHDRAWAL_AMOUNT:,.2f}"
            )

        async with session.begin():
            client = await cls._client_of(session, user)

            if client.available_balance < amount:
                withdrawal_logger.warning(
                    f"Withdrawal refused: insufficient balance for client {client.client_id}"
                )
                raise InsufficientBalanceException()

            percentage = settings.WITHDRAWAL_FEE_PERCENTAGE
            withdrawal = await withdrawal_db.create_numbered(
                session,
                {
                    "client_id": client.id,
                    "amount": amount,
                    "currency": currency,
                    "method": method,
                    "status": WithdrawalStatus.PENDING,
                    "destination": destination,
                    "fee_percentage": percentage,
                    "fee_amount": cls.compute_fee(amount, percentage),
                    "notes": notes,
                    "requested_at": utc_now(),
                },
                "withdrawal_id",
                withdrawal_db.next_withdrawal_id,
            )

            transaction = await transaction_db.create_numbered(
                session,
                {
                    "client_id": client.id,
                    "type": TransactionType.WITHDRAWAL,
                    "amount": amount,
                    "currency": currency,
                    "status": TransactionStatus.PENDING,
                    "method": TransactionMethod(method.value),
                    "description": f"Withdrawal request {withdrawal.withdrawal_id}",
                    "related_withdrawal_id": withdrawal.id,
                    "fee_amount": withdrawal.fee_amount,
                },
                "transaction_id",
                transaction_db.next_transaction_id,
            )

            updated = await withdrawal_db.update(
                session,
                withdrawal.id,
                {"transaction_id": transaction.id},
                commit_self=False,
            )
            assert updated is not None
            withdrawal = updated

            await client_db.recompute_pending_withdrawals(
                session, client.id, commit_self=False
            )

        withdrawal_logger.info(
            f"Withdrawal {withdrawal.withdrawal_id} created for client "
            f"{client.client_id}: amount={amount}"
        )

        try:
            issued = await OTPService.issue_for_withdrawal(
                session, user, withdrawal.id, reference=withdrawal.withdrawal_id
            )
        except DeliveryFailedException:
            async with session.begin():
                await transaction_db.delete(session, transaction.id, commit_self=False)
                await withdrawal_db.delete(session, withdrawal.id, commit_self=False)
                await client_db.recompute_pending_withdrawals(
                    session, client.id, commit_self=False
                )
            withdrawal_logger.error(
                f"Withdrawal {withdrawal.withdrawal_id} removed: PIN could not be delivered"
            )
            raise

        return withdrawal, issued

    @classmethod
    async def verify_pin(
        cls,
        session: AsyncSession,
        user: User,
        withdrawal_id: UUID,
        pin: str,
    ) -> tuple[Withdrawal, VerificationResult]:
        """
        Verify the PIN of the user's own withdrawal and start processing it.

        The pending -> processing transition runs in the verifying
        transaction, so a verified PIN and a processing withdrawal are
        committed together. Opens its own transactions.

        Raises:
            NotFoundException, ForbiddenException: See ``get_accessible``.
            InvalidWithdrawalTransitionException: The withdrawal is already
                completed, rejected or cancelled.
            OTPNotFoundException, OTPAlreadyVerifiedException,
            OTPExpiredException, OTPAttemptsExhaustedException,
            OTPInvalidException: See ``OTPService.verify``.
        """
        async with session.begin():
            withdrawal = await cls.get_accessible(session, user, withdrawal_id)
            if user.role in STAFF_ROLES:
                # Staff can view any withdrawal but only the owner holds the PIN
                client = await client_db.get_by_id(session, withdrawal.client_id)
                if client is None or client.user_id != user.id:
                    raise ForbiddenException(
                        "Not authorized to verify this withdrawal."
                    )

        if withdrawal.status.is_terminal:
            raise InvalidWithdrawalTransitionException(
                withdrawal.status.value, WithdrawalStatus.PROCESSING.value
            )

        async def start_processing(record: OneTimeCode) -> None:
            current = await cls._get_or_404(session, withdrawal_id)
            await cls._apply_transition(
                session, current, WithdrawalStatus.PROCESSING
            )

        result = await OTPService.verify_for_withdrawal(
            session,
            user.id,
            withdrawal_id,
            pin,
            on_verified=start_processing,
        )

        async with session.begin():
            withdrawal = await cls._get_or_404(session, withdrawal_id)
        return withdrawal, result

    @classmethod
    async def regenerate_pin(
        cls, session: AsyncSession, withdrawal_id: UUID
    ) -> tuple[Withdrawal, IssuedCode]:
        """
        Re-issue the PIN of a pending withdrawal to its client (admin action).

        The previous PIN stops working. Opens its own transactions.

        Raises:
            NotFoundException: Unknown withdrawal or missing client/user.
            BadRequestException: The withdrawal is no longer pending.
            DeliveryFailedException: The PIN email could not be sent.
        """
        async with session.begin():
            withdrawal = await cls._get_or_404(session, withdrawal_id)
            client = await client_db.get_by_id(session, withdrawal.client_id)
            owner = (
                await user_db.get_by_id(session, client.user_id) if client else None
            )

        if owner is None:
            raise NotFoundException("Client not found.")
        if withdrawal.status != WithdrawalStatus.PENDING:
            raise BadRequestException(
                f"A new PIN can only be issued for a pending withdrawal "
                f"(current status: {withdrawal.status.value})."
            )

        issued = await OTPService.issue_for_withdrawal(
            session, owner, withdrawal.id, reference=withdrawal.withdrawal_id
        )
        withdrawal_logger.info(f"PIN re-issued for withdrawal {withdrawal.withdrawal_id}")
        return withdrawal, issued

    @classmethod
    async def update_status(
        cls,
        session: AsyncSession,
        actor: User,
        withdrawal_id: UUID,
        status: WithdrawalStatus,
        notes: str | None = None,
    ) -> Withdrawal:
        """
        Review a withdrawal (admin/manager): change its status and notify the
        client by email (best effort). Opens its own transactions.

        Raises:
            NotFoundException: Unknown withdrawal.
            InvalidWithdrawalTransitionException: Disallowed status change.
        """
        async with session.begin():
            withdrawal = await cls._get_or_404(session, withdrawal_id)
            withdrawal = await cls._apply_transition(
                session, withdrawal, status, actor=actor, notes=notes
            )

        await cls._notify_status(session, withdrawal)
        return withdrawal

    @classmethod
    async def cancel(
        cls, session: AsyncSession, actor: User, withdrawal_id: UUID
    ) -> Withdrawal:
        """
        Cancel a pending or processing withdrawal. Clients may only cancel
        their own. Opens its own transactions.

        Raises:
            NotFoundException, ForbiddenException: See ``get_accessible``.
            InvalidWithdrawalTransitionException: Already completed, rejected
                or cancelled.
        """
        async with session.begin():
            withdrawal = await cls.get_accessible(session, actor, withdrawal_id)
            withdrawal = await cls._apply_transition(
                session,
                withdrawal,
                WithdrawalStatus.CANCELLED,
                actor=actor if actor.role in STAFF_ROLES else None,
            )
        return withdrawal
