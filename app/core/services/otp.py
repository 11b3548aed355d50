"""
One-time code service: issuance, resend throttling, verification and the
downstream freshness gate.

Every flow that needs a second factor goes through this module:
- login two-factor codes (``OTPPurpose.LOGIN``)
- profile-sensitive changes (``OTPPurpose.PROFILE_UPDATE``)
- email verification (``OTPPurpose.EMAIL_VERIFICATION``)
- withdrawal PINs (``OTPPurpose.WITHDRAWAL`` bound to a withdrawal row)

Only the SHA-256 digest of a code is stored. The plaintext is handed to the
email manager once, after the record is committed; if delivery fails the
record is deleted again and ``DeliveryFailedException`` is raised.

The public coroutines own their transactions (``async with session.begin()``)
so they must be called with no transaction open on ``session``.

Example usage:
    from app.core.services.otp import OTPService

    issued = await OTPService.issue(session, user, OTPPurpose.LOGIN)
    result = await OTPService.verify(session, user.id, OTPPurpose.LOGIN, "123456")
    await OTPService.require_verified(session, user.id, OTPPurpose.LOGIN)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import math
from typing import Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import otp_logger, settings
from app.core.db.crud import one_time_code_db
from app.core.db.models import OneTimeCode, User
from app.core.enums import OTPPurpose
from app.core.exceptions.types import (
    DeliveryFailedException,
    OTPAlreadyVerifiedException,
    OTPAttemptsExhaustedException,
    OTPExpiredException,
    OTPInvalidException,
    OTPNotFoundException,
    OTPThrottledException,
    VerificationExpiredException,
    VerificationRequiredException,
)
from app.core.services.email_manager import EmailManagerService
from app.core.utils import (
    ensure_utc,
    generate_numeric_code,
    hash_code,
    mask_otp,
    utc_now,
    verify_code_hash,
)


__all__ = [
    "GeneratedCode",
    "IssuedCode",
    "OTPService",
    "VerificationResult",
]


@dataclass
class GeneratedCode:
    """
    A freshly generated code, not yet persisted.

    Attributes:
        code: The plaintext code. Never stored or logged unmasked.
        code_hash: SHA-256 hex digest of ``code``.
        expires_at: Absolute expiry (UTC).
    """

    code: str
    code_hash: str
    expires_at: datetime


@dataclass
class IssuedCode:
    """Result of ``issue``/``resend``: the delivered code and its record."""

    code: str
    expires_at: datetime
    record_id: UUID
    email: str
    purpose: OTPPurpose


@dataclass
class VerificationResult:
    """Successful verification of a code."""

    record_id: UUID
    subject_id: UUID
    purpose: OTPPurpose
    verified_at: datetime
    verified: bool = True


# Hook run inside the verifying transaction right after the record is marked
OnVerified = Callable[[OneTimeCode], Awaitable[None]]


class OTPService:
    """
    One-time code engine.

    Follows the singleton pattern with class methods, like the other
    services. There is no state to initialize; all parameters come from
    ``settings`` at call time so tests can override them.
    """

    # =========================================================================
    # Generation
    # =========================================================================

    @classmethod
    def generate(
        cls, length: int | None = None, ttl: timedelta | None = None
    ) -> GeneratedCode:
        """
        Generate a code, its digest and its expiry. No side effects.

        Args:
            length: Number of digits. Defaults to ``settings.OTP_LENGTH``.
            ttl: Lifetime. Defaults to ``settings.OTP_EXPIRY_MINUTES``.

        Returns:
            GeneratedCode: Plaintext, SHA-256 digest and ``now + ttl``.

        Raises:
            ValueError: If ``length`` is smaller than 1.

        Example:
            >>> generated = OTPService.generate(length=6)
            >>> len(generated.code), len(generated.code_hash)
            (6, 64)
        """
        if length is None:
            length = settings.OTP_LENGTH
        if ttl is None:
            ttl = timedelta(minutes=settings.OTP_EXPIRY_MINUTES)

        code = generate_numeric_code(length)
        return GeneratedCode(
            code=code,
            code_hash=hash_code(code),
            expires_at=utc_now() + ttl,
        )

    @classmethod
    def _expiry_text(cls, ttl: timedelta) -> str:
        minutes = int(ttl.total_seconds() // 60)
        if minutes >= 60 and minutes % 60 == 0:
            hours = minutes // 60
            return f"{hours} hour{'s' if hours != 1 else ''}"
        return f"{minutes} minute{'s' if minutes != 1 else ''}"

    # =========================================================================
    # Record lifecycle
    # =========================================================================

    @classmethod
    async def get_live(
        cls,
        session: AsyncSession,
        subject_id: UUID,
        purpose: OTPPurpose,
        withdrawal_id: UUID | None = None,
    ) -> OneTimeCode | None:
        """
        Return the pair's record if it is unexpired and unverified.

        Expired records are treated as absent even before the sweep removes
        them.
        """
        async with session.begin():
            record = await one_time_code_db.get_for_pair(
                session, subject_id, purpose, withdrawal_id
            )
        if record is None or record.verified:
            return None
        if utc_now() > ensure_utc(record.expires_at):  # type: ignore[operator]
            return None
        return record

    @classmethod
    async def _store_record(
        cls,
        session: AsyncSession,
        subject: User,
        purpose: OTPPurpose,
        generated: GeneratedCode,
        withdrawal_id: UUID | None,
    ) -> OneTimeCode:
        # Supersedes the pair's previous record in one statement
        return await one_time_code_db.upsert_for_pair(
            session,
            {
                "subject_id": subject.id,
                "email": subject.email,
                "purpose": purpose,
                "withdrawal_id": withdrawal_id,
                "code_hash": generated.code_hash,
                "issued_at": utc_now(),
                "expires_at": generated.expires_at,
                "attempts": 0,
                "max_attempts": settings.OTP_MAX_ATTEMPTS,
                "verified": False,
            },
            commit_self=False,
        )

    @classmethod
    async def _deliver_or_rollback(
        cls,
        session: AsyncSession,
        subject: User,
        record: OneTimeCode,
        generated: GeneratedCode,
        ttl: timedelta,
        reference: str | None,
    ) -> IssuedCode:
        """
        Email the plaintext code; delete the record if delivery fails.

        Raises:
            DeliveryFailedException: If the email could not be sent.
        """
        delivered = await EmailManagerService.send_otp_email(
            email=subject.email,
            otp_code=generated.code,
            purpose=record.purpose,
            user_name=subject.name,
            expiry_text=cls._expiry_text(ttl),
            reference=reference,
        )

        if not delivered:
            async with session.begin():
                await one_time_code_db.delete(session, record.id, commit_self=False)
            otp_logger.error(
                f"Code delivery failed, record rolled back: subject={subject.id}, "
                f"purpose={record.purpose.value}"
            )
            raise DeliveryFailedException()

        otp_logger.info(
            f"Code issued: subject={subject.id}, purpose={record.purpose.value}, "
            f"code={mask_otp(generated.code)}"
        )
        return IssuedCode(
            code=generated.code,
            expires_at=generated.expires_at,
            record_id=record.id,
            email=subject.email,
            purpose=record.purpose,
        )

    @classmethod
    async def issue(
        cls,
        session: AsyncSession,
        subject: User,
        purpose: OTPPurpose,
        withdrawal_id: UUID | None = None,
        length: int | None = None,
        ttl: timedelta | None = None,
        reference: str | None = None,
    ) -> IssuedCode:
        """
        Issue a fresh code for ``(subject, purpose)`` and email it.

        Any previous record for the pair is overwritten in place, so earlier codes
        stop working immediately.

        Args:
            session: Database session with no open transaction.
            subject: The user the code is for; the email goes to ``subject.email``.
            purpose: The purpose the code is scoped to.
            withdrawal_id: Bind the code to a withdrawal (PINs only).
            length: Code length. Defaults to ``settings.OTP_LENGTH``.
            ttl: Lifetime. Defaults to ``settings.OTP_EXPIRY_MINUTES``.
            reference: Optional reference shown in the email title.

        Returns:
            IssuedCode: The plaintext code and its expiry.

        Raises:
            DeliveryFailedException: If the email could not be sent. The new
                record is removed again.
        """
        ttl = ttl or timedelta(minutes=settings.OTP_EXPIRY_MINUTES)
        generated = cls.generate(length=length, ttl=ttl)

        async with session.begin():
            record = await cls._store_record(
                session, subject, purpose, generated, withdrawal_id
            )

        return await cls._deliver_or_rollback(
            session, subject, record, generated, ttl, reference
        )

    @classmethod
    async def resend(
        cls,
        session: AsyncSession,
        subject: User,
        purpose: OTPPurpose,
    ) -> IssuedCode:
        """
        Regenerate the code for ``(subject, purpose)``, subject to throttling.

        A resend is refused while the previous record is unexpired and was
        issued less than ``OTP_RESEND_THROTTLE_SECONDS`` ago. An expired or
        missing record never throttles.

        Raises:
            OTPThrottledException: Inside the throttle window; carries
                ``retry_after`` in whole seconds (rounded up).
            DeliveryFailedException: If the email could not be sent.
        """
        ttl = timedelta(minutes=settings.OTP_EXPIRY_MINUTES)
        window = timedelta(seconds=settings.OTP_RESEND_THROTTLE_SECONDS)
        generated = cls.generate(ttl=ttl)

        async with session.begin():
            previous = await one_time_code_db.get_for_pair(
                session, subject.id, purpose
            )
            now = utc_now()
            if previous is not None and now <= ensure_utc(previous.expires_at):  # type: ignore[operator]
                elapsed = now - ensure_utc(previous.issued_at)  # type: ignore[operator]
                if elapsed < window:
                    retry_after = max(
                        1, math.ceil((window - elapsed).total_seconds())
                    )
                    otp_logger.warning(
                        f"Resend throttled: subject={subject.id}, "
                        f"purpose={purpose.value}, retry_after={retry_after}s"
                    )
                    raise OTPThrottledException(retry_after=retry_after)

            record = await cls._store_record(
                session, subject, purpose, generated, None
            )

        return await cls._deliver_or_rollback(
            session, subject, record, generated, ttl, None
        )

    @classmethod
    async def purge_expired(cls, session: AsyncSession) -> int:
        """
        Delete expired records that can no longer prove a fresh verification.

        Returns:
            int: Number of records deleted.
        """
        async with session.begin():
            deleted = await one_time_code_db.purge_expired(
                session,
                now=utc_now(),
                freshness=timedelta(
                    minutes=settings.OTP_VERIFICATION_FRESHNESS_MINUTES
                ),
                commit_self=False,
            )
        otp_logger.info(f"Purged {deleted} expired one-time code(s)")
        return deleted

    # =========================================================================
    # Verification
    # =========================================================================

    @classmethod
    async def verify(
        cls,
        session: AsyncSession,
        subject_id: UUID,
        purpose: OTPPurpose,
        submitted_code: str,
        withdrawal_id: UUID | None = None,
        on_verified: OnVerified | None = None,
    ) -> VerificationResult:
        """
        Verify ``submitted_code`` against the pair's record.

        Checks, in order: the record exists, is not already verified, has not
        expired, and has attempts left. One attempt is then consumed with a
        conditional UPDATE (wrong guesses count) before the digests are
        compared in constant time. On a match the record is marked verified
        and ``on_verified`` runs in the same transaction.

        Args:
            session: Database session with no open transaction.
            subject_id: The user the code was issued for.
            purpose: The purpose the code is scoped to.
            submitted_code: The code typed by the user.
            withdrawal_id: Verify the PIN of this withdrawal instead.
            on_verified: Side effect of a successful verification. It never
                runs twice for the same record.

        Returns:
            VerificationResult: The verified record's id and time.

        Raises:
            OTPNotFoundException: No record for the pair.
            OTPAlreadyVerifiedException: The record was already verified.
            OTPExpiredException: The record expired.
            OTPAttemptsExhaustedException: No attempts left.
            OTPInvalidException: Wrong code; carries ``attempts_left``. The
                consumed attempt is committed.
        """
        attempts_left: int | None = None
        result: VerificationResult | None = None

        async with session.begin():
            record = await one_time_code_db.get_for_pair(
                session, subject_id, purpose, withdrawal_id
            )

            if record is None:
                otp_logger.warning(
                    f"Verification failed: no record for subject={subject_id}, "
                    f"purpose={purpose.value}"
                )
                raise OTPNotFoundException(purpose=purpose.value)

            if record.verified:
                raise OTPAlreadyVerifiedException()

            now = utc_now()
            if now > ensure_utc(record.expires_at):  # type: ignore[operator]
                otp_logger.warning(
                    f"Verification failed: expired code for subject={subject_id}, "
                    f"purpose={purpose.value}"
                )
                raise OTPExpiredException(purpose=purpose.value)

            if record.attempts >= record.max_attempts:
                raise OTPAttemptsExhaustedException(purpose=purpose.value)

            attempts = await one_time_code_db.increment_attempts(
                session, record.id, commit_self=False
            )
            if attempts is None:
                # Another request consumed the last attempt or verified first
                raise OTPAttemptsExhaustedException(purpose=purpose.value)

            if not verify_code_hash(submitted_code, record.code_hash):
                attempts_left = max(record.max_attempts - attempts, 0)
                otp_logger.warning(
                    f"Verification failed: wrong code for subject={subject_id}, "
                    f"purpose={purpose.value}, attempts_left={attempts_left}"
                )
            else:
                if not await one_time_code_db.mark_verified(
                    session, record.id, verified_at=now, commit_self=False
                ):
                    raise OTPAlreadyVerifiedException()

                if on_verified is not None:
                    await on_verified(record)

                result = VerificationResult(
                    record_id=record.id,
                    subject_id=subject_id,
                    purpose=purpose,
                    verified_at=now,
                )

        # Raised after the block so the consumed attempt is committed
        if result is None:
            raise OTPInvalidException(attempts_left=attempts_left)

        otp_logger.info(
            f"Code verified: subject={subject_id}, purpose={purpose.value}"
        )
        return result

    @classmethod
    async def require_verified(
        cls,
        session: AsyncSession,
        subject_id: UUID,
        purpose: OTPPurpose,
    ) -> OneTimeCode:
        """
        Gate a sensitive action on a fresh verification for ``purpose``.

        A verified record proves the user for
        ``OTP_VERIFICATION_FRESHNESS_MINUTES`` after ``verified_at``. The
        record is kept (and can authorize further actions inside the window)
        unless ``OTP_CONSUME_ON_AUTHORIZE`` is set.

        Raises:
            VerificationRequiredException: No verified record for the pair.
            VerificationExpiredException: The verification is too old.
        """
        freshness = timedelta(minutes=settings.OTP_VERIFICATION_FRESHNESS_MINUTES)

        async with session.begin():
            record = await one_time_code_db.get_for_pair(session, subject_id, purpose)

            if record is None or not record.verified or record.verified_at is None:
                otp_logger.warning(
                    f"Gate refused: no verification for subject={subject_id}, "
                    f"purpose={purpose.value}"
                )
                raise VerificationRequiredException(purpose=purpose.value)

            if utc_now() - ensure_utc(record.verified_at) > freshness:  # type: ignore[operator]
                otp_logger.warning(
                    f"Gate refused: stale verification for subject={subject_id}, "
                    f"purpose={purpose.value}"
                )
                raise VerificationExpiredException(purpose=purpose.value)

            if settings.OTP_CONSUME_ON_AUTHORIZE:
                await one_time_code_db.delete(session, record.id, commit_self=False)

        return record

    # =========================================================================
    # Withdrawal PINs
    # =========================================================================

    @classmethod
    async def issue_for_withdrawal(
        cls,
        session: AsyncSession,
        subject: User,
        withdrawal_id: UUID,
        reference: str | None = None,
    ) -> IssuedCode:
        """
        Issue (or re-issue) the PIN of a withdrawal.

        Uses ``PIN_LENGTH`` digits and a ``PIN_EXPIRY_HOURS`` lifetime; the
        previous PIN of the withdrawal stops working.
        """
        return await cls.issue(
            session,
            subject,
            OTPPurpose.WITHDRAWAL,
            withdrawal_id=withdrawal_id,
            length=settings.PIN_LENGTH,
            ttl=timedelta(hours=settings.PIN_EXPIRY_HOURS),
            reference=reference,
        )

    @classmethod
    async def verify_for_withdrawal(
        cls,
        session: AsyncSession,
        subject_id: UUID,
        withdrawal_id: UUID,
        pin: str,
        on_verified: OnVerified | None = None,
    ) -> VerificationResult:
        """Verify a withdrawal PIN; see ``verify`` for the checks and errors."""
        return await cls.verify(
            session,
            subject_id,
            OTPPurpose.WITHDRAWAL,
            pin,
            withdrawal_id=withdrawal_id,
            on_verified=on_verified,
        )
