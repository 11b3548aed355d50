"""
Test suite for OTPService.

- Code generation
- Issuance, supersession and delivery failure
- Verification: expiry boundary, attempt ceiling, single use
- Resend throttling
- The freshness gate used by sensitive endpoints
- Purging expired records

Run all tests:
    pytest tests/services/test_otp.py -v

Run with coverage:
    pytest tests/services/test_otp.py --cov=app.core.services.otp --cov-report=term-missing -v
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from app.core.config import settings
from app.core.db.crud import one_time_code_db
from app.core.db.models import OneTimeCode
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
from app.core.services.otp import OTPService
from app.core.utils import ensure_utc, hash_code, verify_code_hash


T0 = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


def at(moment: datetime):
    """Freeze the clock seen by the OTP service."""
    return patch("app.core.services.otp.utc_now", return_value=moment)


# ============================================================================
# Tests for generate
# ============================================================================


class TestGenerate:

    def test_default_length_and_ttl(self):
        with at(T0):
            generated = OTPService.generate()

        assert len(generated.code) == settings.OTP_LENGTH
        assert generated.code.isdigit()
        assert generated.expires_at == T0 + timedelta(minutes=settings.OTP_EXPIRY_MINUTES)

    def test_custom_length_and_ttl(self):
        with at(T0):
            generated = OTPService.generate(length=8, ttl=timedelta(hours=48))

        assert len(generated.code) == 8
        assert generated.expires_at == T0 + timedelta(hours=48)

    def test_hash_matches_code(self):
        generated = OTPService.generate()

        assert generated.code_hash == hash_code(generated.code)
        assert verify_code_hash(generated.code, generated.code_hash)

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            OTPService.generate(length=0)

    def test_codes_are_not_repeated(self):
        codes = {OTPService.generate().code for _ in range(50)}
        assert len(codes) > 1


# ============================================================================
# Tests for issue
# ============================================================================


class TestIssue:

    @pytest.mark.asyncio
    async def test_issue_stores_only_the_hash(self, db_session, client_user, email_outbox):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record is not None
        assert record.code_hash == hash_code(issued.code)
        assert record.code_hash != issued.code
        assert record.attempts == 0
        assert record.max_attempts == settings.OTP_MAX_ATTEMPTS
        assert record.verified is False
        assert record.email == client_user.email

        email_outbox.send_otp_email.assert_awaited_once()
        kwargs = email_outbox.send_otp_email.call_args.kwargs
        assert kwargs["email"] == client_user.email
        assert kwargs["otp_code"] == issued.code
        assert kwargs["purpose"] == OTPPurpose.LOGIN
        assert kwargs["expiry_text"] == f"{settings.OTP_EXPIRY_MINUTES} minutes"

    @pytest.mark.asyncio
    async def test_issue_supersedes_previous_code(self, db_session, client_user):
        with patch(
            "app.core.services.otp.generate_numeric_code",
            side_effect=["111111", "222222"],
        ):
            first = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)
            second = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        records = await one_time_code_db.get_by_conditions(
            db_session, [OneTimeCode.subject_id == client_user.id]
        )
        assert len(records) == 1

        with pytest.raises(OTPInvalidException):
            await OTPService.verify(db_session, client_user.id, OTPPurpose.LOGIN, first.code)

        result = await OTPService.verify(
            db_session, client_user.id, OTPPurpose.LOGIN, second.code
        )
        assert result.verified is True

    @pytest.mark.asyncio
    async def test_purposes_are_independent(self, db_session, client_user):
        login = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)
        await OTPService.issue(db_session, client_user, OTPPurpose.PROFILE_UPDATE)

        records = await one_time_code_db.get_by_conditions(
            db_session, [OneTimeCode.subject_id == client_user.id]
        )
        assert len(records) == 2

        result = await OTPService.verify(
            db_session, client_user.id, OTPPurpose.LOGIN, login.code
        )
        assert result.purpose == OTPPurpose.LOGIN

    @pytest.mark.asyncio
    async def test_delivery_failure_removes_record(
        self, db_session, client_user, email_outbox
    ):
        email_outbox.send_otp_email.return_value = False

        with pytest.raises(DeliveryFailedException):
            await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record is None

    @pytest.mark.asyncio
    async def test_get_live_ignores_expired_records(self, db_session, client_user):
        with at(T0):
            await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        with at(T0 + timedelta(minutes=1)):
            assert await OTPService.get_live(db_session, client_user.id, OTPPurpose.LOGIN)

        with at(T0 + timedelta(minutes=settings.OTP_EXPIRY_MINUTES, seconds=1)):
            assert (
                await OTPService.get_live(db_session, client_user.id, OTPPurpose.LOGIN)
                is None
            )


# ============================================================================
# Tests for verify
# ============================================================================


class TestVerify:

    @pytest.mark.asyncio
    async def test_verify_marks_record(self, db_session, client_user):
        with at(T0):
            issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        with at(T0 + timedelta(minutes=2)):
            result = await OTPService.verify(
                db_session, client_user.id, OTPPurpose.LOGIN, issued.code
            )

        assert result.verified_at == T0 + timedelta(minutes=2)
        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record.verified is True
        assert record.attempts == 1
        assert ensure_utc(record.verified_at) == T0 + timedelta(minutes=2)

    @pytest.mark.asyncio
    async def test_verify_without_record(self, db_session, client_user):
        with pytest.raises(OTPNotFoundException):
            await OTPService.verify(db_session, client_user.id, OTPPurpose.LOGIN, "123456")

    @pytest.mark.asyncio
    async def test_code_does_not_cross_purposes(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        with pytest.raises(OTPNotFoundException):
            await OTPService.verify(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE, issued.code
            )

    @pytest.mark.asyncio
    async def test_code_is_accepted_at_the_expiry_instant(self, db_session, client_user):
        with at(T0):
            issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        with at(issued.expires_at):
            result = await OTPService.verify(
                db_session, client_user.id, OTPPurpose.LOGIN, issued.code
            )
        assert result.verified is True

    @pytest.mark.asyncio
    async def test_code_is_refused_just_after_expiry(self, db_session, client_user):
        with at(T0):
            issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        with at(issued.expires_at + timedelta(milliseconds=1)):
            with pytest.raises(OTPExpiredException):
                await OTPService.verify(
                    db_session, client_user.id, OTPPurpose.LOGIN, issued.code
                )

        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record.attempts == 0

    @pytest.mark.asyncio
    async def test_wrong_code_consumes_attempt(self, db_session, client_user):
        await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        with pytest.raises(OTPInvalidException) as exc_info:
            await OTPService.verify(db_session, client_user.id, OTPPurpose.LOGIN, "000000")

        assert exc_info.value.attempts_left == settings.OTP_MAX_ATTEMPTS - 1
        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record.attempts == 1
        assert record.verified is False

    @pytest.mark.asyncio
    async def test_attempt_ceiling(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        remaining = []
        for _ in range(settings.OTP_MAX_ATTEMPTS):
            with pytest.raises(OTPInvalidException) as exc_info:
                await OTPService.verify(
                    db_session, client_user.id, OTPPurpose.LOGIN, "000000"
                )
            remaining.append(exc_info.value.attempts_left)

        assert remaining == list(range(settings.OTP_MAX_ATTEMPTS - 1, -1, -1))

        # Even the right code is refused once the ceiling is reached
        with pytest.raises(OTPAttemptsExhaustedException):
            await OTPService.verify(
                db_session, client_user.id, OTPPurpose.LOGIN, issued.code
            )

        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record.attempts == settings.OTP_MAX_ATTEMPTS

    @pytest.mark.asyncio
    async def test_attempt_taken_by_concurrent_request(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        # The record looked usable when read, but the guarded increment lost
        with patch.object(
            one_time_code_db, "increment_attempts", AsyncMock(return_value=None)
        ):
            with pytest.raises(OTPAttemptsExhaustedException):
                await OTPService.verify(
                    db_session, client_user.id, OTPPurpose.LOGIN, issued.code
                )

        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record.attempts == 0
        assert record.verified is False

    @pytest.mark.asyncio
    async def test_last_attempt_can_succeed(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        for _ in range(settings.OTP_MAX_ATTEMPTS - 1):
            with pytest.raises(OTPInvalidException):
                await OTPService.verify(
                    db_session, client_user.id, OTPPurpose.LOGIN, "000000"
                )

        result = await OTPService.verify(
            db_session, client_user.id, OTPPurpose.LOGIN, issued.code
        )
        assert result.verified is True

    @pytest.mark.asyncio
    async def test_code_is_single_use(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)
        await OTPService.verify(db_session, client_user.id, OTPPurpose.LOGIN, issued.code)

        with pytest.raises(OTPAlreadyVerifiedException):
            await OTPService.verify(
                db_session, client_user.id, OTPPurpose.LOGIN, issued.code
            )

    @pytest.mark.asyncio
    async def test_on_verified_runs_once(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)
        hook = AsyncMock()

        await OTPService.verify(
            db_session, client_user.id, OTPPurpose.LOGIN, issued.code, on_verified=hook
        )
        with pytest.raises(OTPAlreadyVerifiedException):
            await OTPService.verify(
                db_session,
                client_user.id,
                OTPPurpose.LOGIN,
                issued.code,
                on_verified=hook,
            )

        hook.assert_awaited_once()
        assert hook.call_args.args[0].id == issued.record_id

    @pytest.mark.asyncio
    async def test_on_verified_not_called_for_wrong_code(self, db_session, client_user):
        await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)
        hook = AsyncMock()

        with pytest.raises(OTPInvalidException):
            await OTPService.verify(
                db_session, client_user.id, OTPPurpose.LOGIN, "000000", on_verified=hook
            )

        hook.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_hook_rolls_back_verification(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)
        hook = AsyncMock(side_effect=RuntimeError("downstream failure"))

        with pytest.raises(RuntimeError):
            await OTPService.verify(
                db_session, client_user.id, OTPPurpose.LOGIN, issued.code, on_verified=hook
            )

        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record.verified is False
        assert record.attempts == 0


# ============================================================================
# Tests for resend
# ============================================================================


class TestResend:

    @pytest.mark.asyncio
    async def test_resend_without_previous_record(self, db_session, client_user):
        issued = await OTPService.resend(db_session, client_user, OTPPurpose.LOGIN)

        assert issued.purpose == OTPPurpose.LOGIN
        assert await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )

    @pytest.mark.asyncio
    async def test_resend_inside_window_is_throttled(
        self, db_session, client_user, email_outbox
    ):
        with at(T0):
            await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        with at(T0 + timedelta(seconds=20, milliseconds=500)):
            with pytest.raises(OTPThrottledException) as exc_info:
                await OTPService.resend(db_session, client_user, OTPPurpose.LOGIN)

        # 39.5 seconds left, rounded up
        assert exc_info.value.retry_after == settings.OTP_RESEND_THROTTLE_SECONDS - 20
        assert email_outbox.send_otp_email.await_count == 1

    @pytest.mark.asyncio
    async def test_resend_after_window_issues_new_code(self, db_session, client_user):
        with at(T0):
            first = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

        with at(T0 + timedelta(seconds=settings.OTP_RESEND_THROTTLE_SECONDS)):
            second = await OTPService.resend(db_session, client_user, OTPPurpose.LOGIN)

        assert second.record_id == first.record_id
        assert second.expires_at == T0 + timedelta(
            seconds=settings.OTP_RESEND_THROTTLE_SECONDS,
            minutes=settings.OTP_EXPIRY_MINUTES,
        )

    @pytest.mark.asyncio
    async def test_expired_record_never_throttles(self, db_session, client_user):
        with patch.object(settings, "OTP_RESEND_THROTTLE_SECONDS", 3600):
            with at(T0):
                await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)

            with at(T0 + timedelta(minutes=settings.OTP_EXPIRY_MINUTES, seconds=1)):
                issued = await OTPService.resend(
                    db_session, client_user, OTPPurpose.LOGIN
                )

        assert issued.code

    @pytest.mark.asyncio
    async def test_resend_resets_attempts(self, db_session, client_user):
        with at(T0):
            await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)
            with pytest.raises(OTPInvalidException):
                await OTPService.verify(
                    db_session, client_user.id, OTPPurpose.LOGIN, "000000"
                )

        with at(T0 + timedelta(minutes=2)):
            await OTPService.resend(db_session, client_user, OTPPurpose.LOGIN)

        record = await one_time_code_db.get_for_pair(
            db_session, client_user.id, OTPPurpose.LOGIN
        )
        assert record.attempts == 0


# ============================================================================
# Tests for require_verified
# ============================================================================


class TestRequireVerified:

    @pytest.mark.asyncio
    async def test_no_record(self, db_session, client_user):
        with pytest.raises(VerificationRequiredException) as exc_info:
            await OTPService.require_verified(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE
            )

        assert exc_info.value.purpose == "profile_update"

    @pytest.mark.asyncio
    async def test_unverified_record(self, db_session, client_user):
        await OTPService.issue(db_session, client_user, OTPPurpose.PROFILE_UPDATE)

        with pytest.raises(VerificationRequiredException):
            await OTPService.require_verified(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE
            )

    @pytest.mark.asyncio
    async def test_fresh_verification_passes_and_is_kept(self, db_session, client_user):
        with at(T0):
            issued = await OTPService.issue(
                db_session, client_user, OTPPurpose.PROFILE_UPDATE
            )
            await OTPService.verify(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE, issued.code
            )

        with at(T0 + timedelta(minutes=settings.OTP_VERIFICATION_FRESHNESS_MINUTES)):
            await OTPService.require_verified(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE
            )
            # Still usable inside the window
            await OTPService.require_verified(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE
            )

    @pytest.mark.asyncio
    async def test_stale_verification(self, db_session, client_user):
        with at(T0):
            issued = await OTPService.issue(
                db_session, client_user, OTPPurpose.PROFILE_UPDATE
            )
            await OTPService.verify(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE, issued.code
            )

        stale = T0 + timedelta(
            minutes=settings.OTP_VERIFICATION_FRESHNESS_MINUTES, seconds=1
        )
        with at(stale):
            with pytest.raises(VerificationExpiredException):
                await OTPService.require_verified(
                    db_session, client_user.id, OTPPurpose.PROFILE_UPDATE
                )

    @pytest.mark.asyncio
    async def test_other_purpose_does_not_count(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.LOGIN)
        await OTPService.verify(db_session, client_user.id, OTPPurpose.LOGIN, issued.code)

        with pytest.raises(VerificationRequiredException):
            await OTPService.require_verified(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE
            )

    @pytest.mark.asyncio
    async def test_consume_on_authorize(self, db_session, client_user):
        issued = await OTPService.issue(db_session, client_user, OTPPurpose.PROFILE_UPDATE)
        await OTPService.verify(
            db_session, client_user.id, OTPPurpose.PROFILE_UPDATE, issued.code
        )

        with patch.object(settings, "OTP_CONSUME_ON_AUTHORIZE", True):
            await OTPService.require_verified(
                db_session, client_user.id, OTPPurpose.PROFILE_UPDATE
            )
            with pytest.raises(VerificationRequiredException):
                await OTPService.require_verified(
                    db_session, client_user.id, OTPPurpose.PROFILE_UPDATE
                )


# ============================================================================
# Tests for purge_expired
# ============================================================================


class TestPurgeExpired:

    async def _add_record(self, db_session, user, purpose, expires_at, verified_at=None):
        record = OneTimeCode(
            subject_id=user.id,
            email=user.email,
            purpose=purpose,
            code_hash=hash_code("123456"),
            issued_at=expires_at - timedelta(minutes=10),
            expires_at=expires_at,
            attempts=0,
            max_attempts=5,
            verified=verified_at is not None,
            verified_at=verified_at,
        )
        db_session.add(record)
        await db_session.flush()
        return record

    @pytest.mark.asyncio
    async def test_purge_removes_only_dead_records(self, db_session, client_user):
        freshness = timedelta(minutes=settings.OTP_VERIFICATION_FRESHNESS_MINUTES)

        await self._add_record(
            db_session, client_user, OTPPurpose.LOGIN, T0 - timedelta(minutes=1)
        )
        await self._add_record(
            db_session, client_user, OTPPurpose.OTHER, T0 + timedelta(minutes=5)
        )
        await self._add_record(
            db_session,
            client_user,
            OTPPurpose.PROFILE_UPDATE,
            T0 - timedelta(minutes=1),
            verified_at=T0 - timedelta(minutes=5),
        )
        await self._add_record(
            db_session,
            client_user,
            OTPPurpose.EMAIL_VERIFICATION,
            T0 - timedelta(hours=2),
            verified_at=T0 - freshness - timedelta(minutes=1),
        )

        with at(T0):
            deleted = await OTPService.purge_expired(db_session)

        assert deleted == 2
        remaining = await one_time_code_db.get_by_conditions(
            db_session, [OneTimeCode.subject_id == client_user.id]
        )
        assert {r.purpose for r in remaining} == {
            OTPPurpose.OTHER,
            OTPPurpose.PROFILE_UPDATE,
        }

    @pytest.mark.asyncio
    async def test_purge_with_nothing_to_do(self, db_session):
        assert await OTPService.purge_expired(db_session) == 0
