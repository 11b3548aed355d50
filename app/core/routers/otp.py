"""
One-time code router.

Public endpoints for issuing, resending and verifying numeric codes for an
existing account. The code is emailed; responses only carry its expiry.

All endpoints are prefixed with /otp when mounted in the main app and are
rate limited per client IP; issuing and resending are also limited per
email address.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import otp_logger, settings
from app.core.db.crud import user_db
from app.core.db.models import OneTimeCode, User
from app.core.dependencies import get_async_session
from app.core.enums import OTPPurpose
from app.core.exceptions.handlers import exception_schema
from app.core.exceptions.types import AuthenticationException, UserNotFoundException
from app.core.schemas.otp import (
    OTPIssuedResponse,
    OTPRequest,
    OTPVerifiedResponse,
    OTPVerifyRequest,
)
from app.core.services.auth import AuthService
from app.core.services.otp import OTPService
from app.core.services.rate_limit import rate_limit_by_email, rate_limit_by_ip


router = APIRouter(
    dependencies=[
        Depends(
            rate_limit_by_ip(
                limit=settings.RATE_LIMIT_OTP_REQUESTS,
                window=settings.RATE_LIMIT_DEFAULT_WINDOW,
            )
        )
    ],
    responses=exception_schema,
)


# Shared by /generate and /resend
_email_limit = rate_limit_by_email(
    limit=settings.RATE_LIMIT_OTP_EMAIL_REQUESTS,
    window=settings.RATE_LIMIT_OTP_EMAIL_WINDOW,
)


async def _get_active_user(session: AsyncSession, email: str) -> User:
    await _email_limit(email, "/otp")

    async with session.begin():
        user = await user_db.get_by_email(session, email)

    if user is None:
        otp_logger.warning(f"Code requested for unknown email {email}")
        raise UserNotFoundException()
    if not user.is_active:
        raise AuthenticationException(
            "Your account is not active. Please contact support."
        )
    return user


@router.post(
    "/generate",
    response_model=OTPIssuedResponse,
    summary="Generate a verification code",
    description="""
## Generate a Verification Code

Issue a fresh numeric code for the account and purpose and email it. Any
earlier code for the same purpose stops working.

### Purposes

| Purpose | Used by |
|---------|---------|
| `login` | Two-factor login (`POST /auth/login` with `otp`) |
| `profile_update` | Account details and two-factor settings |
| `email_verification` | Marks the email as verified |
| `withdrawal`, `other` | Generic codes |

### Error Responses

| Status | Reason |
|--------|--------|
| `401 Unauthorized` | Account is not active |
| `404 Not Found` | No account with this email |
| `429 Too Many Requests` | IP rate limit |
| `500 Internal Server Error` | The email could not be sent (no code is stored) |
""",
)
async def generate_otp(
    request_data: OTPRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> OTPIssuedResponse:
    user = await _get_active_user(session, request_data.email)
    issued = await OTPService.issue(session, user, request_data.purpose)
    return OTPIssuedResponse(
        email=issued.email,
        purpose=issued.purpose,
        expires_at=issued.expires_at,
    )


@router.post(
    "/verify",
    response_model=OTPVerifiedResponse,
    summary="Verify a code",
    description="""
## Verify a Code

Check the submitted code for the account and purpose. Every attempt counts
toward the limit of `OTP_MAX_ATTEMPTS`, wrong guesses included.

A verified `email_verification` code marks the account's email as
verified. Other purposes stay valid as proof of verification for
`OTP_VERIFICATION_FRESHNESS_MINUTES`.

### Error Responses

| Status | kind | Reason |
|--------|------|--------|
| `400` | `invalid_code` | Wrong code; body has `attempts_left` |
| `400` | `expired` | Code expired; request a new one |
| `400` | `attempts_exhausted` | No attempts left; request a new one |
| `400` | `already_verified` | The code was already used |
| `404` | `not_found` | No account, or no code for this purpose |
""",
)
async def verify_otp(
    request_data: OTPVerifyRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> OTPVerifiedResponse:
    async with session.begin():
        user = await user_db.get_by_email(session, request_data.email)
    if user is None:
        raise UserNotFoundException()

    on_verified = None
    if request_data.purpose == OTPPurpose.EMAIL_VERIFICATION:

        async def on_verified(record: OneTimeCode) -> None:
            await AuthService.mark_email_verified(session, record.subject_id)

    result = await OTPService.verify(
        session,
        user.id,
        request_data.purpose,
        request_data.otp,
        on_verified=on_verified,
    )

    return OTPVerifiedResponse(
        purpose=result.purpose,
        verified_at=result.verified_at,
        email_verified=(
            True if request_data.purpose == OTPPurpose.EMAIL_VERIFICATION else None
        ),
    )


@router.post(
    "/resend",
    response_model=OTPIssuedResponse,
    status_code=status.HTTP_200_OK,
    summary="Resend a verification code",
    description="""
## Resend a Verification Code

Like `/otp/generate`, but refused with **429** while the current code is
still valid and was issued less than `OTP_RESEND_THROTTLE_SECONDS` ago. The
429 body carries `retry_after` (seconds) and the response has a
`Retry-After` header.
""",
)
async def resend_otp(
    request_data: OTPRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> OTPIssuedResponse:
    user = await _get_active_user(session, request_data.email)
    issued = await OTPService.resend(session, user, request_data.purpose)
    return OTPIssuedResponse(
        email=issued.email,
        purpose=issued.purpose,
        expires_at=issued.expires_at,
    )
