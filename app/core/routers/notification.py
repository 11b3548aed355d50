"""
Two-factor settings router.

Mounted at /notifications/2fa. Changing the setting needs a fresh
``profile_update`` verification.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import (
    CurrentUser,
    ProfileUpdateVerifiedUser,
    get_async_session,
)
from app.core.exceptions.handlers import exception_schema
from app.core.schemas.notification import (
    TwoFactorEnableRequest,
    TwoFactorStatusResponse,
)
from app.core.services.auth import AuthService


router = APIRouter(responses=exception_schema)


@router.get(
    "",
    response_model=TwoFactorStatusResponse,
    summary="Two-factor status",
)
async def get_two_factor_status(user: CurrentUser) -> TwoFactorStatusResponse:
    return TwoFactorStatusResponse(
        enabled=user.two_factor_enabled, method=user.two_factor_method
    )


@router.post(
    "/enable",
    response_model=TwoFactorStatusResponse,
    summary="Enable two-factor login",
    description="""
## Enable Two-Factor Login

Once enabled, `POST /auth/login` emails a `login` code and only returns a
token together with that code.

Requires a `profile_update` code verified within
`OTP_VERIFICATION_FRESHNESS_MINUTES`.

### Error Responses

| Status | kind | Reason |
|--------|------|--------|
| `400` | `not_implemented` | `method` is `app` |
| `403` | `verification_required` | No verified `profile_update` code |
| `403` | `verification_expired` | The verification is too old |
""",
)
async def enable_two_factor(
    request_data: TwoFactorEnableRequest,
    user: ProfileUpdateVerifiedUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TwoFactorStatusResponse:
    updated = await AuthService.set_two_factor(
        session, user, enabled=True, method=request_data.method
    )
    return TwoFactorStatusResponse(
        enabled=updated.two_factor_enabled, method=updated.two_factor_method
    )


@router.post(
    "/disable",
    response_model=TwoFactorStatusResponse,
    summary="Disable two-factor login",
)
async def disable_two_factor(
    user: ProfileUpdateVerifiedUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TwoFactorStatusResponse:
    """Turn the login code off. Needs a fresh ``profile_update`` verification."""
    updated = await AuthService.set_two_factor(session, user, enabled=False)
    return TwoFactorStatusResponse(
        enabled=updated.two_factor_enabled, method=updated.two_factor_method
    )
