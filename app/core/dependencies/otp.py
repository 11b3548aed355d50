"""
Second-factor gate for sensitive endpoints.

    @router.put(
        "/details",
        dependencies=[Depends(require_otp_verification(OTPPurpose.PROFILE_UPDATE))],
    )

The endpoint runs only if the current user verified a code for the purpose
within ``OTP_VERIFICATION_FRESHNESS_MINUTES``; otherwise the request fails
with 403 and ``{"require_otp": true, "purpose": ...}``.
"""

from typing import Annotated, Awaitable, Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.models import User
from app.core.dependencies.auth import get_current_user
from app.core.dependencies.db import get_async_session
from app.core.enums import OTPPurpose
from app.core.services.otp import OTPService


def require_otp_verification(
    purpose: OTPPurpose,
) -> Callable[..., Awaitable[User]]:
    """
    Dependency factory requiring a fresh verification for ``purpose``.

    Returns the current user so it can also be used as a typed parameter.
    """

    async def dependency(
        user: Annotated[User, Depends(get_current_user)],
        session: Annotated[AsyncSession, Depends(get_async_session)],
    ) -> User:
        await OTPService.require_verified(session, user.id, purpose)
        return user

    return dependency


ProfileUpdateVerifiedUser = Annotated[
    User, Depends(require_otp_verification(OTPPurpose.PROFILE_UPDATE))
]


__all__ = ["require_otp_verification", "ProfileUpdateVerifiedUser"]
