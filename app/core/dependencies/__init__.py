"""
Shared dependencies for FastAPI endpoints.

"""

from app.core.dependencies.auth import (
    get_current_user,
    require_roles,
    CurrentUser,
    ClientUser,
    ReviewerUser,
    StaffUser,
    AdminUser,
    bearer_scheme,
)
from app.core.dependencies.db import get_async_session
from app.core.dependencies.otp import (
    require_otp_verification,
    ProfileUpdateVerifiedUser,
)

__all__ = [
    "get_current_user",
    "require_roles",
    "CurrentUser",
    "ClientUser",
    "ReviewerUser",
    "StaffUser",
    "AdminUser",
    "bearer_scheme",
    "get_async_session",
    "require_otp_verification",
    "ProfileUpdateVerifiedUser",
]
