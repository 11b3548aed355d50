"""
Authentication dependencies for FastAPI endpoints.

- Extracting and validating JWT access tokens from requests
- Getting the current authenticated user
- Restricting endpoints to roles

Example usage:
    from app.core.dependencies.auth import CurrentUser, require_roles

    @router.get("/me")
    async def get_profile(user: CurrentUser):
        return user

    @router.get("/stats", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    async def stats():
        ...
"""

from typing import Annotated, Awaitable, Callable
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies.db import get_async_session
from app.core.config import auth_logger
from app.core.db.crud import user_db
from app.core.db.models import User
from app.core.enums import UserRole
from app.core.exceptions.types import AuthenticationException, ForbiddenException
from app.core.utils import decode_jwt_token

# auto_error=False so a missing header goes through AuthenticationException (401)
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """
    Extract and validate the JWT access token from the Authorization header.

    This dependency:
    1. Extracts the Bearer token from the Authorization header
    2. Decodes and validates the JWT token
    3. Fetches the user from the database
    4. Refuses inactive or suspended accounts

    Returns:
        User: The authenticated user object.

    Raises:
        AuthenticationException: 401 if the token is missing, invalid or
            expired, or the user no longer exists or is not active.
    """
    if credentials is None:
        raise AuthenticationException("Not authorized to access this route")

    payload = decode_jwt_token(credentials.credentials)
    if payload is None:
        auth_logger.warning("Authentication failed: invalid or expired token")
        raise AuthenticationException("Invalid or expired access token")

    if payload.get("type") != "access":
        auth_logger.warning(
            f"Authentication failed: wrong token type '{payload.get('type')}'"
        )
        raise AuthenticationException("Invalid access token")

    try:
        user_id = UUID(payload.get("sub") or "")
    except ValueError:
        auth_logger.warning("Authentication failed: token has no valid 'sub' claim")
        raise AuthenticationException("Invalid access token")

    # Use a transaction so no implicit one is left open for the handler
    async with session.begin():
        user = await user_db.get_by_id(session=session, id=user_id)

    if user is None:
        auth_logger.warning(f"Authentication failed: user not found {user_id}")
        raise AuthenticationException("User not found")

    if not user.is_active:
        auth_logger.warning(
            f"Authentication failed: account {user.status.value} {user_id}"
        )
        raise AuthenticationException(f"Account is {user.status.value}")

    return user


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """
    Dependency factory allowing only users with one of ``roles``.

    Raises:
        ForbiddenException: 403 for any other role.

    Example:
        AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
    """
    allowed = frozenset(roles)

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in allowed:
            auth_logger.warning(
                f"Access denied: role {user.role.value} for user {user.id}"
            )
            raise ForbiddenException(
                f"User role {user.role.value} is not authorized to access this route"
            )
        return user

    return dependency


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
ClientUser = Annotated[User, Depends(require_roles(UserRole.CLIENT))]
ReviewerUser = Annotated[
    User, Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER))
]
StaffUser = Annotated[
    User, Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.STAFF))
]
AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]


__all__ = [
    "get_current_user",
    "require_roles",
    "CurrentUser",
    "ClientUser",
    "ReviewerUser",
    "StaffUser",
    "AdminUser",
    "bearer_scheme",
]
