"""
Authentication router for handling all auth-related endpoints.

This module provides endpoints for:
- Client registration
- Password login with the optional emailed second factor
- The current account and its details
- Password change and the forgot/reset password flow

All endpoints are prefixed with /auth when mounted in the main app.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.crud import client_db
from app.core.db.models import User
from app.core.dependencies import (
    CurrentUser,
    ProfileUpdateVerifiedUser,
    get_async_session,
)
from app.core.exceptions.handlers import exception_schema
from app.core.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    OTPRequiredResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UpdateDetailsRequest,
    UserResponse,
)
from app.core.schemas.client import ClientResponse
from app.core.services.auth import AuthService
from app.core.services.rate_limit import rate_limit_by_ip


router = APIRouter(responses=exception_schema)

_auth_rate_limit = Depends(
    rate_limit_by_ip(
        limit=settings.RATE_LIMIT_AUTH_REQUESTS,
        window=settings.RATE_LIMIT_DEFAULT_WINDOW,
    )
)


def _token_response(user: User) -> TokenResponse:
    token = AuthService.create_access_token(user)
    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a client account",
    description="""
## Register

Create a client account (login plus client profile) and sign in. A welcome
email is sent; a failure to send it does not fail the registration.

### Password Requirements

- Minimum **8 characters**
- At least **one uppercase letter**, **one lowercase letter** and **one digit**

### Error Responses

| Status | Reason |
|--------|--------|
| `409 Conflict` | Email already registered |
| `422 Unprocessable Entity` | Invalid email or weak password |
""",
)
async def register(
    request_data: RegisterRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TokenResponse:
    user = await AuthService.register(
        session,
        name=request_data.name,
        email=request_data.email,
        password=request_data.password,
        phone=request_data.phone,
    )
    return _token_response(user)


@router.post(
    "/login",
    response_model=TokenResponse | OTPRequiredResponse,
    summary="Log in",
    dependencies=[_auth_rate_limit],
    description="""
## Log In

Password login. Accounts with two-factor enabled log in in two steps:

1. `{email, password}` → **200** `{"require_otp": true, "expires_at": ...}`
   and a `login` code is emailed
2. `{email, password, otp}` → **200** with the access token

### Error Responses

| Status | Reason |
|--------|--------|
| `400 Bad Request` | Wrong, expired or exhausted code |
| `401 Unauthorized` | Invalid credentials or inactive account |
| `429 Too Many Requests` | IP rate limit |
""",
)
async def login(
    request_data: LoginRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TokenResponse | OTPRequiredResponse:
    result = await AuthService.login(
        session,
        email=request_data.email,
        password=request_data.password,
        otp=request_data.otp,
    )

    if result.require_otp:
        assert result.otp_expires_at is not None
        return OTPRequiredResponse(
            email=result.user.email, expires_at=result.otp_expires_at
        )

    return _token_response(result.user)


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Current account",
)
async def get_me(
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MeResponse:
    """Return the authenticated user and, for clients, their profile."""
    async with session.begin():
        client = await client_db.get_by_user_id(session, user.id)

    return MeResponse(
        user=UserResponse.model_validate(user),
        client=ClientResponse.model_validate(client) if client else None,
    )


@router.put(
    "/details",
    response_model=UserResponse,
    summary="Update account details",
    description="""
## Update Account Details

Change name, email or phone. Requires a `profile_update` code verified
within the last `OTP_VERIFICATION_FRESHNESS_MINUTES`; otherwise **403** with
`{"require_otp": true, "purpose": "profile_update"}`.

Changing the email resets `is_email_verified`.
""",
)
async def update_details(
    request_data: UpdateDetailsRequest,
    user: ProfileUpdateVerifiedUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> UserResponse:
    updated = await AuthService.update_details(
        session, user, request_data.model_dump(exclude_unset=True)
    )
    return UserResponse.model_validate(updated)


@router.put(
    "/password",
    response_model=TokenResponse,
    summary="Change password",
)
async def change_password(
    request_data: ChangePasswordRequest,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TokenResponse:
    """Change the password and return a fresh token."""
    updated = await AuthService.change_password(
        session,
        user,
        current_password=request_data.current_password,
        new_password=request_data.new_password,
    )
    return _token_response(updated)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset link",
    dependencies=[_auth_rate_limit],
    description="""
## Forgot Password

Email a reset link valid for `PASSWORD_RESET_EXPIRY_MINUTES`. The response
is the same whether or not the email belongs to an account.
""",
)
async def forgot_password(
    request_data: ForgotPasswordRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await AuthService.forgot_password(session, request_data.email)
    return MessageResponse(
        message="If the email is registered, a reset link has been sent."
    )


@router.put(
    "/reset-password/{token}",
    response_model=TokenResponse,
    summary="Reset password",
)
async def reset_password(
    token: str,
    request_data: ResetPasswordRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TokenResponse:
    """Set a new password with the emailed token and sign in."""
    user = await AuthService.reset_password(session, token, request_data.password)
    return _token_response(user)


@router.get(
    "/logout",
    response_model=MessageResponse,
    summary="Log out",
)
async def logout(user: CurrentUser) -> MessageResponse:
    """Tokens are stateless; the client discards its token."""
    return MessageResponse(message="Logged out successfully")
