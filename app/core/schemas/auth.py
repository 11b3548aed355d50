"""
Authentication schemas for request validation and response serialization.

- Registration and login (with the optional second factor)
- Access tokens
- Password change and reset
- Account details
"""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    field_validator,
)

from app.core.config import MAX_CODE_LENGTH
from app.core.enums import TwoFactorMethod, UserRole, UserStatus
from app.core.schemas.client import ClientResponse

# Password with validation constraints
PasswordStr = Annotated[
    str,
    StringConstraints(min_length=8, max_length=128),
    Field(description="Password (min 8 characters)"),
]

NameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=100),
]

PhoneStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=5, max_length=32),
]

# Digits only; the length is checked against the stored code
CodeStr = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=1,
        max_length=MAX_CODE_LENGTH,
        pattern=r"^\d+$",
    ),
    Field(description="Numeric verification code"),
]


def check_password_complexity(v: str) -> str:
    """Require an uppercase letter, a lowercase letter and a digit."""
    if not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


class MessageResponse(BaseModel):
    """Generic message response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"message": "Operation completed successfully", "success": True}
        }
    )

    message: str
    success: bool = True


class RegisterRequest(BaseModel):
    """Request schema for client registration."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Jane Doe",
                "email": "jane@example.com",
                "password": "SecurePass123",
                "phone": "+15555550100",
            }
        }
    )

    name: NameStr
    email: Annotated[EmailStr, Field(description="Login email address")]
    password: PasswordStr
    phone: PhoneStr | None = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_complexity(v)


class LoginRequest(BaseModel):
    """
    Request schema for password login.

    ``otp`` is only needed when two-factor is enabled; the first request
    without it triggers the code email.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "jane@example.com",
                "password": "SecurePass123",
                "otp": "482913",
            }
        }
    )

    email: Annotated[EmailStr, Field(description="Login email address")]
    password: Annotated[str, Field(min_length=1, description="Account password")]
    otp: CodeStr | None = None


class UserResponse(BaseModel):
    """Public view of a user; never includes hashes or reset tokens."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    role: UserRole
    phone: str | None = None
    status: UserStatus
    is_email_verified: bool
    two_factor_enabled: bool
    two_factor_method: TwoFactorMethod
    last_login: datetime | None = None
    created_at: datetime


class TokenResponse(BaseModel):
    """Response schema for successful authentication."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "expires_in": 2592000,
                "user": {
                    "id": "550e8400-e29b-41d4-a716-446655440000",
                    "name": "Jane Doe",
                    "email": "jane@example.com",
                    "role": "client",
                },
            }
        }
    )

    access_token: Annotated[str, Field(description="JWT access token")]
    token_type: Literal["bearer"] = "bearer"
    expires_in: Annotated[int, Field(description="Token lifetime in seconds")]
    user: UserResponse


class OTPRequiredResponse(BaseModel):
    """Login paused until the emailed code is submitted."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "require_otp": True,
                "message": "Verification code sent to your email",
                "email": "jane@example.com",
                "expires_at": "2025-01-15T10:40:00Z",
            }
        }
    )

    require_otp: Literal[True] = True
    message: str = "Verification code sent to your email"
    email: EmailStr
    expires_at: datetime


class MeResponse(BaseModel):
    """The current user plus their client profile, if any."""

    user: UserResponse
    client: ClientResponse | None = None


class UpdateDetailsRequest(BaseModel):
    """Request schema for updating account details."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"name": "Jane Smith", "phone": "+15555550101"}
        }
    )

    name: NameStr | None = None
    email: EmailStr | None = None
    phone: PhoneStr | None = None


class ChangePasswordRequest(BaseModel):
    """Request schema for changing password (authenticated user)."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "current_password": "OldSecurePass123",
                "new_password": "NewSecurePass456",
            }
        }
    )

    current_password: Annotated[str, Field(description="Current password")]
    new_password: PasswordStr

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_complexity(v)


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"example": {"email": "jane@example.com"}}
    )

    email: Annotated[EmailStr, Field(description="Email address for password reset")]


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"example": {"password": "NewSecurePass456"}}
    )

    password: PasswordStr

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_complexity(v)


__all__ = [
    "PasswordStr",
    "CodeStr",
    "check_password_complexity",
    "MessageResponse",
    "RegisterRequest",
    "LoginRequest",
    "UserResponse",
    "TokenResponse",
    "OTPRequiredResponse",
    "MeResponse",
    "UpdateDetailsRequest",
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
]
