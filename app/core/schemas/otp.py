"""
One-time code schemas.

Responses carry the expiry but never the code or its hash; the code only
travels by email.
"""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.enums import OTPPurpose
from app.core.schemas.auth import CodeStr


class OTPRequest(BaseModel):
    """Request schema for generating or resending a code."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"email": "user@example.com", "purpose": "login"}
        }
    )

    email: Annotated[EmailStr, Field(description="Email of an existing account")]
    purpose: OTPPurpose


class OTPVerifyRequest(BaseModel):
    """Request schema for verifying a code."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "otp": "482913",
                "purpose": "login",
            }
        }
    )

    email: Annotated[EmailStr, Field(description="Email the code was sent to")]
    otp: CodeStr
    purpose: OTPPurpose


class OTPIssuedResponse(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Verification code sent to your email",
                "email": "user@example.com",
                "purpose": "login",
                "expires_at": "2025-01-15T10:40:00Z",
            }
        }
    )

    message: str = "Verification code sent to your email"
    email: EmailStr
    purpose: OTPPurpose
    expires_at: datetime


class OTPVerifiedResponse(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "verified": True,
                "message": "Code verified successfully",
                "purpose": "email_verification",
                "verified_at": "2025-01-15T10:32:00Z",
                "email_verified": True,
            }
        }
    )

    verified: bool = True
    message: str = "Code verified successfully"
    purpose: OTPPurpose
    verified_at: datetime
    email_verified: Annotated[
        bool | None,
        Field(description="Set for email_verification codes"),
    ] = None


__all__ = [
    "OTPRequest",
    "OTPVerifyRequest",
    "OTPIssuedResponse",
    "OTPVerifiedResponse",
]
