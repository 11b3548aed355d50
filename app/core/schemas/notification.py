"""
Two-factor settings schemas.
"""

from pydantic import BaseModel, ConfigDict

from app.core.enums import TwoFactorMethod


class TwoFactorStatusResponse(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={"example": {"enabled": True, "method": "email"}},
    )

    enabled: bool
    method: TwoFactorMethod


class TwoFactorEnableRequest(BaseModel):
    model_config = ConfigDict(json_schema_extra={"example": {"method": "email"}})

    method: TwoFactorMethod = TwoFactorMethod.EMAIL


__all__ = ["TwoFactorStatusResponse", "TwoFactorEnableRequest"]
