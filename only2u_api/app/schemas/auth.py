"""
Pydantic schemas for OTP login and sessions.

Both OTP paths (WhatsApp delivery of an API-generated code, and the
Sisdial SMS gateway which generates and validates its own code) end
in the same ``SessionRead`` payload.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SendOtpRequest(BaseModel):
    phone: str = Field(..., min_length=1, examples=["9876543210"])
    country_code: Optional[str] = Field(None, examples=["91"], description="Used when the phone has no leading '+'")

    @field_validator("phone")
    @classmethod
    def strip_phone(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Phone number is required")
        return v


class SendOtpResponse(BaseModel):
    otp_id: str
    expires_at: datetime
    message: str


class VerifyOtpRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    otp: str = Field(..., min_length=1)
    otp_id: Optional[str] = None

    @field_validator("phone", "otp")
    @classmethod
    def strip_value(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Phone and OTP are required")
        return v


class SessionUser(BaseModel):
    id: str
    phone: str
    is_new_user: bool


class SessionRead(BaseModel):
    verified: bool = True
    session_token: str
    expires_at: datetime
    user: SessionUser


class SessionTokenRequest(BaseModel):
    session_token: str = Field(..., min_length=1)


class RefreshResponse(BaseModel):
    session_token: str
    expires_at: datetime


class ValidateResponse(BaseModel):
    valid: bool
    phone: Optional[str] = None
    error: Optional[str] = None


class SmsSendOtpResponse(BaseModel):
    otp_id: Optional[str] = None
    message: str


class SmsVerifyOtpRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    otp: str = Field(..., min_length=1)
    otp_id: Optional[str] = None
