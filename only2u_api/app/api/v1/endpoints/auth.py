"""
Authentication endpoints for API v1.

Users log in with a one-time password.  Two delivery paths exist:

* ``/send-otp`` and ``/verify-otp``: the API generates the code and
  delivers it over WhatsApp.
* ``/sms/send-otp`` and ``/sms/verify-otp``: the Sisdial SMS gateway
  generates and validates the code.

Both paths end with a session token.  Errors carry a ``{"code",
"message"}`` detail so the mobile app can branch on the code.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status

from only2u_api.app.core.logging_config import mask_phone
from only2u_api.app.schemas.auth import (
    RefreshResponse,
    SendOtpRequest,
    SendOtpResponse,
    SessionRead,
    SessionTokenRequest,
    SessionUser,
    SmsSendOtpResponse,
    SmsVerifyOtpRequest,
    ValidateResponse,
    VerifyOtpRequest,
)
from only2u_api.app.services.otp_service import OtpService, normalize_phone
from only2u_api.app.services.session_service import SessionService
from only2u_api.app.services.sms_otp_service import SmsOtpService
from only2u_api.app.services.user_service import UserService
from only2u_api.app.services.whatsapp_service import WhatsAppService

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


def _normalized(phone: str, country_code: Optional[str] = None) -> str:
    normalized = normalize_phone(phone, country_code)
    digits = normalized[1:]
    if not digits.isdigit() or len(digits) < 8:
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST", "Invalid phone number")
    return normalized


async def _login(phone: str) -> SessionRead:
    user, is_new_user = await UserService.get_or_create_by_phone(phone)
    if user.disabled:
        raise _error(status.HTTP_403_FORBIDDEN, "INVALID_REQUEST", "User account disabled")
    token, expires_at = await SessionService.create_session(phone, user.id)
    return SessionRead(
        verified=True,
        session_token=token,
        expires_at=expires_at,
        user=SessionUser(id=user.id, phone=user.phone, is_new_user=is_new_user),
    )


@router.post("/send-otp", response_model=SendOtpResponse, summary="Send an OTP over WhatsApp")
async def send_otp(data: SendOtpRequest) -> SendOtpResponse:
    phone = _normalized(data.phone, data.country_code)
    otp_id, otp, expires_at = await OtpService.create_otp(phone)
    try:
        await WhatsAppService.send_otp(phone, otp)
    except RuntimeError as e:
        logger.error("Could not deliver OTP to %s: %s", mask_phone(phone), e)
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "SEND_FAILED", str(e))
    return SendOtpResponse(otp_id=otp_id, expires_at=expires_at, message="OTP sent successfully")


@router.post("/verify-otp", response_model=SessionRead, summary="Verify an OTP and open a session")
async def verify_otp(data: VerifyOtpRequest) -> SessionRead:
    """Verify the code and log the user in.

    The user row is created on the first successful login;
    ``user.is_new_user`` tells the app to show onboarding.
    """
    phone = _normalized(data.phone)
    try:
        await OtpService.verify_otp(phone, data.otp, data.otp_id)
    except ValueError as e:
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_OTP", str(e))
    return await _login(phone)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(data: SessionTokenRequest) -> RefreshResponse:
    try:
        token, expires_at = await SessionService.refresh_session(data.session_token)
    except ValueError as e:
        raise _error(status.HTTP_401_UNAUTHORIZED, "INVALID_SESSION", str(e))
    return RefreshResponse(session_token=token, expires_at=expires_at)


@router.post("/logout")
async def logout(data: SessionTokenRequest) -> dict:
    await SessionService.invalidate_session(data.session_token)
    return {"success": True}


@router.post("/validate", response_model=ValidateResponse)
async def validate(data: SessionTokenRequest) -> ValidateResponse:
    result = await SessionService.validate_session(data.session_token)
    if not result["valid"]:
        return ValidateResponse(valid=False, error=result["error"])
    return ValidateResponse(valid=True, phone=result["phone"])


@router.post("/sms/send-otp", response_model=SmsSendOtpResponse, summary="Send an OTP by SMS")
async def sms_send_otp(data: SendOtpRequest) -> SmsSendOtpResponse:
    phone = _normalized(data.phone, data.country_code)
    try:
        otp_id = await SmsOtpService.generate_otp(phone)
    except RuntimeError as e:
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "SEND_FAILED", str(e))
    return SmsSendOtpResponse(otp_id=otp_id, message="OTP sent successfully")


@router.post("/sms/verify-otp", response_model=SessionRead, summary="Verify an SMS OTP and open a session")
async def sms_verify_otp(data: SmsVerifyOtpRequest) -> SessionRead:
    phone = _normalized(data.phone)
    try:
        await SmsOtpService.verify_otp(data.otp, phone, data.otp_id)
    except ValueError as e:
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_OTP", str(e))
    except RuntimeError as e:
        raise _error(status.HTTP_502_BAD_GATEWAY, "PROVIDER_ERROR", str(e))
    return await _login(phone)
