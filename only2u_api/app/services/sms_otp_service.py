"""
OTP login through the Sisdial SMS gateway.

Unlike the WhatsApp path the gateway generates, stores and validates
the code itself; the API only forwards the phone number and the code
typed by the user.
"""

import logging
import re
from typing import Optional

import httpx

from ..core import http_client
from ..core.config import settings
from ..core.logging_config import mask_phone

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "your One Time Password is: {otp} Thank You"


class SmsOtpService:
    """Generate and validate OTP codes with the Sisdial gateway."""

    @staticmethod
    def _check_configured() -> None:
        if not settings.sisdial_user_id or not settings.sisdial_api_key:
            raise RuntimeError("SMS gateway not configured")

    @staticmethod
    async def _call(endpoint: str, params: dict) -> dict:
        # The gateway's documented paths carry a double slash.
        url = f"{settings.sisdial_base_url}//{endpoint}"
        try:
            async with http_client.provider_client() as client:
                response = await client.get(url, params=params, headers={"Accept": "application/json"})
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            logger.error("Sisdial %s failed: %s", endpoint, exc)
            raise RuntimeError("SMS gateway request failed") from exc
        except ValueError as exc:
            logger.error("Sisdial %s returned a non-JSON body", endpoint)
            raise RuntimeError("SMS gateway returned an invalid response") from exc

    @classmethod
    async def generate_otp(
        cls,
        mobile_no: str,
        time_to_alive: Optional[int] = None,
        message: str = DEFAULT_MESSAGE,
    ) -> Optional[str]:
        """Ask the gateway to send a code to ``mobile_no``.

        Returns the gateway's OTP id, which may be passed back to
        :meth:`verify_otp`.
        """
        cls._check_configured()
        data = await cls._call(
            "generateOtp.jsp",
            {
                "userid": settings.sisdial_user_id,
                "key": settings.sisdial_api_key,
                "mobileno": mobile_no,
                "timetoalive": time_to_alive or settings.sisdial_time_to_alive,
                "message": message,
            },
        )
        if data.get("result") != "success":
            logger.warning("Sisdial refused OTP for %s: %s", mask_phone(mobile_no), data)
            raise RuntimeError("Failed to generate OTP")
        logger.info("SMS OTP sent to %s", mask_phone(mobile_no))
        return data.get("otpld")

    @classmethod
    async def verify_otp(cls, otp: str, mobile_no: str, otp_id: Optional[str] = None) -> None:
        """Validate ``otp`` with the gateway.

        Raises ``ValueError`` when the code is malformed or rejected.
        """
        digits = re.sub(r"\D", "", otp or "")
        if len(digits) != 6:
            raise ValueError("OTP must be 6 digits")
        params = {"otp": digits, "mobileno": mobile_no}
        if otp_id:
            params["otpid"] = otp_id
        data = await cls._call("validateOtpApi.jsp", params)
        if data.get("result") != "success":
            raise ValueError("Invalid OTP code")
        logger.info("SMS OTP verified for %s", mask_phone(mobile_no))
