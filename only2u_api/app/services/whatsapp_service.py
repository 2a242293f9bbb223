"""
Delivery of OTP codes through the WhatsApp Cloud API.

The message uses a pre-approved authentication template whose body
and "copy code" URL button both take the OTP as their parameter.
"""

import logging

import httpx

from ..core import http_client
from ..core.config import settings
from ..core.logging_config import mask_phone

logger = logging.getLogger(__name__)


def whatsapp_recipient(phone: str) -> str:
    """Format a phone number the way the Cloud API expects it."""
    return phone.replace("+", "").replace(" ", "").lstrip("0")


class WhatsAppService:
    """Thin wrapper around the WhatsApp Cloud API ``messages`` endpoint."""

    @classmethod
    def build_otp_message(cls, phone: str, otp: str) -> dict:
        return {
            "messaging_product": "whatsapp",
            "to": whatsapp_recipient(phone),
            "type": "template",
            "template": {
                "name": settings.whatsapp_template_name,
                "language": {"code": settings.whatsapp_template_language},
                "components": [
                    {
                        "type": "body",
                        "parameters": [{"type": "text", "text": otp}],
                    },
                    {
                        "type": "button",
                        "sub_type": "url",
                        "index": "0",
                        "parameters": [{"type": "text", "text": otp}],
                    },
                ],
            },
        }

    @classmethod
    async def send_otp(cls, phone: str, otp: str) -> None:
        """Send ``otp`` to ``phone``.

        Raises ``RuntimeError`` when the service is not configured or
        the provider rejects the message.
        """
        if not settings.whatsapp_access_token or not settings.whatsapp_phone_number_id:
            raise RuntimeError("WhatsApp service not configured")
        url = f"{settings.whatsapp_api_url}/{settings.whatsapp_phone_number_id}/messages"
        headers = {
            "Authorization": f"Bearer {settings.whatsapp_access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with http_client.provider_client() as client:
                response = await client.post(
                    url, json=cls.build_otp_message(phone, otp), headers=headers
                )
        except httpx.HTTPError as exc:
            logger.error("WhatsApp request for %s failed: %s", mask_phone(phone), exc)
            raise RuntimeError("Failed to send WhatsApp message") from exc
        if response.is_error:
            try:
                message = response.json().get("error", {}).get("message")
            except ValueError:
                message = None
            logger.error(
                "WhatsApp API returned %s for %s: %s",
                response.status_code,
                mask_phone(phone),
                message,
            )
            raise RuntimeError(message or f"WhatsApp API error ({response.status_code})")
        logger.info("OTP sent over WhatsApp to %s", mask_phone(phone))
