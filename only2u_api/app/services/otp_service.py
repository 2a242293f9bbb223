"""
One-time passwords issued by the API.

Codes are stored in ``otp_codes`` and delivered over WhatsApp by
``WhatsAppService``.  A code is valid for ``otp_expiry_seconds`` and
for at most ``otp_max_attempts`` verification attempts; a successful
verification marks it as used.
"""

import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from ..core.config import settings
from ..core.db import get_connection, new_id, parse_iso, to_iso, utcnow, utcnow_iso
from ..core.logging_config import mask_phone

logger = logging.getLogger(__name__)


def normalize_phone(phone: str, country_code: Optional[str] = None) -> str:
    """Return ``phone`` in ``+<country><number>`` form.

    Numbers that already start with ``+`` are returned stripped but
    otherwise unchanged.  Others get ``country_code`` (or the default
    country code) prefixed.
    """
    phone = phone.strip()
    if phone.startswith("+"):
        return phone
    code = (country_code or settings.default_country_code).strip().lstrip("+")
    return f"+{code}{phone}"


def generate_otp(length: Optional[int] = None) -> str:
    length = length or settings.otp_length
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class OtpService:
    """Create and verify API-issued OTP codes."""

    @classmethod
    async def create_otp(cls, phone: str) -> Tuple[str, str, datetime]:
        """Store a fresh code for ``phone``.

        Returns ``(otp_id, otp, expires_at)``.
        """
        otp_id = new_id()
        otp = generate_otp()
        now = utcnow()
        expires_at = now + timedelta(seconds=settings.otp_expiry_seconds)
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO otp_codes (id, phone, otp, attempts, verified, expires_at, created_at)
                VALUES (?, ?, ?, 0, 0, ?, ?)
                """,
                (otp_id, phone, otp, to_iso(expires_at), to_iso(now)),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("OTP %s created for %s", otp_id, mask_phone(phone))
        return otp_id, otp, expires_at

    @classmethod
    async def verify_otp(cls, phone: str, otp: str, otp_id: Optional[str] = None) -> None:
        """Verify ``otp`` for ``phone``.

        With ``otp_id`` only that record is checked; without it every
        live record of the phone is tried.  Raises ``ValueError`` with a
        user-facing message when verification fails.
        """
        if otp_id:
            await cls._verify_by_id(phone, otp, otp_id)
        else:
            await cls._verify_by_phone(phone, otp)
        logger.info("OTP verified for %s", mask_phone(phone))

    @classmethod
    async def _verify_by_id(cls, phone: str, otp: str, otp_id: str) -> None:
        max_attempts = settings.otp_max_attempts
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT id, phone, otp, attempts, verified, expires_at FROM otp_codes WHERE id = ?",
                (otp_id,),
            ).fetchone()
            if not row:
                raise ValueError("OTP session not found")
            if row["phone"] != phone:
                raise ValueError("Phone number mismatch")
            if row["verified"]:
                raise ValueError("OTP already used")
            if parse_iso(row["expires_at"]) < utcnow():
                conn.execute("DELETE FROM otp_codes WHERE id = ?", (otp_id,))
                conn.commit()
                raise ValueError("OTP expired")
            if row["attempts"] >= max_attempts:
                conn.execute("DELETE FROM otp_codes WHERE id = ?", (otp_id,))
                conn.commit()
                raise ValueError("Maximum attempts exceeded")
            attempts = row["attempts"] + 1
            if not hmac.compare_digest(row["otp"].encode("utf-8"), otp.encode("utf-8")):
                conn.execute("UPDATE otp_codes SET attempts = ? WHERE id = ?", (attempts, otp_id))
                conn.commit()
                raise ValueError(f"Invalid OTP. {max_attempts - attempts} attempts remaining")
            conn.execute(
                "UPDATE otp_codes SET attempts = ?, verified = 1 WHERE id = ?",
                (attempts, otp_id),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def _verify_by_phone(cls, phone: str, otp: str) -> None:
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT id, otp, attempts FROM otp_codes
                WHERE phone = ? AND verified = 0 AND expires_at > ?
                ORDER BY created_at DESC
                """,
                (phone, utcnow_iso()),
            ).fetchall()
            matched = False
            for row in rows:
                attempts = row["attempts"] + 1
                if attempts > settings.otp_max_attempts:
                    conn.execute("DELETE FROM otp_codes WHERE id = ?", (row["id"],))
                    continue
                if hmac.compare_digest(row["otp"].encode("utf-8"), otp.encode("utf-8")):
                    conn.execute(
                        "UPDATE otp_codes SET attempts = ?, verified = 1 WHERE id = ?",
                        (attempts, row["id"]),
                    )
                    matched = True
                    break
                conn.execute("UPDATE otp_codes SET attempts = ? WHERE id = ?", (attempts, row["id"]))
            conn.commit()
        finally:
            conn.close()
        if not matched:
            raise ValueError("Invalid or expired OTP")

    @classmethod
    async def cleanup(cls) -> Dict[str, int]:
        """Delete expired OTP records and sessions."""
        now = utcnow_iso()
        conn = get_connection()
        try:
            otps = conn.execute("DELETE FROM otp_codes WHERE expires_at < ?", (now,)).rowcount
            sessions = conn.execute("DELETE FROM sessions WHERE expires_at < ?", (now,)).rowcount
            conn.commit()
        finally:
            conn.close()
        if otps or sessions:
            logger.info("Removed %s expired OTP codes and %s expired sessions", otps, sessions)
        return {"otp_codes": otps, "sessions": sessions}
