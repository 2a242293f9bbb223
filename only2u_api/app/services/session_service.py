"""
Login sessions.

A session row is created after a successful OTP verification and the
client receives a signed token pointing at it.  Refreshing replaces
the session with a new one; logging out invalidates it.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Tuple

from ..core.config import settings
from ..core.db import get_connection, new_id, parse_iso, to_iso, utcnow
from ..core.security import create_access_token, decode_access_token

logger = logging.getLogger(__name__)


class SessionService:
    """Create, validate, refresh and invalidate sessions."""

    @classmethod
    async def create_session(cls, phone: str, user_id: str) -> Tuple[str, datetime]:
        """Open a session for ``user_id`` and return ``(token, expires_at)``."""
        session_id = new_id()
        now = utcnow()
        lifetime = settings.session_expire_hours * 3600
        expires_at = now + timedelta(seconds=lifetime)
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO sessions (id, user_id, phone, is_valid, created_at, expires_at)
                VALUES (?, ?, ?, 1, ?, ?)
                """,
                (session_id, user_id, phone, to_iso(now), to_iso(expires_at)),
            )
            conn.commit()
        finally:
            conn.close()
        token = create_access_token(
            {"sub": phone, "user_id": user_id, "sid": session_id},
            expires_delta=lifetime,
        )
        logger.debug("Session %s opened for user %s", session_id, user_id)
        return token, expires_at

    @classmethod
    async def validate_session(cls, token: str) -> Dict[str, Any]:
        """Check a session token.

        Returns ``{"valid": True, "phone", "user_id", "session_id"}`` or
        ``{"valid": False, "error": <reason>}``.
        """
        payload = decode_access_token(token)
        if not payload or not payload.get("sid"):
            return {"valid": False, "error": "Session not found"}
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT id, user_id, phone, is_valid, expires_at FROM sessions WHERE id = ?",
                (payload["sid"],),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return {"valid": False, "error": "Session not found"}
        if not row["is_valid"]:
            return {"valid": False, "error": "Session invalidated"}
        if parse_iso(row["expires_at"]) < utcnow():
            return {"valid": False, "error": "Session expired"}
        return {
            "valid": True,
            "phone": row["phone"],
            "user_id": row["user_id"],
            "session_id": row["id"],
        }

    @classmethod
    async def refresh_session(cls, token: str) -> Tuple[str, datetime]:
        """Replace a valid session with a new one.

        Raises ``ValueError`` when ``token`` does not refer to a valid
        session.
        """
        result = await cls.validate_session(token)
        if not result["valid"]:
            raise ValueError(result["error"])
        conn = get_connection()
        try:
            conn.execute("DELETE FROM sessions WHERE id = ?", (result["session_id"],))
            conn.commit()
        finally:
            conn.close()
        return await cls.create_session(result["phone"], result["user_id"])

    @classmethod
    async def invalidate_session(cls, token: str) -> None:
        """Invalidate the session behind ``token``; unknown tokens are ignored."""
        payload = decode_access_token(token)
        if not payload or not payload.get("sid"):
            return
        conn = get_connection()
        try:
            conn.execute("UPDATE sessions SET is_valid = 0 WHERE id = ?", (payload["sid"],))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Session %s invalidated", payload["sid"])
