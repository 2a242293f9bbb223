"""
Session tokens and request authentication.

Tokens are compact JWTs signed with HMAC-SHA256 and base64url encoded.
Each token carries the user's phone (``sub``), the user ID and a
session ID (``sid``).  The session ID points to a row in the
``sessions`` table so that a token can be revoked on logout or
refresh before it expires; a token whose session row is missing,
invalidated or expired is rejected even if its signature is valid.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Callable, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import get_connection, parse_iso, utcnow

logger = logging.getLogger(__name__)

SUPER_ADMIN_ROLE = 1
ADMIN_ROLE = 2
USER_ROLE = 3
ADMIN_ROLES = (SUPER_ADMIN_ROLE, ADMIN_ROLE)


def _b64_url_encode(data: bytes) -> str:
    """Base64-url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64-url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, str], expires_delta: Optional[int] = None) -> str:
    """Create a signed JWT token with the given payload.

    The payload is extended with an ``exp`` field holding the expiry
    as a UNIX timestamp.

    Parameters
    ----------
    data : dict
        Claims to embed in the token (e.g. ``{"sub": "+919876543210"}``).
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.session_expire_hours``.

    Returns
    -------
    str
        A token of the form ``header.payload.signature``.
    """
    to_encode = data.copy()
    exp_seconds = expires_delta or settings.session_expire_hours * 3600
    to_encode["exp"] = int(time.time()) + exp_seconds
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str) -> Optional[Dict[str, str]]:
    """Verify and decode a token.

    Returns the payload when the signature matches and ``exp`` lies in
    the future, otherwise ``None``.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    expected_sig = _sign(signing_input, settings.secret_key)
    try:
        actual_sig = _b64_url_decode(signature_b64)
        if not hmac.compare_digest(expected_sig, actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    if data.get("exp") is None or int(data["exp"]) < int(time.time()):
        return None
    return data


security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def authenticate_token(token: str) -> Dict[str, str]:
    """Resolve a bearer token to the caller's identity.

    Raises ``HTTPException(401)`` when the token is unknown, revoked or
    expired, or the user has been disabled or deleted.
    """
    if settings.super_admin_static_token and hmac.compare_digest(
        token, settings.super_admin_static_token
    ):
        return {"sub": "static_super_admin", "user_id": None, "role_id": SUPER_ADMIN_ROLE, "sid": None}

    payload = decode_access_token(token)
    if not payload:
        raise _unauthorized("Invalid or expired token")

    conn = get_connection()
    try:
        row = conn.execute(
            """
            SELECT s.is_valid, s.expires_at, u.id AS user_id, u.role_id, u.disabled
            FROM sessions s JOIN users u ON u.id = s.user_id
            WHERE s.id = ?
            """,
            (payload.get("sid"),),
        ).fetchone()
    finally:
        conn.close()
    if not row or not row["is_valid"]:
        raise _unauthorized("Session not found or invalidated")
    if parse_iso(row["expires_at"]) < utcnow():
        raise _unauthorized("Session expired")
    if row["disabled"]:
        raise _unauthorized("User account disabled")
    payload["user_id"] = row["user_id"]
    payload["role_id"] = row["role_id"]
    return payload


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict[str, str]:
    """Dependency that retrieves the current authenticated user.

    Returns a dict with ``sub`` (phone), ``user_id``, ``role_id`` and
    ``sid``.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return authenticate_token(credentials.credentials)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Optional[Dict[str, str]]:
    """Like :func:`get_current_user` but anonymous callers get ``None``.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return authenticate_token(credentials.credentials)


def is_admin(current_user: Optional[Dict[str, str]]) -> bool:
    return bool(current_user) and current_user.get("role_id") in ADMIN_ROLES


def require_roles(*role_ids: int) -> Callable[[Dict[str, str]], Dict[str, str]]:
    """Dependency factory enforcing that the current user has one of ``role_ids``.

    Use via ``Depends(require_roles(1, 2))``.  Raises 403 for other
    roles.
    """

    def _role_dependency(current_user: Dict[str, str] = Depends(get_current_user)) -> Dict[str, str]:
        if current_user.get("role_id") not in role_ids:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _role_dependency


def get_current_account(current_user: Dict[str, str] = Depends(get_current_user)) -> Dict[str, str]:
    """Like :func:`get_current_user` but requires a real user session.

    The static super-admin token has no user row behind it and is
    refused by endpoints that act on "my" data.
    """
    if not current_user.get("user_id"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="A user session is required",
        )
    return current_user


def ensure_self_or_admin(current_user: Dict[str, str], user_id: str) -> None:
    """Raise 403 unless ``current_user`` is ``user_id`` or an administrator."""
    if current_user.get("user_id") != user_id and not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
