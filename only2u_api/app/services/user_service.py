"""
Business logic for users.

Users are created on their first successful OTP login and are keyed
by their normalised phone number.  Phones listed in the
``ADMIN_PHONES`` setting receive the admin role when their row is
created; everybody else starts as a regular user.
"""

import logging
import sqlite3
from typing import Optional, Tuple

from ..core.config import settings
from ..core.db import get_connection, new_id, utcnow_iso
from ..core.logging_config import mask_phone
from ..core.security import ADMIN_ROLE, USER_ROLE
from ..schemas.user import UserList, UserRead, UserUpdate
from .audit_service import AuditService

logger = logging.getLogger(__name__)

USER_COLUMNS = (
    "id, phone, full_name, email, profile_image_url, size, skin_tone, role_id, disabled, created_at"
)


def _admin_phones() -> set:
    return {p.strip() for p in settings.admin_phones.split(",") if p.strip()}


def _row_to_user(row: sqlite3.Row) -> UserRead:
    return UserRead(
        id=row["id"],
        phone=row["phone"],
        full_name=row["full_name"],
        email=row["email"],
        profile_image_url=row["profile_image_url"],
        size=row["size"],
        skin_tone=row["skin_tone"],
        role_id=row["role_id"],
        disabled=bool(row["disabled"]),
        created_at=row["created_at"],
    )


class UserService:
    """Service for user lookup, onboarding and administration."""

    @classmethod
    async def get_or_create_by_phone(cls, phone: str) -> Tuple[UserRead, bool]:
        """Return the user owning ``phone``, creating it when missing.

        Returns a ``(user, is_new_user)`` tuple.
        """
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE phone = ?", (phone,)
            ).fetchone()
            if row:
                return _row_to_user(row), False
            user_id = new_id()
            now = utcnow_iso()
            role_id = ADMIN_ROLE if phone in _admin_phones() else USER_ROLE
            try:
                conn.execute(
                    """
                    INSERT INTO users (id, phone, role_id, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (user_id, phone, role_id, now, now),
                )
                conn.commit()
            except sqlite3.IntegrityError:
                # Concurrent first login for the same phone
                conn.rollback()
                row = conn.execute(
                    f"SELECT {USER_COLUMNS} FROM users WHERE phone = ?", (phone,)
                ).fetchone()
                return _row_to_user(row), False
            row = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        finally:
            conn.close()
        logger.info("Created user %s for phone %s", user_id, mask_phone(phone))
        await AuditService.record(
            user_id=user_id,
            action="create",
            object_type="user",
            object_id=user_id,
            details={"role_id": role_id},
        )
        return _row_to_user(row), True

    @classmethod
    async def get_user(cls, user_id: str) -> UserRead:
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise ValueError(f"User {user_id} not found")
        return _row_to_user(row)

    @classmethod
    async def update_profile(cls, user_id: str, data: UserUpdate) -> UserRead:
        """Update the profile fields that were supplied in ``data``."""
        fields = data.model_dump(exclude_unset=True)
        conn = get_connection()
        try:
            exists = conn.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone()
            if not exists:
                raise ValueError(f"User {user_id} not found")
            if fields:
                assignments = ", ".join(f"{name} = ?" for name in fields)
                conn.execute(
                    f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                    (*fields.values(), utcnow_iso(), user_id),
                )
                conn.commit()
            row = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        finally:
            conn.close()
        if fields:
            await AuditService.record(
                user_id=user_id,
                action="update",
                object_type="user",
                object_id=user_id,
                details={"fields": sorted(fields)},
            )
        return _row_to_user(row)

    @classmethod
    async def list_users(
        cls,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
    ) -> UserList:
        """List users newest first.

        ``search`` matches a substring of the phone number, name or
        email.
        """
        where = ""
        params: list = []
        if search:
            where = " WHERE phone LIKE ? OR full_name LIKE ? OR email LIKE ?"
            pattern = f"%{search}%"
            params.extend([pattern, pattern, pattern])
        conn = get_connection()
        try:
            total = conn.execute(f"SELECT COUNT(*) FROM users{where}", tuple(params)).fetchone()[0]
            rows = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users{where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
        finally:
            conn.close()
        return UserList(users=[_row_to_user(r) for r in rows], total=total, page=page, limit=limit)

    @classmethod
    async def delete_user(cls, user_id: str, actor_id: Optional[str] = None) -> None:
        """Delete a user.

        Sessions, notifications and preferences go with the user
        (``ON DELETE CASCADE``); reviews and feedback stay with their
        user reference cleared.
        """
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            if cursor.rowcount == 0:
                raise ValueError(f"User {user_id} not found")
            conn.commit()
        finally:
            conn.close()
        logger.info("User %s deleted by %s", user_id, actor_id)
        await AuditService.record(
            user_id=actor_id,
            action="delete",
            object_type="user",
            object_id=user_id,
        )

    @classmethod
    async def set_disabled(cls, user_id: str, disabled: bool, actor_id: Optional[str] = None) -> UserRead:
        """Disable or re-enable an account.

        A disabled user's tokens are refused and new logins are
        rejected until the account is re-enabled.
        """
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE users SET disabled = ?, updated_at = ? WHERE id = ?",
                (1 if disabled else 0, utcnow_iso(), user_id),
            )
            if cursor.rowcount == 0:
                raise ValueError(f"User {user_id} not found")
            conn.commit()
            row = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        finally:
            conn.close()
        logger.info("User %s %s by %s", user_id, "disabled" if disabled else "enabled", actor_id)
        await AuditService.record(
            user_id=actor_id,
            action="disable" if disabled else "enable",
            object_type="user",
            object_id=user_id,
        )
        return _row_to_user(row)
