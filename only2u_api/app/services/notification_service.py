"""
Push notifications, notification history and preferences.

Push messages are delivered through the Expo push service, which
accepts up to 100 messages per request.  Broadcasts are split into
chunks of ``settings.expo_push_chunk_size``; a failing chunk is logged
and counted but does not stop the remaining chunks.
"""

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..core import http_client
from ..core.config import settings
from ..core.db import get_connection, new_id, utcnow_iso
from ..schemas.notification import BroadcastResult, NotificationPreferences, NotificationRead
from .audit_service import AuditService

logger = logging.getLogger(__name__)

EXPO_HEADERS = {
    "Accept": "application/json",
    "Accept-encoding": "gzip, deflate",
    "Content-Type": "application/json",
}

PREFERENCE_FIELDS = ("push_enabled", "email_enabled", "order_updates", "promotions", "new_products")


def chunked(items: List[Any], size: int) -> List[List[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def build_push_message(token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> dict:
    return {"to": token, "sound": "default", "title": title, "body": body, "data": data or {}}


def _row_to_notification(row: sqlite3.Row) -> NotificationRead:
    return NotificationRead(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        title=row["title"],
        body=row["body"],
        data=json.loads(row["data"]) if row["data"] else None,
        read=bool(row["is_read"]),
        created_at=row["created_at"],
    )


class NotificationService:
    """Register devices, send pushes and manage notification history."""

    @classmethod
    async def send_push(cls, messages: List[dict]) -> Tuple[int, int]:
        """POST ``messages`` to Expo in chunks.

        Returns ``(chunks, failed_chunks)``.
        """
        chunks = chunked(messages, settings.expo_push_chunk_size)
        failed = 0
        async with http_client.provider_client() as client:
            for index, chunk in enumerate(chunks):
                try:
                    response = await client.post(settings.expo_push_url, json=chunk, headers=EXPO_HEADERS)
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    failed += 1
                    logger.error("Expo push chunk %s/%s failed: %s", index + 1, len(chunks), exc)
        return len(chunks), failed

    @classmethod
    async def register_push_token(cls, user_id: str, token: str) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE users SET expo_push_token = ?, updated_at = ? WHERE id = ?",
                (token.strip(), utcnow_iso(), user_id),
            )
            if cursor.rowcount == 0:
                raise ValueError(f"User {user_id} not found")
            conn.commit()
        finally:
            conn.close()
        logger.info("Push token registered for user %s", user_id)

    @classmethod
    async def broadcast(
        cls,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        actor_id: Optional[str] = None,
    ) -> BroadcastResult:
        """Send a push notification to every registered device."""
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT id, expo_push_token FROM users "
                "WHERE expo_push_token IS NOT NULL AND expo_push_token != ''"
            ).fetchall()
        finally:
            conn.close()
        tokens = sorted({row["expo_push_token"] for row in rows})
        if not tokens:
            logger.info("Broadcast skipped: no registered devices")
            return BroadcastResult(devices=0, chunks=0, failed_chunks=0)

        messages = [build_push_message(token, title, body, data) for token in tokens]
        chunks, failed = await cls.send_push(messages)
        logger.info("Broadcast sent to %s devices in %s chunks (%s failed)", len(tokens), chunks, failed)

        now = utcnow_iso()
        data_json = json.dumps(data) if data else None
        conn = get_connection()
        try:
            conn.executemany(
                """
                INSERT INTO notifications (id, user_id, type, title, body, data, is_read, created_at)
                VALUES (?, ?, 'push', ?, ?, ?, 0, ?)
                """,
                [(new_id(), row["id"], title, body, data_json, now) for row in rows],
            )
            conn.commit()
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="broadcast",
            object_type="notification",
            details={"title": title, "devices": len(tokens), "failed_chunks": failed},
        )
        return BroadcastResult(devices=len(tokens), chunks=chunks, failed_chunks=failed)

    @classmethod
    async def create_notification(
        cls,
        user_id: str,
        type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> NotificationRead:
        """Store a notification for a user.

        ``push`` notifications are also delivered to the user's device
        unless the user turned push notifications off.
        """
        notification_id = new_id()
        conn = get_connection()
        try:
            user = conn.execute(
                """
                SELECT u.id, u.expo_push_token, p.push_enabled
                FROM users u LEFT JOIN notification_preferences p ON p.user_id = u.id
                WHERE u.id = ?
                """,
                (user_id,),
            ).fetchone()
            if not user:
                raise ValueError(f"User {user_id} not found")
            conn.execute(
                """
                INSERT INTO notifications (id, user_id, type, title, body, data, is_read, created_at)
                VALUES (?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (notification_id, user_id, type, title, body, json.dumps(data) if data else None, utcnow_iso()),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM notifications WHERE id = ?", (notification_id,)).fetchone()
        finally:
            conn.close()
        push_enabled = user["push_enabled"] is None or bool(user["push_enabled"])
        if type == "push" and user["expo_push_token"] and push_enabled:
            await cls.send_push([build_push_message(user["expo_push_token"], title, body, data)])
        return _row_to_notification(row)

    @classmethod
    async def get_user_notifications(cls, user_id: str, limit: int = 50) -> List[NotificationRead]:
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_notification(r) for r in rows]

    @classmethod
    async def mark_read(cls, notification_id: str, user_id: str) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?",
                (notification_id, user_id),
            )
            if cursor.rowcount == 0:
                raise ValueError("Notification not found")
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def get_preferences(cls, user_id: str) -> NotificationPreferences:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM notification_preferences WHERE user_id = ?", (user_id,)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return NotificationPreferences()
        return NotificationPreferences(**{name: bool(row[name]) for name in PREFERENCE_FIELDS})

    @classmethod
    async def update_preferences(cls, user_id: str, prefs: NotificationPreferences) -> NotificationPreferences:
        values = [1 if getattr(prefs, name) else 0 for name in PREFERENCE_FIELDS]
        conn = get_connection()
        try:
            conn.execute(
                f"""
                INSERT INTO notification_preferences (user_id, {", ".join(PREFERENCE_FIELDS)}, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    {", ".join(f"{name} = excluded.{name}" for name in PREFERENCE_FIELDS)},
                    updated_at = excluded.updated_at
                """,
                (user_id, *values, utcnow_iso()),
            )
            conn.commit()
        finally:
            conn.close()
        return prefs
