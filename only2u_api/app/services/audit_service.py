"""
Audit service for recording and querying system actions.

This module provides a centralized API for writing audit events to the
``audit_logs`` table and retrieving them with filters and pagination.
Use this service to record significant actions (create, update,
delete) performed by users or the system.  Only administrators
should have access to read audit logs.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Optional

from ..core.db import get_connection, utcnow_iso
from ..schemas.audit import AuditLogPage, AuditLogRead

logger = logging.getLogger(__name__)

AUDIT_COLUMNS = "id, user_id, action, object_type, object_id, timestamp, details"


def _row_to_log(row: sqlite3.Row) -> AuditLogRead:
    details = row["details"]
    if details:
        try:
            details = json.loads(details)
        except json.JSONDecodeError:
            pass
    return AuditLogRead(
        id=row["id"],
        user_id=row["user_id"],
        action=row["action"],
        object_type=row["object_type"],
        object_id=row["object_id"],
        timestamp=row["timestamp"],
        details=details,
    )


class AuditService:
    """Service class for writing and retrieving audit logs."""

    @classmethod
    async def log(
        cls,
        user_id: Optional[str],
        action: str,
        object_type: str,
        object_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert a new audit record.

        Parameters
        ----------
        user_id : Optional[str]
            ID of the user performing the action.  ``None`` for
            system-initiated actions and the static super-admin token.
        action : str
            Short description of the action (e.g. "create", "update", "delete").
        object_type : str
            Type of object affected (e.g. "review", "coupon", "payment").
        object_id : Optional[str]
            Primary key of the affected object, if applicable.
        details : Optional[dict]
            Additional structured data about the action, stored as JSON.
        """
        conn = get_connection()
        try:
            details_json = json.dumps(details) if details else None
            conn.execute(
                """
                INSERT INTO audit_logs (user_id, action, object_type, object_id, timestamp, details)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, action, object_type, object_id, utcnow_iso(), details_json),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def record(cls, *args: Any, **kwargs: Any) -> None:
        """Like :meth:`log`, but a failed write only produces a warning.

        Business operations call this after their own transaction has
        been committed, so the audit trail never undoes a user action.
        """
        try:
            await cls.log(*args, **kwargs)
        except sqlite3.Error as exc:
            logger.warning("Failed to write audit record %s: %s", kwargs.get("action"), exc)

    @classmethod
    async def list_logs(
        cls,
        user_id: Optional[str] = None,
        object_type: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> AuditLogPage:
        """Return one page of audit records, newest first.

        ``start_date`` and ``end_date`` are ISO strings compared with
        the ``timestamp`` column; a bare date such as ``2024-05-01``
        works as a lower bound.
        """
        filters = {
            "user_id = ?": user_id,
            "object_type = ?": object_type,
            "action = ?": action,
            "timestamp >= ?": start_date,
            "timestamp <= ?": end_date,
        }
        active = {clause: value for clause, value in filters.items() if value}
        where = " WHERE " + " AND ".join(active) if active else ""
        params = tuple(active.values())
        conn = get_connection()
        try:
            total = conn.execute(f"SELECT COUNT(*) FROM audit_logs{where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT {AUDIT_COLUMNS} FROM audit_logs{where} "
                "ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
        finally:
            conn.close()
        return AuditLogPage(logs=[_row_to_log(r) for r in rows], total=total, limit=limit, offset=offset)
