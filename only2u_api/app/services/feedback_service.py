"""
Business logic for app feedback.

Feedback may be sent without an account.  Attached image URLs are
stored as a JSON array.
"""

import json
import logging
import sqlite3
from typing import List, Optional

from ..core.db import get_connection, new_id, utcnow_iso
from ..schemas.feedback import FeedbackCreate, FeedbackPage, FeedbackRead
from .audit_service import AuditService

logger = logging.getLogger(__name__)

FEEDBACK_COLUMNS = (
    "id, user_id, user_email, user_name, feedback_text, image_urls, category, status, created_at, updated_at"
)


def _row_to_feedback(row: sqlite3.Row) -> FeedbackRead:
    return FeedbackRead(
        id=row["id"],
        user_id=row["user_id"],
        user_email=row["user_email"],
        user_name=row["user_name"],
        feedback_text=row["feedback_text"],
        image_urls=json.loads(row["image_urls"]) if row["image_urls"] else None,
        category=row["category"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class FeedbackService:
    """Service for submitting and triaging feedback."""

    @classmethod
    async def create_feedback(cls, data: FeedbackCreate, user_id: Optional[str] = None) -> FeedbackRead:
        feedback_id = new_id()
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO feedback (
                    id, user_id, user_email, user_name, feedback_text,
                    image_urls, category, status, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, 'pending', ?)
                """,
                (
                    feedback_id,
                    user_id,
                    data.user_email,
                    (data.user_name or "").strip() or "Anonymous",
                    data.feedback_text,
                    json.dumps(data.image_urls) if data.image_urls else None,
                    data.category or "general",
                    utcnow_iso(),
                ),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT {FEEDBACK_COLUMNS} FROM feedback WHERE id = ?", (feedback_id,)
            ).fetchone()
        finally:
            conn.close()
        logger.info("Feedback %s received (user %s)", feedback_id, user_id or "anonymous")
        await AuditService.record(
            user_id=user_id,
            action="create",
            object_type="feedback",
            object_id=feedback_id,
            details={"category": row["category"]},
        )
        return _row_to_feedback(row)

    @classmethod
    async def get_feedback(cls, feedback_id: str) -> FeedbackRead:
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {FEEDBACK_COLUMNS} FROM feedback WHERE id = ?", (feedback_id,)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise ValueError("Feedback not found")
        return _row_to_feedback(row)

    @classmethod
    async def get_user_feedback(cls, user_id: str) -> List[FeedbackRead]:
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT {FEEDBACK_COLUMNS} FROM feedback WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_feedback(r) for r in rows]

    @classmethod
    async def list_feedback(
        cls,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        category: Optional[str] = None,
    ) -> FeedbackPage:
        """List all feedback, newest first, optionally filtered by status and category."""
        where_clauses: List[str] = []
        params: list = []
        if status:
            where_clauses.append("status = ?")
            params.append(status)
        if category:
            where_clauses.append("category = ?")
            params.append(category)
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        conn = get_connection()
        try:
            total = conn.execute(f"SELECT COUNT(*) FROM feedback{where}", tuple(params)).fetchone()[0]
            rows = conn.execute(
                f"SELECT {FEEDBACK_COLUMNS} FROM feedback{where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
        finally:
            conn.close()
        return FeedbackPage(feedback=[_row_to_feedback(r) for r in rows], total=total, page=page, limit=limit)

    @classmethod
    async def update_status(cls, feedback_id: str, status: str, actor_id: Optional[str] = None) -> FeedbackRead:
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE feedback SET status = ?, updated_at = ? WHERE id = ?",
                (status, utcnow_iso(), feedback_id),
            )
            if cursor.rowcount == 0:
                raise ValueError("Feedback not found")
            conn.commit()
            row = conn.execute(
                f"SELECT {FEEDBACK_COLUMNS} FROM feedback WHERE id = ?", (feedback_id,)
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="update",
            object_type="feedback",
            object_id=feedback_id,
            details={"status": status},
        )
        return _row_to_feedback(row)

    @classmethod
    async def delete_feedback(cls, feedback_id: str, actor_id: Optional[str] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM feedback WHERE id = ?", (feedback_id,))
            if cursor.rowcount == 0:
                raise ValueError("Feedback not found")
            conn.commit()
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="delete",
            object_type="feedback",
            object_id=feedback_id,
        )
