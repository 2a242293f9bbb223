"""
Business logic for product reviews.

Each user may review a product once.  Reviews are listed newest first
together with the product's review count and average rating.  Only
the author may edit a review; the author or an administrator may
delete it.
"""

import logging
import sqlite3
from typing import List, Optional

from ..core.db import get_connection, new_id, utcnow_iso
from ..schemas.review import ProductReviews, ReviewCreate, ReviewPage, ReviewRead, ReviewUpdate
from .audit_service import AuditService

logger = logging.getLogger(__name__)

REVIEW_COLUMNS = (
    "id, product_id, user_id, reviewer_name, rating, comment, is_verified, "
    "profile_image_url, helpful_count, created_at, updated_at"
)


class DuplicateReviewError(ValueError):
    """Raised when a user reviews the same product twice."""


def _row_to_review(row: sqlite3.Row) -> ReviewRead:
    return ReviewRead(
        id=row["id"],
        product_id=row["product_id"],
        user_id=row["user_id"],
        reviewer_name=row["reviewer_name"],
        rating=row["rating"],
        comment=row["comment"],
        is_verified=bool(row["is_verified"]),
        profile_image_url=row["profile_image_url"],
        helpful_count=row["helpful_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class ReviewService:
    """Service for handling product reviews."""

    @classmethod
    async def get_product_reviews(cls, product_id: str, page: int = 1, limit: int = 20) -> ProductReviews:
        """Return one page of a product's reviews with count and average rating.

        The average covers all reviews of the product, not just the
        returned page, and is rounded to one decimal (0 when the
        product has no reviews).
        """
        conn = get_connection()
        try:
            stats = conn.execute(
                "SELECT COUNT(*) AS total, AVG(rating) AS average FROM product_reviews WHERE product_id = ?",
                (product_id,),
            ).fetchone()
            rows = conn.execute(
                f"""
                SELECT {REVIEW_COLUMNS} FROM product_reviews
                WHERE product_id = ?
                ORDER BY created_at DESC
                LIMIT ? OFFSET ?
                """,
                (product_id, limit, (page - 1) * limit),
            ).fetchall()
        finally:
            conn.close()
        average = round(stats["average"], 1) if stats["average"] is not None else 0
        return ProductReviews(
            reviews=[_row_to_review(r) for r in rows],
            total=stats["total"],
            average_rating=average,
            page=page,
            limit=limit,
        )

    @classmethod
    async def create_review(
        cls,
        data: ReviewCreate,
        user_id: str,
        default_name: Optional[str] = None,
    ) -> ReviewRead:
        """Create a review by ``user_id``.

        The duplicate check and the insert run in one transaction.
        Raises ``DuplicateReviewError`` when the user already reviewed
        the product.
        """
        review_id = new_id()
        now = utcnow_iso()
        reviewer_name = (data.reviewer_name or "").strip() or default_name or "Anonymous"
        conn = get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            existing = conn.execute(
                "SELECT id FROM product_reviews WHERE product_id = ? AND user_id = ?",
                (data.product_id, user_id),
            ).fetchone()
            if existing:
                raise DuplicateReviewError("User has already reviewed this product")
            conn.execute(
                """
                INSERT INTO product_reviews (
                    id, product_id, user_id, reviewer_name, rating, comment,
                    is_verified, profile_image_url, helpful_count, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    review_id,
                    data.product_id,
                    user_id,
                    reviewer_name,
                    data.rating,
                    data.comment,
                    1 if data.is_verified else 0,
                    data.profile_image_url,
                    now,
                    now,
                ),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT {REVIEW_COLUMNS} FROM product_reviews WHERE id = ?", (review_id,)
            ).fetchone()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise DuplicateReviewError("User has already reviewed this product") from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("User %s reviewed product %s", user_id, data.product_id)
        await AuditService.record(
            user_id=user_id,
            action="create",
            object_type="review",
            object_id=review_id,
            details={"product_id": data.product_id, "rating": data.rating},
        )
        return _row_to_review(row)

    @classmethod
    async def get_review(cls, review_id: str) -> ReviewRead:
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {REVIEW_COLUMNS} FROM product_reviews WHERE id = ?", (review_id,)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise ValueError("Review not found")
        return _row_to_review(row)

    @classmethod
    async def get_user_reviews(cls, user_id: str) -> List[ReviewRead]:
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT {REVIEW_COLUMNS} FROM product_reviews WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_review(r) for r in rows]

    @classmethod
    async def list_reviews(
        cls,
        product_id: Optional[str] = None,
        user_id: Optional[str] = None,
        min_rating: Optional[int] = None,
        is_verified: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ReviewPage:
        """List reviews for moderation with optional filters."""
        where_clauses: List[str] = []
        params: list = []
        if product_id:
            where_clauses.append("product_id = ?")
            params.append(product_id)
        if user_id:
            where_clauses.append("user_id = ?")
            params.append(user_id)
        if min_rating is not None:
            where_clauses.append("rating >= ?")
            params.append(min_rating)
        if is_verified is not None:
            where_clauses.append("is_verified = ?")
            params.append(1 if is_verified else 0)
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        conn = get_connection()
        try:
            total = conn.execute(
                f"SELECT COUNT(*) FROM product_reviews{where}", tuple(params)
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT {REVIEW_COLUMNS} FROM product_reviews{where} "
                "ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
        finally:
            conn.close()
        return ReviewPage(reviews=[_row_to_review(r) for r in rows], total=total, page=page, limit=limit)

    @classmethod
    async def update_review(cls, review_id: str, user_id: str, data: ReviewUpdate) -> ReviewRead:
        """Update the rating and/or comment of the caller's own review."""
        fields = data.model_dump(exclude_unset=True)
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT id FROM product_reviews WHERE id = ? AND user_id = ?",
                (review_id, user_id),
            ).fetchone()
            if not row:
                raise PermissionError("Review not found or access denied")
            if fields:
                assignments = ", ".join(f"{name} = ?" for name in fields)
                conn.execute(
                    f"UPDATE product_reviews SET {assignments}, updated_at = ? WHERE id = ?",
                    (*fields.values(), utcnow_iso(), review_id),
                )
                conn.commit()
            row = conn.execute(
                f"SELECT {REVIEW_COLUMNS} FROM product_reviews WHERE id = ?", (review_id,)
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(
            user_id=user_id,
            action="update",
            object_type="review",
            object_id=review_id,
            details=fields or None,
        )
        return _row_to_review(row)

    @classmethod
    async def delete_review(cls, review_id: str, user_id: Optional[str], is_admin: bool = False) -> None:
        """Delete a review owned by ``user_id`` (any review for admins)."""
        conn = get_connection()
        try:
            if is_admin:
                cursor = conn.execute("DELETE FROM product_reviews WHERE id = ?", (review_id,))
            else:
                cursor = conn.execute(
                    "DELETE FROM product_reviews WHERE id = ? AND user_id = ?",
                    (review_id, user_id),
                )
            if cursor.rowcount == 0:
                raise PermissionError("Review not found or access denied")
            conn.commit()
        finally:
            conn.close()
        await AuditService.record(
            user_id=user_id,
            action="delete",
            object_type="review",
            object_id=review_id,
        )
