"""
Business logic for discount coupons.

A coupon gives either a percentage discount (optionally capped by
``max_discount_amount``) or a fixed amount off.  Redemptions are
recorded per user; unless ``allow_multiple_use`` is set a user may
redeem a coupon only once.
"""

import logging
import secrets
import sqlite3
from typing import List, Optional

from ..core.db import get_connection, new_id, to_iso, utcnow_iso
from ..schemas.coupon import CouponCreate, CouponRead, CouponValidation, RedemptionRead, UserCouponRead
from .audit_service import AuditService

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

COUPON_COLUMNS = (
    "id, code, name, description, discount_type, discount_value, max_discount_amount, "
    "minimum_order_amount, valid_from, valid_until, usage_limit, usage_count, "
    "allow_multiple_use, is_active, created_by, created_at"
)


def generate_coupon_code(length: int = 8) -> str:
    """Random code without the easily confused characters 0, O, 1 and I."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _coupon_fields(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "code": row["code"],
        "name": row["name"],
        "description": row["description"],
        "discount_type": row["discount_type"],
        "discount_value": row["discount_value"],
        "max_discount_amount": row["max_discount_amount"],
        "minimum_order_amount": row["minimum_order_amount"],
        "valid_from": row["valid_from"],
        "valid_until": row["valid_until"],
        "usage_limit": row["usage_limit"],
        "usage_count": row["usage_count"],
        "allow_multiple_use": bool(row["allow_multiple_use"]),
        "is_active": bool(row["is_active"]),
        "created_by": row["created_by"],
        "created_at": row["created_at"],
    }


def row_to_coupon(row: sqlite3.Row) -> CouponRead:
    return CouponRead(**_coupon_fields(row))


def insert_coupon(
    conn: sqlite3.Connection,
    code: str,
    discount_type: str,
    discount_value: float,
    name: Optional[str] = None,
    description: Optional[str] = None,
    max_discount_amount: Optional[float] = None,
    minimum_order_amount: Optional[float] = None,
    valid_from: Optional[str] = None,
    valid_until: Optional[str] = None,
    usage_limit: Optional[int] = None,
    allow_multiple_use: bool = False,
    is_active: bool = True,
    created_by: Optional[str] = None,
) -> str:
    """Insert a coupon row on ``conn`` without committing; returns its id."""
    coupon_id = new_id()
    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO coupons (
            id, code, name, description, discount_type, discount_value,
            max_discount_amount, minimum_order_amount, valid_from, valid_until,
            usage_limit, usage_count, allow_multiple_use, is_active, created_by,
            created_at, updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?)
        """,
        (
            coupon_id,
            code.upper(),
            name,
            description,
            discount_type,
            discount_value,
            max_discount_amount,
            minimum_order_amount,
            valid_from,
            valid_until,
            usage_limit,
            1 if allow_multiple_use else 0,
            1 if is_active else 0,
            created_by,
            now,
            now,
        ),
    )
    return coupon_id


def calculate_discount(discount_type: str, discount_value: float, order_amount: float,
                       max_discount_amount: Optional[float] = None) -> float:
    if discount_type == "percentage":
        discount = order_amount * discount_value / 100
        if max_discount_amount:
            discount = min(discount, max_discount_amount)
    else:
        discount = min(discount_value, order_amount)
    return round(discount, 2)


class CouponService:
    """Service for coupon lookup, validation and redemption."""

    @classmethod
    async def create_coupon(cls, data: CouponCreate, created_by: Optional[str] = None) -> CouponRead:
        """Create a coupon; a random code is generated when none is given."""
        code = data.code or generate_coupon_code()
        conn = get_connection()
        try:
            try:
                coupon_id = insert_coupon(
                    conn,
                    code=code,
                    discount_type=data.discount_type,
                    discount_value=data.discount_value,
                    name=data.name,
                    description=data.description,
                    max_discount_amount=data.max_discount_amount,
                    minimum_order_amount=data.minimum_order_amount,
                    valid_from=to_iso(data.valid_from) if data.valid_from else None,
                    valid_until=to_iso(data.valid_until) if data.valid_until else None,
                    usage_limit=data.usage_limit,
                    allow_multiple_use=data.allow_multiple_use,
                    is_active=data.is_active,
                    created_by=created_by,
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise ValueError(f"Coupon code {code} already exists") from exc
            row = conn.execute(f"SELECT {COUPON_COLUMNS} FROM coupons WHERE id = ?", (coupon_id,)).fetchone()
        finally:
            conn.close()
        logger.info("Coupon %s created by %s", row["code"], created_by)
        await AuditService.record(
            user_id=created_by,
            action="create",
            object_type="coupon",
            object_id=coupon_id,
            details={"code": row["code"], "discount_type": data.discount_type},
        )
        return row_to_coupon(row)

    @classmethod
    async def get_coupon_by_code(cls, code: str) -> Optional[CouponRead]:
        """Return the active coupon with ``code`` (case-insensitive) or ``None``."""
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {COUPON_COLUMNS} FROM coupons WHERE code = ? AND is_active = 1",
                (code.strip().upper(),),
            ).fetchone()
        finally:
            conn.close()
        return row_to_coupon(row) if row else None

    @classmethod
    async def get_available_coupons(cls, user_id: Optional[str] = None) -> List[CouponRead]:
        """Active coupons inside their validity window and below their usage limit.

        When ``user_id`` is given, coupons the user already redeemed are
        left out.
        """
        now = utcnow_iso()
        query = f"""
            SELECT {COUPON_COLUMNS} FROM coupons
            WHERE is_active = 1
              AND (valid_from IS NULL OR valid_from <= ?)
              AND (valid_until IS NULL OR valid_until >= ?)
              AND (usage_limit IS NULL OR usage_count < usage_limit)
        """
        params: list = [now, now]
        if user_id:
            query += " AND id NOT IN (SELECT coupon_id FROM coupon_redemptions WHERE user_id = ?)"
            params.append(user_id)
        query += " ORDER BY discount_value DESC, created_at DESC"
        conn = get_connection()
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
        finally:
            conn.close()
        return [row_to_coupon(r) for r in rows]

    @classmethod
    async def validate_coupon(cls, code: str, order_amount: float, user_id: Optional[str] = None) -> CouponValidation:
        """Check whether ``code`` applies to an order and compute the discount."""
        coupon = await cls.get_coupon_by_code(code)
        if not coupon:
            return CouponValidation(valid=False, error="Invalid coupon code")
        now = utcnow_iso()
        if coupon.valid_from and coupon.valid_from > now:
            return CouponValidation(valid=False, error="Coupon not yet valid")
        if coupon.valid_until and coupon.valid_until < now:
            return CouponValidation(valid=False, error="Coupon has expired")
        if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
            return CouponValidation(valid=False, error="Coupon usage limit reached")
        if coupon.minimum_order_amount and order_amount < coupon.minimum_order_amount:
            return CouponValidation(
                valid=False,
                error=f"Minimum order amount of ₹{coupon.minimum_order_amount:g} required",
            )
        if user_id and not coupon.allow_multiple_use:
            conn = get_connection()
            try:
                used = conn.execute(
                    "SELECT id FROM coupon_redemptions WHERE user_id = ? AND coupon_id = ?",
                    (user_id, coupon.id),
                ).fetchone()
            finally:
                conn.close()
            if used:
                return CouponValidation(valid=False, error="Coupon already used")
        discount = calculate_discount(
            coupon.discount_type,
            coupon.discount_value,
            order_amount,
            coupon.max_discount_amount,
        )
        return CouponValidation(valid=True, coupon=coupon, discount_amount=discount)

    @classmethod
    async def redeem_coupon(
        cls,
        user_id: str,
        coupon_id: str,
        order_id: Optional[str],
        discount_amount: float,
    ) -> RedemptionRead:
        """Record a redemption and bump the coupon's usage count atomically.

        The usage count is only incremented while it is below the
        limit; otherwise nothing is written and ``ValueError`` is
        raised.
        """
        redemption_id = new_id()
        redeemed_at = utcnow_iso()
        conn = get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            coupon = conn.execute(
                "SELECT id, allow_multiple_use FROM coupons WHERE id = ? AND is_active = 1",
                (coupon_id,),
            ).fetchone()
            if not coupon:
                raise ValueError("Coupon not found")
            if not coupon["allow_multiple_use"]:
                used = conn.execute(
                    "SELECT id FROM coupon_redemptions WHERE user_id = ? AND coupon_id = ?",
                    (user_id, coupon_id),
                ).fetchone()
                if used:
                    raise ValueError("Coupon already used")
            conn.execute(
                """
                INSERT INTO coupon_redemptions (id, coupon_id, user_id, order_id, discount_amount, redeemed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (redemption_id, coupon_id, user_id, order_id, discount_amount, redeemed_at),
            )
            cursor = conn.execute(
                """
                UPDATE coupons SET usage_count = usage_count + 1, updated_at = ?
                WHERE id = ? AND (usage_limit IS NULL OR usage_count < usage_limit)
                """,
                (redeemed_at, coupon_id),
            )
            if cursor.rowcount == 0:
                raise ValueError("Coupon usage limit reached")
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("User %s redeemed coupon %s", user_id, coupon_id)
        await AuditService.record(
            user_id=user_id,
            action="redeem",
            object_type="coupon",
            object_id=coupon_id,
            details={"order_id": order_id, "discount_amount": discount_amount},
        )
        return RedemptionRead(
            id=redemption_id,
            coupon_id=coupon_id,
            user_id=user_id,
            order_id=order_id,
            discount_amount=discount_amount,
            redeemed_at=redeemed_at,
        )

    @classmethod
    async def get_user_coupons(cls, user_id: str) -> List[UserCouponRead]:
        """Coupons redeemed by ``user_id``, most recent redemption first."""
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT c.id, c.code, c.name, c.description, c.discount_type, c.discount_value,
                       c.max_discount_amount, c.minimum_order_amount, c.valid_from, c.valid_until,
                       c.usage_limit, c.usage_count, c.allow_multiple_use, c.is_active,
                       c.created_by, c.created_at,
                       cr.redeemed_at, cr.order_id, cr.discount_amount
                FROM coupons c
                JOIN coupon_redemptions cr ON cr.coupon_id = c.id
                WHERE cr.user_id = ?
                ORDER BY cr.redeemed_at DESC
                """,
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [
            UserCouponRead(
                **_coupon_fields(r),
                redeemed_at=r["redeemed_at"],
                order_id=r["order_id"],
                discount_amount=r["discount_amount"],
            )
            for r in rows
        ]
