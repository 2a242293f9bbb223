"""
Referral codes and the coupons they unlock.

Redeeming a referral code gives the new user a one-off welcome coupon
and gives the code's owner (the referrer) a growing reward coupon.
The referrer's coupon keeps its referral count in its description::

    "<summary>|REFERRALS:<count>:MAX:<max_discount>"

Each new referral reads that metadata, adds one and raises the
discount cap by 100.  The read and the write happen on one connection
inside one ``BEGIN IMMEDIATE`` transaction so two simultaneous
referrals cannot both read the same count.
"""

import logging
import sqlite3
import time
from typing import Optional, Tuple

from ..core.db import get_connection, new_id, parse_iso, to_iso, utcnow, utcnow_iso
from ..schemas.referral import (
    CouponRef,
    ReferralAnalytics,
    ReferralCodeCreate,
    ReferralCodeRead,
    ReferralCodeValidation,
    ReferralRedemption,
    ReferrerReward,
)
from .audit_service import AuditService
from .coupon_service import insert_coupon

logger = logging.getLogger(__name__)

REFERRAL_METADATA_PREFIX = "REFERRALS:"
REFERRAL_REWARD_PERCENT = 10
REWARD_PER_REFERRAL = 100
WELCOME_DISCOUNT = 100


def parse_referral_metadata(description: Optional[str]) -> Tuple[int, float]:
    """Return ``(referral_count, max_discount)`` stored in a coupon description.

    Missing or malformed metadata counts as no referrals.
    """
    if not description:
        return 0, 0
    meta = next(
        (part for part in description.split("|") if part.startswith(REFERRAL_METADATA_PREFIX)),
        None,
    )
    if meta is None:
        return 0, 0
    count_part, _, max_part = meta[len(REFERRAL_METADATA_PREFIX):].partition(":MAX:")
    try:
        count = int(count_part)
    except ValueError:
        count = 0
    try:
        max_discount = float(max_part)
    except ValueError:
        max_discount = 0
    return count, max_discount


def build_referral_description(referral_count: int, max_discount: float) -> str:
    people = "person" if referral_count == 1 else "people"
    summary = (
        f"You have referred {referral_count} {people}. "
        f"Redeem {REFERRAL_REWARD_PERCENT}% of your cart value (up to ₹{max_discount:g})"
    )
    return f"{summary}|{REFERRAL_METADATA_PREFIX}{referral_count}:MAX:{max_discount:g}"


def referral_reward_code(user_id: str) -> str:
    return f"REFREWARD{user_id[-8:].upper()}"


def _timestamp_suffix(digits: int) -> str:
    return str(int(time.time() * 1000))[-digits:]


def _compact_id(user_id: str) -> str:
    return user_id.replace("-", "").upper()


def _bump_referrer_reward(conn: sqlite3.Connection, referrer_id: str) -> ReferrerReward:
    """Add one referral to the referrer's reward coupon on ``conn``.

    The caller owns the transaction.
    """
    code = referral_reward_code(referrer_id)
    existing = conn.execute("SELECT id, description FROM coupons WHERE code = ?", (code,)).fetchone()
    count, _ = parse_referral_metadata(existing["description"] if existing else None)
    count += 1
    max_discount = count * REWARD_PER_REFERRAL
    description = build_referral_description(count, max_discount)
    if existing:
        coupon_id = existing["id"]
        conn.execute(
            """
            UPDATE coupons
            SET description = ?, discount_type = 'percentage', discount_value = ?,
                max_discount_amount = ?, usage_limit = NULL, allow_multiple_use = 1,
                minimum_order_amount = NULL, is_active = 1, updated_at = ?
            WHERE id = ?
            """,
            (description, REFERRAL_REWARD_PERCENT, max_discount, utcnow_iso(), coupon_id),
        )
    else:
        coupon_id = insert_coupon(
            conn,
            code=code,
            name="Referral Reward",
            description=description,
            discount_type="percentage",
            discount_value=REFERRAL_REWARD_PERCENT,
            max_discount_amount=max_discount,
            allow_multiple_use=True,
            created_by=referrer_id,
        )
    return ReferrerReward(id=coupon_id, code=code, referral_count=count, max_discount=max_discount)


def _insert_welcome_coupon(conn: sqlite3.Connection, user_id: str, user_name: Optional[str]) -> CouponRef:
    code = f"WELCOME{_compact_id(user_id)[:6]}{_timestamp_suffix(6)}"
    description = f"Welcome to Only2U! ₹{WELCOME_DISCOUNT} off your first order"
    if user_name:
        description += f" - {user_name}"
    coupon_id = insert_coupon(
        conn,
        code=code,
        name="Welcome Gift",
        description=description,
        discount_type="fixed",
        discount_value=WELCOME_DISCOUNT,
        usage_limit=1,
        created_by=user_id,
    )
    return CouponRef(id=coupon_id, code=code)


def _insert_usage(
    conn: sqlite3.Connection,
    referral_code_id: str,
    code: str,
    user_id: Optional[str],
    user_email: Optional[str] = None,
    user_phone: Optional[str] = None,
    user_name: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> str:
    """Store one use of a referral code and bump its counter on ``conn``."""
    usage_id = new_id()
    conn.execute(
        """
        INSERT INTO referral_code_usage (
            id, referral_code_id, referral_code, user_id, user_email,
            user_phone, user_name, ip_address, user_agent, used_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            usage_id,
            referral_code_id,
            code,
            user_id,
            user_email,
            user_phone,
            user_name,
            ip_address,
            user_agent,
            utcnow_iso(),
        ),
    )
    conn.execute(
        "UPDATE referral_codes SET usage_count = usage_count + 1 WHERE id = ?",
        (referral_code_id,),
    )
    return usage_id


def _check_code(row: Optional[sqlite3.Row]) -> Optional[str]:
    """Return why a referral code row cannot be used, or ``None``."""
    if not row:
        return "Invalid referral code"
    if not row["is_active"]:
        return "This referral code is no longer active"
    if row["expires_at"] and parse_iso(row["expires_at"]) < utcnow():
        return "This referral code has expired"
    if row["max_uses"] is not None and row["usage_count"] >= row["max_uses"]:
        return "This referral code has reached its usage limit"
    return None


class ReferralService:
    """Referral code validation, redemption and referral coupons."""

    @classmethod
    async def validate_referral_code(cls, code: Optional[str]) -> ReferralCodeValidation:
        if not code or not code.strip():
            return ReferralCodeValidation(is_valid=False, message="Please enter a referral code")
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT id, is_active, max_uses, usage_count, expires_at FROM referral_codes WHERE code = ?",
                (code.strip().upper(),),
            ).fetchone()
        finally:
            conn.close()
        error = _check_code(row)
        if error:
            return ReferralCodeValidation(is_valid=False, message=error)
        return ReferralCodeValidation(is_valid=True, message="Referral code applied", referral_code_id=row["id"])

    @classmethod
    async def redeem_referral_code(
        cls,
        code: str,
        user_id: str,
        user_email: Optional[str] = None,
        user_name: Optional[str] = None,
        user_phone: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ReferralRedemption:
        """Redeem ``code`` for a new user.

        Records the usage, creates the user's welcome coupon and, when
        the code belongs to another user, adds a referral to that
        user's reward coupon.  Everything is committed together.
        """
        code = code.strip().upper()
        referrer_reward = None
        conn = get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT id, owner_user_id, is_active, max_uses, usage_count, expires_at "
                "FROM referral_codes WHERE code = ?",
                (code,),
            ).fetchone()
            error = _check_code(row)
            if error:
                raise ValueError(error)
            used = conn.execute(
                "SELECT id FROM referral_code_usage WHERE referral_code_id = ? AND user_id = ?",
                (row["id"], user_id),
            ).fetchone()
            if used:
                raise ValueError("Referral code already used")
            if row["owner_user_id"] == user_id:
                raise ValueError("You cannot use your own referral code")
            _insert_usage(
                conn,
                row["id"],
                code,
                user_id,
                user_email=user_email,
                user_phone=user_phone,
                user_name=user_name,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            coupon = _insert_welcome_coupon(conn, user_id, user_name)
            if row["owner_user_id"]:
                referrer_reward = _bump_referrer_reward(conn, row["owner_user_id"])
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("User %s redeemed referral code %s", user_id, code)
        await AuditService.record(
            user_id=user_id,
            action="redeem",
            object_type="referral_code",
            object_id=row["id"],
            details={"coupon": coupon.code, "referrer": row["owner_user_id"]},
        )
        return ReferralRedemption(coupon=coupon, referrer_reward=referrer_reward)

    @classmethod
    async def record_usage(
        cls,
        code: str,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        user_phone: Optional[str] = None,
        user_name: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """Record a use of ``code`` without issuing coupons.

        Returns the usage id.  Raises ``ValueError("Invalid referral code")``
        for unknown codes.
        """
        code = code.strip().upper()
        conn = get_connection()
        try:
            row = conn.execute("SELECT id FROM referral_codes WHERE code = ?", (code,)).fetchone()
            if not row:
                raise ValueError("Invalid referral code")
            usage_id = _insert_usage(
                conn,
                row["id"],
                code,
                user_id,
                user_email=user_email,
                user_phone=user_phone,
                user_name=user_name,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            conn.commit()
        finally:
            conn.close()
        return usage_id

    @classmethod
    async def create_welcome_coupon(cls, user_id: str, user_name: Optional[str] = None) -> CouponRef:
        conn = get_connection()
        try:
            coupon = _insert_welcome_coupon(conn, user_id, user_name)
            conn.commit()
        finally:
            conn.close()
        return coupon

    @classmethod
    async def ensure_new_user_coupon(cls, user_id: str) -> CouponRef:
        """Return the user's new-user coupon, creating it on first call."""
        conn = get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            existing = conn.execute(
                """
                SELECT id, code FROM coupons
                WHERE created_by = ? AND is_active = 1 AND code LIKE 'NEWUSER%'
                ORDER BY created_at DESC LIMIT 1
                """,
                (user_id,),
            ).fetchone()
            if existing:
                conn.rollback()
                return CouponRef(id=existing["id"], code=existing["code"])
            code = f"NEWUSER{_compact_id(user_id)[:8]}{_timestamp_suffix(4)}"
            coupon_id = insert_coupon(
                conn,
                code=code,
                name="New User Gift",
                description=f"Welcome gift - ₹{WELCOME_DISCOUNT} off your first order",
                discount_type="fixed",
                discount_value=WELCOME_DISCOUNT,
                usage_limit=1,
                created_by=user_id,
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("New-user coupon %s created for %s", code, user_id)
        return CouponRef(id=coupon_id, code=code)

    @classmethod
    async def ensure_referrer_reward_coupon(cls, referrer_id: Optional[str]) -> Optional[ReferrerReward]:
        """Count one more referral for ``referrer_id`` and return the updated reward."""
        if not referrer_id:
            return None
        conn = get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            reward = _bump_referrer_reward(conn, referrer_id)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return reward

    @classmethod
    async def create_referral_code(cls, data: ReferralCodeCreate, actor_id: Optional[str] = None) -> ReferralCodeRead:
        code_id = new_id()
        conn = get_connection()
        try:
            try:
                conn.execute(
                    """
                    INSERT INTO referral_codes (id, code, owner_user_id, is_active, max_uses, usage_count, expires_at, created_at)
                    VALUES (?, ?, ?, 1, ?, 0, ?, ?)
                    """,
                    (
                        code_id,
                        data.code,
                        data.owner_user_id,
                        data.max_uses,
                        to_iso(data.expires_at) if data.expires_at else None,
                        utcnow_iso(),
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise ValueError(f"Referral code {data.code} already exists or owner is unknown") from exc
            row = conn.execute(
                "SELECT id, code, owner_user_id, is_active, max_uses, usage_count, expires_at, created_at "
                "FROM referral_codes WHERE id = ?",
                (code_id,),
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="create",
            object_type="referral_code",
            object_id=code_id,
            details={"code": data.code},
        )
        return ReferralCodeRead(
            id=row["id"],
            code=row["code"],
            owner_user_id=row["owner_user_id"],
            is_active=bool(row["is_active"]),
            max_uses=row["max_uses"],
            usage_count=row["usage_count"],
            expires_at=row["expires_at"],
            created_at=row["created_at"],
        )

    @classmethod
    async def get_analytics(cls, code: str) -> ReferralAnalytics:
        conn = get_connection()
        try:
            row = conn.execute(
                """
                SELECT rc.code,
                       COUNT(u.id) AS total_uses,
                       COUNT(DISTINCT u.user_id) AS unique_users,
                       MAX(u.used_at) AS last_used_at
                FROM referral_codes rc
                LEFT JOIN referral_code_usage u ON u.referral_code_id = rc.id
                WHERE rc.code = ?
                GROUP BY rc.id
                """,
                (code.strip().upper(),),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise ValueError("Referral code not found")
        return ReferralAnalytics(
            code=row["code"],
            total_uses=row["total_uses"],
            unique_users=row["unique_users"],
            last_used_at=row["last_used_at"],
        )
