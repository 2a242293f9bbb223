"""
Special reward codes.

Some referral codes are "special": redeeming one gives the user a
partner voucher taken from a finite pool (``reward_codes``).  Each
voucher may go to one user only and each user gets at most one.

Claiming uses optimistic locking: a candidate is read, then claimed
with ``UPDATE ... WHERE id = ? AND is_assigned = 0``.  If the update
touches no row another request got there first and a fresh candidate
is tried, up to ``settings.reward_claim_attempts`` times.
"""

import logging
import sqlite3
from typing import Iterable, Optional

from ..core.config import settings
from ..core.db import get_connection, new_id, utcnow_iso
from ..schemas.reward import AssignRewardResponse, RewardPoolAddResult, RewardPoolStats
from .audit_service import AuditService

logger = logging.getLogger(__name__)


class NoRewardCodesError(LookupError):
    """The pool has no unassigned codes left."""


class RewardClaimConflictError(RuntimeError):
    """Every claim attempt lost a race with a concurrent request."""


class RewardService:
    """Assign pool codes to users redeeming special referral codes."""

    @staticmethod
    def _assigned_code(conn: sqlite3.Connection, user_id: str) -> Optional[str]:
        row = conn.execute(
            "SELECT code FROM reward_codes WHERE assigned_to_user_id = ?", (user_id,)
        ).fetchone()
        return row["code"] if row else None

    @staticmethod
    def _pick_candidate(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
        return conn.execute(
            "SELECT id, code FROM reward_codes WHERE is_assigned = 0 ORDER BY created_at, id LIMIT 1"
        ).fetchone()

    @staticmethod
    def _claim(conn: sqlite3.Connection, code_id: str, user_id: str) -> bool:
        """Try to assign ``code_id`` to ``user_id``; ``False`` when it was taken."""
        cursor = conn.execute(
            """
            UPDATE reward_codes
            SET is_assigned = 1, assigned_to_user_id = ?, assigned_at = ?
            WHERE id = ? AND is_assigned = 0
            """,
            (user_id, utcnow_iso(), code_id),
        )
        conn.commit()
        return cursor.rowcount == 1

    @classmethod
    async def assign_special_reward(
        cls, referral_code: Optional[str], user_id: Optional[str]
    ) -> AssignRewardResponse:
        """Give ``user_id`` a reward code if ``referral_code`` is special.

        Raises ``ValueError`` for missing input, ``NoRewardCodesError``
        when the pool is empty and ``RewardClaimConflictError`` when
        every attempt lost a race.
        """
        if not referral_code or not user_id:
            raise ValueError("Missing referralCode or userId")
        conn = get_connection()
        try:
            special = conn.execute(
                "SELECT id FROM special_referral_codes WHERE code = ? AND is_active = 1",
                (referral_code.strip().upper(),),
            ).fetchone()
            if not special:
                logger.info("Referral code %s is not special, no reward assigned", referral_code)
                return AssignRewardResponse(success=False, message="Not a special referral code")

            existing = cls._assigned_code(conn, user_id)
            if existing:
                return AssignRewardResponse(success=True, code=existing, message="Code already assigned")

            for attempt in range(1, settings.reward_claim_attempts + 1):
                candidate = cls._pick_candidate(conn)
                if not candidate:
                    logger.error("Reward code pool is empty")
                    raise NoRewardCodesError("No reward codes available")
                try:
                    claimed = cls._claim(conn, candidate["id"], user_id)
                except sqlite3.IntegrityError:
                    # A concurrent request already gave this user a code.
                    conn.rollback()
                    existing = cls._assigned_code(conn, user_id)
                    if existing:
                        return AssignRewardResponse(success=True, code=existing, message="Code already assigned")
                    raise
                if claimed:
                    code = candidate["code"]
                    break
                logger.warning(
                    "Reward code %s was taken concurrently (attempt %s)", candidate["id"], attempt
                )
            else:
                raise RewardClaimConflictError("Failed to assign code, please try again")
        finally:
            conn.close()
        logger.info("Assigned reward code %s to user %s", code, user_id)
        await AuditService.record(
            user_id=user_id,
            action="assign",
            object_type="reward_code",
            object_id=candidate["id"],
            details={"referral_code": referral_code.upper()},
        )
        return AssignRewardResponse(success=True, code=code)

    @classmethod
    async def add_special_code(cls, code: str, is_active: bool = True, actor_id: Optional[str] = None) -> dict:
        code_id = new_id()
        conn = get_connection()
        try:
            try:
                conn.execute(
                    "INSERT INTO special_referral_codes (id, code, is_active, created_at) VALUES (?, ?, ?, ?)",
                    (code_id, code, 1 if is_active else 0, utcnow_iso()),
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                raise ValueError(f"Special code {code} already exists") from exc
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="create",
            object_type="special_referral_code",
            object_id=code_id,
            details={"code": code},
        )
        return {"id": code_id, "code": code, "is_active": is_active}

    @classmethod
    async def add_pool_codes(cls, codes: Iterable[str], actor_id: Optional[str] = None) -> RewardPoolAddResult:
        """Add codes to the pool; blank and duplicate codes are skipped."""
        added = skipped = 0
        now = utcnow_iso()
        conn = get_connection()
        try:
            for code in codes:
                code = code.strip()
                if not code:
                    skipped += 1
                    continue
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO reward_codes (id, code, is_assigned, created_at) VALUES (?, ?, 0, ?)",
                    (new_id(), code, now),
                )
                if cursor.rowcount:
                    added += 1
                else:
                    skipped += 1
            conn.commit()
        finally:
            conn.close()
        logger.info("Reward pool: %s codes added, %s skipped", added, skipped)
        await AuditService.record(
            user_id=actor_id,
            action="create",
            object_type="reward_code",
            details={"added": added, "skipped": skipped},
        )
        return RewardPoolAddResult(added=added, skipped=skipped)

    @classmethod
    async def pool_stats(cls) -> RewardPoolStats:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS total, COALESCE(SUM(is_assigned), 0) AS assigned FROM reward_codes"
            ).fetchone()
        finally:
            conn.close()
        return RewardPoolStats(total=row["total"], assigned=row["assigned"], available=row["total"] - row["assigned"])
