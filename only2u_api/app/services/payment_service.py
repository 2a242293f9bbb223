"""
Business logic for Razorpay payments.

The mobile app creates a Razorpay order through the API, completes the
payment in the Razorpay checkout and sends the resulting payment ID
and signature back for verification.  The signature is the hex
HMAC-SHA256 of ``"<order_id>|<payment_id>"`` keyed with the account's
key secret.

Orders are recorded in the ``payments`` table with status ``created``
and move to ``paid`` or ``failed`` on verification.
"""

import hashlib
import hmac
import logging
import math
import secrets
import time
from typing import List, Optional

import httpx

from ..core import http_client
from ..core.config import settings
from ..core.db import get_connection, new_id, utcnow_iso
from ..schemas.payment import OrderRead, PaymentRead
from .audit_service import AuditService

logger = logging.getLogger(__name__)

PAYMENT_COLUMNS = (
    "id, user_id, razorpay_order_id, razorpay_payment_id, amount, currency, receipt, status, created_at, updated_at"
)


class PaymentProviderError(RuntimeError):
    """Razorpay rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int = 502, details: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


def to_paise(amount: float) -> int:
    """Round half up to a whole number of paise."""
    return int(math.floor(amount + 0.5))


def default_receipt() -> str:
    return f"receipt_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentService:
    """Create and verify Razorpay orders."""

    @classmethod
    async def create_order(
        cls,
        amount: float,
        currency: str = "INR",
        receipt: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> OrderRead:
        """Create a Razorpay order for ``amount`` paise.

        Raises ``RuntimeError`` when credentials are missing,
        ``ValueError`` for a non-positive amount and
        ``PaymentProviderError`` when Razorpay refuses the order.
        """
        if not settings.razorpay_key_id or not settings.razorpay_key_secret:
            raise RuntimeError("Razorpay credentials not configured")
        if amount is None or amount <= 0:
            raise ValueError("Amount must be greater than 0")
        payload = {
            "amount": to_paise(amount),
            "currency": currency,
            "receipt": receipt or default_receipt(),
        }
        try:
            async with http_client.provider_client() as client:
                response = await client.post(
                    f"{settings.razorpay_api_url}/orders",
                    json=payload,
                    auth=(settings.razorpay_key_id, settings.razorpay_key_secret),
                )
        except httpx.HTTPError as exc:
            logger.error("Razorpay order request failed: %s", exc)
            raise PaymentProviderError("Failed to reach Razorpay") from exc
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.is_error:
            error = data.get("error", {}) if isinstance(data, dict) else {}
            description = error.get("description") or "Failed to create Razorpay order"
            logger.error("Razorpay returned %s: %s", response.status_code, description)
            raise PaymentProviderError(description, status_code=response.status_code, details=error or None)

        now = utcnow_iso()
        payment_id = new_id()
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO payments (id, user_id, razorpay_order_id, amount, currency, receipt, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 'created', ?, ?)
                """,
                (
                    payment_id,
                    user_id,
                    data["id"],
                    data.get("amount", payload["amount"]),
                    data.get("currency", currency),
                    data.get("receipt", payload["receipt"]),
                    now,
                    now,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Razorpay order %s created for user %s", data["id"], user_id)
        await AuditService.record(
            user_id=user_id,
            action="create",
            object_type="payment",
            object_id=payment_id,
            details={"order_id": data["id"], "amount": payload["amount"]},
        )
        return OrderRead(
            order_id=data["id"],
            id=data["id"],
            amount=data.get("amount", payload["amount"]),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", payload["receipt"]),
            status=data.get("status"),
        )

    @classmethod
    async def verify_payment(
        cls, order_id: str, payment_id: str, signature: str, user_id: Optional[str] = None
    ) -> bool:
        """Check the checkout signature and record the outcome.

        Returns ``True`` when the signature matches.  With ``user_id``
        only that user's order is updated.  Raises ``RuntimeError`` when
        the key secret is not configured.
        """
        if not settings.razorpay_key_secret:
            raise RuntimeError("Razorpay credentials not configured")
        expected = payment_signature(order_id, payment_id, settings.razorpay_key_secret)
        verified = hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
        status = "paid" if verified else "failed"
        query = """
            UPDATE payments SET razorpay_payment_id = ?, status = ?, updated_at = ?
            WHERE razorpay_order_id = ? AND status != 'paid'
        """
        params = [payment_id, status, utcnow_iso(), order_id]
        if user_id:
            query += " AND user_id = ?"
            params.append(user_id)
        conn = get_connection()
        try:
            cursor = conn.execute(query, tuple(params))
            conn.commit()
        finally:
            conn.close()
        if cursor.rowcount == 0:
            logger.info("Payment for order %s not stored locally or already paid", order_id)
        if verified:
            logger.info("Payment %s for order %s verified", payment_id, order_id)
        else:
            logger.warning("Signature mismatch for payment %s of order %s", payment_id, order_id)
        await AuditService.record(
            user_id=user_id,
            action="verify",
            object_type="payment",
            object_id=order_id,
            details={"payment_id": payment_id, "status": status},
        )
        return verified

    @classmethod
    async def list_payments(
        cls,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[PaymentRead]:
        """List payments newest first; ``user_id`` restricts to one user."""
        where_clauses: List[str] = []
        params: list = []
        if user_id:
            where_clauses.append("user_id = ?")
            params.append(user_id)
        if status:
            where_clauses.append("status = ?")
            params.append(status)
        query = f"SELECT {PAYMENT_COLUMNS} FROM payments"
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        conn = get_connection()
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
        finally:
            conn.close()
        return [PaymentRead(**dict(row)) for row in rows]
