"""
Business logic for orders.

An order and its items are written in one transaction.  Order numbers
look like ``ORD`` + the last eight digits of the millisecond clock +
three random digits.  Addresses are stored as JSON objects.
"""

import json
import logging
import secrets
import sqlite3
import time
from typing import Dict, List, Optional

from ..core.db import get_connection, new_id, to_iso, utcnow_iso
from ..schemas.order import OrderCreate, OrderItemRead, OrderPage, OrderRead, OrderStatusUpdate
from .audit_service import AuditService

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id, user_id, order_number, status, payment_status, payment_method, payment_id, subtotal, tax_amount, "
    "shipping_amount, discount_amount, total_amount, shipping_address, billing_address, tracking_number, "
    "shipped_at, delivered_at, notes, created_at, updated_at"
)
ITEM_COLUMNS = (
    "id, order_id, product_id, variant_id, product_name, product_sku, product_image, size, color, "
    "quantity, unit_price, total_price"
)

# Statuses from which the customer may still cancel.
CANCELLABLE_STATUSES = ("pending", "confirmed")


def generate_order_number() -> str:
    return f"ORD{str(int(time.time() * 1000))[-8:]}{secrets.randbelow(1000):03d}"


def _row_to_order(row: sqlite3.Row, items: List[sqlite3.Row]) -> OrderRead:
    data = dict(row)
    data["shipping_address"] = json.loads(data["shipping_address"])
    data["billing_address"] = json.loads(data["billing_address"]) if data["billing_address"] else None
    data["items"] = [OrderItemRead(**{k: item[k] for k in item.keys() if k != "order_id"}) for item in items]
    return OrderRead(**data)


def _load_orders(conn: sqlite3.Connection, rows: List[sqlite3.Row]) -> List[OrderRead]:
    """Attach items to ``rows`` with a single query."""
    if not rows:
        return []
    ids = [row["id"] for row in rows]
    placeholders = ", ".join("?" for _ in ids)
    items: Dict[str, List[sqlite3.Row]] = {order_id: [] for order_id in ids}
    for item in conn.execute(
        f"SELECT {ITEM_COLUMNS} FROM order_items WHERE order_id IN ({placeholders}) ORDER BY created_at",
        tuple(ids),
    ).fetchall():
        items[item["order_id"]].append(item)
    return [_row_to_order(row, items[row["id"]]) for row in rows]


class OrderService:
    """Service for placing, tracking and managing orders."""

    @classmethod
    async def create_order(cls, user_id: str, data: OrderCreate) -> OrderRead:
        """Store an order with its items.

        With ``clear_cart`` set the user's cart is emptied in the same
        transaction.
        """
        order_id = new_id()
        now = utcnow_iso()
        conn = get_connection()
        try:
            order_number = None
            for _ in range(3):
                candidate = generate_order_number()
                if not conn.execute("SELECT 1 FROM orders WHERE order_number = ?", (candidate,)).fetchone():
                    order_number = candidate
                    break
            if order_number is None:
                raise RuntimeError("Could not allocate an order number")
            conn.execute(
                """
                INSERT INTO orders (
                    id, user_id, order_number, status, payment_status, payment_method, payment_id,
                    subtotal, tax_amount, shipping_amount, discount_amount, total_amount,
                    shipping_address, billing_address, notes, created_at, updated_at
                )
                VALUES (?, ?, ?, 'pending', 'pending', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order_id,
                    user_id,
                    order_number,
                    data.payment_method,
                    data.payment_id,
                    data.subtotal,
                    data.tax_amount,
                    data.shipping_amount,
                    data.discount_amount,
                    data.total_amount,
                    data.shipping_address.model_dump_json(),
                    data.billing_address.model_dump_json() if data.billing_address else None,
                    data.notes,
                    now,
                    now,
                ),
            )
            conn.executemany(
                f"INSERT INTO order_items ({ITEM_COLUMNS}, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        new_id(),
                        order_id,
                        item.product_id,
                        item.variant_id,
                        item.product_name,
                        item.product_sku,
                        item.product_image,
                        item.size,
                        item.color,
                        item.quantity,
                        item.unit_price,
                        item.total_price,
                        now,
                    )
                    for item in data.items
                ],
            )
            if data.clear_cart:
                conn.execute("DELETE FROM cart_items WHERE user_id = ?", (user_id,))
            conn.commit()
            row = conn.execute(f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?", (order_id,)).fetchone()
            order = _load_orders(conn, [row])[0]
        finally:
            conn.close()
        logger.info("Order %s placed by %s for %.2f", order_number, user_id, data.total_amount)
        await AuditService.record(
            user_id=user_id,
            action="create",
            object_type="order",
            object_id=order_id,
            details={"order_number": order_number, "total_amount": data.total_amount},
        )
        return order

    @classmethod
    async def get_order(cls, order_id: str) -> OrderRead:
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?", (order_id,)).fetchone()
            if not row:
                raise ValueError(f"Order {order_id} not found")
            return _load_orders(conn, [row])[0]
        finally:
            conn.close()

    @classmethod
    async def list_orders(
        cls,
        page: int = 1,
        limit: int = 20,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> OrderPage:
        """Return one page of orders, newest first.

        ``search`` matches a substring of the order number.  The date
        bounds compare against ``created_at``.
        """
        filters = {
            "user_id = ?": user_id,
            "status = ?": status,
            "order_number LIKE ?": f"%{search}%" if search else None,
            "created_at >= ?": date_from,
            "created_at <= ?": date_to,
        }
        where_clauses = [clause for clause, value in filters.items() if value is not None]
        params = [value for value in filters.values() if value is not None]
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        conn = get_connection()
        try:
            total = conn.execute(f"SELECT COUNT(*) FROM orders{where}", tuple(params)).fetchone()[0]
            rows = conn.execute(
                f"SELECT {ORDER_COLUMNS} FROM orders{where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
            orders = _load_orders(conn, rows)
        finally:
            conn.close()
        return OrderPage(orders=orders, total=total, page=page, limit=limit)

    @classmethod
    async def update_status(
        cls, order_id: str, data: OrderStatusUpdate, actor_id: Optional[str] = None
    ) -> OrderRead:
        """Update status, payment status or tracking details.

        Moving to ``shipped`` or ``delivered`` stamps the matching
        timestamp unless one is given.
        """
        fields = data.model_dump(exclude_unset=True, exclude_none=True)
        for name in ("shipped_at", "delivered_at"):
            if name in fields:
                fields[name] = to_iso(fields[name])
        now = utcnow_iso()
        if fields.get("status") == "shipped":
            fields.setdefault("shipped_at", now)
        if fields.get("status") == "delivered":
            fields.setdefault("delivered_at", now)
        conn = get_connection()
        try:
            if not conn.execute("SELECT 1 FROM orders WHERE id = ?", (order_id,)).fetchone():
                raise ValueError(f"Order {order_id} not found")
            if fields:
                assignments = ", ".join(f"{name} = ?" for name in fields)
                conn.execute(
                    f"UPDATE orders SET {assignments}, updated_at = ? WHERE id = ?",
                    (*fields.values(), now, order_id),
                )
                conn.commit()
            row = conn.execute(f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?", (order_id,)).fetchone()
            order = _load_orders(conn, [row])[0]
        finally:
            conn.close()
        logger.info("Order %s updated by %s: %s", order_id, actor_id, sorted(fields))
        await AuditService.record(
            user_id=actor_id,
            action="update",
            object_type="order",
            object_id=order_id,
            details={name: fields[name] for name in ("status", "payment_status") if name in fields} or None,
        )
        return order

    @classmethod
    async def cancel_order(cls, order_id: str, user_id: str) -> OrderRead:
        """Cancel the caller's own order while it is still pending or confirmed."""
        conn = get_connection()
        try:
            row = conn.execute("SELECT user_id, status FROM orders WHERE id = ?", (order_id,)).fetchone()
            if not row:
                raise ValueError(f"Order {order_id} not found")
            if row["user_id"] != user_id:
                raise PermissionError("Insufficient permissions")
            if row["status"] not in CANCELLABLE_STATUSES:
                raise ValueError(f"Order cannot be cancelled once {row['status']}")
            conn.execute(
                "UPDATE orders SET status = 'cancelled', updated_at = ? WHERE id = ?",
                (utcnow_iso(), order_id),
            )
            conn.commit()
            row = conn.execute(f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?", (order_id,)).fetchone()
            order = _load_orders(conn, [row])[0]
        finally:
            conn.close()
        logger.info("Order %s cancelled by %s", order_id, user_id)
        await AuditService.record(
            user_id=user_id,
            action="update",
            object_type="order",
            object_id=order_id,
            details={"status": "cancelled"},
        )
        return order
