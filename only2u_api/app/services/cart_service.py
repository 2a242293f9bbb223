"""
Business logic for the shopping cart.

Each user has one cart.  Adding a product/variant pair that is already
in the cart raises the quantity instead of adding a second line.
Name, image and price are copied from the catalog when the line is
created.
"""

import json
import logging
import sqlite3
from typing import Optional

from ..core.db import get_connection, new_id, utcnow_iso
from ..schemas.cart import CartItemAdd, CartItemRead, CartRead

logger = logging.getLogger(__name__)

CART_COLUMNS = "id, product_id, variant_id, product_name, product_image, size, color, price, quantity"


def _row_to_item(row: sqlite3.Row) -> CartItemRead:
    return CartItemRead(**dict(row), line_total=round(row["price"] * row["quantity"], 2))


def _first_image(value: Optional[str]) -> Optional[str]:
    images = json.loads(value) if value else []
    return images[0] if images else None


class CartService:
    """Service for the caller's shopping cart."""

    @classmethod
    async def get_cart(cls, user_id: str) -> CartRead:
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT {CART_COLUMNS} FROM cart_items WHERE user_id = ? ORDER BY created_at",
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        items = [_row_to_item(r) for r in rows]
        return CartRead(
            items=items,
            item_count=sum(item.quantity for item in items),
            subtotal=round(sum(item.line_total for item in items), 2),
        )

    @classmethod
    async def add_item(cls, user_id: str, data: CartItemAdd) -> CartRead:
        """Add a product (optionally a specific variant) to the cart.

        Inactive products and variants that do not belong to the
        product are rejected.
        """
        now = utcnow_iso()
        conn = get_connection()
        try:
            product = conn.execute(
                "SELECT name, image_urls, base_price FROM products WHERE id = ? AND is_active = 1",
                (data.product_id,),
            ).fetchone()
            if not product:
                raise ValueError(f"Product {data.product_id} not found")
            variant = None
            if data.variant_id:
                variant = conn.execute(
                    """
                    SELECT size, color, price, image_urls FROM product_variants
                    WHERE id = ? AND product_id = ? AND is_active = 1
                    """,
                    (data.variant_id, data.product_id),
                ).fetchone()
                if not variant:
                    raise ValueError(f"Variant {data.variant_id} not found")
            existing = conn.execute(
                "SELECT id FROM cart_items WHERE user_id = ? AND product_id = ? AND variant_id IS ?",
                (user_id, data.product_id, data.variant_id),
            ).fetchone()
            if existing:
                conn.execute(
                    "UPDATE cart_items SET quantity = quantity + ?, updated_at = ? WHERE id = ?",
                    (data.quantity, now, existing["id"]),
                )
            else:
                conn.execute(
                    """
                    INSERT INTO cart_items (
                        id, user_id, product_id, variant_id, product_name, product_image,
                        size, color, price, quantity, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        new_id(),
                        user_id,
                        data.product_id,
                        data.variant_id,
                        product["name"],
                        (variant and _first_image(variant["image_urls"])) or _first_image(product["image_urls"]),
                        variant["size"] if variant else None,
                        variant["color"] if variant else None,
                        variant["price"] if variant else product["base_price"],
                        data.quantity,
                        now,
                        now,
                    ),
                )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Cart of %s: +%d x %s", user_id, data.quantity, data.product_id)
        return await cls.get_cart(user_id)

    @classmethod
    async def update_quantity(cls, user_id: str, item_id: str, quantity: int) -> CartRead:
        conn = get_connection()
        try:
            if quantity <= 0:
                cursor = conn.execute(
                    "DELETE FROM cart_items WHERE id = ? AND user_id = ?", (item_id, user_id)
                )
            else:
                cursor = conn.execute(
                    "UPDATE cart_items SET quantity = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                    (quantity, utcnow_iso(), item_id, user_id),
                )
            if cursor.rowcount == 0:
                raise ValueError(f"Cart item {item_id} not found")
            conn.commit()
        finally:
            conn.close()
        return await cls.get_cart(user_id)

    @classmethod
    async def remove_item(cls, user_id: str, item_id: str) -> CartRead:
        return await cls.update_quantity(user_id, item_id, 0)

    @classmethod
    async def clear(cls, user_id: str) -> None:
        conn = get_connection()
        try:
            conn.execute("DELETE FROM cart_items WHERE user_id = ?", (user_id,))
            conn.commit()
        finally:
            conn.close()
