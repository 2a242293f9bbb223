"""
Business logic for the product catalog.

Products are listed newest first with optional filters.  List fields
(image and video URLs, tags) are stored as JSON arrays.  Deleting a
product only deactivates it so that orders, reviews and wishlists
keep pointing at a real row.
"""

import json
import logging
import re
import sqlite3
from typing import List, Optional

from ..core.db import get_connection, new_id, utcnow_iso
from ..schemas.product import (
    CategoryCreate,
    CategoryRead,
    ProductCreate,
    ProductDetail,
    ProductPage,
    ProductRead,
    ProductUpdate,
    StockUpdate,
    VariantCreate,
    VariantRead,
)
from .audit_service import AuditService

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = (
    "id, name, description, slug, category_id, image_urls, video_urls, base_price, featured_type, "
    "vendor_name, tags, stock_quantity, like_count, is_active, created_at, updated_at"
)
VARIANT_COLUMNS = (
    "id, product_id, sku, size, color, price, mrp_price, discount_percentage, quantity, image_urls, is_active"
)
CATEGORY_COLUMNS = "id, name, slug, description, image_url, parent_id, sort_order, is_active"

JSON_FIELDS = {"image_urls", "video_urls", "tags"}


def slugify(name: str) -> str:
    """``"Banarasi Silk Saree!"`` -> ``"banarasi-silk-saree"``."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def discount_percentage(price: float, mrp_price: Optional[float]) -> float:
    if not mrp_price or mrp_price <= price:
        return 0.0
    return round((mrp_price - price) / mrp_price * 100, 2)


def _json_list(value: Optional[str]) -> List[str]:
    return json.loads(value) if value else []


def _row_to_product(row: sqlite3.Row) -> ProductRead:
    data = dict(row)
    for field in JSON_FIELDS:
        data[field] = _json_list(data[field])
    data["is_active"] = bool(data["is_active"])
    return ProductRead(**data)


def _row_to_variant(row: sqlite3.Row) -> VariantRead:
    data = dict(row)
    data["image_urls"] = _json_list(data["image_urls"])
    data["is_active"] = bool(data["is_active"])
    return VariantRead(**data)


def _row_to_category(row: sqlite3.Row) -> CategoryRead:
    data = dict(row)
    data["is_active"] = bool(data["is_active"])
    return CategoryRead(**data)


def _check_category(conn: sqlite3.Connection, category_id: Optional[str]) -> None:
    if category_id and not conn.execute("SELECT 1 FROM categories WHERE id = ?", (category_id,)).fetchone():
        raise ValueError(f"Unknown category {category_id}")


class ProductService:
    """Service for browsing and managing products."""

    @classmethod
    async def list_products(
        cls,
        page: int = 1,
        limit: int = 20,
        category_id: Optional[str] = None,
        featured_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> ProductPage:
        """Return one page of products, newest first.

        ``search`` matches a substring of the name or description;
        ``min_price``/``max_price`` bound the base price.
        """
        filters = {
            "category_id = ?": category_id,
            "featured_type = ?": featured_type,
            "is_active = ?": None if is_active is None else int(is_active),
            "base_price >= ?": min_price,
            "base_price <= ?": max_price,
        }
        where_clauses = [clause for clause, value in filters.items() if value is not None]
        params: list = [value for value in filters.values() if value is not None]
        if search:
            where_clauses.append("(name LIKE ? OR description LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        conn = get_connection()
        try:
            total = conn.execute(f"SELECT COUNT(*) FROM products{where}", tuple(params)).fetchone()[0]
            rows = conn.execute(
                f"SELECT {PRODUCT_COLUMNS} FROM products{where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
        finally:
            conn.close()
        return ProductPage(products=[_row_to_product(r) for r in rows], total=total, page=page, limit=limit)

    @classmethod
    async def get_product(cls, product_id: str) -> ProductDetail:
        """Return a product with its active variants and its category."""
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = ?", (product_id,)
            ).fetchone()
            if not row:
                raise ValueError(f"Product {product_id} not found")
            variants = conn.execute(
                f"SELECT {VARIANT_COLUMNS} FROM product_variants WHERE product_id = ? AND is_active = 1 "
                "ORDER BY created_at",
                (product_id,),
            ).fetchall()
            category = None
            if row["category_id"]:
                category = conn.execute(
                    f"SELECT {CATEGORY_COLUMNS} FROM categories WHERE id = ?", (row["category_id"],)
                ).fetchone()
        finally:
            conn.close()
        product = _row_to_product(row)
        return ProductDetail(
            **product.model_dump(),
            variants=[_row_to_variant(v) for v in variants],
            category=_row_to_category(category) if category else None,
        )

    @classmethod
    async def create_product(cls, data: ProductCreate, actor_id: Optional[str] = None) -> ProductRead:
        product_id = new_id()
        now = utcnow_iso()
        conn = get_connection()
        try:
            _check_category(conn, data.category_id)
            conn.execute(
                """
                INSERT INTO products (
                    id, name, description, slug, category_id, image_urls, video_urls, base_price,
                    featured_type, vendor_name, tags, stock_quantity, is_active, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
                """,
                (
                    product_id,
                    data.name,
                    data.description,
                    slugify(data.name),
                    data.category_id,
                    json.dumps(data.image_urls),
                    json.dumps(data.video_urls),
                    data.base_price,
                    data.featured_type,
                    data.vendor_name,
                    json.dumps(data.tags),
                    data.stock_quantity,
                    now,
                    now,
                ),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = ?", (product_id,)
            ).fetchone()
        finally:
            conn.close()
        logger.info("Product %s created: %s", product_id, data.name)
        await AuditService.record(
            user_id=actor_id,
            action="create",
            object_type="product",
            object_id=product_id,
            details={"name": data.name},
        )
        return _row_to_product(row)

    @classmethod
    async def update_product(
        cls, product_id: str, data: ProductUpdate, actor_id: Optional[str] = None
    ) -> ProductRead:
        """Update the supplied fields; a new name also changes the slug."""
        fields = data.model_dump(exclude_unset=True)
        if "name" in fields:
            fields["slug"] = slugify(fields["name"])
        for name in fields.keys() & JSON_FIELDS:
            fields[name] = json.dumps(fields[name] or [])
        if "is_active" in fields:
            fields["is_active"] = int(fields["is_active"])
        conn = get_connection()
        try:
            if not conn.execute("SELECT 1 FROM products WHERE id = ?", (product_id,)).fetchone():
                raise ValueError(f"Product {product_id} not found")
            _check_category(conn, fields.get("category_id"))
            if fields:
                assignments = ", ".join(f"{name} = ?" for name in fields)
                conn.execute(
                    f"UPDATE products SET {assignments}, updated_at = ? WHERE id = ?",
                    (*fields.values(), utcnow_iso(), product_id),
                )
                conn.commit()
            row = conn.execute(
                f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = ?", (product_id,)
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="update",
            object_type="product",
            object_id=product_id,
            details={"fields": sorted(fields)} if fields else None,
        )
        return _row_to_product(row)

    @classmethod
    async def update_stock(cls, product_id: str, data: StockUpdate, actor_id: Optional[str] = None) -> ProductRead:
        """Apply a stock ``delta`` or set an absolute ``stock_quantity``.

        A delta that would take the stock below zero is rejected.
        """
        conn = get_connection()
        try:
            if data.delta is not None:
                cursor = conn.execute(
                    """
                    UPDATE products SET stock_quantity = stock_quantity + ?, updated_at = ?
                    WHERE id = ? AND stock_quantity + ? >= 0
                    """,
                    (data.delta, utcnow_iso(), product_id, data.delta),
                )
            else:
                cursor = conn.execute(
                    "UPDATE products SET stock_quantity = ?, updated_at = ? WHERE id = ?",
                    (data.stock_quantity, utcnow_iso(), product_id),
                )
            if cursor.rowcount == 0:
                if not conn.execute("SELECT 1 FROM products WHERE id = ?", (product_id,)).fetchone():
                    raise ValueError(f"Product {product_id} not found")
                raise ValueError("Insufficient stock")
            conn.commit()
            row = conn.execute(
                f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = ?", (product_id,)
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="update",
            object_type="product",
            object_id=product_id,
            details={"stock_quantity": row["stock_quantity"]},
        )
        return _row_to_product(row)

    @classmethod
    async def deactivate_product(cls, product_id: str, actor_id: Optional[str] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE products SET is_active = 0, updated_at = ? WHERE id = ?",
                (utcnow_iso(), product_id),
            )
            if cursor.rowcount == 0:
                raise ValueError(f"Product {product_id} not found")
            conn.commit()
        finally:
            conn.close()
        logger.info("Product %s deactivated by %s", product_id, actor_id)
        await AuditService.record(
            user_id=actor_id,
            action="delete",
            object_type="product",
            object_id=product_id,
        )

    @classmethod
    async def add_variant(cls, product_id: str, data: VariantCreate, actor_id: Optional[str] = None) -> VariantRead:
        variant_id = new_id()
        now = utcnow_iso()
        conn = get_connection()
        try:
            if not conn.execute("SELECT 1 FROM products WHERE id = ?", (product_id,)).fetchone():
                raise ValueError(f"Product {product_id} not found")
            try:
                conn.execute(
                    """
                    INSERT INTO product_variants (
                        id, product_id, sku, size, color, price, mrp_price, discount_percentage,
                        quantity, image_urls, is_active, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
                    """,
                    (
                        variant_id,
                        product_id,
                        data.sku,
                        data.size,
                        data.color,
                        data.price,
                        data.mrp_price,
                        discount_percentage(data.price, data.mrp_price),
                        data.quantity,
                        json.dumps(data.image_urls),
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError:
                raise ValueError(f"SKU {data.sku} already exists")
            conn.commit()
            row = conn.execute(
                f"SELECT {VARIANT_COLUMNS} FROM product_variants WHERE id = ?", (variant_id,)
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="create",
            object_type="product_variant",
            object_id=variant_id,
            details={"product_id": product_id},
        )
        return _row_to_variant(row)

    @classmethod
    async def get_trending(cls, limit: int = 10) -> List[ProductRead]:
        """Active products featured as ``trending``, most liked first."""
        conn = get_connection()
        try:
            rows = conn.execute(
                f"""
                SELECT {PRODUCT_COLUMNS} FROM products
                WHERE is_active = 1 AND featured_type = 'trending'
                ORDER BY like_count DESC, created_at DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_product(r) for r in rows]

    @classmethod
    async def search_products(cls, query: str, limit: int = 20) -> List[ProductRead]:
        """Search active products by name, description or tag.

        Names starting with ``query`` rank first, then by likes.
        """
        conn = get_connection()
        try:
            rows = conn.execute(
                f"""
                SELECT {PRODUCT_COLUMNS} FROM products
                WHERE is_active = 1 AND (name LIKE ?1 OR description LIKE ?1 OR tags LIKE ?1)
                ORDER BY CASE WHEN name LIKE ?2 THEN 1 ELSE 2 END, like_count DESC
                LIMIT ?3
                """,
                (f"%{query}%", f"{query}%", limit),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_product(r) for r in rows]

    @classmethod
    async def list_categories(cls) -> List[CategoryRead]:
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT {CATEGORY_COLUMNS} FROM categories WHERE is_active = 1 ORDER BY sort_order, name"
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_category(r) for r in rows]

    @classmethod
    async def create_category(cls, data: CategoryCreate, actor_id: Optional[str] = None) -> CategoryRead:
        category_id = new_id()
        now = utcnow_iso()
        slug = slugify(data.name)
        conn = get_connection()
        try:
            _check_category(conn, data.parent_id)
            try:
                conn.execute(
                    """
                    INSERT INTO categories (
                        id, name, slug, description, image_url, parent_id, sort_order,
                        is_active, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
                    """,
                    (
                        category_id,
                        data.name,
                        slug,
                        data.description,
                        data.image_url,
                        data.parent_id,
                        data.sort_order,
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError:
                raise ValueError(f"Category {slug} already exists")
            conn.commit()
            row = conn.execute(
                f"SELECT {CATEGORY_COLUMNS} FROM categories WHERE id = ?", (category_id,)
            ).fetchone()
        finally:
            conn.close()
        await AuditService.record(
            user_id=actor_id,
            action="create",
            object_type="category",
            object_id=category_id,
            details={"slug": slug},
        )
        return _row_to_category(row)
