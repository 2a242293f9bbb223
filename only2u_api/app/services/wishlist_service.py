"""
Business logic for wishlist collections.

A collection belongs to one user.  Private collections are only
visible to their owner; public ones can be browsed by anyone.
Collections someone else owns are reported as not found.
"""

import logging
import sqlite3
from typing import List, Optional

from ..core.db import get_connection, new_id, utcnow_iso
from ..schemas.product import ProductRead
from ..schemas.wishlist import CollectionCreate, CollectionRead
from .product_service import PRODUCT_COLUMNS, _row_to_product

logger = logging.getLogger(__name__)

COLLECTION_COLUMNS = (
    "c.id, c.user_id, c.name, c.description, c.is_private, c.is_default, c.created_at, c.updated_at, "
    "COUNT(cp.id) AS product_count"
)


def _row_to_collection(row: sqlite3.Row) -> CollectionRead:
    data = dict(row)
    data["is_private"] = bool(data["is_private"])
    data["is_default"] = bool(data["is_default"])
    return CollectionRead(**data)


def _fetch(conn: sqlite3.Connection, collection_id: str) -> Optional[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT {COLLECTION_COLUMNS} FROM collections c
        LEFT JOIN collection_products cp ON cp.collection_id = c.id
        WHERE c.id = ?
        GROUP BY c.id
        """,
        (collection_id,),
    ).fetchone()


def _owned(conn: sqlite3.Connection, collection_id: str, user_id: str) -> None:
    if not conn.execute(
        "SELECT 1 FROM collections WHERE id = ? AND user_id = ?", (collection_id, user_id)
    ).fetchone():
        raise ValueError(f"Collection {collection_id} not found")


class WishlistService:
    """Service for users' wishlist collections."""

    @classmethod
    async def get_user_collections(cls, user_id: str, include_private: bool = True) -> List[CollectionRead]:
        """Default collection first, then newest first."""
        private_clause = "" if include_private else " AND c.is_private = 0"
        conn = get_connection()
        try:
            rows = conn.execute(
                f"""
                SELECT {COLLECTION_COLUMNS} FROM collections c
                LEFT JOIN collection_products cp ON cp.collection_id = c.id
                WHERE c.user_id = ?{private_clause}
                GROUP BY c.id
                ORDER BY c.is_default DESC, c.created_at DESC
                """,
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_collection(r) for r in rows]

    @classmethod
    async def create_collection(cls, user_id: str, data: CollectionCreate) -> CollectionRead:
        collection_id = new_id()
        now = utcnow_iso()
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO collections (
                    id, user_id, name, description, is_private, is_default, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    collection_id,
                    user_id,
                    data.name,
                    data.description,
                    int(data.is_private),
                    int(data.is_default),
                    now,
                    now,
                ),
            )
            conn.commit()
            row = _fetch(conn, collection_id)
        finally:
            conn.close()
        logger.info("Collection %s created by %s", collection_id, user_id)
        return _row_to_collection(row)

    @classmethod
    async def get_collection(cls, collection_id: str, viewer_id: Optional[str] = None) -> CollectionRead:
        """Return a collection the viewer owns, or any public one."""
        conn = get_connection()
        try:
            row = _fetch(conn, collection_id)
        finally:
            conn.close()
        if not row or (row["is_private"] and row["user_id"] != viewer_id):
            raise ValueError(f"Collection {collection_id} not found")
        return _row_to_collection(row)

    @classmethod
    async def get_collection_products(cls, collection_id: str, viewer_id: Optional[str] = None) -> List[ProductRead]:
        """Products in the collection, most recently added first."""
        await cls.get_collection(collection_id, viewer_id)
        columns = ", ".join(f"p.{name} AS {name}" for name in (n.strip() for n in PRODUCT_COLUMNS.split(",")))
        conn = get_connection()
        try:
            rows = conn.execute(
                f"""
                SELECT {columns} FROM collection_products cp
                JOIN products p ON p.id = cp.product_id
                WHERE cp.collection_id = ?
                ORDER BY cp.added_at DESC
                """,
                (collection_id,),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_product(r) for r in rows]

    @classmethod
    async def add_product(cls, collection_id: str, product_id: str, user_id: str) -> CollectionRead:
        """Add a product; adding one that is already there changes nothing."""
        conn = get_connection()
        try:
            _owned(conn, collection_id, user_id)
            if not conn.execute("SELECT 1 FROM products WHERE id = ?", (product_id,)).fetchone():
                raise ValueError(f"Product {product_id} not found")
            conn.execute(
                """
                INSERT OR IGNORE INTO collection_products (id, collection_id, product_id, added_at)
                VALUES (?, ?, ?, ?)
                """,
                (new_id(), collection_id, product_id, utcnow_iso()),
            )
            conn.execute("UPDATE collections SET updated_at = ? WHERE id = ?", (utcnow_iso(), collection_id))
            conn.commit()
            row = _fetch(conn, collection_id)
        finally:
            conn.close()
        return _row_to_collection(row)

    @classmethod
    async def remove_product(cls, collection_id: str, product_id: str, user_id: str) -> None:
        conn = get_connection()
        try:
            _owned(conn, collection_id, user_id)
            conn.execute(
                "DELETE FROM collection_products WHERE collection_id = ? AND product_id = ?",
                (collection_id, product_id),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def delete_collection(cls, collection_id: str, user_id: str) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM collections WHERE id = ? AND user_id = ?", (collection_id, user_id)
            )
            if cursor.rowcount == 0:
                raise ValueError(f"Collection {collection_id} not found")
            conn.commit()
        finally:
            conn.close()
        logger.info("Collection %s deleted by %s", collection_id, user_id)
