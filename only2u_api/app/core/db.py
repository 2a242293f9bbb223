"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), applying migrations on application start
(``init_db``) and small helpers shared by the services.  Identifiers
are UUID4 strings and timestamps are ISO-8601 UTC strings written by
the application, so that lexical order equals chronological order.

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .config import settings


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path, use it directly.
    Otherwise resolve it relative to the project root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # only2u_api/
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` so columns can be accessed by
    name.  Foreign key enforcement is switched on per connection, as
    SQLite disables it by default.
    """
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def new_id() -> str:
    """Return a new primary key."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialise a datetime as a UTC ISO string with fixed precision.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utcnow_iso() -> str:
    return to_iso(utcnow())


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a timestamp written by :func:`to_iso` (or ``None``)."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: users, roles, OTP and sessions
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS roles (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL UNIQUE
        );

        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            phone TEXT NOT NULL UNIQUE,
            full_name TEXT,
            email TEXT,
            profile_image_url TEXT,
            size TEXT,
            skin_tone TEXT,
            role_id INTEGER NOT NULL DEFAULT 3,
            expo_push_token TEXT,
            disabled INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(role_id) REFERENCES roles(id)
        );

        CREATE TABLE IF NOT EXISTS otp_codes (
            id TEXT PRIMARY KEY,
            phone TEXT NOT NULL,
            otp TEXT NOT NULL,
            attempts INTEGER NOT NULL DEFAULT 0,
            verified INTEGER NOT NULL DEFAULT 0,
            expires_at TIMESTAMP NOT NULL,
            created_at TIMESTAMP NOT NULL
        );

        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            phone TEXT NOT NULL,
            is_valid INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP NOT NULL,
            expires_at TIMESTAMP NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT,
            action TEXT NOT NULL,
            object_type TEXT,
            object_id TEXT,
            timestamp TIMESTAMP NOT NULL,
            details TEXT
        );
        """,
    ),
    # Migration 2: product reviews and app feedback
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS product_reviews (
            id TEXT PRIMARY KEY,
            product_id TEXT NOT NULL,
            user_id TEXT,
            reviewer_name TEXT NOT NULL,
            rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
            comment TEXT,
            is_verified INTEGER NOT NULL DEFAULT 0,
            profile_image_url TEXT,
            helpful_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS feedback (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            user_email TEXT,
            user_name TEXT NOT NULL,
            feedback_text TEXT NOT NULL,
            image_urls TEXT,
            category TEXT NOT NULL DEFAULT 'general',
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE SET NULL
        );
        """,
    ),
    # Migration 3: coupons, redemptions and referral codes
    (
        3,
        """
        CREATE TABLE IF NOT EXISTS coupons (
            id TEXT PRIMARY KEY,
            code TEXT NOT NULL UNIQUE,
            name TEXT,
            description TEXT,
            discount_type TEXT NOT NULL,
            discount_value REAL NOT NULL,
            max_discount_amount REAL,
            minimum_order_amount REAL,
            valid_from TIMESTAMP,
            valid_until TIMESTAMP,
            usage_limit INTEGER,
            usage_count INTEGER NOT NULL DEFAULT 0,
            allow_multiple_use INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_by TEXT,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(created_by) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS coupon_redemptions (
            id TEXT PRIMARY KEY,
            coupon_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            order_id TEXT,
            discount_amount REAL NOT NULL,
            redeemed_at TIMESTAMP NOT NULL,
            FOREIGN KEY(coupon_id) REFERENCES coupons(id) ON DELETE CASCADE,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS referral_codes (
            id TEXT PRIMARY KEY,
            code TEXT NOT NULL UNIQUE,
            owner_user_id TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            max_uses INTEGER,
            usage_count INTEGER NOT NULL DEFAULT 0,
            expires_at TIMESTAMP,
            created_at TIMESTAMP NOT NULL,
            FOREIGN KEY(owner_user_id) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS referral_code_usage (
            id TEXT PRIMARY KEY,
            referral_code_id TEXT NOT NULL,
            referral_code TEXT NOT NULL,
            user_id TEXT,
            user_email TEXT,
            user_phone TEXT,
            user_name TEXT,
            ip_address TEXT,
            user_agent TEXT,
            used_at TIMESTAMP NOT NULL,
            FOREIGN KEY(referral_code_id) REFERENCES referral_codes(id) ON DELETE CASCADE,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE SET NULL
        );
        """,
    ),
    # Migration 4: special reward code pool and Razorpay payments
    (
        4,
        """
        CREATE TABLE IF NOT EXISTS special_referral_codes (
            id TEXT PRIMARY KEY,
            code TEXT NOT NULL UNIQUE,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP NOT NULL
        );

        CREATE TABLE IF NOT EXISTS reward_codes (
            id TEXT PRIMARY KEY,
            code TEXT NOT NULL UNIQUE,
            is_assigned INTEGER NOT NULL DEFAULT 0,
            assigned_to_user_id TEXT UNIQUE,
            assigned_at TIMESTAMP,
            created_at TIMESTAMP NOT NULL,
            FOREIGN KEY(assigned_to_user_id) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS payments (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            razorpay_order_id TEXT NOT NULL UNIQUE,
            razorpay_payment_id TEXT,
            amount INTEGER NOT NULL,
            currency TEXT NOT NULL DEFAULT 'INR',
            receipt TEXT,
            status TEXT NOT NULL DEFAULT 'created',
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE SET NULL
        );
        """,
    ),
    # Migration 5: notification history and preferences
    (
        5,
        """
        CREATE TABLE IF NOT EXISTS notifications (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            body TEXT NOT NULL,
            data TEXT,
            is_read INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS notification_preferences (
            user_id TEXT PRIMARY KEY,
            push_enabled INTEGER NOT NULL DEFAULT 1,
            email_enabled INTEGER NOT NULL DEFAULT 1,
            order_updates INTEGER NOT NULL DEFAULT 1,
            promotions INTEGER NOT NULL DEFAULT 1,
            new_products INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );
        """,
    ),
    # Migration 6: lookup indices
    (
        6,
        """
        CREATE UNIQUE INDEX IF NOT EXISTS idx_product_reviews_product_user
            ON product_reviews(product_id, user_id);
        CREATE INDEX IF NOT EXISTS idx_product_reviews_user_id ON product_reviews(user_id);
        CREATE INDEX IF NOT EXISTS idx_feedback_user_id ON feedback(user_id);
        CREATE INDEX IF NOT EXISTS idx_otp_codes_phone ON otp_codes(phone);
        CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id);
        CREATE INDEX IF NOT EXISTS idx_coupon_redemptions_user_id ON coupon_redemptions(user_id);
        CREATE INDEX IF NOT EXISTS idx_reward_codes_is_assigned ON reward_codes(is_assigned);
        CREATE INDEX IF NOT EXISTS idx_notifications_user_id ON notifications(user_id);
        CREATE INDEX IF NOT EXISTS idx_payments_user_id ON payments(user_id);
        """,
    ),
    # Migration 7: product catalog, orders, carts and wishlist collections
    (
        7,
        """
        CREATE TABLE IF NOT EXISTS categories (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            description TEXT,
            image_url TEXT,
            parent_id TEXT,
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(parent_id) REFERENCES categories(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS products (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            slug TEXT NOT NULL,
            category_id TEXT,
            image_urls TEXT,
            video_urls TEXT,
            base_price REAL NOT NULL,
            featured_type TEXT,
            vendor_name TEXT,
            tags TEXT,
            stock_quantity INTEGER NOT NULL DEFAULT 0,
            like_count INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(category_id) REFERENCES categories(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS product_variants (
            id TEXT PRIMARY KEY,
            product_id TEXT NOT NULL,
            sku TEXT UNIQUE,
            size TEXT,
            color TEXT,
            price REAL NOT NULL,
            mrp_price REAL,
            discount_percentage REAL NOT NULL DEFAULT 0,
            quantity INTEGER NOT NULL DEFAULT 0,
            image_urls TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS orders (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            order_number TEXT NOT NULL UNIQUE,
            status TEXT NOT NULL DEFAULT 'pending',
            payment_status TEXT NOT NULL DEFAULT 'pending',
            payment_method TEXT,
            payment_id TEXT,
            subtotal REAL NOT NULL,
            tax_amount REAL NOT NULL DEFAULT 0,
            shipping_amount REAL NOT NULL DEFAULT 0,
            discount_amount REAL NOT NULL DEFAULT 0,
            total_amount REAL NOT NULL,
            shipping_address TEXT NOT NULL,
            billing_address TEXT,
            tracking_number TEXT,
            shipped_at TIMESTAMP,
            delivered_at TIMESTAMP,
            notes TEXT,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS order_items (
            id TEXT PRIMARY KEY,
            order_id TEXT NOT NULL,
            product_id TEXT,
            variant_id TEXT,
            product_name TEXT NOT NULL,
            product_sku TEXT,
            product_image TEXT,
            size TEXT,
            color TEXT,
            quantity INTEGER NOT NULL,
            unit_price REAL NOT NULL,
            total_price REAL NOT NULL,
            created_at TIMESTAMP NOT NULL,
            FOREIGN KEY(order_id) REFERENCES orders(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS cart_items (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            product_id TEXT NOT NULL,
            variant_id TEXT,
            product_name TEXT NOT NULL,
            product_image TEXT,
            size TEXT,
            color TEXT,
            price REAL NOT NULL,
            quantity INTEGER NOT NULL,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS collections (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            is_private INTEGER NOT NULL DEFAULT 1,
            is_default INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS collection_products (
            id TEXT PRIMARY KEY,
            collection_id TEXT NOT NULL,
            product_id TEXT NOT NULL,
            added_at TIMESTAMP NOT NULL,
            UNIQUE(collection_id, product_id),
            FOREIGN KEY(collection_id) REFERENCES collections(id) ON DELETE CASCADE,
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_products_category_id ON products(category_id);
        CREATE INDEX IF NOT EXISTS idx_product_variants_product_id ON product_variants(product_id);
        CREATE INDEX IF NOT EXISTS idx_orders_user_id ON orders(user_id);
        CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items(order_id);
        CREATE INDEX IF NOT EXISTS idx_cart_items_user_id ON cart_items(user_id);
        CREATE INDEX IF NOT EXISTS idx_collections_user_id ON collections(user_id);
        """,
    ),
]


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations from
    ``MIGRATIONS``.  New migrations are appended with an incremented
    version number.
    """
    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                current_version = version

        # Default roles: super_admin (1), admin (2) and user (3)
        cursor.execute("INSERT OR IGNORE INTO roles (id, name) VALUES (1, 'super_admin')")
        cursor.execute("INSERT OR IGNORE INTO roles (id, name) VALUES (2, 'admin')")
        cursor.execute("INSERT OR IGNORE INTO roles (id, name) VALUES (3, 'user')")
