from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
import contextlib
import logging

import psycopg2  # type: ignore
import psycopg2.extras  # type: ignore

from ..settings import Settings

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS pgcrypto;

CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    auth_id TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL DEFAULT '',
    name TEXT NOT NULL DEFAULT 'User',
    preferences JSONB,
    primary_photo_id UUID,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS photos (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    url TEXT NOT NULL,
    is_primary BOOLEAN NOT NULL DEFAULT FALSE,
    uploaded_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS products (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    external_id TEXT UNIQUE,
    name TEXT NOT NULL,
    brand TEXT NOT NULL,
    price NUMERIC(10, 2) NOT NULL DEFAULT 0,
    currency TEXT NOT NULL DEFAULT 'USD',
    retailer TEXT NOT NULL,
    category TEXT NOT NULL,
    subcategory TEXT,
    image_url TEXT NOT NULL DEFAULT '',
    product_url TEXT NOT NULL DEFAULT '#',
    description TEXT,
    available_sizes TEXT[],
    colors TEXT[],
    in_stock BOOLEAN NOT NULL DEFAULT TRUE,
    trending BOOLEAN NOT NULL DEFAULT FALSE,
    is_new BOOLEAN NOT NULL DEFAULT FALSE,
    is_editorial BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS swipes (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    product_id UUID NOT NULL REFERENCES products(id),
    direction TEXT NOT NULL CHECK (direction IN ('left', 'right', 'up')),
    session_id UUID NOT NULL,
    card_position INTEGER NOT NULL DEFAULT 0,
    swiped_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS collections (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    is_default BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS collection_items (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    collection_id UUID NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
    product_id UUID NOT NULL REFERENCES products(id),
    try_on_image_url TEXT,
    added_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (collection_id, product_id)
);
"""

PRODUCT_COLUMNS = (
    "id, external_id, name, brand, price, currency, retailer, category, subcategory, "
    "image_url, product_url, description, available_sizes, colors, in_stock, "
    "trending, is_new, is_editorial"
)

# Flag columns addressable by catalog browsing
PRODUCT_FLAGS = {"trending": "trending", "new": "is_new", "editorial": "is_editorial"}


class PostgresClient:
    def __init__(self, dsn: str):
        self._dsn = dsn

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresClient":
        if settings.postgres_dsn:
            dsn = settings.postgres_dsn
        else:
            host = settings.pg_host or "localhost"
            port = settings.pg_port or 5432
            user = settings.pg_user or "postgres"
            password = settings.pg_password or ""
            database = settings.pg_database or "vesaki"
            dsn = f"host={host} port={port} user={user} password={password} dbname={database}"
        return cls(dsn)

    @contextlib.contextmanager
    def _get_conn(self):
        conn = psycopg2.connect(self._dsn)
        try:
            yield conn
        finally:
            try:
                conn.close()
            except Exception:
                pass

    def ensure_schema(self) -> None:
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
        logger.info("Database schema ensured")

    def fetch_all(self, sql: str, params: Sequence[Any] | None = None) -> List[Dict[str, Any]]:
        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(sql, params or [])
                rows = cur.fetchall()
                return [dict(r) for r in rows]

    def fetch_one(self, sql: str, params: Sequence[Any] | None = None) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Optional[Dict[str, Any]]:
        """Run a write statement, commit, and return the RETURNING row if any."""
        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(sql, params or [])
                row = cur.fetchone() if cur.description else None
                conn.commit()
                return dict(row) if row else None

    # Catalog
    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.fetch_one(f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = %s", (product_id,))

    def search_products(self, term: str, limit: int) -> List[Dict[str, Any]]:
        pattern = f"%{term}%"
        sql = (
            f"SELECT {PRODUCT_COLUMNS} FROM products "
            "WHERE name ILIKE %s OR brand ILIKE %s OR category ILIKE %s "
            "OR COALESCE(description, '') ILIKE %s "
            "LIMIT %s"
        )
        return self.fetch_all(sql, (pattern, pattern, pattern, pattern, limit))

    def get_flagged_products(self, flag: str, limit: int) -> List[Dict[str, Any]]:
        column = PRODUCT_FLAGS[flag]
        sql = f"SELECT {PRODUCT_COLUMNS} FROM products WHERE {column} LIMIT %s"
        return self.fetch_all(sql, (limit,))

    def get_random_products(self, limit: int) -> List[Dict[str, Any]]:
        return self.fetch_all(f"SELECT {PRODUCT_COLUMNS} FROM products ORDER BY RANDOM() LIMIT %s", (limit,))

    def find_product_by_external_id(self, external_id: str) -> Optional[Dict[str, Any]]:
        return self.fetch_one(f"SELECT {PRODUCT_COLUMNS} FROM products WHERE external_id = %s", (external_id,))

    def insert_product(self, values: Dict[str, Any]) -> str:
        """Insert a catalog row; an existing external_id wins over the new row."""
        sql = (
            "INSERT INTO products (external_id, name, brand, price, currency, retailer, category, "
            "subcategory, image_url, product_url, description, available_sizes, colors, in_stock, "
            "trending, is_new, is_editorial) "
            "VALUES (%(external_id)s, %(name)s, %(brand)s, %(price)s, %(currency)s, %(retailer)s, "
            "%(category)s, %(subcategory)s, %(image_url)s, %(product_url)s, %(description)s, "
            "%(available_sizes)s, %(colors)s, %(in_stock)s, %(trending)s, %(is_new)s, %(is_editorial)s) "
            "ON CONFLICT (external_id) DO UPDATE SET external_id = EXCLUDED.external_id "
            "RETURNING id"
        )
        row = self.execute(sql, values)
        return str(row["id"])

    # Users and photos
    def get_user_by_auth_id(self, auth_id: str) -> Optional[Dict[str, Any]]:
        return self.fetch_one("SELECT * FROM users WHERE auth_id = %s LIMIT 1", (auth_id,))

    def create_user(self, auth_id: str, email: str, name: str, preferences: Optional[dict]) -> Dict[str, Any]:
        return self.execute(
            "INSERT INTO users (auth_id, email, name, preferences) VALUES (%s, %s, %s, %s) RETURNING *",
            (auth_id, email, name, psycopg2.extras.Json(preferences) if preferences is not None else None),
        )

    def update_user(self, user_id: str, name: str, preferences: Optional[dict]) -> Dict[str, Any]:
        return self.execute(
            "UPDATE users SET name = %s, preferences = %s WHERE id = %s RETURNING *",
            (name, psycopg2.extras.Json(preferences) if preferences is not None else None, user_id),
        )

    def list_photos(self, user_id: str) -> List[Dict[str, Any]]:
        return self.fetch_all(
            "SELECT id, user_id, url, is_primary, uploaded_at FROM photos "
            "WHERE user_id = %s ORDER BY uploaded_at, id",
            (user_id,),
        )

    def get_photo(self, user_id: str, photo_id: str) -> Optional[Dict[str, Any]]:
        return self.fetch_one(
            "SELECT id, user_id, url, is_primary, uploaded_at FROM photos WHERE user_id = %s AND id = %s",
            (user_id, photo_id),
        )

    def add_photo(self, user_id: str, url: str) -> Dict[str, Any]:
        return self.execute(
            "INSERT INTO photos (user_id, url, is_primary) VALUES (%s, %s, FALSE) "
            "RETURNING id, user_id, url, is_primary, uploaded_at",
            (user_id, url),
        )

    def update_photo_url(self, user_id: str, photo_id: str, url: str) -> Optional[Dict[str, Any]]:
        return self.execute(
            "UPDATE photos SET url = %s WHERE user_id = %s AND id = %s "
            "RETURNING id, user_id, url, is_primary, uploaded_at",
            (url, user_id, photo_id),
        )

    def delete_photo(self, user_id: str, photo_id: str) -> int:
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM photos WHERE user_id = %s AND id = %s", (user_id, photo_id))
                affected = cur.rowcount
                if affected:
                    cur.execute(
                        "UPDATE users SET primary_photo_id = NULL WHERE id = %s AND primary_photo_id = %s",
                        (user_id, photo_id),
                    )
                conn.commit()
                return affected

    def set_primary_photo(self, user_id: str, photo_id: Optional[str]) -> None:
        """Make photo_id the only primary photo (None clears the primary)."""
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE photos SET is_primary = (id = %s) WHERE user_id = %s",
                    (photo_id, user_id),
                )
                cur.execute("UPDATE users SET primary_photo_id = %s WHERE id = %s", (photo_id, user_id))
                conn.commit()

    # Swipes
    def insert_swipe(self, user_id: str, product_id: str, direction: str, session_id: str,
                     card_position: int) -> Dict[str, Any]:
        return self.execute(
            "INSERT INTO swipes (user_id, product_id, direction, session_id, card_position) "
            "VALUES (%s, %s, %s, %s, %s) RETURNING *",
            (user_id, product_id, direction, session_id, card_position),
        )

    def list_swipes(self, user_id: str) -> List[Dict[str, Any]]:
        return self.fetch_all(
            "SELECT * FROM swipes WHERE user_id = %s ORDER BY swiped_at DESC",
            (user_id,),
        )

    def get_products_for_ids(self, product_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not product_ids:
            return {}
        rows = self.fetch_all(
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id::text = ANY(%s)",
            (list(product_ids),),
        )
        return {str(r["id"]): r for r in rows}

    # Collections
    def get_default_collection(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.fetch_one(
            "SELECT * FROM collections WHERE user_id = %s AND is_default ORDER BY created_at LIMIT 1",
            (user_id,),
        )

    def create_collection(self, user_id: str, name: str, is_default: bool = False) -> Dict[str, Any]:
        return self.execute(
            "INSERT INTO collections (user_id, name, is_default) VALUES (%s, %s, %s) RETURNING *",
            (user_id, name, is_default),
        )

    def list_collections(self, user_id: str) -> List[Dict[str, Any]]:
        return self.fetch_all(
            "SELECT * FROM collections WHERE user_id = %s ORDER BY is_default DESC, created_at",
            (user_id,),
        )

    def list_collection_items(self, collection_ids: List[str]) -> List[Dict[str, Any]]:
        if not collection_ids:
            return []
        return self.fetch_all(
            "SELECT * FROM collection_items WHERE collection_id::text = ANY(%s) ORDER BY added_at DESC",
            (list(collection_ids),),
        )

    def get_collection_item(self, collection_id: str, product_id: str) -> Optional[Dict[str, Any]]:
        return self.fetch_one(
            "SELECT * FROM collection_items WHERE collection_id = %s AND product_id = %s",
            (collection_id, product_id),
        )

    def insert_collection_item(self, collection_id: str, product_id: str,
                               try_on_image_url: Optional[str]) -> Dict[str, Any]:
        return self.execute(
            "INSERT INTO collection_items (collection_id, product_id, try_on_image_url) "
            "VALUES (%s, %s, %s) ON CONFLICT (collection_id, product_id) DO NOTHING RETURNING *",
            (collection_id, product_id, try_on_image_url),
        )

    def set_collection_item_try_on(self, item_id: str, try_on_image_url: str) -> None:
        self.execute(
            "UPDATE collection_items SET try_on_image_url = %s WHERE id = %s",
            (try_on_image_url, item_id),
        )

    def delete_collection_item(self, user_id: str, collection_id: str, item_id: str) -> int:
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM collection_items ci USING collections c "
                    "WHERE ci.collection_id = c.id AND c.user_id = %s AND c.id = %s AND ci.id = %s",
                    (user_id, collection_id, item_id),
                )
                affected = cur.rowcount
                conn.commit()
                return affected
