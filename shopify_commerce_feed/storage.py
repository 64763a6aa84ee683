"""Storage backends for per-shop feed settings and the cached feed."""

import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from .models.feed_models import CachedFeed, FeedSettings

# Fields a settings update may touch.
SETTINGS_FIELDS = (
    "enable_search",
    "enable_checkout",
    "seller_name",
    "seller_url",
    "privacy_policy_url",
    "terms_of_service_url",
    "return_policy_url",
    "accepts_returns",
    "return_deadline_days",
    "accepts_exchanges",
    "store_country",
    "target_countries",
)

BOOLEAN_FIELDS = frozenset({
    "enable_search",
    "enable_checkout",
    "accepts_returns",
    "accepts_exchanges",
})

SCHEMA = """
CREATE TABLE IF NOT EXISTS feed_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    shop TEXT NOT NULL UNIQUE,
    enable_search INTEGER NOT NULL DEFAULT 1,
    enable_checkout INTEGER NOT NULL DEFAULT 0,
    seller_name TEXT,
    seller_url TEXT,
    privacy_policy_url TEXT,
    terms_of_service_url TEXT,
    return_policy_url TEXT,
    accepts_returns INTEGER DEFAULT 1,
    return_deadline_days INTEGER DEFAULT 30,
    accepts_exchanges INTEGER DEFAULT 1,
    store_country TEXT DEFAULT 'US',
    target_countries TEXT DEFAULT 'US',
    feed_generated_at INTEGER,
    product_count INTEGER DEFAULT 0,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS feed_cache (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    shop TEXT NOT NULL UNIQUE,
    feed_data TEXT,
    product_count INTEGER DEFAULT 0,
    generated_at INTEGER NOT NULL
);
"""


def now_ms() -> int:
    return int(time.time() * 1000)


class BaseFeedStore(ABC):
    """Abstract store for feed settings and cached feeds, keyed by shop."""

    @abstractmethod
    def get_settings(self, shop: str) -> FeedSettings:
        """Return the shop's settings, creating the default row if missing."""

    @abstractmethod
    def has_settings(self, shop: str) -> bool:
        """Whether a settings row exists, without creating one."""

    @abstractmethod
    def update_settings(self, shop: str, changes: Mapping[str, Any]) -> None:
        """Overwrite only the given settings fields."""

    @abstractmethod
    def delete_settings(self, shop: str) -> None:
        """Remove the shop's settings row."""

    @abstractmethod
    def get_cached_feed(self, shop: str) -> Optional[CachedFeed]:
        """Return the last generated feed, or None if none was generated."""

    @abstractmethod
    def replace_feed(self, shop: str, feed_data: str, product_count: int, generated_at: int) -> None:
        """Replace the cached feed and stamp the settings row in one write."""

    @abstractmethod
    def delete_cache(self, shop: str) -> None:
        """Remove the shop's cached feed."""


class SQLiteFeedStore(BaseFeedStore):
    """SQLite-based store; one connection shared across threads behind a lock."""

    def __init__(self, db_path: str = "feeds.db"):
        self.db_path = db_path
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_db()

    def _init_db(self) -> None:
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> FeedSettings:
        deadline = row["return_deadline_days"]
        return FeedSettings(
            shop=row["shop"],
            enable_search=bool(row["enable_search"]),
            enable_checkout=bool(row["enable_checkout"]),
            seller_name=row["seller_name"],
            seller_url=row["seller_url"],
            privacy_policy_url=row["privacy_policy_url"],
            terms_of_service_url=row["terms_of_service_url"],
            return_policy_url=row["return_policy_url"],
            accepts_returns=bool(row["accepts_returns"]),
            return_deadline_days=30 if deadline is None else deadline,
            accepts_exchanges=bool(row["accepts_exchanges"]),
            store_country=row["store_country"] or "US",
            target_countries=row["target_countries"] or "US",
            feed_generated_at=row["feed_generated_at"],
            product_count=row["product_count"] or 0,
        )

    def get_settings(self, shop: str) -> FeedSettings:
        ts = now_ms()
        with self._lock, self._conn:
            # Conflict-safe create: concurrent first reads never duplicate the row.
            self._conn.execute(
                """
                INSERT INTO feed_settings (shop, created_at, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(shop) DO NOTHING
                """,
                (shop, ts, ts),
            )
            row = self._conn.execute(
                "SELECT * FROM feed_settings WHERE shop = ?",
                (shop,),
            ).fetchone()
        return self._row_to_settings(row)

    def has_settings(self, shop: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM feed_settings WHERE shop = ?",
                (shop,),
            ).fetchone()
        return row is not None

    def update_settings(self, shop: str, changes: Mapping[str, Any]) -> None:
        fields = [name for name in SETTINGS_FIELDS if name in changes]
        if not fields:
            return

        values = [
            (1 if changes[name] else 0) if name in BOOLEAN_FIELDS else changes[name]
            for name in fields
        ]
        assignments = ", ".join(f"{name} = ?" for name in fields)

        with self._lock:
            self.get_settings(shop)
            with self._conn:
                self._conn.execute(
                    f"UPDATE feed_settings SET {assignments}, updated_at = ? WHERE shop = ?",
                    (*values, now_ms(), shop),
                )

    def delete_settings(self, shop: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM feed_settings WHERE shop = ?", (shop,))

    def get_cached_feed(self, shop: str) -> Optional[CachedFeed]:
        with self._lock:
            row = self._conn.execute(
                "SELECT shop, feed_data, product_count, generated_at FROM feed_cache WHERE shop = ?",
                (shop,),
            ).fetchone()
        if row is None:
            return None
        return CachedFeed(
            shop=row["shop"],
            feed_data=row["feed_data"] or "",
            product_count=row["product_count"] or 0,
            generated_at=row["generated_at"],
        )

    def replace_feed(self, shop: str, feed_data: str, product_count: int, generated_at: int) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO feed_cache (shop, feed_data, product_count, generated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(shop) DO UPDATE SET
                    feed_data = excluded.feed_data,
                    product_count = excluded.product_count,
                    generated_at = excluded.generated_at
                """,
                (shop, feed_data, product_count, generated_at),
            )
            self._conn.execute(
                """
                UPDATE feed_settings
                SET feed_generated_at = ?, product_count = ?, updated_at = ?
                WHERE shop = ?
                """,
                (generated_at, product_count, generated_at, shop),
            )

    def delete_cache(self, shop: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM feed_cache WHERE shop = ?", (shop,))
