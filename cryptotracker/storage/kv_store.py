"""
Key/Value Store

Durable string key -> string value store backed by SQLite.
Plays the role a browser's local storage plays for a web page: one record
per key, values are JSON text written by the owning component.
"""

import sqlite3
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..config import config
from ..errors import PersistenceError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    SQLite database holding named JSON records.

    Every operation opens its own connection, so the store can be shared by
    every component in the process. All sqlite errors surface as
    PersistenceError; the owning component decides how to recover.
    """

    def __init__(self, db_path: Path = None, quota_bytes: int = None):
        self.db_path = Path(db_path or config.store_db_path)
        self.quota_bytes = quota_bytes if quota_bytes is not None else config.storage_quota_bytes
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot open store at {self.db_path}: {e}") from e

    def _init_db(self):
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def get_item(self, key: str) -> Optional[str]:
        """
        Get the raw value stored under a key.

        Returns:
            Stored text, or None if the key is absent
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?",
                    (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Read of '{key}' failed: {e}") from e

        return row[0] if row else None

    def keys(self) -> List[str]:
        """List all stored keys."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Listing keys failed: {e}") from e
        return [r[0] for r in rows]

    # -------------------------------------------------------------------------
    # Write
    # -------------------------------------------------------------------------

    def set_item(self, key: str, value: str):
        """
        Store a value under a key, replacing any previous value.

        Raises:
            PersistenceError: if the value exceeds the quota or the write fails
        """
        size = len(value.encode("utf-8"))
        if size > self.quota_bytes:
            raise PersistenceError(
                f"Quota exceeded writing '{key}' ({size} > {self.quota_bytes} bytes)"
            )

        now = datetime.now(timezone.utc).isoformat()
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                   updated_at = excluded.updated_at
                    """,
                    (key, value, now)
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Write of '{key}' failed: {e}") from e

    def remove_item(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Delete of '{key}' failed: {e}") from e
        return cursor.rowcount > 0
