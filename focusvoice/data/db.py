"""
FocusVoice — Key-Value Database.

SQLite-backed StoragePort: conversation context, usage counters, aliases,
reminders and the blocking session are JSON values under string keys,
namespaced per Telegram user so each user gets an isolated pipeline.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from focusvoice.ports.storage_port import StorageError

logger = logging.getLogger(__name__)


class KeyValueDB:
    """SQLite table of (namespace, key) → JSON value."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from focusvoice.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    namespace   TEXT NOT NULL,
                    key         TEXT NOT NULL,
                    value_json  TEXT NOT NULL,
                    updated_at  TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
            """)
        logger.debug("kv_store table initialized at %s", self._db_path)

    # --- sync primitives (run in a worker thread) ---

    def get_value(self, namespace: str, key: str) -> Any | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value_json FROM kv_store WHERE namespace = ? AND key = ?",
                (namespace, key),
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["value_json"])

    def set_value(self, namespace: str, key: str, value: Any) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (namespace, key, value_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(namespace, key) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_at = excluded.updated_at
                """,
                (namespace, key, json.dumps(value), datetime.now().isoformat()),
            )

    def delete_value(self, namespace: str, key: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM kv_store WHERE namespace = ? AND key = ?",
                (namespace, key),
            )
        return cursor.rowcount > 0

    def list_keys(self, namespace: str) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_store WHERE namespace = ? ORDER BY key",
                (namespace,),
            ).fetchall()
        return [r["key"] for r in rows]

    def for_user(self, user_id: int | str) -> UserStorage:
        return UserStorage(self, str(user_id))


class UserStorage:
    """StoragePort view of KeyValueDB scoped to one namespace.

    sqlite3 is synchronous, so every call runs via asyncio.to_thread.
    """

    def __init__(self, db: KeyValueDB, namespace: str) -> None:
        self._db = db
        self.namespace = namespace

    async def get(self, key: str) -> Any | None:
        try:
            return await asyncio.to_thread(self._db.get_value, self.namespace, key)
        except (sqlite3.Error, json.JSONDecodeError) as exc:
            logger.error("Storage read failed for %s/%s: %s", self.namespace, key, exc)
            raise StorageError(f"Failed to read '{key}': {exc}") from exc

    async def set(self, key: str, value: Any) -> None:
        try:
            await asyncio.to_thread(self._db.set_value, self.namespace, key, value)
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error("Storage write failed for %s/%s: %s", self.namespace, key, exc)
            raise StorageError(f"Failed to write '{key}': {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._db.delete_value, self.namespace, key)
        except sqlite3.Error as exc:
            logger.error("Storage delete failed for %s/%s: %s", self.namespace, key, exc)
            raise StorageError(f"Failed to delete '{key}': {exc}") from exc
