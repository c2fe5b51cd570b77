"""Async key-value persistence backends."""

import asyncio
import sqlite3
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from datetime import datetime
from typing import Optional, List, Dict

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """Abstract string storage keyed by conversation id or a fixed session key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""
        pass

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with prefix."""
        pass


class InMemoryStorage(KeyValueStorage):
    """Process-local storage, used in tests and when memory is disabled."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]


class SQLiteStorage(KeyValueStorage):
    """SQLite-backed durable storage; queries run in the default executor."""

    def __init__(self, db_path: str = "data/dash_assistant.db"):
        """
        Initialize SQLite storage.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.commit()
        conn.close()
        logger.info(f"Database initialized at {self.db_path}")

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _get_sync(self, key: str) -> Optional[str]:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        return row["value"] if row else None

    def _set_sync(self, key: str, value: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                (key, value, datetime.now())
            )
            conn.commit()
        finally:
            conn.close()

    def _remove_sync(self, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def _keys_sync(self, prefix: str) -> List[str]:
        conn = self._get_connection()
        try:
            # substr comparison keeps '_' and '%' in prefixes literal
            rows = conn.execute(
                "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix)
            ).fetchall()
        finally:
            conn.close()
        return [row["key"] for row in rows]

    async def get(self, key: str) -> Optional[str]:
        return await self._run(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await self._run(self._set_sync, key, value)

    async def remove(self, key: str) -> None:
        await self._run(self._remove_sync, key)

    async def keys(self, prefix: str = "") -> List[str]:
        return await self._run(self._keys_sync, prefix)
