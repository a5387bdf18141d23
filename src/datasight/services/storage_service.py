import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from src.datasight.config import STORAGE_DB

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_UPSERT = """
INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at;
"""


class KeyValueStore:
    """
    Durable string key-value storage on SQLite.

    Values are opaque text; callers store JSON snapshots and rewrite them
    wholesale after every mutation (last write wins). Any database failure
    switches the store to an in-memory dict for the rest of the session, so
    reads and writes never raise.
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = Path(db_path) if db_path else STORAGE_DB
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._memory: Optional[Dict[str, str]] = None
        self._open()

    def _open(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._connection.execute("PRAGMA journal_mode=WAL;")
            with self._connection:
                self._connection.execute(_SCHEMA)
            logger.info("Key-value storage opened at %s", self.db_path)
        except (sqlite3.Error, OSError) as exc:
            logger.error("Cannot open storage at %s (%s); keeping data in memory only.", self.db_path, exc)
            self._switch_to_memory()

    def _switch_to_memory(self) -> None:
        self._memory = {}
        self.close()

    @property
    def fallback_mode(self) -> bool:
        return self._memory is not None

    def close(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        except sqlite3.Error:
            logger.debug("Storage connection did not close cleanly.", exc_info=True)
        self._connection = None

    def _execute(self, action: str, key: str, sql: str, params: Sequence[Any]) -> Optional[List[tuple]]:
        """Run one statement and return its rows; on failure switch to memory and return None."""
        try:
            with self._lock:
                if self._connection is None:
                    raise sqlite3.DatabaseError("Storage connection is closed.")
                rows = self._connection.execute(sql, params).fetchall()
                self._connection.commit()
                return rows
        except sqlite3.DatabaseError as exc:
            logger.error("Storage %s of '%s' failed: %s", action, key, exc, exc_info=True)
            self._switch_to_memory()
            return None

    def get(self, key: str) -> Optional[str]:
        if self._memory is not None:
            return self._memory.get(key)
        rows = self._execute("read", key, "SELECT value FROM kv_store WHERE key = ?;", (key,))
        return rows[0][0] if rows else None

    def set(self, key: str, value: str) -> None:
        if self._memory is None:
            stamp = datetime.now(timezone.utc).isoformat()
            if self._execute("write", key, _UPSERT, (key, value, stamp)) is not None:
                return
        self._memory[key] = value

    def remove(self, key: str) -> None:
        if self._memory is None:
            if self._execute("removal", key, "DELETE FROM kv_store WHERE key = ?;", (key,)) is not None:
                return
        self._memory.pop(key, None)
