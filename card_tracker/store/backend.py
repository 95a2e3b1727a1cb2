"""Key-value storage backends for the persistent store.

The store only needs string keys mapped to JSON strings, the same contract a
browser's local storage offers. ``SQLiteStorage`` keeps everything in one
table of a sqlite3 file; ``MemoryStorage`` is used by tests and as the
fallback when the file cannot be opened.
"""

import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..utils.error_handler import StorageError
from ..utils.log import get_logger


class KeyValueStorage(ABC):
    """Minimal string-to-string storage contract."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...

    def is_available(self) -> bool:
        """Check with a write/remove round trip."""
        marker = "__test__"
        try:
            self.set_item(marker, marker)
            self.remove_item(marker)
            return True
        except StorageError:
            return False


class MemoryStorage(KeyValueStorage):
    """Dict-backed storage with an optional size quota."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, quota_bytes: Optional[int] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self.quota_bytes = quota_bytes

    def _size_with(self, key: str, value: str) -> int:
        size = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
        return size + len(key) + len(value)

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None and self._size_with(key, value) > self.quota_bytes:
            raise StorageError(
                "Storage quota exceeded",
                details={"key": key, "quota_bytes": self.quota_bytes},
            )
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class SQLiteStorage(KeyValueStorage):
    """Single-table sqlite3 storage; one connection per operation."""

    def __init__(self, db_path: Union[str, Path]):
        self.logger = get_logger(__name__)
        self.db_path = Path(db_path)
        self._init_database()

    def _init_database(self):
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """
                )
                conn.commit()
            self.logger.debug("Storage initialized", db_path=str(self.db_path))
        except sqlite3.Error as e:
            raise StorageError(
                "Could not open storage database",
                details={"db_path": str(self.db_path), "error": str(e)},
            ) from e

    def get_item(self, key: str) -> Optional[str]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
                return row[0] if row else None
        except sqlite3.Error as e:
            raise StorageError("Storage read failed", details={"key": key, "error": str(e)}) from e

    def set_item(self, key: str, value: str) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (key, value),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError("Storage write failed", details={"key": key, "error": str(e)}) from e

    def remove_item(self, key: str) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError("Storage delete failed", details={"key": key, "error": str(e)}) from e

    def keys(self) -> List[str]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                return [row[0] for row in conn.execute("SELECT key FROM kv ORDER BY key")]
        except sqlite3.Error as e:
            raise StorageError("Storage scan failed", details={"error": str(e)}) from e
