"""Key-value record stores backing conversation history, preferences and usage.

Every store maps a string key (a conversation id, or a fixed name for
process-wide records) to a JSON-serializable value. A missing key reads as
``None``; any other read or write failure raises ``PersistenceError``.

The stores are synchronous; async callers go through ``asyncio.to_thread``.
"""
import json
import logging
import os
import re
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

from relaybot.config import settings
from relaybot.exceptions import PersistenceError

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.@+-]")


class KeyValueStore(ABC):
    """Whole-record get/put/delete by key."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Replace the stored value."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove the key. Returns False when it was already absent."""


class JsonFileStore(KeyValueStore):
    """One pretty-printed JSON document per key inside a directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key)
        if not safe or safe in (".", ".."):
            raise PersistenceError(f"Invalid record key: {key!r}")
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def put(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            tmp_path.write_text(
                json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8"
            )
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Failed to delete {path}: {e}") from e


class SqliteStore(KeyValueStore):
    """Records kept in a single SQLite table, partitioned by namespace."""

    def __init__(self, namespace: str, db_path: str | None = None):
        """Initialize store with database path."""
        self.namespace = namespace
        self.db_path = db_path or settings.DB_PATH
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (namespace, key)
                )
            """)
            conn.commit()
        logger.info(f"Database initialized: {self.db_path} ({self.namespace})")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get database connection context manager."""
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error on {self.db_path}: {e}") from e
        finally:
            conn.close()

    def get(self, key: str) -> Any | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM records WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except ValueError as e:
            raise PersistenceError(f"Corrupt record {self.namespace}/{key}: {e}") from e

    def put(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot encode {self.namespace}/{key}: {e}") from e
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO records (namespace, key, value, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(namespace, key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (self.namespace, key, encoded),
            )
            conn.commit()

    def delete(self, key: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            )
            conn.commit()
            return cursor.rowcount > 0


class MemoryStore(KeyValueStore):
    """In-process store, used by tests and ephemeral runs."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, value: Any) -> None:
        # Stored encoded so callers never share mutable state with the store
        encoded = json.dumps(value)
        with self._lock:
            self._data[key] = encoded

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None


def create_store(namespace: str) -> KeyValueStore:
    """Build the configured store for one record family.

    ``namespace`` is one of ``history``, ``preferences`` or ``usage``.
    """
    backend = settings.STORAGE_BACKEND.lower()

    if backend == "json":
        directories = {
            "history": settings.history_dir,
            "preferences": settings.preferences_dir,
            "usage": settings.usage_dir,
        }
        if namespace not in directories:
            raise ValueError(f"Unknown store namespace: {namespace}")
        return JsonFileStore(directories[namespace])

    elif backend == "sqlite":
        return SqliteStore(namespace)

    elif backend == "memory":
        return MemoryStore()

    else:
        raise ValueError(f"Unknown storage backend: {backend}")
