# src/taskdesk/storage/backends.py

from __future__ import annotations

import contextlib
import logging
import os
import re
import sqlite3
import time
from pathlib import Path

from ..core.errors import PersistenceError, StorageQuotaExceededError

logger = logging.getLogger(__name__)


class MemoryBackend:
    """
    Process-local dict backend.

    `quota_bytes` emulates a browser-style storage quota: a set() that would
    push the total stored size above the quota raises StorageQuotaExceededError
    and leaves the previous value in place.
    """

    def __init__(self, *, quota_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
            if used + len(value.encode("utf-8")) > self._quota_bytes:
                raise StorageQuotaExceededError(
                    f"Storage quota exceeded ({self._quota_bytes} bytes) writing key={key}"
                )
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)


_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]+")


class JsonFileBackend:
    """
    One JSON file per key under `directory`.

    Writes go to a temp file first and are moved into place with os.replace,
    so a crash never leaves a half-written file behind.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        logger.info("JsonFileBackend ready dir=%s", self._dir)

    def _path(self, key: str) -> Path:
        return self._dir / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text("utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(value, "utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        with contextlib.suppress(Exception):
            # Best-effort: user profiles live here, keep them private on disk.
            os.chmod(path, 0o600)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Failed to delete {path}: {e}") from e
        return True

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self._dir.glob("*.json"))


class SqliteBackend:
    """
    SQLite key-value table.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "taskdesk.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteBackend ready db=%s keys=%s", self._db_path, len(self.keys()))

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
                return str(row["value"]) if row else None
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite read failed key={key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                   updated_at = excluded.updated_at
                    """,
                    (key, value, time.time()),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite write failed key={key}: {e}") from e

    def delete(self, key: str) -> bool:
        try:
            conn = self._get_conn()
            try:
                cur = conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
                return cur.rowcount == 1
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite delete failed key={key}: {e}") from e

    def keys(self) -> list[str]:
        conn = self._get_conn()
        try:
            return [str(r["key"]) for r in conn.execute("SELECT key FROM kv ORDER BY key")]
        finally:
            conn.close()
