# src/taskdesk/storage/manager.py

"""
JSON persistence adapter used by the repositories.

Every value is stored as a versioned envelope:

    {"version": "2.0", "timestamp": "<iso>", "data": <value>}

Payloads saved before versioning (bare JSON) are wrapped on load. The
version string is informational; nothing acts on it yet.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..core.clock import to_iso, utcnow
from ..core.errors import PersistenceError
from ..core.ports import KeyValueBackend

logger = logging.getLogger(__name__)

STORAGE_VERSION = "2.0"
DEFAULT_NAMESPACE = "taskManagementApp_v2"


class StorageManager:
    def __init__(self, backend: KeyValueBackend, namespace: str = DEFAULT_NAMESPACE) -> None:
        self._backend = backend
        self.namespace = namespace
        self.version = STORAGE_VERSION
        self._initialize()

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}_{key}"

    def _initialize(self) -> None:
        meta_key = self._full_key("meta")
        try:
            if self._backend.get(meta_key) is None:
                meta = {"version": self.version, "createdAt": to_iso(utcnow())}
                self._backend.set(meta_key, json.dumps(meta))
        except PersistenceError:
            logger.exception("Failed to initialize storage namespace=%s", self.namespace)

    def _migrate(self, stored: Any) -> dict[str, Any]:
        if isinstance(stored, dict) and "version" in stored and "data" in stored:
            return stored
        logger.info("Migrating unversioned payload to version %s", self.version)
        return {"version": self.version, "timestamp": to_iso(utcnow()), "data": stored}

    # ---- public API ----

    def save(self, key: str, value: Any) -> bool:
        """Serialize and store `value`. Raises PersistenceError on backend failure."""
        payload = {"version": self.version, "timestamp": to_iso(utcnow()), "data": value}
        try:
            raw = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for key={key} is not JSON-serializable: {e}") from e
        self._backend.set(self._full_key(key), raw)
        logger.debug("Saved key=%s bytes=%d", key, len(raw))
        return True

    def load(self, key: str, default: Any = None) -> Any:
        try:
            raw = self._backend.get(self._full_key(key))
        except PersistenceError:
            logger.exception("Failed to read key=%s; using default", key)
            return default
        if raw is None:
            return default
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.exception("Corrupt JSON under key=%s; using default", key)
            return default
        return self._migrate(parsed)["data"]

    def remove(self, key: str) -> bool:
        return self._backend.delete(self._full_key(key))

    def clear(self) -> bool:
        prefix = f"{self.namespace}_"
        for k in self._backend.keys():
            if k.startswith(prefix):
                self._backend.delete(k)
        return True
