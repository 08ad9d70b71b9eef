# src/taskdesk/core/repository.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from typing import Any, Generic, Protocol, TypeVar

from .errors import ConflictError, PersistenceError
from .ports import KeyValueStore, RepositoryListener

logger = logging.getLogger(__name__)

REPOSITORY_EVENTS = ("created", "updated", "deleted")


class Entity(Protocol):
    id: str

    def to_json(self) -> dict[str, Any]: ...


EntityT = TypeVar("EntityT", bound=Entity)


class BaseRepository(Generic[EntityT]):
    """
    In-memory index of one entity type, persisted as a full snapshot.

    - The index (id -> entity) is the source of truth while the process runs.
    - Every mutation re-saves the whole collection under `storage_key`.
    - Serialized records are cached per id for `cache_ttl_seconds`, so a
      snapshot save only re-serializes entities that went through
      create/update/save (or whose cached record expired).
    - Stored records that cannot be rebuilt are carried through saves as-is.
    - Storage failures are logged and clear the record cache; the in-memory
      change is kept, durability is best-effort until the next good save.
    """

    entity_name = "entity"

    def __init__(
        self,
        storage: KeyValueStore | None,
        *,
        storage_key: str,
        from_json: Callable[[dict[str, Any]], EntityT],
        cache_ttl_seconds: float = 300.0,
    ) -> None:
        self._storage = storage
        self._storage_key = storage_key
        self._from_json = from_json
        self._cache_ttl = max(0.0, float(cache_ttl_seconds))
        self._items: dict[str, EntityT] = {}
        self._cache: dict[str, tuple[dict[str, Any], float]] = {}
        self._unreadable: list[dict[str, Any]] = []
        self._listeners: dict[str, list[RepositoryListener]] = {}
        self.last_save_ok = True
        self.reload()
        logger.info(
            "%s ready key=%s total=%d unreadable=%d",
            type(self).__name__,
            self._storage_key,
            len(self._items),
            len(self._unreadable),
        )

    # ---- persistence ----

    def reload(self) -> None:
        """Replace the index with the stored snapshot (missing key -> empty)."""
        self._items.clear()
        self._cache.clear()
        self._unreadable = []
        if self._storage is None:
            return
        records = self._storage.load(self._storage_key, [])
        if not isinstance(records, list):
            logger.warning("Ignoring non-list snapshot under key=%s", self._storage_key)
            return
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                entity = self._from_json(record)
            except Exception:
                logger.exception("Keeping unreadable %s record id=%s as-is", self.entity_name, record.get("id"))
                self._unreadable.append(record)
                continue
            self._items[entity.id] = entity

    def _record(self, entity: EntityT, now: float) -> dict[str, Any]:
        hit = self._cache.get(entity.id)
        if hit is not None and now - hit[1] <= self._cache_ttl:
            return hit[0]
        record = entity.to_json()
        if self._cache_ttl > 0:
            self._cache[entity.id] = (record, now)
        return record

    def _persist(self) -> bool:
        if self._storage is None:
            return True
        now = time.monotonic()
        snapshot = [self._record(e, now) for e in self._items.values()]
        if self._unreadable:
            logger.warning(
                "Carrying %d unreadable %s record(s) in snapshot",
                len(self._unreadable),
                self.entity_name,
            )
            snapshot.extend(self._unreadable)
        try:
            self._storage.save(self._storage_key, snapshot)
        except PersistenceError:
            logger.exception(
                "Failed to persist %s snapshot (%d records); keeping in-memory state",
                self.entity_name,
                len(snapshot),
            )
            self._cache.clear()
            self.last_save_ok = False
            return False
        self.last_save_ok = True
        return True

    # ---- events ----

    def on(self, event: str, callback: RepositoryListener) -> None:
        if event not in REPOSITORY_EVENTS:
            raise ValueError(f"Unknown repository event: {event}")
        self._listeners.setdefault(event, []).append(callback)

    def _emit(self, event: str, payload: Any) -> None:
        for callback in self._listeners.get(event, []):
            try:
                callback(payload)
            except Exception:
                logger.exception("%s listener failed event=%s", type(self).__name__, event)

    # ---- core operations ----

    def _insert(self, entity: EntityT) -> EntityT:
        if not getattr(entity, "id", None):
            raise ValueError(f"{self.entity_name} must have an id")
        if entity.id in self._items:
            raise ConflictError(f"{self.entity_name} with id {entity.id} already exists")
        # Serialize before indexing: an entity that cannot be written never enters the index.
        record = entity.to_json()
        self._items[entity.id] = entity
        if self._cache_ttl > 0:
            self._cache[entity.id] = (record, time.monotonic())
        self._persist()
        self._emit("created", entity)
        logger.debug("%s created id=%s", self.entity_name, entity.id)
        return entity

    def _remove(self, entity_id: str) -> EntityT | None:
        entity = self._items.pop(entity_id, None)
        if entity is None:
            return None
        self._cache.pop(entity_id, None)
        self._persist()
        self._emit("deleted", entity)
        logger.debug("%s deleted id=%s", self.entity_name, entity_id)
        return entity

    def _saved(self, entity: EntityT) -> EntityT:
        self._cache.pop(entity.id, None)
        self._persist()
        self._emit("updated", entity)
        logger.debug("%s updated id=%s", self.entity_name, entity.id)
        return entity

    def save(self, entity: EntityT) -> EntityT | None:
        """Persist changes made directly on an entity returned by this repository."""
        if entity.id not in self._items:
            return None
        self._items[entity.id] = entity
        return self._saved(entity)

    def find_by_id(self, entity_id: str) -> EntityT | None:
        if not entity_id:
            return None
        return self._items.get(entity_id)

    def all(self) -> list[EntityT]:
        return list(self._items.values())

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._items

    def count(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        """Drop every entity, including stored records that could not be read."""
        self._items.clear()
        self._cache.clear()
        self._unreadable = []
        self._persist()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[EntityT]:
        return iter(list(self._items.values()))

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._items
