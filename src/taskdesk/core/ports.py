# src/taskdesk/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

Repositories and services depend on Protocols instead of concrete classes.
This keeps storage backends swappable and makes testing easier.
"""

from typing import Any, Callable, Protocol


class KeyValueBackend(Protocol):
    """Raw string key-value storage (memory, JSON files, SQLite...)."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> bool: ...
    def keys(self) -> list[str]: ...


class KeyValueStore(Protocol):
    """
    JSON-level persistence adapter consumed by repositories.

    save() raises PersistenceError when the backend fails.
    load() never raises for a missing key: it returns `default`.
    """

    def save(self, key: str, value: Any) -> bool: ...
    def load(self, key: str, default: Any = None) -> Any: ...
    def remove(self, key: str) -> bool: ...


RepositoryListener = Callable[[Any], None]


class TaskRepo(Protocol):
    def create(self, task: Any) -> Any: ...
    def find_by_id(self, task_id: str) -> Any | None: ...
    def find_all(self, task_filter: Any | None = None) -> list[Any]: ...
    def update(self, task_id: str, fields: dict[str, Any]) -> Any | None: ...
    def save(self, task: Any) -> Any | None: ...
    def delete(self, task_id: str) -> bool: ...
    def find_overdue(self, owner_id: str | None = None) -> list[Any]: ...
    def search(self, text: str, owner_id: str | None = None) -> list[Any]: ...
    def get_statistics(self, owner_id: str | None = None) -> Any: ...


class UserRepo(Protocol):
    def create(self, user: Any) -> Any: ...
    def find_by_id(self, user_id: str) -> Any | None: ...
    def find_by_username(self, username: str) -> Any | None: ...
    def find_all(self, user_filter: Any | None = None) -> list[Any]: ...
    def update(self, user_id: str, fields: dict[str, Any]) -> Any | None: ...
    def deactivate(self, user_id: str) -> bool: ...
    def purge(self, user_id: str) -> bool: ...
    def login(self, username: str) -> Any | None: ...
