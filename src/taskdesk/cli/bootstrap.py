# src/taskdesk/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the storage backend,
- wires repositories -> services -> controllers into AppState,
- optionally seeds and logs in the demo user.
"""

from __future__ import annotations

import logging

from ..api.controllers import TaskController, UserController
from ..config import get_settings
from ..core.errors import ConflictError, ValidationError
from ..core.ports import KeyValueBackend
from ..core.state import AppState
from ..storage.backends import JsonFileBackend, MemoryBackend, SqliteBackend
from ..storage.manager import StorageManager
from ..tasks.task_repository import TaskRepository
from ..tasks.task_service import TaskService
from ..users.user_repository import UserRepository
from ..users.user_service import UserService

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    if settings.storage_backend == "json":
        settings.json_store_dir.mkdir(parents=True, exist_ok=True)
    elif settings.storage_backend == "sqlite":
        settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)


def build_backend(settings) -> KeyValueBackend:
    kind = str(getattr(settings, "storage_backend", "memory")).lower()
    if kind == "json":
        return JsonFileBackend(settings.json_store_dir)
    if kind == "sqlite":
        return SqliteBackend(settings.sqlite_path)
    return MemoryBackend()


def create_initial_state(*, settings=None, backend: KeyValueBackend | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the backend) injectable makes the app easy to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if backend is None:
        _ensure_local_dirs(settings)
        backend = build_backend(settings)

    storage = StorageManager(backend, namespace=settings.storage_namespace)
    ttl = float(getattr(settings, "cache_ttl_seconds", 300.0))

    users = UserRepository(storage, cache_ttl_seconds=ttl)
    tasks = TaskRepository(
        storage,
        cache_ttl_seconds=ttl,
        due_soon_days=int(getattr(settings, "due_soon_days", 3)),
    )
    user_service = UserService(users)
    task_service = TaskService(tasks, users, settings)

    state = AppState(
        settings=settings,
        storage=storage,
        task_repository=tasks,
        user_repository=users,
        task_service=task_service,
        user_service=user_service,
        task_controller=TaskController(task_service, user_service),
        user_controller=UserController(user_service),
    )

    if getattr(settings, "seed_demo_user", False):
        seed_demo_user(state)
    return state


def seed_demo_user(state: AppState) -> None:
    """Make sure at least one user exists and log in as the first active one."""
    users = state.user_service.get_all_users()
    if not users:
        s = state.settings
        try:
            demo = state.user_service.ensure_user(
                s.demo_username, s.demo_email, display_name="Demo User"
            )
        except (ConflictError, ValidationError):
            logger.exception("Failed to create demo user %s", s.demo_username)
            return
        users = [demo]

    current = state.user_repository.login(users[0].username)
    state.current_user_id = current.id if current else None
