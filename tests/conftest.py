# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskdesk.cli.bootstrap import create_initial_state
from taskdesk.core.state import AppState
from taskdesk.storage.backends import MemoryBackend
from taskdesk.storage.manager import StorageManager
from taskdesk.tasks.task_repository import TaskRepository
from taskdesk.tasks.task_service import TaskService
from taskdesk.users.user_models import User
from taskdesk.users.user_repository import UserRepository
from taskdesk.users.user_service import UserService

from .fakes import FlakyBackend


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and services.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskdesk-test",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        storage_backend="memory",
        storage_namespace="test_ns",
        json_store_dir=tmp_path / "store",
        sqlite_path=tmp_path / "taskdesk.sqlite3",
        # Repositories
        cache_ttl_seconds=300.0,
        due_soon_days=3,
        # Validation
        title_max_length=100,
        description_max_length=500,
        # Demo bootstrap
        seed_demo_user=True,
        demo_username="demo_user",
        demo_email="demo@example.com",
    )


@pytest.fixture()
def backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture()
def storage(backend: FlakyBackend) -> StorageManager:
    return StorageManager(backend, namespace="test_ns")


@pytest.fixture()
def user_repo(storage: StorageManager) -> UserRepository:
    return UserRepository(storage)


@pytest.fixture()
def task_repo(storage: StorageManager) -> TaskRepository:
    return TaskRepository(storage)


@pytest.fixture()
def user_service(user_repo: UserRepository) -> UserService:
    return UserService(user_repo)


@pytest.fixture()
def task_service(task_repo: TaskRepository, user_repo: UserRepository, settings) -> TaskService:
    return TaskService(task_repo, user_repo, settings)


@pytest.fixture()
def demo(user_repo: UserRepository) -> User:
    return user_repo.create(User("demo", "demo@example.com", display_name="Demo"))


@pytest.fixture()
def other(user_repo: UserRepository) -> User:
    return user_repo.create(User("other", "other@example.com"))


@pytest.fixture()
def admin(user_repo: UserRepository) -> User:
    return user_repo.create(User("boss", "boss@example.com", role="admin"))


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired by the real composition root over an in-memory backend.

    The demo user is seeded and logged in.
    """
    return create_initial_state(settings=settings, backend=MemoryBackend())
