# tests/test_storage.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from taskdesk.core.errors import PersistenceError, StorageQuotaExceededError
from taskdesk.storage.backends import JsonFileBackend, MemoryBackend, SqliteBackend
from taskdesk.storage.manager import STORAGE_VERSION, StorageManager
from taskdesk.tasks.task_models import Task
from taskdesk.tasks.task_repository import TaskRepository

from .fakes import FlakyBackend


def test_values_are_wrapped_in_a_versioned_envelope() -> None:
    backend = MemoryBackend()
    storage = StorageManager(backend, namespace="ns")

    assert storage.save("tasks", [{"id": "t1"}]) is True
    raw = json.loads(backend.get("ns_tasks") or "")
    assert raw["version"] == STORAGE_VERSION
    assert raw["data"] == [{"id": "t1"}]
    assert "timestamp" in raw

    assert storage.load("tasks") == [{"id": "t1"}]
    assert storage.load("missing", default=[]) == []


def test_meta_record_is_written_once() -> None:
    backend = FlakyBackend()
    StorageManager(backend, namespace="ns")
    StorageManager(backend, namespace="ns")
    assert backend.writes.count("ns_meta") == 1
    assert json.loads(backend.get("ns_meta") or "")["version"] == STORAGE_VERSION


def test_unversioned_payload_is_migrated_on_load() -> None:
    backend = MemoryBackend()
    backend.set("ns_tasks", json.dumps([{"id": "legacy"}]))
    storage = StorageManager(backend, namespace="ns")
    assert storage.load("tasks") == [{"id": "legacy"}]


def test_corrupt_or_unreadable_data_falls_back_to_default() -> None:
    backend = FlakyBackend()
    storage = StorageManager(backend, namespace="ns")
    backend.set("ns_tasks", "{not json")
    assert storage.load("tasks", "fallback") == "fallback"

    backend.fail_reads = True
    assert storage.load("users", []) == []


def test_save_errors_propagate() -> None:
    backend = FlakyBackend()
    storage = StorageManager(backend, namespace="ns")

    with pytest.raises(PersistenceError):
        storage.save("bad", {"when": object()})

    backend.fail_writes = True
    with pytest.raises(PersistenceError):
        storage.save("tasks", [])


def test_clear_only_touches_own_namespace() -> None:
    backend = MemoryBackend()
    mine = StorageManager(backend, namespace="mine")
    theirs = StorageManager(backend, namespace="theirs")
    mine.save("tasks", [1])
    theirs.save("tasks", [2])

    mine.clear()
    assert mine.load("tasks") is None
    assert theirs.load("tasks") == [2]
    assert mine.remove("tasks") is False


def test_memory_quota() -> None:
    backend = MemoryBackend(quota_bytes=10)
    backend.set("a", "12345")
    with pytest.raises(StorageQuotaExceededError):
        backend.set("b", "123456")
    backend.set("a", "1234567890")
    assert backend.get("b") is None
    assert backend.get("a") == "1234567890"


@pytest.mark.parametrize("kind", ["json", "sqlite"])
def test_disk_backends(tmp_path: Path, kind: str) -> None:
    def make():
        if kind == "json":
            return JsonFileBackend(tmp_path / "store")
        return SqliteBackend(tmp_path / "kv.sqlite3")

    backend = make()
    assert backend.get("ns_tasks") is None
    backend.set("ns_tasks", "[1]")
    backend.set("ns_tasks", "[1, 2]")
    backend.set("ns_users", "[]")

    reopened = make()
    assert reopened.get("ns_tasks") == "[1, 2]"
    assert reopened.keys() == ["ns_tasks", "ns_users"]

    assert reopened.delete("ns_users") is True
    assert reopened.delete("ns_users") is False
    assert reopened.keys() == ["ns_tasks"]


def test_repository_over_json_files(tmp_path: Path) -> None:
    storage = StorageManager(JsonFileBackend(tmp_path), namespace="app")
    repo = TaskRepository(storage)
    t = repo.create(Task("on disk", "", "u1", tags=["io"]))

    assert (tmp_path / "app_tasks.json").exists()

    fresh = TaskRepository(StorageManager(JsonFileBackend(tmp_path), namespace="app"))
    assert fresh.find_by_id(t.id).to_json() == t.to_json()
