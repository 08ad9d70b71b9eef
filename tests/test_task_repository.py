# tests/test_task_repository.py

from __future__ import annotations

from datetime import date, timedelta

import pytest

from taskdesk.core.errors import ConflictError, ValidationError
from taskdesk.storage.backends import MemoryBackend
from taskdesk.storage.manager import StorageManager
from taskdesk.tasks.task_models import Task, TaskStatus
from taskdesk.tasks.task_repository import TaskFilter, TaskRepository

from .fakes import RecordingListener

TODAY = date.today()


def _add(repo: TaskRepository, title: str, owner: str = "u1", **kw) -> Task:
    return repo.create(Task(title, kw.pop("description", ""), owner, **kw))


def test_create_find_and_duplicate_id(task_repo: TaskRepository) -> None:
    t = _add(task_repo, "Write spec")
    assert task_repo.find_by_id(t.id) is t
    assert task_repo.exists(t.id) and t.id in task_repo
    assert task_repo.count() == len(task_repo) == 1
    assert task_repo.find_by_id("missing") is None

    with pytest.raises(ConflictError):
        task_repo.create(t)


def test_create_from_payload(task_repo: TaskRepository) -> None:
    t = task_repo.create({"title": "From dict", "userId": "u7", "priority": "HIGH", "id": None})
    assert t.id.startswith("task_")
    assert (t.owner_id, t.priority) == ("u7", "high")
    assert task_repo.find_by_id(t.id) is t

    with pytest.raises(ValidationError):
        task_repo.create({"title": "no owner"})
    with pytest.raises(ValidationError):
        task_repo.create({"title": "x", "owner_id": "u1", "colour": "red"})
    with pytest.raises(ValidationError):
        task_repo.create(["not", "a", "task"])  # type: ignore[arg-type]
    assert task_repo.count() == 1


def test_overdue_task_for_user_demo(user_repo, task_repo: TaskRepository, demo) -> None:
    t = _add(task_repo, "Write spec", owner=demo.id, due_date=TODAY - timedelta(days=1))

    assert [x.id for x in task_repo.find_overdue(demo.id)] == [t.id]
    assert task_repo.get_statistics(demo.id).overdue == 1

    task_repo.update(t.id, {"completed": True})
    assert task_repo.find_overdue(demo.id) == []
    assert task_repo.find_by_id(t.id).completed_at is not None


def test_update_is_all_or_nothing(task_repo: TaskRepository) -> None:
    t = _add(task_repo, "Original", priority="low")

    with pytest.raises(ValidationError):
        task_repo.update(t.id, {"title": "Changed", "priority": "critical"})
    assert t.title == "Original"
    assert t.priority == "low"

    with pytest.raises(ValidationError):
        task_repo.update(t.id, {"owner_id": "someone-else"})
    assert t.owner_id == "u1"

    assert task_repo.update("missing", {"title": "x"}) is None

    updated = task_repo.update(t.id, {"title": "Changed", "priority": "high", "tags": ["A"]})
    assert updated is t
    assert (t.title, t.priority, t.tags) == ("Changed", "high", ["a"])


def test_delete(task_repo: TaskRepository) -> None:
    t = _add(task_repo, "Gone")
    assert task_repo.delete(t.id) is True
    assert task_repo.delete(t.id) is False
    assert task_repo.find_by_id(t.id) is None


def test_filters_are_anded(task_repo: TaskRepository) -> None:
    a = _add(task_repo, "Alpha report", tags=["work"], priority="high")
    b = _add(task_repo, "Beta", description="quarterly report", tags=["home"])
    c = _add(task_repo, "Gamma", owner="u2", tags=["work"])
    b.mark_complete()
    task_repo.save(b)

    assert {t.id for t in task_repo.find_by_owner("u1")} == {a.id, b.id}
    assert [t.id for t in task_repo.find_completed("u1")] == [b.id]
    assert [t.id for t in task_repo.find_incomplete("u1")] == [a.id]
    assert {t.id for t in task_repo.find_by_tag("WORK")} == {a.id, c.id}
    assert {t.id for t in task_repo.find_all(TaskFilter(tags=["home", "work"]))} == {a.id, b.id, c.id}
    assert [t.id for t in task_repo.find_by_priority("high")] == [a.id]
    assert [t.id for t in task_repo.find_by_status(TaskStatus.COMPLETED)] == [b.id]
    assert {t.id for t in task_repo.search("REPORT")} == {a.id, b.id}
    assert [t.id for t in task_repo.search("report", owner_id="u1") if t.completed] == [b.id]
    assert task_repo.search("   ") == []
    assert [t.id for t in task_repo.find_all(TaskFilter(owner_id="u1", tags=["work"]))] == [a.id]


def test_sorting_and_pagination(task_repo: TaskRepository) -> None:
    late = _add(task_repo, "b-late", due_date=TODAY + timedelta(days=5), priority="low")
    undated = _add(task_repo, "c-undated", priority="urgent")
    soon = _add(task_repo, "a-soon", due_date=TODAY + timedelta(days=1), priority="high")

    by_due = task_repo.find_all(TaskFilter(sort_by="due_date"))
    assert [t.id for t in by_due] == [soon.id, late.id, undated.id]

    by_due_desc = task_repo.find_all(TaskFilter(sort_by="due_date", descending=True))
    assert [t.id for t in by_due_desc] == [late.id, soon.id, undated.id]

    by_priority = task_repo.find_all(TaskFilter(sort_by="priority", descending=True))
    assert [t.id for t in by_priority] == [undated.id, soon.id, late.id]

    page = task_repo.find_all(TaskFilter(sort_by="title", offset=1, limit=1))
    assert [t.id for t in page] == [late.id]

    with pytest.raises(ValidationError):
        task_repo.find_all(TaskFilter(sort_by="owner_id"))


def test_due_windows(task_repo: TaskRepository) -> None:
    today = _add(task_repo, "today", due_date=TODAY)
    in_two = _add(task_repo, "in two", due_date=TODAY + timedelta(days=2))
    _add(task_repo, "in ten", due_date=TODAY + timedelta(days=10))
    _add(task_repo, "yesterday", due_date=TODAY - timedelta(days=1))
    done = _add(task_repo, "done today", due_date=TODAY, status="completed")

    assert [t.id for t in task_repo.find_due_today()] == [today.id]
    assert {t.id for t in task_repo.find_due_within(3)} == {today.id, in_two.id}
    assert done.id not in {t.id for t in task_repo.find_due_within(3)}


def test_statistics_are_consistent(task_repo: TaskRepository) -> None:
    _add(task_repo, "one", category="work", due_date=TODAY + timedelta(days=1))
    _add(task_repo, "two", priority="urgent", due_date=TODAY - timedelta(days=3))
    _add(task_repo, "three", status="completed")
    _add(task_repo, "four", owner="u2", status="blocked")

    s = task_repo.get_statistics()
    assert s.total == 4
    assert s.completed + s.incomplete == s.total
    assert sum(s.by_status.values()) == s.total
    assert sum(s.by_priority.values()) == s.total
    assert sum(s.by_category.values()) == s.total
    assert s.overdue == 1
    assert s.due_soon == 1
    assert s.by_status["blocked"] == 1
    assert s.by_category == {"work": 1, "general": 3}

    mine = task_repo.get_statistics("u1")
    assert mine.total == 3
    assert task_repo.get_statistics("nobody").total == 0


def test_bulk_operations(task_repo: TaskRepository) -> None:
    existing = _add(task_repo, "existing")
    fresh = Task("fresh", "", "u1")

    created = task_repo.create_many([fresh, existing])
    assert created.results == [fresh]
    assert created.errors and created.errors[0]["id"] == existing.id

    deleted = task_repo.delete_many([fresh.id, "missing"])
    assert deleted.results == [fresh.id]
    assert deleted.errors == [{"id": "missing", "error": "Task not found"}]


def test_events_fire_and_bad_listeners_are_isolated(task_repo: TaskRepository) -> None:
    created, updated, deleted = RecordingListener(), RecordingListener(), RecordingListener()

    def broken(_payload) -> None:
        raise RuntimeError("listener bug")

    task_repo.on("created", broken)
    task_repo.on("created", created)
    task_repo.on("updated", updated)
    task_repo.on("deleted", deleted)

    t = _add(task_repo, "observed")
    task_repo.update(t.id, {"priority": "high"})
    task_repo.delete(t.id)

    assert created.seen == [t]
    assert updated.seen == [t]
    assert deleted.seen == [t]

    with pytest.raises(ValueError):
        task_repo.on("renamed", created)


def test_snapshot_survives_reload(storage: StorageManager, task_repo: TaskRepository) -> None:
    t = _add(task_repo, "persisted", tags=["x"], due_date=TODAY)
    t.add_note("hello")
    task_repo.save(t)

    again = TaskRepository(storage)
    loaded = again.find_by_id(t.id)
    assert loaded is not None
    assert loaded.to_json() == t.to_json()

    task_repo.clear()
    again.reload()
    assert again.count() == 0


def test_failed_save_keeps_memory_state(backend, task_repo: TaskRepository) -> None:
    backend.fail_writes = True
    t = _add(task_repo, "unsaved")

    assert task_repo.last_save_ok is False
    assert task_repo.find_by_id(t.id) is t

    backend.fail_writes = False
    task_repo.update(t.id, {"title": "saved now"})
    assert task_repo.last_save_ok is True


def test_quota_exceeded_is_a_failed_save() -> None:
    storage = StorageManager(MemoryBackend(quota_bytes=400), namespace="tiny")
    repo = TaskRepository(storage)

    repo.create(Task("big", "x" * 1000, "u1"))
    assert repo.last_save_ok is False
    assert repo.count() == 1


def test_unreadable_records_survive_later_saves(storage: StorageManager) -> None:
    storage.save(
        "tasks",
        [
            {"id": "task_ok", "title": "fine", "owner_id": "u1"},
            {"id": "task_bad", "title": "broken", "owner_id": "u1", "created_at": "yesterday-ish"},
            "not a record",
        ],
    )
    repo = TaskRepository(storage)
    assert [t.id for t in repo] == ["task_ok"]

    fresh = _add(repo, "after reload")
    repo.update("task_ok", {"title": "still fine"})
    stored = storage.load("tasks")
    assert [r["id"] for r in stored] == ["task_ok", fresh.id, "task_bad"]
    assert stored[2]["created_at"] == "yesterday-ish"

    repo.clear()
    assert storage.load("tasks") == []


def test_create_payload_with_empty_enums_uses_defaults(task_repo: TaskRepository) -> None:
    t = task_repo.create(
        {"title": "x", "owner_id": "u1", "category": None, "priority": "", "status": None}
    )
    assert (t.category, t.priority, t.status) == ("general", "medium", "pending")


def test_unserializable_entity_never_enters_the_index(storage: StorageManager, task_repo: TaskRepository) -> None:
    ok = _add(task_repo, "fine")
    broken = Task("broken", "", "u1")
    broken.created_at = "not a datetime"  # type: ignore[assignment]

    with pytest.raises(AttributeError):
        task_repo.create(broken)
    assert [t.id for t in task_repo] == [ok.id]

    later = _add(task_repo, "later")
    assert task_repo.last_save_ok is True
    assert [r["id"] for r in storage.load("tasks")] == [ok.id, later.id]


def test_saves_reuse_serialized_records(storage: StorageManager, task_repo: TaskRepository) -> None:
    t = _add(task_repo, "before")
    t.title = "edited in place"
    _add(task_repo, "unrelated")
    assert storage.load("tasks")[0]["title"] == "before"

    task_repo.save(t)
    assert storage.load("tasks")[0]["title"] == "edited in place"


def test_zero_ttl_serializes_on_every_save(storage: StorageManager) -> None:
    repo = TaskRepository(storage, cache_ttl_seconds=0)
    t = repo.create(Task("before", "", "u1"))
    t.title = "edited in place"
    repo.create(Task("unrelated", "", "u1"))
    assert storage.load("tasks")[0]["title"] == "edited in place"


def test_failed_save_drops_serialized_records(backend, storage: StorageManager, task_repo: TaskRepository) -> None:
    t = _add(task_repo, "before")
    t.title = "edited in place"
    backend.fail_writes = True
    _add(task_repo, "lost write")
    assert task_repo.last_save_ok is False

    backend.fail_writes = False
    _add(task_repo, "recovered")
    assert [r["title"] for r in storage.load("tasks")] == ["edited in place", "lost write", "recovered"]
