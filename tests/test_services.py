# tests/test_services.py

from __future__ import annotations

from datetime import date, timedelta

import pytest

from taskdesk.api.controllers import TaskController, UserController
from taskdesk.core.errors import NotFoundError, ValidationError
from taskdesk.tasks.task_service import TaskService
from taskdesk.users.user_service import UserService

TOMORROW = date.today() + timedelta(days=1)
YESTERDAY = date.today() - timedelta(days=1)


# ---- TaskService ----


def test_create_task_sanitizes_and_defaults(task_service: TaskService, demo) -> None:
    t = task_service.create_task(
        {"owner_id": demo.id, "title": "  Fish & Chips ", "dueDate": TOMORROW.isoformat(), "tags": ["Food"]}
    )
    assert t.title == "Fish &amp; Chips"
    assert t.description == ""
    assert t.priority == "medium"
    assert t.due_date == TOMORROW
    assert t.tags == ["food"]
    assert t.assignee_id == demo.id


def test_create_task_requires_title_and_future_due_date(task_service: TaskService, demo) -> None:
    with pytest.raises(ValidationError) as exc:
        task_service.create_task({"owner_id": demo.id, "due_date": YESTERDAY})
    assert exc.value.errors == [
        "title: Title is required",
        "due_date: Due date must be today or in the future",
    ]


def test_create_task_requires_active_owner_and_assignee(
    task_service: TaskService, user_repo, demo, other
) -> None:
    with pytest.raises(NotFoundError):
        task_service.create_task({"owner_id": "user_missing", "title": "x"})

    user_repo.deactivate(other.id)
    with pytest.raises(NotFoundError):
        task_service.create_task({"owner_id": demo.id, "assignee_id": other.id, "title": "x"})
    with pytest.raises(NotFoundError):
        task_service.create_task({"owner_id": other.id, "title": "x"})


def test_update_task_validates_changed_fields(task_service: TaskService, demo) -> None:
    t = task_service.create_task({"owner_id": demo.id, "title": "Draft"})

    with pytest.raises(ValidationError):
        task_service.update_task(t.id, {"dueDate": YESTERDAY.isoformat()})
    with pytest.raises(ValidationError):
        task_service.update_task(t.id, {"title": "<i>nope</i>"})
    assert t.due_date is None and t.title == "Draft"

    task_service.update_task(t.id, {"dueDate": TOMORROW, "priority": "URGENT", "status": "blocked"})
    assert (t.due_date, t.priority, t.status) == (TOMORROW, "urgent", "blocked")

    with pytest.raises(NotFoundError):
        task_service.update_task("task_missing", {"title": "x"})


def test_notes_dependencies_and_time(task_service: TaskService, demo) -> None:
    a = task_service.create_task({"owner_id": demo.id, "title": "A", "estimated_hours": 2})
    b = task_service.create_task({"owner_id": demo.id, "title": "B"})

    task_service.add_note(a.id, "started", author=demo.id)
    task_service.add_dependency(a.id, b.id)
    task_service.log_time(a.id, 1.5)
    assert [n.content for n in a.notes] == ["started"]
    assert a.dependencies == [b.id]
    assert a.progress == 75.0

    with pytest.raises(NotFoundError):
        task_service.add_dependency(a.id, "task_missing")
    with pytest.raises(ValidationError):
        task_service.add_dependency(a.id, a.id)

    task_service.delete_task(b.id)
    with pytest.raises(NotFoundError):
        task_service.delete_task(b.id)


def test_user_queries(task_service: TaskService, demo, other) -> None:
    mine = task_service.create_task({"owner_id": demo.id, "title": "mine"})
    handed = task_service.create_task({"owner_id": demo.id, "title": "handed", "assignee_id": other.id})
    task_service.update_task(mine.id, {"completed": True})

    assert [t.id for t in task_service.get_pending_tasks(demo.id)] == [handed.id]
    assert [t.id for t in task_service.get_completed_tasks(demo.id)] == [mine.id]
    assert [t.id for t in task_service.get_tasks_assigned_to(other.id)] == [handed.id]
    assert [t.id for t in task_service.search_tasks(demo.id, "HAND")] == [handed.id]
    assert task_service.get_task_stats(demo.id).completed == 1


def test_user_service(user_service: UserService) -> None:
    u = user_service.create_user({"username": "zed", "email": "zed@x.io", "full_name": "Zed Z"})
    assert u.display_name == "Zed Z"
    assert user_service.ensure_user("ZED", "other@x.io") is u
    assert user_service.login("zed").login_count == 1

    user_service.deactivate_user(u.id)
    assert user_service.get_all_users() == []
    assert user_service.get_all_users(include_inactive=True) == [u]
    with pytest.raises(NotFoundError):
        user_service.login("zed")

    user_service.purge_user(u.id)
    with pytest.raises(NotFoundError):
        user_service.get_user(u.id)
    with pytest.raises(NotFoundError):
        user_service.update_user(u.id, {"bio": "x"})


# ---- controllers ----


@pytest.fixture()
def tasks_api(task_service: TaskService, user_service: UserService) -> TaskController:
    return TaskController(task_service, user_service)


@pytest.fixture()
def users_api(user_service: UserService) -> UserController:
    return UserController(user_service)


def test_task_controller_envelopes(tasks_api: TaskController, demo) -> None:
    created = tasks_api.create(demo.id, {"title": "Write spec"})
    assert created["success"] is True
    assert created["data"]["owner_id"] == demo.id
    task_id = created["data"]["id"]

    bad = tasks_api.create(demo.id, {"title": "", "priority": "x"})
    assert bad["success"] is False
    assert bad["error"] == "validation_error"
    assert len(bad["errors"]) == 2

    missing = tasks_api.get(demo.id, "task_missing")
    assert missing["error"] == "not_found"

    done = tasks_api.set_completed(demo.id, task_id)
    assert done["data"]["completed"] is True
    listed = tasks_api.list_tasks(demo.id)
    assert [t["id"] for t in listed["data"]] == [task_id]
    assert tasks_api.stats(demo.id)["data"]["completed"] == 1


def test_task_controller_permissions(tasks_api: TaskController, user_repo, demo, other, admin) -> None:
    task_id = tasks_api.create(demo.id, {"title": "private"})["data"]["id"]

    assert tasks_api.update(other.id, task_id, {"title": "hijack"})["error"] == "forbidden"
    assert tasks_api.create(other.id, {"title": "x", "owner_id": demo.id})["error"] == "forbidden"

    assert tasks_api.assign(demo.id, task_id, other.id)["success"] is True
    assert tasks_api.add_note(other.id, task_id, "on it")["success"] is True
    assert tasks_api.delete(other.id, task_id)["error"] == "forbidden"

    assert tasks_api.update(admin.id, task_id, {"priority": "high"})["success"] is True
    assert tasks_api.delete(admin.id, task_id)["success"] is True

    user_repo.deactivate(other.id)
    assert tasks_api.overdue(other.id)["error"] == "forbidden"


def test_user_controller(users_api: UserController, demo, admin) -> None:
    reg = users_api.register({"username": "eve", "email": "eve@x.io", "role": "admin"})
    assert reg["success"] and reg["data"]["role"] == "user"
    eve_id = reg["data"]["id"]

    assert users_api.register({"username": "EVE", "email": "e2@x.io"})["error"] == "conflict"
    assert users_api.login("eve")["data"]["login_count"] == 1

    assert users_api.update_profile(eve_id, eve_id, {"bio": "hi"})["success"]
    assert users_api.update_profile(eve_id, eve_id, {"role": "admin"})["error"] == "forbidden"
    assert users_api.update_profile(demo.id, eve_id, {"bio": "x"})["error"] == "forbidden"
    assert users_api.update_profile(admin.id, eve_id, {"role": "moderator"})["data"]["role"] == "moderator"

    assert users_api.purge(demo.id, eve_id)["error"] == "forbidden"
    assert users_api.stats(admin.id)["data"]["total"] == 3
    assert users_api.deactivate(eve_id, eve_id)["success"]
    assert len(users_api.list_users()["data"]) == 2
    assert users_api.purge(admin.id, eve_id)["success"]
    assert users_api.get(eve_id)["error"] == "not_found"
