# src/taskdesk/api/controllers.py

"""
Controllers: permission checks + a uniform response envelope.

Every public method returns a dict:

    {"success": True,  "data": ..., "message": "..."}
    {"success": False, "error": "<kind>", "message": "...", "errors": [...]}

Exceptions from services never escape a controller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..core.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    TaskdeskError,
    ValidationError,
)
from ..tasks.task_models import Task
from ..tasks.task_repository import TaskFilter
from ..tasks.task_service import TaskService
from ..users.user_models import User
from ..users.user_service import UserService

logger = logging.getLogger(__name__)

Envelope = dict[str, Any]


class PermissionDeniedError(TaskdeskError):
    pass


def ok(data: Any = None, message: str = "OK") -> Envelope:
    return {"success": True, "data": data, "message": message}


def fail(error: str, message: str, errors: list[str] | None = None) -> Envelope:
    out: Envelope = {"success": False, "error": error, "message": message}
    if errors:
        out["errors"] = list(errors)
    return out


def _guard(action: Callable[[], Envelope]) -> Envelope:
    try:
        return action()
    except ValidationError as e:
        return fail("validation_error", e.message, e.errors)
    except NotFoundError as e:
        return fail("not_found", str(e))
    except ConflictError as e:
        return fail("conflict", str(e))
    except PermissionDeniedError as e:
        return fail("forbidden", str(e))
    except PersistenceError as e:
        logger.exception("Storage failure in controller")
        return fail("persistence_error", str(e))


def can_modify_task(user: User, task: Task) -> bool:
    return user.is_active and (user.id in (task.owner_id, task.assignee_id) or user.is_admin)


class TaskController:
    def __init__(self, task_service: TaskService, user_service: UserService) -> None:
        self.tasks = task_service
        self.users = user_service

    def _actor(self, actor_id: str) -> User:
        user = self.users.get_user(actor_id)
        if not user.is_active:
            raise PermissionDeniedError(f"User {user.username} is deactivated")
        user.touch_activity()
        return user

    def _editable(self, actor_id: str, task_id: str) -> Task:
        actor = self._actor(actor_id)
        task = self.tasks.get_task(task_id)
        if not can_modify_task(actor, task):
            raise PermissionDeniedError(f"User {actor.username} may not modify task {task_id}")
        return task

    def create(self, actor_id: str, data: dict[str, Any]) -> Envelope:
        def run() -> Envelope:
            actor = self._actor(actor_id)
            payload = dict(data)
            owner_id = payload.setdefault("owner_id", actor.id)
            if owner_id != actor.id and not actor.is_admin:
                raise PermissionDeniedError("Only admins may create tasks for other users")
            task = self.tasks.create_task(payload)
            return ok(task.to_json(), "Task created")

        return _guard(run)

    def get(self, actor_id: str, task_id: str) -> Envelope:
        def run() -> Envelope:
            self._actor(actor_id)
            return ok(self.tasks.get_task(task_id).to_json())

        return _guard(run)

    def list_tasks(self, actor_id: str, task_filter: TaskFilter | None = None) -> Envelope:
        def run() -> Envelope:
            actor = self._actor(actor_id)
            tasks = self.tasks.get_tasks_for_user(actor.id, task_filter)
            return ok([t.to_json() for t in tasks], f"{len(tasks)} task(s)")

        return _guard(run)

    def update(self, actor_id: str, task_id: str, updates: dict[str, Any]) -> Envelope:
        def run() -> Envelope:
            self._editable(actor_id, task_id)
            task = self.tasks.update_task(task_id, updates)
            return ok(task.to_json(), "Task updated")

        return _guard(run)

    def set_completed(self, actor_id: str, task_id: str, completed: bool = True) -> Envelope:
        def run() -> Envelope:
            self._editable(actor_id, task_id)
            task = self.tasks.update_task(task_id, {"completed": completed})
            return ok(task.to_json(), "Task completed" if completed else "Task reopened")

        return _guard(run)

    def add_note(self, actor_id: str, task_id: str, content: str) -> Envelope:
        def run() -> Envelope:
            self._editable(actor_id, task_id)
            task = self.tasks.add_note(task_id, content, author=actor_id)
            return ok(task.to_json(), "Note added")

        return _guard(run)

    def assign(self, actor_id: str, task_id: str, assignee_id: str) -> Envelope:
        def run() -> Envelope:
            self._editable(actor_id, task_id)
            task = self.tasks.update_task(task_id, {"assignee_id": assignee_id})
            return ok(task.to_json(), "Task assigned")

        return _guard(run)

    def delete(self, actor_id: str, task_id: str) -> Envelope:
        def run() -> Envelope:
            actor = self._actor(actor_id)
            task = self.tasks.get_task(task_id)
            if task.owner_id != actor.id and not actor.is_admin:
                raise PermissionDeniedError("Only the owner or an admin may delete a task")
            self.tasks.delete_task(task_id)
            return ok({"id": task_id}, "Task deleted")

        return _guard(run)

    def search(self, actor_id: str, query: str) -> Envelope:
        def run() -> Envelope:
            actor = self._actor(actor_id)
            tasks = self.tasks.search_tasks(actor.id, query)
            return ok([t.to_json() for t in tasks], f"{len(tasks)} match(es)")

        return _guard(run)

    def overdue(self, actor_id: str) -> Envelope:
        def run() -> Envelope:
            actor = self._actor(actor_id)
            tasks = self.tasks.get_overdue_tasks(actor.id)
            return ok([t.to_json() for t in tasks], f"{len(tasks)} overdue")

        return _guard(run)

    def stats(self, actor_id: str) -> Envelope:
        def run() -> Envelope:
            actor = self._actor(actor_id)
            return ok(self.tasks.get_task_stats(actor.id).to_json())

        return _guard(run)


class UserController:
    def __init__(self, user_service: UserService) -> None:
        self.users = user_service

    def _manager(self, actor_id: str) -> User:
        actor = self.users.get_user(actor_id)
        if not actor.can_manage_users:
            raise PermissionDeniedError(f"User {actor.username} may not manage users")
        return actor

    def register(self, data: dict[str, Any]) -> Envelope:
        def run() -> Envelope:
            payload = dict(data)
            payload.pop("role", None)
            user = self.users.create_user(payload)
            return ok(user.to_json(), "User registered")

        return _guard(run)

    def login(self, username: str) -> Envelope:
        return _guard(lambda: ok(self.users.login(username).to_json(), "Logged in"))

    def get(self, user_id: str) -> Envelope:
        return _guard(lambda: ok(self.users.get_user(user_id).to_json()))

    def list_users(self, *, include_inactive: bool = False) -> Envelope:
        def run() -> Envelope:
            users = self.users.get_all_users(include_inactive=include_inactive)
            return ok([u.to_json() for u in users], f"{len(users)} user(s)")

        return _guard(run)

    def update_profile(self, actor_id: str, user_id: str, updates: dict[str, Any]) -> Envelope:
        def run() -> Envelope:
            if actor_id != user_id:
                self._manager(actor_id)
            elif "role" in updates or "is_active" in updates:
                raise PermissionDeniedError("Users may not change their own role or status")
            user = self.users.update_user(user_id, updates)
            return ok(user.to_json(), "Profile updated")

        return _guard(run)

    def deactivate(self, actor_id: str, user_id: str) -> Envelope:
        def run() -> Envelope:
            if actor_id != user_id:
                self._manager(actor_id)
            self.users.deactivate_user(user_id)
            return ok({"id": user_id}, "User deactivated")

        return _guard(run)

    def purge(self, actor_id: str, user_id: str) -> Envelope:
        def run() -> Envelope:
            self._manager(actor_id)
            self.users.purge_user(user_id)
            return ok({"id": user_id}, "User permanently deleted")

        return _guard(run)

    def stats(self, actor_id: str) -> Envelope:
        def run() -> Envelope:
            self._manager(actor_id)
            return ok(self.users.get_user_stats().to_json())

        return _guard(run)
