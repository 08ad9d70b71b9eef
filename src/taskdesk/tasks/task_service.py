# src/taskdesk/tasks/task_service.py

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import NotFoundError, ValidationError
from ..core.ports import TaskRepo, UserRepo
from .task_models import Task
from .task_repository import TaskFilter, TaskStatistics
from .task_validation import (
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    validate_task,
    validate_task_update,
)

logger = logging.getLogger(__name__)

# Fields validate_task checks; everything else goes straight to the mutators.
_VALIDATED_FIELDS = ("title", "description", "priority", "due_date")

# Options accepted on create besides the validated fields.
_CREATE_OPTIONS = (
    "assignee_id",
    "category",
    "status",
    "estimated_hours",
    "actual_hours",
    "tags",
    "dependencies",
    "project_id",
    "parent_task_id",
    "recurrence",
)


class TaskService:
    """
    Application-level task operations on top of the repositories.

    Unlike the repository, the service checks references (owner/assignee must
    exist and be active) and runs form validation (sanitized text, no past
    due dates) before anything reaches the entity.
    """

    def __init__(self, task_repository: TaskRepo, user_repository: UserRepo, settings=None) -> None:
        self.tasks = task_repository
        self.users = user_repository
        self._title_max = int(getattr(settings, "title_max_length", TITLE_MAX_LENGTH))
        self._description_max = int(
            getattr(settings, "description_max_length", DESCRIPTION_MAX_LENGTH)
        )

    def _require_active_user(self, user_id: str | None) -> None:
        user = self.users.find_by_id(user_id or "")
        if user is None or not user.is_active:
            raise NotFoundError("User", user_id)

    def create_task(self, data: dict[str, Any]) -> Task:
        owner_id = data.get("owner_id")
        self._require_active_user(owner_id)
        if data.get("assignee_id"):
            self._require_active_user(data["assignee_id"])

        result = validate_task(
            data,
            title_max_length=self._title_max,
            description_max_length=self._description_max,
        )
        if "title" not in result.field_results:
            result.errors.insert(0, "title: Title is required")
            result.is_valid = False
        if not result.is_valid:
            raise ValidationError("; ".join(result.errors), result.errors)

        clean = result.sanitized_data
        options = {k: data[k] for k in _CREATE_OPTIONS if k in data}
        task = Task(
            clean["title"],
            clean["description"],
            str(owner_id),
            priority=clean["priority"],
            due_date=clean["due_date"],
            **options,
        )
        created = self.tasks.create(task)
        logger.info("Task created id=%s owner=%s", created.id, created.owner_id)
        return created

    def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
        if self.tasks.find_by_id(task_id) is None:
            raise NotFoundError("Task", task_id)
        if updates.get("assignee_id"):
            self._require_active_user(updates["assignee_id"])

        changes = dict(updates)
        if "dueDate" in changes:
            changes["due_date"] = changes.pop("dueDate")
        checked = {k: changes[k] for k in _VALIDATED_FIELDS if k in changes}
        if checked:
            result = validate_task_update(
                checked,
                title_max_length=self._title_max,
                description_max_length=self._description_max,
            )
            if not result.is_valid:
                raise ValidationError("; ".join(result.errors), result.errors)
            for k in checked:
                changes[k] = result.sanitized_data[k]

        updated = self.tasks.update(task_id, changes)
        if updated is None:
            raise NotFoundError("Task", task_id)
        return updated

    def get_task(self, task_id: str) -> Task:
        task = self.tasks.find_by_id(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def delete_task(self, task_id: str) -> None:
        if not self.tasks.delete(task_id):
            raise NotFoundError("Task", task_id)

    def add_note(self, task_id: str, content: str, author: str | None = None) -> Task:
        task = self.get_task(task_id)
        task.add_note(content, author)
        return self._save(task)

    def add_dependency(self, task_id: str, depends_on: str) -> Task:
        task = self.get_task(task_id)
        if self.tasks.find_by_id(depends_on) is None:
            raise NotFoundError("Task", depends_on)
        task.add_dependency(depends_on)
        return self._save(task)

    def log_time(self, task_id: str, hours: float) -> Task:
        task = self.get_task(task_id)
        task.add_time_spent(hours)
        return self._save(task)

    def _save(self, task: Task) -> Task:
        saved = self.tasks.save(task)
        if saved is None:
            raise NotFoundError("Task", task.id)
        return saved

    # ---- queries ----

    def get_tasks_for_user(self, user_id: str, task_filter: TaskFilter | None = None) -> list[Task]:
        f = task_filter or TaskFilter()
        f.owner_id = user_id
        return self.tasks.find_all(f)

    def get_pending_tasks(self, user_id: str) -> list[Task]:
        return self.tasks.find_all(TaskFilter(owner_id=user_id, completed=False))

    def get_completed_tasks(self, user_id: str) -> list[Task]:
        return self.tasks.find_all(TaskFilter(owner_id=user_id, completed=True))

    def get_overdue_tasks(self, user_id: str) -> list[Task]:
        return self.tasks.find_overdue(user_id)

    def get_tasks_assigned_to(self, user_id: str) -> list[Task]:
        return self.tasks.find_all(TaskFilter(assignee_id=user_id))

    def search_tasks(self, user_id: str, query: str) -> list[Task]:
        return self.tasks.search(query, owner_id=user_id)

    def get_task_stats(self, user_id: str | None = None) -> TaskStatistics:
        return self.tasks.get_statistics(user_id)
