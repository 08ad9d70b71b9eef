# src/taskdesk/tasks/task_repository.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import ConflictError, ValidationError
from ..core.ports import KeyValueStore
from ..core.repository import BaseRepository
from .task_models import Task, TaskCategory, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

TASKS_STORAGE_KEY = "tasks"
DEFAULT_DUE_SOON_DAYS = 3

SORT_FIELDS = ("title", "priority", "due_date", "created_at", "updated_at", "status", "category")


@dataclass(slots=True)
class TaskFilter:
    """
    Query for TaskRepository.find_all.

    Equality filters are ANDed. `tags` matches tasks carrying ANY of the tags.
    `search` is a case-insensitive substring match over title, description
    and tags. Sorting is stable: ties keep index order. Tasks without a due
    date always sort last when sorting by due_date.
    """

    owner_id: str | None = None
    assignee_id: str | None = None
    category: str | None = None
    priority: str | None = None
    status: str | None = None
    completed: bool | None = None
    overdue: bool | None = None
    tags: list[str] = field(default_factory=list)
    search: str | None = None
    sort_by: str | None = None
    descending: bool = False
    offset: int = 0
    limit: int | None = None


@dataclass(slots=True)
class TaskStatistics:
    total: int
    completed: int
    incomplete: int
    overdue: int
    due_soon: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    by_category: dict[str, int]

    def to_json(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "incomplete": self.incomplete,
            "overdue": self.overdue,
            "due_soon": self.due_soon,
            "by_status": dict(self.by_status),
            "by_priority": dict(self.by_priority),
            "by_category": dict(self.by_category),
        }


@dataclass(slots=True)
class BulkResult:
    results: list[Any] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)


def _set_completed(task: Task, value: Any) -> Task:
    return task.mark_complete() if bool(value) else task.mark_incomplete()


# Updatable field -> mutator. Anything else (id, owner_id, timestamps...) is rejected.
TASK_UPDATERS: dict[str, Callable[[Task, Any], Task]] = {
    "title": Task.update_title,
    "description": Task.update_description,
    "priority": Task.update_priority,
    "category": Task.set_category,
    "status": Task.set_status,
    "completed": _set_completed,
    "due_date": Task.set_due_date,
    "estimated_hours": Task.set_estimated_hours,
    "actual_hours": Task.set_actual_hours,
    "assignee_id": Task.assign_to,
    "tags": Task.set_tags,
    "dependencies": Task.set_dependencies,
    "project_id": Task.set_project,
    "parent_task_id": Task.set_parent,
    "recurrence": Task.set_recurrence,
}


def apply_task_updates(task: Task, fields: dict[str, Any]) -> Task:
    unknown = sorted(k for k in fields if k not in TASK_UPDATERS)
    if unknown:
        raise ValidationError(f"Cannot update task field(s): {', '.join(unknown)}")
    for name, value in fields.items():
        TASK_UPDATERS[name](task, value)
    return task


def _sort_tasks(tasks: list[Task], sort_by: str, descending: bool) -> list[Task]:
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {sort_by!r} (expected one of: {', '.join(SORT_FIELDS)})")

    if sort_by == "due_date":
        dated = [t for t in tasks if t.due_date is not None]
        undated = [t for t in tasks if t.due_date is None]
        dated.sort(key=lambda t: t.due_date, reverse=descending)  # type: ignore[arg-type,return-value]
        return dated + undated

    keys: dict[str, Callable[[Task], Any]] = {
        "title": lambda t: t.title.lower(),
        "priority": lambda t: TaskPriority(t.priority).rank,
        "created_at": lambda t: t.created_at,
        "updated_at": lambda t: t.updated_at,
        "status": lambda t: str(t.status),
        "category": lambda t: str(t.category),
    }
    return sorted(tasks, key=keys[sort_by], reverse=descending)


class TaskRepository(BaseRepository[Task]):
    entity_name = "task"

    def __init__(
        self,
        storage: KeyValueStore | None = None,
        *,
        cache_ttl_seconds: float = 300.0,
        due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
    ) -> None:
        self.due_soon_days = int(due_soon_days)
        super().__init__(
            storage,
            storage_key=TASKS_STORAGE_KEY,
            from_json=Task.from_json,
            cache_ttl_seconds=cache_ttl_seconds,
        )

    # ---- CRUD ----

    def create(self, task: Task | dict[str, Any]) -> Task:
        """
        Insert a new task (or build one from a payload dict first).

        Raises ConflictError if the id is already taken.
        """
        if isinstance(task, dict):
            task = Task.from_payload(task)
        if not isinstance(task, Task):
            raise ValidationError("A Task instance or payload is required")
        return self._insert(task)

    def update(self, task_id: str, fields: dict[str, Any]) -> Task | None:
        """
        Apply `fields` through the task's mutators and persist.

        All-or-nothing: the changes are first applied to a scratch copy, so a
        failing field raises ValidationError and leaves the stored task untouched.
        """
        task = self._items.get(task_id)
        if task is None:
            return None
        if not fields:
            return task
        apply_task_updates(Task.from_json(task.to_json()), fields)
        apply_task_updates(task, fields)
        return self._saved(task)

    def delete(self, task_id: str) -> bool:
        return self._remove(task_id) is not None

    # ---- queries ----

    def find_all(self, task_filter: TaskFilter | None = None) -> list[Task]:
        tasks = self.all()
        if task_filter is None:
            return tasks
        f = task_filter

        if f.owner_id:
            tasks = [t for t in tasks if t.owner_id == f.owner_id]
        if f.assignee_id:
            tasks = [t for t in tasks if t.assignee_id == f.assignee_id]
        if f.category:
            tasks = [t for t in tasks if t.category == str(f.category).lower()]
        if f.priority:
            tasks = [t for t in tasks if t.priority == str(f.priority).lower()]
        if f.status:
            tasks = [t for t in tasks if t.status == str(f.status).lower()]
        if f.completed is not None:
            tasks = [t for t in tasks if t.completed == f.completed]
        if f.overdue is not None:
            tasks = [t for t in tasks if t.is_overdue == f.overdue]
        if f.tags:
            wanted = {str(tag).strip().lower() for tag in f.tags}
            tasks = [t for t in tasks if wanted.intersection(t.tags)]
        if f.search:
            term = f.search.strip().lower()
            tasks = [t for t in tasks if _matches_text(t, term)]

        if f.sort_by:
            tasks = _sort_tasks(tasks, f.sort_by, f.descending)

        start = max(0, int(f.offset or 0))
        if f.limit is not None:
            return tasks[start : start + max(0, int(f.limit))]
        return tasks[start:]

    def find_by_owner(self, owner_id: str) -> list[Task]:
        return self.find_all(TaskFilter(owner_id=owner_id))

    def find_by_assignee(self, assignee_id: str) -> list[Task]:
        return self.find_all(TaskFilter(assignee_id=assignee_id))

    def find_by_category(self, category: TaskCategory | str) -> list[Task]:
        return self.find_all(TaskFilter(category=str(category)))

    def find_by_priority(self, priority: TaskPriority | str) -> list[Task]:
        return self.find_all(TaskFilter(priority=str(priority)))

    def find_by_status(self, status: TaskStatus | str) -> list[Task]:
        return self.find_all(TaskFilter(status=str(status)))

    def find_by_tag(self, tag: str) -> list[Task]:
        return self.find_all(TaskFilter(tags=[tag]))

    def find_completed(self, owner_id: str | None = None) -> list[Task]:
        return self.find_all(TaskFilter(owner_id=owner_id, completed=True))

    def find_incomplete(self, owner_id: str | None = None) -> list[Task]:
        return self.find_all(TaskFilter(owner_id=owner_id, completed=False))

    def find_overdue(self, owner_id: str | None = None) -> list[Task]:
        return self.find_all(TaskFilter(owner_id=owner_id, overdue=True))

    def find_due_within(self, days: int, owner_id: str | None = None) -> list[Task]:
        """Incomplete tasks due between today and today + `days` (inclusive)."""
        return [
            t
            for t in self.find_all(TaskFilter(owner_id=owner_id, completed=False))
            if t.is_due_within(days)
        ]

    def find_due_today(self, owner_id: str | None = None) -> list[Task]:
        return self.find_due_within(0, owner_id)

    def search(self, text: str, owner_id: str | None = None) -> list[Task]:
        if not text or not text.strip():
            return []
        return self.find_all(TaskFilter(owner_id=owner_id, search=text))

    # ---- statistics ----

    def get_statistics(self, owner_id: str | None = None) -> TaskStatistics:
        tasks = self.find_by_owner(owner_id) if owner_id else self.all()

        by_status = {s.value: 0 for s in TaskStatus}
        by_priority = {p.value: 0 for p in TaskPriority}
        by_category: dict[str, int] = {}
        completed = overdue = due_soon = 0

        for t in tasks:
            by_status[str(t.status)] = by_status.get(str(t.status), 0) + 1
            by_priority[str(t.priority)] = by_priority.get(str(t.priority), 0) + 1
            by_category[str(t.category)] = by_category.get(str(t.category), 0) + 1
            if t.completed:
                completed += 1
            if t.is_overdue:
                overdue += 1
            if not t.completed and t.is_due_within(self.due_soon_days):
                due_soon += 1

        return TaskStatistics(
            total=len(tasks),
            completed=completed,
            incomplete=len(tasks) - completed,
            overdue=overdue,
            due_soon=due_soon,
            by_status=by_status,
            by_priority=by_priority,
            by_category=by_category,
        )

    # ---- bulk ----

    def create_many(self, tasks: Iterable[Task]) -> BulkResult:
        out = BulkResult()
        for task in tasks:
            try:
                out.results.append(self.create(task))
            except (ConflictError, ValidationError) as e:
                out.errors.append({"id": str(getattr(task, "id", "")), "error": str(e)})
        return out

    def delete_many(self, task_ids: Iterable[str]) -> BulkResult:
        out = BulkResult()
        for task_id in task_ids:
            if self.delete(task_id):
                out.results.append(task_id)
            else:
                out.errors.append({"id": task_id, "error": "Task not found"})
        return out


def _matches_text(task: Task, term: str) -> bool:
    if term in task.title.lower() or term in task.description.lower():
        return True
    return any(term in tag for tag in task.tags)
