# src/taskdesk/tasks/task_models.py

from __future__ import annotations

import logging
from dataclasses import KW_ONLY, dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any, TypeVar

from ..core.clock import new_id, parse_date, parse_datetime, to_iso, today, utcnow
from ..core.errors import ValidationError

logger = logging.getLogger(__name__)


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
    TaskPriority.URGENT: 4,
}


class TaskCategory(StrEnum):
    GENERAL = "general"
    WORK = "work"
    PERSONAL = "personal"
    STUDY = "study"
    HEALTH = "health"
    FINANCE = "finance"
    OTHER = "other"


E = TypeVar("E", bound=StrEnum)


def coerce_enum(enum_cls: type[E], raw: Any, label: str) -> E:
    """Strict conversion used by constructors and mutators."""
    if isinstance(raw, enum_cls):
        return raw
    value = str(raw or "").strip().lower()
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {label}: {raw!r} (expected one of: {allowed})") from None


def lenient_enum(enum_cls: type[E], raw: Any, default: E) -> E:
    """Conversion used when loading stored data: unknown values fall back to `default`."""
    try:
        return coerce_enum(enum_cls, raw, enum_cls.__name__)
    except ValidationError:
        if raw not in (None, ""):
            logger.warning("Unknown %s %r in stored data; using %s", enum_cls.__name__, raw, default)
        return default


def _check_hours(value: Any, label: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{label} must be a number")
    if value < 0:
        raise ValidationError(f"{label} must be a non-negative number")
    return float(value)


def check_datetime(value: Any, label: str) -> datetime | None:
    """Strict timestamp conversion: datetime or ISO-8601 string, naive taken as UTC."""
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}: {value!r}") from None


def _normalize_tag(tag: Any) -> str:
    if not isinstance(tag, str) or not tag.strip():
        raise ValidationError("Tag must be a non-empty string")
    return tag.strip().lower()


def _require_text(value: Any, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value.strip()


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return default


@dataclass(slots=True)
class TaskNote:
    content: str
    author: str
    id: str = field(default_factory=lambda: new_id("note"))
    created_at: datetime = field(default_factory=utcnow)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "author": self.author,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> TaskNote:
        return cls(
            content=str(data.get("content") or ""),
            author=str(data.get("author") or ""),
            id=str(data.get("id") or new_id("note")),
            created_at=parse_datetime(_pick(data, "created_at", "createdAt")) or utcnow(),
        )


@dataclass(slots=True)
class Task:
    """
    One task and its legal mutations.

    The constructor validates every field and raises ValidationError listing
    all problems. Mutators validate their argument, apply it, bump updated_at
    and return the task so calls can be chained.

    `completed` is derived from `status`; `completed_at` is set exactly when
    the task is completed.
    """

    title: str
    description: str
    owner_id: str
    _: KW_ONLY
    assignee_id: str | None = None
    category: TaskCategory | str = TaskCategory.GENERAL
    priority: TaskPriority | str = TaskPriority.MEDIUM
    status: TaskStatus | str = TaskStatus.PENDING
    due_date: date | str | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    tags: list[str] = field(default_factory=list)
    notes: list[TaskNote] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    project_id: str | None = None
    parent_task_id: str | None = None
    recurrence: str | None = None
    id: str = field(default_factory=lambda: new_id("task"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        errors: list[str] = []

        def check(fn, *args):
            try:
                return fn(*args)
            except ValidationError as e:
                errors.extend(e.errors)
                return None

        self.title = check(_require_text, self.title, "Task title is required") or ""
        if self.description is None:
            self.description = ""
        elif not isinstance(self.description, str):
            errors.append("Description must be a string")
        else:
            self.description = self.description.strip()
        self.owner_id = check(_require_text, self.owner_id, "Owner id is required") or ""
        if self.assignee_id is None or not str(self.assignee_id).strip():
            self.assignee_id = self.owner_id
        else:
            self.assignee_id = str(self.assignee_id).strip()

        # Missing (None or "") enum values take the field default.
        self.category = check(coerce_enum, TaskCategory, self.category or TaskCategory.GENERAL, "category")
        self.priority = check(coerce_enum, TaskPriority, self.priority or TaskPriority.MEDIUM, "priority")
        self.status = check(coerce_enum, TaskStatus, self.status or TaskStatus.PENDING, "status")

        try:
            self.due_date = parse_date(self.due_date)
        except (TypeError, ValueError):
            errors.append(f"Invalid due date: {self.due_date!r}")
            self.due_date = None

        self.estimated_hours = check(_check_hours, self.estimated_hours, "Estimated hours")
        self.actual_hours = check(_check_hours, self.actual_hours, "Actual hours")

        tags: list[str] = []
        for t in self.tags or []:
            norm = check(_normalize_tag, t)
            if norm and norm not in tags:
                tags.append(norm)
        self.tags = tags

        self.notes = [n if isinstance(n, TaskNote) else TaskNote.from_json(n) for n in self.notes or []]

        deps: list[str] = []
        for dep in self.dependencies or []:
            if dep == self.id:
                errors.append("Task cannot depend on itself")
            elif dep not in deps:
                deps.append(dep)
        self.dependencies = deps

        self.created_at = check(check_datetime, self.created_at, "created_at") or utcnow()
        self.updated_at = check(check_datetime, self.updated_at, "updated_at")
        self.completed_at = check(check_datetime, self.completed_at, "completed_at")

        if errors:
            raise ValidationError("; ".join(errors), errors)

        if self.updated_at is None:
            self.updated_at = self.created_at
        if self.status == TaskStatus.COMPLETED:
            self.completed_at = self.completed_at or utcnow()
        else:
            self.completed_at = None

    def _touch(self) -> Task:
        self.updated_at = utcnow()
        return self

    # ---- derived properties ----

    @property
    def completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def is_overdue(self) -> bool:
        if self.due_date is None or self.completed:
            return False
        return self.due_date < today()

    @property
    def days_until_due(self) -> int | None:
        if self.due_date is None:
            return None
        return (self.due_date - today()).days

    @property
    def progress(self) -> float:
        if self.completed:
            return 100.0
        if not self.estimated_hours or not self.actual_hours:
            return 0.0
        return min(100.0, self.actual_hours / self.estimated_hours * 100.0)

    def is_due_within(self, days: int) -> bool:
        left = self.days_until_due
        return left is not None and 0 <= left <= days

    # ---- text ----

    def update_title(self, title: str) -> Task:
        self.title = _require_text(title, "Task title cannot be empty")
        return self._touch()

    def update_description(self, description: str | None) -> Task:
        self.description = str(description or "").strip()
        return self._touch()

    # ---- classification ----

    def update_priority(self, priority: TaskPriority | str) -> Task:
        self.priority = coerce_enum(TaskPriority, priority, "priority")
        return self._touch()

    def set_category(self, category: TaskCategory | str) -> Task:
        self.category = coerce_enum(TaskCategory, category, "category")
        return self._touch()

    def add_tag(self, tag: str) -> Task:
        norm = _normalize_tag(tag)
        if norm not in self.tags:
            self.tags.append(norm)
            self._touch()
        return self

    def remove_tag(self, tag: str) -> Task:
        norm = str(tag).strip().lower()
        if norm in self.tags:
            self.tags.remove(norm)
            self._touch()
        return self

    def set_tags(self, tags: list[str]) -> Task:
        normalized: list[str] = []
        for t in tags:
            norm = _normalize_tag(t)
            if norm not in normalized:
                normalized.append(norm)
        self.tags = normalized
        return self._touch()

    def clear_tags(self) -> Task:
        self.tags = []
        return self._touch()

    def has_tag(self, tag: str) -> bool:
        return str(tag).strip().lower() in self.tags

    # ---- scheduling ----

    def set_due_date(self, due: date | str | None) -> Task:
        try:
            self.due_date = parse_date(due)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid due date: {due!r}") from None
        return self._touch()

    def clear_due_date(self) -> Task:
        self.due_date = None
        return self._touch()

    def set_estimated_hours(self, hours: float | None) -> Task:
        self.estimated_hours = _check_hours(hours, "Estimated hours")
        return self._touch()

    def set_actual_hours(self, hours: float | None) -> Task:
        self.actual_hours = _check_hours(hours, "Actual hours")
        return self._touch()

    def add_time_spent(self, hours: float) -> Task:
        spent = _check_hours(hours, "Hours")
        if spent is None:
            raise ValidationError("Hours must be a number")
        self.actual_hours = (self.actual_hours or 0.0) + spent
        return self._touch()

    # ---- status ----

    def set_status(self, status: TaskStatus | str) -> Task:
        new_status = coerce_enum(TaskStatus, status, "status")
        was_completed = self.completed
        self.status = new_status
        if new_status == TaskStatus.COMPLETED:
            if not was_completed or self.completed_at is None:
                self.completed_at = utcnow()
        else:
            self.completed_at = None
        return self._touch()

    def mark_complete(self) -> Task:
        if not self.completed:
            self.set_status(TaskStatus.COMPLETED)
        return self

    def mark_incomplete(self) -> Task:
        if self.completed:
            self.set_status(TaskStatus.PENDING)
        return self

    # ---- people ----

    def assign_to(self, user_id: str) -> Task:
        self.assignee_id = _require_text(user_id, "Valid user id is required")
        return self._touch()

    def reassign_to_owner(self) -> Task:
        self.assignee_id = self.owner_id
        return self._touch()

    # ---- notes ----

    def add_note(self, content: str, author: str | None = None) -> Task:
        text = _require_text(content, "Note must be a non-empty string")
        self.notes.append(TaskNote(content=text, author=author or self.owner_id))
        return self._touch()

    def remove_note(self, note_id: str) -> Task:
        for i, note in enumerate(self.notes):
            if note.id == note_id:
                del self.notes[i]
                self._touch()
                break
        return self

    # ---- dependencies ----

    def add_dependency(self, task_id: str) -> Task:
        dep = _require_text(task_id, "Dependency must be a task id")
        if dep == self.id:
            raise ValidationError("Task cannot depend on itself")
        if dep not in self.dependencies:
            self.dependencies.append(dep)
            self._touch()
        return self

    def remove_dependency(self, task_id: str) -> Task:
        if task_id in self.dependencies:
            self.dependencies.remove(task_id)
            self._touch()
        return self

    def set_dependencies(self, task_ids: list[str]) -> Task:
        deps: list[str] = []
        for raw in task_ids:
            dep = _require_text(raw, "Dependency must be a task id")
            if dep == self.id:
                raise ValidationError("Task cannot depend on itself")
            if dep not in deps:
                deps.append(dep)
        self.dependencies = deps
        return self._touch()

    def has_dependency(self, task_id: str) -> bool:
        return task_id in self.dependencies

    # ---- misc ----

    def set_project(self, project_id: str | None) -> Task:
        self.project_id = project_id or None
        return self._touch()

    def set_parent(self, parent_task_id: str | None) -> Task:
        if parent_task_id and parent_task_id == self.id:
            raise ValidationError("Task cannot be its own parent")
        self.parent_task_id = parent_task_id or None
        return self._touch()

    def set_recurrence(self, recurrence: str | None) -> Task:
        self.recurrence = recurrence or None
        return self._touch()

    # ---- serialization ----

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "owner_id": self.owner_id,
            "assignee_id": self.assignee_id,
            "category": str(self.category),
            "priority": str(self.priority),
            "status": str(self.status),
            "completed": self.completed,
            "completed_at": to_iso(self.completed_at),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
            "due_date": to_iso(self.due_date),  # type: ignore[arg-type]
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "tags": list(self.tags),
            "notes": [n.to_json() for n in self.notes],
            "dependencies": list(self.dependencies),
            "project_id": self.project_id,
            "parent_task_id": self.parent_task_id,
            "recurrence": self.recurrence,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Task:
        """Build a new task from a plain dict, with full constructor validation."""
        options: dict[str, Any] = {}
        for key, value in data.items():
            name = _PAYLOAD_KEYS.get(key)
            if name is None:
                raise ValidationError(f"Unknown task field: {key}")
            options[name] = value
        if not options.get("id"):
            options.pop("id", None)
        return cls(
            options.pop("title", ""),
            options.pop("description", ""),
            options.pop("owner_id", ""),
            **options,
        )

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Task:
        """
        Rebuild a stored task without re-running constructor validation.

        Historical records that today's rules would reject still load:
        past due dates, long titles and markup are kept as-is; out-of-range
        enum values are repaired to their defaults; bad hours become None.
        camelCase keys written by older clients are accepted.
        """
        task = cls.__new__(cls)
        task.id = str(data.get("id") or new_id("task"))
        task.title = str(data.get("title") or "").strip()
        task.description = str(data.get("description") or "").strip()
        task.owner_id = str(_pick(data, "owner_id", "ownerId", "userId", default="")).strip()
        task.assignee_id = str(
            _pick(data, "assignee_id", "assigneeId", "assignedTo", default=task.owner_id)
        ).strip()
        task.category = lenient_enum(TaskCategory, data.get("category"), TaskCategory.GENERAL)
        task.priority = lenient_enum(TaskPriority, data.get("priority"), TaskPriority.MEDIUM)

        raw_status = data.get("status")
        if not raw_status and data.get("completed"):
            raw_status = TaskStatus.COMPLETED
        task.status = lenient_enum(TaskStatus, raw_status, TaskStatus.PENDING)

        try:
            task.due_date = parse_date(_pick(data, "due_date", "dueDate"))
        except (TypeError, ValueError):
            logger.warning("Dropping unparseable due date for task %s", task.id)
            task.due_date = None

        task.estimated_hours = _lenient_hours(_pick(data, "estimated_hours", "estimatedHours"))
        task.actual_hours = _lenient_hours(_pick(data, "actual_hours", "actualHours"))
        task.tags = [str(t).strip().lower() for t in data.get("tags") or [] if str(t).strip()]
        task.notes = [TaskNote.from_json(n) for n in data.get("notes") or [] if isinstance(n, dict)]
        task.dependencies = [str(d) for d in data.get("dependencies") or [] if d != task.id]
        task.project_id = _pick(data, "project_id", "projectId")
        task.parent_task_id = _pick(data, "parent_task_id", "parentTaskId")
        task.recurrence = data.get("recurrence")

        task.created_at = parse_datetime(_pick(data, "created_at", "createdAt")) or utcnow()
        task.updated_at = parse_datetime(_pick(data, "updated_at", "updatedAt")) or task.created_at
        completed_at = parse_datetime(_pick(data, "completed_at", "completedAt"))
        if task.status == TaskStatus.COMPLETED:
            task.completed_at = completed_at or task.updated_at
        else:
            task.completed_at = None
        return task

    def clone(self) -> Task:
        """Copy with a new id, fresh timestamps and status reset to pending."""
        copy = Task.from_json(self.to_json())
        now = utcnow()
        copy.id = new_id("task")
        copy.status = TaskStatus.PENDING
        copy.completed_at = None
        copy.created_at = now
        copy.updated_at = now
        return copy


# Keys accepted by Task.from_payload -> constructor argument.
_PAYLOAD_KEYS = {
    "title": "title",
    "description": "description",
    "owner_id": "owner_id",
    "ownerId": "owner_id",
    "userId": "owner_id",
    "assignee_id": "assignee_id",
    "assigneeId": "assignee_id",
    "assignedTo": "assignee_id",
    "category": "category",
    "priority": "priority",
    "status": "status",
    "due_date": "due_date",
    "dueDate": "due_date",
    "estimated_hours": "estimated_hours",
    "estimatedHours": "estimated_hours",
    "actual_hours": "actual_hours",
    "actualHours": "actual_hours",
    "tags": "tags",
    "dependencies": "dependencies",
    "project_id": "project_id",
    "parent_task_id": "parent_task_id",
    "recurrence": "recurrence",
    "id": "id",
}


def _lenient_hours(raw: Any) -> float | None:
    try:
        return _check_hours(raw, "hours")
    except ValidationError:
        return None
