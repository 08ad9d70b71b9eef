# src/taskdesk/tasks/task_validation.py

"""
Per-field validation and sanitization for task payloads.

Validators never raise: they return a ValidationResult and let the caller
(service, controller) decide whether to reject the operation.
"""

from __future__ import annotations

import html
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..core.clock import parse_date, today
from .task_models import TaskPriority

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

_MARKUP_RE = re.compile(r"<[^>]*>")

# Payload key -> canonical field name (camelCase accepted from JSON clients).
_FIELD_ALIASES = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "due_date": "due_date",
    "dueDate": "due_date",
}


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    sanitized_value: Any = None


@dataclass(slots=True)
class TaskValidationResult:
    is_valid: bool
    errors: list[str]
    sanitized_data: dict[str, Any]
    field_results: dict[str, ValidationResult]


def sanitize_text(text: str) -> str:
    """HTML-escape & < > " and '."""
    return html.escape(text, quote=True)


def _contains_markup(text: str) -> bool:
    return bool(_MARKUP_RE.search(text))


def validate_title(value: Any, *, max_length: int = TITLE_MAX_LENGTH) -> ValidationResult:
    if value is None or value == "":
        return ValidationResult(False, ["Title is required"])
    if not isinstance(value, str):
        return ValidationResult(False, ["Title must be a string"])

    trimmed = value.strip()
    errors: list[str] = []
    if not trimmed:
        errors.append("Title cannot be empty or only whitespace")
    if len(trimmed) > max_length:
        errors.append(f"Title must be no more than {max_length} characters")
    if _contains_markup(trimmed):
        errors.append("Title cannot contain HTML tags")

    return ValidationResult(not errors, errors, sanitize_text(trimmed))


def validate_description(
    value: Any, *, max_length: int = DESCRIPTION_MAX_LENGTH
) -> ValidationResult:
    if value is None or value == "":
        return ValidationResult(True, [], "")
    if not isinstance(value, str):
        return ValidationResult(False, ["Description must be a string"])

    trimmed = value.strip()
    errors: list[str] = []
    if len(trimmed) > max_length:
        errors.append(f"Description must be no more than {max_length} characters")
    if _contains_markup(trimmed):
        errors.append("Description cannot contain HTML tags")

    return ValidationResult(not errors, errors, sanitize_text(trimmed))


def validate_priority(value: Any) -> ValidationResult:
    if value is None or value == "":
        return ValidationResult(True, [], TaskPriority.MEDIUM.value)

    normalized = str(value).strip().lower()
    allowed = [p.value for p in TaskPriority]
    if normalized not in allowed:
        return ValidationResult(False, [f"Priority must be one of: {', '.join(allowed)}"])
    return ValidationResult(True, [], normalized)


def validate_due_date(value: Any, *, current_day: date | None = None) -> ValidationResult:
    """
    Due dates are optional; when given they must parse and must not be
    before today (date-only comparison).
    """
    if value is None or value == "":
        return ValidationResult(True, [], None)

    try:
        due = parse_date(value)
    except (TypeError, ValueError):
        return ValidationResult(False, ["Due date must be a valid date"])
    if due is None:
        return ValidationResult(True, [], None)

    if due < (current_day or today()):
        return ValidationResult(False, ["Due date must be today or in the future"])
    return ValidationResult(True, [], due)


def validate_task(
    candidate: Mapping[str, Any],
    *,
    title_max_length: int = TITLE_MAX_LENGTH,
    description_max_length: int = DESCRIPTION_MAX_LENGTH,
) -> TaskValidationResult:
    """
    Validate the fields present in `candidate`.

    Absent fields are not validated; absent optional fields get their
    defaults in `sanitized_data` (description "", priority "medium",
    due_date None). Errors are flattened as "<field>: <message>".
    """
    present: dict[str, Any] = {}
    for key, value in candidate.items():
        name = _FIELD_ALIASES.get(key)
        if name is not None:
            present[name] = value

    validators = {
        "title": lambda v: validate_title(v, max_length=title_max_length),
        "description": lambda v: validate_description(v, max_length=description_max_length),
        "priority": validate_priority,
        "due_date": validate_due_date,
    }

    errors: list[str] = []
    sanitized: dict[str, Any] = {}
    field_results: dict[str, ValidationResult] = {}

    for name, validator in validators.items():
        if name not in present:
            continue
        result = validator(present[name])
        field_results[name] = result
        if result.is_valid:
            sanitized[name] = result.sanitized_value
        else:
            errors.extend(f"{name}: {e}" for e in result.errors)

    sanitized.setdefault("description", "")
    sanitized.setdefault("priority", TaskPriority.MEDIUM.value)
    sanitized.setdefault("due_date", None)

    return TaskValidationResult(
        is_valid=not errors,
        errors=errors,
        sanitized_data=sanitized,
        field_results=field_results,
    )


def validate_task_update(updates: Mapping[str, Any], **limits: int) -> TaskValidationResult:
    """Same rules as validate_task; only the keys being updated are checked."""
    return validate_task(updates, **limits)
