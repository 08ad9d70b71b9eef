# src/taskdesk/core/errors.py

"""
Error taxonomy shared by entities, repositories, services and controllers.

- ValidationError: a field value is not acceptable (raised by entities/services).
- NotFoundError: an operation targets a missing id (raised by services;
  repositories signal the same condition with None/False).
- ConflictError: duplicate id/username/email on create.
- PersistenceError: the storage backend failed (caught and logged by repositories).
"""

from __future__ import annotations


class TaskdeskError(Exception):
    """Base class for all application errors."""


class ValidationError(TaskdeskError, ValueError):
    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else [message]


class NotFoundError(TaskdeskError, LookupError):
    def __init__(self, entity: str, entity_id: str | None) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(TaskdeskError):
    pass


class PersistenceError(TaskdeskError):
    pass


class StorageQuotaExceededError(PersistenceError):
    pass
