# src/taskdesk/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..api.controllers import TaskController, UserController
    from ..storage.manager import StorageManager
    from ..tasks.task_repository import TaskRepository
    from ..tasks.task_service import TaskService
    from ..users.user_repository import UserRepository
    from ..users.user_service import UserService


@dataclass
class AppState:
    """Everything one running app instance owns. Built by cli.bootstrap."""

    settings: Any
    storage: StorageManager
    task_repository: TaskRepository
    user_repository: UserRepository
    task_service: TaskService
    user_service: UserService
    task_controller: TaskController
    user_controller: UserController

    current_user_id: str | None = None
