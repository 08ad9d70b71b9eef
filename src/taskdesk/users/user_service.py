# src/taskdesk/users/user_service.py

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import NotFoundError
from .user_models import User
from .user_repository import UserFilter, UserRepository, UserStatistics

logger = logging.getLogger(__name__)

_PROFILE_OPTIONS = (
    "display_name",
    "first_name",
    "last_name",
    "bio",
    "avatar",
    "role",
    "preferences",
    "tags",
    "metadata",
)


class UserService:
    def __init__(self, user_repository: UserRepository) -> None:
        self.users = user_repository

    def create_user(self, data: dict[str, Any]) -> User:
        options = {k: data[k] for k in _PROFILE_OPTIONS if k in data}
        if "full_name" in data and "display_name" not in options:
            options["display_name"] = data["full_name"]
        user = User(data.get("username", ""), data.get("email", ""), **options)
        created = self.users.create(user)
        logger.info("User created id=%s username=%s", created.id, created.username)
        return created

    def get_user(self, user_id: str) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_all_users(self, *, include_inactive: bool = False) -> list[User]:
        if include_inactive:
            return self.users.find_all()
        return self.users.find_all(UserFilter(is_active=True))

    def update_user(self, user_id: str, updates: dict[str, Any]) -> User:
        user = self.users.update(user_id, updates)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def login(self, username: str) -> User:
        user = self.users.login(username)
        if user is None:
            raise NotFoundError("User", username)
        return user

    def deactivate_user(self, user_id: str) -> None:
        if not self.users.deactivate(user_id):
            raise NotFoundError("User", user_id)

    def purge_user(self, user_id: str) -> None:
        if not self.users.purge(user_id):
            raise NotFoundError("User", user_id)

    def ensure_user(self, username: str, email: str, **profile: Any) -> User:
        """Return the user with `username`, creating it if missing."""
        existing = self.users.find_by_username(username)
        if existing is not None:
            return existing
        return self.create_user({"username": username, "email": email, **profile})

    def get_user_stats(self) -> UserStatistics:
        return self.users.get_statistics()
