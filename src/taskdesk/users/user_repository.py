# src/taskdesk/users/user_repository.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import ConflictError, ValidationError
from ..core.ports import KeyValueStore
from ..core.repository import BaseRepository
from .user_models import User, UserRole

logger = logging.getLogger(__name__)

USERS_STORAGE_KEY = "users"


@dataclass(slots=True)
class UserFilter:
    role: str | None = None
    is_active: bool | None = None
    is_verified: bool | None = None
    tags: list[str] = field(default_factory=list)
    search: str | None = None
    sort_by: str | None = None  # username | email | created_at | last_login_at
    descending: bool = False
    offset: int = 0
    limit: int | None = None


@dataclass(slots=True)
class UserStatistics:
    total: int
    active: int
    inactive: int
    verified: int
    by_role: dict[str, int]

    def to_json(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "inactive": self.inactive,
            "verified": self.verified,
            "by_role": dict(self.by_role),
        }


def _set_profile(name: str) -> Callable[[User, Any], User]:
    def apply(user: User, value: Any) -> User:
        return user.update_profile(**{name: "" if value is None else str(value)})

    return apply


def _set_active(user: User, value: Any) -> User:
    return user.activate() if bool(value) else user.deactivate()


def _set_verified(user: User, value: Any) -> User:
    if bool(value):
        return user.verify()
    user.is_verified = False
    return user


def _set_preferences(user: User, value: Any) -> User:
    if not isinstance(value, dict):
        raise ValidationError("preferences must be a mapping")
    return user.update_preferences(value)


# Updatable field -> mutator. username/email uniqueness is checked by the repository.
USER_UPDATERS: dict[str, Callable[[User, Any], User]] = {
    "username": User.update_username,
    "email": User.update_email,
    "display_name": _set_profile("display_name"),
    "first_name": _set_profile("first_name"),
    "last_name": _set_profile("last_name"),
    "bio": _set_profile("bio"),
    "avatar": _set_profile("avatar"),
    "role": User.set_role,
    "is_active": _set_active,
    "is_verified": _set_verified,
    "preferences": _set_preferences,
}

_USER_SORT_KEYS: dict[str, Callable[[User], Any]] = {
    "username": lambda u: u.username,
    "email": lambda u: u.email,
    "created_at": lambda u: u.created_at,
    "last_login_at": lambda u: (u.last_login_at is not None, u.last_login_at or u.created_at),
}


def apply_user_updates(user: User, fields: dict[str, Any]) -> User:
    unknown = sorted(k for k in fields if k not in USER_UPDATERS)
    if unknown:
        raise ValidationError(f"Cannot update user field(s): {', '.join(unknown)}")
    for name, value in fields.items():
        USER_UPDATERS[name](user, value)
    return user


class UserRepository(BaseRepository[User]):
    """
    Users keyed by id, with username and email unique (case-insensitive).

    delete/deactivate only flips is_active; purge removes the record.
    """

    entity_name = "user"

    def __init__(self, storage: KeyValueStore | None = None, *, cache_ttl_seconds: float = 300.0) -> None:
        super().__init__(
            storage,
            storage_key=USERS_STORAGE_KEY,
            from_json=User.from_json,
            cache_ttl_seconds=cache_ttl_seconds,
        )

    def _check_unique(self, user: User, *, ignore_id: str | None = None) -> None:
        for other in self._items.values():
            if other.id == ignore_id:
                continue
            if other.username == user.username.lower():
                raise ConflictError(f"Username already taken: {user.username}")
            if other.email == user.email.lower():
                raise ConflictError(f"Email already registered: {user.email}")

    # ---- CRUD ----

    def create(self, user: User | dict[str, Any]) -> User:
        if isinstance(user, dict):
            user = User.from_payload(user)
        if not isinstance(user, User):
            raise ValidationError("A User instance or payload is required")
        if user.id in self._items:
            raise ConflictError(f"user with id {user.id} already exists")
        self._check_unique(user)
        return self._insert(user)

    def update(self, user_id: str, fields: dict[str, Any]) -> User | None:
        """All-or-nothing update; ConflictError if username/email would collide."""
        user = self._items.get(user_id)
        if user is None:
            return None
        if not fields:
            return user
        scratch = apply_user_updates(User.from_json(user.to_json()), fields)
        self._check_unique(scratch, ignore_id=user_id)
        apply_user_updates(user, fields)
        return self._saved(user)

    def deactivate(self, user_id: str) -> bool:
        """Soft delete: keep the record, mark it inactive."""
        user = self._items.get(user_id)
        if user is None:
            return False
        user.deactivate()
        self._saved(user)
        logger.info("User deactivated id=%s username=%s", user.id, user.username)
        return True

    def delete(self, user_id: str) -> bool:
        """Same as deactivate(); use purge() to remove the record for good."""
        return self.deactivate(user_id)

    def purge(self, user_id: str) -> bool:
        removed = self._remove(user_id)
        if removed is not None:
            logger.info("User purged id=%s username=%s", removed.id, removed.username)
        return removed is not None

    def activate(self, user_id: str) -> bool:
        user = self._items.get(user_id)
        if user is None:
            return False
        user.activate()
        self._saved(user)
        return True

    # ---- lookups ----

    def find_by_username(self, username: str) -> User | None:
        key = (username or "").strip().lower()
        return next((u for u in self._items.values() if u.username == key), None)

    def find_by_email(self, email: str) -> User | None:
        key = (email or "").strip().lower()
        return next((u for u in self._items.values() if u.email == key), None)

    def find_all(self, user_filter: UserFilter | None = None) -> list[User]:
        users = self.all()
        if user_filter is None:
            return users
        f = user_filter

        if f.role:
            users = [u for u in users if u.role == str(f.role).lower()]
        if f.is_active is not None:
            users = [u for u in users if u.is_active == f.is_active]
        if f.is_verified is not None:
            users = [u for u in users if u.is_verified == f.is_verified]
        if f.tags:
            wanted = {t.strip().lower() for t in f.tags}
            users = [u for u in users if wanted.intersection(u.tags)]
        if f.search:
            term = f.search.strip().lower()
            users = [
                u
                for u in users
                if term in u.username or term in u.email or term in u.full_name.lower()
            ]

        if f.sort_by:
            key = _USER_SORT_KEYS.get(f.sort_by)
            if key is None:
                raise ValidationError(f"Cannot sort users by {f.sort_by!r}")
            users = sorted(users, key=key, reverse=f.descending)

        start = max(0, int(f.offset or 0))
        if f.limit is not None:
            return users[start : start + max(0, int(f.limit))]
        return users[start:]

    def find_active(self) -> list[User]:
        return self.find_all(UserFilter(is_active=True))

    def find_by_role(self, role: UserRole | str) -> list[User]:
        return self.find_all(UserFilter(role=str(role)))

    # ---- lifecycle ----

    def login(self, username: str) -> User | None:
        """
        Username lookup "login": no credentials are checked.

        Returns None for unknown or deactivated users.
        """
        user = self.find_by_username(username)
        if user is None or not user.is_active:
            logger.info("Login refused username=%s", username)
            return None
        user.record_login()
        self._saved(user)
        logger.info("User logged in id=%s username=%s", user.id, user.username)
        return user

    def get_statistics(self) -> UserStatistics:
        users = self.all()
        by_role = {r.value: 0 for r in UserRole}
        for u in users:
            by_role[str(u.role)] = by_role.get(str(u.role), 0) + 1
        active = sum(1 for u in users if u.is_active)
        return UserStatistics(
            total=len(users),
            active=active,
            inactive=len(users) - active,
            verified=sum(1 for u in users if u.is_verified),
            by_role=by_role,
        )
