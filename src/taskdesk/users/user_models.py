# src/taskdesk/users/user_models.py

from __future__ import annotations

import re
from dataclasses import KW_ONLY, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..core.clock import new_id, parse_datetime, to_iso, utcnow
from ..core.errors import ValidationError
from ..tasks.task_models import check_datetime, coerce_enum, lenient_enum

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_MAX_LENGTH = 50

DEFAULT_PREFERENCES: dict[str, Any] = {
    "theme": "light",
    "default_category": "general",
    "default_priority": "medium",
    "notifications": True,
}


class UserRole(StrEnum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"


def normalize_username(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Username is required")
    username = raw.strip().lower()
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError(f"Username must be no more than {USERNAME_MAX_LENGTH} characters")
    if not USERNAME_RE.match(username):
        raise ValidationError(
            "Username may only contain letters, digits, underscores and hyphens"
        )
    return username


def normalize_email(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Email is required")
    email = raw.strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError(f"Invalid email address: {raw!r}")
    return email


def _optional_text(raw: Any) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


@dataclass(slots=True)
class User:
    """
    A user profile with a role and preferences.

    Users are never hard-deleted by default: deactivate() keeps the record
    (and every task that references it) while hiding it from logins.
    """

    username: str
    email: str
    _: KW_ONLY
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    avatar: str | None = None
    role: UserRole | str = UserRole.USER
    is_active: bool = True
    is_verified: bool = False
    preferences: dict[str, Any] = field(default_factory=dict)
    last_login_at: datetime | None = None
    login_count: int = 0
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: new_id("user"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None
    last_active_at: datetime | None = None

    def __post_init__(self) -> None:
        errors: list[str] = []
        try:
            self.username = normalize_username(self.username)
        except ValidationError as e:
            errors.extend(e.errors)
        try:
            self.email = normalize_email(self.email)
        except ValidationError as e:
            errors.extend(e.errors)
        try:
            self.role = coerce_enum(UserRole, self.role, "role")
        except ValidationError as e:
            errors.extend(e.errors)
        stamps: dict[str, datetime | None] = {}
        for name in ("created_at", "updated_at", "last_login_at", "last_active_at"):
            try:
                stamps[name] = check_datetime(getattr(self, name), name)
            except ValidationError as e:
                errors.extend(e.errors)
        if errors:
            raise ValidationError("; ".join(errors), errors)

        self.display_name = _optional_text(self.display_name)
        self.first_name = _optional_text(self.first_name)
        self.last_name = _optional_text(self.last_name)
        self.bio = _optional_text(self.bio)
        self.avatar = _optional_text(self.avatar)
        self.preferences = {**DEFAULT_PREFERENCES, **(self.preferences or {})}
        self.tags = list(dict.fromkeys(str(t).strip().lower() for t in self.tags if str(t).strip()))
        self.metadata = dict(self.metadata or {})
        self.created_at = stamps["created_at"] or utcnow()
        self.updated_at = stamps["updated_at"] or self.created_at
        self.last_login_at = stamps["last_login_at"]
        self.last_active_at = stamps["last_active_at"] or self.created_at

    def _touch(self) -> User:
        self.updated_at = utcnow()
        return self

    # ---- derived ----

    @property
    def full_name(self) -> str:
        if self.display_name:
            return self.display_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.username

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN)

    @property
    def is_moderator(self) -> bool:
        return self.role == UserRole.MODERATOR or self.is_admin

    @property
    def can_manage_users(self) -> bool:
        return self.is_active and self.is_admin

    # ---- profile ----

    def update_profile(
        self,
        *,
        display_name: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        bio: str | None = None,
        avatar: str | None = None,
    ) -> User:
        """Update the given profile fields; an empty string clears a field."""
        if display_name is not None:
            self.display_name = _optional_text(display_name)
        if first_name is not None:
            self.first_name = _optional_text(first_name)
        if last_name is not None:
            self.last_name = _optional_text(last_name)
        if bio is not None:
            self.bio = _optional_text(bio)
        if avatar is not None:
            self.avatar = _optional_text(avatar)
        return self._touch()

    def update_username(self, username: str) -> User:
        self.username = normalize_username(username)
        return self._touch()

    def update_email(self, email: str) -> User:
        new_email = normalize_email(email)
        if new_email != self.email:
            self.email = new_email
            self.is_verified = False
        return self._touch()

    def set_role(self, role: UserRole | str) -> User:
        self.role = coerce_enum(UserRole, role, "role")
        return self._touch()

    # ---- lifecycle ----

    def activate(self) -> User:
        self.is_active = True
        return self._touch()

    def deactivate(self) -> User:
        self.is_active = False
        return self._touch()

    def verify(self) -> User:
        self.is_verified = True
        return self._touch()

    def record_login(self) -> User:
        now = utcnow()
        self.last_login_at = now
        self.last_active_at = now
        self.login_count += 1
        return self._touch()

    def touch_activity(self) -> User:
        self.last_active_at = utcnow()
        return self

    # ---- preferences / extensibility ----

    def set_preference(self, key: str, value: Any) -> User:
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("Preference key must be a non-empty string")
        self.preferences[key.strip()] = value
        return self._touch()

    def get_preference(self, key: str, default: Any = None) -> Any:
        return self.preferences.get(key, default)

    def update_preferences(self, values: dict[str, Any]) -> User:
        for key in values:
            if not isinstance(key, str) or not key.strip():
                raise ValidationError("Preference key must be a non-empty string")
        self.preferences.update(values)
        return self._touch()

    def add_tag(self, tag: str) -> User:
        if not isinstance(tag, str) or not tag.strip():
            raise ValidationError("Tag must be a non-empty string")
        norm = tag.strip().lower()
        if norm not in self.tags:
            self.tags.append(norm)
            self._touch()
        return self

    def remove_tag(self, tag: str) -> User:
        norm = str(tag).strip().lower()
        if norm in self.tags:
            self.tags.remove(norm)
            self._touch()
        return self

    def set_metadata(self, key: str, value: Any) -> User:
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("Metadata key must be a non-empty string")
        self.metadata[key.strip()] = value
        return self._touch()

    # ---- serialization ----

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "display_name": self.display_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "bio": self.bio,
            "avatar": self.avatar,
            "role": str(self.role),
            "is_active": self.is_active,
            "is_verified": self.is_verified,
            "preferences": dict(self.preferences),
            "last_login_at": to_iso(self.last_login_at),
            "login_count": self.login_count,
            "tags": list(self.tags),
            "metadata": dict(self.metadata),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
            "last_active_at": to_iso(self.last_active_at),
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> User:
        """Build a new user from a plain dict, with full constructor validation."""
        allowed = set(cls.__dataclass_fields__) - {"_", "username", "email"}
        options = {k: v for k, v in data.items() if k not in ("username", "email")}
        unknown = sorted(set(options) - allowed)
        if unknown:
            raise ValidationError(f"Unknown user field(s): {', '.join(unknown)}")
        if not options.get("id"):
            options.pop("id", None)
        return cls(data.get("username", ""), data.get("email", ""), **options)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> User:
        """Rebuild a stored user without re-validating username/email shape."""
        user = cls.__new__(cls)
        user.id = str(data.get("id") or new_id("user"))
        user.username = str(data.get("username") or "").strip().lower()
        user.email = str(data.get("email") or "").strip().lower()
        user.display_name = data.get("display_name") or data.get("displayName") or data.get("fullName")
        user.first_name = data.get("first_name") or data.get("firstName")
        user.last_name = data.get("last_name") or data.get("lastName")
        user.bio = data.get("bio")
        user.avatar = data.get("avatar")
        user.role = lenient_enum(UserRole, data.get("role"), UserRole.USER)
        user.is_active = bool(data.get("is_active", data.get("isActive", True)))
        user.is_verified = bool(data.get("is_verified", data.get("isVerified", False)))
        user.preferences = {**DEFAULT_PREFERENCES, **dict(data.get("preferences") or {})}
        user.last_login_at = parse_datetime(data.get("last_login_at") or data.get("lastLoginAt"))
        user.login_count = int(data.get("login_count") or data.get("loginCount") or 0)
        user.tags = [str(t) for t in data.get("tags") or []]
        user.metadata = dict(data.get("metadata") or {})
        user.created_at = parse_datetime(data.get("created_at") or data.get("createdAt")) or utcnow()
        user.updated_at = (
            parse_datetime(data.get("updated_at") or data.get("updatedAt")) or user.created_at
        )
        user.last_active_at = (
            parse_datetime(data.get("last_active_at") or data.get("lastActiveAt")) or user.created_at
        )
        return user
