# src/taskdesk/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets, no files touched at import time.
- Settings are passed into the composition root; tests build their own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKDESK"

STORAGE_BACKENDS = ("memory", "json", "sqlite")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv() -> None:
    """Load a local .env (if present) without overriding real env vars."""
    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Storage ----
    data_dir: Path
    storage_backend: str
    storage_namespace: str
    json_store_dir: Path
    sqlite_path: Path
    cache_ttl_seconds: float

    # ---- Validation / queries ----
    title_max_length: int
    description_max_length: int
    due_soon_days: int

    # ---- Demo bootstrap ----
    seed_demo_user: bool
    demo_username: str
    demo_email: str

    @staticmethod
    def from_env() -> "Settings":
        _load_dotenv()

        app_name = _env(_k("APP_NAME"), "taskdesk").strip() or "taskdesk"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskdesk"))
        storage_backend = _env(_k("STORAGE_BACKEND"), "json").strip().lower()
        if storage_backend not in STORAGE_BACKENDS:
            storage_backend = "json"
        storage_namespace = _env(_k("STORAGE_NAMESPACE"), "taskManagementApp_v2").strip()
        json_store_dir = _env_path(_k("JSON_STORE_DIR"), data_dir / "store")
        sqlite_path = _env_path(_k("SQLITE_PATH"), data_dir / "taskdesk.sqlite3")
        cache_ttl_seconds = _env_float(_k("CACHE_TTL_SECONDS"), 300.0)

        title_max_length = _env_int(_k("TITLE_MAX_LENGTH"), 100)
        description_max_length = _env_int(_k("DESCRIPTION_MAX_LENGTH"), 500)
        due_soon_days = _env_int(_k("DUE_SOON_DAYS"), 3)

        seed_demo_user = _env_bool(_k("SEED_DEMO_USER"), True)
        demo_username = _env(_k("DEMO_USERNAME"), "demo_user")
        demo_email = _env(_k("DEMO_EMAIL"), "demo@example.com")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            storage_backend=storage_backend,
            storage_namespace=storage_namespace or "taskManagementApp_v2",
            json_store_dir=json_store_dir,
            sqlite_path=sqlite_path,
            cache_ttl_seconds=cache_ttl_seconds,
            title_max_length=title_max_length,
            description_max_length=description_max_length,
            due_soon_days=due_soon_days,
            seed_demo_user=seed_demo_user,
            demo_username=demo_username,
            demo_email=demo_email,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Settings from the environment, read once on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
