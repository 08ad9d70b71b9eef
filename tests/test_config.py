# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from taskdesk.config import Settings


def test_defaults(monkeypatch) -> None:
    for name in ("DATA_DIR", "STORAGE_BACKEND", "DUE_SOON_DAYS", "SEED_DEMO_USER"):
        monkeypatch.delenv(f"TASKDESK_{name}", raising=False)

    s = Settings.from_env()
    assert s.data_dir == Path(".local/taskdesk")
    assert s.storage_backend == "json"
    assert s.json_store_dir == s.data_dir / "store"
    assert s.due_soon_days == 3
    assert s.seed_demo_user is True


def test_env_overrides_and_bad_values(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASKDESK_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TASKDESK_STORAGE_BACKEND", "SQLite")
    monkeypatch.setenv("TASKDESK_DUE_SOON_DAYS", "seven")
    monkeypatch.setenv("TASKDESK_CACHE_TTL_SECONDS", "0")
    monkeypatch.setenv("TASKDESK_SEED_DEMO_USER", "off")

    s = Settings.from_env()
    assert s.storage_backend == "sqlite"
    assert s.sqlite_path == tmp_path / "taskdesk.sqlite3"
    assert s.due_soon_days == 3
    assert s.cache_ttl_seconds == 0.0
    assert s.seed_demo_user is False

    monkeypatch.setenv("TASKDESK_STORAGE_BACKEND", "redis")
    assert Settings.from_env().storage_backend == "json"
