# src/taskdesk/core/clock.py

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def today() -> date:
    # Due dates are calendar days in local time; time-of-day never matters.
    return date.today()


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def to_iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def parse_datetime(raw: object) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        dt = datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def parse_date(raw: object) -> date | None:
    """
    Parse a calendar date.

    Accepts date/datetime objects, "YYYY-MM-DD" and full ISO timestamps
    (the time part is dropped). Raises ValueError for anything else.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
