from __future__ import annotations

from datetime import UTC, datetime, timedelta


def now_utc() -> datetime:
    return datetime.now(UTC)


def now_utc_iso() -> str:
    return now_utc().isoformat()


def utc_after(seconds: int) -> datetime:
    return now_utc() + timedelta(seconds=seconds)
