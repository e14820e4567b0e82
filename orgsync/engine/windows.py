"""
orgsync.engine.windows — Availability windows
==============================================

Quizzes open and close, minigame challenges run between a start and end
time.  Either bound may be missing.  Timestamps read back from databases
without timezone support come back naive and are treated as UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def in_window(now: datetime, start: datetime | None, end: datetime | None) -> bool:
    """True when *now* lies in ``[start, end)``; a missing bound is open."""
    now = as_utc(now)
    start, end = as_utc(start), as_utc(end)
    if start is not None and now < start:
        return False
    if end is not None and now >= end:
        return False
    return True


def validate_window(start: datetime | None, end: datetime | None) -> None:
    """Raise ``ValueError`` unless *start* precedes *end* (when both set)."""
    if start is not None and end is not None and as_utc(start) >= as_utc(end):
        raise ValueError("Start time must be before end time")
