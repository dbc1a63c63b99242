"""Shared service-layer helper functions."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


def now_iso() -> str:
    """Current UTC time as standard ISO 8601."""
    return datetime.now(UTC).isoformat()


def iso_after(hours: float) -> str:
    """UTC time *hours* from now as ISO 8601 (for due-date windows)."""
    return (datetime.now(UTC) + timedelta(hours=hours)).isoformat()


def normalize_due_date(value: str | None) -> str | None:
    """Parse a due date and return it as UTC ISO 8601.

    Accepts a date (``2026-01-31``, treated as midnight UTC) or a full
    ISO datetime; naive datetimes are taken as UTC.

    Raises:
        ValueError: If *value* is not a valid ISO date or datetime.
    """
    if value is None or value == "":
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).isoformat()


def paginate(page: int, size: int) -> tuple[int, int]:
    """Return ``(offset, limit)`` for a zero-based page number."""
    page = max(page, 0)
    size = max(size, 1)
    return page * size, size
