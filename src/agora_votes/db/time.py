# src/agora_votes/db/time.py
"""Time utilities for database models."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def epoch_seconds(moment: datetime) -> float:
    """Return POSIX seconds for ``moment``.

    SQLite hands timestamps back without tzinfo; those are stored as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.timestamp()
