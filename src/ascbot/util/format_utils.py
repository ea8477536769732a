"""
Timestamp helpers shared by the repositories and the audit relay.

Stored timestamps are ISO-8601 text in UTC with a fixed microsecond field, so
plain string comparison in SQL orders them the same way as the datetimes.
"""

from datetime import datetime, timedelta, timezone


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Args:
        value: Aware datetime in any zone, or a naive one assumed to be UTC.

    Returns:
        The same instant with ``tzinfo=timezone.utc``.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def db_timestamp(value: datetime) -> str:
    """Serialize a datetime for storage.

    Args:
        value: datetime to store; naive values are taken as UTC.

    Returns:
        ``YYYY-MM-DDTHH:MM:SS.ffffff+00:00``. The microseconds are always
        present, so two values in the same second still sort correctly as text.
    """
    return to_utc(value).isoformat(timespec="microseconds")


def parse_db_timestamp(value: str) -> datetime:
    """Inverse of :func:`db_timestamp`; rows written without an offset are read as UTC."""
    return to_utc(datetime.fromisoformat(value))


def humanize_timestamp(value: datetime) -> str:
    """``DD/MM/YYYY HH:MM AM`` in UTC, as shown in audit transcripts."""
    return to_utc(value).strftime("%d/%m/%Y %I:%M %p")


def start_of_week(now: datetime) -> datetime:
    """Midnight UTC of the Monday starting the week that contains ``now``."""
    now = to_utc(now)
    monday = now - timedelta(days=now.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    """Midnight UTC on the first day of the month that contains ``now``."""
    return to_utc(now).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
