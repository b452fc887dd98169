"""Timestamp helpers shared by the sources, the engine and the CLI."""

import re
from datetime import datetime, timedelta, timezone

# Epoch values above this are milliseconds, below are seconds
MILLIS_THRESHOLD = 1e12

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def normalize_timestamp(value: object) -> datetime | None:
    """Convert an agent timestamp into a UTC-aware datetime.

    Handles epoch milliseconds (Claude Code history), epoch seconds (Codex
    history), ISO 8601 strings (session files) and datetimes. Returns None
    for anything else.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    return None


def to_epoch_millis(value: datetime | None) -> int | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def is_in_date_range(
    timestamp: datetime, date_from: datetime | None = None, date_to: datetime | None = None
) -> bool:
    """Check a timestamp against inclusive bounds."""
    timestamp = normalize_timestamp(timestamp)
    if date_from is not None and timestamp < normalize_timestamp(date_from):
        return False
    if date_to is not None and timestamp > normalize_timestamp(date_to):
        return False
    return True


def parse_since(since: str | None) -> datetime | None:
    """Parse a since/until string into a UTC-aware datetime.

    Supports:
    - Relative: "1w", "7d", "30d", "2h"
    - Absolute: "2024-01-01", "2024-01-01T00:00:00"

    Raises ValueError for anything else.
    """
    if since is None:
        return None

    since = since.strip().lower()

    match = re.match(r"^(\d+)([hdwmy])$", since)
    if match:
        amount = int(match.group(1))
        unit = match.group(2)

        now = datetime.now(tz=timezone.utc)
        if unit == "h":
            return now - timedelta(hours=amount)
        elif unit == "d":
            return now - timedelta(days=amount)
        elif unit == "w":
            return now - timedelta(weeks=amount)
        elif unit == "m":
            return now - timedelta(days=amount * 30)  # Approximate
        else:
            return now - timedelta(days=amount * 365)  # Approximate

    if "t" in since:
        dt = datetime.fromisoformat(since.upper().replace("Z", "+00:00"))
    else:
        dt = datetime.fromisoformat(since + "T00:00:00")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
