"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

Lenient field coercion shared by every entity schema. Rows come from a
remote store and from the push channel; a malformed optional field becomes
None instead of failing the whole record.

Types:
- EntityKind: The three collections served by the data store
- Timestamp helpers: ISO 8601 parsing with UTC default
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


# Time part as served by Postgres: any fraction length, offsets like +00, +0000 or +00:00
_ISO_TIME = re.compile(
    r'(?P<time>\d{2}:\d{2}:\d{2})(?:\.(?P<fraction>\d+))?'
    r'(?:(?P<sign>[+-])(?P<hours>\d{2}):?(?P<minutes>\d{2})?)?$'
)


class EntityKind(str, Enum):
    """Entity collections consumed by the dashboard."""
    USERS = "users"
    TRIPS = "trips"
    POINTS = "points"


def _normalize_iso(text: str) -> str:
    """Rewrite the time part into the form datetime.fromisoformat() accepts on 3.10."""
    match = _ISO_TIME.search(text)
    if match is None:
        return text
    normalized = match.group('time')
    if match.group('fraction'):
        normalized += '.' + match.group('fraction')[:6].ljust(6, '0')
    if match.group('sign'):
        normalized += f"{match.group('sign')}{match.group('hours')}:{match.group('minutes') or '00'}"
    return text[:match.start()] + normalized


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into an aware datetime.

    Naive timestamps are taken as UTC. A trailing 'Z' is accepted, as are
    fractions of any length (trimmed to microseconds).

    Returns:
        Aware datetime, or None when the value is absent or unparseable

    Example:
        >>> parse_timestamp("2024-01-01T23:59:00Z")
        datetime.datetime(2024, 1, 1, 23, 59, tzinfo=datetime.timezone.utc)
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(_normalize_iso(text))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime back to ISO 8601 (None passes through)."""
    return value.isoformat() if value is not None else None


def optional_str(value: Any) -> Optional[str]:
    """Coerce to str, mapping None to None."""
    if value is None:
        return None
    return str(value)


def optional_int(value: Any) -> Optional[int]:
    """Coerce to int, mapping absent or non-numeric values to None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None


def optional_float(value: Any) -> Optional[float]:
    """Coerce to float, mapping absent or non-numeric values to None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def short_id(identifier: str) -> str:
    """First dash-separated segment of a UUID-like identifier."""
    return identifier.split('-')[0]
