"""
Time helpers for Vault payloads and configuration values.

Vault reports timestamps in RFC 3339 with nanosecond precision and existing
storage configurations express durations the way Go does ("5m", "1h30m").
"""

import re
from datetime import UTC, datetime, timedelta
from typing import Any

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_FULL = re.compile(r"^[+-]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+$")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_SECONDS = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")

_FRACTION = re.compile(r"\.(\d+)")


def parse_duration(value: Any) -> Any:
    """
    Converts a Go-style duration string into a timedelta.

    Bare numbers in a string are read as seconds. Any other value
    (numbers, timedelta, ISO 8601 strings) is returned unchanged so pydantic
    can apply its own parsing.

    Args:
        value: Raw configuration value

    Returns:
        timedelta for Go-style strings, the original value otherwise

    Example:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
    """
    if not isinstance(value, str):
        return value

    text = value.strip()
    if _SECONDS.match(text):
        return timedelta(seconds=float(text))
    if not _DURATION_FULL.match(text):
        return value

    sign = -1 if text.startswith("-") else 1
    seconds = sum(
        float(amount) * _UNIT_SECONDS[unit]
        for amount, unit in _DURATION_PART.findall(text)
    )
    return timedelta(seconds=sign * seconds)


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parses an RFC 3339 timestamp, tolerating nanosecond precision.

    Args:
        value: Timestamp string, datetime or None

    Returns:
        Timezone-aware datetime, or None for empty values
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    # datetime.fromisoformat() only understands microseconds
    text = _FRACTION.sub(
        lambda match: "." + match.group(1)[:6].ljust(6, "0"), str(value), count=1
    )
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)

    # Zero time is how Go serializes an unset timestamp
    if parsed.year == 1:
        return None
    return parsed


def format_timestamp(value: datetime) -> str:
    """Formats a datetime as RFC 3339 in UTC with a trailing Z."""
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)
