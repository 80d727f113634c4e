"""
Time and date helpers shared by the provider clients and the store.

Upstream providers disagree on time formats:
  - Finnhub quotes carry a unix timestamp (seconds), ``0`` meaning "unknown".
  - Alpha Vantage uses ``YYYY-MM-DD`` trading-day strings.
  - Stored and served timestamps are RFC 3339 / ISO 8601 in UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def from_unix_timestamp(ts: Optional[float]) -> Optional[datetime]:
    """Convert a unix timestamp to an aware UTC datetime.

    ``None`` and ``0`` both mean "no timestamp" and return ``None``
    rather than the epoch.
    """
    if not ts:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def parse_trading_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` trading-day string.

    Raises:
        ValueError: If ``value`` is not a valid ``YYYY-MM-DD`` date.
    """
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp, falling back to a bare ``YYYY-MM-DD`` date.

    Naive results are assumed to be UTC.

    Raises:
        ValueError: If neither format matches.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.strptime(text, "%Y-%m-%d")
        except ValueError:
            raise ValueError(
                f"could not parse time {value!r}, expected RFC3339 or YYYY-MM-DD format"
            ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialise an optional datetime to ISO 8601, preserving ``None``."""
    return value.isoformat() if value is not None else None
