"""
Timestamp normalization.

Documents in the store carry timestamps in several shapes depending on which
client wrote them: native datetimes, ``{"seconds": ..., "nanoseconds": ...}``
mappings (or objects exposing ``seconds``), ISO-8601 strings and plain epoch
numbers. Everything collapses to a timezone-aware UTC ``datetime`` here so
business logic never has to care.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _from_epoch(seconds: Any, nanoseconds: Any = 0) -> Optional[datetime]:
    try:
        value = float(seconds) + float(nanoseconds or 0) / 1e9
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def normalize_timestamp(raw: Any) -> Optional[datetime]:
    """Coerce any supported timestamp shape to an aware UTC datetime.

    Returns None for missing or unparseable values.
    """
    if raw is None or raw == "":
        return None

    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            return raw.replace(tzinfo=timezone.utc)
        return raw.astimezone(timezone.utc)

    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc)

    if isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        return _from_epoch(raw)

    if isinstance(raw, str):
        text = raw.strip()
        try:
            return normalize_timestamp(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
        try:
            return normalize_timestamp(datetime.strptime(text[:10], "%Y-%m-%d"))
        except ValueError:
            logger.debug(f"Unparseable timestamp string: {raw!r}")
            return None

    if isinstance(raw, dict):
        seconds = raw.get("seconds", raw.get("_seconds"))
        if seconds is None:
            return None
        return _from_epoch(seconds, raw.get("nanoseconds", raw.get("_nanoseconds", 0)))

    # SDK timestamp objects
    to_datetime = getattr(raw, "to_datetime", None) or getattr(raw, "ToDatetime", None)
    if callable(to_datetime):
        return normalize_timestamp(to_datetime())
    seconds = getattr(raw, "seconds", None)
    if seconds is not None:
        return _from_epoch(seconds, getattr(raw, "nanoseconds", 0))

    logger.debug(f"Unsupported timestamp type: {type(raw).__name__}")
    return None
