"""
Timestamp normalization for values crossing the persistence boundary.

Documents written by different clients store instants in different shapes:
native datetimes, ``{"seconds": ..., "nanoseconds": ...}`` maps from the
document store SDK, epoch numbers or ISO-8601 strings. Everything is turned
into an aware UTC ``datetime`` (or a plain ``date``) here, so the domain only
ever sees one type.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, time, timezone as dt_timezone
from decimal import Decimal
from typing import Any

from django.utils import timezone  # type: ignore
from django.utils.dateparse import parse_date, parse_datetime  # type: ignore


def _from_epoch(seconds: Any, nanoseconds: Any = 0) -> datetime:
    total = Decimal(str(seconds)) + Decimal(str(nanoseconds or 0)) / Decimal(1_000_000_000)
    return datetime.fromtimestamp(float(total), tz=dt_timezone.utc)


def _seconds_of(value: Any) -> tuple[Any, Any] | None:
    if isinstance(value, Mapping):
        if "seconds" in value:
            return value["seconds"], value.get("nanoseconds", 0)
        if "_seconds" in value:
            return value["_seconds"], value.get("_nanoseconds", 0)
        return None
    if hasattr(value, "seconds") and not isinstance(value, (datetime, date)):
        return value.seconds, getattr(value, "nanoseconds", 0)
    return None


def normalize_timestamp(value: Any) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive datetimes are taken to be UTC. A bare ``date`` maps to midnight UTC.
    Raises ``TypeError`` for unsupported types and ``ValueError`` for
    unparseable strings.
    """

    if isinstance(value, datetime):
        if timezone.is_naive(value):
            return timezone.make_aware(value, dt_timezone.utc)
        return value.astimezone(dt_timezone.utc)

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=dt_timezone.utc)

    if isinstance(value, bool):
        raise TypeError("Boolean is not a timestamp")

    if isinstance(value, (int, float, Decimal)):
        return _from_epoch(value)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = parse_datetime(text)
        if parsed is None:
            parsed_day = parse_date(text)
            if parsed_day is None:
                raise ValueError(f"Unrecognised timestamp string: {value!r}")
            return normalize_timestamp(parsed_day)
        return normalize_timestamp(parsed)

    seconds = _seconds_of(value)
    if seconds is not None:
        return _from_epoch(*seconds)

    raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")


def normalize_date(value: Any) -> date:
    """Return the calendar day (UTC) represented by ``value``."""

    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str):
        parsed_day = parse_date(value.strip())
        if parsed_day is not None:
            return parsed_day
    return normalize_timestamp(value).date()
