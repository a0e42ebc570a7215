"""Timestamp parsing for CLI options and formatters for text output."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

TimestampFormatter = Callable[[int], str]


def _utc(ts_ms: float) -> datetime:
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)


def parse_timestamp(value: str | int | float) -> int:
    """Return epoch milliseconds for ``value``.

    Accepts integers, integer-like strings and ISO-8601 dates or datetimes.
    Naive datetimes are taken as UTC.
    """
    if isinstance(value, (int, float)):
        return int(value)
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Not a timestamp or ISO-8601 date: {value!r}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def iso_format(ts_ms: int) -> str:
    """``1577836800000`` -> ``2020-01-01T00:00:00.000Z``"""
    return _utc(ts_ms).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def make_timestamp_formatter(pattern: Optional[str]) -> Optional[TimestampFormatter]:
    """Build a formatter for ``pattern``.

    ``None`` or an empty pattern means no formatting, ``"iso"`` gives
    :func:`iso_format`, anything else is a ``strftime`` pattern applied in UTC.
    """
    if not pattern:
        return None
    if pattern.lower() == "iso":
        return iso_format

    def _fmt(ts_ms: int) -> str:
        return _utc(ts_ms).strftime(pattern)

    return _fmt
