"""Time-window predicate applied to every incoming row."""

from __future__ import annotations

from typing import Iterable, List

from stream_export.models import Row, TimeWindow


def in_range(row: Row, window: TimeWindow) -> bool:
    """Return ``True`` if ``row`` has a timestamp and it lies in ``window``."""
    return len(row) > 0 and row[0] is not None and window.start <= row[0] < window.end


def filter_rows(rows: Iterable[Row], window: TimeWindow) -> List[Row]:
    """Keep the in-range rows of ``rows`` in their original order."""
    return [row for row in rows if in_range(row, window)]
