from __future__ import annotations

from .ranges import in_range, filter_rows
from .schema import column_types, build_schema
from .framing import FrameState, TextFramer, display_values
from .timefmt import (
    TimestampFormatter,
    iso_format,
    make_timestamp_formatter,
    parse_timestamp,
)
from .io import chunked_rows

__all__ = [
    "in_range",
    "filter_rows",
    "column_types",
    "build_schema",
    "FrameState",
    "TextFramer",
    "display_values",
    "TimestampFormatter",
    "iso_format",
    "make_timestamp_formatter",
    "parse_timestamp",
    "chunked_rows",
]
