"""
Row rendering and container punctuation for the text encodings.

Rows reach the framer in batches, and a later batch may always follow, so
the framer never knows which row is the last one of the stream. Each batch
therefore ends without a trailing separator; the separator between batches
is written in front of the next batch's first row, and the closing bracket
is only written by :meth:`TextFramer.render_close`.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Iterator, List, Optional, Sequence

import orjson

from stream_export.core.timefmt import TimestampFormatter
from stream_export.constants import JSON_ENCODINGS

_ORJSON_OPTS = orjson.OPT_SERIALIZE_NUMPY


class FrameState:
    """Tracks whether the opening punctuation of the stream has been rendered."""

    def __init__(self) -> None:
        self.opened = False

    def open(self) -> bool:
        """Mark the stream opened; return ``True`` only on the first call."""
        if self.opened:
            return False
        self.opened = True
        return True


def display_values(row: Sequence[Any], formatter: Optional[TimestampFormatter]) -> Sequence[Any]:
    """Return the values to render for ``row`` without touching the caller's row."""
    if formatter is None or not row:
        return row
    return [formatter(row[0]), *row[1:]]


class TextFramer:
    """Render rows as CSV lines, JSON objects or JSON arrays."""

    def __init__(self, encoding: str, headers: Sequence[str], inline: bool = False) -> None:
        if encoding != "csv" and encoding not in JSON_ENCODINGS:
            raise ValueError(f"TextFramer does not handle encoding {encoding!r}")
        self.encoding = encoding
        self.headers: List[str] = list(headers)
        self.inline = inline
        self.state = FrameState()
        self._nl = "" if inline else "\n"

        self._csv_buf = io.StringIO()
        self._csv_writer = csv.writer(self._csv_buf, lineterminator="\n")

    # ------------------------------------------------------------------ #
    # Row bodies                                                         #
    # ------------------------------------------------------------------ #
    def _csv_line(self, values: Sequence[Any]) -> str:
        self._csv_buf.seek(0)
        self._csv_buf.truncate()
        self._csv_writer.writerow(values)
        return self._csv_buf.getvalue()

    def _json_body(self, values: Sequence[Any]) -> bytes:
        if self.encoding == "json":
            return orjson.dumps(dict(zip(self.headers, values)), option=_ORJSON_OPTS)
        return orjson.dumps(list(values), option=_ORJSON_OPTS)

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def render_batch(
        self,
        rows: Sequence[Sequence[Any]],
        formatter: Optional[TimestampFormatter] = None,
    ) -> Iterator[bytes]:
        """Yield the bytes for each row of ``rows``, punctuation included.

        ``rows`` must already be filtered; an empty batch yields nothing and
        leaves the frame state untouched.
        """
        last = len(rows) - 1
        for i, row in enumerate(rows):
            values = display_values(row, formatter)
            if self.encoding == "csv":
                prefix = ""
                if self.state.open():
                    prefix = self._csv_line(self.headers)
                yield (prefix + self._csv_line(values)).encode()
                continue

            parts: List[bytes] = []
            if i == 0:
                if self.state.open():
                    parts.append(("[" + self._nl).encode())
                else:
                    parts.append(("," + self._nl).encode())
            parts.append(self._json_body(values))
            if i != last:
                parts.append(("," + self._nl).encode())
            yield b"".join(parts)

    def render_close(self) -> bytes:
        """Return the bytes that finish the stream.

        JSON output gets its closing bracket, or nothing at all when no row
        was rendered. CSV output that never saw a row still gets its header.
        """
        if self.encoding == "csv":
            if self.state.open():
                return self._csv_line(self.headers).encode()
            return b""
        if self.state.opened:
            return ("]" if self.inline else "\n]").encode()
        return b""
