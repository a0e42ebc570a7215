"""
Stateful writer that appends batches of rows to one sink in one encoding.

Lifecycle: ``FRESH -> WRITING -> CLOSED``. Each :meth:`BatchStreamWriter.write_batch`
call filters its rows by the time window and renders them; :meth:`close`
writes the trailing punctuation (or the parquet footer) and ends the sink;
:meth:`abort` releases the sink without either.
Calls on one writer must not overlap.
"""
from __future__ import annotations

import logging
from time import perf_counter
from types import TracebackType
from typing import List, Optional, Sequence, Type

import pyarrow as pa

from stream_export.backpressure import DrainGate
from stream_export.constants import (
    DEFAULT_FLUSH_BYTES,
    DEFAULT_ROW_GROUP_SIZE,
    ENCODINGS,
    TIMEFRAMES,
    headers_for,
)
from stream_export.core.framing import TextFramer
from stream_export.core.ranges import filter_rows
from stream_export.core.schema import build_schema
from stream_export.core.timefmt import TimestampFormatter
from stream_export.encoders.parquet import ParquetEncoder
from stream_export.errors import EncoderError, SinkFailure, WriterStateError
from stream_export.models import Row, TimeWindow, WriterState
from stream_export.sinks.base import ByteSink
from stream_export.telemetry.metrics import Metrics

logger = logging.getLogger(__name__)


class BatchStreamWriter:
    """Serialize row batches to ``sink`` as csv, json, array or parquet.

    Parameters
    ----------
    sink:
        Exclusively owned byte sink; ended by :meth:`close`.
    timeframe:
        Source timeframe; ``"tick"`` selects the tick header set.
    encoding:
        ``"csv"``, ``"json"`` (objects), ``"array"`` (arrays) or ``"parquet"``.
    inline:
        Omit the newlines around JSON rows and brackets.
    include_volumes:
        Keep the volume column(s) in the header set.
    start_timestamp, end_timestamp:
        Rows are kept when ``start_timestamp <= row[0] < end_timestamp``.
    headers:
        Explicit header set, for callers that negotiate the header length from
        the data itself. Defaults to the set derived from ``timeframe``.
    """

    def __init__(
        self,
        *,
        sink: ByteSink,
        timeframe: str,
        encoding: str,
        start_timestamp: float,
        end_timestamp: float,
        inline: bool = False,
        include_volumes: bool = False,
        headers: Optional[Sequence[str]] = None,
        metrics: Metrics | None = None,
        flush_bytes: int = DEFAULT_FLUSH_BYTES,
        row_group_size: int = DEFAULT_ROW_GROUP_SIZE,
        compression: str = "snappy",
    ) -> None:
        if timeframe not in TIMEFRAMES:
            raise ValueError(f"Unknown timeframe {timeframe!r}; expected one of {TIMEFRAMES}")
        if encoding not in ENCODINGS:
            raise ValueError(f"Unknown encoding {encoding!r}; expected one of {ENCODINGS}")

        self.sink = sink
        self.timeframe = timeframe
        self.encoding = encoding
        self.inline = inline
        self.include_volumes = include_volumes
        self.window = TimeWindow(start_timestamp, end_timestamp)
        self.headers: List[str] = (
            list(headers) if headers is not None else headers_for(timeframe, include_volumes)
        )
        self.state = WriterState.FRESH
        self.metrics = metrics
        self.flush_bytes = max(1, flush_bytes)
        self.row_group_size = row_group_size
        self.compression = compression

        self._gate = DrainGate(sink, metrics)
        self._framer: TextFramer | None = (
            None if encoding == "parquet" else TextFramer(encoding, self.headers, inline)
        )
        self._schema: pa.Schema | None = None
        self._encoder: ParquetEncoder | None = None

    # ------------------------------------------------------------------ #
    # Parquet helpers                                                    #
    # ------------------------------------------------------------------ #
    @property
    def schema(self) -> pa.Schema:
        """Parquet schema for :attr:`headers`, derived on first use."""
        if self._schema is None:
            self._schema = build_schema(self.headers)
        return self._schema

    def _ensure_encoder(self) -> ParquetEncoder:
        if self._encoder is None:
            self._encoder = ParquetEncoder.open(
                self.schema,
                self.sink,
                self._gate,
                row_group_size=self.row_group_size,
                compression=self.compression,
                metrics=self.metrics,
            )
            self.state = WriterState.WRITING
        return self._encoder

    async def _write_parquet(self, rows: Sequence[Row]) -> None:
        if not rows:
            return
        encoder = self._ensure_encoder()
        for row in rows:
            await encoder.append_row(row)

    # ------------------------------------------------------------------ #
    # Text helpers                                                       #
    # ------------------------------------------------------------------ #
    def _text_framer(self) -> TextFramer:
        if self._framer is None:
            raise WriterStateError(f"{self.encoding} writer has no text framer")
        return self._framer

    async def _emit(self, data: bytes) -> None:
        await self._gate.emit(data)
        if self.state is WriterState.FRESH:
            self.state = WriterState.WRITING

    async def _write_text(
        self,
        rows: Sequence[Row],
        formatter: Optional[TimestampFormatter],
    ) -> None:
        framer = self._text_framer()
        pending: List[bytes] = []
        size = 0
        for chunk in framer.render_batch(rows, formatter):
            pending.append(chunk)
            size += len(chunk)
            if size >= self.flush_bytes:
                await self._emit(b"".join(pending))
                pending.clear()
                size = 0
        if pending:
            await self._emit(b"".join(pending))

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def _check_open(self, op: str) -> None:
        if self.state is WriterState.CLOSED:
            raise WriterStateError(f"{op}() called on a closed BatchStreamWriter")

    async def _release(self) -> None:
        # drop the output without a footer or closing bracket
        if self._encoder is not None:
            await self._encoder.abort()
        else:
            await self.sink.abort()

    async def _fail(self, exc: BaseException) -> None:
        self.state = WriterState.CLOSED
        if self.metrics is not None:
            self.metrics.record_error(exc)
        logger.error("Writer aborted (%s): %s", type(exc).__name__, exc)
        await self._release()

    async def write_batch(
        self,
        rows: Sequence[Row],
        timestamp_formatter: Optional[TimestampFormatter] = None,
    ) -> bool:
        """Append the in-range rows of ``rows`` to the output.

        ``timestamp_formatter`` renders the timestamp column of text output; it
        is ignored for parquet. Rows outside the window, and empty rows, are
        dropped silently.
        """
        self._check_open("write_batch")
        start = perf_counter()
        kept = filter_rows(rows, self.window)
        try:
            if self.encoding == "parquet":
                await self._write_parquet(kept)
            else:
                await self._write_text(kept, timestamp_formatter)
        except (SinkFailure, EncoderError) as exc:
            await self._fail(exc)
            raise

        logger.debug("Batch: %d rows received, %d written", len(rows), len(kept))
        if self.metrics is not None:
            self.metrics.observe_batch(len(rows), len(kept))
            self.metrics.observe_stage("write_batch", perf_counter() - start)
        return True

    async def close(self) -> bool:
        """Finish the output and release the sink. Must be called exactly once."""
        self._check_open("close")
        start = perf_counter()
        try:
            if self.encoding == "parquet":
                # with no rows this still yields a schema-only file
                await self._ensure_encoder().close()
            else:
                tail = self._text_framer().render_close()
                if tail:
                    await self._emit(tail)
                await self.sink.end()
        except (SinkFailure, EncoderError) as exc:
            await self._fail(exc)
            raise

        self.state = WriterState.CLOSED
        logger.info("Closed %s writer (%s)", self.encoding, self.sink)
        if self.metrics is not None:
            self.metrics.observe_stage("close", perf_counter() - start)
        return True

    async def abort(self) -> None:
        """Give up on the output: release the sink without finishing the file.

        The closing bracket or parquet footer is never written, so a partial
        output cannot pass for a complete one. No-op on a closed writer.
        """
        if self.state is WriterState.CLOSED:
            return
        self.state = WriterState.CLOSED
        await self._release()
        logger.warning("Aborted %s writer (%s)", self.encoding, self.sink)

    async def __aenter__(self) -> "BatchStreamWriter":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if exc_type is not None:
            await self.abort()
        elif self.state is not WriterState.CLOSED:
            await self.close()

    def __repr__(self) -> str:
        return (
            f"<BatchStreamWriter encoding={self.encoding!r} "
            f"timeframe={self.timeframe!r} state={self.state.value}>"
        )
