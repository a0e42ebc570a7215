"""
Parquet encoder that streams row groups into a :class:`ByteSink`.

pyarrow writes synchronously into a file-like object; ``_SinkStream`` forwards
those writes to the sink and remembers whether the sink pushed back, so the
encoder can wait for a drain once the row group has been handed over.
"""
from __future__ import annotations

import io
import logging
from time import perf_counter
from typing import Any, Dict, List, Sequence

import pyarrow as pa
import pyarrow.parquet as pq

from stream_export.backpressure import DrainGate
from stream_export.constants import DEFAULT_ROW_GROUP_SIZE
from stream_export.errors import EncoderError
from stream_export.sinks.base import ByteSink
from stream_export.telemetry.metrics import Metrics

logger = logging.getLogger(__name__)


class _SinkStream(io.RawIOBase):
    """Write-only file object over a :class:`ByteSink`."""

    def __init__(self, sink: ByteSink) -> None:
        super().__init__()
        self._sink = sink
        self.pressured = False
        self.position = 0
        self.detached = False

    def writable(self) -> bool:
        return True

    def write(self, b: Any) -> int:  # type: ignore[override]
        data = bytes(b)
        if not self.detached and not self._sink.write(data):
            self.pressured = True
        self.position += len(data)
        return len(data)

    def tell(self) -> int:
        return self.position


def _coerce(values: List[Any], type_: pa.DataType) -> List[Any]:
    # integral floats (e.g. JSON ``1577836800000.0``) into int64 columns
    if pa.types.is_integer(type_):
        return [int(v) if isinstance(v, float) else v for v in values]
    return values


class ParquetEncoder:
    """
    Row-oriented front end for ``pyarrow.parquet.ParquetWriter``.

    Rows are buffered per column and written as one row group every
    ``row_group_size`` rows. :meth:`close` writes the footer and ends the sink.
    """

    def __init__(
        self,
        schema: pa.Schema,
        sink: ByteSink,
        gate: DrainGate,
        *,
        row_group_size: int = DEFAULT_ROW_GROUP_SIZE,
        compression: str = "snappy",
        metrics: Metrics | None = None,
    ) -> None:
        if row_group_size <= 0:
            raise ValueError(f"row_group_size must be > 0, got {row_group_size}")
        self.schema = schema
        self.row_group_size = row_group_size
        self.rows_written = 0
        self._sink = sink
        self._gate = gate
        self._metrics = metrics
        self._stream = _SinkStream(sink)
        self._columns: Dict[str, List[Any]] = {name: [] for name in schema.names}
        self._buffered = 0
        self._closed = False
        self._released = False
        try:
            self._writer = pq.ParquetWriter(self._stream, schema, compression=compression)
        except (pa.ArrowException, OSError, ValueError) as exc:
            raise EncoderError(f"could not open parquet writer: {exc}") from exc

    @classmethod
    def open(
        cls,
        schema: pa.Schema,
        sink: ByteSink,
        gate: DrainGate,
        **kwargs: Any,
    ) -> "ParquetEncoder":
        """Open an encoder bound to ``sink`` with ``schema``."""
        encoder = cls(schema, sink, gate, **kwargs)
        logger.info("Opened parquet encoder (%d columns)", len(schema))
        return encoder

    async def append_row(self, row: Sequence[Any]) -> None:
        """Buffer ``row``; short rows leave the missing columns null."""
        if self._closed:
            raise EncoderError("append_row() on a closed parquet encoder")
        for i, name in enumerate(self.schema.names):
            self._columns[name].append(row[i] if i < len(row) else None)
        self._buffered += 1
        if self._buffered >= self.row_group_size:
            await self.flush()

    async def flush(self) -> None:
        """Write buffered rows as one row group and honour sink pressure."""
        if not self._buffered:
            return
        start = perf_counter()
        try:
            arrays = [
                pa.array(_coerce(self._columns[field.name], field.type), type=field.type)
                for field in self.schema
            ]
            self._writer.write_batch(pa.record_batch(arrays, schema=self.schema))
        except (pa.ArrowException, OSError, TypeError, ValueError) as exc:
            raise EncoderError(f"could not write parquet row group: {exc}") from exc
        self.rows_written += self._buffered
        logger.debug("Wrote parquet row group of %d rows", self._buffered)
        for values in self._columns.values():
            values.clear()
        self._buffered = 0
        await self._settle()
        if self._metrics is not None:
            self._metrics.observe_stage("encoder_flush", perf_counter() - start)

    async def _settle(self) -> None:
        if self._stream.pressured:
            self._stream.pressured = False
            await self._gate.wait_ready()

    async def close(self) -> None:
        """Flush, write the footer and end the underlying sink."""
        if self._closed:
            return
        await self.flush()
        self._closed = True
        try:
            self._writer.close()
        except (pa.ArrowException, OSError) as exc:
            raise EncoderError(f"could not finalize parquet file: {exc}") from exc
        await self._settle()
        await self._sink.end()
        self._released = True
        logger.info("Closed parquet encoder after %d rows", self.rows_written)

    async def abort(self) -> None:
        """Release the pyarrow writer and the sink without writing a footer."""
        if self._released:
            return
        self._released = True
        self._stream.detached = True
        if not self._closed:
            self._closed = True
            try:
                self._writer.close()
            except (pa.ArrowException, OSError) as exc:
                logger.debug("Discarding parquet writer failed: %s", exc)
        await self._sink.abort()
        logger.warning("Aborted parquet encoder after %d rows", self.rows_written)
