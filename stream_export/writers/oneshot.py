"""Write a complete, already-collected payload to a file in one call."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from stream_export.constants import headers_for
from stream_export.models import Row, TimeWindow
from stream_export.sinks.file import FileSink
from .batch import BatchStreamWriter

logger = logging.getLogger(__name__)


async def write_stream(
    payload: Sequence[Row],
    timeframe: str,
    encoding: str,
    file_path: Path,
    inline: bool = False,
) -> bool:
    """Write ``payload`` to ``file_path`` and return once the file is finished.

    The header set keeps as many columns as the first non-empty row has fields, so
    payloads fetched without volumes get no volume columns. Framing is the
    same as a single :meth:`BatchStreamWriter.write_batch` call.
    """
    full = headers_for(timeframe, include_volumes=True)
    first = next((row for row in payload if len(row) > 0), None)
    headers = full[: len(first)] if first is not None else full

    window = TimeWindow.unbounded()
    writer = BatchStreamWriter(
        sink=FileSink(Path(file_path)),
        timeframe=timeframe,
        encoding=encoding,
        inline=inline,
        include_volumes=len(headers) == len(full),
        headers=headers,
        start_timestamp=window.start,
        end_timestamp=window.end,
    )
    async with writer:
        await writer.write_batch(payload)
        await writer.close()
    logger.info("Wrote %d rows to %s", len(payload), file_path)
    return True
