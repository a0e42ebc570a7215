"""Top level orchestration: read rows from a file and export them."""

from __future__ import annotations

import logging
from pathlib import Path
from time import perf_counter

from stream_export.config import ExportConfig, initialize_environment
from stream_export.core.io import chunked_rows
from stream_export.core.timefmt import make_timestamp_formatter
from stream_export.sinks.file import FileSink
from stream_export.telemetry.metrics import Metrics
from stream_export.writers.batch import BatchStreamWriter

logger = logging.getLogger(__name__)

OUTPUT_SUFFIXES = {
    "csv": ".csv",
    "json": ".json",
    "array": ".json",
    "parquet": ".parquet",
}


def default_output_path(input_path: Path, encoding: str) -> Path:
    """``bars.csv.gz`` exported as parquet -> ``bars.parquet`` next to it."""
    stem = input_path.name.split(".", 1)[0]
    return input_path.with_name(stem + OUTPUT_SUFFIXES[encoding])


async def run_export(config: ExportConfig | None = None) -> Metrics:
    """Stream ``config.input_path`` into ``config.output_path`` and return metrics.

    Parameters
    ----------
    config:
        Optional :class:`ExportConfig` instance. If ``None``, environment
        variables are loaded via :func:`initialize_environment`.
    """
    if config is None:
        config = initialize_environment()
    if config.input_path is None:
        raise ValueError("No input file configured (EXPORT_INPUT or CLI argument)")

    output_path = config.output_path or default_output_path(config.input_path, config.encoding)
    if output_path.resolve() == config.input_path.resolve():
        raise ValueError(f"Output {output_path} would overwrite the input file")
    formatter = make_timestamp_formatter(config.date_format)
    metrics = Metrics()

    logger.info(
        "Exporting %s -> %s (timeframe=%s format=%s inline=%s volumes=%s)",
        config.input_path, output_path, config.timeframe, config.encoding,
        config.inline, config.include_volumes,
    )
    start = perf_counter()

    writer = BatchStreamWriter(
        sink=FileSink(output_path, high_water_mark=config.high_water_mark),
        timeframe=config.timeframe,
        encoding=config.encoding,
        inline=config.inline,
        include_volumes=config.include_volumes,
        start_timestamp=config.start_timestamp,
        end_timestamp=config.end_timestamp,
        metrics=metrics,
        flush_bytes=config.flush_bytes,
        row_group_size=config.row_group_size,
        compression=config.compression,
    )
    async with writer:
        for rows in chunked_rows(config.input_path, config.batch_size):
            await writer.write_batch(rows, formatter)

    logger.info("Completed in %.3f s", perf_counter() - start)
    txt, _ = metrics.summary()
    logger.info("\n%s", txt)
    return metrics
