"""Command line interface for exporting bar and tick files."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from stream_export.config import initialize_environment
from stream_export.constants import ENCODINGS, TIMEFRAMES
from stream_export.errors import ExportError
from stream_export.logging_setup import configure_logging
from stream_export.pipeline import run_export

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the command line interface."""
    p = argparse.ArgumentParser(
        prog="stream-export",
        description="Convert numeric bar/tick rows to csv, json, array or parquet.",
    )
    p.add_argument("input", nargs="?", type=Path, default=None,
                   help="Input .csv/.jsonl/.ndjson file, optionally gzipped "
                        "(default: $EXPORT_INPUT)")
    p.add_argument("-o", "--out", dest="output_path", type=Path, default=None,
                   help="Output file (default: input name with the format's suffix)")
    p.add_argument("-t", "--timeframe", choices=TIMEFRAMES, default=None,
                   help="Timeframe of the input rows (default: $EXPORT_TIMEFRAME or d1)")
    p.add_argument("-f", "--format", dest="encoding", choices=ENCODINGS, default=None,
                   help="Output format (default: $EXPORT_FORMAT or json)")
    p.add_argument("--inline", action="store_true", default=None,
                   help="Write json/array output without newlines")
    p.add_argument("--volumes", dest="include_volumes", action="store_true", default=None,
                   help="Keep volume columns")
    p.add_argument("--no-volumes", dest="include_volumes", action="store_false",
                   help="Drop volume columns")
    p.add_argument("--from", dest="start_timestamp", default=None,
                   help="Inclusive window start, epoch ms or ISO-8601 date")
    p.add_argument("--to", dest="end_timestamp", default=None,
                   help="Exclusive window end, epoch ms or ISO-8601 date")
    p.add_argument("--date-format", default=None,
                   help="Render timestamps of text output: 'iso' or a strftime pattern")
    p.add_argument("--batch-size", type=int, default=None,
                   help="Rows per write batch (default: $EXPORT_BATCH_SIZE or 10000)")
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to $LOG_LEVEL or INFO.",
    )
    p.set_defaults(include_volumes=None)
    return p


async def main(argv: Optional[List[str]] = None) -> None:
    """Run an export using command line arguments."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    overrides = vars(args)
    overrides.pop("log_level")
    overrides["input_path"] = overrides.pop("input")
    config = initialize_environment(**overrides)
    await run_export(config)


def run() -> None:
    """Console-script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
    except (ExportError, ValueError, OSError) as exc:
        logger.error("Export failed: %s", exc)
        raise SystemExit(1) from exc
