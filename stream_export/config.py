"""Environment-based configuration loading for the export pipeline."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from stream_export.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_FLUSH_BYTES,
    DEFAULT_HIGH_WATER_MARK,
    DEFAULT_ROW_GROUP_SIZE,
    ENCODINGS,
    TIMEFRAMES,
)
from stream_export.core.timefmt import parse_timestamp


@dataclass
class ExportConfig:
    """Configuration values derived from environment variables and overrides."""
    # Input / output
    input_path: Optional[Path]
    output_path: Optional[Path]

    # Output shape
    timeframe: str
    encoding: str
    inline: bool
    include_volumes: bool
    date_format: Optional[str]

    # Time window, epoch ms
    start_timestamp: float
    end_timestamp: float

    # Buffering
    batch_size: int
    high_water_mark: int
    flush_bytes: int
    row_group_size: int
    compression: str


def _flag(name: str, default: str) -> bool:
    return bool(int(os.getenv(name, default)))


def _optional_path(value: Optional[str]) -> Optional[Path]:
    return Path(value) if value else None


def _bound(value: Optional[str], default: float) -> float:
    return float(parse_timestamp(value)) if value else default


def initialize_environment(**overrides: Any) -> ExportConfig:
    """Load environment variables and build an :class:`ExportConfig`.

    Every field can also be passed as a keyword override; overrides that are
    ``None`` are ignored so unset CLI options fall back to the environment.
    ``start_timestamp``/``end_timestamp`` overrides may be epoch milliseconds
    or ISO-8601 strings.
    """
    load_dotenv()

    timeframe = os.getenv("EXPORT_TIMEFRAME", "d1").lower()
    encoding = os.getenv("EXPORT_FORMAT", "json").lower()

    config = ExportConfig(
        input_path=_optional_path(os.getenv("EXPORT_INPUT")),
        output_path=_optional_path(os.getenv("EXPORT_OUTPUT")),
        timeframe=timeframe,
        encoding=encoding,
        inline=_flag("EXPORT_INLINE", "0"),
        include_volumes=_flag("EXPORT_VOLUMES", "1"),
        date_format=os.getenv("EXPORT_DATE_FORMAT") or None,
        start_timestamp=_bound(os.getenv("EXPORT_FROM"), -math.inf),
        end_timestamp=_bound(os.getenv("EXPORT_TO"), math.inf),
        batch_size=int(os.getenv("EXPORT_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))),
        high_water_mark=int(os.getenv("EXPORT_HIGH_WATER_MARK", str(DEFAULT_HIGH_WATER_MARK))),
        flush_bytes=int(os.getenv("EXPORT_FLUSH_BYTES", str(DEFAULT_FLUSH_BYTES))),
        row_group_size=int(os.getenv("EXPORT_ROW_GROUP_SIZE", str(DEFAULT_ROW_GROUP_SIZE))),
        compression=os.getenv("EXPORT_COMPRESSION", "snappy"),
    )

    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(config, key):
            raise TypeError(f"Unknown configuration field {key!r}")
        if key in ("start_timestamp", "end_timestamp") and isinstance(value, str):
            value = float(parse_timestamp(value))
        elif key in ("input_path", "output_path"):
            value = Path(value)
        setattr(config, key, value)

    if config.timeframe not in TIMEFRAMES:
        raise ValueError(f"Invalid timeframe {config.timeframe!r}; expected one of {TIMEFRAMES}")
    if config.encoding not in ENCODINGS:
        raise ValueError(f"Invalid format {config.encoding!r}; expected one of {ENCODINGS}")
    if config.batch_size <= 0:
        raise ValueError(f"batch_size must be > 0, got {config.batch_size}")
    if config.start_timestamp >= config.end_timestamp:
        raise ValueError("start of the time window must be before its end")

    return config
