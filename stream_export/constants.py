from __future__ import annotations

from typing import List, Literal, Tuple

# ──────────────────────────────────────────────────────────────────────────────
# Column layouts
# ──────────────────────────────────────────────────────────────────────────────
TIMESTAMP_COLUMN = "timestamp"
BAR_HEADER: List[str] = ["timestamp", "open", "high", "low", "close", "volume"]
TICK_HEADER: List[str] = ["timestamp", "askPrice", "bidPrice", "askVolume", "bidVolume"]

# ──────────────────────────────────────────────────────────────────────────────
# Accepted option values
# ──────────────────────────────────────────────────────────────────────────────
Timeframe = Literal["tick", "s1", "m1", "m5", "m15", "m30", "h1", "h4", "d1", "mn1"]
Encoding = Literal["csv", "json", "array", "parquet"]

TIMEFRAMES: Tuple[str, ...] = ("tick", "s1", "m1", "m5", "m15", "m30", "h1", "h4", "d1", "mn1")
ENCODINGS: Tuple[str, ...] = ("csv", "json", "array", "parquet")
JSON_ENCODINGS: Tuple[str, ...] = ("json", "array")

# ──────────────────────────────────────────────────────────────────────────────
# Buffering defaults
# ──────────────────────────────────────────────────────────────────────────────
DEFAULT_HIGH_WATER_MARK = 64 * 1024   # bytes queued in a sink before it pushes back
DEFAULT_FLUSH_BYTES = 64 * 1024       # rendered text bytes per gate emission
DEFAULT_ROW_GROUP_SIZE = 64 * 1024    # parquet rows per row group
DEFAULT_BATCH_SIZE = 10_000           # input rows per write_batch call


def headers_for(timeframe: str, include_volumes: bool) -> List[str]:
    """Return the column names used for ``timeframe``.

    Bars carry a single ``volume`` column and ticks carry two; both are dropped
    when ``include_volumes`` is false.
    """
    if timeframe == "tick":
        header = list(TICK_HEADER)
        return header if include_volumes else header[:-2]
    header = list(BAR_HEADER)
    return header if include_volumes else header[:-1]
