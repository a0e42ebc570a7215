"""Parquet schema derivation from a header list."""

from __future__ import annotations

from typing import Dict, Sequence

import pyarrow as pa

from stream_export.constants import TIMESTAMP_COLUMN


def column_types(headers: Sequence[str]) -> Dict[str, pa.DataType]:
    """Map each column to ``int64`` (timestamp) or ``float64`` (everything else)."""
    return {
        h: pa.int64() if h == TIMESTAMP_COLUMN else pa.float64()
        for h in headers
    }


def build_schema(headers: Sequence[str]) -> pa.Schema:
    """Return the nullable Arrow schema for ``headers`` in header order."""
    return pa.schema(list(column_types(headers).items()))
