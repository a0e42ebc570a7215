"""Binary encoders driven by the batch writer."""

from __future__ import annotations

from .parquet import ParquetEncoder

__all__ = ["ParquetEncoder"]
