"""Batch and one-shot writers built on the framing and encoder layers."""

from __future__ import annotations

from .batch import BatchStreamWriter
from .oneshot import write_stream

__all__ = [
    "BatchStreamWriter",
    "write_stream",
]
