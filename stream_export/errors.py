"""Exception types raised by the export writers."""

from __future__ import annotations


class ExportError(Exception):
    """Base class for every error raised by :mod:`stream_export`."""


class SinkFailure(ExportError):
    """The byte sink failed while writing, draining or ending.

    Fatal: the writer that observed it must not be reused.
    """


class EncoderError(ExportError):
    """The Parquet encoder could not be opened, appended to or finalized."""


class WriterStateError(ExportError, RuntimeError):
    """A writer method was called out of order (e.g. after ``close``)."""
