"""Public package exports for the :mod:`stream_export` library."""

from __future__ import annotations

__all__ = [
    "backpressure",
    "cli",
    "config",
    "constants",
    "core",
    "encoders",
    "errors",
    "logging_setup",
    "models",
    "pipeline",
    "sinks",
    "telemetry",
    "writers",
]
