from __future__ import annotations

import logging
import os


def configure_logging(level: str | None = None) -> int:
    """
    Configure root logging once and return the numeric level in effect.

    The level can be given explicitly or taken from the EXPORT_LOG_LEVEL or
    LOG_LEVEL env vars (default INFO). Unknown names fall back to INFO.
    """
    if level is None:
        level = os.getenv("EXPORT_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s:%(lineno)d | %(message)s",
    )
    return numeric
