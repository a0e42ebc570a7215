"""File I/O helpers used to feed the export pipeline."""

from __future__ import annotations

import csv
import gzip
import logging
from pathlib import Path
from typing import IO, Iterator, List, Optional

import orjson

from stream_export.models import Number, Row

logger = logging.getLogger(__name__)

JSON_LINE_SUFFIXES = (".jsonl", ".ndjson")


def _open_text(file_path: Path) -> IO[str]:
    if file_path.suffix == ".gz":
        return gzip.open(file_path, "rt", newline="")
    return file_path.open("r", newline="")


def _data_suffix(file_path: Path) -> str:
    suffixes = [s.lower() for s in file_path.suffixes if s.lower() != ".gz"]
    return suffixes[-1] if suffixes else ""


def _to_number(field: str) -> Optional[Number]:
    if field == "":
        return None
    try:
        return int(field)
    except ValueError:
        return float(field)


def _iter_csv_rows(infile: IO[str]) -> Iterator[List[Optional[Number]]]:
    for lineno, fields in enumerate(csv.reader(infile), start=1):
        # trailing delimiters add no columns
        while fields and fields[-1] == "":
            fields.pop()
        if not fields:
            continue
        try:
            yield [_to_number(f) for f in fields]
        except ValueError:
            logger.debug("Skipping non-numeric CSV line %d: %s", lineno, fields)


def _iter_json_rows(infile: IO[str]) -> Iterator[List[Number]]:
    for line in infile:
        line = line.strip()
        if line:
            yield orjson.loads(line)


def chunked_rows(file_path: Path, chunk_size: int) -> Iterator[List[Row]]:
    """Yield ``chunk_size`` numeric rows at a time from a CSV or JSON-lines file.

    ``*.gz`` inputs are decompressed on the fly. CSV lines that do not parse as
    numbers (header lines) are skipped. Empty CSV fields inside a row become
    ``None`` so later columns keep their position.
    """
    suffix = _data_suffix(file_path)
    with _open_text(file_path) as infile:
        if suffix in JSON_LINE_SUFFIXES:
            rows = _iter_json_rows(infile)
        elif suffix == ".csv":
            rows = _iter_csv_rows(infile)
        else:
            raise ValueError(
                f"Unsupported input type {file_path.name!r}; expected .csv, .jsonl or .ndjson"
            )
        buf: List[Row] = []
        for row in rows:
            buf.append(row)
            if len(buf) >= chunk_size:
                yield buf
                buf = []
        if buf:
            yield buf
