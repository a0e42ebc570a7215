"""
FileSink - ordered, backpressured file output for the asyncio writers.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, List

import aiofiles

from stream_export.constants import DEFAULT_HIGH_WATER_MARK
from stream_export.errors import SinkFailure
from .base import ReadyCallback

logger = logging.getLogger(__name__)


class FileSink:
    """
    Append-only file sink.

    * ``write`` only queues bytes; a single background task drains the queue
      to an ``aiofiles`` handle in call order.
    * Once the queue holds ``high_water_mark`` bytes or more, ``write`` returns
      ``False`` and ready callbacks fire when it drops back below the mark.
    * An I/O error is handed to pending ready callbacks and raised as
      :class:`SinkFailure` from any later ``write`` or ``end``.
    """

    def __init__(self, path: Path, *, high_water_mark: int = DEFAULT_HIGH_WATER_MARK) -> None:
        if high_water_mark <= 0:
            raise ValueError(f"high_water_mark must be > 0, got {high_water_mark}")
        self.path = Path(path)
        self.high_water_mark = high_water_mark
        self.bytes_written = 0

        self._fd: Any = None
        self._pending: List[bytes] = []
        self._pending_bytes = 0
        self._flush_task: asyncio.Task[None] | None = None
        self._ready_callbacks: List[ReadyCallback] = []
        self._error: BaseException | None = None
        self._ended = False

    # ------------------------------------------------------------------ #
    # File handle                                                        #
    # ------------------------------------------------------------------ #
    async def _ensure_open(self) -> Any:
        if self._fd is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fd = await aiofiles.open(self.path, "wb")
        return self._fd

    async def _release(self) -> None:
        fd, self._fd = self._fd, None
        if fd is not None:
            await fd.close()

    @property
    def is_open(self) -> bool:
        """``True`` while an OS file handle is held."""
        return self._fd is not None

    # ------------------------------------------------------------------ #
    # Background drain                                                   #
    # ------------------------------------------------------------------ #
    def _fire_ready(self, error: BaseException | None) -> None:
        callbacks, self._ready_callbacks = self._ready_callbacks, []
        for cb in callbacks:
            cb(error)

    def _schedule_flush(self) -> None:
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.get_running_loop().create_task(
                self._drain(), name=f"file-sink:{self.path.name}"
            )

    async def _drain(self) -> None:
        try:
            while self._pending:
                chunk = b"".join(self._pending)
                self._pending.clear()
                fd = await self._ensure_open()
                await fd.write(chunk)
                self._pending_bytes = max(0, self._pending_bytes - len(chunk))
                self.bytes_written += len(chunk)
                if self._pending_bytes < self.high_water_mark:
                    self._fire_ready(None)
        except OSError as exc:
            logger.error("FileSink %s: write failed: %s", self.path, exc)
            self._error = exc
            self._pending.clear()
            self._pending_bytes = 0
            self._fire_ready(exc)

    def _raise_if_failed(self) -> None:
        if self._error is not None:
            raise SinkFailure(f"write to {self.path} failed") from self._error

    # ------------------------------------------------------------------ #
    # ByteSink                                                           #
    # ------------------------------------------------------------------ #
    def write(self, data: bytes) -> bool:
        if self._ended:
            raise SinkFailure(f"write to {self.path} after end()")
        self._raise_if_failed()
        if data:
            self._pending.append(data)
            self._pending_bytes += len(data)
            self._schedule_flush()
        return self._pending_bytes < self.high_water_mark

    def once_ready(self, callback: ReadyCallback) -> None:
        if self._error is not None:
            callback(self._error)
        elif self._pending_bytes < self.high_water_mark:
            callback(None)
        else:
            self._ready_callbacks.append(callback)

    async def end(self) -> None:
        """Wait for queued bytes to reach disk, then close the file."""
        if self._ended:
            return
        self._ended = True
        if self._flush_task is not None:
            await self._flush_task
        if self._error is not None:
            await self._release()
            self._raise_if_failed()
        try:
            await self._ensure_open()
            await self._release()
        except OSError as exc:
            raise SinkFailure(f"closing {self.path} failed") from exc
        logger.debug("FileSink %s: finished (%d bytes)", self.path, self.bytes_written)

    async def abort(self) -> None:
        """Drop queued bytes and close the file without finishing it."""
        if self._ended and self._fd is None:
            return
        self._ended = True
        self._pending.clear()
        self._pending_bytes = 0
        if self._flush_task is not None:
            await self._flush_task
        try:
            await self._release()
        except OSError as exc:
            logger.warning("FileSink %s: close after abort failed: %s", self.path, exc)
        logger.warning("FileSink %s: aborted after %d bytes", self.path, self.bytes_written)

    @property
    def pending_bytes(self) -> int:
        return self._pending_bytes

    def __repr__(self) -> str:
        return f"<FileSink path='{self.path}'>"
