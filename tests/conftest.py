"""
Shared fakes and fixtures for the stream_export tests.
"""

import asyncio
from typing import List, Optional

import pytest

from stream_export.writers.batch import BatchStreamWriter


class MemorySink:
    """In-memory ByteSink that can push back and fail on drain."""

    def __init__(self, high_water_mark: Optional[int] = None,
                 drain_error: Optional[BaseException] = None):
        self.high_water_mark = high_water_mark
        self.drain_error = drain_error
        self.chunks: List[bytes] = []
        self.drains = 0
        self.end_calls = 0
        self.abort_calls = 0
        self._pending = 0
        self._callbacks = []

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)

    @property
    def text(self) -> str:
        return self.data.decode()

    def write(self, data: bytes) -> bool:
        assert self.end_calls == 0, "write after end()"
        assert self.abort_calls == 0, "write after abort()"
        self.chunks.append(bytes(data))
        self._pending += len(data)
        return self.high_water_mark is None or self._pending < self.high_water_mark

    def once_ready(self, callback) -> None:
        self._callbacks.append(callback)
        asyncio.get_running_loop().call_soon(self._drain)

    def _drain(self) -> None:
        self._pending = 0
        self.drains += 1
        callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            cb(self.drain_error)

    async def end(self) -> None:
        self.end_calls += 1

    async def abort(self) -> None:
        self.abort_calls += 1


BARS = [
    [1000, 1.5, 2.0, 1.0, 1.25, 10],
    [2000, 1.25, 1.75, 1.125, 1.5, 20],
    [3000, 1.5, 1.5, 1.5, 1.5, 30],
    [4000, 2.0, 2.5, 1.75, 2.25, 40],
]

TICKS = [
    [1000, 1.1, 1.0, 0.5, 0.75],
    [1001, 1.2, 1.1, 0.25, 0.5],
]


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def make_writer():
    """Build a BatchStreamWriter with permissive defaults."""

    def _make(sink, encoding="json", **kwargs):
        opts = dict(
            timeframe="m1",
            include_volumes=True,
            start_timestamp=0,
            end_timestamp=10_000,
        )
        opts.update(kwargs)
        return BatchStreamWriter(sink=sink, encoding=encoding, **opts)

    return _make


def write_all(writer, *batches, formatter=None):
    """Feed ``batches`` to ``writer`` and close it."""

    async def _go():
        for batch in batches:
            await writer.write_batch(batch, formatter)
        await writer.close()

    asyncio.run(_go())
