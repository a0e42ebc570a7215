"""Gate mechanism used to honour sink backpressure."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter

from stream_export.errors import SinkFailure
from stream_export.sinks.base import ByteSink
from stream_export.telemetry.metrics import Metrics

logger = logging.getLogger(__name__)


class DrainGate:
    """
    A tiny wrapper around an asyncio.Event bound to one sink.
    When closed, the writer is suspended until the sink reports it can take
    more data; that wait is the writer's only suspension point.
    """

    def __init__(self, sink: ByteSink, metrics: Metrics | None = None) -> None:
        """Create an open gate for ``sink``.

        Parameters
        ----------
        sink:
            The byte sink whose ``write`` results drive the gate.
        metrics:
            Optional :class:`Metrics` receiving ``drain_wait`` timings.
        """
        self._sink = sink
        self._metrics = metrics
        self._event = asyncio.Event()
        self._event.set()
        self._error: BaseException | None = None

    def is_open(self) -> bool:
        """Return ``True`` if the sink is currently accepting writes."""
        return self._event.is_set()

    async def wait_open(self) -> None:
        """Wait until the gate is opened, raising the sink's failure if any."""
        await self._event.wait()
        if self._error is not None:
            if isinstance(self._error, SinkFailure):
                raise self._error
            raise SinkFailure("sink failed while draining") from self._error

    def open(self, error: BaseException | None = None) -> None:
        """Ready callback: reopen the gate, remembering ``error`` if given."""
        if error is not None:
            self._error = error
        if not self._event.is_set():
            logger.debug("Backpressure: sink drained, releasing gate")
            self._event.set()

    def close(self) -> None:
        """Close the gate until the sink signals readiness."""
        if self._event.is_set():
            logger.debug("Backpressure: sink over threshold, waiting for drain")
            self._event.clear()

    async def wait_ready(self) -> None:
        """Suspend until the sink's next ready signal."""
        self.close()
        self._sink.once_ready(self.open)
        start = perf_counter()
        await self.wait_open()
        if self._metrics is not None:
            self._metrics.inc("drain_waits")
            self._metrics.observe_stage("drain_wait", perf_counter() - start)

    async def emit(self, data: bytes) -> bool:
        """Write ``data`` to the sink, waiting for a drain if it pushes back."""
        if self._error is not None:
            await self.wait_open()
        if not self._sink.write(data):
            await self.wait_ready()
        if self._metrics is not None:
            self._metrics.inc("bytes_emitted", len(data))
        return True
