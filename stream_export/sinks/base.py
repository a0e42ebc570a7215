from __future__ import annotations

from typing import Callable, Optional, Protocol, runtime_checkable

ReadyCallback = Callable[[Optional[BaseException]], None]


@runtime_checkable
class ByteSink(Protocol):
    """
    Minimal protocol for an ordered byte sink that can push back.

    ``write`` queues ``data`` and returns ``False`` once the sink is over its
    buffering threshold. ``once_ready`` registers a one-shot callback invoked
    with ``None`` when the sink can take more data, or with the exception
    that broke it. ``end`` flushes everything and closes the sink; ``abort``
    releases it without finishing the output.
    """

    def write(self, data: bytes) -> bool: ...

    def once_ready(self, callback: ReadyCallback) -> None: ...

    async def end(self) -> None: ...

    async def abort(self) -> None: ...
