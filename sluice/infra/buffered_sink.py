import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable

from sluice.core.errors import SinkError
from sluice.core.helpers.spawn import TaskSpawner
from sluice.core.ports.sink import Sink, SinkListener

ChunkWriter = Callable[[Any], Awaitable[None]]
"""
Coroutine function consuming one chunk, e.g. a socket or file write.
"""

Closer = Callable[[], Awaitable[None]]
"""
Coroutine function called once every chunk has been written.
"""


class BufferedSink(Sink):
    """
    Sink with a bounded buffer in front of an asynchronous writer.

    Chunks passed to `write()` are appended to an internal buffer, and a
    background flusher task hands them to the writer one at a time, in
    order. `write()` returns False as soon as the buffered size reaches
    `high_water_mark`. Once the buffer is empty again after such a refusal,
    the listener receives the drain signal (`resume_writing`).

    Chunk sizes are measured with `len()`; chunks without a length count
    as 1, which turns the high-water mark into a chunk count.

    `end()` lets the flusher write what is left, awaits the optional
    `closer`, then reports `sink_finished`. A writer or closer error is
    reported through `sink_failed`. `abort()` drops the buffer and cancels
    the flusher. The closer runs exactly once whichever way the sink ends.
    """

    def __init__(
        self,
        writer: ChunkWriter,
        high_water_mark: int = 16 * 1024,
        closer: Closer | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if high_water_mark <= 0:
            raise ValueError(f"high_water_mark must be > 0, got {high_water_mark}")

        self._writer = writer
        self._closer = closer
        self._high_water_mark = high_water_mark
        self._loop = loop or asyncio.get_running_loop()
        self._spawner = TaskSpawner(self._loop, name="buffered-sink")
        self._buffer: deque[Any] = deque()
        self._buffered_size = 0
        self._wakeup = asyncio.Event()
        self._listener: SinkListener | None = None
        self._flusher: asyncio.Task[None] | None = None
        self._need_drain = False
        self._ending = False
        self._closed = False
        self._released = False
        self._logger = logging.getLogger("infra.buffered_sink")

    @property
    def buffered_size(self) -> int:
        return self._buffered_size

    @property
    def high_water_mark(self) -> int:
        return self._high_water_mark

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, listener: SinkListener) -> None:
        self._listener = listener

    def write(self, chunk: Any) -> bool:
        if self._closed or self._ending:
            raise SinkError("Cannot write to an ended sink")

        self._buffer.append(chunk)
        self._buffered_size += self._size_of(chunk)
        self._start()
        self._wakeup.set()

        has_room = self._buffered_size < self._high_water_mark
        if not has_room:
            self._need_drain = True
        return has_room

    def end(self) -> None:
        if self._closed or self._ending:
            return

        self._ending = True
        self._start()
        self._wakeup.set()

    def abort(self, exc: BaseException | None = None) -> None:
        if self._closed:
            return

        self._closed = True
        dropped = len(self._buffer)
        self._buffer.clear()
        self._buffered_size = 0
        self._logger.debug(f"Sink aborted ({exc!r}), {dropped} chunk(s) dropped")

        if self._flusher is not None and not self._flusher.done():
            self._flusher.cancel()
        else:
            self._spawner.spawn(self._release())

    def _start(self) -> None:
        if self._flusher is None:
            self._flusher = self._spawner.spawn(self._flush())

    async def _flush(self) -> None:
        try:
            while True:
                while self._buffer:
                    chunk = self._buffer[0]
                    await self._writer(chunk)
                    self._buffer.popleft()
                    self._buffered_size -= self._size_of(chunk)

                if self._need_drain:
                    self._need_drain = False
                    self._notify("resume_writing")
                    # The listener may have written more or ended meanwhile.
                    continue

                if self._ending:
                    break

                self._wakeup.clear()
                await self._wakeup.wait()

            self._released = True
            if self._closer is not None:
                await self._closer()
        except asyncio.CancelledError:
            await self._release()
            raise
        except Exception as exc:
            self._logger.error(f"Writer failed: {exc}")
            self._closed = True
            self._buffer.clear()
            self._buffered_size = 0
            await self._release()
            self._notify("sink_failed", exc)
            return

        self._closed = True
        self._notify("sink_finished")

    async def _release(self) -> None:
        if self._released:
            return

        self._released = True
        if self._closer is None:
            return

        try:
            await self._closer()
        except Exception as exc:
            self._logger.warning(f"Error while closing sink: {exc}")

    def _notify(self, event: str, *args: Any) -> None:
        if self._listener is None:
            return
        getattr(self._listener, event)(*args)

    @staticmethod
    def _size_of(chunk: Any) -> int:
        try:
            return len(chunk)
        except TypeError:
            return 1
