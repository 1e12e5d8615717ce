import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sluice.core.errors import ClosedQueueError
from sluice.core.ports.source import PushSource
from sluice.core.queue.fifo import EOS, AsyncFifoQueue

T = TypeVar("T")


@dataclass(frozen=True)
class _Failure:
    exc: BaseException


class PushStream(Generic[T]):
    """
    Turns callback-style production into an async iterable.

    Producers call `push()` for every value, then `end()` or `fail()`.
    Values are kept in an AsyncFifoQueue until the consumer iterates over
    them, so producers never block and no value is lost. A failure is
    delivered in order: the consumer first receives every value pushed
    before it, then the exception is raised from the iteration.

    PushStream also implements the SourceListener callbacks, so it can be
    attached directly to a PushSource (see `from_source`).

        stream = PushStream()
        emitter.on("data", stream.push)
        emitter.on("end", stream.end)

        async for value in stream:
            ...
    """

    def __init__(self) -> None:
        self._queue: AsyncFifoQueue[T | _Failure] = AsyncFifoQueue()
        self._logger = logging.getLogger("core.queue.push")

    @classmethod
    def from_source(cls, source: PushSource) -> "PushStream[Any]":
        stream: PushStream[Any] = cls()
        source.attach(stream)
        return stream

    @property
    def closed(self) -> bool:
        return self._queue.closed

    def push(self, value: T) -> None:
        """Queue a value. Raises ClosedQueueError once the stream ended."""
        self._queue.enqueue(value)

    def end(self) -> None:
        self._queue.close()

    def fail(self, exc: BaseException) -> None:
        if self._queue.closed:
            self._logger.debug(f"Ignoring failure after end of stream: {exc!r}")
            return

        self._queue.enqueue(_Failure(exc))
        self._queue.close()

    def data_received(self, chunk: T) -> None:
        try:
            self.push(chunk)
        except ClosedQueueError:
            self._logger.warning("Dropping chunk received after end of stream")

    def eof_received(self) -> None:
        self.end()

    def source_failed(self, exc: BaseException) -> None:
        self.fail(exc)

    def __aiter__(self) -> "PushStream[T]":
        return self

    async def __anext__(self) -> T:
        item = await self._queue.dequeue()
        if item is EOS:
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            raise item.exc
        return item  # type: ignore[return-value]
