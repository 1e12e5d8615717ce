import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from sluice.core.errors import ClosedQueueError

T = TypeVar("T")


class EndOfStream(Enum):
    """
    End-of-stream marker returned by `AsyncFifoQueue.dequeue()` once the queue
    is closed and drained.

    It is an enum member rather than a reserved payload so that producers may
    legitimately enqueue any value, `None` included.
    """
    EOS = "end-of-stream"

    def __repr__(self) -> str:
        return "<EOS>"


EOS = EndOfStream.EOS


def is_end_of_stream(item: Any) -> bool:
    """Return True if `item` is the end-of-stream marker."""
    return item is EOS


@dataclass(eq=False)
class _Waiter:
    future: asyncio.Future[None]
    value: Any = None
    """Value assigned to the consumer, read when it resumes."""
    handed: bool = False


class AsyncFifoQueue(Generic[T]):
    """
    Unbounded FIFO queue bridging synchronous producers and an asynchronous
    consumer.

    Producers call `enqueue()` whenever a value is ready; it never blocks.
    The consumer awaits `dequeue()`, which may be called before the matching
    value exists: the request is registered right away and fulfilled by the
    next `enqueue()`, in order of arrival, without the value ever being
    buffered. Values are delivered exactly once and in the order they were
    enqueued.

    Once `close()` is called no value may be enqueued. Consumers drain the
    values still buffered and then receive `EOS` indefinitely. Iterating the
    queue with `async for` yields values until that point and never yields
    `EOS` itself.

    The queue is designed for a single logical consumer, but concurrent
    `dequeue()` calls are served fairly in the order they were issued. A
    consumer cancelled after a value was assigned to it, but before it
    resumed, does not lose that value: it moves to the next consumer in line
    and every later assignment shifts by one, so the delivery order is kept.

    Internal state is only mutated by the queue's own methods from the event
    loop thread, so no lock is needed. At any time, either values are buffered
    or consumers are waiting, never both.
    """

    def __init__(self) -> None:
        self._buffered: deque[T] = deque()
        self._waiters: deque[_Waiter] = deque()
        # Consumers holding a value they have not resumed with yet, in
        # assignment order.
        self._handed: deque[_Waiter] = deque()
        self._closed = False
        self._logger = logging.getLogger("core.queue.fifo")

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return (
            f"<{type(self).__name__} {state} "
            f"buffered={len(self._buffered)} pending={self.pending}>"
        )

    def __len__(self) -> int:
        return len(self._buffered)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of consumers currently waiting for a value."""
        return sum(1 for waiter in self._waiters if not waiter.future.done())

    def qsize(self) -> int:
        """Number of values enqueued but not yet claimed."""
        return len(self._buffered)

    def empty(self) -> bool:
        return not self._buffered

    def enqueue(self, value: T) -> None:
        """
        Add a value to the queue.

        The oldest waiting consumer, if any, receives the value directly.
        Otherwise the value is buffered until someone asks for it.

        Raises ClosedQueueError if the queue has been closed.
        """
        if self._closed:
            raise ClosedQueueError("Cannot enqueue on a closed queue")

        if not self._wake_next(value):
            self._buffered.append(value)

    async def dequeue(self) -> T | EndOfStream:
        """
        Remove and return the oldest value, waiting for one if necessary.

        Returns `EOS` when the queue is closed and no value is left. The
        value is claimed (or the consumer registered) before suspending, and
        this coroutine always yields to the event loop at least once, even
        when a value is immediately available.
        """
        waiter = _Waiter(asyncio.get_running_loop().create_future())

        if self._buffered:
            self._hand(waiter, self._buffered.popleft())
        elif self._closed:
            self._hand(waiter, EOS)
        else:
            self._waiters.append(waiter)

        try:
            if waiter.future.done():
                await asyncio.sleep(0)
            else:
                await waiter.future
        except asyncio.CancelledError:
            self._withdraw(waiter)
            raise

        self._handed.remove(waiter)
        return waiter.value

    def close(self) -> None:
        """
        Close the queue. Idempotent.

        Every waiting consumer is resolved with `EOS`; values still buffered
        remain available to later `dequeue()` calls.
        """
        if self._closed:
            return

        self._closed = True
        woken = 0
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.future.done():
                self._hand(waiter, EOS)
                woken += 1

        self._logger.debug(
            f"Queue closed: {len(self._buffered)} value(s) left, "
            f"{woken} waiting consumer(s) released"
        )

    def __aiter__(self) -> "AsyncFifoQueue[T]":
        return self

    async def __anext__(self) -> T:
        value = await self.dequeue()
        if value is EOS:
            raise StopAsyncIteration
        return value  # type: ignore[return-value]

    def _hand(self, waiter: _Waiter, value: Any) -> None:
        waiter.value = value
        waiter.handed = True
        self._handed.append(waiter)
        if not waiter.future.done():
            waiter.future.set_result(None)

    def _wake_next(self, value: Any) -> bool:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.future.done():
                self._hand(waiter, value)
                return True
        return False

    def _withdraw(self, waiter: _Waiter) -> None:
        if not waiter.handed:
            try:
                self._waiters.remove(waiter)
            except ValueError:
                pass
            return

        # Pass the value down the line of consumers that have not resumed,
        # so they still resume in enqueue order.
        index = self._handed.index(waiter)
        del self._handed[index]
        carry = waiter.value
        for later in list(self._handed)[index:]:
            later.value, carry = carry, later.value

        self._logger.debug(f"Consumer cancelled, giving back {carry!r}")
        if carry is EOS:
            return
        if not self._wake_next(carry):
            self._buffered.appendleft(carry)
