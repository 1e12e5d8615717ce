import asyncio


class FlowControl:
    """
    Awaitable gate modelling whether a sink may be written to.

    The FlowController closes the gate when the sink reports that its buffer
    is full and opens it again on the drain signal. Pull-based copies await
    `drain()` between chunks, which suspends the loop reading the source
    until the sink has room again.

    When a copy terminates the gate is released: it opens for good, so any
    pending `drain()` returns and the waiter can observe the terminal state
    instead of blocking forever.
    """

    def __init__(self) -> None:
        self._writable = asyncio.Event()
        self._writable.set()
        self._released = False
        self.write_paused = False
        self.pauses = 0

    @property
    def released(self) -> bool:
        return self._released

    async def drain(self) -> None:
        """Block until writing is allowed again or the gate is released."""
        if not self.write_paused:
            return
        await self._writable.wait()

    def pause_writing(self) -> bool:
        """
        Close the gate. Return False if it was already closed or released.
        """
        if self.write_paused or self._released:
            return False

        self.write_paused = True
        self.pauses += 1
        self._writable.clear()
        return True

    def resume_writing(self) -> bool:
        """
        Open the gate and wake blocked drains. Return False if it was open.
        """
        if not self.write_paused:
            return False

        self.write_paused = False
        self._writable.set()
        return True

    def release(self) -> None:
        """Open the gate permanently; later pauses are ignored."""
        self._released = True
        self.resume_writing()
