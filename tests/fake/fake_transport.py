import asyncio


class FakeTransport(asyncio.Transport):
    """
    A minimal in-memory implementation of asyncio.Transport
    intended for tests.

    It records written data and every flow-control call made on it
    (pause/resume reading, write buffer limits, close, abort). It does not
    perform any real I/O and never calls back into its protocol on its own.
    """

    def __init__(self) -> None:
        super().__init__()
        self._buffer = bytearray()
        self._closed = False
        self.aborted = False
        self.reading = True
        self.read_calls: list[str] = []
        self.limits: dict[str, int | None] = {}

    def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Cannot write to closed transport")
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError("data must be bytes-like")
        self._buffer.extend(data)

    def pause_reading(self) -> None:
        self.reading = False
        self.read_calls.append("pause")

    def resume_reading(self) -> None:
        self.reading = True
        self.read_calls.append("resume")

    def is_reading(self) -> bool:
        return self.reading

    def set_write_buffer_limits(self, high: int | None = None, low: int | None = None) -> None:
        self.limits = {"high": high, "low": low}

    def close(self) -> None:
        self._closed = True

    def abort(self) -> None:
        self._closed = True
        self.aborted = True

    def is_closing(self) -> bool:
        return self._closed

    @property
    def buffer(self) -> bytes:
        return bytes(self._buffer)
