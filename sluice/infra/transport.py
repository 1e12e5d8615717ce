import asyncio
import logging
from typing import IO, Any

from sluice.core.errors import SinkError
from sluice.core.ports.sink import Sink, SinkListener
from sluice.core.ports.source import PushSource, SourceListener


class TransportSource(asyncio.Protocol, PushSource):
    """
    Push source reading from an asyncio transport (socket or pipe).

    Reading is paused as soon as the connection is made and stays paused
    until a listener is attached, so no data is read that nobody can
    consume. Afterwards `pause()` / `resume()` map directly onto the
    transport's `pause_reading()` / `resume_reading()`, which stops the
    event loop from reading the file descriptor at all.

    End of data is reported once, either from `eof_received` or from a
    clean `connection_lost`. A connection lost with an exception is
    reported as a source failure. Nothing is reported after `close()`.
    """

    def __init__(self) -> None:
        self._transport: asyncio.ReadTransport = None  # type: ignore[assignment]
        self._listener: SourceListener | None = None
        self._backlog: list[bytes] = []
        self._paused = False
        self._eof = False
        self._closed = False
        self._logger = logging.getLogger("infra.transport.source")

    @property
    def transport(self) -> asyncio.ReadTransport:
        return self._transport

    def attach(self, listener: SourceListener) -> None:
        self._listener = listener

        backlog, self._backlog = self._backlog, []
        for data in backlog:
            listener.data_received(data)
        if self._eof:
            listener.eof_received()
            return

        if self._transport is not None and not self._paused:
            self._transport.resume_reading()

    def pause(self) -> None:
        self._paused = True
        if self._transport is not None:
            self._transport.pause_reading()

    def resume(self) -> None:
        self._paused = False
        if self._transport is not None and self._listener is not None:
            self._transport.resume_reading()

    def close(self) -> None:
        self._closed = True
        if self._transport is not None:
            self._transport.close()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]
        if self._listener is None or self._paused:
            self._transport.pause_reading()

    def data_received(self, data: bytes) -> None:
        if self._closed:
            return

        if self._listener is None:
            self._backlog.append(data)
            return

        self._listener.data_received(data)

    def eof_received(self) -> bool | None:
        self._report_eof()
        # Let the transport close itself.
        return None

    def connection_lost(self, exc: Exception | None) -> None:
        if self._closed:
            return

        if exc is not None:
            self._logger.warning(f"Connection lost while reading: {exc}")
            if self._listener is not None:
                self._listener.source_failed(exc)
            return

        self._report_eof()

    def _report_eof(self) -> None:
        if self._eof:
            return

        self._eof = True
        if self._listener is not None and not self._closed:
            self._listener.eof_received()


class TransportSink(asyncio.Protocol, Sink):
    """
    Sink writing to an asyncio transport (socket or pipe).

    The transport owns the buffer: it calls `pause_writing()` on its protocol
    when the buffer goes over the high-water mark and `resume_writing()` once
    it has drained below the low-water mark. Both are forwarded to the
    listener, and `write()` reports whether the transport is paused.

    `end()` closes the transport, which flushes the buffer first; the
    resulting clean `connection_lost` is reported as `sink_finished`.
    """

    def __init__(self, high_water_mark: int | None = None) -> None:
        self._transport: asyncio.WriteTransport = None  # type: ignore[assignment]
        self._listener: SinkListener | None = None
        self._high_water_mark = high_water_mark
        self._write_paused = False
        self._ending = False
        self._aborted = False
        self._lost = False
        self._logger = logging.getLogger("infra.transport.sink")

    @property
    def transport(self) -> asyncio.WriteTransport:
        return self._transport

    def attach(self, listener: SinkListener) -> None:
        self._listener = listener

    def write(self, chunk: Any) -> bool:
        if self._lost or self._aborted or self._ending:
            raise SinkError("Cannot write to a closed transport")

        self._transport.write(chunk)
        return not self._write_paused

    def end(self) -> None:
        if self._ending or self._aborted:
            return

        self._ending = True
        if self._lost:
            self._notify("sink_finished")
            return

        self._transport.close()

    def abort(self, exc: BaseException | None = None) -> None:
        if self._aborted:
            return

        self._aborted = True
        if self._transport is not None and not self._lost:
            self._transport.abort()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]
        if self._high_water_mark is not None:
            self._transport.set_write_buffer_limits(high=self._high_water_mark)

    def pause_writing(self) -> None:
        self._write_paused = True
        self._notify("pause_writing")

    def resume_writing(self) -> None:
        if self._write_paused:
            self._write_paused = False
            self._notify("resume_writing")

    def connection_lost(self, exc: Exception | None) -> None:
        self._lost = True
        if self._aborted:
            return

        if exc is not None:
            self._logger.warning(f"Connection lost while writing: {exc}")
            self._notify("sink_failed", exc)
        else:
            self._notify("sink_finished")

    def _notify(self, event: str, *args: Any) -> None:
        if self._listener is None:
            return
        getattr(self._listener, event)(*args)


async def connect_read_pipe(
    pipe: IO[bytes],
    loop: asyncio.AbstractEventLoop | None = None,
) -> TransportSource:
    """Wrap a readable pipe (e.g. stdin) into a TransportSource."""
    loop = loop or asyncio.get_running_loop()
    _, source = await loop.connect_read_pipe(TransportSource, pipe)
    return source


async def connect_write_pipe(
    pipe: IO[bytes],
    high_water_mark: int | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> TransportSink:
    """Wrap a writable pipe (e.g. stdout) into a TransportSink."""
    loop = loop or asyncio.get_running_loop()
    _, sink = await loop.connect_write_pipe(
        lambda: TransportSink(high_water_mark=high_water_mark),
        pipe
    )
    return sink
