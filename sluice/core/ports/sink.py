from typing import Any, Protocol, runtime_checkable


class SinkListener(Protocol):
    """
    Callbacks a sink invokes to report its capacity and lifecycle.

    `pause_writing` / `resume_writing` mirror the asyncio.Protocol flow
    control callbacks: the former may be called when the internal buffer
    crosses its high-water mark, the latter (the drain signal) once there
    is room again.
    """

    def pause_writing(self) -> None:
        """The sink's buffer is full."""

    def resume_writing(self) -> None:
        """The sink's buffer has drained; writing may resume."""

    def sink_finished(self) -> None:
        """Every chunk written before `end()` has been flushed."""

    def sink_failed(self, exc: BaseException) -> None:
        """The sink cannot accept or flush data anymore."""


@runtime_checkable
class Sink(Protocol):
    """
    A writable destination with bounded internal capacity.

    `write()` always accepts the chunk. Its return value is advisory: True
    when there is still room in the buffer, False once the buffer is full,
    in which case the writer should hold off until the drain signal.
    """

    def attach(self, listener: SinkListener) -> None:
        """Register the listener receiving capacity and lifecycle signals."""

    def write(self, chunk: Any) -> bool:
        """Buffer a chunk. Return False if the buffer is now full."""

    def end(self) -> None:
        """Flush buffered chunks and finish; report `sink_finished` when done."""

    def abort(self, exc: BaseException | None = None) -> None:
        """Drop buffered chunks and release the sink immediately."""
