from typing import Any, Protocol, runtime_checkable


class SourceListener(Protocol):
    """
    Callbacks a push source invokes on whoever consumes its data.

    The naming follows asyncio.Protocol: chunks arrive through
    `data_received`, the end of data through `eof_received`, and a read
    failure through `source_failed`. All callbacks are invoked synchronously
    from the event loop.
    """

    def data_received(self, chunk: Any) -> None:
        """Called with each chunk produced by the source, in order."""

    def eof_received(self) -> None:
        """Called once the source will not produce any more chunks."""

    def source_failed(self, exc: BaseException) -> None:
        """Called when the source cannot produce data anymore."""


@runtime_checkable
class PushSource(Protocol):
    """
    A source that pushes chunks to a listener as soon as they are available.

    Data starts flowing once a listener is attached. `pause()` must stop
    `data_received` calls until `resume()` is called; chunks already
    in flight when `pause()` returns may still be delivered. `close()`
    releases the underlying resource; no callback is expected afterwards.
    """

    def attach(self, listener: SourceListener) -> None:
        """Register the listener and start producing chunks."""

    def pause(self) -> None:
        """Stop producing chunks until `resume()` is called."""

    def resume(self) -> None:
        """Resume producing chunks after `pause()`."""

    def close(self) -> None:
        """Stop producing chunks and release the source."""
