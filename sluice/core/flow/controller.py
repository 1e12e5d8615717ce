import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from sluice.core.errors import CopyAbortedError, CopyError, SinkError, SourceError
from sluice.core.flow.control import FlowControl
from sluice.core.models.copy import CopyResult, CopyState
from sluice.core.ports.sink import Sink
from sluice.core.ports.source import PushSource


class FlowController:
    """
    Moves chunks from a source into a capacity-limited sink without
    unbounded buffering, dropping, or reordering.

    The controller is the listener of both endpoints. Every chunk produced by
    the source is written to the sink; when `Sink.write()` returns False the
    controller is throttled: a push source is paused, and a pull loop stops
    asking for the next chunk. The sink's drain signal (`resume_writing`)
    lets data flow again.

    Once the source reports its end, the sink is ended, after waiting for
    the final drain if the last write filled it up. The copy finishes when
    the sink confirms that everything was flushed (`sink_finished`).

    Any failure on either side is terminal: the source is closed, the sink is
    aborted, and the error is delivered once through the result future as a
    SourceError or SinkError chained to the original exception. Late
    signals (a second EOF, extra drains, errors after completion) are
    ignored.

    A controller drives a single copy. Use `run()` with a push source or an
    async iterable, or feed it by hand with `write()` and `close()`.
    """

    def __init__(
        self,
        sink: Sink,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._sink = sink
        self._loop = loop or asyncio.get_running_loop()
        self._flow = FlowControl()
        self._done: asyncio.Future[CopyResult] = self._loop.create_future()
        self._state = CopyState.flowing
        self._result = CopyResult()
        self._source: PushSource | None = None
        self._pump: asyncio.Task[None] | None = None
        self._eof = False
        self._ending = False
        self._logger = logging.getLogger("core.flow.controller")

        sink.attach(self)

    @property
    def state(self) -> CopyState:
        return self._state

    @property
    def result(self) -> CopyResult:
        """Running totals of what has been written so far."""
        return self._result

    @property
    def flow(self) -> FlowControl:
        return self._flow

    def done(self) -> bool:
        return self._done.done()

    async def run(self, source: PushSource | AsyncIterable[Any]) -> CopyResult:
        """
        Copy everything `source` produces into the sink.

        A PushSource is attached and paused/resumed as the sink fills and
        drains. Any other async iterable is pulled chunk by chunk from a
        background task that waits for the sink to drain between chunks.
        """
        if self._source is not None or self._pump is not None:
            raise RuntimeError("This controller is already running a copy")

        if isinstance(source, PushSource):
            self._source = source
            source.attach(self)
        elif isinstance(source, AsyncIterable):
            self._pump = self._loop.create_task(self._pull(source))
        else:
            raise TypeError(
                f"Expected a PushSource or an async iterable, got {type(source).__name__}"
            )

        return await self.wait()

    async def write(self, chunk: Any) -> None:
        """
        Write a single chunk, then wait until it is OK to write again.

        Raises the copy error if the copy failed meanwhile.
        """
        if self._eof or self._state.terminal:
            raise CopyError("Cannot write after the end of the copy")

        self.data_received(chunk)
        await self._flow.drain()

        if self._state is CopyState.failed:
            self._done.result()

    async def close(self) -> CopyResult:
        """Signal the end of data and wait for the sink to flush."""
        self.eof_received()
        return await self.wait()

    async def wait(self) -> CopyResult:
        """
        Wait for the copy to finish and return its result.

        Cancelling the waiting task aborts the copy.
        """
        try:
            return await asyncio.shield(self._done)
        except asyncio.CancelledError:
            if not self._done.done():
                self.abort()
                # The caller is gone; mark the abort error as retrieved.
                self._done.exception()
            raise

    def abort(self, exc: BaseException | None = None) -> None:
        """Terminate the copy immediately and release both endpoints."""
        self._fail(CopyAbortedError("Copy aborted"), exc)

    # Source callbacks

    def data_received(self, chunk: Any) -> None:
        if self._state.terminal:
            self._logger.debug(f"Dropping chunk received after the copy {self._state}")
            return

        if self._eof:
            self._logger.warning("Dropping chunk received after end of source")
            return

        try:
            has_room = self._sink.write(chunk)
        except Exception as exc:
            self._fail(SinkError(f"Sink write failed: {exc}"), exc)
            return

        self._result.chunks += 1
        try:
            self._result.size += len(chunk)
        except TypeError:
            pass

        if not has_room:
            self.pause_writing()

    def eof_received(self) -> None:
        if self._eof or self._state.terminal:
            self._logger.debug("Ignoring duplicate end of source")
            return

        self._eof = True
        if self._state is CopyState.throttled:
            self._logger.debug("Source ended while throttled, waiting for drain")
            return

        self._end_sink()

    def source_failed(self, exc: BaseException) -> None:
        self._fail(SourceError(f"Source failed: {exc}"), exc)

    # Sink callbacks

    def pause_writing(self) -> None:
        if self._state is not CopyState.flowing:
            return

        if not self._flow.pause_writing():
            return

        self._state = CopyState.throttled
        self._logger.debug(f"Sink full after {self._result.chunks} chunk(s), throttling")

        if self._source is not None and not self._eof:
            try:
                self._source.pause()
            except Exception as exc:
                self._fail(SourceError(f"Source failed to pause: {exc}"), exc)

    def resume_writing(self) -> None:
        if self._state is not CopyState.throttled:
            self._logger.debug(f"Ignoring drain signal while {self._state}")
            return

        self._state = CopyState.flowing
        self._flow.resume_writing()
        self._logger.debug("Sink drained, resuming")

        if self._eof:
            self._end_sink()
            return

        if self._source is not None:
            try:
                self._source.resume()
            except Exception as exc:
                self._fail(SourceError(f"Source failed to resume: {exc}"), exc)

    def sink_finished(self) -> None:
        if self._state.terminal:
            self._logger.debug(f"Ignoring sink completion while {self._state}")
            return

        if not self._ending:
            self._fail(SinkError("Sink closed before the source ended"), None)
            return

        self._state = CopyState.finished
        self._flow.release()
        self._logger.debug(
            f"Copy finished: {self._result.chunks} chunk(s), "
            f"{self._result.size} byte(s), throttled {self._flow.pauses} time(s)"
        )
        self._done.set_result(self._result)

    def sink_failed(self, exc: BaseException) -> None:
        self._fail(SinkError(f"Sink failed: {exc}"), exc)

    # Internals

    async def _pull(self, source: AsyncIterable[Any]) -> None:
        iterator: AsyncIterator[Any] = aiter(source)
        try:
            async for chunk in iterator:
                self.data_received(chunk)
                await self._flow.drain()
                if self._state.terminal:
                    break
            else:
                self.eof_received()
        except Exception as exc:
            self.source_failed(exc)
        finally:
            await self._close_iterator(iterator)

    async def _close_iterator(self, iterator: AsyncIterator[Any]) -> None:
        aclose = getattr(iterator, "aclose", None)
        if aclose is None:
            return

        try:
            await aclose()
        except Exception as exc:
            self._logger.warning(f"Error while closing source iterator: {exc}")

    def _end_sink(self) -> None:
        if self._ending:
            return

        self._ending = True
        try:
            self._sink.end()
        except Exception as exc:
            self._fail(SinkError(f"Sink failed to end: {exc}"), exc)

    def _fail(self, error: CopyError, cause: BaseException | None) -> None:
        if self._state.terminal:
            self._logger.debug(f"Ignoring {error!r} after the copy {self._state}")
            return

        error.__cause__ = cause
        self._logger.error(f"Copy failed while {self._state}: {error}")
        self._state = CopyState.failed
        self._flow.release()

        self._release_source()
        try:
            self._sink.abort(error)
        except Exception as exc:
            self._logger.warning(f"Error while aborting sink: {exc}")

        self._done.set_exception(error)

    def _release_source(self) -> None:
        if self._source is not None:
            try:
                self._source.close()
            except Exception as exc:
                self._logger.warning(f"Error while closing source: {exc}")

        pump = self._pump
        if pump is not None and not pump.done() and pump is not asyncio.current_task(self._loop):
            pump.cancel()


async def copy(
    source: PushSource | AsyncIterable[Any],
    sink: Sink,
    loop: asyncio.AbstractEventLoop | None = None,
) -> CopyResult:
    """
    Copy every chunk of `source` into `sink`, honouring the sink's
    backpressure. Resolves once the sink has flushed everything, or raises
    the first SourceError / SinkError encountered.
    """
    controller = FlowController(sink, loop=loop)
    return await controller.run(source)
