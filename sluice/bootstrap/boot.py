import asyncio
import logging
import os
import stat
import sys
from typing import IO, Any, AsyncIterable

from sluice.bootstrap.config.loader import get_cli_args
from sluice.bootstrap.config.settings import FlowSettings, SluiceConfig
from sluice.bootstrap.deps import get_config
from sluice.core.errors import CopyAbortedError, SluiceError
from sluice.core.flow.controller import copy
from sluice.core.helpers.utils import setup_logging, setup_signal_handler
from sluice.core.models.copy import CopyResult
from sluice.core.ports.sink import Sink
from sluice.core.ports.source import PushSource
from sluice.infra.files import file_sink, read_chunks
from sluice.infra.transport import connect_read_pipe, connect_write_pipe

STDIO = "-"

logger = logging.getLogger("bootstrap.boot")


def is_stream(stream: IO[Any]) -> bool:
    """True if `stream` is a pipe, socket, or terminal rather than a regular file."""
    mode = os.fstat(stream.fileno()).st_mode
    return stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode) or stat.S_ISCHR(mode)


async def open_source(name: str, flow: FlowSettings) -> PushSource | AsyncIterable[bytes]:
    if name != STDIO:
        return read_chunks(name, chunk_size=flow.chunk_size)

    stdin = sys.stdin.buffer
    if is_stream(stdin):
        return await connect_read_pipe(stdin)
    return read_chunks(stdin.fileno(), chunk_size=flow.chunk_size)


async def open_sink(name: str, flow: FlowSettings) -> Sink:
    if name != STDIO:
        return await file_sink(name, high_water_mark=flow.high_water_mark)

    stdout = sys.stdout.buffer
    stdout.flush()
    if is_stream(stdout):
        return await connect_write_pipe(stdout, high_water_mark=flow.high_water_mark)
    return await file_sink(stdout.fileno(), high_water_mark=flow.high_water_mark)


async def close_source(source: PushSource | AsyncIterable[bytes]) -> None:
    if isinstance(source, PushSource):
        source.close()
        return

    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


async def run_copy(source: str, destination: str, config: SluiceConfig) -> CopyResult:
    """
    Copy `source` to `destination` until done or until a shutdown signal
    is received, in which case the copy is aborted.
    """
    async def transfer() -> CopyResult:
        src = await open_source(source, config.flow)
        try:
            sink = await open_sink(destination, config.flow)
        except BaseException:
            await close_source(src)
            raise
        return await copy(src, sink)

    with setup_signal_handler() as stop_event:
        task = asyncio.create_task(transfer())

        while not task.done():
            await asyncio.wait({task}, timeout=0.1)
            if stop_event.is_set() and not task.done():
                logger.warning("Shutdown requested, aborting copy")
                task.cancel()
                await asyncio.wait({task})

        if task.cancelled():
            raise CopyAbortedError("Copy interrupted by signal")

        return task.result()


def main() -> None:
    cli = get_cli_args()
    setup_logging(cli.log_level)
    config = get_config()

    try:
        result = asyncio.run(run_copy(cli.source, cli.destination, config))
    except (SluiceError, OSError) as exc:
        raise SystemExit(f"sluice-copy: {exc}")
    except KeyboardInterrupt:
        raise SystemExit(130)

    logger.info(f"Done: {result.size} byte(s) in {result.chunks} chunk(s)")
