import asyncio
import functools
import logging
from pathlib import Path
from typing import AsyncIterator

from sluice.core.flow.controller import copy
from sluice.core.models.copy import CopyResult
from sluice.infra.buffered_sink import BufferedSink

logger = logging.getLogger("infra.files")


def _opener(path: str | Path | int, mode: str) -> functools.partial:
    # File descriptors (e.g. a redirected stdin) stay open for their owner.
    return functools.partial(open, path, mode, closefd=not isinstance(path, int))


async def read_chunks(
    path: str | Path | int,
    chunk_size: int = 64 * 1024,
    loop: asyncio.AbstractEventLoop | None = None,
) -> AsyncIterator[bytes]:
    """
    Yield the content of a file in chunks of at most `chunk_size` bytes.

    Blocking reads run in the loop's default executor. The file is closed
    when the generator is exhausted or closed early.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")

    loop = loop or asyncio.get_running_loop()
    fh = await loop.run_in_executor(None, _opener(path, "rb"))
    try:
        while chunk := await loop.run_in_executor(None, fh.read, chunk_size):
            yield chunk
    finally:
        await loop.run_in_executor(None, fh.close)


async def file_sink(
    path: str | Path | int,
    high_water_mark: int = 16 * 1024,
    loop: asyncio.AbstractEventLoop | None = None,
) -> BufferedSink:
    """
    Open `path` for writing (truncating it) and return a BufferedSink
    writing to it from the loop's default executor. The file is closed when
    the sink finishes, fails, or is aborted.
    """
    loop = loop or asyncio.get_running_loop()
    fh = await loop.run_in_executor(None, _opener(path, "wb"))

    async def write(chunk: bytes) -> None:
        await loop.run_in_executor(None, fh.write, chunk)

    async def close() -> None:
        await loop.run_in_executor(None, fh.close)

    return BufferedSink(write, high_water_mark=high_water_mark, closer=close, loop=loop)


async def copy_file(
    source: str | Path,
    destination: str | Path,
    chunk_size: int = 64 * 1024,
    high_water_mark: int = 16 * 1024,
) -> CopyResult:
    """Stream `source` into `destination` without loading it in memory."""
    logger.info(f"Copying {source} to {destination}")
    sink = await file_sink(destination, high_water_mark=high_water_mark)
    result = await copy(read_chunks(source, chunk_size=chunk_size), sink)
    logger.info(f"Copied {result.size} byte(s) in {result.chunks} chunk(s)")
    return result
