import asyncio
import pytest

from sluice.core.errors import SinkError
from sluice.core.flow.controller import copy
from sluice.infra.buffered_sink import BufferedSink
from tests.fake.fake_endpoints import TrackedSource
from tests.helpers import settle


class RecordingListener:
    def __init__(self) -> None:
        self.events: list[str] = []
        self.error: BaseException | None = None

    def pause_writing(self) -> None:
        self.events.append("pause")

    def resume_writing(self) -> None:
        self.events.append("drain")

    def sink_finished(self) -> None:
        self.events.append("finished")

    def sink_failed(self, exc: BaseException) -> None:
        self.events.append("failed")
        self.error = exc


class GatedWriter:
    """Writer that only completes a write when the test opens the gate."""

    def __init__(self) -> None:
        self.written: list[bytes] = []
        self.gate = asyncio.Event()
        self.closes = 0

    async def write(self, chunk: bytes) -> None:
        await self.gate.wait()
        self.written.append(chunk)

    async def close(self) -> None:
        self.closes += 1


@pytest.mark.ut
@pytest.mark.asyncio
async def test_write_reports_full_at_high_water_mark():
    writer = GatedWriter()
    sink = BufferedSink(writer.write, high_water_mark=4)
    listener = RecordingListener()
    sink.attach(listener)

    assert sink.write(b"ab") is True
    assert sink.write(b"cd") is False
    assert sink.buffered_size == 4

    writer.gate.set()
    await settle()

    assert writer.written == [b"ab", b"cd"]
    assert sink.buffered_size == 0
    assert listener.events == ["drain"]

    sink.abort()
    await settle()


@pytest.mark.ut
@pytest.mark.asyncio
async def test_no_drain_signal_without_refusal():
    writer = GatedWriter()
    writer.gate.set()
    sink = BufferedSink(writer.write, high_water_mark=100)
    listener = RecordingListener()
    sink.attach(listener)

    sink.write(b"abc")
    await settle()

    assert writer.written == [b"abc"]
    assert listener.events == []

    sink.abort()
    await settle()


@pytest.mark.ut
@pytest.mark.asyncio
async def test_end_flushes_then_finishes():
    writer = GatedWriter()
    sink = BufferedSink(writer.write, high_water_mark=100, closer=writer.close)
    listener = RecordingListener()
    sink.attach(listener)

    sink.write(b"a")
    sink.write(b"b")
    sink.end()
    sink.end()
    await settle()
    assert listener.events == []

    writer.gate.set()
    await settle()

    assert writer.written == [b"a", b"b"]
    assert listener.events == ["finished"]
    assert writer.closes == 1
    assert sink.closed

    with pytest.raises(SinkError):
        sink.write(b"c")


@pytest.mark.ut
@pytest.mark.asyncio
async def test_end_without_writes_finishes():
    writer = GatedWriter()
    sink = BufferedSink(writer.write, closer=writer.close)
    listener = RecordingListener()
    sink.attach(listener)

    sink.end()
    await settle()

    assert listener.events == ["finished"]
    assert writer.closes == 1


@pytest.mark.ut
@pytest.mark.asyncio
async def test_writer_error_is_reported():
    async def failing(chunk):
        raise OSError("disk full")

    closes = []

    async def close():
        closes.append(True)

    sink = BufferedSink(failing, closer=close)
    listener = RecordingListener()
    sink.attach(listener)

    sink.write(b"a")
    sink.write(b"b")
    await settle()

    assert listener.events == ["failed"]
    assert isinstance(listener.error, OSError)
    assert sink.buffered_size == 0
    assert closes == [True]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_abort_drops_buffer_and_closes_once():
    writer = GatedWriter()
    sink = BufferedSink(writer.write, closer=writer.close)
    listener = RecordingListener()
    sink.attach(listener)

    sink.write(b"a")
    sink.write(b"b")
    await settle()

    sink.abort(RuntimeError("stop"))
    sink.abort()
    await settle()

    assert writer.written == []
    assert listener.events == []
    assert writer.closes == 1
    assert sink.closed


@pytest.mark.ut
@pytest.mark.asyncio
async def test_abort_before_any_write_still_closes():
    writer = GatedWriter()
    sink = BufferedSink(writer.write, closer=writer.close)

    sink.abort()
    await settle()

    assert writer.closes == 1


@pytest.mark.ut
def test_rejects_invalid_high_water_mark():
    with pytest.raises(ValueError):
        BufferedSink(GatedWriter().write, high_water_mark=0)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_copy_through_slow_writer_keeps_buffer_bounded():
    written: list[bytes] = []
    peak = 0

    async def slow(chunk: bytes) -> None:
        nonlocal peak
        peak = max(peak, sink.buffered_size)
        await asyncio.sleep(0)
        written.append(chunk)

    sink = BufferedSink(slow, high_water_mark=8)
    chunks = [bytes([i]) * 4 for i in range(20)]

    result = await copy(TrackedSource(chunks), sink)

    assert written == chunks
    assert result.chunks == 20
    assert result.size == 80
    # The pull loop stops as soon as the mark is reached.
    assert peak <= 8


@pytest.mark.ut
def test_needs_a_running_loop():
    with pytest.raises(RuntimeError):
        BufferedSink(GatedWriter().write)
