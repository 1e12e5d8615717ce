import asyncio
import pytest

from sluice.core.flow.control import FlowControl


@pytest.mark.ut
@pytest.mark.asyncio
async def test_initial_state():
    fc = FlowControl()
    assert fc.write_paused is False
    assert fc.released is False
    assert fc.pauses == 0

    await fc.drain()


@pytest.mark.ut
def test_pause_writing_counts_transitions():
    fc = FlowControl()

    assert fc.pause_writing() is True
    assert fc.pause_writing() is False
    assert fc.write_paused is True
    assert fc.pauses == 1


@pytest.mark.ut
def test_resume_writing_only_when_paused():
    fc = FlowControl()
    assert fc.resume_writing() is False

    fc.pause_writing()
    assert fc.resume_writing() is True
    assert fc.write_paused is False


@pytest.mark.ut
@pytest.mark.asyncio
async def test_drain_blocks_until_resume():
    fc = FlowControl()
    fc.pause_writing()

    async def waiter():
        await fc.drain()
        return "done"

    task = asyncio.create_task(waiter())

    await asyncio.sleep(0)
    assert not task.done()

    fc.resume_writing()

    assert await task == "done"


@pytest.mark.ut
@pytest.mark.asyncio
async def test_multiple_drains_unblocked_on_resume():
    fc = FlowControl()
    fc.pause_writing()

    results = []

    async def waiter(i):
        await fc.drain()
        results.append(i)

    tasks = [asyncio.create_task(waiter(i)) for i in range(3)]

    await asyncio.sleep(0)
    assert results == []

    fc.resume_writing()
    await asyncio.gather(*tasks)

    assert results == [0, 1, 2]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_release_wakes_waiters_and_ignores_later_pauses():
    fc = FlowControl()
    fc.pause_writing()

    task = asyncio.create_task(fc.drain())
    await asyncio.sleep(0)

    fc.release()
    await task

    assert fc.released
    assert fc.pause_writing() is False
    assert fc.write_paused is False
    await fc.drain()
