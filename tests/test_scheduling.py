import asyncio

import pytest

from backend.utils.scheduling import RecurringTask


@pytest.mark.asyncio
async def test_recurring_task_ticks_until_cancelled():
    calls = []

    async def callback():
        calls.append(1)

    task = RecurringTask(0.01, callback)
    task.start()
    await asyncio.sleep(0.055)
    task.cancel()
    count = len(calls)
    await asyncio.sleep(0.03)

    assert count >= 2
    assert len(calls) == count
    assert not task.running


@pytest.mark.asyncio
async def test_cancel_lets_in_flight_run_finish():
    finished = asyncio.Event()

    async def slow():
        await asyncio.sleep(0.05)
        finished.set()

    task = RecurringTask(0.01, slow)
    task.start()
    await asyncio.sleep(0.02)
    task.cancel()
    await task.wait_idle()

    assert finished.is_set()


@pytest.mark.asyncio
async def test_tick_skipped_while_previous_run_in_flight():
    active = 0
    peak = 0

    async def slow():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.05)
        active -= 1

    task = RecurringTask(0.01, slow)
    task.start()
    await asyncio.sleep(0.12)
    task.cancel()
    await task.wait_idle()

    assert peak == 1


@pytest.mark.asyncio
async def test_failing_run_does_not_stop_schedule():
    calls = []

    async def flaky():
        calls.append(1)
        raise RuntimeError("boom")

    task = RecurringTask(0.01, flaky)
    task.start()
    await asyncio.sleep(0.05)
    task.cancel()

    assert len(calls) >= 2
