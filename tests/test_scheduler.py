import asyncio

import pytest

from gapwatch.channel import EventChannel
from gapwatch.scheduler import PeriodicTask

@pytest.mark.asyncio
async def test_runs_until_stopped(logger):
    ticks = []

    async def tick():
        ticks.append(1)

    task = PeriodicTask("tick", 0.01, tick, logger)
    task.start()
    task.start()
    await asyncio.sleep(0.06)
    await task.stop()

    assert task.running is False
    assert len(ticks) >= 2
    seen = len(ticks)
    await asyncio.sleep(0.03)
    assert len(ticks) == seen

@pytest.mark.asyncio
async def test_failing_callback_keeps_schedule(logger):
    async def boom():
        raise ValueError("nope")

    task = PeriodicTask("boom", 0.01, boom, logger)
    task.start()
    await asyncio.sleep(0.05)
    assert task.running
    await task.stop()
    assert task.runs >= 2

@pytest.mark.asyncio
async def test_stop_without_start(logger):
    async def noop():
        pass

    await PeriodicTask("idle", 1, noop, logger).stop()

@pytest.mark.asyncio
async def test_channel_delivers_in_order_and_survives_bad_subscriber(logger, recorder):
    channel = EventChannel("test", logger)

    async def broken(event):
        raise RuntimeError("bad subscriber")

    channel.subscribe(broken)
    channel.subscribe(recorder)
    for n in range(3):
        await channel.publish(n)
    channel.unsubscribe(recorder)
    await channel.publish(99)

    assert recorder.events == [0, 1, 2]
