import asyncio
import logging
import random

import pytest

from gapwatch.config import DEFAULT_CONFIG, deep_merge

class FixedRandom(random.Random):
    """random() always returns `value`, so uniform() and noise are pinned; randrange stays seeded."""
    def __init__(self, value=0.5, seed=7):
        super().__init__(seed)
        self.value = value

    def random(self):
        return self.value

class FakeClock:
    def __init__(self, start=1_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

async def no_sleep(seconds):
    await asyncio.sleep(0)

class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        await asyncio.sleep(0)

class EventRecorder:
    """Gateway observer or channel subscriber that keeps everything it is sent."""
    def __init__(self):
        self.events = []

    async def __call__(self, *args):
        self.events.append(args if len(args) > 1 else args[0])

    def named(self, name):
        return [data for event, data in self.events if event == name]

    def last(self, name):
        found = self.named(name)
        return found[-1] if found else None

@pytest.fixture
def config():
    return deep_merge(DEFAULT_CONFIG, {
        'scanner': {'connect_delay': 0.0, 'poll_interval': 0.01},
        'classifier': {
            'fetch_delay_min': 0.0, 'fetch_delay_max': 0.0,
            'think_delay_min': 0.0, 'think_delay_max': 0.0,
        },
        'executor': {'min_delay': 0.0, 'max_delay': 0.0},
        'orchestrator': {'settle_delay': 0.0, 'stats_interval': 0.01},
    })

@pytest.fixture
def logger():
    return logging.getLogger("gapwatch.tests")

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def recorder():
    return EventRecorder()

@pytest.fixture
def fixed_random():
    return FixedRandom

@pytest.fixture
def recording_sleep():
    return RecordingSleep()

@pytest.fixture
def fast_sleep():
    return no_sleep
