from datetime import datetime

import pytest

from alarms.manager import AlarmManager
from alarms.sounds import AlarmSoundPlayer, AudioPlaybackError
from alarms.storage import AlarmStore

# 2025-01-06 is a Monday (weekday code 2)
MONDAY = datetime(2025, 1, 6, 8, 0, 0)


class FakeSink:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = []
        self.owner = None

    def play(self, audio, rate, loop=False, owner="alarm", channels=1):
        if self.failures:
            self.failures -= 1
            raise AudioPlaybackError("device busy")
        self.calls.append(("play", owner, loop, rate, len(audio)))
        self.owner = owner

    def stop(self):
        self.calls.append(("stop", self.owner))
        was_playing = self.owner is not None
        self.owner = None
        return was_playing


class FakeTimer:
    def __init__(self, seconds, callback):
        self.seconds = seconds
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def expire(self):
        if not self.cancelled:
            self.callback()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, seconds, callback):
        timer = FakeTimer(seconds, callback)
        self.timers.append(timer)
        return timer


class FakeNotifier:
    def __init__(self):
        self.scheduled = {}
        self.cancelled = []
        self.running = False

    def start(self):
        self.running = True

    def shutdown(self):
        self.running = False

    def schedule(self, alarm, fire_at):
        self.scheduled[alarm.id] = fire_at

    def cancel(self, alarm_id):
        self.cancelled.append(alarm_id)
        return self.scheduled.pop(alarm_id, None) is not None


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def clock():
    return Clock(MONDAY)


@pytest.fixture
def store(tmp_path):
    return AlarmStore(tmp_path / "alarms.json")


@pytest.fixture
def manager(store, sink, notifier, clock, timers):
    return AlarmManager(
        store=store,
        sound_player=AlarmSoundPlayer(sink, tone_seconds=0.5),
        notifier=notifier,
        clock=clock,
        timer_factory=timers,
    )
