"""
Pytest configuration and shared fixtures for the nozzle monitor test suite.
"""

import copy
import sys
from pathlib import Path

import pytest

# Ensure project root is on PYTHONPATH so 'nozzle_monitor' can be imported
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from nozzle_monitor.controllers import DispenserController  # noqa: E402


class ManualTimer:
    def __init__(self, deadline, seq, callback):
        self.deadline = deadline
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Deterministic stand-in for TimerScheduler driven by advance()."""

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._pending = []

    def schedule(self, delay, callback):
        timer = ManualTimer(self.now + delay, self._seq, callback)
        self._seq += 1
        self._pending.append(timer)
        return timer

    def pending(self):
        return [t for t in self._pending if not t.cancelled]

    def advance(self, seconds):
        """Fire, in deadline order, every timer due within `seconds`."""
        target = self.now + seconds
        while True:
            due = [t for t in self.pending() if t.deadline <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: (t.deadline, t.seq))
            self._pending.remove(timer)
            self.now = timer.deadline
            timer.callback()
        self.now = target


class RecordingPublisher:
    def __init__(self):
        self.items = []
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def enqueue(self, item):
        self.items.append(item)

    def stop(self):
        self.stopped = True


BASE_SETTINGS = {
    "device": {"id": "CONCENTRADOR", "ip": "192.168.0.91", "port": 2001, "protocol": "Horustech"},
    "engine": {
        "nozzle_count": 48,
        "unit_price": 5.89,
        "authorize_delay": 2.0,
        "tick_interval": 0.5,
        "volume_step": 0.5,
        "target_volume": 20.0,
        "reset_delay": 3.0,
        "log_transitions": False,
        "initial_states": {"05": "E", "12": "E"},
    },
    "web": {"log_requests": False},
    "mqtt": {"enabled": False},
    "demand": {"enabled": False},
}


@pytest.fixture
def settings():
    return copy.deepcopy(BASE_SETTINGS)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def controller(settings, scheduler, publisher):
    ctrl = DispenserController(settings, scheduler=scheduler, publisher=publisher)
    yield ctrl
    ctrl.cleanup()
