"""Shared fixtures for HID-level tests: mock transport, fake clock and timers."""
from unittest.mock import MagicMock

import pytest

from sdeck.device_hid import HidTransport
from sdeck.services.device import StreamDeck


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.function()

    @property
    def active(self):
        return self.started and not self.cancelled and not self.fired


class FakeTimers:
    """Timer factory recording every timer it creates."""

    def __init__(self):
        self.created = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.created if t.active]

    def fire_active(self):
        """Fire the single outstanding timer."""
        active = self.active
        assert len(active) == 1, f"expected one outstanding timer, got {len(active)}"
        active[0].fire()


def make_report(*pressed: int) -> bytes:
    """17-byte input report with the given keys held."""
    keys = bytearray(15)
    for k in pressed:
        keys[k] = 1
    return bytes([0x01]) + bytes(keys) + b'\x00'


def make_mock_transport() -> MagicMock:
    """Create a MagicMock that satisfies the HidTransport interface."""
    t = MagicMock(spec=HidTransport)
    t.is_open = True
    t.read.return_value = b''
    t.write.side_effect = lambda data: len(data)
    t.send_feature_report.side_effect = lambda data: len(data)
    return t


@pytest.fixture
def clock():
    return FakeClock(100.0)


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def transport():
    return make_mock_transport()


@pytest.fixture
def deck(transport, clock, timers):
    d = StreamDeck(
        transport,
        cache_images=True,
        cache_ttl_s=60,
        min_up_time_s=0.1,
        clock=clock,
        timer_factory=timers,
        start_reader=False,
    )
    yield d
    d.close()


@pytest.fixture
def report():
    """Factory: ``report(3, 4)`` → input report with keys 3 and 4 held."""
    return make_report
