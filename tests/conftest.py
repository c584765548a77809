"""Fakes for the sensors and the engine, and a hand-driven clock."""

import numpy as np
import pytest

from candlelight.audio import UINT8_MIDPOINT
from candlelight.scheduler import FrameScheduler


class FakeClock:
    """A clock (in seconds, like ``time.monotonic``) that only moves when told to."""

    def __init__(self, start_ms=0):
        self.ms = start_ms

    def __call__(self):
        return self.ms / 1000

    def advance(self, ms):
        self.ms += ms


def run_for(scheduler, clock, ms, *, frame_ms=16):
    """Run frames, ``frame_ms`` apart, until ``ms`` of (fake) time has passed."""
    elapsed = 0
    while elapsed < ms:
        clock.advance(frame_ms)
        elapsed += frame_ms
        scheduler.run_frame()


class FakeVideo:
    def __init__(self, width=640, height=360, *, playing=True, has_frame=True):
        self._width, self._height = width, height
        self.playing = playing
        self.play_calls = 0
        self.frame = np.zeros((height, width, 3), dtype=np.uint8) if has_frame else None

    @property
    def is_playing(self):
        return self.playing

    def play(self):
        self.play_calls += 1
        self.playing = True

    @property
    def has_frame_data(self):
        return self.frame is not None

    @property
    def width(self):
        return self._width if self.frame is not None else 0

    @property
    def height(self):
        return self._height if self.frame is not None else 0


def hand_with_fingertip(x, y):
    """A hand of 21 keypoints, with the index fingertip at (x, y)."""
    keypoints = [(0.0, 0.0)] * 21
    keypoints[8] = (x, y)
    return keypoints


class FakeModel:
    """Returns scripted results: each is a list of hands, or an exception to raise."""

    def __init__(self, script=()):
        self.script = list(script)
        self.calls = 0
        self.closed = False

    def estimate_hands(self, frame):
        self.calls += 1
        result = self.script.pop(0) if self.script else []
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


class FakeEngine:
    """
    An engine whose backends fail a given number of times before working.

    ``backend_failures`` maps a backend name to the number of times selecting it
    fails (``None`` for always).
    """

    def __init__(self, *, backend_failures=None, create_failures=0, model=None):
        self.backend_failures = dict(backend_failures or {})
        self.create_failures = create_failures
        self.model = model or FakeModel()
        self.selected = []
        self.created = []

    def select_backend(self, name):
        self.selected.append(name)
        remaining = self.backend_failures.get(name, 0)
        if remaining is None:
            raise RuntimeError(f"{name} not supported")
        if remaining > 0:
            self.backend_failures[name] = remaining - 1
            raise RuntimeError(f"{name} failed")

    def create_detector(self, backend, config):
        self.created.append((backend, config))
        if self.create_failures:
            self.create_failures -= 1
            raise RuntimeError("Could not create the detector")
        return self.model


class FakeMicrophone:
    def __init__(self, window_size=2048):
        self.window = np.full(window_size, UINT8_MIDPOINT, dtype=np.uint8)
        self.closed = False
        self.reads = 0

    def read_window(self):
        self.reads += 1
        return self.window.copy()

    def make_loud(self):
        self.window[::2] = 0
        self.window[1::2] = 255

    def make_quiet(self):
        self.window[:] = UINT8_MIDPOINT

    def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return FrameScheduler(clock=clock)
