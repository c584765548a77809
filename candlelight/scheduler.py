"""Frame-synchronized cooperative scheduling.

Everything in candlelight runs on one thread, paced by the display loop: each
iteration of the window loop is a "frame", and calls ``FrameScheduler.run_frame``.
Components ask to be run at the next frame (``request_frame``) or after a delay
(``call_later``), much like a browser's animation-frame and timeout facilities.

The clock is injectable, so tests can drive time by hand:

>>> now = [0.0]
>>> scheduler = FrameScheduler(clock=lambda: now[0])
>>> fired = []
>>> _ = scheduler.call_later(500, lambda: fired.append('timer'))
>>> _ = scheduler.request_frame(lambda: fired.append('frame'))
>>> scheduler.run_frame()
>>> fired
['frame']
>>> now[0] = 0.5
>>> scheduler.run_frame()
>>> fired
['frame', 'timer']
"""

import heapq
import itertools
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[], None]
Clock = Callable[[], float]


class Cancellation:
    """A single "cancelled" flag shared by everything a session starts."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

    def __repr__(self):
        return f"{type(self).__name__}(cancelled={self._cancelled})"


class FrameScheduler:
    """
    A cooperative scheduler driven by an external frame loop.

    Args:
        clock: Function returning the current time in seconds (monotonic).

    Callbacks requested while a frame is running are deferred to the following
    frame, so a loop that re-requests itself runs exactly once per frame.
    Exceptions raised by callbacks are logged and do not stop the frame.
    """

    def __init__(self, clock: Clock = time.monotonic):
        self.clock = clock
        self._ids = itertools.count(1)
        self._frame_callbacks: Dict[int, Callback] = {}
        self._running: Dict[int, Callback] = {}  # the batch of the current frame
        self._timers: List[Tuple[float, int]] = []  # heap of (deadline_ms, handle)
        self._timer_callbacks: Dict[int, Callback] = {}
        self.frame_count = 0

    def now_ms(self) -> float:
        return self.clock() * 1000

    def request_frame(self, callback: Callback) -> int:
        """Run ``callback`` once, at the next frame. Returns a handle."""
        handle = next(self._ids)
        self._frame_callbacks[handle] = callback
        return handle

    def call_later(self, delay_ms: float, callback: Callback) -> int:
        """Run ``callback`` once, at the first frame at least ``delay_ms`` from now."""
        handle = next(self._ids)
        deadline = self.now_ms() + max(0, delay_ms)
        heapq.heappush(self._timers, (deadline, handle))
        self._timer_callbacks[handle] = callback
        return handle

    def cancel(self, handle: Optional[int]):
        """Cancel a pending frame callback or timer. Unknown handles are ignored."""
        if handle is None:
            return
        self._frame_callbacks.pop(handle, None)
        self._running.pop(handle, None)
        self._timer_callbacks.pop(handle, None)

    def cancel_all(self):
        self._frame_callbacks.clear()
        self._running.clear()
        self._timer_callbacks.clear()
        self._timers.clear()

    @property
    def pending(self) -> int:
        """Number of callbacks (frame and timer) still waiting to run."""
        return (
            len(self._frame_callbacks) + len(self._running) + len(self._timer_callbacks)
        )

    def run_frame(self):
        """Fire the timers that are due, then the frame callbacks queued so far."""
        self.frame_count += 1
        self._running, self._frame_callbacks = self._frame_callbacks, {}
        now = self.now_ms()
        while self._timers and self._timers[0][0] <= now:
            _, handle = heapq.heappop(self._timers)
            callback = self._timer_callbacks.pop(handle, None)
            if callback is not None:
                self._run(callback)

        while self._running:
            handle = next(iter(self._running))
            self._run(self._running.pop(handle))

    @staticmethod
    def _run(callback: Callback):
        try:
            callback()
        except Exception:
            logger.exception(f"Scheduled callback {callback!r} failed")
