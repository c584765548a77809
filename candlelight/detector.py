"""Hand landmark detector adapter, with backend fallback and retrying initialization.

The inference engine itself is opaque: anything with the ``LandmarkEngine`` methods
will do (see ``candlelight.mediapipe_engine`` for the MediaPipe one). This module
brings it up in steps::

    NOT_STARTED -> SELECTING_BACKEND -> WAITING_FOR_VIDEO -> CREATING_DETECTOR -> READY

or ends in FAILED. The step logic is the pure ``transition`` function; the
``HandLandmarkDetector`` carries out the side effects of each step and uses the frame
scheduler for the waits in between.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Sequence

from candlelight.geometry import Keypoint
from candlelight.scheduler import Cancellation, FrameScheduler

logger = logging.getLogger(__name__)

Hand = Sequence[Keypoint]

# -------------------------------------------------------------------------------
# Errors
# -------------------------------------------------------------------------------


class BackendUnavailableError(RuntimeError):
    """Raised when no compute backend could be selected."""


class DetectorNotReadyError(RuntimeError):
    """Raised when detecting with a detector that isn't initialized."""


# -------------------------------------------------------------------------------
# Configuration
# -------------------------------------------------------------------------------

DFLT_PREFERRED_BACKEND = 'gpu'
DFLT_FALLBACK_BACKEND = 'cpu'


@dataclass(frozen=True)
class DetectorConfig:
    max_hands: int = 1
    model_variant: str = 'lite'


@dataclass(frozen=True)
class InitPolicy:
    preferred_backend: str = DFLT_PREFERRED_BACKEND
    fallback_backend: Optional[str] = DFLT_FALLBACK_BACKEND
    video_poll_attempts: int = 10
    video_poll_delay_ms: float = 500
    retry_base_delay_ms: float = 1000
    retry_max_delay_ms: float = 5000
    max_attempts: int = 5


DFLT_DETECTOR_CONFIG = DetectorConfig()
DFLT_INIT_POLICY = InitPolicy()


class LandmarkEngine:
    """
    The interface of a hand landmark inference engine.

    ``select_backend(name)`` raises if the backend can't be used.
    ``create_detector(backend, config)`` returns a model with ``estimate_hands(frame)``
    (returning a list of hands, each a list of (x, y) keypoints in frame pixels) and
    ``close()``.
    """

    def select_backend(self, name: str) -> None:
        raise NotImplementedError

    def create_detector(self, backend: str, config: DetectorConfig):
        raise NotImplementedError


# -------------------------------------------------------------------------------
# Initialization state machine
# -------------------------------------------------------------------------------


class InitState(str, Enum):
    NOT_STARTED = 'not_started'
    SELECTING_BACKEND = 'selecting_backend'
    WAITING_FOR_VIDEO = 'waiting_for_video'
    CREATING_DETECTOR = 'creating_detector'
    READY = 'ready'
    FAILED = 'failed'


class InitEvent(str, Enum):
    START = 'start'
    BACKEND_SELECTED = 'backend_selected'
    VIDEO_NOT_READY = 'video_not_ready'
    VIDEO_READY = 'video_ready'
    DETECTOR_CREATED = 'detector_created'
    ERROR = 'error'


@dataclass(frozen=True)
class InitProgress:
    state: InitState = InitState.NOT_STARTED
    failures: int = 0
    video_polls: int = 0
    backend: Optional[str] = None
    reason: Optional[str] = None


class Transition(NamedTuple):
    progress: InitProgress
    delay_ms: Optional[float]  # when to run the next step; None: nothing to run


def backoff_delay(failures: int, policy: InitPolicy = DFLT_INIT_POLICY) -> float:
    """
    Delay before retrying after the given number of failures.

    >>> [backoff_delay(n) for n in range(1, 5)]
    [1000, 2000, 4000, 5000]
    """
    delay = policy.retry_base_delay_ms * 2 ** (failures - 1)
    return min(delay, policy.retry_max_delay_ms)


_EXPECTED_STATE = {
    InitEvent.START: InitState.NOT_STARTED,
    InitEvent.BACKEND_SELECTED: InitState.SELECTING_BACKEND,
    InitEvent.VIDEO_NOT_READY: InitState.WAITING_FOR_VIDEO,
    InitEvent.VIDEO_READY: InitState.WAITING_FOR_VIDEO,
    InitEvent.DETECTOR_CREATED: InitState.CREATING_DETECTOR,
}

TERMINAL_STATES = frozenset({InitState.READY, InitState.FAILED})


def transition(
    progress: InitProgress,
    event: InitEvent,
    policy: InitPolicy = DFLT_INIT_POLICY,
    *,
    backend: Optional[str] = None,
) -> Transition:
    """
    The next initialization progress, and when to carry out its step.

    >>> t = transition(InitProgress(), InitEvent.START)
    >>> t.progress.state, t.delay_ms
    (<InitState.SELECTING_BACKEND: 'selecting_backend'>, 0)
    >>> t = transition(t.progress, InitEvent.ERROR)
    >>> t.progress.state, t.progress.failures, t.delay_ms
    (<InitState.SELECTING_BACKEND: 'selecting_backend'>, 1, 1000)
    """
    state = progress.state
    if state in TERMINAL_STATES:
        raise ValueError(f"Initialization already ended ({state.value})")

    if event is InitEvent.ERROR:
        failures = progress.failures + 1
        if failures >= policy.max_attempts:
            return Transition(
                replace(
                    progress,
                    state=InitState.FAILED,
                    failures=failures,
                    reason='retries-exhausted',
                ),
                None,
            )
        return Transition(
            replace(
                progress,
                state=InitState.SELECTING_BACKEND,
                failures=failures,
                video_polls=0,
                backend=None,
            ),
            backoff_delay(failures, policy),
        )

    if _EXPECTED_STATE[event] is not state:
        raise ValueError(f"Unexpected {event.value!r} while {state.value!r}")

    if event is InitEvent.START:
        return Transition(replace(progress, state=InitState.SELECTING_BACKEND), 0)
    if event is InitEvent.BACKEND_SELECTED:
        return Transition(
            replace(
                progress,
                state=InitState.WAITING_FOR_VIDEO,
                backend=backend,
                video_polls=0,
            ),
            0,
        )
    if event is InitEvent.VIDEO_NOT_READY:
        polls = progress.video_polls + 1
        if polls >= policy.video_poll_attempts:
            return Transition(
                replace(
                    progress,
                    state=InitState.FAILED,
                    video_polls=polls,
                    reason='video-unavailable',
                ),
                None,
            )
        return Transition(
            replace(progress, video_polls=polls), policy.video_poll_delay_ms
        )
    if event is InitEvent.VIDEO_READY:
        return Transition(replace(progress, state=InitState.CREATING_DETECTOR), 0)
    # DETECTOR_CREATED
    return Transition(replace(progress, state=InitState.READY), None)


# -------------------------------------------------------------------------------
# Adapter
# -------------------------------------------------------------------------------


def video_is_ready(video) -> bool:
    """Whether the video exists, plays, and has non-zero dimensions."""
    if video is None:
        return False
    if not video.is_playing:
        try:
            video.play()
        except Exception as e:
            logger.warning(f"Could not start the video: {e}")
    return bool(video.is_playing and video.width and video.height)


class HandLandmarkDetector:
    """
    Brings up a landmark engine and detects hands with it.

    Args:
        engine: The ``LandmarkEngine`` to use.
        video: The video source (``is_playing``, ``play()``, ``width``, ``height``),
            or a function returning it (or None, while it doesn't exist yet).
        scheduler: The frame scheduler, used for retry and polling delays.
        config: Fixed configuration of the detector to create.
        policy: Backends, polling and retry settings.
        cancellation: Shared cancellation flag; when set, no further step runs.
        on_state_change: Called with each new ``InitState``.
    """

    def __init__(
        self,
        engine: LandmarkEngine,
        video,
        scheduler: FrameScheduler,
        *,
        config: DetectorConfig = DFLT_DETECTOR_CONFIG,
        policy: InitPolicy = DFLT_INIT_POLICY,
        cancellation: Optional[Cancellation] = None,
        on_state_change: Optional[Callable[[InitState], None]] = None,
    ):
        self.engine = engine
        self._video = video
        self.scheduler = scheduler
        self.config = config
        self.policy = policy
        self.cancellation = cancellation or Cancellation()
        self.on_state_change = on_state_change
        self.progress = InitProgress()
        self._model = None
        self._handle: Optional[int] = None
        self._closed = False

    @property
    def video(self):
        return self._video() if callable(self._video) else self._video

    @property
    def state(self) -> InitState:
        return self.progress.state

    @property
    def is_ready(self) -> bool:
        return self.progress.state is InitState.READY and self._model is not None

    def initialize(self):
        """Start initializing. Runs the first step right away."""
        if self.progress.state is not InitState.NOT_STARTED:
            return
        self._closed = False
        self._apply(InitEvent.START)

    def detect(self, frame) -> List[Hand]:
        """The hands in ``frame``. Raises if the detector isn't ready, or fails."""
        if not self.is_ready:
            raise DetectorNotReadyError("The hand detector is not ready")
        return self._model.estimate_hands(frame)

    def close(self):
        """Cancel pending steps and release the detector. Safe to call any time."""
        self._closed = True
        self.scheduler.cancel(self._handle)
        self._handle = None
        model, self._model = self._model, None
        if model is not None:
            try:
                model.close()
            except Exception as e:
                logger.warning(f"Error while releasing the hand detector: {e}")
        # A new initialization starts from scratch
        self.progress = InitProgress()

    # -------------------------------------------------------------------------
    # Steps

    def _apply(self, event: InitEvent, **kwargs):
        previous = self.progress.state
        self.progress, delay_ms = transition(
            self.progress, event, self.policy, **kwargs
        )
        state = self.progress.state
        if state is not previous:
            self._log_state(state)
            if self.on_state_change:
                self.on_state_change(state)
        if delay_ms is None:
            return
        if delay_ms == 0:
            self._step()
        else:
            self._handle = self.scheduler.call_later(delay_ms, self._scheduled_step)

    def _scheduled_step(self):
        self._handle = None
        self._step()

    def _step(self):
        if self._stopped:
            return
        state = self.progress.state
        try:
            if state is InitState.SELECTING_BACKEND:
                backend = self._select_backend()
                self._apply(InitEvent.BACKEND_SELECTED, backend=backend)
            elif state is InitState.WAITING_FOR_VIDEO:
                if video_is_ready(self.video):
                    self._apply(InitEvent.VIDEO_READY)
                else:
                    logger.warning(
                        "Video not ready yet, waiting... "
                        f"({self.progress.video_polls + 1}/{self.policy.video_poll_attempts})"
                    )
                    self._apply(InitEvent.VIDEO_NOT_READY)
            elif state is InitState.CREATING_DETECTOR:
                self._model = self.engine.create_detector(
                    self.progress.backend, self.config
                )
                if self._stopped:
                    self.close()
                    return
                self._apply(InitEvent.DETECTOR_CREATED)
        except Exception as e:
            if self._stopped:
                return
            logger.warning(
                f"Hand tracking initialization failed while {state.value}: {e}"
            )
            self._apply(InitEvent.ERROR)

    def _select_backend(self) -> str:
        preferred = self.policy.preferred_backend
        try:
            self.engine.select_backend(preferred)
            return preferred
        except Exception as e:
            fallback = self.policy.fallback_backend
            if not fallback or fallback == preferred:
                raise BackendUnavailableError(
                    f"Backend {preferred!r} unavailable: {e}"
                ) from e
            logger.warning(
                f"Backend {preferred!r} unavailable ({e}), falling back to {fallback!r}"
            )
        try:
            self.engine.select_backend(fallback)
        except Exception as e:
            raise BackendUnavailableError(
                f"Neither {preferred!r} nor {fallback!r} backends are available: {e}"
            ) from e
        return fallback

    @property
    def _stopped(self) -> bool:
        return self._closed or self.cancellation.cancelled

    def _log_state(self, state: InitState):
        if state is InitState.READY:
            logger.info(f"Hand detector ready (backend: {self.progress.backend})")
        elif state is InitState.FAILED:
            logger.error(
                f"Hand tracking disabled: initialization failed ({self.progress.reason})"
            )
        else:
            logger.debug(f"Hand detector initialization: {state.value}")
