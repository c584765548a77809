"""Turn the detected fingertip into a live "match position" in screen space."""

import logging
from typing import Callable, Generic, List, NamedTuple, Optional, TypeVar

from candlelight.geometry import TargetArea, map_to_target_area
from candlelight.scheduler import Cancellation, FrameScheduler
from candlelight.util import FINGERTIP

logger = logging.getLogger(__name__)

T = TypeVar('T')


class MatchPosition(NamedTuple):
    """Where the match (i.e. the fingertip) is on screen, and whether it is shown."""

    x: float = 0.0
    y: float = 0.0
    is_visible: bool = False

    def hidden(self) -> 'MatchPosition':
        """The same position, but not visible."""
        return self._replace(is_visible=False)


class Signal(Generic[T]):
    """
    A single, continuously overwritten value, with change listeners.

    >>> s = Signal(0)
    >>> seen = []
    >>> s.subscribe(seen.append)
    >>> s.set(3)
    >>> s.value, seen
    (3, [3])
    """

    def __init__(self, value: T):
        self._value = value
        self._listeners: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T):
        self._value = value
        for listener in list(self._listeners):
            listener(value)

    def subscribe(self, listener: Callable[[T], None]):
        self._listeners.append(listener)

    def clear_listeners(self):
        self._listeners.clear()


def fingertip_of(hands) -> Optional[tuple]:
    """The fingertip keypoint of the first hand, if any."""
    if not hands:
        return None
    keypoints = hands[0]
    if len(keypoints) <= FINGERTIP:
        return None
    return keypoints[FINGERTIP]


def next_match_position(
    previous: MatchPosition,
    hands,
    frame_width: float,
    frame_height: float,
    target_area: Optional[TargetArea],
) -> MatchPosition:
    """
    Compute the match position for one detection result.

    When no hand is found, or the fingertip can't be mapped, the previous position is
    kept but hidden.

    >>> hand = [(0, 0)] * 8 + [(320, 180)]
    >>> next_match_position(MatchPosition(), [hand], 640, 360, (0, 0, 100, 100))
    MatchPosition(x=50.0, y=50.0, is_visible=True)
    >>> next_match_position(MatchPosition(5, 6, True), [], 640, 360, (0, 0, 100, 100))
    MatchPosition(x=5, y=6, is_visible=False)
    """
    tip = fingertip_of(hands)
    if tip is None:
        return previous.hidden()
    if target_area is not None and not isinstance(target_area, TargetArea):
        target_area = TargetArea(*target_area)
    point = map_to_target_area(tip, frame_width, frame_height, target_area)
    if point is None:
        return previous.hidden()
    return MatchPosition(point.x, point.y, True)


class DetectionLoop:
    """
    Samples the video through the detector, once per frame, and publishes the
    match position.

    Each tick is requested only after the previous one finished, so when detection
    is slow the loop slows down rather than piling up frames. A failing detection
    is logged and counts as "no update this tick"; the loop only stops when
    cancelled.

    Args:
        detector: A ``HandLandmarkDetector`` (anything with ``is_ready`` and
            ``detect(frame)``).
        video: The video source (``has_frame_data``, ``frame``, ``width``, ``height``).
        target_area: Function returning the latest target area (or None).
        match_position: The signal to publish to.
        scheduler: The frame scheduler.
        cancellation: Shared cancellation flag.
    """

    def __init__(
        self,
        detector,
        video,
        target_area: Callable[[], Optional[TargetArea]],
        match_position: Signal,
        scheduler: FrameScheduler,
        cancellation: Optional[Cancellation] = None,
    ):
        self.detector = detector
        self.video = video
        self.target_area = target_area
        self.match_position = match_position
        self.scheduler = scheduler
        self.cancellation = cancellation or Cancellation()
        self._handle: Optional[int] = None
        self.ticks = 0
        self.detections = 0

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def start(self):
        if self.is_running or self.cancellation.cancelled:
            return
        self._schedule()

    def stop(self):
        self.scheduler.cancel(self._handle)
        self._handle = None

    def tick(self):
        self._handle = None
        if self.cancellation.cancelled:
            return
        self.ticks += 1
        try:
            if self.video.has_frame_data and self.detector.is_ready:
                self._sample()
        finally:
            if not self.cancellation.cancelled:
                self._schedule()

    def _sample(self):
        frame = self.video.frame
        try:
            hands = self.detector.detect(frame)
        except Exception:
            logger.exception("Hand detection failed")
            return
        self.detections += 1
        if self.cancellation.cancelled:
            return
        self.match_position.set(
            next_match_position(
                self.match_position.value,
                hands,
                self.video.width,
                self.video.height,
                self.target_area(),
            )
        )

    def _schedule(self):
        self._handle = self.scheduler.request_frame(self.tick)
