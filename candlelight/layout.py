"""Window layout, and the tracking of where the cake sits on screen."""

import logging
from typing import Callable, NamedTuple, Optional, Tuple

from candlelight.geometry import EMPTY_RECT, Rect, TargetArea
from candlelight.scheduler import Cancellation, FrameScheduler

logger = logging.getLogger(__name__)

DFLT_SETTLE_DELAY_MS = 100
DFLT_PANEL_WIDTH = 480
DFLT_MARGIN = 20
DFLT_HEADER_HEIGHT = 60
DFLT_FOOTER_HEIGHT = 90
# Cake panel aspect ratio (width / height)
CAKE_ASPECT = 4 / 3


class Layout(NamedTuple):
    canvas_width: int
    canvas_height: int
    video_rect: Rect
    cake_rect: Rect


def compute_layout(
    frame_size: Tuple[int, int],
    *,
    panel_width: int = DFLT_PANEL_WIDTH,
    margin: int = DFLT_MARGIN,
    header_height: int = DFLT_HEADER_HEIGHT,
    footer_height: int = DFLT_FOOTER_HEIGHT,
) -> Layout:
    """
    Lay out the window: camera feed on the left, cake panel on the right.

    Args:
        frame_size: (width, height) of the camera frames.

    >>> layout = compute_layout((640, 360))
    >>> layout.canvas_width, layout.canvas_height
    (1180, 510)
    >>> layout.video_rect
    Rect(left=20, top=60, width=640, height=360)
    >>> layout.cake_rect
    Rect(left=680, top=60, width=480, height=360)
    """
    frame_width, frame_height = frame_size
    cake_height = round(panel_width / CAKE_ASPECT)
    body_height = max(frame_height, cake_height)
    canvas_width = margin + frame_width + margin + panel_width + margin
    canvas_height = header_height + body_height + footer_height
    video_rect = Rect(margin, header_height, frame_width, frame_height)
    cake_rect = Rect(
        margin + frame_width + margin, header_height, panel_width, cake_height
    )
    return Layout(canvas_width, canvas_height, video_rect, cake_rect)


class TargetAreaTracker:
    """
    Holds the latest target area, as measured by ``measure``.

    The area is measured once, ``settle_delay_ms`` after ``mount`` (to let the first
    layout settle), and again whenever ``notify_resize`` is called.

    Args:
        measure: Function returning the current rectangle of the display surface.
        scheduler: The frame scheduler.
        settle_delay_ms: Delay between mount and the first measure.
        cancellation: Shared cancellation flag.
    """

    def __init__(
        self,
        measure: Callable[[], Optional[Rect]],
        scheduler: FrameScheduler,
        *,
        settle_delay_ms: float = DFLT_SETTLE_DELAY_MS,
        cancellation: Optional[Cancellation] = None,
    ):
        self.measure = measure
        self.scheduler = scheduler
        self.settle_delay_ms = settle_delay_ms
        self.cancellation = cancellation or Cancellation()
        self.target_area: TargetArea = EMPTY_RECT
        self._handle: Optional[int] = None

    def __call__(self) -> TargetArea:
        return self.target_area

    def mount(self):
        self._handle = self.scheduler.call_later(self.settle_delay_ms, self._settled)

    def _settled(self):
        self._handle = None
        self.update()

    def notify_resize(self):
        self.update()

    def update(self):
        if self.cancellation.cancelled:
            return
        rect = self.measure()
        rect = EMPTY_RECT if rect is None else Rect(*rect)
        if rect != self.target_area:
            logger.debug(f"Target area: {rect}")
        self.target_area = rect

    def unmount(self):
        self.scheduler.cancel(self._handle)
        self._handle = None
