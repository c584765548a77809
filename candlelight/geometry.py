"""Screen geometry: rectangles, keypoint remapping and the ignition zone."""

from typing import NamedTuple, Optional

# -------------------------------------------------------------------------------
# Types
# -------------------------------------------------------------------------------


class Point(NamedTuple):
    x: float
    y: float


# Keypoints are points in frame-pixel space
Keypoint = Point


class Rect(NamedTuple):
    """
    A rectangle in screen coordinates.

    >>> r = Rect(left=10, top=20, width=100, height=50)
    >>> r.right, r.bottom
    (110, 70)
    >>> r.is_valid, Rect(0, 0, 0, 50).is_valid
    (True, False)
    """

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self):
        return self.left + self.width

    @property
    def bottom(self):
        return self.top + self.height

    @property
    def is_valid(self) -> bool:
        """A rectangle is only usable if it has positive width and height."""
        return self.width > 0 and self.height > 0


# The screen area the display surface occupies
TargetArea = Rect

EMPTY_RECT = Rect(0, 0, 0, 0)


class Zone(NamedTuple):
    """A rectangle given by its four edges."""

    top: float
    bottom: float
    left: float
    right: float

    def contains(self, point: Point) -> bool:
        """Whether ``point`` is strictly inside all four edges."""
        x, y = point
        return self.left < x < self.right and self.top < y < self.bottom


# -------------------------------------------------------------------------------
# Coordinate mapping
# -------------------------------------------------------------------------------


def normalize_keypoint(
    keypoint: Keypoint, frame_width: float, frame_height: float
) -> Optional[Point]:
    """
    Normalize a frame-pixel keypoint by the frame's dimensions.

    Values are in [0, 1] for keypoints inside the frame (but keypoints outside the
    frame are not clipped). Returns None if a frame dimension is zero.

    >>> normalize_keypoint((320, 90), 640, 360)
    Point(x=0.5, y=0.25)
    >>> normalize_keypoint((320, 90), 0, 360) is None
    True
    """
    if not frame_width or not frame_height:
        return None
    x, y = keypoint
    return Point(x / frame_width, y / frame_height)


def map_to_target_area(
    keypoint: Keypoint,
    frame_width: float,
    frame_height: float,
    target_area: Optional[TargetArea],
) -> Optional[Point]:
    """
    Map a keypoint from frame-pixel space into a target area's screen space.

    Returns None when no mapping is possible (zero frame dimensions, or missing or
    degenerate target area).

    >>> map_to_target_area((320, 90), 640, 360, Rect(100, 50, 200, 400))
    Point(x=200.0, y=150.0)
    >>> map_to_target_area((320, 90), 640, 360, Rect(100, 50, 0, 400)) is None
    True
    """
    if target_area is None or not target_area.is_valid:
        return None
    normalized = normalize_keypoint(keypoint, frame_width, frame_height)
    if normalized is None:
        return None
    return Point(
        target_area.left + normalized.x * target_area.width,
        target_area.top + normalized.y * target_area.height,
    )


# -------------------------------------------------------------------------------
# Ignition zone
# -------------------------------------------------------------------------------

DFLT_ZONE_HEIGHT_RATIO = 0.2
DFLT_ZONE_SIDE_MARGIN_RATIO = 0.3


def ignition_zone(
    rect: Rect,
    *,
    height_ratio: float = DFLT_ZONE_HEIGHT_RATIO,
    side_margin_ratio: float = DFLT_ZONE_SIDE_MARGIN_RATIO,
) -> Zone:
    """
    The top-center band of ``rect`` that relights the candle when touched.

    >>> ignition_zone(Rect(0, 0, 100, 100))
    Zone(top=0, bottom=20.0, left=30.0, right=70.0)
    """
    return Zone(
        top=rect.top,
        bottom=rect.top + rect.height * height_ratio,
        left=rect.left + rect.width * side_margin_ratio,
        right=rect.right - rect.width * side_margin_ratio,
    )


def is_in_ignition_zone(rect: Rect, point: Point) -> bool:
    """
    >>> cake = Rect(0, 0, 100, 100)
    >>> is_in_ignition_zone(cake, (50, 10))
    True
    >>> is_in_ignition_zone(cake, (50, 25)), is_in_ignition_zone(cake, (20, 10))
    (False, False)
    """
    return ignition_zone(rect).contains(point)
