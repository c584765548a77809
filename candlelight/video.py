"""The live video source: a (lazily opened) camera and its latest frame."""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DFLT_CAMERA_INDEX = 0
DFLT_RESOLUTION = (640, 360)


class CameraReadError(Exception):
    """Exception raised when camera read fails."""

    pass


def read_camera(cap: cv2.VideoCapture, *, mirror: bool = True) -> np.ndarray:
    """
    Read a frame from the camera, flipped horizontally if ``mirror``.

    Args:
        cap: OpenCV video capture object
        mirror: Whether to flip the frame, for a more natural interaction

    Returns:
        The (flipped) image if successful

    Raises:
        CameraReadError: If the camera read operation fails
    """
    success, img = cap.read()
    if not success:
        raise CameraReadError("Failed to read from camera")
    return cv2.flip(img, 1) if mirror else img


class VideoSource:
    """
    A camera, opened on ``play()``, holding on to the latest frame read.

    Mirroring happens here, so keypoints detected on ``frame`` are already in the
    handedness of what's displayed.

    Args:
        camera_index: Index of the camera to open.
        resolution: Requested (width, height) of the frames.
        mirror: Whether to flip frames horizontally.
        capture_factory: Function making the capture object from the camera index.
    """

    def __init__(
        self,
        camera_index: int = DFLT_CAMERA_INDEX,
        *,
        resolution: Tuple[int, int] = DFLT_RESOLUTION,
        mirror: bool = True,
        capture_factory=cv2.VideoCapture,
    ):
        self.camera_index = camera_index
        self.resolution = resolution
        self.mirror = mirror
        self.capture_factory = capture_factory
        self.cap = None
        self.frame: Optional[np.ndarray] = None

    @property
    def is_playing(self) -> bool:
        return self.cap is not None and self.cap.isOpened()

    def play(self):
        """Open the camera, if not already open. Raises CameraReadError on failure."""
        if self.is_playing:
            return
        cap = self.capture_factory(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise CameraReadError(f"Could not open camera {self.camera_index}")
        width, height = self.resolution
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        self.cap = cap
        logger.info(f"Camera {self.camera_index} opened")

    def read(self) -> Optional[np.ndarray]:
        """Read the next frame into ``frame``. Returns it (None if not playing)."""
        if not self.is_playing:
            return None
        self.frame = read_camera(self.cap, mirror=self.mirror)
        return self.frame

    @property
    def has_frame_data(self) -> bool:
        return self.frame is not None

    @property
    def width(self) -> int:
        return 0 if self.frame is None else self.frame.shape[1]

    @property
    def height(self) -> int:
        return 0 if self.frame is None else self.frame.shape[0]

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        self.frame = None
