"""MediaPipe hand landmark engine."""

import time
from typing import Dict, List, Optional

import cv2
import mediapipe as mp
import numpy as np

from candlelight.detector import DetectorConfig, Hand, LandmarkEngine
from candlelight.geometry import Keypoint
from candlelight.util import data_files

# Paths to the hand landmarker models, per model variant
DFLT_MODEL_ASSETS = {
    'lite': 'hand_landmarker_lite.task',
    'full': 'hand_landmarker.task',
}

DFLT_MIN_DETECTION_CONFIDENCE = 0.5
DFLT_MIN_TRACKING_CONFIDENCE = 0.5
# Size of the blank frame used to check a backend
PROBE_FRAME_SHAPE = (64, 64, 3)


def model_asset_path(model_variant: str, *, model_path: Optional[str] = None) -> str:
    """The model file to load for ``model_variant`` (unless ``model_path`` is given)."""
    if model_path:
        return str(model_path)
    try:
        filename = DFLT_MODEL_ASSETS[model_variant]
    except KeyError:
        raise ValueError(
            f"Unknown model variant: {model_variant!r}. "
            f"Choose from {sorted(DFLT_MODEL_ASSETS)}"
        )
    return str(data_files / filename)


def hands_from_landmarks(hand_landmarks, frame_width, frame_height) -> List[Hand]:
    """
    Convert MediaPipe's normalized hand landmarks to keypoints in frame pixels.

    Args:
        hand_landmarks: A list (one per hand) of lists of landmarks with ``x`` and
            ``y`` attributes in [0, 1].
        frame_width, frame_height: The dimensions of the analyzed frame.

    Returns:
        list: One list of ``Keypoint`` per hand.
    """
    return [
        [Keypoint(lm.x * frame_width, lm.y * frame_height) for lm in landmarks]
        for landmarks in hand_landmarks or ()
    ]


class MediaPipeHandModel:
    """A created MediaPipe ``HandLandmarker``, in video mode."""

    def __init__(self, landmarker, *, clock=time.monotonic):
        self.landmarker = landmarker
        self.clock = clock
        self._last_timestamp_ms = -1

    def _next_timestamp_ms(self) -> int:
        # Video mode needs strictly increasing timestamps
        timestamp_ms = max(int(self.clock() * 1000), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms
        return timestamp_ms

    def estimate_hands(self, frame: np.ndarray) -> List[Hand]:
        """
        Detects hands in the provided (BGR) frame.

        Returns:
            list: The hands, each a list of 21 keypoints in frame pixels.
        """
        frame_height, frame_width = frame.shape[:2]
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)
        result = self.landmarker.detect_for_video(image, self._next_timestamp_ms())
        return hands_from_landmarks(result.hand_landmarks, frame_width, frame_height)

    def close(self):
        self.landmarker.close()


class MediaPipeEngine(LandmarkEngine):
    """
    Hand landmark detection with MediaPipe's ``HandLandmarker`` task.

    Backends are MediaPipe delegates: ``'gpu'`` or ``'cpu'``. Selecting a backend
    checks it by running a throwaway landmarker on a blank frame.

    Attributes:
        model_path (str): Model file to use instead of the variant's default.
        detection_con (float): Minimum detection confidence threshold.
        track_con (float): Minimum tracking confidence threshold.
    """

    delegates: Dict[str, str] = {'gpu': 'GPU', 'cpu': 'CPU'}

    def __init__(
        self,
        *,
        model_path: Optional[str] = None,
        detection_con: float = DFLT_MIN_DETECTION_CONFIDENCE,
        track_con: float = DFLT_MIN_TRACKING_CONFIDENCE,
        probe_variant: str = 'lite',
    ):
        self.model_path = model_path
        self.detection_con = detection_con
        self.track_con = track_con
        self.probe_variant = probe_variant
        self.vision = mp.tasks.vision

    def _options(self, backend: str, config: DetectorConfig):
        try:
            delegate = getattr(mp.tasks.BaseOptions.Delegate, self.delegates[backend])
        except KeyError:
            raise ValueError(f"Unknown backend: {backend!r}")
        base_options = mp.tasks.BaseOptions(
            model_asset_path=model_asset_path(
                config.model_variant, model_path=self.model_path
            ),
            delegate=delegate,
        )
        return self.vision.HandLandmarkerOptions(
            base_options=base_options,
            running_mode=self.vision.RunningMode.VIDEO,
            num_hands=config.max_hands,
            min_hand_detection_confidence=self.detection_con,
            min_tracking_confidence=self.track_con,
        )

    def select_backend(self, name: str) -> None:
        options = self._options(name, DetectorConfig(model_variant=self.probe_variant))
        with self.vision.HandLandmarker.create_from_options(options) as landmarker:
            blank = np.zeros(PROBE_FRAME_SHAPE, dtype=np.uint8)
            image = mp.Image(image_format=mp.ImageFormat.SRGB, data=blank)
            landmarker.detect_for_video(image, 0)

    def create_detector(self, backend: str, config: DetectorConfig):
        options = self._options(backend, config)
        landmarker = self.vision.HandLandmarker.create_from_options(options)
        return MediaPipeHandModel(landmarker)
