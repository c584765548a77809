"""Utility functions for running the candle application."""

import logging
import time
from typing import Any, Callable, Dict, Optional

import cv2

from candlelight.audio import DFLT_BLOW_THRESHOLD, open_microphone
from candlelight.candle import DFLT_COOLDOWN_MS
from candlelight.detector import (
    DFLT_FALLBACK_BACKEND,
    DFLT_PREFERRED_BACKEND,
    DetectorConfig,
    InitPolicy,
)
from candlelight.display import debug_lines
from candlelight.display import draw_on_screen as DFLT_DRAW_ON_SCREEN
from candlelight.layout import compute_layout
from candlelight.session import CandleSession
from candlelight.video import DFLT_CAMERA_INDEX, CameraReadError, VideoSource

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------------------
# Logging utilities
# -------------------------------------------------------------------------------

DFLT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = 'INFO', *, fmt: str = DFLT_LOG_FORMAT):
    """Configure the root logger, with ``level`` given by name (e.g. 'DEBUG')."""
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric_level, format=fmt)


# -------------------------------------------------------------------------------
# Keyboard handling functions
# -------------------------------------------------------------------------------

ESCAPE_KEY_ASCII = 27
BREAK_KEYS = {ESCAPE_KEY_ASCII, ord('q')}


class KeyboardBreakSignal(Exception):
    """Exception raised when a break key is pressed."""

    pass


def read_keyboard(wait_time: int = 1) -> int:
    """
    Read keyboard input with the specified wait time.

    This is also what lets OpenCV refresh its windows, so it paces the frames.

    Args:
        wait_time: Time to wait for keyboard input in milliseconds

    Returns:
        The key code or 0 if no key was pressed
    """
    key_code = cv2.waitKey(wait_time)
    return 0 if key_code < 0 else key_code & 0xFF


def keyboard_feature_vector(key_code: int) -> Dict[str, Any]:
    """
    Convert a key code into a feature vector with keyboard information.

    Args:
        key_code: The key code from cv2.waitKey

    Returns:
        Dictionary containing keyboard features

    Raises:
        KeyboardBreakSignal: If a key that signals program termination is pressed
    """
    keyboard_fv = {
        'key_code': key_code,
        'key_pressed': key_code > 0,
        'is_escape': key_code == ESCAPE_KEY_ASCII,
        'timestamp': time.time(),
    }

    if keyboard_fv['key_code'] in BREAK_KEYS:
        raise KeyboardBreakSignal(f"Break key pressed: {key_code}")

    return keyboard_fv


RELIGHT_KEY = ord('r')


def apply_keyboard(keyboard_fv: Dict[str, Any], session) -> bool:
    """Act on a keyboard feature vector. Returns True if the candle was relit."""
    if keyboard_fv['key_code'] == RELIGHT_KEY:
        return session.relight()
    return False


def window_was_closed(window_name: str) -> bool:
    return cv2.getWindowProperty(window_name, cv2.WND_PROP_VISIBLE) < 1


# -------------------------------------------------------------------------------
# Main run function
# -------------------------------------------------------------------------------

DFLT_WINDOW_NAME = 'Birthday Cake'


def run_candle(
    *,
    camera_index: int = DFLT_CAMERA_INDEX,
    mirror: bool = True,
    blow_threshold: float = DFLT_BLOW_THRESHOLD,
    cooldown_ms: float = DFLT_COOLDOWN_MS,
    preferred_backend: str = DFLT_PREFERRED_BACKEND,
    fallback_backend: Optional[str] = DFLT_FALLBACK_BACKEND,
    model_variant: str = 'lite',
    model_path: Optional[str] = None,
    enable_audio: bool = True,
    window_name: str = DFLT_WINDOW_NAME,
    debug: bool = False,
    engine=None,
    microphone_factory: Callable = open_microphone,
    draw_on_screen: Callable = DFLT_DRAW_ON_SCREEN,
):
    """
    Run the candle application: blow the candle out, relight it with your finger.

    Args:
        camera_index: Index of the camera to use
        mirror: Whether to mirror the camera feed
        blow_threshold: Microphone RMS (0 to 1) above which a sound is a blow
        cooldown_ms: Time after a relight during which relights are ignored
        preferred_backend: Hand tracking backend to try first ('gpu' or 'cpu')
        fallback_backend: Backend to use if the preferred one fails
        model_variant: Hand landmark model variant ('lite' or 'full')
        model_path: Hand landmark model file (overrides model_variant's default)
        enable_audio: Whether to listen to the microphone
        window_name: Title for the display window
        debug: Whether to show the raw match position, volume and tracking state
        engine: Hand landmark engine to use (default: MediaPipe)
        microphone_factory: Function opening the microphone
        draw_on_screen: Function drawing the window's image
    """
    if engine is None:
        # Import here to avoid loading mediapipe if an engine is given
        from candlelight.mediapipe_engine import MediaPipeEngine

        engine = MediaPipeEngine(model_path=model_path)

    video = VideoSource(camera_index, mirror=mirror)
    frame_size = video.resolution
    layout = compute_layout(frame_size)

    session = CandleSession(
        engine=engine,
        video=video,
        measure_display=lambda: layout.cake_rect,
        blow_threshold=blow_threshold,
        cooldown_ms=cooldown_ms,
        detector_config=DetectorConfig(model_variant=model_variant),
        init_policy=InitPolicy(
            preferred_backend=preferred_backend, fallback_backend=fallback_backend
        ),
        microphone_factory=microphone_factory,
        enable_audio=enable_audio,
    )
    candle_changes = []
    session.candle.subscribe(candle_changes.append)

    cv2.namedWindow(window_name, cv2.WINDOW_AUTOSIZE)
    try:
        video.play()
    except CameraReadError as e:
        # The detector keeps trying to start it while it waits for the video
        logger.warning(f"{e}")
    session.start()
    try:
        while True:
            try:
                keyboard_fv = keyboard_feature_vector(read_keyboard())
                apply_keyboard(keyboard_fv, session)

                video.read()
                if video.has_frame_data and (video.width, video.height) != frame_size:
                    frame_size = (video.width, video.height)
                    layout = compute_layout(frame_size)
                    session.target_area.notify_resize()

                session.scheduler.run_frame()

                debug_info = None
                if debug:
                    debug_info = debug_lines(
                        session.match_position.value,
                        volume=session.volume_analyzer.last_rms,
                        tracking=session.tracking_state.value,
                    )
                img = draw_on_screen(
                    layout,
                    video.frame,
                    session.candle_state,
                    session.match_position.value,
                    session.audio_status,
                    debug_info=debug_info,
                )
                cv2.imshow(window_name, img)
                if window_was_closed(window_name):
                    break

            except CameraReadError as e:
                logger.error(f"{e}")
                break
            except KeyboardBreakSignal:
                break

    finally:
        session.teardown()
        video.release()
        cv2.destroyAllWindows()
        print(f"\n---> The candle changed state {len(candle_changes)} times\n")


def candle_cli(
    # Sensors
    camera_index: int = DFLT_CAMERA_INDEX,
    no_mirror: bool = False,
    no_audio: bool = False,
    # Detection
    blow_threshold: float = DFLT_BLOW_THRESHOLD,
    cooldown_ms: float = DFLT_COOLDOWN_MS,
    preferred_backend: str = DFLT_PREFERRED_BACKEND,
    fallback_backend: str = DFLT_FALLBACK_BACKEND,
    model_variant: str = 'lite',
    model_path: str = '',
    # Display and logging
    window_name: str = DFLT_WINDOW_NAME,
    debug: bool = False,
    log_level: str = 'INFO',
):
    """
    Run the candle application with the specified parameters.

    Args:
        camera_index: Index of the camera to use
        no_mirror: Don't mirror the camera feed
        no_audio: Don't listen to the microphone
        blow_threshold: Microphone RMS (0 to 1) above which a sound is a blow
        cooldown_ms: Time after a relight during which relights are ignored
        preferred_backend: Hand tracking backend to try first ('gpu' or 'cpu')
        fallback_backend: Backend to use if the preferred one fails ('' for none)
        model_variant: Hand landmark model variant ('lite' or 'full')
        model_path: Hand landmark model file (overrides model_variant)
        window_name: Title for the display window
        debug: Show the raw match position, volume and tracking state
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    configure_logging(log_level)

    run_candle(
        camera_index=camera_index,
        mirror=not no_mirror,
        blow_threshold=blow_threshold,
        cooldown_ms=cooldown_ms,
        preferred_backend=preferred_backend,
        fallback_backend=fallback_backend or None,
        model_variant=model_variant,
        model_path=model_path or None,
        enable_audio=not no_audio,
        window_name=window_name,
        debug=debug,
    )
