"""Microphone input and blow detection."""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

import numpy as np

from candlelight.scheduler import Cancellation, FrameScheduler
from candlelight.util import return_none

logger = logging.getLogger(__name__)

DFLT_BLOW_THRESHOLD = 0.05
DFLT_WINDOW_SIZE = 2048
DFLT_SAMPLE_RATE = 44100
DFLT_FRAMES_PER_BUFFER = 512

# 8-bit unsigned samples are centered on this value
UINT8_MIDPOINT = 128


class MicrophoneUnavailableError(Exception):
    """Raised when the microphone can't be opened (missing, or access refused)."""


class AudioStatus(str, Enum):
    IDLE = 'idle'
    LISTENING = 'listening'
    ERROR = 'error'


# -------------------------------------------------------------------------------
# Signal processing
# -------------------------------------------------------------------------------


def normalize_uint8_samples(samples) -> np.ndarray:
    """
    Map 8-bit unsigned samples to floats in [-1, 1].

    >>> normalize_uint8_samples(np.array([0, 128, 255], dtype=np.uint8)).tolist()
    [-1.0, 0.0, 0.9921875]
    """
    return np.asarray(samples, dtype=np.float64) / UINT8_MIDPOINT - 1.0


def rms(samples) -> float:
    """
    The root-mean-square of a waveform.

    >>> rms([0.0, 0.0, 0.0])
    0.0
    >>> rms([1.0, -1.0, 1.0, -1.0])
    1.0
    """
    samples = np.asarray(samples, dtype=np.float64)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples))))


def is_blow(samples, threshold: float = DFLT_BLOW_THRESHOLD) -> bool:
    """Whether a window of normalized samples is loud enough to count as a blow."""
    return rms(samples) > threshold


# -------------------------------------------------------------------------------
# Microphone
# -------------------------------------------------------------------------------


class PyAudioMicrophone:
    """
    A PyAudio input stream of 8-bit unsigned mono samples, keeping the latest
    ``window_size`` samples around.

    The stream callback runs on PortAudio's thread; ``read_window`` can be called at
    any time from the main thread and returns a copy of the latest window.
    """

    def __init__(
        self,
        window_size: int = DFLT_WINDOW_SIZE,
        *,
        sr: int = DFLT_SAMPLE_RATE,
        frames_per_buffer: int = DFLT_FRAMES_PER_BUFFER,
        input_device_index: Optional[int] = None,
    ):
        # Import here so the rest of candlelight doesn't need PortAudio
        import pyaudio

        self.window_size = window_size
        self.sr = sr
        self._window = np.full(window_size, UINT8_MIDPOINT, dtype=np.uint8)
        self._lock = threading.Lock()
        self._continue = pyaudio.paContinue

        self.p = pyaudio.PyAudio()
        try:
            self.stream = self.p.open(
                format=pyaudio.paUInt8,
                channels=1,
                rate=sr,
                input=True,
                frames_per_buffer=frames_per_buffer,
                input_device_index=input_device_index,
                stream_callback=self._audio_callback,
            )
        except Exception as e:
            self.p.terminate()
            raise MicrophoneUnavailableError(
                f"Could not open the microphone: {e}"
            ) from e

    def _audio_callback(self, in_data, frame_count, time_info, status):
        samples = np.frombuffer(in_data, dtype=np.uint8)[-self.window_size :]
        with self._lock:
            self._window = np.concatenate((self._window[len(samples) :], samples))
        return None, self._continue

    def read_window(self) -> np.ndarray:
        with self._lock:
            return self._window.copy()

    def close(self):
        try:
            self.stream.stop_stream()
            self.stream.close()
        finally:
            self.p.terminate()


def open_microphone(window_size: int = DFLT_WINDOW_SIZE) -> PyAudioMicrophone:
    try:
        return PyAudioMicrophone(window_size)
    except MicrophoneUnavailableError:
        raise
    except Exception as e:
        raise MicrophoneUnavailableError(f"Could not open the microphone: {e}") from e


# -------------------------------------------------------------------------------
# Volume analyzer
# -------------------------------------------------------------------------------


class VolumeAnalyzer:
    """
    Listens to the microphone, once per frame, and calls ``on_blow`` whenever the
    energy of the latest window is above ``threshold``.

    There is no latching: ``on_blow`` is called on every frame for as long as the
    sound lasts. If the microphone can't be opened, the status goes to ERROR and
    stays there.

    Args:
        on_blow: Called (without arguments) on every loud frame.
        scheduler: The frame scheduler.
        threshold: RMS (of samples normalized to [-1, 1]) above which it's a blow.
        window_size: Number of samples analyzed each frame.
        microphone_factory: Function opening a microphone (with ``read_window()``
            returning uint8 samples, and ``close()``) given a window size.
        cancellation: Shared cancellation flag.
        on_status_change: Called with each new ``AudioStatus``.
    """

    def __init__(
        self,
        on_blow: Callable[[], None],
        scheduler: FrameScheduler,
        *,
        threshold: float = DFLT_BLOW_THRESHOLD,
        window_size: int = DFLT_WINDOW_SIZE,
        microphone_factory: Callable = open_microphone,
        cancellation: Optional[Cancellation] = None,
        on_status_change: Callable[[AudioStatus], None] = return_none,
    ):
        self.on_blow = on_blow
        self.scheduler = scheduler
        self.threshold = threshold
        self.window_size = window_size
        self.microphone_factory = microphone_factory
        self.cancellation = cancellation or Cancellation()
        self.on_status_change = on_status_change
        self.status = AudioStatus.IDLE
        self.last_rms = 0.0
        self._microphone = None
        self._handle: Optional[int] = None

    @property
    def is_listening(self) -> bool:
        return self.status is AudioStatus.LISTENING

    def start(self):
        if self.status is not AudioStatus.IDLE or self.cancellation.cancelled:
            return
        try:
            self._microphone = self.microphone_factory(self.window_size)
        except Exception as e:
            logger.error(f"Microphone access failed: {e}")
            self._set_status(AudioStatus.ERROR)
            return
        self._set_status(AudioStatus.LISTENING)
        self._handle = self.scheduler.request_frame(self.tick)

    def tick(self):
        self._handle = None
        if not self.is_listening or self.cancellation.cancelled:
            return
        try:
            samples = normalize_uint8_samples(self._microphone.read_window())
            self.last_rms = rms(samples)
            if self.last_rms > self.threshold:
                self.on_blow()
        except Exception:
            logger.exception("Volume analysis failed")
        finally:
            if self.is_listening and not self.cancellation.cancelled:
                self._handle = self.scheduler.request_frame(self.tick)

    def stop(self):
        """Stop listening and close the microphone. Safe to call any time."""
        self.scheduler.cancel(self._handle)
        self._handle = None
        microphone, self._microphone = self._microphone, None
        if self.is_listening:
            self._set_status(AudioStatus.IDLE)
        if microphone is not None:
            try:
                microphone.close()
            except Exception as e:
                logger.warning(f"Error while closing the microphone: {e}")

    def _set_status(self, status: AudioStatus):
        self.status = status
        self.on_status_change(status)
