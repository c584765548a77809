"""A candle session: all the shared state, the loops that feed it, and teardown."""

import logging
from typing import Callable, Optional

from candlelight.audio import (
    DFLT_BLOW_THRESHOLD,
    AudioStatus,
    VolumeAnalyzer,
    open_microphone,
)
from candlelight.candle import DFLT_COOLDOWN_MS, CandleState, CandleStateMachine
from candlelight.detector import (
    DFLT_DETECTOR_CONFIG,
    DFLT_INIT_POLICY,
    DetectorConfig,
    HandLandmarkDetector,
    InitPolicy,
    InitState,
    LandmarkEngine,
)
from candlelight.geometry import Rect
from candlelight.layout import DFLT_SETTLE_DELAY_MS, TargetAreaTracker
from candlelight.scheduler import Cancellation, FrameScheduler
from candlelight.tracking import DetectionLoop, MatchPosition, Signal

logger = logging.getLogger(__name__)


class CandleSession:
    """
    Wires the sensing loops to the candle, and owns everything they share.

    Two loops feed the candle: the detection loop publishes the match position (and
    the session relights the candle when it touches the ignition zone), and the
    volume analyzer reports blows (which put the candle out). Each loop writes only
    its own signal; the candle state machine is the only thing reading both.

    Args:
        engine: The hand landmark engine.
        video: The video source.
        measure_display: Function returning the screen rectangle of the cake.
        scheduler: The frame scheduler driving everything.
        blow_threshold: RMS above which a sound is a blow.
        cooldown_ms: Cooldown after a relight.
        detector_config: Configuration of the hand detector.
        init_policy: Backends, polling and retry settings of the detector.
        microphone_factory: Function opening the microphone.
        enable_audio: Whether to listen to the microphone at all.
        settle_delay_ms: Delay before first measuring the target area.
    """

    def __init__(
        self,
        *,
        engine: LandmarkEngine,
        video,
        measure_display: Callable[[], Optional[Rect]],
        scheduler: Optional[FrameScheduler] = None,
        blow_threshold: float = DFLT_BLOW_THRESHOLD,
        cooldown_ms: float = DFLT_COOLDOWN_MS,
        detector_config: DetectorConfig = DFLT_DETECTOR_CONFIG,
        init_policy: InitPolicy = DFLT_INIT_POLICY,
        microphone_factory: Callable = open_microphone,
        enable_audio: bool = True,
        settle_delay_ms: float = DFLT_SETTLE_DELAY_MS,
    ):
        self.scheduler = scheduler or FrameScheduler()
        self.cancellation = Cancellation()
        self.video = video
        self.measure_display = measure_display
        self.enable_audio = enable_audio

        self.target_area = TargetAreaTracker(
            measure_display,
            self.scheduler,
            settle_delay_ms=settle_delay_ms,
            cancellation=self.cancellation,
        )
        self.match_position: Signal[MatchPosition] = Signal(MatchPosition())
        self.candle = CandleStateMachine(self.scheduler, cooldown_ms=cooldown_ms)
        self.detector = HandLandmarkDetector(
            engine,
            video,
            self.scheduler,
            config=detector_config,
            policy=init_policy,
            cancellation=self.cancellation,
        )
        self.detection_loop = DetectionLoop(
            self.detector,
            video,
            self.target_area,
            self.match_position,
            self.scheduler,
            self.cancellation,
        )
        self.volume_analyzer = VolumeAnalyzer(
            self._on_blow,
            self.scheduler,
            threshold=blow_threshold,
            microphone_factory=microphone_factory,
            cancellation=self.cancellation,
        )
        self.match_position.subscribe(self._on_match_position)
        self._started = False
        self._torn_down = False

    # -------------------------------------------------------------------------
    # What the display layer reads

    @property
    def candle_state(self) -> CandleState:
        return self.candle.state

    @property
    def audio_status(self) -> AudioStatus:
        return self.volume_analyzer.status

    @property
    def tracking_state(self) -> InitState:
        return self.detector.state

    @property
    def display_rect(self) -> Optional[Rect]:
        rect = self.measure_display()
        return None if rect is None else Rect(*rect)

    def relight(self) -> bool:
        """Relight the candle (if it's out and no cooldown is active)."""
        if self.cancellation.cancelled:
            return False
        return self.candle.relight()

    # -------------------------------------------------------------------------
    # Life cycle

    def start(self):
        if self._started or self._torn_down:
            return
        self._started = True
        self.target_area.mount()
        self.detector.initialize()
        self.detection_loop.start()
        if self.enable_audio:
            self.volume_analyzer.start()

    def teardown(self):
        """Stop all loops and release the detector and microphone. Idempotent."""
        if self._torn_down:
            return
        self._torn_down = True
        self.cancellation.cancel()
        self.target_area.unmount()
        self.detection_loop.stop()
        self.volume_analyzer.stop()
        self.detector.close()
        self.candle.dispose()
        self.match_position.clear_listeners()
        logger.info("Candle session torn down")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.teardown()

    # -------------------------------------------------------------------------
    # Signal handlers

    def _on_blow(self):
        if not self.cancellation.cancelled:
            self.candle.blow()

    def _on_match_position(self, match_position: MatchPosition):
        if not self.cancellation.cancelled:
            self.candle.handle_match_position(self.display_rect, match_position)
