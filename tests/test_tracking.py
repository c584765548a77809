"""Tests for the detection loop and match position updates."""

import pytest

from candlelight.geometry import Rect
from candlelight.scheduler import Cancellation
from candlelight.tracking import (
    DetectionLoop,
    MatchPosition,
    Signal,
    fingertip_of,
    next_match_position,
)

from conftest import FakeVideo, hand_with_fingertip

AREA = Rect(680, 60, 480, 360)


class ScriptedDetector:
    """A detector that is ready (or not) and returns scripted hands."""

    def __init__(self, script=(), *, is_ready=True):
        self.script = list(script)
        self.is_ready = is_ready
        self.frames = []

    def detect(self, frame):
        self.frames.append(frame)
        result = self.script.pop(0) if self.script else []
        if isinstance(result, Exception):
            raise result
        return result


def make_loop(scheduler, detector, video=None, target_area=AREA, cancellation=None):
    signal = Signal(MatchPosition())
    published = []
    signal.subscribe(published.append)
    loop = DetectionLoop(
        detector,
        video or FakeVideo(),
        lambda: target_area,
        signal,
        scheduler,
        cancellation,
    )
    return loop, signal, published


def test_fingertip_of():
    assert fingertip_of([]) is None
    assert fingertip_of(None) is None
    assert fingertip_of([[(0, 0)] * 5]) is None
    assert fingertip_of([hand_with_fingertip(1, 2), hand_with_fingertip(3, 4)]) == (
        1,
        2,
    )


def test_next_match_position_maps_the_fingertip():
    position = next_match_position(
        MatchPosition(), [hand_with_fingertip(320, 90)], 640, 360, AREA
    )
    assert position.is_visible
    assert (position.x, position.y) == pytest.approx((920, 150))


@pytest.mark.parametrize(
    'frame_width, frame_height, area',
    [(0, 0, AREA), (640, 360, Rect(0, 0, 0, 0)), (640, 360, None)],
)
def test_no_visible_position_without_a_mapping(frame_width, frame_height, area):
    previous = MatchPosition(10, 20, True)
    position = next_match_position(
        previous, [hand_with_fingertip(320, 90)], frame_width, frame_height, area
    )
    assert position == MatchPosition(10, 20, False)


def test_loop_publishes_once_per_frame(scheduler):
    detector = ScriptedDetector(
        [[hand_with_fingertip(0, 0)], [hand_with_fingertip(640, 360)], []]
    )
    loop, signal, published = make_loop(scheduler, detector)
    loop.start()
    assert published == []
    for _ in range(3):
        scheduler.run_frame()
    assert published == [
        MatchPosition(680, 60, True),
        MatchPosition(1160, 420, True),
        MatchPosition(1160, 420, False),
    ]
    assert loop.ticks == 3
    assert loop.detections == 3


def test_loop_waits_for_the_detector_and_the_video(scheduler):
    detector = ScriptedDetector([[hand_with_fingertip(0, 0)]], is_ready=False)
    video = FakeVideo(has_frame=False)
    loop, signal, published = make_loop(scheduler, detector, video)
    loop.start()
    scheduler.run_frame()
    detector.is_ready = True
    scheduler.run_frame()
    assert published == []
    assert detector.frames == []
    video.frame = FakeVideo().frame
    scheduler.run_frame()
    assert len(detector.frames) == 1
    assert detector.frames[0] is video.frame
    assert published == [MatchPosition(680, 60, True)]
    assert loop.ticks == 3


def test_failed_detection_keeps_the_loop_going(scheduler, caplog):
    detector = ScriptedDetector(
        [RuntimeError("inference failed"), [hand_with_fingertip(0, 0)]]
    )
    loop, signal, published = make_loop(scheduler, detector)
    loop.start()
    scheduler.run_frame()
    assert published == []
    assert 'Hand detection failed' in caplog.text
    scheduler.run_frame()
    assert published == [MatchPosition(680, 60, True)]
    assert loop.is_running


def test_stop_and_cancellation(scheduler):
    cancellation = Cancellation()
    detector = ScriptedDetector([[hand_with_fingertip(0, 0)]] * 5)
    loop, signal, published = make_loop(scheduler, detector, cancellation=cancellation)
    loop.start()
    loop.stop()
    scheduler.run_frame()
    assert loop.ticks == 0

    loop.start()
    scheduler.run_frame()
    assert len(published) == 1
    cancellation.cancel()
    scheduler.run_frame()
    scheduler.run_frame()
    assert len(published) == 1
    assert not loop.is_running
    # A cancelled loop can't be restarted
    loop.start()
    assert not loop.is_running


def test_start_is_idempotent(scheduler):
    detector = ScriptedDetector()
    loop, *_ = make_loop(scheduler, detector)
    loop.start()
    loop.start()
    scheduler.run_frame()
    assert loop.ticks == 1
