"""Tests for the frame scheduler."""

from candlelight.scheduler import Cancellation, FrameScheduler


def test_frame_callbacks_run_once_at_next_frame(scheduler):
    calls = []
    scheduler.request_frame(lambda: calls.append(1))
    assert calls == []
    scheduler.run_frame()
    assert calls == [1]
    scheduler.run_frame()
    assert calls == [1]


def test_callbacks_requested_during_a_frame_run_at_the_next_one(scheduler):
    calls = []

    def loop():
        calls.append(scheduler.frame_count)
        scheduler.request_frame(loop)

    scheduler.request_frame(loop)
    for _ in range(3):
        scheduler.run_frame()
    assert calls == [1, 2, 3]


def test_timers_fire_once_due(scheduler, clock):
    calls = []
    scheduler.call_later(100, lambda: calls.append('a'))
    scheduler.call_later(50, lambda: calls.append('b'))
    clock.advance(60)
    scheduler.run_frame()
    assert calls == ['b']
    clock.advance(41)
    scheduler.run_frame()
    assert calls == ['b', 'a']
    assert scheduler.pending == 0


def test_cancel(scheduler, clock):
    calls = []
    frame = scheduler.request_frame(lambda: calls.append('frame'))
    timer = scheduler.call_later(10, lambda: calls.append('timer'))
    scheduler.cancel(frame)
    scheduler.cancel(timer)
    scheduler.cancel(None)
    scheduler.cancel(12345)
    clock.advance(20)
    scheduler.run_frame()
    assert calls == []


def test_cancelling_from_within_the_same_frame(scheduler):
    calls = []
    handles = {}
    handles['first'] = scheduler.request_frame(
        lambda: scheduler.cancel(handles['second'])
    )
    handles['second'] = scheduler.request_frame(lambda: calls.append('second'))
    scheduler.run_frame()
    assert calls == []


def test_failing_callback_does_not_stop_the_frame(scheduler, caplog):
    calls = []

    def boom():
        raise ValueError("boom")

    scheduler.request_frame(boom)
    scheduler.request_frame(lambda: calls.append('ok'))
    scheduler.run_frame()
    assert calls == ['ok']
    assert 'failed' in caplog.text


def test_cancel_all(scheduler, clock):
    scheduler.request_frame(lambda: None)
    scheduler.call_later(10, lambda: None)
    scheduler.cancel_all()
    assert scheduler.pending == 0


def test_cancellation_flag():
    cancellation = Cancellation()
    assert not cancellation.cancelled
    cancellation.cancel()
    assert cancellation.cancelled


def test_default_clock_is_monotonic_seconds():
    scheduler = FrameScheduler()
    assert scheduler.now_ms() >= 0
