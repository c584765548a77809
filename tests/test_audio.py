"""Tests for blow detection."""

import sys
import types

import numpy as np
import pytest

from candlelight.audio import (
    AudioStatus,
    MicrophoneUnavailableError,
    PyAudioMicrophone,
    VolumeAnalyzer,
    is_blow,
    normalize_uint8_samples,
    rms,
)

from conftest import FakeMicrophone


def test_silence_is_never_a_blow():
    silence = normalize_uint8_samples(np.full(2048, 128, dtype=np.uint8))
    assert rms(silence) == 0.0
    assert not is_blow(silence)
    assert not is_blow(np.zeros(2048), threshold=0.0)


def test_full_scale_square_wave_is_a_blow():
    samples = normalize_uint8_samples(np.tile([0, 255], 1024).astype(np.uint8))
    assert rms(samples) == pytest.approx(1.0, abs=0.01)
    assert is_blow(samples)


def test_threshold_is_exclusive():
    samples = np.full(16, 0.05)
    assert rms(samples) == pytest.approx(0.05)
    assert not is_blow(samples, threshold=0.06)
    assert is_blow(samples, threshold=0.04)


def test_rms_of_nothing():
    assert rms([]) == 0.0


def make_analyzer(scheduler, microphone, **kwargs):
    blows = []
    statuses = []
    analyzer = VolumeAnalyzer(
        lambda: blows.append(scheduler.frame_count),
        scheduler,
        microphone_factory=lambda window_size: microphone,
        on_status_change=statuses.append,
        **kwargs,
    )
    return analyzer, blows, statuses


def test_blows_are_reported_on_every_loud_frame(scheduler):
    microphone = FakeMicrophone()
    analyzer, blows, statuses = make_analyzer(scheduler, microphone)
    analyzer.start()
    assert statuses == [AudioStatus.LISTENING]

    scheduler.run_frame()
    assert blows == []
    microphone.make_loud()
    scheduler.run_frame()
    scheduler.run_frame()
    assert blows == [2, 3]
    microphone.make_quiet()
    scheduler.run_frame()
    assert blows == [2, 3]
    assert analyzer.last_rms == 0.0


def test_microphone_failure_is_terminal(scheduler):
    def refuse(window_size):
        raise MicrophoneUnavailableError("Permission denied")

    statuses = []
    analyzer = VolumeAnalyzer(
        lambda: None,
        scheduler,
        microphone_factory=refuse,
        on_status_change=statuses.append,
    )
    analyzer.start()
    assert analyzer.status is AudioStatus.ERROR
    assert scheduler.pending == 0
    # Starting again doesn't retry
    analyzer.start()
    analyzer.stop()
    assert statuses == [AudioStatus.ERROR]
    assert analyzer.status is AudioStatus.ERROR


def test_stop_closes_the_microphone(scheduler):
    microphone = FakeMicrophone()
    analyzer, blows, statuses = make_analyzer(scheduler, microphone)
    analyzer.start()
    scheduler.run_frame()
    analyzer.stop()
    assert microphone.closed
    assert analyzer.status is AudioStatus.IDLE
    microphone.make_loud()
    reads = microphone.reads
    scheduler.run_frame()
    assert microphone.reads == reads
    assert blows == []
    # Stopping twice is fine
    analyzer.stop()
    assert statuses == [AudioStatus.LISTENING, AudioStatus.IDLE]


def test_cancellation_stops_the_analysis(scheduler):
    microphone = FakeMicrophone()
    analyzer, blows, _ = make_analyzer(scheduler, microphone)
    analyzer.start()
    microphone.make_loud()
    analyzer.cancellation.cancel()
    scheduler.run_frame()
    scheduler.run_frame()
    assert blows == []


class FlakyMicrophone(FakeMicrophone):
    """A microphone whose first read fails."""

    def __init__(self):
        super().__init__()
        self.failures = 1

    def read_window(self):
        if self.failures:
            self.failures -= 1
            raise OSError("Input overflowed")
        return super().read_window()


def test_a_failed_read_keeps_the_analysis_going(scheduler, caplog):
    microphone = FlakyMicrophone()
    analyzer, blows, _ = make_analyzer(scheduler, microphone)
    analyzer.start()
    scheduler.run_frame()
    assert 'Volume analysis failed' in caplog.text
    assert analyzer.status is AudioStatus.LISTENING

    microphone.make_loud()
    for _ in range(5):
        scheduler.run_frame()
    assert blows == [2, 3, 4, 5, 6]


def test_a_failing_blow_callback_keeps_the_analysis_going(scheduler):
    microphone = FakeMicrophone()
    calls = []

    def on_blow():
        calls.append(scheduler.frame_count)
        raise RuntimeError("listener failed")

    analyzer = VolumeAnalyzer(
        on_blow, scheduler, microphone_factory=lambda window_size: microphone
    )
    analyzer.start()
    microphone.make_loud()
    scheduler.run_frame()
    scheduler.run_frame()
    assert calls == [1, 2]
    assert scheduler.pending == 1


def test_microphone_open_failure_keeps_its_cause(monkeypatch):
    terminated = []

    class RefusingPyAudio:
        def open(self, **kwargs):
            raise OSError("Invalid input device")

        def terminate(self):
            terminated.append(True)

    fake_pyaudio = types.ModuleType('pyaudio')
    fake_pyaudio.PyAudio = RefusingPyAudio
    fake_pyaudio.paUInt8 = 32
    fake_pyaudio.paContinue = 0
    monkeypatch.setitem(sys.modules, 'pyaudio', fake_pyaudio)

    with pytest.raises(MicrophoneUnavailableError) as excinfo:
        PyAudioMicrophone()
    assert isinstance(excinfo.value.__cause__, OSError)
    assert terminated == [True]
