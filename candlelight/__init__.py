"""

A birthday cake with a candle you can blow out, and relight with your finger.

Two sensors drive the candle:
the microphone, whose loudness tells us when someone is blowing, and the camera,
in which we track the tip of the index finger, and use it as a match.
Blow, and the candle goes out.
Bring the match to the top of the cake (the "ignition zone"), and it lights up again.

Both sensors are noisy and run at their own pace, so the interesting part is turning
them into a few stable events:

* tracking.py: The detection loop, sampling the video through the hand detector,
    and mapping the fingertip from camera pixels to the screen (the "match position").
* detector.py: Bringing up the hand landmark engine: backend selection with fallback,
    waiting for the video, and retrying with exponential backoff.
* mediapipe_engine.py: The hand landmark engine, using MediaPipe's HandLandmarker.
* audio.py: The microphone, and the volume analyzer that detects blows (RMS over a
    threshold).
* geometry.py: Rectangles, coordinate mapping, and the ignition zone.
* candle.py: The lit/unlit state machine, with a cooldown after each relight.
* scheduler.py: The frame scheduler everything runs on (one thread, one frame at a
    time).
* session.py: Wiring it all together, and tearing it all down.
* display.py, layout.py, script_utils.py: The OpenCV window, and the command line.

Run it with `candle-cli` (or `python -m candlelight.main`).

"""
