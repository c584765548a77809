#!/usr/bin/env python
"""
Command-line interface for the candle application.

This script provides a CLI wrapper around the run_candle function, allowing all
parameters to be controlled via command-line arguments.

Examples:
    # Run with default settings (MediaPipe on GPU, falling back to CPU)
    python -m candlelight.main

    # Use the second camera, without mirroring
    python -m candlelight.main --camera-index 1 --no-mirror

    # Need a louder blow, and see what the hand tracking is up to
    python -m candlelight.main --blow-threshold 0.1 --log-level DEBUG

    # No microphone: hand tracking only
    python -m candlelight.main --no-audio

    # Show the raw match position and microphone volume over the camera feed
    python -m candlelight.main --debug
"""

import argh
from candlelight.script_utils import candle_cli


def dispatched_candle_cli():
    argh.dispatch_command(candle_cli)


if __name__ == "__main__":
    dispatched_candle_cli()
