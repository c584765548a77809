#!/usr/bin/env python
"""
Command-line interface for the candle application.

Examples:
    # Run with default settings
    python candle_cli.py

    # Use a model file of your own, on CPU only
    python candle_cli.py --model-path ~/models/hand_landmarker.task --preferred-backend cpu

    # Blow detection off, more verbose logs
    python candle_cli.py --no-audio --log-level DEBUG
"""

import argh
from candlelight.script_utils import candle_cli


if __name__ == "__main__":
    argh.dispatch_command(candle_cli)
