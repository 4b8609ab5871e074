"""Utility functions for the MIXCRAFT judge."""

import math
import os
import signal
import subprocess
import time

from .config import TAP_MAGNITUDE_SCALE, TAP_MAX_DB, TAP_MIN_DB


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (82.5 -> 83).

    round() uses banker's rounding and would give 82.
    """
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def amp_to_db(amp: float) -> float:
    """Convert linear amplitude to decibels."""
    if amp <= 0:
        return -float('inf')
    return 20 * math.log10(amp)


def band_level_db(magnitude: float) -> float:
    """Level in dB of a raw FFT band magnitude, normalized to full scale."""
    return amp_to_db(magnitude / TAP_MAGNITUDE_SCALE)


def magnitude_to_byte(magnitude: float) -> float:
    """Map a raw FFT band magnitude onto the 0-255 byte scale of an analyser.

    Levels at or below TAP_MIN_DB read 0, at or above TAP_MAX_DB read 255.
    """
    db = band_level_db(magnitude)
    if db == -float('inf'):
        return 0.0
    scaled = (db - TAP_MIN_DB) / (TAP_MAX_DB - TAP_MIN_DB) * 255.0
    return float(clamp(scaled, 0.0, 255.0))


def log2_distance(a: float, b: float) -> float:
    """Distance in octaves between two positive quantities.

    Two zeros are 0 octaves apart; zero against non-zero is treated as far
    apart (10 octaves).
    """
    if a <= 0 and b <= 0:
        return 0.0
    if a <= 0 or b <= 0:
        return 10.0
    return abs(math.log2(a / b))


def kill_process_on_port(port: int) -> bool:
    """Kill any process using the specified UDP port.

    Returns True if a process was killed.
    """
    try:
        # lsof works on macOS and Linux
        result = subprocess.run(
            ["lsof", "-t", "-i", f"UDP:{port}"],
            capture_output=True,
            text=True,
            timeout=5
        )
        if result.returncode == 0 and result.stdout.strip():
            my_pid = os.getpid()
            for pid_str in result.stdout.strip().split('\n'):
                try:
                    pid = int(pid_str)
                    if pid != my_pid:
                        os.kill(pid, signal.SIGTERM)
                        time.sleep(0.1)
                except (ValueError, ProcessLookupError, PermissionError):
                    pass
            return True
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return False
