"""Feature capture from an analysis tap.

A capture triggers a sound, samples the tap's frequency magnitudes at uniform
intervals, releases the sound and reduces the frames into a
SoundFeatureVector. Loudness per frame is the RMS of the magnitude array, an
approximation that reuses the frequency data instead of time-domain samples.
"""

import asyncio
import logging
import math
from typing import Callable, Optional, Sequence

from .config import ATTACK_THRESHOLD, FLATNESS_EPSILON
from .types import AnalysisTap, CaptureConfig, SoundFeatureVector

logger = logging.getLogger(__name__)


class AsyncioClock:
    """Clock backed by the running event loop."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def frame_loudness(frame: Sequence[float]) -> float:
    """Root-mean-square of one magnitude frame (0 for an empty frame)."""
    if not frame:
        return 0.0
    return math.sqrt(sum(v * v for v in frame) / len(frame))


def extract_features(
    frames: Sequence[Sequence[float]],
    loudness: Sequence[float],
    bin_count: int,
) -> SoundFeatureVector:
    """Reduce captured frames into a feature vector.

    Args:
        frames: magnitude arrays, one per sampled frame
        loudness: loudness per frame (same length as frames)
        bin_count: analysis bin count; short frames are padded with zeros

    Returns:
        SoundFeatureVector. Silent or empty input gives a zeroed vector.
    """
    average = [0.0] * bin_count
    for frame in frames:
        for i in range(min(bin_count, len(frame))):
            average[i] += frame[i]
    if frames:
        average = [v / len(frames) for v in average]

    total_energy = sum(average)
    if total_energy > 0:
        centroid = sum(i * e for i, e in enumerate(average)) / total_energy
        spread = math.sqrt(sum((i - centroid) ** 2 * e for i, e in enumerate(average)) / total_energy)
    else:
        centroid = 0.0
        spread = 0.0

    if average:
        shifted = [e + FLATNESS_EPSILON for e in average]
        geometric = math.exp(sum(math.log(v) for v in shifted) / len(shifted))
        arithmetic = sum(shifted) / len(shifted)
        flatness = geometric / arithmetic
    else:
        flatness = 0.0

    peak = max([*loudness, 1.0])
    envelope = tuple(v / peak for v in loudness)

    attack_time = len(loudness)
    threshold = peak * ATTACK_THRESHOLD
    for i, value in enumerate(loudness):
        if value >= threshold:
            attack_time = i
            break

    sustain_start = len(envelope) // 2
    tail = envelope[sustain_start:]
    sustain = sum(tail) / len(tail) if tail else 0.0

    return SoundFeatureVector(
        spectral_centroid=centroid,
        spectral_spread=spread,
        spectral_flatness=flatness,
        attack_time=attack_time,
        sustain_level=sustain,
        rms_envelope=envelope,
        average_spectrum=tuple(average),
    )


async def capture(
    tap: AnalysisTap,
    trigger: Callable[[], None],
    release: Callable[[], None],
    config: Optional[CaptureConfig] = None,
    clock=None,
) -> SoundFeatureVector:
    """Play a sound and capture its features from an analysis tap.

    Args:
        tap: source of frequency magnitudes (read_frequency_data / bin_count)
        trigger: starts the sound
        release: releases the sound after the last frame, or when the
            capture is cancelled or a tap read fails
        config: observation window (default 500 ms, 20 frames)
        clock: object with ``async sleep(seconds)``; defaults to asyncio

    The capture always runs to completion. A detached tap yields stale or
    zero frames, which reduce to a degenerate vector rather than an error.
    """
    config = config or CaptureConfig()
    clock = clock or AsyncioClock()
    bin_count = tap.bin_count

    frames: list[list[float]] = []
    loudness: list[float] = []

    trigger()
    try:
        await clock.sleep(config.settle_ms / 1000.0)

        for index in range(config.frame_count):
            if index > 0:
                await clock.sleep(config.frame_interval)
            frame = [float(v) for v in tap.read_frequency_data()]
            frames.append(frame)
            loudness.append(frame_loudness(frame))
    finally:
        # A gated voice only frees itself after release
        release()

    features = extract_features(frames, loudness, bin_count)
    logger.debug(
        "Captured %d frames (peak loudness %.2f, centroid %.2f)",
        len(frames), max(loudness, default=0.0), features.spectral_centroid,
    )
    return features


async def capture_pair(
    player: tuple[AnalysisTap, Callable[[], None], Callable[[], None]],
    target: tuple[AnalysisTap, Callable[[], None], Callable[[], None]],
    config: Optional[CaptureConfig] = None,
    clock=None,
    gap: float = 0.0,
) -> tuple[SoundFeatureVector, SoundFeatureVector]:
    """Capture the player's sound, then the target's.

    The captures run one after the other so the two sounds never overlap in
    one window; ``gap`` seconds pass between them to let the first release
    ring out.
    """
    clock = clock or AsyncioClock()
    player_features = await capture(*player, config=config, clock=clock)
    if gap > 0:
        await clock.sleep(gap)
    target_features = await capture(*target, config=config, clock=clock)
    return player_features, target_features
