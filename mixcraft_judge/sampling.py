"""Sampling challenge evaluation.

Five challenge types grade the state of a sampler:

    recreate-kit    pitch, slice layout and time stretch against a target kit
    chop-challenge  slice count and even spacing
    tune-to-track   pitch and time stretch against a track's key and tempo
    flip-this       how many manipulation techniques are in use
    clean-sample    trim points and fades

Pitch, time stretch, trim and fade deviations go through the shared
tolerance law, stretched so a deviation of five tolerances scores zero.
Only the target fields a challenge sets are graded.
"""

import logging
from typing import Sequence

from .config import (
    DEFAULT_CHOP_SLICES,
    FADE_TOLERANCE,
    SAMPLING_PITCH_TOLERANCE,
    SAMPLING_REACH,
    SLICE_COUNT_POINTS,
    SLICE_SPACING_POINTS,
    TIME_STRETCH_TOLERANCE,
    TRIM_TOLERANCE,
)
from .scoring import AspectFeedback, ToleranceBand, build_feedback, finalize, mean_score, summary_line
from .types import SAMPLING_CHALLENGE_TYPES, SampleSlice, SamplerParams, SamplingChallenge, ScoreResult
from .utils import round_half_up

logger = logging.getLogger(__name__)

PITCH_BAND = ToleranceBand(SAMPLING_PITCH_TOLERANCE, reach=SAMPLING_REACH)
STRETCH_BAND = ToleranceBand(TIME_STRETCH_TOLERANCE, reach=SAMPLING_REACH)
TRIM_BAND = ToleranceBand(TRIM_TOLERANCE, reach=SAMPLING_REACH)
FADE_BAND = ToleranceBand(FADE_TOLERANCE, reach=SAMPLING_REACH)

KIT_SUMMARY = (
    (90, "Excellent kit recreation!"),
    (75, "Good work, getting close!"),
    (60, "Keep refining your samples"),
    (0, "Listen to the reference again"),
)

CHOP_SUMMARY = (
    (90, "Perfect chops!"),
    (75, "Nice chopping!"),
    (60, "Chops are acceptable"),
    (0, "Keep practicing your chopping"),
)

TUNE_SUMMARY = (
    (90, "Sample is perfectly tuned to the track!"),
    (75, "Good tuning, almost there!"),
    (60, "Getting closer, keep adjusting"),
    (0, "Listen to the reference and match pitch/tempo"),
)

FLIP_SUMMARY = (
    (90, "Impressive flip!"),
    (75, "Great creative work!"),
    (60, "Keep flipping!"),
    (0, "Load a sample and make it your own"),
)

CLEAN_SUMMARY = (
    (90, "Sample is clean and polished!"),
    (75, "Good cleanup work!"),
    (60, "Sample is usable, but could be cleaner"),
    (0, "Focus on trimming silence and smoothing edges"),
)

TRIM_FEEDBACK = AspectFeedback("Trim points need adjustment", "Trim is close, refine the start/end points")
FADE_FEEDBACK = AspectFeedback("Adjust your fades to smooth the edges", "Fades are close, fine-tune them")

CHOP_SPACING_THRESHOLD = 60  # slice scores below this ask for even spacing


def score_slices(slices: Sequence[SampleSlice], expected: int, duration: float) -> float:
    """Score a slice layout, 0-100.

    The count is worth SLICE_COUNT_POINTS, losing points in proportion to the
    relative count error. Even spacing of the slice starts is worth
    SLICE_SPACING_POINTS: the mean distance of each gap from duration / count,
    relative to that ideal gap. A single slice when one is expected gets the
    full spacing share. With nothing expected, no slices scores 100 and any
    slices score 50.
    """
    count = len(slices)
    if expected == 0:
        return 100.0 if count == 0 else 50.0

    if count == expected:
        count_score = float(SLICE_COUNT_POINTS)
    else:
        count_score = max(0.0, SLICE_COUNT_POINTS * (1 - abs(count - expected) / expected))

    spacing_score = 0.0
    if count >= 2 and duration > 0:
        ideal = duration / count
        starts = sorted(s.start for s in slices)
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        error = sum(abs(gap - ideal) for gap in gaps) / len(gaps)
        spacing_score = max(0.0, SLICE_SPACING_POINTS * (1 - error / ideal))
    elif count == 1 and expected == 1:
        spacing_score = float(SLICE_SPACING_POINTS)

    return count_score + spacing_score


def score_trim(params: SamplerParams, start: float, end: float) -> float:
    return (TRIM_BAND.score(params.start_point, start) + TRIM_BAND.score(params.end_point, end)) / 2


def score_fades(params: SamplerParams, fade_in: float, fade_out: float) -> float:
    return (FADE_BAND.score(params.fade_in, fade_in) + FADE_BAND.score(params.fade_out, fade_out)) / 2


def count_manipulations(params: SamplerParams) -> int:
    """Number of techniques in use: pitch, stretch, slicing, reverse, trim."""
    return sum((
        params.pitch != 0,
        params.time_stretch != 1.0,
        len(params.slices) > 0,
        params.reverse,
        params.start_point > 0 or params.end_point < 1,
    ))


def _graded(breakdown: dict, wordings: dict, summary) -> ScoreResult:
    """Mean of the graded aspects; nothing to grade is a full score."""
    overall = mean_score(breakdown.values()) if breakdown else 100
    feedback = build_feedback(overall, breakdown, wordings, summary)
    return finalize(breakdown, feedback, overall=overall)


def _recreate_kit(challenge: SamplingChallenge, params: SamplerParams) -> ScoreResult:
    target = challenge.target
    breakdown = {}
    wordings = {}

    if target.pitch is not None:
        breakdown["pitch"] = PITCH_BAND.score(params.pitch, target.pitch)
        off_by = abs(params.pitch - target.pitch)
        wordings["pitch"] = AspectFeedback(f"Pitch is off by {off_by:g} semitones", "Pitch is close, fine-tune it")
    if challenge.expected_slices is not None:
        breakdown["slices"] = score_slices(params.slices, challenge.expected_slices, params.duration)
        wordings["slices"] = AspectFeedback(
            f"Expected {challenge.expected_slices} slices, you have {len(params.slices)}",
            "Check your slice distribution",
        )
    if target.time_stretch is not None:
        breakdown["time_stretch"] = STRETCH_BAND.score(params.time_stretch, target.time_stretch)
        wordings["time_stretch"] = AspectFeedback("Time stretch is off target", "Time stretch is close")

    return _graded(breakdown, wordings, KIT_SUMMARY)


def _chop(challenge: SamplingChallenge, params: SamplerParams) -> ScoreResult:
    expected = challenge.expected_slices or DEFAULT_CHOP_SLICES
    count = len(params.slices)
    score = round_half_up(score_slices(params.slices, expected, params.duration))

    hints = []
    if count == 0:
        hints.append("No slices created - chop up the sample!")
    elif count != expected:
        hints.append(f"Expected {expected} slices, you have {count}")
    if count > 0 and score < CHOP_SPACING_THRESHOLD:
        hints.append("Try spacing your chops more evenly")
    elif CHOP_SPACING_THRESHOLD <= score < 90:
        hints.append("Good chopping, refine the spacing")

    feedback = [summary_line(score, CHOP_SUMMARY), *hints]
    return finalize({"slices": score}, feedback, overall=score)


def _tune_to_track(challenge: SamplingChallenge, params: SamplerParams) -> ScoreResult:
    target = challenge.target
    breakdown = {}
    wordings = {}

    if target.pitch is not None:
        breakdown["pitch"] = PITCH_BAND.score(params.pitch, target.pitch)
        direction = "sharp" if params.pitch > target.pitch else "flat"
        wordings["pitch"] = AspectFeedback(
            f"Sample is {direction} - adjust pitch", "Almost in tune, small adjustment needed"
        )
    if target.time_stretch is not None:
        breakdown["time_stretch"] = STRETCH_BAND.score(params.time_stretch, target.time_stretch)
        wordings["time_stretch"] = AspectFeedback("Tempo is off - adjust time stretch", "Tempo is close, fine-tune it")

    return _graded(breakdown, wordings, TUNE_SUMMARY)


def _flip(params: SamplerParams) -> ScoreResult:
    if not params.sample_loaded:
        creativity, hint = 0, "Load a sample to start your flip"
    else:
        manipulations = count_manipulations(params)
        if manipulations == 0:
            creativity, hint = 50, "Sample loaded - now get creative! Try pitching, chopping, or reversing"
        else:
            creativity = min(100, 60 + 10 * manipulations)
            if manipulations == 1:
                hint = "Good start! Try combining more techniques"
            elif manipulations == 2:
                hint = "Nice! Keep experimenting"
            else:
                hint = "Creative flip! You're using multiple techniques"

    feedback = [summary_line(creativity, FLIP_SUMMARY), hint]
    return finalize({"creativity": creativity}, feedback, overall=creativity)


def _clean(challenge: SamplingChallenge, params: SamplerParams) -> ScoreResult:
    target = challenge.target
    breakdown = {}

    if target.start_point is not None or target.end_point is not None:
        breakdown["trim"] = score_trim(
            params,
            target.start_point if target.start_point is not None else 0.0,
            target.end_point if target.end_point is not None else 1.0,
        )
    if target.fade_in is not None or target.fade_out is not None:
        breakdown["fades"] = score_fades(
            params,
            target.fade_in if target.fade_in is not None else 0.0,
            target.fade_out if target.fade_out is not None else 0.0,
        )
    if breakdown:
        return _graded(breakdown, {"trim": TRIM_FEEDBACK, "fades": FADE_FEEDBACK}, CLEAN_SUMMARY)

    # No targets: reward whichever cleanup was applied
    trimmed = params.start_point > 0 or params.end_point < 1
    faded = params.fade_in > 0 or params.fade_out > 0
    hints = []
    if trimmed and faded:
        score = 100
    elif trimmed or faded:
        score = 75
        hints.append("Good start! Try trimming and adding fades")
    else:
        score = 50
        hints.append("Trim the sample and add fades to clean it up")

    feedback = [summary_line(score, CLEAN_SUMMARY), *hints]
    return finalize({"trim": score, "fades": score}, feedback, overall=score)


def evaluate_sampling_challenge(challenge: SamplingChallenge, params: SamplerParams) -> ScoreResult:
    """Grade sampler state against a sampling challenge.

    Raises:
        ValueError: for an unknown challenge type.
    """
    kind = challenge.challenge_type
    logger.debug("Evaluating %s sampling challenge %r", kind, challenge.id)
    if kind == "recreate-kit":
        return _recreate_kit(challenge, params)
    if kind == "chop-challenge":
        return _chop(challenge, params)
    if kind == "tune-to-track":
        return _tune_to_track(challenge, params)
    if kind == "flip-this":
        return _flip(params)
    if kind == "clean-sample":
        return _clean(challenge, params)
    raise ValueError(f"Unknown sampling challenge type {kind!r} (use {', '.join(SAMPLING_CHALLENGE_TYPES)})")
