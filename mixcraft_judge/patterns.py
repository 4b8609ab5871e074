"""Drum pattern scoring.

Patterns are compared track by track (matched by id) on four aspects:
step placement, hit velocity, swing and tempo. A challenge grades only the
aspects in its evaluation focus.
"""

import logging

from .config import PATTERN_ASPECTS, SWING_TOLERANCE, TEMPO_TOLERANCE, VELOCITY_TOLERANCE
from .scoring import AspectFeedback, ToleranceBand, build_feedback, finalize
from .types import DrumPattern, DrumSequencingChallenge, DrumTrack, ScoreResult
from .utils import round_half_up

logger = logging.getLogger(__name__)

VELOCITY_BAND = ToleranceBand(VELOCITY_TOLERANCE)
SWING_BAND = ToleranceBand(SWING_TOLERANCE)
TEMPO_BAND = ToleranceBand(TEMPO_TOLERANCE)

FEEDBACK = {
    "pattern": AspectFeedback(
        "Some steps are in the wrong position - check the pattern",
        "Pattern is close, but a few steps need adjustment",
    ),
    "velocity": AspectFeedback(
        "Velocity dynamics are off - adjust hit strengths",
        "Velocities are close, fine-tune the dynamics",
    ),
    "swing": AspectFeedback(
        "Swing amount needs adjustment",
        "Swing is close, small adjustment needed",
    ),
    "tempo": AspectFeedback(
        "Tempo is off - check the BPM",
        "Tempo is close, fine-tune the BPM",
    ),
}

SUMMARY = (
    (90, "Excellent drum pattern!"),
    (70, "Good work, pattern is solid!"),
    (0, "Keep practicing - listen to the target pattern"),
)


def compare_track_patterns(user_track: DrumTrack, target_track: DrumTrack) -> float:
    """Percentage of steps whose on/off state matches (unrounded).

    Only the shorter of the two step lists is compared; no steps gives 100.
    """
    step_count = min(len(user_track.steps), len(target_track.steps))
    if step_count == 0:
        return 100.0

    matching = sum(
        1 for i in range(step_count)
        if user_track.steps[i].active == target_track.steps[i].active
    )
    return matching / step_count * 100


def score_pattern(user: DrumPattern, target: DrumPattern) -> int:
    """Step placement accuracy across all target tracks, 0-100.

    A target track the user doesn't have scores 0 for that track.
    """
    if not target.tracks:
        return 100

    total = 0.0
    for target_track in target.tracks:
        user_track = user.track(target_track.id)
        if user_track is None:
            logger.debug("Track %r missing from submitted pattern", target_track.id)
            continue
        total += compare_track_patterns(user_track, target_track)

    return round_half_up(total / len(target.tracks))


def score_velocity(user: DrumPattern, target: DrumPattern) -> int:
    """Velocity accuracy over steps active in both patterns, 0-100.

    Tracks missing from the user pattern are skipped. With nothing to
    compare the score is 100.
    """
    total = 0.0
    compared = 0

    for target_track in target.tracks:
        user_track = user.track(target_track.id)
        if user_track is None:
            continue
        for user_step, target_step in zip(user_track.steps, target_track.steps):
            if user_step.active and target_step.active:
                total += VELOCITY_BAND.score(user_step.velocity, target_step.velocity)
                compared += 1

    if compared == 0:
        return 100
    return round_half_up(total / compared)


def score_swing(user_swing: float, target_swing: float) -> int:
    return round_half_up(SWING_BAND.score(user_swing, target_swing))


def score_tempo(user_tempo: float, target_tempo: float) -> int:
    return round_half_up(TEMPO_BAND.score(user_tempo, target_tempo))


def evaluate(challenge: DrumSequencingChallenge, user_pattern: DrumPattern) -> ScoreResult:
    """Grade a submitted pattern against a challenge's target.

    Only aspects named in the challenge's evaluation focus are scored; the
    overall score is their plain mean. With an empty focus the overall
    score is 0.
    """
    target = challenge.target_pattern
    focus = set(challenge.evaluation_focus)
    unknown = focus.difference(PATTERN_ASPECTS)
    if unknown:
        raise ValueError(f"Unknown evaluation focus {sorted(unknown)} (use {', '.join(PATTERN_ASPECTS)})")

    breakdown = {}
    if "pattern" in focus:
        breakdown["pattern"] = score_pattern(user_pattern, target)
    if "velocity" in focus:
        breakdown["velocity"] = score_velocity(user_pattern, target)
    if "swing" in focus:
        breakdown["swing"] = score_swing(user_pattern.swing, target.swing)
    if "tempo" in focus:
        breakdown["tempo"] = score_tempo(user_pattern.tempo, target.tempo)

    if not breakdown:
        overall = 0
    else:
        overall = round_half_up(sum(breakdown.values()) / len(breakdown))

    feedback = build_feedback(overall, breakdown, FEEDBACK, SUMMARY, order=PATTERN_ASPECTS)
    return finalize(breakdown, feedback, overall=overall)
