"""Timbre similarity between a player's sound and a target sound.

Four aspects are scored from captured feature vectors:

    brightness  spectral centroid relative to the target's
    attack      frames needed to reach 90% of peak loudness
    filter      spectral spread and flatness (tone colour)
    envelope    normalized loudness contour and sustain level

When parameter snapshots are supplied as well, the filter and envelope
aspects are averaged with the matching parameter sub-scores, and
judge_sound() blends the audio score with the full parameter score.
"""

import logging
from typing import Optional

from .config import (
    ATTACK_TOLERANCE,
    BLEND_WEIGHTS,
    BRIGHTNESS_TOLERANCE,
    ENVELOPE_TOLERANCE,
    FLATNESS_TOLERANCE,
    SPREAD_TOLERANCE,
    SUSTAIN_TOLERANCE,
    TIMBRE_WEIGHTS,
)
from .params import compare_params
from .scoring import AspectFeedback, ToleranceBand, build_feedback, finalize
from .types import ScoreResult, SoundFeatureVector, SubtractiveParams, SynthParams

logger = logging.getLogger(__name__)

BRIGHTNESS_BAND = ToleranceBand(BRIGHTNESS_TOLERANCE)
ATTACK_BAND = ToleranceBand(ATTACK_TOLERANCE)
SPREAD_BAND = ToleranceBand(SPREAD_TOLERANCE)
FLATNESS_BAND = ToleranceBand(FLATNESS_TOLERANCE)
ENVELOPE_BAND = ToleranceBand(ENVELOPE_TOLERANCE)
SUSTAIN_BAND = ToleranceBand(SUSTAIN_TOLERANCE)

SUMMARY = (
    (90, "Perfect! You nailed it!"),
    (70, "Great job! Just a few tweaks needed for perfection."),
    (50, "Good start! Keep refining to improve your score."),
    (0, "Keep experimenting - listen to the target again"),
)

ENVELOPE_FEEDBACK = AspectFeedback(
    "Envelope shape needs work - check attack, decay, and sustain",
    "Envelope is close but could be tighter",
)

# Cutoff ratios (player / target) beyond which the hint names the cutoff
CUTOFF_RATIO_HIGH = 1.3
CUTOFF_RATIO_LOW = 0.7


def _relative(player: float, target: float) -> float:
    return abs(player - target) / max(target, 1.0)


def _envelope_difference(player: SoundFeatureVector, target: SoundFeatureVector) -> float:
    """Mean absolute difference of the loudness envelopes (1.0 when either is empty)."""
    length = min(len(player.rms_envelope), len(target.rms_envelope))
    if length == 0:
        return 1.0
    return sum(abs(player.rms_envelope[i] - target.rms_envelope[i]) for i in range(length)) / length


def _has_envelope(params: Optional[SynthParams]) -> bool:
    return params is not None and hasattr(params, "amplitude_envelope")


def _brightness_feedback(player: SoundFeatureVector, target: SoundFeatureVector) -> AspectFeedback:
    if player.spectral_centroid > target.spectral_centroid:
        needs_work = "Too bright - try lowering the filter cutoff"
    else:
        needs_work = "Too dark - try raising the filter cutoff"
    return AspectFeedback(needs_work, "Brightness is close, fine-tune the filter")


def _attack_feedback(player: SoundFeatureVector, target: SoundFeatureVector) -> AspectFeedback:
    if player.attack_time > target.attack_time:
        needs_work = "Attack is too slow - try a shorter attack time"
    else:
        needs_work = "Attack is too fast - try a longer attack time"
    return AspectFeedback(needs_work, "Attack is close, fine-tune the envelope")


def _filter_feedback(
    player: SoundFeatureVector,
    target: SoundFeatureVector,
    player_params: Optional[SynthParams],
    target_params: Optional[SynthParams],
) -> AspectFeedback:
    if isinstance(player_params, SubtractiveParams) and isinstance(target_params, SubtractiveParams):
        if player_params.filter.type != target_params.filter.type:
            return AspectFeedback(f"Try a {target_params.filter.type} filter", "Filter settings are close")
        cutoff_ratio = player_params.filter.cutoff / max(target_params.filter.cutoff, 1.0)
        if cutoff_ratio > CUTOFF_RATIO_HIGH:
            return AspectFeedback("Filter cutoff is too high", "Filter settings are close")
        if cutoff_ratio < CUTOFF_RATIO_LOW:
            return AspectFeedback("Filter cutoff is too low", "Filter settings are close")
        if abs(player_params.filter.resonance - target_params.filter.resonance) > 3:
            if player_params.filter.resonance > target_params.filter.resonance:
                return AspectFeedback("Resonance is too high", "Filter settings are close")
            return AspectFeedback("Resonance is too low", "Filter settings are close")
    if player.spectral_flatness > target.spectral_flatness + FLATNESS_TOLERANCE:
        needs_work = "Too noisy - the tone should be purer"
    elif player.spectral_flatness < target.spectral_flatness - FLATNESS_TOLERANCE:
        needs_work = "Too pure - the tone should be noisier"
    elif player.spectral_spread > target.spectral_spread:
        needs_work = "Spectrum is too wide - narrow the filter"
    else:
        needs_work = "Spectrum is too narrow - open up the filter"
    return AspectFeedback(needs_work, "Filter settings are close")


def _check_families(player_params: Optional[SynthParams], target_params: Optional[SynthParams]) -> None:
    if player_params is None or target_params is None:
        return
    if player_params.family != target_params.family:
        raise ValueError(
            f"Cannot compare {player_params.family} parameters with {target_params.family} parameters"
        )


def _timbre_breakdown(
    player: SoundFeatureVector,
    target: SoundFeatureVector,
    player_params: Optional[SynthParams],
    target_params: Optional[SynthParams],
) -> dict[str, float]:
    brightness = BRIGHTNESS_BAND.score_deviation(_relative(player.spectral_centroid, target.spectral_centroid))
    attack = ATTACK_BAND.score(player.attack_time, target.attack_time)

    spread = SPREAD_BAND.score_deviation(_relative(player.spectral_spread, target.spectral_spread))
    flatness = FLATNESS_BAND.score(player.spectral_flatness, target.spectral_flatness)
    filter_score = (spread + flatness) / 2

    contour = ENVELOPE_BAND.score_deviation(_envelope_difference(player, target))
    sustain = SUSTAIN_BAND.score(player.sustain_level, target.sustain_level)
    envelope = (contour + sustain) / 2

    if isinstance(player_params, SubtractiveParams) and isinstance(target_params, SubtractiveParams):
        params_filter = compare_params(player_params, target_params, evaluated=["filter"]).score
        filter_score = (filter_score + params_filter) / 2
    if _has_envelope(player_params) and _has_envelope(target_params):
        params_envelope = compare_params(player_params, target_params, evaluated=["envelope"]).score
        envelope = (envelope + params_envelope) / 2

    return {
        "brightness": brightness,
        "attack": attack,
        "filter": filter_score,
        "envelope": envelope,
    }


def _weighted(breakdown: dict[str, float]) -> float:
    return sum(breakdown[aspect] * weight for aspect, weight in TIMBRE_WEIGHTS.items())


def _feedback(
    overall: float,
    breakdown: dict[str, float],
    player: SoundFeatureVector,
    target: SoundFeatureVector,
    player_params: Optional[SynthParams],
    target_params: Optional[SynthParams],
) -> tuple[str, ...]:
    wordings = {
        "brightness": _brightness_feedback(player, target),
        "attack": _attack_feedback(player, target),
        "filter": _filter_feedback(player, target, player_params, target_params),
        "envelope": ENVELOPE_FEEDBACK,
    }
    return build_feedback(overall, breakdown, wordings, SUMMARY, rank=True)


def compare(
    player: SoundFeatureVector,
    target: SoundFeatureVector,
    player_params: Optional[SynthParams] = None,
    target_params: Optional[SynthParams] = None,
) -> ScoreResult:
    """Score how closely the player's sound matches the target.

    Args:
        player: features captured from the player's sound
        target: features captured from the target sound
        player_params, target_params: optional parameter snapshots of the
            same family; they refine the filter and envelope aspects

    Returns:
        ScoreResult with breakdown {brightness, attack, filter, envelope}
        and feedback ranked worst aspect first.

    Raises:
        ValueError: if the snapshots are of different families.
    """
    _check_families(player_params, target_params)
    breakdown = _timbre_breakdown(player, target, player_params, target_params)
    overall = _weighted(breakdown)
    feedback = _feedback(overall, breakdown, player, target, player_params, target_params)
    return finalize(breakdown, feedback, overall=overall)


def blend(audio_overall: float, params_score: float, family: str) -> float:
    """Linear blend of the audio score and the parameter score.

    Raises:
        ValueError: for a family without blend weights.
    """
    try:
        audio_weight, params_weight = BLEND_WEIGHTS[family]
    except KeyError:
        raise ValueError(f"No blend weights for family {family!r}") from None
    return audio_overall * audio_weight + params_score * params_weight


def judge_sound(
    player: SoundFeatureVector,
    target: SoundFeatureVector,
    player_params: SynthParams,
    target_params: SynthParams,
) -> ScoreResult:
    """Full timbre judgement: audio similarity blended with parameter proximity.

    The breakdown carries the four audio aspects plus ``parameters``.

    Raises:
        ValueError: if the snapshots are of different families.
    """
    _check_families(player_params, target_params)
    breakdown = _timbre_breakdown(player, target, player_params, target_params)
    audio_overall = _weighted(breakdown)
    params = compare_params(player_params, target_params)
    overall = blend(audio_overall, params.score, target_params.family)
    logger.debug(
        "Timbre judgement: audio %.1f, parameters %d, blended %.1f (%s)",
        audio_overall, params.score, overall, target_params.family,
    )

    feedback = _feedback(overall, breakdown, player, target, player_params, target_params)
    breakdown["parameters"] = params.score
    return finalize(breakdown, feedback, overall=overall)
