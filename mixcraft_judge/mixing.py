"""Mixing and production challenge evaluation.

Mixing challenges grade a single EQ / compressor pair against either exact
target settings or acceptable ranges that fix a described problem.
Production challenges grade the channel strips of several layers, either
against a reference mix (layer by layer) or against goal conditions.
"""

import logging
from typing import Any, Sequence

from .config import (
    COMP_AMOUNT_TOLERANCE,
    COMP_ATTACK_TOLERANCE,
    COMP_RELEASE_TOLERANCE,
    COMP_THRESHOLD_TOLERANCE,
    EQ_TOLERANCE,
    LAYER_CLOSE,
    LAYER_NEEDS_WORK,
)
from .params import MIX_TRACK_RULES, compare_params
from .scoring import ToleranceBand, finalize, mean_score, summary_line
from .types import (
    CompressorSettings,
    CompressorTarget,
    ConditionResult,
    EQSettings,
    EQTarget,
    MixingChallenge,
    MixingProblem,
    MixTrackParams,
    ProductionChallenge,
    ProductionCondition,
    ProductionGoalTarget,
    ProductionReferenceTarget,
    ScoreResult,
)
from .utils import round_half_up

logger = logging.getLogger(__name__)

EQ_BAND = ToleranceBand(EQ_TOLERANCE)
THRESHOLD_BAND = ToleranceBand(COMP_THRESHOLD_TOLERANCE)
AMOUNT_BAND = ToleranceBand(COMP_AMOUNT_TOLERANCE)
ATTACK_BAND = ToleranceBand(COMP_ATTACK_TOLERANCE)
RELEASE_BAND = ToleranceBand(COMP_RELEASE_TOLERANCE)

DIRECTION_THRESHOLD = 70  # bands scoring below this get a directional hint

MIXING_SUMMARY = (
    (90, "Excellent mix!"),
    (70, "Good work, nearly there!"),
    (50, "Getting closer, keep adjusting"),
    (0, "Listen to the target again"),
)

REFERENCE_SUMMARY = (
    (90, "Excellent balance!"),
    (70, "Good work, getting close!"),
    (50, "Keep refining the balance"),
    (0, "Listen to the reference again"),
)

GOAL_SUMMARY = (
    (90, "All goals met!"),
    (70, "Almost there!"),
    (50, "Good start, keep going"),
    (0, "Review the goals and try again"),
)

# Production layers weigh every evaluated field equally
LAYER_FIELD_WEIGHTS = {rule.name: 1.0 / rule.weight for rule in MIX_TRACK_RULES}


def _format_number(value: float) -> str:
    return f"{value:g}"


# Mixing challenges

def _evaluate_eq(eq: EQSettings, target: EQTarget) -> tuple[dict, list[str]]:
    scores = {
        "eq_low": EQ_BAND.score(eq.low, target.low),
        "eq_mid": EQ_BAND.score(eq.mid, target.mid),
        "eq_high": EQ_BAND.score(eq.high, target.high),
    }
    hints = []
    if scores["eq_low"] < DIRECTION_THRESHOLD:
        hints.append(f"Try to {'boost' if eq.low < target.low else 'cut'} the low frequencies more")
    if scores["eq_mid"] < DIRECTION_THRESHOLD:
        hints.append(f"The mids need more {'boost' if eq.mid < target.mid else 'cut'}")
    if scores["eq_high"] < DIRECTION_THRESHOLD:
        hints.append(f"Adjust the highs - {'boost' if eq.high < target.high else 'cut'} a bit more")
    if not hints:
        hints.append("Good EQ balance!")

    breakdown = {"eq": sum(scores.values()) / len(scores), **scores}
    return breakdown, hints


def _evaluate_compressor(comp: CompressorSettings, target: CompressorTarget) -> tuple[dict, list[str]]:
    scores = {
        "threshold": THRESHOLD_BAND.score(comp.threshold, target.threshold),
        "amount": AMOUNT_BAND.score(comp.amount, target.amount),
    }
    timed = target.attack is not None and target.release is not None
    if timed:
        scores["attack"] = ATTACK_BAND.score(comp.attack, target.attack)
        scores["release"] = RELEASE_BAND.score(comp.release, target.release)

    hints = []
    if scores["threshold"] < DIRECTION_THRESHOLD:
        hints.append(f"{'Raise' if comp.threshold < target.threshold else 'Lower'} the threshold")
    if scores["amount"] < DIRECTION_THRESHOLD:
        hints.append(f"{'Increase' if comp.amount < target.amount else 'Decrease'} the compression amount")
    if timed and scores["attack"] < DIRECTION_THRESHOLD:
        hints.append(f"Try a {'slower' if comp.attack < target.attack else 'faster'} attack")
    if timed and scores["release"] < DIRECTION_THRESHOLD:
        hints.append(f"Adjust for a {'slower' if comp.release < target.release else 'faster'} release")
    if not hints:
        hints.append("Compression settings look good!")

    breakdown = {"compressor": sum(scores.values()) / len(scores), **scores}
    return breakdown, hints


def _in_range(value: float, bounds: tuple[float, float]) -> bool:
    low, high = bounds
    return low <= value <= high


def _evaluate_problem(
    eq: EQSettings, comp: CompressorSettings, problem: MixingProblem
) -> tuple[dict, list[str]]:
    scores = []
    hints = []

    for band, label in (("low", "Low"), ("mid", "Mid"), ("high", "High")):
        bounds = problem.eq_ranges.get(band)
        if bounds is None:
            continue
        if _in_range(getattr(eq, band), bounds):
            scores.append(100)
        else:
            scores.append(0)
            hints.append(
                f"{label} EQ should be between {_format_number(bounds[0])} and {_format_number(bounds[1])} dB"
            )

    bounds = problem.compressor_ranges.get("threshold")
    if bounds is not None:
        if _in_range(comp.threshold, bounds):
            scores.append(100)
        else:
            scores.append(0)
            hints.append(
                f"Threshold should be between {_format_number(bounds[0])} and {_format_number(bounds[1])} dB"
            )
    bounds = problem.compressor_ranges.get("amount")
    if bounds is not None:
        if _in_range(comp.amount, bounds):
            scores.append(100)
        else:
            scores.append(0)
            hints.append(
                f"Compression amount should be between {_format_number(bounds[0])}% and {_format_number(bounds[1])}%"
            )

    if not hints:
        hints.append("Problem solved correctly!")
    return {"solution": mean_score(scores)}, hints


def evaluate_mixing_challenge(
    challenge: MixingChallenge,
    eq: EQSettings,
    compressor: CompressorSettings,
) -> ScoreResult:
    """Grade EQ and compressor settings against a mixing challenge.

    Raises:
        ValueError: for an unknown target kind.
    """
    target = challenge.target
    if isinstance(target, EQTarget):
        breakdown, hints = _evaluate_eq(eq, target)
        overall = breakdown["eq"]
    elif isinstance(target, CompressorTarget):
        breakdown, hints = _evaluate_compressor(compressor, target)
        overall = breakdown["compressor"]
    elif isinstance(target, MixingProblem):
        breakdown, hints = _evaluate_problem(eq, compressor, target)
        overall = breakdown["solution"]
    else:
        raise ValueError(f"Unknown mixing target {target!r}")

    overall = round_half_up(overall)
    feedback = [summary_line(overall, MIXING_SUMMARY), *hints]
    return finalize(breakdown, feedback, overall=overall)


# Production challenges

def _layer_target(layer: MixTrackParams, target) -> MixTrackParams:
    """Reference layer as a mix-track snapshot; unset fields mirror the player's."""
    return MixTrackParams(
        id=layer.id,
        name=layer.name,
        volume=target.volume,
        pan=target.pan if target.pan is not None else layer.pan,
        muted=target.muted,
        eq_low=target.eq_low if target.eq_low is not None else layer.eq_low,
        eq_mid=layer.eq_mid,
        eq_high=target.eq_high if target.eq_high is not None else layer.eq_high,
    )


def _evaluate_reference(
    challenge: ProductionChallenge,
    target: ProductionReferenceTarget,
    layers: Sequence[MixTrackParams],
) -> ScoreResult:
    controls = challenge.controls
    breakdown = {}
    hints = []

    for layer, layer_target in zip(layers, target.layers):
        evaluated = ["volume", "muted"]
        if layer_target.pan is not None and controls.pan:
            evaluated.append("pan")
        if controls.eq:
            if layer_target.eq_low is not None:
                evaluated.append("eq.low")
            if layer_target.eq_high is not None:
                evaluated.append("eq.high")

        comparison = compare_params(
            layer, _layer_target(layer, layer_target),
            weights=LAYER_FIELD_WEIGHTS, evaluated=evaluated,
        )
        key = layer.id or f"layer{len(breakdown) + 1}"
        breakdown[key] = comparison.score

        name = layer.name or key
        if comparison.score < LAYER_NEEDS_WORK:
            hints.append(f"{name} needs adjustment")
        elif comparison.score < LAYER_CLOSE:
            hints.append(f"{name} is close, fine-tune it")

    if len(layers) != len(target.layers):
        logger.debug("Comparing %d of %d reference layers", len(breakdown), len(target.layers))

    overall = mean_score(breakdown.values())
    feedback = [summary_line(overall, REFERENCE_SUMMARY), *hints]
    return finalize(breakdown, feedback, overall=overall)


def _arg(condition: ProductionCondition, *names: str) -> Any:
    for name in names:
        if name in condition.args:
            return condition.args[name]
    raise ValueError(f"{condition.type} condition is missing {names[0]!r}")


def describe_condition(condition: ProductionCondition) -> str:
    """Human-readable description of a goal condition.

    Raises:
        ValueError: for an unknown condition type or a missing field.
    """
    kind = condition.type
    if kind == "level_order":
        return f"{_arg(condition, 'louder')} louder than {_arg(condition, 'quieter')}"
    if kind == "pan_spread":
        return f"Stereo width at least {_format_number(_arg(condition, 'minWidth', 'min_width'))}"
    if kind == "layer_active":
        layer_id = _arg(condition, "layerId", "layer_id")
        return f"{layer_id} is playing" if _arg(condition, "active") else f"{layer_id} is not playing"
    if kind == "layer_muted":
        layer_id = _arg(condition, "layerId", "layer_id")
        return f"{layer_id} is muted" if _arg(condition, "muted") else f"{layer_id} is unmuted"
    if kind == "relative_level":
        return f"{_arg(condition, 'layer1')} level relative to {_arg(condition, 'layer2')}"
    if kind == "pan_position":
        return f"{_arg(condition, 'layerId', 'layer_id')} panned correctly"
    raise ValueError(f"Unknown condition type {kind!r}")


def check_condition(condition: ProductionCondition, layers: Sequence[MixTrackParams]) -> bool:
    """Whether the layer states satisfy one goal condition.

    A condition naming a layer that isn't present is not met.
    """
    by_id = {layer.id: layer for layer in layers}

    def level(layer: MixTrackParams) -> float:
        return -float("inf") if layer.muted else layer.volume

    kind = condition.type
    if kind == "level_order":
        louder = by_id.get(_arg(condition, "louder"))
        quieter = by_id.get(_arg(condition, "quieter"))
        if louder is None or quieter is None:
            return False
        return level(louder) > level(quieter)

    if kind == "pan_spread":
        pans = [layer.pan for layer in layers if not layer.muted]
        if len(pans) < 2:
            return False
        return max(pans) - min(pans) >= float(_arg(condition, "minWidth", "min_width"))

    if kind in ("layer_active", "layer_muted", "pan_position"):
        layer = by_id.get(_arg(condition, "layerId", "layer_id"))
        if layer is None:
            return False
        if kind == "layer_active":
            return (not layer.muted) == bool(_arg(condition, "active"))
        if kind == "layer_muted":
            return layer.muted == bool(_arg(condition, "muted"))
        low, high = _arg(condition, "position")
        return low <= layer.pan <= high

    if kind == "relative_level":
        first = by_id.get(_arg(condition, "layer1"))
        second = by_id.get(_arg(condition, "layer2"))
        if first is None or second is None:
            return False
        low, high = _arg(condition, "difference")
        return low <= first.volume - second.volume <= high

    raise ValueError(f"Unknown condition type {kind!r}")


def _evaluate_goal(target: ProductionGoalTarget, layers: Sequence[MixTrackParams]) -> ScoreResult:
    results = []
    hints = []
    for condition in target.conditions:
        description = describe_condition(condition)
        met = check_condition(condition, layers)
        results.append(ConditionResult(description=description, passed=met))
        if not met:
            hints.append(f"Not met: {description}")

    if results:
        overall = sum(1 for r in results if r.passed) / len(results) * 100
    else:
        overall = 100.0

    breakdown = {"goals": overall}
    feedback = [summary_line(overall, GOAL_SUMMARY), *hints]
    return finalize(breakdown, feedback, conditions=results, overall=overall)


def evaluate_production_challenge(
    challenge: ProductionChallenge,
    layers: Sequence[MixTrackParams],
) -> ScoreResult:
    """Grade layer channel strips against a production challenge.

    Reference targets pair layers by position; goal targets look layers up
    by id.

    Raises:
        ValueError: for an unknown target kind or a malformed condition.
    """
    target = challenge.target
    if isinstance(target, ProductionReferenceTarget):
        return _evaluate_reference(challenge, target, layers)
    if isinstance(target, ProductionGoalTarget):
        return _evaluate_goal(target, layers)
    raise ValueError(f"Unknown production target {target!r}")
