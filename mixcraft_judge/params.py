"""Parameter snapshot comparison.

Each synthesis family has a table of leaf fields. A numeric field is scored
with the shared deviation law against its own tolerance, either on the raw
difference or on the distance in octaves for quantities heard on a log scale
(times, cutoff, harmonicity). Categorical fields score 100 on a match and a
family-specific partial score otherwise. The snapshot score is the weighted
mean over the evaluated fields; the breakdown groups fields by aspect.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

from .config import LAYER_EQ_TOLERANCE, LAYER_PAN_TOLERANCE, LAYER_VOLUME_TOLERANCE
from .scoring import ToleranceBand
from .types import AdditiveParams, FMParams, MixTrackParams, SubtractiveParams, SynthParams
from .utils import log2_distance, round_half_up

LINEAR = "linear"
OCTAVES = "octaves"
CATEGORY = "category"


@dataclass(frozen=True)
class FieldRule:
    """How one leaf field is compared."""
    name: str
    aspect: str
    get: Callable[[Any], Any]
    weight: float
    kind: str = LINEAR
    band: Optional[ToleranceBand] = None
    mismatch: float = 0.0  # score for a categorical mismatch

    def score(self, player: Any, target: Any) -> float:
        p, t = self.get(player), self.get(target)
        if self.kind == CATEGORY:
            return 100.0 if p == t else self.mismatch
        if self.kind == OCTAVES:
            return self.band.score_deviation(log2_distance(float(p), float(t)))
        return self.band.score(float(p), float(t))


@dataclass(frozen=True)
class ParameterComparison:
    """Result of comparing two parameter snapshots."""
    score: int
    breakdown: dict[str, int] = field(default_factory=dict)
    fields: dict[str, int] = field(default_factory=dict)


def _envelope_rules(share: float) -> list[FieldRule]:
    """ADSR rules sharing ``share`` of the total weight."""
    return [
        FieldRule("envelope.attack", "envelope", lambda p: p.amplitude_envelope.attack,
                  share * 0.30, OCTAVES, ToleranceBand(0.5)),
        FieldRule("envelope.decay", "envelope", lambda p: p.amplitude_envelope.decay,
                  share * 0.25, OCTAVES, ToleranceBand(0.5)),
        FieldRule("envelope.sustain", "envelope", lambda p: p.amplitude_envelope.sustain,
                  share * 0.25, LINEAR, ToleranceBand(0.1)),
        FieldRule("envelope.release", "envelope", lambda p: p.amplitude_envelope.release,
                  share * 0.20, OCTAVES, ToleranceBand(0.5)),
    ]


SUBTRACTIVE_RULES = [
    FieldRule("oscillator.type", "oscillator", lambda p: p.oscillator.type, 0.18, CATEGORY),
    FieldRule("oscillator.octave", "oscillator", lambda p: p.oscillator.octave,
              0.09, LINEAR, ToleranceBand(0.5)),
    FieldRule("oscillator.detune", "oscillator", lambda p: p.oscillator.detune,
              0.03, LINEAR, ToleranceBand(10.0)),  # cents
    FieldRule("filter.type", "filter", lambda p: p.filter.type, 0.08, CATEGORY, mismatch=50.0),
    FieldRule("filter.cutoff", "filter", lambda p: p.filter.cutoff,
              0.20, OCTAVES, ToleranceBand(0.25)),
    FieldRule("filter.resonance", "filter", lambda p: p.filter.resonance,
              0.12, LINEAR, ToleranceBand(2.0)),
] + _envelope_rules(0.30)

FM_RULES = [
    FieldRule("harmonicity", "harmonicity", lambda p: p.harmonicity,
              0.25, OCTAVES, ToleranceBand(0.1)),
    FieldRule("modulation_index", "modulation_index", lambda p: p.modulation_index,
              0.25, LINEAR, ToleranceBand(1.0)),
    FieldRule("carrier_type", "carrier_type", lambda p: p.carrier_type, 0.10, CATEGORY, mismatch=50.0),
    FieldRule("modulator_type", "modulator_type", lambda p: p.modulator_type, 0.10, CATEGORY, mismatch=50.0),
] + _envelope_rules(0.30)

MIX_TRACK_RULES = [
    FieldRule("volume", "volume", lambda p: p.volume, 0.30, LINEAR, ToleranceBand(LAYER_VOLUME_TOLERANCE)),
    FieldRule("pan", "pan", lambda p: p.pan, 0.20, LINEAR, ToleranceBand(LAYER_PAN_TOLERANCE)),
    FieldRule("muted", "mute", lambda p: p.muted, 0.20, CATEGORY),
    FieldRule("eq.low", "eq", lambda p: p.eq_low, 0.10, LINEAR, ToleranceBand(LAYER_EQ_TOLERANCE)),
    FieldRule("eq.mid", "eq", lambda p: p.eq_mid, 0.10, LINEAR, ToleranceBand(LAYER_EQ_TOLERANCE)),
    FieldRule("eq.high", "eq", lambda p: p.eq_high, 0.10, LINEAR, ToleranceBand(LAYER_EQ_TOLERANCE)),
]

HARMONICS_SHARE = 0.6
HARMONIC_BAND = ToleranceBand(0.1)


def _partial(index: int) -> Callable[[AdditiveParams], float]:
    def get(p: AdditiveParams) -> float:
        return p.harmonics[index] if index < len(p.harmonics) else 0.0
    return get


def _additive_rules(player: AdditiveParams, target: AdditiveParams) -> list[FieldRule]:
    """One rule per partial present in either snapshot, plus the envelope."""
    partials = max(len(player.harmonics), len(target.harmonics))
    rules = []
    if partials:
        share = HARMONICS_SHARE / partials
        rules = [
            FieldRule(f"harmonics.{i + 1}", "harmonics", _partial(i), share, LINEAR, HARMONIC_BAND)
            for i in range(partials)
        ]
    return rules + _envelope_rules(1.0 - HARMONICS_SHARE)


def rules_for(player: SynthParams, target: SynthParams) -> list[FieldRule]:
    """Rule table for a pair of snapshots, chosen by their family tag.

    Raises:
        ValueError: if the snapshots belong to different families or the
            family is unknown.
    """
    if player.family != target.family:
        raise ValueError(
            f"Cannot compare {player.family!r} parameters against {target.family!r} parameters"
        )
    if isinstance(player, SubtractiveParams):
        return SUBTRACTIVE_RULES
    if isinstance(player, FMParams):
        return FM_RULES
    if isinstance(player, AdditiveParams):
        return _additive_rules(player, target)
    if isinstance(player, MixTrackParams):
        return MIX_TRACK_RULES
    raise ValueError(f"Unknown parameter family {player.family!r}")


def compare_params(
    player: SynthParams,
    target: SynthParams,
    weights: Optional[Mapping[str, float]] = None,
    evaluated: Optional[Iterable[str]] = None,
) -> ParameterComparison:
    """Compare two parameter snapshots of the same family.

    Args:
        player: the learner's snapshot
        target: the hidden target snapshot
        weights: multipliers keyed by field name ("filter.cutoff") or aspect
            ("filter"); a field name takes precedence over its aspect
        evaluated: field names or aspects that count; default is every field

    Returns:
        ParameterComparison with the overall score, per-aspect scores and
        per-field scores. With nothing evaluated the score is 100.
    """
    weights = weights or {}
    wanted = set(evaluated) if evaluated is not None else None

    total = 0.0
    total_weight = 0.0
    aspect_sums: dict[str, list[float]] = {}
    field_scores: dict[str, int] = {}

    for rule in rules_for(player, target):
        if wanted is not None and rule.name not in wanted and rule.aspect not in wanted:
            continue
        multiplier = weights.get(rule.name, weights.get(rule.aspect, 1.0))
        weight = rule.weight * multiplier
        if weight <= 0:
            continue

        score = rule.score(player, target)
        field_scores[rule.name] = round_half_up(score)
        total += score * weight
        total_weight += weight
        sums = aspect_sums.setdefault(rule.aspect, [0.0, 0.0])
        sums[0] += score * weight
        sums[1] += weight

    if total_weight == 0:
        return ParameterComparison(score=100)

    breakdown = {aspect: round_half_up(s / w) for aspect, (s, w) in aspect_sums.items()}
    return ParameterComparison(
        score=round_half_up(total / total_weight),
        breakdown=breakdown,
        fields=field_scores,
    )
