"""Tolerance bands, the deviation-to-score law and score aggregation.

Every tolerance-based scorer in the judge goes through one piecewise-linear
law. With deviation ``d = |user - target|`` and tolerance ``T``:

    d <= T        score = 100 - (d / T) * 30          (100 down to 70)
    d >  T        ratio = min((d - T) / (3 * T), 1)
                  score = 70 * (1 - ratio)             (70 down to 0 at d = 4T)

Challenge pass thresholds are tuned against the breakpoints at T and 4T, so
they must stay exact.

Aggregation turns a breakdown of aspect scores into a ScoreResult: overall
score, stars (>=90 three, >=70 two, >=50 one, else none), pass/fail
(at least one star) and feedback lines, a summary line first followed by at
most one line per aspect scoring below 90.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from .config import FEEDBACK_FINE_TUNE, FEEDBACK_PERFECT, STAR_THRESHOLDS
from .types import ConditionResult, ScoreResult
from .utils import clamp, round_half_up


@dataclass(frozen=True)
class ToleranceBand:
    """Symmetric acceptance window around a target value.

    Args:
        tolerance: deviation at which the score has fallen to ``100 - scale``
        scale: points lost across the inner window (0 < scale <= 70)
        floor: minimum score ever returned
        reach: width of the outer decay segment, in multiples of tolerance
    """
    tolerance: float
    scale: float = 30.0
    floor: float = 0.0
    reach: float = 3.0

    def __post_init__(self):
        if self.tolerance <= 0:
            raise ValueError(f"Tolerance must be positive, got {self.tolerance}")
        if not 0 < self.scale <= 70:
            raise ValueError(f"Scale must be in (0, 70], got {self.scale}")
        if self.reach <= 0:
            raise ValueError(f"Reach must be positive, got {self.reach}")

    def score_deviation(self, diff: float) -> float:
        """Score an absolute deviation, 0-100 (not rounded)."""
        diff = abs(diff)
        t = self.tolerance
        if diff <= t:
            score = 100.0 - (diff / t) * self.scale
        else:
            ratio = min((diff - t) / (self.reach * t), 1.0)
            score = (100.0 - self.scale) * (1.0 - ratio)
        return max(self.floor, score)

    def score(self, user: float, target: float) -> float:
        """Score how close user is to target."""
        return self.score_deviation(user - target)


def deviation_score(diff: float, tolerance: float) -> float:
    """The shared deviation law with the default band shape."""
    return ToleranceBand(tolerance).score_deviation(diff)


def stars_for(overall: float) -> int:
    """Star rating for an overall score."""
    for stars in (3, 2, 1):
        if overall >= STAR_THRESHOLDS[stars]:
            return stars
    return 0


def is_passing(stars: int) -> bool:
    return stars >= 1


@dataclass(frozen=True)
class AspectFeedback:
    """Two-tier feedback wording for one aspect."""
    needs_work: str  # score below 70
    close: str       # score 70-89


def summary_line(overall: float, tiers: Sequence[tuple[float, str]]) -> str:
    """Pick the first tier whose threshold the overall score reaches.

    The last tier is the fallback whatever its threshold.
    """
    for threshold, text in tiers:
        if overall >= threshold:
            return text
    return tiers[-1][1]


def aspect_line(score: float, wording: AspectFeedback) -> Optional[str]:
    """Feedback line for one aspect, or None when the aspect is already right."""
    if score < FEEDBACK_FINE_TUNE:
        return wording.needs_work
    if score < FEEDBACK_PERFECT:
        return wording.close
    return None


def build_feedback(
    overall: float,
    breakdown: Mapping[str, float],
    wordings: Mapping[str, AspectFeedback],
    summary: Sequence[tuple[float, str]],
    order: Optional[Iterable[str]] = None,
    rank: bool = False,
) -> tuple[str, ...]:
    """Build ordered feedback: summary first, then one line per weak aspect.

    Args:
        overall: overall score the summary tier is chosen from
        breakdown: aspect -> score
        wordings: aspect -> two-tier wording; aspects without one are skipped
        summary: (threshold, text) tiers, highest threshold first
        order: aspect order for the detail lines (default: breakdown order)
        rank: if True, detail lines are ordered worst score first
    """
    aspects = [a for a in (order if order is not None else breakdown) if a in breakdown]
    if rank:
        aspects = sorted(aspects, key=lambda a: breakdown[a])

    lines = [summary_line(overall, summary)]
    for aspect in aspects:
        wording = wordings.get(aspect)
        if wording is None:
            continue
        line = aspect_line(breakdown[aspect], wording)
        if line is not None:
            lines.append(line)
    return tuple(lines)


def mean_score(scores: Iterable[float]) -> int:
    """Unweighted mean rounded half-up; 0 when there is nothing to average."""
    values = list(scores)
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def finalize(
    breakdown: Mapping[str, float],
    feedback: Sequence[str] = (),
    conditions: Sequence[ConditionResult] = (),
    overall: Optional[float] = None,
) -> ScoreResult:
    """Turn a breakdown into a ScoreResult.

    The overall score defaults to the unweighted mean of the breakdown.
    """
    if overall is None:
        overall_int = mean_score(breakdown.values())
    else:
        overall_int = round_half_up(overall)
    overall_int = int(clamp(overall_int, 0, 100))
    stars = stars_for(overall_int)
    return ScoreResult(
        overall=overall_int,
        stars=stars,
        passed=is_passing(stars),
        breakdown={aspect: round_half_up(score) for aspect, score in breakdown.items()},
        feedback=tuple(feedback),
        conditions=tuple(conditions),
    )
