"""Tests for mixcraft_judge.scoring."""

import pytest

from mixcraft_judge.scoring import (
    AspectFeedback,
    ToleranceBand,
    build_feedback,
    deviation_score,
    finalize,
    is_passing,
    mean_score,
    stars_for,
    summary_line,
)
from mixcraft_judge.types import ConditionResult


class TestDeviationScore:
    """Tests for the shared deviation-to-score law."""

    def test_exact_match_scores_100(self):
        assert deviation_score(0, 0.1) == 100

    def test_at_tolerance_scores_70(self):
        assert deviation_score(5, 5) == pytest.approx(70)

    def test_half_tolerance_scores_85(self):
        assert deviation_score(0.05, 0.1) == pytest.approx(85)

    def test_four_tolerances_scores_0(self):
        assert deviation_score(20, 5) == pytest.approx(0)

    def test_beyond_four_tolerances_stays_0(self):
        assert deviation_score(1000, 5) == 0

    def test_outer_segment_is_linear(self):
        # 2.5T is halfway between T (70) and 4T (0)
        assert deviation_score(12.5, 5) == pytest.approx(35)

    def test_negative_deviation_uses_magnitude(self):
        assert deviation_score(-5, 5) == pytest.approx(70)

    def test_monotonically_non_increasing(self):
        scores = [deviation_score(d / 10, 1.0) for d in range(0, 60)]
        assert all(a >= b for a, b in zip(scores, scores[1:]))

    def test_non_positive_tolerance_raises(self):
        with pytest.raises(ValueError):
            deviation_score(1, 0)
        with pytest.raises(ValueError):
            deviation_score(1, -2)


class TestToleranceBand:
    """Tests for ToleranceBand."""

    def test_score_is_symmetric(self):
        band = ToleranceBand(0.15)
        assert band.score(0.5, 0.6) == pytest.approx(band.score(0.7, 0.6))

    def test_floor_is_respected(self):
        band = ToleranceBand(1.0, floor=20)
        assert band.score(0, 100) == 20

    def test_custom_reach_stretches_outer_segment(self):
        band = ToleranceBand(1.0, reach=4.0)
        assert band.score_deviation(5.0) == pytest.approx(0)
        assert band.score_deviation(3.0) == pytest.approx(35)

    def test_invalid_scale_raises(self):
        with pytest.raises(ValueError):
            ToleranceBand(1.0, scale=0)
        with pytest.raises(ValueError):
            ToleranceBand(1.0, scale=80)


class TestStars:
    """Tests for the star and pass law."""

    @pytest.mark.parametrize("overall,stars", [
        (100, 3), (90, 3), (89, 2), (70, 2), (69, 1), (50, 1), (49, 0), (0, 0),
    ])
    def test_thresholds(self, overall, stars):
        assert stars_for(overall) == stars

    def test_one_star_passes(self):
        assert is_passing(1) is True

    def test_no_stars_fails(self):
        assert is_passing(0) is False


class TestFeedback:
    """Tests for summary and aspect feedback lines."""

    TIERS = ((90, "great"), (70, "good"), (0, "keep going"))
    WORDINGS = {
        "a": AspectFeedback("a needs work", "a is close"),
        "b": AspectFeedback("b needs work", "b is close"),
        "c": AspectFeedback("c needs work", "c is close"),
    }

    def test_summary_tiers(self):
        assert summary_line(95, self.TIERS) == "great"
        assert summary_line(70, self.TIERS) == "good"
        assert summary_line(10, self.TIERS) == "keep going"

    def test_summary_falls_back_to_last_tier(self):
        assert summary_line(-5, self.TIERS) == "keep going"

    def test_summary_first_then_weak_aspects(self):
        lines = build_feedback(60, {"a": 95, "b": 75, "c": 40}, self.WORDINGS, self.TIERS)
        assert lines == ("keep going", "b is close", "c needs work")

    def test_aspect_at_90_gets_no_line(self):
        lines = build_feedback(90, {"a": 90}, self.WORDINGS, self.TIERS)
        assert lines == ("great",)

    def test_ranked_orders_worst_first(self):
        lines = build_feedback(60, {"a": 80, "b": 75, "c": 40}, self.WORDINGS, self.TIERS, rank=True)
        assert lines[1:] == ("c needs work", "b is close", "a is close")

    def test_explicit_order(self):
        lines = build_feedback(60, {"a": 50, "c": 50}, self.WORDINGS, self.TIERS, order=["c", "b", "a"])
        assert lines[1:] == ("c needs work", "a needs work")

    def test_aspects_without_wording_are_skipped(self):
        lines = build_feedback(60, {"z": 10}, self.WORDINGS, self.TIERS)
        assert lines == ("keep going",)


class TestFinalize:
    """Tests for finalize and mean_score."""

    def test_mean_rounds_half_up(self):
        assert mean_score([82, 83]) == 83

    def test_mean_of_nothing_is_0(self):
        assert mean_score([]) == 0

    def test_overall_defaults_to_mean(self):
        result = finalize({"a": 100, "b": 61})
        assert result.overall == 81
        assert result.stars == 2
        assert result.passed is True

    def test_explicit_overall_is_clamped(self):
        assert finalize({}, overall=130).overall == 100
        assert finalize({}, overall=-4).overall == 0

    def test_breakdown_is_rounded(self):
        result = finalize({"a": 84.5, "b": 70.2})
        assert result.breakdown == {"a": 85, "b": 70}

    def test_carries_feedback_and_conditions(self):
        condition = ConditionResult("kick louder than pad", True)
        result = finalize({"goals": 100}, ["All goals met!"], [condition])
        assert result.feedback == ("All goals met!",)
        assert result.conditions == (condition,)
        assert result.error is None
