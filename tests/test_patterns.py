"""Tests for drum pattern scoring."""

import pytest

from conftest import make_pattern
from mixcraft_judge.patterns import (
    compare_track_patterns,
    evaluate,
    score_pattern,
    score_swing,
    score_tempo,
    score_velocity,
)
from mixcraft_judge.types import DrumPattern, DrumSequencingChallenge, DrumStep, DrumTrack

ALL_ASPECTS = ("pattern", "velocity", "swing", "tempo")


class TestCompareTrackPatterns:
    """Tests for compare_track_patterns."""

    def test_identical_tracks(self):
        pattern = make_pattern({"kick": "x.x."})
        assert compare_track_patterns(pattern.tracks[0], pattern.tracks[0]) == 100

    def test_half_matching(self):
        user = make_pattern({"kick": "xxxx"}).tracks[0]
        target = make_pattern({"kick": "x.x."}).tracks[0]
        assert compare_track_patterns(user, target) == 50

    def test_compares_shorter_length(self):
        user = make_pattern({"kick": "x."}).tracks[0]
        target = make_pattern({"kick": "x.xxxxxx"}).tracks[0]
        assert compare_track_patterns(user, target) == 100

    def test_empty_track_is_100(self):
        assert compare_track_patterns(DrumTrack(id="kick"), make_pattern({"kick": "x..."}).tracks[0]) == 100


class TestScorePattern:
    """Tests for score_pattern."""

    def test_identical_patterns_score_100(self):
        pattern = make_pattern({"kick": "x...x...", "snare": "..x...x."})
        assert score_pattern(pattern, pattern) == 100

    def test_no_target_tracks_is_100(self):
        assert score_pattern(make_pattern({"kick": "x..."}), DrumPattern()) == 100

    def test_missing_track_counts_as_0(self):
        user = make_pattern({"kick": "x.x."})
        target = make_pattern({"kick": "x.x.", "snare": "..x."})
        assert score_pattern(user, target) == 50

    def test_extra_user_tracks_are_ignored(self):
        user = make_pattern({"kick": "x.x.", "clap": "xxxx"})
        target = make_pattern({"kick": "x.x."})
        assert score_pattern(user, target) == 100

    def test_mean_across_tracks_is_rounded(self):
        user = make_pattern({"kick": "x..", "snare": "..."})
        target = make_pattern({"kick": "x..", "snare": "x.."})
        # (100 + 66.67) / 2 = 83.33
        assert score_pattern(user, target) == 83


class TestScoreVelocity:
    """Tests for score_velocity."""

    def test_matching_velocities_score_100(self):
        pattern = make_pattern({"kick": "x.x."})
        assert score_velocity(pattern, pattern) == 100

    def test_velocity_at_tolerance_scores_70(self):
        user = make_pattern({"kick": "x.x."}, velocities={"kick": 0.65})
        target = make_pattern({"kick": "x.x."}, velocities={"kick": 0.8})
        assert score_velocity(user, target) == 70

    def test_only_steps_active_in_both_count(self):
        user = make_pattern({"kick": "xx.."}, velocities={"kick": 0.8})
        target = make_pattern({"kick": "x.x."}, velocities={"kick": 0.8})
        target.tracks[0].steps[2].velocity = 0.1
        assert score_velocity(user, target) == 100

    def test_nothing_to_compare_is_100(self):
        user = make_pattern({"kick": "...."})
        target = make_pattern({"kick": "x.x."})
        assert score_velocity(user, target) == 100

    def test_missing_track_is_skipped(self):
        user = make_pattern({"kick": "x.x."})
        target = make_pattern({"kick": "x.x.", "snare": "..x."}, velocities={"snare": 0.1})
        assert score_velocity(user, target) == 100


class TestScoreSwingAndTempo:
    """Tests for score_swing and score_tempo."""

    def test_swing_exact(self):
        assert score_swing(0.2, 0.2) == 100

    def test_swing_far_off(self):
        assert score_swing(0.5, 0.2) == 23

    def test_swing_beyond_reach(self):
        assert score_swing(0.9, 0.2) == 0

    def test_tempo_at_tolerance(self):
        assert score_tempo(125, 120) == 70

    def test_tempo_close(self):
        assert score_tempo(121, 120) == 94


class TestEvaluate:
    """Tests for challenge evaluation."""

    def target(self):
        return make_pattern({"kick": "x.x."}, tempo=120, swing=0.2)

    def challenge(self, focus=ALL_ASPECTS):
        return DrumSequencingChallenge(id="ds-test", target_pattern=self.target(), evaluation_focus=focus)

    def test_exact_match(self):
        result = evaluate(self.challenge(), make_pattern({"kick": "x.x."}, tempo=120, swing=0.2))
        assert result.overall == 100
        assert result.stars == 3
        assert result.passed is True
        assert result.feedback == ("Excellent drum pattern!",)

    def test_swing_mismatch(self):
        result = evaluate(self.challenge(), make_pattern({"kick": "x.x."}, tempo=120, swing=0.5))
        assert result.breakdown == {"pattern": 100, "velocity": 100, "swing": 23, "tempo": 100}
        assert result.overall == 81
        assert result.stars == 2
        assert result.passed is True
        assert result.feedback == ("Good work, pattern is solid!", "Swing amount needs adjustment")

    def test_only_focused_aspects_scored(self):
        result = evaluate(self.challenge(("pattern",)), make_pattern({"kick": "x.x."}, tempo=90, swing=0.9))
        assert result.breakdown == {"pattern": 100}
        assert result.overall == 100

    def test_feedback_in_focus_order(self):
        user = make_pattern({"kick": "xxx."}, tempo=123, swing=0.25)
        result = evaluate(self.challenge(("tempo", "swing", "pattern")), user)
        assert result.feedback[1:] == (
            "Pattern is close, but a few steps need adjustment",
            "Swing is close, small adjustment needed",
            "Tempo is close, fine-tune the BPM",
        )

    def test_poor_attempt(self):
        user = make_pattern({"kick": ".x.x"}, tempo=60, swing=0.9)
        result = evaluate(self.challenge(), user)
        assert result.stars < 2
        assert result.feedback[0] == "Keep practicing - listen to the target pattern"
        assert "Some steps are in the wrong position - check the pattern" in result.feedback
        assert "Tempo is off - check the BPM" in result.feedback

    def test_empty_focus_scores_0(self):
        result = evaluate(self.challenge(()), self.target())
        assert result.overall == 0
        assert result.stars == 0
        assert result.passed is False
        assert result.breakdown == {}

    def test_unknown_focus_raises(self):
        with pytest.raises(ValueError):
            evaluate(self.challenge(("groove",)), self.target())

    def test_is_deterministic(self):
        user = make_pattern({"kick": "xx.x"}, tempo=117, swing=0.3)
        assert evaluate(self.challenge(), user) == evaluate(self.challenge(), user)


class TestDrumPatternFromDict:
    """Tests for DrumPattern JSON parsing."""

    def test_boolean_steps(self):
        pattern = DrumPattern.from_dict({"tracks": [{"id": "kick", "steps": [True, False]}]})
        assert pattern.tracks[0].steps == [DrumStep(active=True), DrumStep(active=False)]
        assert pattern.step_count == 2

    def test_object_steps_and_alias(self):
        pattern = DrumPattern.from_dict({
            "tempo": 95,
            "swing": 0.3,
            "stepCount": 16,
            "tracks": [{"id": "snare", "steps": [{"active": True, "velocity": 0.5}]}],
        })
        assert pattern.step_count == 16
        assert pattern.tempo == 95.0
        assert pattern.tracks[0].steps[0].velocity == 0.5

    def test_to_dict_round_trips(self):
        pattern = make_pattern({"kick": "x.x."}, tempo=100, swing=0.1)
        assert DrumPattern.from_dict(pattern.to_dict()) == pattern
