"""Tests for mixing and production evaluation."""

import pytest

from mixcraft_judge.mixing import (
    check_condition,
    describe_condition,
    evaluate_mixing_challenge,
    evaluate_production_challenge,
)
from mixcraft_judge.types import (
    CompressorSettings,
    CompressorTarget,
    EQSettings,
    EQTarget,
    LayerTarget,
    MixingChallenge,
    MixingProblem,
    MixTrackParams,
    ProductionChallenge,
    ProductionCondition,
    ProductionControls,
    ProductionGoalTarget,
    ProductionReferenceTarget,
    mixing_target_from_dict,
    production_target_from_dict,
)


def mixing(target):
    return MixingChallenge(id="mix-test", target=target)


class TestEQChallenge:
    """Tests for EQ target evaluation."""

    def test_exact_match_scores_100(self):
        result = evaluate_mixing_challenge(
            mixing(EQTarget(low=3, mid=-2, high=1)), EQSettings(low=3, mid=-2, high=1), CompressorSettings(),
        )
        assert result.overall == 100
        assert result.stars == 3
        assert result.breakdown["eq"] == 100
        assert result.feedback == ("Excellent mix!", "Good EQ balance!")

    def test_band_breakdown(self):
        result = evaluate_mixing_challenge(
            mixing(EQTarget(low=3)), EQSettings(low=0), CompressorSettings(),
        )
        assert result.breakdown["eq_low"] == 70
        assert result.breakdown["eq_mid"] == 100
        assert result.breakdown["eq"] == 90

    def test_directional_feedback(self):
        result = evaluate_mixing_challenge(
            mixing(EQTarget(low=6, mid=0, high=-6)), EQSettings(low=-6, mid=0, high=6), CompressorSettings(),
        )
        assert "Try to boost the low frequencies more" in result.feedback
        assert "Adjust the highs - cut a bit more" in result.feedback

    def test_mids_cut(self):
        result = evaluate_mixing_challenge(
            mixing(EQTarget(mid=-6)), EQSettings(mid=6), CompressorSettings(),
        )
        assert "The mids need more cut" in result.feedback


class TestCompressorChallenge:
    """Tests for compressor target evaluation."""

    def test_threshold_and_amount_only(self):
        result = evaluate_mixing_challenge(
            mixing(CompressorTarget(threshold=-18, amount=40)),
            EQSettings(),
            CompressorSettings(threshold=-18, amount=40, attack=0.5, release=2.0),
        )
        assert result.overall == 100
        assert "attack" not in result.breakdown
        assert result.feedback[-1] == "Compression settings look good!"

    def test_timings_count_when_target_defines_both(self):
        result = evaluate_mixing_challenge(
            mixing(CompressorTarget(threshold=-18, amount=40, attack=0.01, release=0.2)),
            EQSettings(),
            CompressorSettings(threshold=-18, amount=40, attack=0.5, release=0.2),
        )
        assert result.breakdown["attack"] == 0
        assert result.breakdown["compressor"] == 75
        assert "Try a faster attack" in result.feedback

    def test_directional_feedback(self):
        result = evaluate_mixing_challenge(
            mixing(CompressorTarget(threshold=-30, amount=80)),
            EQSettings(),
            CompressorSettings(threshold=0, amount=10),
        )
        assert "Lower the threshold" in result.feedback
        assert "Increase the compression amount" in result.feedback


class TestProblemChallenge:
    """Tests for problem range evaluation."""

    def test_all_ranges_met(self):
        problem = MixingProblem(eq_ranges={"low": (-6, -2)}, compressor_ranges={"amount": (30, 60)})
        result = evaluate_mixing_challenge(
            mixing(problem), EQSettings(low=-4), CompressorSettings(amount=45),
        )
        assert result.overall == 100
        assert result.breakdown == {"solution": 100}
        assert "Problem solved correctly!" in result.feedback

    def test_missed_ranges(self):
        problem = MixingProblem(
            eq_ranges={"low": (-6, -2), "high": (1.5, 4)},
            compressor_ranges={"threshold": (-24, -12), "amount": (30, 60)},
        )
        result = evaluate_mixing_challenge(
            mixing(problem), EQSettings(low=-4, high=0), CompressorSettings(threshold=-18, amount=10),
        )
        assert result.overall == 50
        assert "High EQ should be between 1.5 and 4 dB" in result.feedback
        assert "Compression amount should be between 30% and 60%" in result.feedback

    def test_range_bounds_are_inclusive(self):
        problem = MixingProblem(eq_ranges={"mid": (-3, 3)})
        result = evaluate_mixing_challenge(mixing(problem), EQSettings(mid=3), CompressorSettings())
        assert result.overall == 100

    def test_from_dict(self):
        target = mixing_target_from_dict({
            "type": "problem",
            "description": "Muddy low end",
            "solution": {"eq": {"low": [-6, -2]}},
        })
        assert target.eq_ranges == {"low": (-6.0, -2.0)}

    def test_unknown_target_type_raises(self):
        with pytest.raises(ValueError):
            mixing_target_from_dict({"type": "reverb"})


def layer(layer_id, volume=0.0, pan=0.0, muted=False, **kwargs):
    return MixTrackParams(id=layer_id, name=layer_id.title(), volume=volume, pan=pan, muted=muted, **kwargs)


class TestReferenceProduction:
    """Tests for reference production targets."""

    def challenge(self, layers, **controls):
        return ProductionChallenge(
            id="prod-test",
            target=ProductionReferenceTarget(layers=layers),
            controls=ProductionControls(**controls),
        )

    def test_exact_match(self):
        challenge = self.challenge([LayerTarget(volume=-6), LayerTarget(volume=0, muted=True)])
        result = evaluate_production_challenge(challenge, [layer("kick", -6), layer("pad", 0, muted=True)])
        assert result.overall == 100
        assert result.breakdown == {"kick": 100, "pad": 100}
        assert result.feedback == ("Excellent balance!",)

    def test_layer_feedback_tiers(self):
        challenge = self.challenge([LayerTarget(volume=0), LayerTarget(volume=0)])
        result = evaluate_production_challenge(
            challenge, [layer("kick", -3), layer("pad", 0, muted=True)],
        )
        # kick: volume 70, mute 100 -> 85; pad: volume 100, mute 0 -> 50
        assert result.breakdown == {"kick": 85, "pad": 50}
        assert "Pad needs adjustment" in result.feedback
        assert "Kick is close, fine-tune it" not in result.feedback

    def test_close_layer(self):
        challenge = self.challenge([LayerTarget(volume=0)])
        result = evaluate_production_challenge(challenge, [layer("kick", -4)])
        assert "Kick is close, fine-tune it" in result.feedback

    def test_pan_ignored_without_control(self):
        challenge = self.challenge([LayerTarget(volume=0, pan=0.8)], pan=False)
        result = evaluate_production_challenge(challenge, [layer("kick", pan=-0.8)])
        assert result.overall == 100

    def test_pan_counts_with_control(self):
        challenge = self.challenge([LayerTarget(volume=0, pan=0.8)], pan=True)
        result = evaluate_production_challenge(challenge, [layer("kick", pan=-0.8)])
        # volume 100, mute 100, pan 0 -> 66.7
        assert result.overall == 67

    def test_eq_counts_with_control(self):
        challenge = self.challenge([LayerTarget(volume=0, eq_low=3.0, eq_high=0.0)], eq=True)
        result = evaluate_production_challenge(challenge, [layer("kick", eq_low=2.0)])
        # volume 100, mute 100, eq low 85, eq high 100
        assert result.overall == 96

    def test_layers_paired_by_position(self):
        challenge = self.challenge([LayerTarget(volume=-6)])
        result = evaluate_production_challenge(challenge, [layer("kick", -6), layer("pad", -20)])
        assert result.breakdown == {"kick": 100}

    def test_from_dict(self):
        target = production_target_from_dict({
            "type": "reference",
            "layers": [{"volume": -3, "muted": False, "pan": 0.2, "eqLow": 1}],
        })
        assert target.layers[0] == LayerTarget(volume=-3.0, muted=False, pan=0.2, eq_low=1.0)


class TestGoalProduction:
    """Tests for goal production targets."""

    def challenge(self, *conditions):
        return ProductionChallenge(id="goal-test", target=ProductionGoalTarget(conditions=list(conditions)))

    def test_half_conditions_met(self):
        challenge = self.challenge(
            ProductionCondition("level_order", {"louder": "kick", "quieter": "pad"}),
            ProductionCondition("layer_muted", {"layerId": "pad", "muted": True}),
        )
        result = evaluate_production_challenge(challenge, [layer("kick", 0), layer("pad", -10)])
        assert result.overall == 50
        assert result.stars == 1
        assert [c.passed for c in result.conditions] == [True, False]
        assert result.feedback == ("Good start, keep going", "Not met: pad is muted")

    def test_all_conditions_met(self):
        challenge = self.challenge(ProductionCondition("layer_active", {"layerId": "kick", "active": True}))
        result = evaluate_production_challenge(challenge, [layer("kick")])
        assert result.overall == 100
        assert result.feedback == ("All goals met!",)

    def test_no_conditions_is_vacuous(self):
        result = evaluate_production_challenge(self.challenge(), [layer("kick")])
        assert result.overall == 100

    def test_unknown_condition_raises(self):
        with pytest.raises(ValueError):
            evaluate_production_challenge(self.challenge(ProductionCondition("sidechain")), [])


class TestConditions:
    """Tests for individual goal conditions."""

    LAYERS = [
        layer("kick", volume=0, pan=0.0),
        layer("hat", volume=-12, pan=0.6),
        layer("pad", volume=-6, pan=-0.4, muted=True),
    ]

    def check(self, kind, **args):
        return check_condition(ProductionCondition(kind, args), self.LAYERS)

    def test_level_order(self):
        assert self.check("level_order", louder="kick", quieter="hat")
        assert not self.check("level_order", louder="hat", quieter="kick")

    def test_muted_layer_is_quietest(self):
        assert self.check("level_order", louder="hat", quieter="pad")

    def test_missing_layer_fails(self):
        assert not self.check("level_order", louder="bass", quieter="kick")
        assert not self.check("layer_active", layerId="bass", active=True)

    def test_pan_spread_ignores_muted(self):
        assert self.check("pan_spread", minWidth=0.6)
        assert not self.check("pan_spread", minWidth=0.8)

    def test_pan_spread_needs_two_layers(self):
        assert not check_condition(
            ProductionCondition("pan_spread", {"minWidth": 0.0}), [layer("kick")],
        )

    def test_layer_active(self):
        assert self.check("layer_active", layerId="pad", active=False)

    def test_relative_level(self):
        assert self.check("relative_level", layer1="kick", layer2="hat", difference=[10, 14])
        assert not self.check("relative_level", layer1="kick", layer2="hat", difference=[0, 6])

    def test_pan_position(self):
        assert self.check("pan_position", layerId="hat", position=[0.5, 0.7])

    def test_descriptions(self):
        assert describe_condition(ProductionCondition("level_order", {"louder": "kick", "quieter": "pad"})) \
            == "kick louder than pad"
        assert describe_condition(ProductionCondition("pan_spread", {"minWidth": 0.5})) \
            == "Stereo width at least 0.5"
        assert describe_condition(ProductionCondition("layer_active", {"layerId": "hat", "active": False})) \
            == "hat is not playing"
        assert describe_condition(ProductionCondition("layer_muted", {"layerId": "hat", "muted": False})) \
            == "hat is unmuted"
        assert describe_condition(ProductionCondition("relative_level", {"layer1": "kick", "layer2": "hat"})) \
            == "kick level relative to hat"
        assert describe_condition(ProductionCondition("pan_position", {"layerId": "hat"})) \
            == "hat panned correctly"

    def test_missing_field_raises(self):
        with pytest.raises(ValueError):
            describe_condition(ProductionCondition("level_order", {"louder": "kick"}))
