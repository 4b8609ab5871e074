"""MCP tool definitions for the MIXCRAFT judge."""

import logging
from datetime import datetime
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .client import SCClient
from .features import capture_pair
from .mixing import evaluate_mixing_challenge, evaluate_production_challenge
from .params import compare_params
from .patterns import evaluate, score_pattern, score_swing, score_tempo, score_velocity
from .sampling import evaluate_sampling_challenge
from .similarity import judge_sound
from .types import (
    CaptureConfig,
    CompressorSettings,
    DrumPattern,
    DrumSequencingChallenge,
    EQSettings,
    MixingChallenge,
    ProductionChallenge,
    ProductionControls,
    SamplerParams,
    SamplingChallenge,
    SamplingTarget,
    ScoreResult,
    SubtractiveParams,
    SynthParams,
    mixing_target_from_dict,
    params_from_dict,
    production_target_from_dict,
)

logger = logging.getLogger(__name__)

# Global client instance
sc_client = SCClient()

# Create MCP server
mcp = FastMCP("mixcraft-judge")

BASE_FREQ = 261.63  # C4, the pitch every timbre comparison is played at
RELEASE_GAP = 0.1   # extra seconds after a release before the next capture


def format_result(title: str, result: ScoreResult) -> str:
    """Render a ScoreResult as readable text."""
    if result.is_error:
        return f"{title} failed: {result.error}\nScore: 0/100 (no stars)"

    stars = "★" * result.stars + "☆" * (3 - result.stars)
    verdict = "passed" if result.passed else "not passed"
    lines = [f"{title}: {result.overall}/100 {stars} ({verdict})"]

    if result.breakdown:
        lines.append("")
        lines.append("Breakdown:")
        for aspect, score in result.breakdown.items():
            lines.append(f"  - {aspect}: {score}")

    if result.conditions:
        lines.append("")
        lines.append("Goals:")
        for condition in result.conditions:
            mark = "x" if condition.passed else " "
            lines.append(f"  [{mark}] {condition.description}")

    if result.feedback:
        lines.append("")
        lines.append("Feedback:")
        for line in result.feedback:
            lines.append(f"  - {line}")

    return "\n".join(lines)


def synth_args(params: SynthParams) -> dict[str, Any]:
    """Control values for the judge_voice SynthDef.

    Families other than subtractive only shape the amplitude envelope; their
    timbre comes from whichever SynthDef is played.
    """
    args: dict[str, Any] = {"freq": BASE_FREQ}
    envelope = getattr(params, "amplitude_envelope", None)
    if envelope is not None:
        args.update(
            attack=envelope.attack,
            decay=envelope.decay,
            sustain=envelope.sustain,
            release=envelope.release,
        )
    if isinstance(params, SubtractiveParams):
        osc = params.oscillator
        args["freq"] = BASE_FREQ * 2 ** osc.octave * 2 ** (osc.detune / 1200)
        args["cutoff"] = params.filter.cutoff
        args["rq"] = 1.0 / max(params.filter.resonance, 0.1)
    return args


@mcp.tool()
def judge_connect() -> str:
    """Connect to the SuperCollider server (scsynth) and load the judge SynthDefs.

    Make sure SuperCollider is running with the server booted.
    """
    _, message = sc_client.connect()
    return message


@mcp.tool()
def judge_status() -> str:
    """Get current SuperCollider server status and whether the analysis tap is running."""
    status = sc_client.get_status()
    if not status.running:
        return "SuperCollider server is not running. Use judge_connect first (and make sure the server is booted)."

    return f"""SuperCollider Server Status:
- Running: {status.running}
- Sample Rate: {status.sample_rate} Hz
- Synths: {status.num_synths}
- SynthDefs: {status.num_synthdefs}
- CPU (avg): {status.avg_cpu:.2f}%
- Analysis tap: {"running" if sc_client.is_tap_running() else "stopped"}"""


@mcp.tool()
def judge_start_tap() -> str:
    """Start the analysis tap on the main output bus.

    The tap reports per-band magnitudes that timbre comparisons capture.
    Requires judge_connect to be called first.
    """
    _, message = sc_client.start_tap()
    return message


@mcp.tool()
def judge_stop_tap() -> str:
    """Stop the analysis tap."""
    _, message = sc_client.stop_tap()
    return message


@mcp.tool()
def judge_get_spectrum() -> str:
    """Get the analysis tap's current frequency bands.

    The tap must be running (call judge_start_tap first).
    """
    success, message, data = sc_client.get_spectrum()
    if not success:
        return message

    lines = [f"Tap Spectrum ({len(data['bands'])} bands):", ""]
    for band in data["bands"]:
        # Scale the 0-255 level to a 0-40 char bar
        bar = "█" * max(0, min(40, int(band["level"] / 255 * 40)))
        low = band["low"]
        label = f"{low / 1000:.1f}k" if low >= 1000 else f"{low}"
        lines.append(f"  {label.rjust(5)}+ Hz │{bar} {band['db']:.0f} dB")

    return "\n".join(lines)


@mcp.tool()
async def judge_compare_synths(
    player_params: dict[str, Any],
    target_params: dict[str, Any],
    synthdef: str = "judge_voice",
    duration_ms: float = 500.0,
    frame_count: int = 20,
) -> str:
    """Play the player's and the target's sound, capture both and score the match.

    Each parameter snapshot carries a "family" tag (subtractive, fm, additive,
    mix_track). The sounds are played one after the other through the given
    SynthDef while the analysis tap is sampled.

    Args:
        player_params: Learner's parameters, e.g. {"family": "subtractive", "filter": {"cutoff": 800}}
        target_params: Hidden target parameters of the same family
        synthdef: SynthDef to play both snapshots through (default judge_voice)
        duration_ms: Observation window per sound in ms (default 500)
        frame_count: Frames sampled per window (default 20)

    Requires judge_connect and judge_start_tap.
    """
    try:
        player = params_from_dict(player_params)
        target = params_from_dict(target_params)
        config = CaptureConfig(duration_ms=duration_ms, frame_count=frame_count)
    except (ValueError, KeyError, TypeError) as e:
        return f"Invalid input: {e}"

    if player.family != target.family:
        return f"Invalid input: cannot compare {player.family} parameters with {target.family} parameters"

    if not sc_client.is_tap_running():
        return "Analysis tap not running. Call judge_start_tap first."

    tap = sc_client.tap()
    player_source = sc_client.source(synthdef, synth_args(player))
    target_source = sc_client.source(synthdef, synth_args(target))
    gap = getattr(player, "amplitude_envelope", None)
    gap = (gap.release if gap is not None else 0.0) + RELEASE_GAP

    try:
        player_features, target_features = await capture_pair(
            (tap, player_source.trigger, player_source.release),
            (tap, target_source.trigger, target_source.release),
            config=config,
            gap=gap,
        )
        result = judge_sound(player_features, target_features, player, target)
    except Exception as e:
        logger.exception("Timbre comparison failed")
        result = ScoreResult.failure(f"{type(e).__name__}: {e}")

    return format_result("Timbre Match", result)


@mcp.tool()
def judge_compare_params(
    player_params: dict[str, Any],
    target_params: dict[str, Any],
    weights: Optional[dict[str, float]] = None,
    evaluated: Optional[list[str]] = None,
) -> str:
    """Compare two parameter snapshots field by field (no audio).

    Args:
        player_params: Learner's parameters with a "family" tag
        target_params: Target parameters of the same family
        weights: Optional multipliers by field ("filter.cutoff") or aspect ("filter")
        evaluated: Optional fields or aspects that count (default: all)
    """
    try:
        player = params_from_dict(player_params)
        target = params_from_dict(target_params)
        comparison = compare_params(player, target, weights=weights, evaluated=evaluated)
    except (ValueError, KeyError, TypeError) as e:
        return f"Invalid input: {e}"

    lines = [f"Parameter Match ({target.family}): {comparison.score}/100", "", "By aspect:"]
    for aspect, score in comparison.breakdown.items():
        lines.append(f"  - {aspect}: {score}")
    lines.append("")
    lines.append("By field:")
    for name, score in comparison.fields.items():
        lines.append(f"  - {name}: {score}")
    return "\n".join(lines)


@mcp.tool()
def judge_score_pattern(user_pattern: dict[str, Any], target_pattern: dict[str, Any]) -> str:
    """Score every aspect of a drum pattern against a target, without a challenge focus.

    Patterns look like {"tempo": 120, "swing": 0, "tracks": [{"id": "kick", "steps": [true, false, ...]}]};
    steps may also be {"active": true, "velocity": 0.8}.
    """
    try:
        user = DrumPattern.from_dict(user_pattern)
        target = DrumPattern.from_dict(target_pattern)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        return f"Invalid pattern: {e}"

    return "\n".join([
        "Pattern Scores:",
        f"  - pattern: {score_pattern(user, target)}",
        f"  - velocity: {score_velocity(user, target)}",
        f"  - swing: {score_swing(user.swing, target.swing)}",
        f"  - tempo: {score_tempo(user.tempo, target.tempo)}",
    ])


@mcp.tool()
def judge_evaluate_drums(
    user_pattern: dict[str, Any],
    target_pattern: dict[str, Any],
    evaluation_focus: Optional[list[str]] = None,
) -> str:
    """Grade a drum pattern as a sequencing challenge.

    Args:
        user_pattern: The learner's pattern
        target_pattern: The challenge's target pattern
        evaluation_focus: Aspects to grade: pattern, velocity, swing, tempo (default ["pattern"])
    """
    try:
        challenge = DrumSequencingChallenge(
            id="drums",
            target_pattern=DrumPattern.from_dict(target_pattern),
            evaluation_focus=tuple(evaluation_focus if evaluation_focus is not None else ["pattern"]),
        )
        result = evaluate(challenge, DrumPattern.from_dict(user_pattern))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        return f"Invalid input: {e}"

    return format_result("Drum Pattern", result)


@mcp.tool()
def judge_evaluate_mixing(
    target: dict[str, Any],
    eq: Optional[dict[str, float]] = None,
    compressor: Optional[dict[str, float]] = None,
) -> str:
    """Grade EQ and compressor settings against a mixing target.

    Args:
        target: {"type": "eq", "low": 3, "mid": 0, "high": -2},
            {"type": "compressor", "threshold": -18, "amount": 40},
            or {"type": "problem", "solution": {"eq": {"low": [-6, -2]}}}
        eq: Learner's EQ gains in dB: {"low", "mid", "high"}
        compressor: Learner's compressor: {"threshold", "amount", "attack", "release"}
    """
    try:
        challenge = MixingChallenge(id="mixing", target=mixing_target_from_dict(target))
        result = evaluate_mixing_challenge(
            challenge,
            EQSettings(**(eq or {})),
            CompressorSettings(**(compressor or {})),
        )
    except (ValueError, KeyError, TypeError) as e:
        return f"Invalid input: {e}"

    return format_result("Mix", result)


@mcp.tool()
def judge_evaluate_production(
    target: dict[str, Any],
    layers: list[dict[str, Any]],
    controls: Optional[dict[str, bool]] = None,
) -> str:
    """Grade layer channel strips against a production target.

    Args:
        target: {"type": "reference", "layers": [{"volume": -6, "muted": false, "pan": 0.3}]}
            or {"type": "goal", "conditions": [{"type": "level_order", "louder": "kick", "quieter": "pad"}]}
        layers: Learner's layers: {"id", "name", "volume", "pan", "muted", "eqLow", "eqHigh"}
        controls: Which controls the challenge exposes: {"volume", "mute", "pan", "eq"}
    """
    try:
        challenge = ProductionChallenge(
            id="production",
            target=production_target_from_dict(target),
            controls=ProductionControls(**(controls or {})),
        )
        states = [params_from_dict({**layer, "family": "mix_track"}) for layer in layers]
        result = evaluate_production_challenge(challenge, states)
    except (ValueError, KeyError, TypeError) as e:
        return f"Invalid input: {e}"

    return format_result("Production", result)


@mcp.tool()
def judge_evaluate_sampling(
    challenge_type: str,
    params: dict[str, Any],
    target: Optional[dict[str, Any]] = None,
    expected_slices: Optional[int] = None,
) -> str:
    """Grade sampler state against a sampling challenge.

    Args:
        challenge_type: recreate-kit, chop-challenge, tune-to-track, flip-this or clean-sample
        params: Learner's sampler state: {"sampleUrl", "pitch", "timeStretch", "slices": [{"start"}],
            "reverse", "startPoint", "endPoint", "fadeIn", "fadeOut", "duration"}
        target: Target values; only the fields given are graded:
            {"pitch", "timeStretch", "startPoint", "endPoint", "fadeIn", "fadeOut"}
        expected_slices: Slice count the challenge asks for (chop-challenge defaults to 4)
    """
    try:
        challenge = SamplingChallenge(
            id="sampling",
            challenge_type=challenge_type,
            target=SamplingTarget.from_dict(target),
            expected_slices=int(expected_slices) if expected_slices is not None else None,
        )
        result = evaluate_sampling_challenge(challenge, SamplerParams.from_dict(params))
    except (ValueError, KeyError, TypeError) as e:
        return f"Invalid input: {e}"

    return format_result("Sampling", result)


@mcp.tool()
def judge_export_pattern_midi(
    pattern: dict[str, Any],
    output_path: Optional[str] = None,
    ticks_per_beat: int = 480,
) -> str:
    """Export a drum pattern to a MIDI file (General MIDI drums on channel 10).

    Args:
        pattern: Drum pattern, same shape as judge_score_pattern takes
        output_path: Output file path. If not provided, saves to temp file.
        ticks_per_beat: MIDI resolution (default: 480)

    Returns:
        Path to the saved MIDI file, or error message.
    """
    from .midi import export_pattern_midi

    try:
        drum_pattern = DrumPattern.from_dict(pattern)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        return f"Invalid pattern: {e}"

    success, message, path = export_pattern_midi(
        drum_pattern,
        output_path=output_path,
        ticks_per_beat=ticks_per_beat,
    )

    if success:
        return f"{message}\nSaved to: {path}"
    return f"Export failed: {message}"


@mcp.tool()
def judge_get_logs(limit: int = 50, category: Optional[str] = None) -> str:
    """Get recent client log messages.

    Captures OSC replies from scsynth and tap events:
    - /fail messages (errors)
    - /done messages (completed operations)
    - /n_go, /n_end messages (node lifecycle)
    - tap messages (stale or freed analysis tap)

    Args:
        limit: Maximum number of entries to return (default 50, max 500)
        category: Filter by category: 'fail', 'done', 'node', 'tap', 'info', or None for all
    """
    limit = min(limit, 500)
    entries = sc_client.get_logs(limit=limit, category=category)

    if not entries:
        return "No log entries" + (f" in category '{category}'" if category else "")

    lines = []
    for entry in entries:
        ts = datetime.fromtimestamp(entry.timestamp).strftime("%H:%M:%S.%f")[:-3]
        lines.append(f"[{ts}] [{entry.category.upper()}] {entry.message}")

    return f"Log entries ({len(entries)}):\n" + "\n".join(lines)


@mcp.tool()
def judge_clear_logs() -> str:
    """Clear the client log buffer."""
    sc_client.clear_logs()
    return "Log buffer cleared"
