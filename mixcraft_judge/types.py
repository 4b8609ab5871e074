"""Data types for the MIXCRAFT judge."""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence, Union

from .config import CAPTURE_DURATION_MS, CAPTURE_FRAME_COUNT, CAPTURE_SETTLE_MS


# Collaborator contracts

class AnalysisTap(Protocol):
    """Anything that can report the current frequency-domain magnitudes."""

    bin_count: int

    def read_frequency_data(self) -> Sequence[float]:
        ...


class PlayableSource(Protocol):
    """A sound that can be started and released."""

    def trigger(self) -> None:
        ...

    def release(self) -> None:
        ...


# Client state

@dataclass
class LogEntry:
    """A log entry from the OSC client."""
    timestamp: float
    category: str  # 'fail', 'done', 'node', 'tap', 'info'
    message: str


@dataclass
class ServerStatus:
    """SuperCollider server status information."""
    running: bool = False
    num_ugens: int = 0
    num_synths: int = 0
    num_groups: int = 0
    num_synthdefs: int = 0
    avg_cpu: float = 0.0
    peak_cpu: float = 0.0
    sample_rate: float = 0.0


@dataclass
class TapFrame:
    """One frame of band magnitudes received from the judge_tap SynthDef."""
    timestamp: float = 0.0
    bands: tuple = ()  # raw magnitudes, one per band


# Capture

@dataclass(frozen=True)
class CaptureConfig:
    """Observation window for a feature capture."""
    duration_ms: float = CAPTURE_DURATION_MS
    frame_count: int = CAPTURE_FRAME_COUNT
    settle_ms: float = CAPTURE_SETTLE_MS

    def __post_init__(self):
        if self.frame_count < 1:
            raise ValueError(f"frame_count must be at least 1, got {self.frame_count}")
        if self.duration_ms <= 0:
            raise ValueError(f"duration_ms must be positive, got {self.duration_ms}")
        if self.settle_ms < 0:
            raise ValueError(f"settle_ms must not be negative, got {self.settle_ms}")

    @property
    def frame_interval(self) -> float:
        """Seconds between successive frame samples."""
        return self.duration_ms / self.frame_count / 1000.0


@dataclass(frozen=True)
class SoundFeatureVector:
    """Perceptual features of one captured sound.

    Spectral features are measured in bin indices of the analysis tap, the
    envelope is normalized to the loudest frame of the capture.
    """
    spectral_centroid: float = 0.0
    spectral_spread: float = 0.0
    spectral_flatness: float = 0.0  # 0 = tonal, 1 = noise
    attack_time: int = 0            # frames to reach 90% of peak
    sustain_level: float = 0.0
    rms_envelope: tuple[float, ...] = ()
    average_spectrum: tuple[float, ...] = ()

    def to_dict(self) -> dict:
        return {
            "spectralCentroid": self.spectral_centroid,
            "spectralSpread": self.spectral_spread,
            "spectralFlatness": self.spectral_flatness,
            "attackTime": self.attack_time,
            "sustainLevel": self.sustain_level,
            "rmsEnvelope": list(self.rms_envelope),
            "averageSpectrum": list(self.average_spectrum),
        }


# Scoring results

@dataclass(frozen=True)
class ConditionResult:
    """Outcome of one goal condition."""
    description: str
    passed: bool


@dataclass(frozen=True)
class ScoreResult:
    """Terminal artifact of a judged submission."""
    overall: int
    stars: int  # 0-3
    passed: bool
    breakdown: dict[str, int] = field(default_factory=dict)
    feedback: tuple[str, ...] = ()
    conditions: tuple[ConditionResult, ...] = ()
    error: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "ScoreResult":
        """Hard-failure result for a submission that could not be judged."""
        return cls(overall=0, stars=0, passed=False, feedback=(message,), error=message)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        result = {
            "overall": self.overall,
            "stars": self.stars,
            "passed": self.passed,
            "breakdown": dict(self.breakdown),
            "feedback": list(self.feedback),
        }
        if self.conditions:
            result["conditions"] = [
                {"description": c.description, "passed": c.passed} for c in self.conditions
            ]
        if self.error is not None:
            result["error"] = self.error
        return result


# Drum patterns

@dataclass
class DrumStep:
    """A single step of a drum track."""
    active: bool = False
    velocity: float = 0.8


@dataclass
class DrumTrack:
    """A named row of steps."""
    id: str
    steps: list[DrumStep] = field(default_factory=list)
    name: str = ""


@dataclass
class DrumPattern:
    """A step-sequenced drum pattern."""
    tracks: list[DrumTrack] = field(default_factory=list)
    tempo: float = 120.0
    swing: float = 0.0
    step_count: int = 16
    name: str = ""

    def track(self, track_id: str) -> Optional[DrumTrack]:
        """Find a track by id."""
        for track in self.tracks:
            if track.id == track_id:
                return track
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DrumPattern":
        """Build a pattern from its JSON shape.

        Steps may be given as objects ({"active": true, "velocity": 0.8}) or as
        bare booleans. ``stepCount`` is accepted as an alias of ``step_count``.
        """
        tracks = []
        for raw_track in data.get("tracks", []):
            steps = []
            for raw_step in raw_track.get("steps", []):
                if isinstance(raw_step, bool):
                    steps.append(DrumStep(active=raw_step))
                else:
                    steps.append(DrumStep(
                        active=bool(raw_step.get("active", False)),
                        velocity=float(raw_step.get("velocity", 0.8)),
                    ))
            tracks.append(DrumTrack(
                id=str(raw_track["id"]),
                steps=steps,
                name=str(raw_track.get("name", "")),
            ))

        step_count = data.get("step_count", data.get("stepCount"))
        if step_count is None:
            step_count = max((len(t.steps) for t in tracks), default=16)

        return cls(
            tracks=tracks,
            tempo=float(data.get("tempo", 120.0)),
            swing=float(data.get("swing", 0.0)),
            step_count=int(step_count),
            name=str(data.get("name", "")),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "tempo": self.tempo,
            "swing": self.swing,
            "stepCount": self.step_count,
            "tracks": [
                {
                    "id": t.id,
                    "name": t.name,
                    "steps": [{"active": s.active, "velocity": s.velocity} for s in t.steps],
                }
                for t in self.tracks
            ],
        }


@dataclass
class DrumSequencingChallenge:
    """A drum challenge: a hidden target pattern and the aspects being graded."""
    id: str
    target_pattern: DrumPattern
    evaluation_focus: tuple[str, ...] = ("pattern",)
    title: str = ""


# Synthesis parameter snapshots (tagged by family)

@dataclass
class EnvelopeParams:
    """ADSR envelope, times in seconds."""
    attack: float = 0.01
    decay: float = 0.2
    sustain: float = 0.5
    release: float = 0.3


@dataclass
class OscillatorParams:
    type: str = "sawtooth"
    octave: int = 0
    detune: float = 0.0  # cents


@dataclass
class FilterParams:
    type: str = "lowpass"
    cutoff: float = 2000.0  # Hz
    resonance: float = 1.0


@dataclass
class SubtractiveParams:
    """Oscillator -> filter -> amplifier voice."""
    oscillator: OscillatorParams = field(default_factory=OscillatorParams)
    filter: FilterParams = field(default_factory=FilterParams)
    amplitude_envelope: EnvelopeParams = field(default_factory=EnvelopeParams)
    family: str = field(default="subtractive", init=False)


@dataclass
class FMParams:
    """Two-operator FM voice."""
    harmonicity: float = 3.0
    modulation_index: float = 10.0
    carrier_type: str = "sine"
    modulator_type: str = "square"
    amplitude_envelope: EnvelopeParams = field(default_factory=EnvelopeParams)
    family: str = field(default="fm", init=False)


@dataclass
class AdditiveParams:
    """Harmonic-amplitude voice, one amplitude (0-1) per partial."""
    harmonics: tuple[float, ...] = (1.0,) + (0.0,) * 15
    amplitude_envelope: EnvelopeParams = field(default_factory=EnvelopeParams)
    family: str = field(default="additive", init=False)


@dataclass
class MixTrackParams:
    """Channel-strip state of one mix layer."""
    id: str = ""
    name: str = ""
    volume: float = 0.0  # dB
    pan: float = 0.0     # -1 (left) to 1 (right)
    muted: bool = False
    eq_low: float = 0.0  # dB
    eq_mid: float = 0.0  # dB
    eq_high: float = 0.0  # dB
    family: str = field(default="mix_track", init=False)


SynthParams = Union[SubtractiveParams, FMParams, AdditiveParams, MixTrackParams]


def _envelope_from_dict(data: Optional[dict]) -> EnvelopeParams:
    if not data:
        return EnvelopeParams()
    return EnvelopeParams(
        attack=float(data.get("attack", 0.01)),
        decay=float(data.get("decay", 0.2)),
        sustain=float(data.get("sustain", 0.5)),
        release=float(data.get("release", 0.3)),
    )


def params_from_dict(data: dict[str, Any]) -> SynthParams:
    """Build a parameter snapshot from JSON, dispatching on its "family" tag.

    Raises:
        ValueError: if the family tag is missing or unknown.
    """
    family = data.get("family")
    envelope = _envelope_from_dict(data.get("amplitude_envelope", data.get("amplitudeEnvelope")))

    if family == "subtractive":
        osc = data.get("oscillator", {})
        flt = data.get("filter", {})
        return SubtractiveParams(
            oscillator=OscillatorParams(
                type=str(osc.get("type", "sawtooth")),
                octave=int(osc.get("octave", 0)),
                detune=float(osc.get("detune", 0.0)),
            ),
            filter=FilterParams(
                type=str(flt.get("type", "lowpass")),
                cutoff=float(flt.get("cutoff", 2000.0)),
                resonance=float(flt.get("resonance", 1.0)),
            ),
            amplitude_envelope=envelope,
        )
    if family == "fm":
        return FMParams(
            harmonicity=float(data.get("harmonicity", 3.0)),
            modulation_index=float(data.get("modulation_index", data.get("modulationIndex", 10.0))),
            carrier_type=str(data.get("carrier_type", data.get("carrierType", "sine"))),
            modulator_type=str(data.get("modulator_type", data.get("modulatorType", "square"))),
            amplitude_envelope=envelope,
        )
    if family == "additive":
        harmonics = data.get("harmonics")
        return AdditiveParams(
            harmonics=tuple(float(h) for h in harmonics) if harmonics is not None else AdditiveParams().harmonics,
            amplitude_envelope=envelope,
        )
    if family == "mix_track":
        return MixTrackParams(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            volume=float(data.get("volume", 0.0)),
            pan=float(data.get("pan", 0.0)),
            muted=bool(data.get("muted", False)),
            eq_low=float(data.get("eq_low", data.get("eqLow", 0.0))),
            eq_mid=float(data.get("eq_mid", data.get("eqMid", 0.0))),
            eq_high=float(data.get("eq_high", data.get("eqHigh", 0.0))),
        )
    raise ValueError(f"Unknown parameter family {family!r} (use subtractive, fm, additive, mix_track)")


# Mixing challenges

@dataclass
class EQSettings:
    """Three-band EQ gains in dB."""
    low: float = 0.0
    mid: float = 0.0
    high: float = 0.0


@dataclass
class CompressorSettings:
    threshold: float = -24.0  # dB
    amount: float = 0.0       # percent
    attack: float = 0.01      # seconds
    release: float = 0.25     # seconds


@dataclass
class EQTarget:
    low: float = 0.0
    mid: float = 0.0
    high: float = 0.0
    kind: str = field(default="eq", init=False)


@dataclass
class CompressorTarget:
    threshold: float = -24.0
    amount: float = 0.0
    attack: Optional[float] = None
    release: Optional[float] = None
    kind: str = field(default="compressor", init=False)


@dataclass
class MixingProblem:
    """Acceptable [min, max] ranges that fix a described problem."""
    description: str = ""
    eq_ranges: dict[str, tuple[float, float]] = field(default_factory=dict)
    compressor_ranges: dict[str, tuple[float, float]] = field(default_factory=dict)
    kind: str = field(default="problem", init=False)


MixingTarget = Union[EQTarget, CompressorTarget, MixingProblem]


@dataclass
class MixingChallenge:
    id: str
    target: MixingTarget
    title: str = ""


def mixing_target_from_dict(data: dict[str, Any]) -> MixingTarget:
    """Build a mixing target from JSON, dispatching on its "type" key."""
    kind = data.get("type")
    if kind == "eq":
        return EQTarget(
            low=float(data.get("low", 0.0)),
            mid=float(data.get("mid", 0.0)),
            high=float(data.get("high", 0.0)),
        )
    if kind == "compressor":
        attack = data.get("attack")
        release = data.get("release")
        return CompressorTarget(
            threshold=float(data.get("threshold", -24.0)),
            amount=float(data.get("amount", 0.0)),
            attack=float(attack) if attack is not None else None,
            release=float(release) if release is not None else None,
        )
    if kind == "problem":
        solution = data.get("solution", {})
        return MixingProblem(
            description=str(data.get("description", "")),
            eq_ranges={k: (float(v[0]), float(v[1])) for k, v in solution.get("eq", {}).items()},
            compressor_ranges={
                k: (float(v[0]), float(v[1])) for k, v in solution.get("compressor", {}).items()
            },
        )
    raise ValueError(f"Unknown mixing target type {kind!r} (use eq, compressor, problem)")


# Production (multi-layer) challenges

@dataclass
class LayerTarget:
    volume: float = 0.0
    muted: bool = False
    pan: Optional[float] = None
    eq_low: Optional[float] = None
    eq_high: Optional[float] = None


@dataclass
class ProductionReferenceTarget:
    layers: list[LayerTarget] = field(default_factory=list)
    kind: str = field(default="reference", init=False)


@dataclass
class ProductionCondition:
    """A goal condition on layer states.

    ``type`` is one of level_order, pan_spread, layer_active, layer_muted,
    relative_level, pan_position; ``args`` holds the type's fields.
    """
    type: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProductionGoalTarget:
    conditions: list[ProductionCondition] = field(default_factory=list)
    kind: str = field(default="goal", init=False)


@dataclass
class ProductionControls:
    volume: bool = True
    mute: bool = True
    pan: bool = False
    eq: bool = False


@dataclass
class ProductionChallenge:
    id: str
    target: Union[ProductionReferenceTarget, ProductionGoalTarget]
    controls: ProductionControls = field(default_factory=ProductionControls)
    title: str = ""


def production_target_from_dict(data: dict[str, Any]) -> Union[ProductionReferenceTarget, ProductionGoalTarget]:
    """Build a production target from JSON, dispatching on its "type" key."""
    kind = data.get("type")
    if kind == "reference":
        layers = []
        for raw in data.get("layers", []):
            layers.append(LayerTarget(
                volume=float(raw.get("volume", 0.0)),
                muted=bool(raw.get("muted", False)),
                pan=float(raw["pan"]) if raw.get("pan") is not None else None,
                eq_low=float(raw["eqLow"]) if raw.get("eqLow") is not None else None,
                eq_high=float(raw["eqHigh"]) if raw.get("eqHigh") is not None else None,
            ))
        return ProductionReferenceTarget(layers=layers)
    if kind == "goal":
        conditions = []
        for raw in data.get("conditions", []):
            args = {k: v for k, v in raw.items() if k != "type"}
            conditions.append(ProductionCondition(type=str(raw["type"]), args=args))
        return ProductionGoalTarget(conditions=conditions)
    raise ValueError(f"Unknown production target type {kind!r} (use reference, goal)")


# Sampling challenges

SAMPLING_CHALLENGE_TYPES = ("recreate-kit", "chop-challenge", "tune-to-track", "flip-this", "clean-sample")


def _field(data: dict[str, Any], name: str, alias: str, default: Any = None) -> Any:
    return data.get(name, data.get(alias, default))


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


@dataclass
class SampleSlice:
    """A chop of the loaded sample; start and end in seconds."""
    start: float
    end: float = 0.0
    pitch: float = 0.0  # semitones
    id: str = ""


@dataclass
class SamplerParams:
    """Sampler state.

    Start and end points are fractions (0-1) of the sample length, fades are
    in seconds and pitch in semitones. ``duration`` is the sample length in
    seconds, used to judge slice spacing.
    """
    sample_url: Optional[str] = None
    pitch: float = 0.0
    time_stretch: float = 1.0
    slices: list[SampleSlice] = field(default_factory=list)
    reverse: bool = False
    start_point: float = 0.0
    end_point: float = 1.0
    fade_in: float = 0.0
    fade_out: float = 0.0
    duration: float = 0.0

    @property
    def sample_loaded(self) -> bool:
        return bool(self.sample_url)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SamplerParams":
        """Build sampler state from JSON; camelCase keys are accepted too."""
        slices = []
        for raw in data.get("slices", []):
            slices.append(SampleSlice(
                start=float(raw["start"]),
                end=float(raw.get("end", 0.0)),
                pitch=float(raw.get("pitch", 0.0)),
                id=str(raw.get("id", "")),
            ))
        sample_url = _field(data, "sample_url", "sampleUrl")
        return cls(
            sample_url=str(sample_url) if sample_url is not None else None,
            pitch=float(data.get("pitch", 0.0)),
            time_stretch=float(_field(data, "time_stretch", "timeStretch", 1.0)),
            slices=slices,
            reverse=bool(data.get("reverse", False)),
            start_point=float(_field(data, "start_point", "startPoint", 0.0)),
            end_point=float(_field(data, "end_point", "endPoint", 1.0)),
            fade_in=float(_field(data, "fade_in", "fadeIn", 0.0)),
            fade_out=float(_field(data, "fade_out", "fadeOut", 0.0)),
            duration=float(data.get("duration", 0.0)),
        )


@dataclass
class SamplingTarget:
    """Target sampler values; only the fields that are set get graded."""
    pitch: Optional[float] = None
    time_stretch: Optional[float] = None
    start_point: Optional[float] = None
    end_point: Optional[float] = None
    fade_in: Optional[float] = None
    fade_out: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SamplingTarget":
        data = data or {}
        return cls(
            pitch=_optional_float(data.get("pitch")),
            time_stretch=_optional_float(_field(data, "time_stretch", "timeStretch")),
            start_point=_optional_float(_field(data, "start_point", "startPoint")),
            end_point=_optional_float(_field(data, "end_point", "endPoint")),
            fade_in=_optional_float(_field(data, "fade_in", "fadeIn")),
            fade_out=_optional_float(_field(data, "fade_out", "fadeOut")),
        )


@dataclass
class SamplingChallenge:
    """A sampling challenge; ``challenge_type`` is one of SAMPLING_CHALLENGE_TYPES."""
    id: str
    challenge_type: str
    target: SamplingTarget = field(default_factory=SamplingTarget)
    expected_slices: Optional[int] = None
    title: str = ""
