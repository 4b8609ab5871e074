"""Configuration constants for the MIXCRAFT judge."""

import os

# Network configuration
SCSYNTH_HOST = "127.0.0.1"
SCSYNTH_PORT = 57110
REPLY_PORT = 57130  # Fixed port for OSC replies (orphaned processes are killed on connect)
SCLANG_PATH = os.environ.get("MIXCRAFT_SCLANG")  # explicit sclang executable, optional

# Logging (stdout is the MCP transport, logs go to stderr)
LOG_LEVEL = os.environ.get("MIXCRAFT_LOG_LEVEL", "WARNING").upper()
LOG_BUFFER_SIZE = 500

# Analysis tap band edges (Hz) - 15 cutoffs give 16 bands from DC to Nyquist
# These must match between Python and the judge_tap SynthDef below
TAP_BAND_EDGES = [40, 63, 100, 160, 250, 400, 630, 1000, 1600, 2500, 4000, 6300, 10000, 14000, 18000]
TAP_BIN_COUNT = len(TAP_BAND_EDGES) + 1
TAP_REPLY_RATE = 60  # frames per second, faster than the default capture interval
TAP_STALE_AFTER = 1.0  # seconds

# Tap magnitude normalization. FFT magnitudes are unnormalized: a full-scale
# sine peaks at fft_size / 4 under the Hann window, so dividing by that gives
# an amplitude estimate in 0-1 before the dB conversion.
TAP_FFT_SIZE = 2048  # must match LocalBuf in judge_tap below
TAP_MAGNITUDE_SCALE = TAP_FFT_SIZE / 4

# Byte scaling of normalized band levels (0 dB is a full-scale sine)
TAP_MIN_DB = -100.0
TAP_MAX_DB = 0.0

# Feature capture defaults
CAPTURE_DURATION_MS = 500.0
CAPTURE_FRAME_COUNT = 20
CAPTURE_SETTLE_MS = 10.0
FLATNESS_EPSILON = 0.001
ATTACK_THRESHOLD = 0.9  # fraction of peak loudness

# Star thresholds on the 0-100 overall score
STAR_THRESHOLDS = {3: 90, 2: 70, 1: 50}
# Aspect feedback tiers: below FINE_TUNE is "needs adjustment", below PERFECT is "close"
FEEDBACK_FINE_TUNE = 70
FEEDBACK_PERFECT = 90

# Drum pattern tolerances
VELOCITY_TOLERANCE = 0.15  # out of 1.0
SWING_TOLERANCE = 0.1      # out of 1.0
TEMPO_TOLERANCE = 5.0      # BPM
PATTERN_ASPECTS = ("pattern", "velocity", "swing", "tempo")

# Timbre tolerances (feature space)
BRIGHTNESS_TOLERANCE = 0.1  # relative centroid difference
ATTACK_TOLERANCE = 2.0      # frames
SPREAD_TOLERANCE = 0.15     # relative spread difference
FLATNESS_TOLERANCE = 0.1
ENVELOPE_TOLERANCE = 0.1    # mean absolute difference of normalized envelopes
SUSTAIN_TOLERANCE = 0.1

# Timbre aspect weights (must sum to 1.0)
TIMBRE_WEIGHTS = {
    "brightness": 0.30,
    "attack": 0.25,
    "filter": 0.20,
    "envelope": 0.25,
}

# Audio-feature / parameter blend per synthesis family (audio weight, parameter weight)
BLEND_WEIGHTS = {
    "subtractive": (0.7, 0.3),
    "fm": (0.7, 0.3),
    "additive": (0.6, 0.4),
    "mix_track": (0.6, 0.4),
}

# Mixing tolerances
EQ_TOLERANCE = 3.0                # dB
COMP_THRESHOLD_TOLERANCE = 6.0    # dB
COMP_AMOUNT_TOLERANCE = 15.0      # percent
COMP_ATTACK_TOLERANCE = 0.05      # seconds
COMP_RELEASE_TOLERANCE = 0.1      # seconds

# Production (multi-layer) tolerances
LAYER_VOLUME_TOLERANCE = 3.0  # dB
LAYER_PAN_TOLERANCE = 0.2
LAYER_EQ_TOLERANCE = 2.0      # dB
LAYER_NEEDS_WORK = 60
LAYER_CLOSE = 85

# Sampling tolerances. Deviations fall to zero at five tolerances.
SAMPLING_PITCH_TOLERANCE = 1.0   # semitones
TIME_STRETCH_TOLERANCE = 0.1     # stretch factor
TRIM_TOLERANCE = 0.02            # fraction of the sample length
FADE_TOLERANCE = 0.05            # seconds
SAMPLING_REACH = 4.0
SLICE_COUNT_POINTS = 60    # share of a slice score for the count
SLICE_SPACING_POINTS = 40  # share for even spacing
DEFAULT_CHOP_SLICES = 4

# General MIDI percussion notes used when exporting drum patterns
GM_DRUM_NOTES = {
    "kick": 36,
    "snare": 38,
    "clap": 39,
    "hihat": 42,
    "hihatClosed": 42,
    "hihat-closed": 42,
    "hihatOpen": 46,
    "hihat-open": 46,
    "tom": 45,
    "crash": 49,
    "ride": 51,
}
GM_DRUM_FALLBACK_NOTE = 37  # side stick
MIDI_DRUM_CHANNEL = 9  # channel 10, zero-based

# SuperCollider code to load the tap SynthDef and set up OSC forwarding
# This runs in a persistent sclang process started by the judge
SCLANG_INIT_CODE = r'''
Server.default = Server.remote(\scsynth, NetAddr("127.0.0.1", 57110));
s = Server.default;

fork {
    0.5.wait;  // Give server connection time to establish

    // Analysis tap - per-band FFT magnitudes of the monitored bus
    SynthDef(\judge_tap, {
        arg bus = 0, replyRate = 60, replyID = 2001;
        var in, mono, fft, bands;

        in = In.ar(bus, 2);
        mono = in.sum * 0.5;
        fft = FFT(LocalBuf(2048), mono);
        bands = FFTSubbandPower.kr(fft, [40, 63, 100, 160, 250, 400, 630, 1000, 1600, 2500, 4000, 6300, 10000, 14000, 18000], square: 0);

        SendReply.kr(Impulse.kr(replyRate), '/judge/bins', bands, replyID);
    }).add;

    // Reference voice for timbre challenges - subtractive, gated
    SynthDef(\judge_voice, {
        arg out = 0, freq = 261.63, amp = 0.2, gate = 1,
            cutoff = 2000, rq = 0.5, attack = 0.01, decay = 0.2, sustain = 0.5, release = 0.3;
        var sig, env;
        env = EnvGen.kr(Env.adsr(attack, decay, sustain, release), gate, doneAction: 2);
        sig = RLPF.ar(Saw.ar(freq), cutoff.clip(20, 20000), rq);
        Out.ar(out, (sig * env * amp) ! 2);
    }).add;

    "Judge SynthDefs loaded".postln;
};

// Relay SendReply messages from scsynth to the judge (port 57130)
~judgeAddr = NetAddr("127.0.0.1", 57130);

OSCFunc({ |msg|
    ~judgeAddr.sendMsg(*msg);
}, '/judge/bins');

"Judge sclang ready with OSC forwarding on port 57130".postln;

{ inf.wait }.defer;
'''
