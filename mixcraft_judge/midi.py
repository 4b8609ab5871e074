"""MIDI export of drum patterns.

Each track becomes a General MIDI percussion note on channel 10, one hit per
active step. Steps are 16th notes; swing delays every odd step.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from mido import Message, MetaMessage, MidiFile, MidiTrack, bpm2tempo

from .config import GM_DRUM_FALLBACK_NOTE, GM_DRUM_NOTES, MIDI_DRUM_CHANNEL
from .types import DrumPattern, DrumTrack

STEPS_PER_BEAT = 4  # 16th notes


def drum_note(track: DrumTrack) -> int:
    """General MIDI percussion note for a track, looked up by id then name."""
    for key in (track.id, track.name, track.id.lower(), track.name.lower()):
        if key in GM_DRUM_NOTES:
            return GM_DRUM_NOTES[key]
    return GM_DRUM_FALLBACK_NOTE


def velocity_to_midi(velocity: float) -> int:
    """Convert step velocity (0-1) to MIDI velocity (1-127)."""
    return max(1, min(127, round(velocity * 127)))


def step_tick(index: int, swing: float, ticks_per_beat: int) -> int:
    """Absolute tick of a step, with odd steps pushed late by swing."""
    step_ticks = ticks_per_beat / STEPS_PER_BEAT
    tick = index * step_ticks
    if index % 2 == 1:
        tick += swing * step_ticks / 3
    return int(round(tick))


def pattern_to_midi(pattern: DrumPattern, ticks_per_beat: int = 480) -> MidiFile:
    """Convert a DrumPattern to a single-track MidiFile.

    Args:
        pattern: the pattern to export
        ticks_per_beat: MIDI resolution (pulses per quarter note)

    Returns:
        MidiFile object ready to save
    """
    mid = MidiFile(ticks_per_beat=ticks_per_beat)
    track = MidiTrack()
    mid.tracks.append(track)

    track.append(MetaMessage('set_tempo', tempo=bpm2tempo(pattern.tempo), time=0))
    if pattern.name:
        track.append(MetaMessage('track_name', name=pattern.name, time=0))

    gate = ticks_per_beat // (STEPS_PER_BEAT * 2)  # half a step

    midi_events = []
    for drum in pattern.tracks:
        note = drum_note(drum)
        for index, step in enumerate(drum.steps[:pattern.step_count]):
            if not step.active:
                continue
            start = step_tick(index, pattern.swing, ticks_per_beat)
            midi_events.append(('note_on', start, note, velocity_to_midi(step.velocity)))
            midi_events.append(('note_off', start + gate, note, 0))

    # Sort by time (note_off before note_on for same time)
    midi_events.sort(key=lambda x: (x[1], 0 if x[0] == 'note_off' else 1, x[2]))

    current_tick = 0
    for event_type, abs_tick, note, velocity in midi_events:
        track.append(Message(
            event_type, channel=MIDI_DRUM_CHANNEL, note=note,
            velocity=velocity, time=max(0, abs_tick - current_tick),
        ))
        current_tick = abs_tick

    return mid


def export_pattern_midi(
    pattern: DrumPattern,
    output_path: Optional[str] = None,
    ticks_per_beat: int = 480,
) -> tuple[bool, str, Optional[str]]:
    """Export a drum pattern to a Standard MIDI File.

    Args:
        pattern: the pattern to export
        output_path: Output path (optional, uses temp file if None)
        ticks_per_beat: MIDI resolution (default 480)

    Returns:
        Tuple of (success, message, file_path)
    """
    hits = sum(
        1 for drum in pattern.tracks
        for step in drum.steps[:pattern.step_count] if step.active
    )
    if hits == 0:
        return (False, "Pattern has no active steps", None)

    midi_file = pattern_to_midi(pattern, ticks_per_beat=ticks_per_beat)

    if output_path is None:
        fd, output_path = tempfile.mkstemp(suffix='.mid', prefix='drum_pattern_')
        os.close(fd)
    else:
        output_path = str(Path(output_path).expanduser())

    try:
        midi_file.save(output_path)
    except OSError as e:
        return (False, f"Failed to save MIDI file: {e}", None)

    return (True, f"Exported {hits} hits across {len(pattern.tracks)} tracks to MIDI", output_path)
