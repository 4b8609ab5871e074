"""Pytest fixtures for MIXCRAFT judge tests."""

import pytest
from unittest.mock import Mock

from mixcraft_judge.client import SCClient
from mixcraft_judge.types import DrumPattern, DrumStep, DrumTrack


class FakeClock:
    """Clock that records sleeps and returns immediately."""

    def __init__(self):
        self.sleeps = []

    async def sleep(self, seconds):
        self.sleeps.append(seconds)


class ScriptedTap:
    """Analysis tap that replays a list of frames, repeating the last one."""

    def __init__(self, frames, bin_count=None):
        self.frames = [list(f) for f in frames]
        self.bin_count = bin_count if bin_count is not None else len(self.frames[0])
        self.reads = 0

    def read_frequency_data(self):
        frame = self.frames[min(self.reads, len(self.frames) - 1)]
        self.reads += 1
        return frame


def make_pattern(rows, tempo=120.0, swing=0.0, velocities=None):
    """Build a DrumPattern from {"kick": "x...x..."} strings."""
    velocities = velocities or {}
    tracks = []
    for track_id, row in rows.items():
        steps = [
            DrumStep(active=ch == "x", velocity=velocities.get(track_id, 0.8))
            for ch in row
        ]
        tracks.append(DrumTrack(id=track_id, steps=steps, name=track_id.title()))
    step_count = max((len(r) for r in rows.values()), default=16)
    return DrumPattern(tracks=tracks, tempo=tempo, swing=swing, step_count=step_count)


@pytest.fixture
def client():
    """Provide a fresh SCClient instance for testing."""
    return SCClient()


@pytest.fixture
def mock_sc_client(mocker):
    """Provide a mock SCClient that's patched into the tools module."""
    mock = Mock(spec=SCClient)
    mocker.patch('mixcraft_judge.tools.sc_client', mock)
    return mock


@pytest.fixture
def fake_clock():
    return FakeClock()
