"""Tests for mixcraft_judge.utils pure functions."""

import math
import subprocess

import pytest

from mixcraft_judge.config import TAP_MAGNITUDE_SCALE
from mixcraft_judge.utils import (
    amp_to_db,
    band_level_db,
    clamp,
    kill_process_on_port,
    log2_distance,
    magnitude_to_byte,
    round_half_up,
)


class TestRoundHalfUp:
    """Tests for round_half_up function."""

    def test_half_rounds_up(self):
        # round() would give 82 here
        assert round_half_up(82.5) == 83
        assert round_half_up(0.5) == 1

    def test_below_half_rounds_down(self):
        assert round_half_up(82.49) == 82

    def test_whole_numbers_unchanged(self):
        assert round_half_up(100.0) == 100
        assert round_half_up(0) == 0

    def test_returns_int(self):
        assert isinstance(round_half_up(70.0), int)


class TestClamp:
    """Tests for clamp function."""

    def test_inside_range(self):
        assert clamp(5, 0, 10) == 5

    def test_below_range(self):
        assert clamp(-3, 0, 10) == 0

    def test_above_range(self):
        assert clamp(12.5, 0, 10) == 10


class TestAmpToDb:
    """Tests for amp_to_db function."""

    def test_unity_gain(self):
        assert amp_to_db(1.0) == pytest.approx(0.0)

    def test_half_amplitude(self):
        assert amp_to_db(0.5) == pytest.approx(-6.02, abs=0.01)

    def test_silence(self):
        assert amp_to_db(0.0) == -math.inf
        assert amp_to_db(-0.1) == -math.inf


class TestMagnitudeToByte:
    """Tests for magnitude_to_byte and band_level_db."""

    def test_silence_reads_zero(self):
        assert magnitude_to_byte(0.0) == 0.0

    def test_full_scale_sine(self):
        assert band_level_db(TAP_MAGNITUDE_SCALE) == pytest.approx(0.0)
        assert magnitude_to_byte(TAP_MAGNITUDE_SCALE) == 255.0

    def test_floor(self):
        # -120 dB below full scale is under the analyser floor
        assert magnitude_to_byte(TAP_MAGNITUDE_SCALE * 1e-6) == 0.0

    def test_midpoint(self):
        # -50 dB sits halfway between -100 and 0
        assert magnitude_to_byte(TAP_MAGNITUDE_SCALE * 10 ** (-50 / 20)) == pytest.approx(127.5)

    def test_realistic_magnitudes_stay_distinct(self):
        # a 0.2 amplitude voice peaks near 100 in a 2048-point FFT
        levels = [magnitude_to_byte(m) for m in (0.5, 5.0, 50.0, 100.0)]
        assert levels == sorted(levels)
        assert len(set(levels)) == 4
        assert all(0.0 < level < 255.0 for level in levels)
        assert levels[1] - levels[0] == pytest.approx(51.0)  # 20 dB per decade


class TestLog2Distance:
    """Tests for log2_distance function."""

    def test_octave(self):
        assert log2_distance(440.0, 880.0) == pytest.approx(1.0)
        assert log2_distance(880.0, 440.0) == pytest.approx(1.0)

    def test_identical(self):
        assert log2_distance(0.3, 0.3) == 0.0

    def test_both_zero(self):
        assert log2_distance(0.0, 0.0) == 0.0

    def test_one_zero_is_far(self):
        assert log2_distance(0.0, 0.5) == 10.0
        assert log2_distance(0.5, 0.0) == 10.0


class TestKillProcessOnPort:
    """Tests for kill_process_on_port function."""

    def test_no_process_on_port(self, mocker):
        mock_run = mocker.patch("mixcraft_judge.utils.subprocess.run")
        mock_run.return_value = mocker.MagicMock(returncode=1, stdout="")

        assert kill_process_on_port(12345) is False
        mock_run.assert_called_once()

    def test_kills_other_processes(self, mocker):
        mock_run = mocker.patch("mixcraft_judge.utils.subprocess.run")
        mock_run.return_value = mocker.MagicMock(returncode=0, stdout="12345\n12346\n")
        mock_kill = mocker.patch("mixcraft_judge.utils.os.kill")
        mocker.patch("mixcraft_judge.utils.os.getpid", return_value=99999)
        mocker.patch("mixcraft_judge.utils.time.sleep")

        assert kill_process_on_port(57130) is True
        assert mock_kill.call_count == 2

    def test_skips_own_process(self, mocker):
        mock_run = mocker.patch("mixcraft_judge.utils.subprocess.run")
        mock_run.return_value = mocker.MagicMock(returncode=0, stdout="12345\n")
        mock_kill = mocker.patch("mixcraft_judge.utils.os.kill")
        mocker.patch("mixcraft_judge.utils.os.getpid", return_value=12345)

        assert kill_process_on_port(57130) is True
        mock_kill.assert_not_called()

    def test_ignores_invalid_pid(self, mocker):
        mock_run = mocker.patch("mixcraft_judge.utils.subprocess.run")
        mock_run.return_value = mocker.MagicMock(returncode=0, stdout="not_a_pid\n12345\n")
        mock_kill = mocker.patch("mixcraft_judge.utils.os.kill")
        mocker.patch("mixcraft_judge.utils.os.getpid", return_value=99999)
        mocker.patch("mixcraft_judge.utils.time.sleep")

        assert kill_process_on_port(57130) is True
        mock_kill.assert_called_once_with(12345, mocker.ANY)

    def test_lsof_missing(self, mocker):
        mocker.patch("mixcraft_judge.utils.subprocess.run", side_effect=FileNotFoundError)
        assert kill_process_on_port(57130) is False

    def test_lsof_timeout(self, mocker):
        mocker.patch(
            "mixcraft_judge.utils.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="lsof", timeout=5),
        )
        assert kill_process_on_port(57130) is False
