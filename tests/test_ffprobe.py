"""Tests for ffprobe subprocess wrappers."""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from lectern.errors import ProbeFailed
from lectern.ffprobe import (
    get_chapters_json,
    get_duration_ms,
    get_total_duration,
    probe,
    probe_many,
)


def _mock_result(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(
        args=[], returncode=returncode, stdout=stdout, stderr=stderr,
    )


def _probe_output(
    duration="123.456",
    codec="mp3",
    sample_rate="44100",
    channels=2,
    channel_layout="stereo",
    bit_rate="128000",
) -> str:
    stream = {"codec_type": "audio", "codec_name": codec, "channel_layout": channel_layout}
    if sample_rate is not None:
        stream["sample_rate"] = sample_rate
    if channels is not None:
        stream["channels"] = channels
    fmt = {}
    if duration is not None:
        fmt["duration"] = duration
    if bit_rate is not None:
        fmt["bit_rate"] = bit_rate
    return json.dumps({"streams": [stream], "format": fmt})


class TestProbe:
    @patch("lectern.ffprobe._run_ffprobe")
    def test_parses_all_fields(self, mock_run):
        mock_run.return_value = _mock_result(_probe_output())
        params = probe(Path("test.mp3"))
        assert params.codec == "mp3"
        assert params.sample_rate == 44100
        assert params.channels == 2
        assert params.bitrate == 128000
        assert params.duration_ms == 123456

    @patch("lectern.ffprobe._run_ffprobe")
    def test_duration_rounds_to_nearest_ms(self, mock_run):
        mock_run.return_value = _mock_result(_probe_output(duration="1.0006"))
        assert probe(Path("a.mp3")).duration_ms == 1001

    @patch("lectern.ffprobe._run_ffprobe")
    def test_channels_from_layout(self, mock_run):
        mock_run.return_value = _mock_result(
            _probe_output(channels=None, channel_layout="mono")
        )
        assert probe(Path("a.mp3")).channels == 1

    @patch("lectern.ffprobe._run_ffprobe")
    def test_channels_default_stereo(self, mock_run):
        mock_run.return_value = _mock_result(
            _probe_output(channels=None, channel_layout="")
        )
        assert probe(Path("a.mp3")).channels == 2

    @patch("lectern.ffprobe._run_ffprobe")
    def test_sample_rate_default(self, mock_run):
        mock_run.return_value = _mock_result(_probe_output(sample_rate=None))
        assert probe(Path("a.mp3")).sample_rate == 44100

    @patch("lectern.ffprobe._run_ffprobe")
    def test_missing_bitrate_is_none(self, mock_run):
        mock_run.return_value = _mock_result(_probe_output(bit_rate=None))
        assert probe(Path("a.mp3")).bitrate is None

    @patch("lectern.ffprobe._run_ffprobe")
    def test_passes_file_and_json_flags(self, mock_run):
        mock_run.return_value = _mock_result(_probe_output())
        probe(Path("book/ch1.mp3"))
        args = mock_run.call_args.args[0]
        assert "-show_format" in args
        assert "-show_streams" in args
        assert args[-1] == str(Path("book/ch1.mp3"))


class TestProbeFailures:
    @patch("lectern.ffprobe._run_ffprobe")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = _mock_result(returncode=1, stderr="No such file")
        with pytest.raises(ProbeFailed, match="No such file"):
            probe(Path("missing.mp3"))

    @patch("lectern.ffprobe._run_ffprobe")
    def test_binary_missing(self, mock_run):
        mock_run.side_effect = FileNotFoundError
        with pytest.raises(ProbeFailed, match="not found"):
            probe(Path("a.mp3"))

    @patch("lectern.ffprobe._run_ffprobe")
    def test_invalid_json(self, mock_run):
        mock_run.return_value = _mock_result("not json")
        with pytest.raises(ProbeFailed, match="invalid JSON"):
            probe(Path("a.mp3"))

    @patch("lectern.ffprobe._run_ffprobe")
    def test_no_audio_stream(self, mock_run):
        mock_run.return_value = _mock_result(
            json.dumps({"streams": [{"codec_type": "video"}], "format": {"duration": "1"}})
        )
        with pytest.raises(ProbeFailed, match="no audio stream"):
            probe(Path("a.mp4"))

    @patch("lectern.ffprobe._run_ffprobe")
    def test_missing_duration(self, mock_run):
        mock_run.return_value = _mock_result(_probe_output(duration=None))
        with pytest.raises(ProbeFailed, match="duration"):
            probe(Path("a.mp3"))

    @patch("lectern.ffprobe._run_ffprobe")
    def test_reason_and_file_kept(self, mock_run):
        mock_run.return_value = _mock_result(returncode=1)
        with pytest.raises(ProbeFailed) as exc_info:
            probe(Path("x.mp3"))
        assert exc_info.value.file == Path("x.mp3")
        assert "exit code 1" in exc_info.value.reason


class TestDurations:
    @patch("lectern.ffprobe._run_ffprobe")
    def test_get_duration_ms(self, mock_run):
        mock_run.return_value = _mock_result(_probe_output(duration="600.0"))
        assert get_duration_ms(Path("a.mp3")) == 600000

    @patch("lectern.ffprobe.probe")
    def test_total_duration_sums(self, mock_probe):
        from lectern.models import AudioParams

        mock_probe.side_effect = [
            AudioParams("mp3", 44100, 2, None, d) for d in (600000, 450000, 300000)
        ]
        files = [Path("1.mp3"), Path("2.mp3"), Path("3.mp3")]
        assert get_total_duration(files) == 1350000

    @patch("lectern.ffprobe._run_ffprobe")
    def test_total_duration_fails_on_any_probe(self, mock_run):
        mock_run.side_effect = [
            _mock_result(_probe_output(duration="10")),
            _mock_result(returncode=1),
        ]
        with pytest.raises(ProbeFailed):
            get_total_duration([Path("1.mp3"), Path("2.mp3")])


class TestProbeMany:
    @patch("lectern.ffprobe._run_ffprobe")
    def test_parallel_keeps_input_order(self, mock_run):
        durations = {"a.mp3": "1", "b.mp3": "2", "c.mp3": "3", "d.mp3": "4"}

        def fake(args, binary="ffprobe"):
            return _mock_result(_probe_output(duration=durations[Path(args[-1]).name]))

        mock_run.side_effect = fake
        files = [Path(n) for n in durations]
        results = probe_many(files, workers=4)
        assert [p.duration_ms for p in results] == [1000, 2000, 3000, 4000]

    def test_empty(self):
        assert probe_many([], workers=4) == []


class TestGetChaptersJson:
    @patch("lectern.ffprobe._run_ffprobe")
    def test_returns_list(self, mock_run):
        chapters = [{"time_base": "1/1000", "start": 0, "end": 1000}]
        mock_run.return_value = _mock_result(json.dumps({"chapters": chapters}))
        assert get_chapters_json(Path("book.m4b")) == chapters

    @patch("lectern.ffprobe._run_ffprobe")
    def test_missing_chapters_key(self, mock_run):
        mock_run.return_value = _mock_result("{}")
        with pytest.raises(ProbeFailed, match="no chapters"):
            get_chapters_json(Path("book.m4b"))
