"""FFprobe subprocess wrappers for audio file inspection.

All probes run ffprobe in JSON mode. Any failure (missing binary, non-zero
exit, unparseable or incomplete output) raises ProbeFailed so callers can
abort before touching output.
"""

from __future__ import annotations

import json
import subprocess
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

from loguru import logger

from .errors import ProbeFailed
from .models import DEFAULT_SAMPLE_RATE, FALLBACK_CHANNELS, AudioParams

log = logger.bind(stage="ffprobe")

FFPROBE = "ffprobe"


def _run_ffprobe(args: list[str], binary: str = FFPROBE) -> subprocess.CompletedProcess:
    """Run ffprobe with common flags (quiet, JSON output)."""
    return subprocess.run(
        [binary, "-v", "quiet", "-print_format", "json"] + args,
        capture_output=True,
        text=True,
    )


def _probe_json(file: Path, args: list[str], binary: str) -> dict:
    try:
        result = _run_ffprobe(args + [str(file)], binary)
    except FileNotFoundError:
        raise ProbeFailed(file, f"{binary} not found. Is ffprobe installed?") from None
    if result.returncode != 0:
        reason = (result.stderr or "").strip() or f"exit code {result.returncode}"
        raise ProbeFailed(file, reason)
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProbeFailed(file, f"invalid JSON output: {e}") from e
    if not isinstance(data, dict):
        raise ProbeFailed(file, "unexpected JSON output")
    return data


def _channels_from_stream(stream: dict) -> int:
    """Explicit channel count, else inferred from the layout label, else stereo."""
    channels = stream.get("channels")
    if isinstance(channels, int) and channels > 0:
        return channels
    layout = str(stream.get("channel_layout") or "")
    if "stereo" in layout or "2.0" in layout:
        return 2
    if "mono" in layout or "1.0" in layout:
        return 1
    return FALLBACK_CHANNELS


def _parse_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def probe(file: Path, binary: str = FFPROBE) -> AudioParams:
    """Measure codec, sample rate, channels, bitrate, and precise duration."""
    data = _probe_json(file, ["-show_format", "-show_streams"], binary)

    streams = data.get("streams")
    if not isinstance(streams, list):
        raise ProbeFailed(file, "no streams in ffprobe output")
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)
    if audio is None:
        raise ProbeFailed(file, "no audio stream found")

    fmt = data.get("format") or {}
    raw_duration = fmt.get("duration")
    if raw_duration is None:
        raise ProbeFailed(file, "no duration field in ffprobe output")
    try:
        seconds = float(raw_duration)
    except (TypeError, ValueError):
        raise ProbeFailed(file, f"unparseable duration {raw_duration!r}") from None

    params = AudioParams(
        codec=audio.get("codec_name") or "unknown",
        sample_rate=_parse_int(audio.get("sample_rate")) or DEFAULT_SAMPLE_RATE,
        channels=_channels_from_stream(audio),
        bitrate=_parse_int(fmt.get("bit_rate")),
        duration_ms=max(round(seconds * 1000), 0),
    )
    log.debug(f"probe({file.name}) -> {params}")
    return params


def probe_many(
    files: Sequence[Path], workers: int = 1, binary: str = FFPROBE
) -> list[AudioParams]:
    """Probe several files, returning results in input order.

    Probes are independent, so they run on a thread pool when workers > 1.
    The first failure propagates and no partial list is returned.
    """
    if workers <= 1 or len(files) <= 1:
        return [probe(f, binary) for f in files]
    with ThreadPoolExecutor(max_workers=min(workers, len(files))) as executor:
        return list(executor.map(lambda f: probe(f, binary), files))


def get_duration_ms(file: Path, binary: str = FFPROBE) -> int:
    """Precise duration in milliseconds."""
    return probe(file, binary).duration_ms


def get_total_duration(
    files: Sequence[Path], workers: int = 1, binary: str = FFPROBE
) -> int:
    """Sum of per-file durations in milliseconds. Fails if any probe fails."""
    total = sum(p.duration_ms for p in probe_many(files, workers, binary))
    log.debug(f"Total duration of {len(files)} files: {total} ms")
    return total


def get_chapters_json(file: Path, binary: str = FFPROBE) -> list[dict]:
    """Raw chapter table entries from ffprobe -show_chapters."""
    data = _probe_json(file, ["-show_chapters"], binary)
    chapters = data.get("chapters")
    if not isinstance(chapters, list):
        raise ProbeFailed(file, "no chapters field in ffprobe output")
    return chapters
