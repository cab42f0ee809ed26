"""Concat strategy selection and the ffmpeg join inputs it needs.

Two ways to join a multi-file book:
1. Demuxer -- ``-f concat`` over a list file. Stream copy friendly, cheap,
   but every file must share codec, sample rate, and channel count.
2. Filter graph -- every file is a separate input, joined by the ``concat``
   audio filter. Decodes everything, so it tolerates heterogeneous inputs and
   is the only option when volume normalization is requested.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from loguru import logger

from .ffprobe import FFPROBE, probe
from .models import SPEECHNORM_FILTER, ConcatMethod

log = logger.bind(stage="concat")

FILTER_OUTPUT_PAD = "[out]"


def select_concat_method(
    files: Sequence[Path], normalize_volume: bool, binary: str = FFPROBE
) -> ConcatMethod:
    """Pick the fast demuxer join when possible, the filter graph otherwise."""
    if normalize_volume:
        log.debug("Volume normalization requested -- using filter graph")
        return ConcatMethod.FILTER_GRAPH

    if not files:
        raise ValueError("No files provided")

    reference = probe(files[0], binary)
    for f in files[1:]:
        params = probe(f, binary)
        if not params.matches(reference):
            log.info(
                f"{f.name} differs from {files[0].name} "
                f"({params.codec}/{params.sample_rate}/{params.channels} vs "
                f"{reference.codec}/{reference.sample_rate}/{reference.channels})"
                " -- using filter graph"
            )
            return ConcatMethod.FILTER_GRAPH

    log.debug(f"All {len(files)} files share stream parameters -- using demuxer")
    return ConcatMethod.DEMUXER


def escape_concat_path(path: str) -> str:
    """Escape single quotes for the concat demuxer: ' -> '\\''"""
    return path.replace("'", "'\\''")


def build_concat_list(files: Sequence[Path]) -> str:
    """Concat demuxer list, one ``file '<path>'`` line per input."""
    return "".join(f"file '{escape_concat_path(str(f))}'\n" for f in files)


def build_filter_graph(count: int, normalize_volume: bool) -> str:
    """Audio concat filter over ``count`` inputs, optionally normalized.

    Example: ``[0:a][1:a][2:a]concat=n=3:v=0:a=1[out]``
    """
    inputs = "".join(f"[{i}:a]" for i in range(count))
    graph = f"{inputs}concat=n={count}:v=0:a=1"
    if normalize_volume:
        graph += f",{SPEECHNORM_FILTER}"
    return graph + FILTER_OUTPUT_PAD


def write_concat_file(files: Sequence[Path], work_dir: Path) -> Path:
    path = work_dir / "concat_list.txt"
    path.write_text(build_concat_list(files), encoding="utf-8")
    log.debug(f"Wrote {len(files)} entries to {path.name}")
    return path


def write_filter_script(count: int, normalize_volume: bool, work_dir: Path) -> Path:
    """Write the filter graph to a script file (long graphs overflow argv)."""
    path = work_dir / "filter_script.txt"
    path.write_text(build_filter_graph(count, normalize_volume), encoding="utf-8")
    log.debug(f"Wrote filter graph for {count} inputs to {path.name}")
    return path
