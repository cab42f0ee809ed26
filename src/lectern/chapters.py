"""Chapter timeline -- generation, extraction, validation, and ripple shifting.

Chapters are plain mutable records (see models.Chapter). Ordering and
non-overlap are never enforced by the type; the functions here check or
preserve them, and lock flags are advisory: ripple moves skip locked
chapters without verifying that the result stays overlap-free.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from loguru import logger

from .errors import OverlapConflict
from .ffprobe import FFPROBE, get_chapters_json, probe_many
from .models import UNTITLED_CHAPTER, Chapter

log = logger.bind(stage="chapters")

GAP_TOLERANCE_MS = 1000


def generate_from_files(
    files: Sequence[Path], workers: int = 1, binary: str = FFPROBE
) -> list[Chapter]:
    """One chapter per file, back to back, titled by file stem.

    Probes may run in parallel; the results are consumed in file order so
    chapter n starts at the sum of durations of files [0..n).
    """
    params = probe_many(files, workers, binary)
    chapters: list[Chapter] = []
    cumulative_ms = 0
    for f, p in zip(files, params):
        chapters.append(Chapter(f.stem, cumulative_ms, p.duration_ms))
        cumulative_ms += p.duration_ms
    log.debug(f"Generated {len(chapters)} chapters, {cumulative_ms} ms total")
    return chapters


def _parse_time_base(value) -> tuple[int, int]:
    """Parse "num/den", falling back to 1/1000 for missing or broken parts."""
    num, den = 1, 1000
    if isinstance(value, str) and "/" in value:
        raw_num, _, raw_den = value.partition("/")
        try:
            num = int(raw_num)
        except ValueError:
            num = 1
        try:
            den = int(raw_den)
        except ValueError:
            den = 1000
    if den <= 0:
        den = 1000
    return num, den


def _as_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def extract_from_container(file: Path, binary: str = FFPROBE) -> list[Chapter]:
    """Read a container's native chapter table.

    Timestamps are in time-base units; ms = value * num * 1000 // den, using
    integer arithmetic so results truncate rather than round.
    """
    chapters: list[Chapter] = []
    for entry in get_chapters_json(file, binary):
        num, den = _parse_time_base(entry.get("time_base"))
        start_ms = _as_int(entry.get("start")) * num * 1000 // den
        end_ms = _as_int(entry.get("end")) * num * 1000 // den
        title = (entry.get("tags") or {}).get("title") or UNTITLED_CHAPTER
        chapters.append(Chapter(title, start_ms, max(end_ms - start_ms, 0)))
    log.debug(f"Extracted {len(chapters)} chapters from {file.name}")
    return chapters


def validate_chapters(
    chapters: Sequence[Chapter], total_duration_ms: int | None = None
) -> list[str]:
    """Advisory consistency check. Returns issue strings, never raises.

    Messages number chapters from 1, except the gap message which pairs the
    0-based index of the earlier chapter with the 1-based number of the later
    one. Downstream tooling matches on that wording, so it stays as is.
    """
    issues: list[str] = []
    for i, ch in enumerate(chapters):
        n = i + 1
        if total_duration_ms is not None:
            if ch.start_ms > total_duration_ms:
                issues.append(f"Chapter {n} starts after audio ends")
            elif ch.end_ms > total_duration_ms:
                issues.append(f"Chapter {n} extends beyond audio end")

        if i > 0:
            expected = chapters[i - 1].end_ms
            if ch.start_ms > expected:
                gap = ch.start_ms - expected
                if gap > GAP_TOLERANCE_MS:
                    issues.append(
                        f"Gap of {gap / 1000:.1f}s between chapters {i} and {n}"
                    )
            elif ch.start_ms < expected:
                issues.append(f"Chapter {n} overlaps previous chapter")

        if ch.duration_ms == 0:
            issues.append(f"Chapter {n} has zero duration")
    return issues


def shift_with_ripple(chapters: list[Chapter], index: int, new_start_ms: int) -> None:
    """Move chapter ``index`` to ``new_start_ms`` and ripple later chapters.

    Forward: every unlocked chapter from ``index`` on moves by the same
    offset (floored at 0). Backward: the target moves only if unlocked and
    only if it stays at or after the previous chapter's end; each later
    unlocked chapter keeps its original gap to the target's end. The two
    directions are deliberately asymmetric.

    Raises OverlapConflict (list untouched) when a backward move would
    overlap the previous chapter.
    """
    if not 0 <= index < len(chapters):
        raise IndexError(f"Chapter index {index} out of range")

    target = chapters[index]
    offset = new_start_ms - target.start_ms
    if offset == 0:
        return

    if offset > 0:
        for ch in chapters[index:]:
            if not ch.locked:
                ch.start_ms = max(ch.start_ms + offset, 0)
        log.debug(f"Rippled chapters {index + 1}.. forward by {offset} ms")
        return

    if target.locked:
        log.warning(f"Chapter {index + 1} is locked -- backward move ignored")
        return

    new_start = max(new_start_ms, 0)
    if index > 0:
        prev_end = chapters[index - 1].end_ms
        if new_start < prev_end:
            raise OverlapConflict(
                f"Chapter {index + 1} cannot start at {new_start} ms: "
                f"previous chapter ends at {prev_end} ms"
            )

    old_end = target.end_ms
    target.start_ms = new_start
    new_end = target.end_ms
    for ch in chapters[index + 1 :]:
        if ch.locked:
            continue
        old_gap = ch.start_ms - old_end
        ch.start_ms = new_end + max(old_gap, 0)
    log.debug(f"Moved chapter {index + 1} back to {new_start} ms, gaps preserved")


def shift_all(chapters: list[Chapter], offset_ms: int) -> None:
    """Shift every unlocked chapter by a signed offset, floored at 0."""
    if offset_ms == 0:
        return
    moved = 0
    for ch in chapters:
        if not ch.locked:
            ch.start_ms = max(ch.start_ms + offset_ms, 0)
            moved += 1
    log.debug(f"Shifted {moved} unlocked chapters by {offset_ms} ms")


def fill_durations(chapters: list[Chapter], total_duration_ms: int | None = None) -> None:
    """Set each duration to the distance to the next chapter's start.

    The last chapter runs to ``total_duration_ms`` when given; otherwise its
    duration is left alone.
    """
    for i, ch in enumerate(chapters):
        if i + 1 < len(chapters):
            end = chapters[i + 1].start_ms
        elif total_duration_ms is not None:
            end = total_duration_ms
        else:
            continue
        ch.duration_ms = max(end - ch.start_ms, 0)


def total_duration(chapters: Sequence[Chapter]) -> int:
    """End of the latest-ending chapter (0 for an empty list)."""
    return max((ch.end_ms for ch in chapters), default=0)
