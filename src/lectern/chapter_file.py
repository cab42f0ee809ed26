"""Parse chapter lists from sidecar files (txt, json, cue, ini, ffmetadata).

Supported layouts:
    ffmetadata -- ffmpeg's FFMETADATA1 ``[CHAPTER]`` blocks; any file whose
            first line is ``;FFMETADATA1`` is read this way.
    txt  -- one "[HH:]MM:SS[.fff] Title" per line, '#' comments.
    json -- array of {"title"|"name", "start_ms"|"start_time"|"start"(s),
            optional "duration_ms"|"duration"(s)}.
    cue  -- TITLE "..." + INDEX 01 mm:ss:ff (75 frames per second).
    ini  -- [Section title] with start= / start_time= (seconds or timestamp).

Durations missing from the file are filled from the next chapter's start.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

from loguru import logger

from .chapters import fill_durations
from .errors import ChapterFileError
from .ffmetadata import HEADER as FFMETADATA_HEADER
from .ffmetadata import parse_ffmetadata
from .models import Chapter

log = logger.bind(stage="chapter_file")

CHAPTER_FILE_NAMES: frozenset[str] = frozenset(
    {
        "chapters.txt",
        "chapter.txt",
        "chapters.json",
        "chapter.json",
        "chapters.ini",
        "chapter.ini",
    }
)

CUE_FRAMES_PER_SECOND = 75

_TXT_LINE = re.compile(r"^([\d:.]+)(?:\s+(.*))?$")


def is_chapter_file_name(name: str) -> bool:
    lower = name.lower()
    return lower in CHAPTER_FILE_NAMES or lower.endswith((".cue", ".ffmetadata"))


def find_chapter_file(directory: Path) -> Path | None:
    """First chapter sidecar in directory (sorted by name), if any."""
    candidates = sorted(
        p for p in directory.iterdir() if p.is_file() and is_chapter_file_name(p.name)
    )
    return candidates[0] if candidates else None


def parse_chapter_file(path: Path) -> list[Chapter]:
    """Parse a chapter sidecar, choosing the format by extension."""
    if not path.is_file():
        raise ChapterFileError(f"Not a file: {path}")
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ChapterFileError(f"Cannot read {path}: {e}") from e

    if content.startswith(FFMETADATA_HEADER) or path.suffix.lower() == ".ffmetadata":
        chapters = parse_ffmetadata_chapters(content)
        log.debug(f"Parsed {len(chapters)} chapters from {path.name} (FFMETADATA)")
        return chapters

    parsers = {
        ".txt": parse_txt,
        ".json": parse_json,
        ".cue": parse_cue,
        ".ini": parse_ini,
    }
    parser = parsers.get(path.suffix.lower())
    if parser is None:
        raise ChapterFileError(f"Unknown chapter file extension: {path.suffix}")
    chapters = parser(content)
    log.debug(f"Parsed {len(chapters)} chapters from {path.name}")
    return chapters


def parse_timestamp(text: str) -> int:
    """Seconds, MM:SS, or HH:MM:SS (fractional seconds allowed) -> ms."""
    parts = text.strip().split(":")
    try:
        if len(parts) == 1:
            h, m, s = 0, 0, float(parts[0])
        elif len(parts) == 2:
            h, m, s = 0, int(parts[0]), float(parts[1])
        elif len(parts) == 3:
            h, m, s = int(parts[0]), int(parts[1]), float(parts[2])
        else:
            raise ChapterFileError(f"Invalid timestamp: {text}")
    except ValueError:
        raise ChapterFileError(f"Invalid timestamp: {text}") from None
    return round((h * 3600 + m * 60 + s) * 1000)


def parse_txt(content: str) -> list[Chapter]:
    chapters: list[Chapter] = []
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _TXT_LINE.match(line)
        if match is None:
            raise ChapterFileError(f"Invalid timestamp in line: {line}")
        time_str = match.group(1).rstrip(":.")
        title = (match.group(2) or "").strip()
        if not title:
            continue
        chapters.append(Chapter(title, parse_timestamp(time_str), 0))
    if not chapters:
        raise ChapterFileError("No chapters found in file")
    fill_durations(chapters)
    return chapters


def parse_ffmetadata_chapters(content: str) -> list[Chapter]:
    try:
        _, chapters = parse_ffmetadata(content)
    except ValueError as e:
        raise ChapterFileError(f"Invalid FFMETADATA file: {e}") from e
    if not chapters:
        raise ChapterFileError("No [CHAPTER] sections in FFMETADATA file")
    return chapters


def _seconds_to_ms(value) -> int | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return round(value * 1000)
    return None


def _int_ms(value) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def parse_json(content: str) -> list[Chapter]:
    try:
        entries = json.loads(content)
    except json.JSONDecodeError as e:
        raise ChapterFileError(f"Invalid JSON: {e}") from e
    if not isinstance(entries, list) or not entries:
        raise ChapterFileError("No chapters in JSON array")

    chapters: list[Chapter] = []
    for i, obj in enumerate(entries):
        if not isinstance(obj, dict):
            raise ChapterFileError(f"Chapter entry {i + 1} is not an object")
        title = obj.get("title") or obj.get("name") or f"Chapter {i + 1}"
        start = _int_ms(obj.get("start_ms"))
        if start is None:
            start = _int_ms(obj.get("start_time"))
        if start is None:
            start = _seconds_to_ms(obj.get("start"))
        duration = _int_ms(obj.get("duration_ms"))
        if duration is None:
            duration = _seconds_to_ms(obj.get("duration"))
        chapters.append(Chapter(str(title), start or 0, duration or 0))

    for i, ch in enumerate(chapters[:-1]):
        if ch.duration_ms == 0:
            ch.duration_ms = max(chapters[i + 1].start_ms - ch.start_ms, 0)
    return chapters


def _parse_cue_index(text: str) -> int:
    parts = text.split(":")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ChapterFileError(f"CUE INDEX must be mm:ss:ff, got: {text}")
    m, s, frames = (int(p) for p in parts)
    return (m * 60 + s) * 1000 + frames * 1000 // CUE_FRAMES_PER_SECOND


def parse_cue(content: str) -> list[Chapter]:
    chapters: list[Chapter] = []
    title = ""
    for raw in content.splitlines():
        line = raw.strip()
        if line.startswith("TRACK "):
            title = ""
        elif line.startswith("TITLE "):
            title = line[len("TITLE ") :].strip().strip('"')
        elif line.startswith("INDEX 01 "):
            start = _parse_cue_index(line[len("INDEX 01 ") :].strip())
            chapters.append(Chapter(title or f"Chapter {len(chapters) + 1}", start, 0))
    if not chapters:
        raise ChapterFileError("No INDEX 01 entries in CUE file")
    fill_durations(chapters)
    return chapters


def parse_ini(content: str) -> list[Chapter]:
    chapters: list[Chapter] = []
    title = ""
    start: int | None = None

    def flush() -> None:
        if start is not None:
            chapters.append(Chapter(title or f"Chapter {len(chapters) + 1}", start, 0))

    for raw in content.splitlines():
        line = raw.strip()
        lower = line.lower()
        if line.startswith("[") and "]" in line:
            flush()
            title = line[1:].split("]", 1)[0].strip()
            start = None
        elif lower.startswith(("start=", "start_time=")):
            value = line.split("=", 1)[1].strip()
            start = parse_timestamp(value)
    flush()

    if not chapters:
        raise ChapterFileError("No chapters in INI file")
    fill_durations(chapters)
    return chapters
