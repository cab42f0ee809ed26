"""FFMETADATA1 rendering -- book tags and chapter markers for ffmpeg.

The same tag set is also emitted as ``-metadata key=value`` arguments, since
some players ignore tags that only arrive through the metadata input.
"""

from __future__ import annotations

from typing import Sequence

from .models import Chapter, BookMetadata

HEADER = ";FFMETADATA1"


def escape_value(value: str) -> str:
    """Escape ``=`` and newlines, which the format's grammar forbids raw."""
    return value.replace("=", "\\=").replace("\n", "\\n")


_ESCAPABLE = frozenset("=;#\\")


def unescape_value(value: str) -> str:
    """Undo ``escape_value`` plus ffmpeg's own ``\\;``, ``\\#`` and ``\\\\``.

    A backslash before any other character is kept literally, so paths like
    ``C:\\books`` survive. ``escape_value`` writes backslashes raw, which
    leaves a literal ``\\n`` in a value indistinguishable from an escaped
    newline; it reads back as a newline.
    """
    out: list[str] = []
    i = 0
    while i < len(value):
        c = value[i]
        nxt = value[i + 1] if i + 1 < len(value) else ""
        if c == "\\" and nxt == "n":
            out.append("\n")
            i += 2
        elif c == "\\" and nxt in _ESCAPABLE:
            out.append(nxt)
            i += 2
        else:
            out.append(c)
            i += 1
    return "".join(out)


def book_tags(book: BookMetadata) -> list[tuple[str, str]]:
    """Present book fields mapped to container tag keys, in output order."""
    pairs = [
        ("title", book.title),
        ("artist", book.author),
        ("album", book.series),
        ("genre", book.genre),
        ("date", book.year),
        ("publisher", book.publisher),
        ("comment", book.description),
        # Custom keys
        ("narrator", book.narrator),
        ("isbn", book.isbn),
        ("asin", book.asin),
        ("language", book.language),
    ]
    return [(k, v) for k, v in pairs if v]


def generate_chapter_metadata(book: BookMetadata, chapters: Sequence[Chapter]) -> str:
    """Render the full FFMETADATA1 document (header, tags, chapters)."""
    lines = [HEADER]
    lines.extend(f"{k}={escape_value(v)}" for k, v in book_tags(book))
    lines.append("")
    for ch in chapters:
        lines.extend(
            [
                "[CHAPTER]",
                "TIMEBASE=1/1000",
                f"START={ch.start_ms}",
                f"END={ch.start_ms + ch.duration_ms}",
                f"title={escape_value(ch.title)}",
                "",
            ]
        )
    return "\n".join(lines) + "\n"


def metadata_args(book: BookMetadata) -> list[str]:
    """The book's tag set as discrete ``-metadata`` arguments."""
    args: list[str] = []
    for key, value in book_tags(book):
        args.extend(["-metadata", f"{key}={value}"])
    return args


def _split_key_value(line: str) -> tuple[str, str] | None:
    """Split on the first unescaped ``=``."""
    escaped = False
    for i, c in enumerate(line):
        if escaped:
            escaped = False
        elif c == "\\":
            escaped = True
        elif c == "=":
            return unescape_value(line[:i]), unescape_value(line[i + 1 :])
    return None


def parse_ffmetadata(text: str) -> tuple[dict[str, str], list[Chapter]]:
    """Read an FFMETADATA1 document back into global tags and chapters.

    Chapter times are converted from their TIMEBASE to milliseconds.
    Sections other than [CHAPTER] (e.g. [STREAM]) are skipped.
    """
    lines = text.splitlines()
    if not lines or lines[0].strip() != HEADER:
        raise ValueError("Missing ;FFMETADATA1 header")

    tags: dict[str, str] = {}
    chapters: list[Chapter] = []
    section: str | None = None
    current: dict[str, str] = {}

    def flush() -> None:
        if section == "CHAPTER" and current:
            num, _, den = current.get("TIMEBASE", "1/1000").partition("/")
            try:
                num_i, den_i = int(num), int(den or 1000)
            except ValueError:
                num_i, den_i = 1, 1000
            start = int(current.get("START", 0)) * num_i * 1000 // den_i
            end = int(current.get("END", 0)) * num_i * 1000 // den_i
            chapters.append(
                Chapter(current.get("title", ""), start, max(end - start, 0))
            )

    for line in lines[1:]:
        if not line.strip() or line.startswith((";", "#")):
            continue
        if line.startswith("[") and line.rstrip().endswith("]"):
            flush()
            section = line.strip()[1:-1].upper()
            current = {}
            continue
        pair = _split_key_value(line)
        if pair is None:
            continue
        key, value = pair
        if section is None:
            tags[key] = value
        else:
            current[key] = value
    flush()
    return tags, chapters
