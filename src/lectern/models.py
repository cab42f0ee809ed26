"""Core enums, constants, and data types for the assembly pipeline.

Enums:
    AudioCodec       -- Output audio codec selection (copy, aac, opus).
    ConcatMethod     -- Join strategy for multi-file books (demuxer, filter_graph).
    ConversionState  -- ffmpeg process lifecycle (spawned, running, succeeded, failed).

Input classification is a small tagged union (SingleContainer, Directory,
SingleAudioFile) dispatched with ``match``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class AudioCodec(StrEnum):
    COPY = "copy"
    AAC = "aac"
    OPUS = "opus"

    @property
    def encoder(self) -> str:
        """ffmpeg encoder name for this codec."""
        return _ENCODERS[self]


_ENCODERS: dict[AudioCodec, str] = {
    AudioCodec.COPY: "copy",
    AudioCodec.AAC: "aac",
    AudioCodec.OPUS: "libopus",
}


class ConcatMethod(StrEnum):
    DEMUXER = "demuxer"
    FILTER_GRAPH = "filter_graph"


class ConversionState(StrEnum):
    SPAWNED = "spawned"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mp3",
        ".aac",
        ".wav",
        ".flac",
        ".m4a",
        ".m4b",
        ".ogg",
        ".opus",
    }
)

# Pre-built containers -- chapters and tags assumed already embedded
CONTAINER_EXTENSIONS: frozenset[str] = frozenset({".m4b", ".m4a"})

SPEECHNORM_FILTER = "speechnorm=e=6.5:r=0.0001:l=1"
FALLBACK_BITRATE = "128k"
FALLBACK_CHANNELS = 2
DEFAULT_SAMPLE_RATE = 44100
FILTER_SCRIPT_THRESHOLD = 50
UNTITLED_CHAPTER = "Untitled Chapter"


@dataclass(frozen=True)
class AudioParams:
    """Measured parameters of one audio file.

    duration_ms comes from the container's decimal-seconds duration, never
    from a coarser integer field, so sums across many files do not drift.
    """

    codec: str
    sample_rate: int
    channels: int
    bitrate: int | None
    duration_ms: int

    def matches(self, other: AudioParams) -> bool:
        """True when both streams can be joined without re-encoding."""
        return (
            self.codec == other.codec
            and self.sample_rate == other.sample_rate
            and self.channels == other.channels
        )


@dataclass
class Chapter:
    title: str
    start_ms: int
    duration_ms: int
    locked: bool = False

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms


@dataclass
class BookMetadata:
    title: str = ""
    author: str = ""
    series: str | None = None
    narrator: str | None = None
    genre: str | None = None
    publisher: str | None = None
    year: str | None = None
    description: str | None = None
    isbn: str | None = None
    asin: str | None = None
    language: str | None = None


@dataclass(frozen=True)
class ProcessingOptions:
    normalize_volume: bool = True
    rewrite_chapters: bool = False
    max_cover_size: int = 1000
    atomic_write: bool = True


@dataclass(frozen=True)
class ConversionConfig:
    """One conversion request. Built fresh per request and never mutated."""

    input_path: Path
    output_path: Path
    book: BookMetadata = field(default_factory=BookMetadata)
    cover_path: Path | None = None
    chapters: tuple[Chapter, ...] = ()
    bitrate: str | None = None
    channels: int | None = None
    codec: AudioCodec = AudioCodec.AAC
    options: ProcessingOptions = field(default_factory=ProcessingOptions)


# -- Input classification --


@dataclass(frozen=True)
class SingleContainer:
    path: Path


@dataclass(frozen=True)
class Directory:
    files: tuple[Path, ...]


@dataclass(frozen=True)
class SingleAudioFile:
    path: Path


InputType = SingleContainer | Directory | SingleAudioFile
