"""Input classification -- decide what kind of source a conversion starts from."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from .errors import InputNotFound, NoAudioFilesInDirectory, UnsupportedFileType
from .models import (
    AUDIO_EXTENSIONS,
    CONTAINER_EXTENSIONS,
    Directory,
    InputType,
    SingleAudioFile,
    SingleContainer,
)

log = logger.bind(stage="sources")


def collect_audio_files(directory: Path) -> list[Path]:
    """Audio files directly inside directory, in assembly order.

    The order is plain ascending lexicographic order of the path string.
    It decides chapter numbering and concatenation sequence, so it must not
    be changed to a natural sort without changing both.
    """
    files = [
        p
        for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in AUDIO_EXTENSIONS
    ]
    files.sort(key=str)
    log.debug(f"collect_audio_files({directory}) -> {len(files)} files")
    if not files:
        raise NoAudioFilesInDirectory(directory)
    return files


def detect_input_type(path: Path) -> InputType:
    """Classify path as a pre-built container, a single audio file, or a directory."""
    path = Path(path)
    if not path.exists():
        raise InputNotFound(path)

    if path.is_dir():
        return Directory(tuple(collect_audio_files(path)))

    ext = path.suffix.lower()
    if ext in CONTAINER_EXTENSIONS:
        return SingleContainer(path)
    if ext in AUDIO_EXTENSIONS:
        return SingleAudioFile(path)
    raise UnsupportedFileType(path)


def input_files(input_type: InputType) -> list[Path]:
    """Ordered list of audio files behind any input variant."""
    match input_type:
        case SingleContainer(path=path) | SingleAudioFile(path=path):
            return [path]
        case Directory(files=files):
            return list(files)


def primary_file(input_type: InputType) -> Path | None:
    """File whose parameters seed the default bitrate and channel count."""
    files = input_files(input_type)
    return files[0] if files else None
