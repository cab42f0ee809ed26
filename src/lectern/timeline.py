"""Map a global book timestamp to (file, local offset) for multi-file books."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from loguru import logger

from .ffprobe import FFPROBE, probe_many

log = logger.bind(stage="timeline")


@dataclass
class AudioTimelineMap:
    """Parallel lists of files and their durations, rebuilt per request."""

    files: list[Path] = field(default_factory=list)
    durations_ms: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.files) != len(self.durations_ms):
            raise ValueError("files and durations_ms must have the same length")

    @classmethod
    def from_files(
        cls, files: Sequence[Path], workers: int = 1, binary: str = FFPROBE
    ) -> AudioTimelineMap:
        params = probe_many(files, workers, binary)
        return cls(list(files), [p.duration_ms for p in params])

    @property
    def total_duration_ms(self) -> int:
        return sum(self.durations_ms)

    def file_start_ms(self, index: int) -> int:
        """Global timestamp at which file ``index`` begins."""
        return sum(self.durations_ms[:index])

    def resolve(self, timestamp_ms: int) -> tuple[Path, int] | None:
        """Find the file playing at timestamp_ms and the offset into it.

        A timestamp on a boundary belongs to the next file (offset 0). Past
        the end of the book -- including exactly at its end -- the last file
        is returned at its full duration. None only for an empty map.
        """
        if not self.files:
            return None

        timestamp_ms = max(timestamp_ms, 0)
        cumulative = 0
        for path, duration in zip(self.files, self.durations_ms):
            if cumulative <= timestamp_ms < cumulative + duration:
                return path, timestamp_ms - cumulative
            cumulative += duration

        log.debug(f"{timestamp_ms} ms is at or past the end -- clamping to last file")
        return self.files[-1], self.durations_ms[-1]
