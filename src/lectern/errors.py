"""Exception hierarchy for the assembly pipeline."""

from pathlib import Path


class LecternError(Exception):
    """Base exception for all pipeline errors."""


class ConfigError(LecternError):
    """Invalid or missing configuration."""


class InputError(LecternError):
    """The conversion source cannot be used."""


class InputNotFound(InputError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Input path does not exist: {path}")
        self.path = path


class UnsupportedFileType(InputError):
    def __init__(self, path: Path) -> None:
        ext = path.suffix.lower().lstrip(".") or "<none>"
        super().__init__(f"Unsupported file type: {ext} ({path.name})")
        self.path = path


class NoAudioFilesInDirectory(InputError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"No audio files found in directory: {path}")
        self.path = path


class ProbeFailed(LecternError):
    """ffprobe is missing, exited non-zero, or returned unusable output."""

    def __init__(self, file: Path, reason: str) -> None:
        super().__init__(f"ffprobe failed for {file}: {reason}")
        self.file = file
        self.reason = reason


class ToolMissing(LecternError):
    """A required external binary is not installed or not runnable."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"{tool} not found in PATH. Please install FFmpeg.")
        self.tool = tool


class OverlapConflict(LecternError):
    """A chapter move would overlap the previous chapter."""


class ChapterFileError(LecternError):
    """A chapter sidecar file could not be parsed."""


class ExternalToolError(LecternError):
    """An external subprocess (ffmpeg, ffprobe, etc.) failed."""

    def __init__(self, tool: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"{tool} exited with code {exit_code}: {stderr}")
        self.tool = tool
        self.exit_code = exit_code
        self.stderr = stderr


class ConversionProcessFailed(ExternalToolError):
    def __init__(self, exit_code: int, stderr: str) -> None:
        super().__init__("ffmpeg", exit_code, stderr)


class ConversionCancelled(ConversionProcessFailed):
    """ffmpeg was cancelled. exit_code is None when it was never spawned."""

    def __init__(self, exit_code: int | None = None, stderr: str = "") -> None:
        LecternError.__init__(self, "ffmpeg conversion cancelled")
        self.tool = "ffmpeg"
        self.exit_code = exit_code
        self.stderr = stderr


class OutputMissingOrEmpty(LecternError):
    def __init__(self, path: Path, reason: str = "missing") -> None:
        super().__init__(f"Output file {reason}: {path}")
        self.path = path
        self.reason = reason


class RenameFailed(LecternError):
    """The atomic commit (temp -> final rename) failed."""

    def __init__(self, src: Path, dst: Path, reason: str) -> None:
        super().__init__(f"Failed to rename {src} to {dst}: {reason}")
        self.src = src
        self.dst = dst
        self.reason = reason
