"""Pipeline configuration via pydantic-settings (.env + LECTERN_* env vars)."""

import sys
from pathlib import Path

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import FALLBACK_BITRATE, FILTER_SCRIPT_THRESHOLD, AudioCodec, ProcessingOptions


class LecternConfig(BaseSettings):
    """All pipeline configuration with layered resolution:
    .env file < environment variables < constructor kwargs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LECTERN_",
        extra="ignore",
    )

    # -- External tools --
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"

    # -- Encoding --
    codec: AudioCodec = AudioCodec.AAC
    default_bitrate: str = FALLBACK_BITRATE
    channels: int | None = None

    # -- Processing --
    normalize_volume: bool = True
    rewrite_chapters: bool = False
    max_cover_size: int = 1000
    atomic_write: bool = True
    filter_script_threshold: int = FILTER_SCRIPT_THRESHOLD
    probe_workers: int = 4

    # -- Behavior --
    dry_run: bool = False
    verbose: bool = False
    log_level: str = "INFO"
    log_dir: Path = Path.home() / ".local" / "state" / "lectern"

    def processing_options(self) -> ProcessingOptions:
        """Default ProcessingOptions for a conversion request."""
        return ProcessingOptions(
            normalize_volume=self.normalize_volume,
            rewrite_chapters=self.rewrite_chapters,
            max_cover_size=self.max_cover_size,
            atomic_write=self.atomic_write,
        )

    def setup_logging(self) -> None:
        """Configure loguru for the pipeline."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<10} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        logger.add(
            sys.stderr,
            format=log_format,
            level=self.log_level.upper(),
            filter=_default_extra,
        )

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "lectern.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
