"""Cover art staging -- scale the image into the conversion work dir."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from loguru import logger

log = logger.bind(stage="cover")


def scale_cover(
    source: Path, max_size: int, work_dir: Path, ffmpeg: str = "ffmpeg"
) -> Path:
    """Fit the cover within max_size x max_size, keeping its aspect ratio.

    With max_size 0 the image is copied unchanged and ffmpeg is not run.
    If scaling fails the original is copied so a bad cover never blocks the
    conversion.
    """
    dest = work_dir / f"cover_scaled{source.suffix.lower() or '.jpg'}"

    if max_size <= 0:
        shutil.copyfile(source, dest)
        log.debug(f"Copied cover unscaled: {source.name}")
        return dest

    cmd = [
        ffmpeg,
        "-y",
        "-i",
        str(source),
        "-vf",
        f"scale={max_size}:{max_size}:force_original_aspect_ratio=decrease",
        str(dest),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        log.warning(f"Cover scaling could not start ({e}) -- using original")
        shutil.copyfile(source, dest)
        return dest

    if result.returncode != 0:
        log.warning(f"Cover scaling failed: {result.stderr[-300:]} -- using original")
        shutil.copyfile(source, dest)
        return dest

    log.debug(f"Scaled cover {source.name} to fit {max_size}px")
    return dest
