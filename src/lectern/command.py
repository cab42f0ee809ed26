"""ffmpeg command construction for a single conversion.

Input layout (ffmpeg input indices):

    single file / demuxer:  0 = audio, 1 = metadata, 2 = cover
    filter graph:           0..N-1 = audio files, N = metadata, N+1 = cover

Every artifact the command references (concat list, filter script,
metadata file, scaled cover) is written into ``work_dir``, which the
caller owns and removes.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .concat import (
    FILTER_OUTPUT_PAD,
    build_filter_graph,
    select_concat_method,
    write_concat_file,
    write_filter_script,
)
from .cover import scale_cover
from .errors import ConfigError, ToolMissing
from .ffmetadata import generate_chapter_metadata, metadata_args
from .ffprobe import probe
from .models import (
    FALLBACK_CHANNELS,
    SPEECHNORM_FILTER,
    AudioCodec,
    AudioParams,
    ConcatMethod,
    ConversionConfig,
    Directory,
    InputType,
    SingleAudioFile,
    SingleContainer,
)
from .sources import detect_input_type, primary_file

if TYPE_CHECKING:
    from .config import LecternConfig

log = logger.bind(stage="command")


@dataclass(frozen=True)
class BuiltCommand:
    """A ready-to-run ffmpeg invocation and where its output lands."""

    args: list[str]
    output_path: Path
    final_path: Path
    input_type: InputType
    concat_method: ConcatMethod | None = None

    @property
    def atomic(self) -> bool:
        return self.output_path != self.final_path


def ensure_ffmpeg(binary: str = "ffmpeg") -> None:
    """Fail fast with ToolMissing when ffmpeg cannot be run."""
    try:
        result = subprocess.run([binary, "-version"], capture_output=True, text=True)
    except OSError:
        raise ToolMissing(binary) from None
    if result.returncode != 0:
        raise ToolMissing(binary)


def atomic_temp_path(output_path: Path) -> Path:
    """Sibling temp name that keeps the extension: book.m4b -> book.tmp.m4b"""
    if output_path.suffix:
        return output_path.with_name(f"{output_path.stem}.tmp{output_path.suffix}")
    return output_path.with_name(f"{output_path.name}.tmp")


def write_metadata_file(config: ConversionConfig, work_dir: Path) -> Path:
    path = work_dir / "metadata.txt"
    path.write_text(
        generate_chapter_metadata(config.book, config.chapters), encoding="utf-8"
    )
    log.debug(f"Wrote {len(config.chapters)} chapters to {path.name}")
    return path


def _needs_reference(config: ConversionConfig) -> bool:
    return config.codec != AudioCodec.COPY and (
        config.bitrate is None or config.channels is None
    )


def _encoding_args(
    config: ConversionConfig, reference: AudioParams | None, fallback_bitrate: str
) -> list[str]:
    args = ["-c:a", config.codec.encoder]
    if config.codec == AudioCodec.COPY:
        return args

    if config.bitrate:
        bitrate = config.bitrate
    elif reference is not None and reference.bitrate:
        bitrate = f"{reference.bitrate}"
    else:
        bitrate = fallback_bitrate
    args.extend(["-b:a", bitrate])

    if config.channels:
        channels = config.channels
    elif reference is not None:
        channels = reference.channels
    else:
        channels = FALLBACK_CHANNELS
    args.extend(["-ac", str(channels)])
    return args


def build_command(
    config: ConversionConfig, work_dir: Path, settings: LecternConfig
) -> BuiltCommand:
    """Assemble the full ffmpeg argument vector for a conversion request.

    Classification and probing happen here, so any input problem surfaces
    before the output location is touched.
    """
    ensure_ffmpeg(settings.ffmpeg_bin)

    options = config.options
    input_type = detect_input_type(config.input_path)
    concat_method: ConcatMethod | None = None

    normalize = options.normalize_volume
    if normalize and config.codec == AudioCodec.COPY:
        log.warning("Volume normalization needs re-encoding -- skipped for stream copy")
        normalize = False

    if isinstance(input_type, Directory):
        concat_method = select_concat_method(
            input_type.files, normalize, settings.ffprobe_bin
        )
        if concat_method == ConcatMethod.FILTER_GRAPH and config.codec == AudioCodec.COPY:
            raise ConfigError(
                "Input files differ in stream parameters; "
                "stream copy cannot join them (use --codec aac or opus)"
            )

    reference: AudioParams | None = None
    first = primary_file(input_type)
    if first is not None and _needs_reference(config):
        reference = probe(first, settings.ffprobe_bin)

    args = [settings.ffmpeg_bin, "-y"]
    use_filter_graph = concat_method == ConcatMethod.FILTER_GRAPH

    match input_type:
        case SingleContainer(path=path) | SingleAudioFile(path=path):
            log.debug(f"Single input: {path}")
            args.extend(["-i", str(path)])
            audio_inputs = 1
        case Directory(files=files) if concat_method == ConcatMethod.DEMUXER:
            concat_file = write_concat_file(files, work_dir)
            log.debug(f"Concat demuxer over {len(files)} files")
            args.extend(["-f", "concat", "-safe", "0", "-i", str(concat_file)])
            audio_inputs = 1
        case Directory(files=files):
            log.debug(f"Filter graph over {len(files)} files")
            for f in files:
                args.extend(["-i", str(f)])
            if len(files) > settings.filter_script_threshold:
                script = write_filter_script(len(files), normalize, work_dir)
                args.extend(["-filter_complex_script", str(script)])
            else:
                graph = build_filter_graph(len(files), normalize)
                args.extend(["-filter_complex", graph])
            audio_inputs = len(files)

    metadata_index = audio_inputs
    metadata_file = write_metadata_file(config, work_dir)
    args.extend(["-i", str(metadata_file)])

    cover_index: int | None = None
    if config.cover_path is not None:
        cover = scale_cover(
            config.cover_path, options.max_cover_size, work_dir, settings.ffmpeg_bin
        )
        args.extend(["-i", str(cover)])
        cover_index = metadata_index + 1

    # Stream mapping -- chapters follow the metadata input unless forced
    args.extend(["-map", FILTER_OUTPUT_PAD if use_filter_graph else "0:a"])
    if cover_index is not None:
        args.extend(["-map", f"{cover_index}:v"])
    args.extend(["-map_metadata", str(metadata_index)])
    if options.rewrite_chapters:
        args.extend(["-map_chapters", str(metadata_index)])

    args.extend(_encoding_args(config, reference, settings.default_bitrate))

    if cover_index is not None:
        args.extend(["-c:v", "copy", "-disposition:v", "attached_pic", "-b:v", "0"])

    if normalize and not use_filter_graph:
        args.extend(["-af", SPEECHNORM_FILTER])

    args.extend(metadata_args(config.book))

    final_path = Path(config.output_path)
    output_path = atomic_temp_path(final_path) if options.atomic_write else final_path
    output_path.parent.mkdir(parents=True, exist_ok=True)
    args.append(str(output_path))

    log.debug(f"ffmpeg command: {' '.join(args)}")
    return BuiltCommand(
        args=args,
        output_path=output_path,
        final_path=final_path,
        input_type=input_type,
        concat_method=concat_method,
    )
