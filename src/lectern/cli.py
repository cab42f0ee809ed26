"""CLI entry point for lectern."""

from __future__ import annotations

import shlex
import tempfile
from pathlib import Path

import click
from loguru import logger

from .chapter_file import find_chapter_file, parse_chapter_file
from .chapters import extract_from_container, generate_from_files, validate_chapters
from .command import build_command
from .config import LecternConfig
from .errors import LecternError
from .executor import convert as run_conversion
from .ffprobe import get_total_duration, probe
from .models import (
    AudioCodec,
    BookMetadata,
    Chapter,
    ConversionConfig,
    Directory,
    InputType,
    ProcessingOptions,
    SingleAudioFile,
    SingleContainer,
)
from .sources import detect_input_type, input_files
from .timecode import format_time, parse_time
from .timeline import AudioTimelineMap

log = logger.bind(stage="cli")


def _find_config_file() -> Path | None:
    """Look for .env next to the package or in cwd."""
    pkg_dir = Path(__file__).resolve().parent
    for candidate in [
        pkg_dir.parent.parent / ".env",  # dev: src/../.env
        Path.cwd() / ".env",
    ]:
        if candidate.is_file():
            return candidate
    return None


def _load_config(config_file: str | None, verbose: bool, **overrides) -> LecternConfig:
    env_file = Path(config_file) if config_file else _find_config_file()
    kwargs = {k: v for k, v in overrides.items() if v is not None}
    kwargs["verbose"] = verbose
    if verbose:
        kwargs["log_level"] = "DEBUG"
    config = LecternConfig(_env_file=env_file, **kwargs)  # type: ignore[arg-type]
    config.setup_logging()
    if env_file:
        log.debug(f"Loaded env from {env_file}")
    return config


def _resolve_chapters(
    input_type: InputType,
    source: str,
    chapters_file: Path | None,
    settings: LecternConfig,
) -> tuple[list[Chapter], bool]:
    """Pick the chapter list for a conversion.

    Returns (chapters, generated) where generated means the chapters were
    built back to back from file durations and need no validation.
    """
    if chapters_file is not None:
        return parse_chapter_file(chapters_file), False

    files = input_files(input_type)
    if source == "auto":
        match input_type:
            case Directory():
                sidecar = find_chapter_file(files[0].parent)
                if sidecar is not None:
                    log.info(f"Using chapter file {sidecar.name}")
                    return parse_chapter_file(sidecar), False
                source = "files"
            case SingleContainer() | SingleAudioFile():
                source = "none"

    if source == "files":
        return generate_from_files(files, settings.probe_workers, settings.ffprobe_bin), True
    if source == "container":
        return extract_from_container(files[0], settings.ffprobe_bin), False
    return [], True


def _echo_chapters(chapters: list[Chapter]) -> None:
    for i, ch in enumerate(chapters, 1):
        lock = " [locked]" if ch.locked else ""
        click.echo(
            f"  {i:>3}. {format_time(ch.start_ms, True)}  "
            f"({format_time(ch.duration_ms, True)})  {ch.title}{lock}"
        )


@click.group()
def main() -> None:
    """Assemble audio files into a chaptered, tagged M4B audiobook."""


@main.command("convert")
@click.argument("source_path", type=click.Path(exists=True))
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(),
    required=True,
    help="Output file (e.g. book.m4b).",
)
@click.option("--title", default="", help="Book title.")
@click.option("--author", default="", help="Book author.")
@click.option("--series", default=None)
@click.option("--narrator", default=None)
@click.option("--genre", default=None)
@click.option("--publisher", default=None)
@click.option("--year", default=None)
@click.option("--description", default=None)
@click.option("--isbn", default=None)
@click.option("--asin", default=None)
@click.option("--language", default=None)
@click.option(
    "--cover", type=click.Path(exists=True, dir_okay=False), default=None,
    help="Cover image to embed.",
)
@click.option(
    "--codec", type=click.Choice([c.value for c in AudioCodec]), default=None,
    help="Output audio codec.",
)
@click.option("--bitrate", default=None, help="Audio bitrate, e.g. 64k.")
@click.option("--channels", type=int, default=None, help="Output channel count.")
@click.option(
    "--normalize/--no-normalize", default=None, help="Speech volume normalization."
)
@click.option("--no-atomic", is_flag=True, help="Write straight to the output path.")
@click.option("--max-cover-size", type=int, default=None, help="0 keeps the cover as is.")
@click.option(
    "--chapters",
    "chapter_source",
    type=click.Choice(["auto", "files", "container", "none"]),
    default="auto",
    show_default=True,
    help="Where chapter markers come from.",
)
@click.option(
    "--chapters-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Chapter sidecar (txt, json, cue, ini, ffmetadata). Overrides --chapters.",
)
@click.option(
    "--rewrite-chapters", is_flag=True, help="Replace chapters already in the source."
)
@click.option("--dry-run", is_flag=True, help="Print the ffmpeg command only.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "-c", "--config", "config_file", type=click.Path(exists=True), default=None,
    help="Path to .env file.",
)
def convert_cmd(
    source_path: str,
    output_path: str,
    title: str,
    author: str,
    series: str | None,
    narrator: str | None,
    genre: str | None,
    publisher: str | None,
    year: str | None,
    description: str | None,
    isbn: str | None,
    asin: str | None,
    language: str | None,
    cover: str | None,
    codec: str | None,
    bitrate: str | None,
    channels: int | None,
    normalize: bool | None,
    no_atomic: bool,
    max_cover_size: int | None,
    chapter_source: str,
    chapters_file: str | None,
    rewrite_chapters: bool,
    dry_run: bool,
    verbose: bool,
    config_file: str | None,
) -> None:
    """Convert SOURCE_PATH (file or directory) into a single audiobook."""
    settings = _load_config(
        config_file,
        verbose,
        codec=codec,
        normalize_volume=normalize,
        max_cover_size=max_cover_size,
        dry_run=dry_run or None,
    )
    source = Path(source_path).resolve()

    try:
        input_type = detect_input_type(source)
        chapters, generated = _resolve_chapters(
            input_type,
            chapter_source,
            Path(chapters_file) if chapters_file else None,
            settings,
        )
        if chapters and not generated:
            total = get_total_duration(
                input_files(input_type), settings.probe_workers, settings.ffprobe_bin
            )
            # Sidecars carry start times only; the last chapter runs to the end
            last = chapters[-1]
            if last.duration_ms == 0:
                last.duration_ms = max(total - last.start_ms, 0)
            for issue in validate_chapters(chapters, total):
                log.warning(f"Chapter check: {issue}")

        options = settings.processing_options()
        config = ConversionConfig(
            input_path=source,
            output_path=Path(output_path).resolve(),
            book=BookMetadata(
                title=title or source.stem,
                author=author,
                series=series,
                narrator=narrator,
                genre=genre,
                publisher=publisher,
                year=year,
                description=description,
                isbn=isbn,
                asin=asin,
                language=language,
            ),
            cover_path=Path(cover) if cover else None,
            chapters=tuple(chapters),
            bitrate=bitrate,
            channels=channels or settings.channels,
            codec=settings.codec,
            options=ProcessingOptions(
                normalize_volume=options.normalize_volume,
                rewrite_chapters=rewrite_chapters or options.rewrite_chapters,
                max_cover_size=options.max_cover_size,
                atomic_write=options.atomic_write and not no_atomic,
            ),
        )

        if settings.dry_run:
            with tempfile.TemporaryDirectory(prefix="lectern-") as tmp:
                built = build_command(config, Path(tmp), settings)
                click.echo(f"[DRY-RUN] {len(chapters)} chapters, concat={built.concat_method}")
                click.echo(shlex.join(built.args))
            return

        final = run_conversion(config, settings)
    except LecternError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"  CONVERT: {source.name} -> {final} ({len(chapters)} chapters)")


@main.command("probe")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def probe_cmd(file: str, verbose: bool) -> None:
    """Show measured stream parameters of FILE."""
    settings = _load_config(None, verbose)
    try:
        params = probe(Path(file), settings.ffprobe_bin)
    except LecternError as e:
        raise click.ClickException(str(e)) from e
    bitrate = f"{params.bitrate // 1000}k" if params.bitrate else "unknown"
    click.echo(f"codec:       {params.codec}")
    click.echo(f"sample rate: {params.sample_rate} Hz")
    click.echo(f"channels:    {params.channels}")
    click.echo(f"bitrate:     {bitrate}")
    click.echo(f"duration:    {format_time(params.duration_ms, True)}")


@main.command("chapters")
@click.argument("source_path", type=click.Path(exists=True))
@click.option(
    "--from",
    "chapter_source",
    type=click.Choice(["auto", "files", "container"]),
    default="auto",
    show_default=True,
)
@click.option("--validate", is_flag=True, help="Report gaps, overlaps, and overruns.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def chapters_cmd(source_path: str, chapter_source: str, validate: bool, verbose: bool) -> None:
    """Print the chapter timeline for SOURCE_PATH."""
    settings = _load_config(None, verbose)
    try:
        input_type = detect_input_type(Path(source_path).resolve())
        if chapter_source == "auto" and isinstance(input_type, SingleContainer):
            chapter_source = "container"
        chapters, _ = _resolve_chapters(input_type, chapter_source, None, settings)
        click.echo(f"{len(chapters)} chapters")
        _echo_chapters(chapters)
        if validate:
            total = get_total_duration(
                input_files(input_type), settings.probe_workers, settings.ffprobe_bin
            )
            issues = validate_chapters(chapters, total)
            for issue in issues:
                click.echo(f"  WARNING: {issue}")
            if not issues:
                click.echo("  Chapters OK")
    except LecternError as e:
        raise click.ClickException(str(e)) from e


@main.command("locate")
@click.argument("source_path", type=click.Path(exists=True))
@click.argument("timestamp")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def locate_cmd(source_path: str, timestamp: str, verbose: bool) -> None:
    """Find which file plays at TIMESTAMP (HH:MM:SS[.mmm]) of SOURCE_PATH."""
    settings = _load_config(None, verbose)
    try:
        ms = parse_time(timestamp)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="TIMESTAMP") from e
    try:
        input_type = detect_input_type(Path(source_path).resolve())
        timeline = AudioTimelineMap.from_files(
            input_files(input_type), settings.probe_workers, settings.ffprobe_bin
        )
    except LecternError as e:
        raise click.ClickException(str(e)) from e

    resolved = timeline.resolve(ms)
    if resolved is None:
        raise click.ClickException("No audio files to resolve against")
    path, offset = resolved
    click.echo(f"{path.name} @ {format_time(offset, True)}")
