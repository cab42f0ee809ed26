"""Run the ffmpeg conversion and commit its output atomically.

Lifecycle of one run: SPAWNED -> RUNNING -> SUCCEEDED | FAILED.

stderr is drained line by line on a helper thread while the main thread
waits for exit; without that a chatty ffmpeg fills the pipe buffer on long
books and stalls. With atomic writes ffmpeg targets ``book.tmp.m4b`` and
the rename to ``book.m4b`` is the only commit point: a crash before it
leaves just the discardable temp file.
"""

from __future__ import annotations

import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Callable, TextIO

import psutil
from loguru import logger

from .command import build_command
from .config import LecternConfig
from .errors import (
    ConversionCancelled,
    ConversionProcessFailed,
    OutputMissingOrEmpty,
    RenameFailed,
    ToolMissing,
)
from .models import ConversionConfig, ConversionState

log = logger.bind(stage="executor")


class ConversionExecutor:
    """Runs one ffmpeg invocation, capturing its stderr."""

    def __init__(self, args: list[str]) -> None:
        self.args = list(args)
        self.state: ConversionState | None = None
        self.stderr_lines: list[str] = []
        self._process: subprocess.Popen | None = None
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def stderr(self) -> str:
        return "\n".join(self.stderr_lines)

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    def _drain(self, stream: TextIO) -> None:
        for line in stream:
            line = line.rstrip("\n")
            self.stderr_lines.append(line)
            # Progress lines arrive several times a second
            log.trace(f"[ffmpeg] {line}")
        stream.close()

    def run(self) -> None:
        """Spawn ffmpeg and block until it exits.

        Raises ConversionProcessFailed (with exit code and full stderr) on a
        non-zero exit, ToolMissing if the binary cannot be spawned, and
        ConversionCancelled if cancel() was called before or during the run.
        """
        if self.cancelled:
            self.state = ConversionState.FAILED
            raise ConversionCancelled()
        try:
            self._process = subprocess.Popen(
                self.args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            self.state = ConversionState.FAILED
            raise ToolMissing(self.args[0]) from e
        self.state = ConversionState.SPAWNED

        drain = threading.Thread(
            target=self._drain, args=(self._process.stderr,), daemon=True
        )
        drain.start()
        self.state = ConversionState.RUNNING
        log.debug(f"ffmpeg running (pid={self._process.pid})")

        # cancel() may have landed between the check above and Popen
        if self.cancelled:
            self._kill()
        try:
            returncode = self._process.wait()
        except BaseException:
            self.state = ConversionState.FAILED
            self._kill()
            raise
        drain.join()

        if self.cancelled:
            self.state = ConversionState.FAILED
            raise ConversionCancelled(returncode, self.stderr)
        if returncode != 0:
            self.state = ConversionState.FAILED
            log.error(f"ffmpeg failed with exit code {returncode}: {self.stderr[-500:]}")
            raise ConversionProcessFailed(returncode, self.stderr)
        self.state = ConversionState.SUCCEEDED

    def cancel(self) -> None:
        """Kill ffmpeg and any children it spawned.

        Safe to call from another thread at any point: before the spawn it
        makes run() raise without starting ffmpeg.
        """
        self._cancelled.set()
        self._kill()

    def _kill(self) -> None:
        if self._process is None or self._process.poll() is not None:
            return
        try:
            parent = psutil.Process(self._process.pid)
            procs = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            return
        for proc in procs:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                pass
        log.warning(f"Cancelled ffmpeg (pid={self._process.pid})")


def commit_output(temp_path: Path, final_path: Path) -> None:
    """Rename the finished temp file onto the final name."""
    try:
        temp_path.replace(final_path)
    except OSError as e:
        raise RenameFailed(temp_path, final_path, str(e)) from e
    log.debug(f"Committed {temp_path.name} -> {final_path.name}")


def verify_output(path: Path) -> None:
    if not path.exists():
        raise OutputMissingOrEmpty(path, "missing")
    if path.stat().st_size == 0:
        raise OutputMissingOrEmpty(path, "empty")


def convert(
    config: ConversionConfig,
    settings: LecternConfig | None = None,
    on_start: Callable[[ConversionExecutor], None] | None = None,
) -> Path:
    """Assemble one audiobook. Returns the final output path.

    Temporary artifacts live in a directory scoped to this call and are
    removed on every exit path. ``on_start`` receives the executor before
    ffmpeg is spawned so a caller on another thread can cancel it.
    """
    settings = settings or LecternConfig()
    log.info(
        f"Converting {config.input_path} -> {config.output_path} "
        f"({len(config.chapters)} chapters, codec={config.codec})"
    )

    with tempfile.TemporaryDirectory(prefix="lectern-") as tmp:
        built = build_command(config, Path(tmp), settings)
        executor = ConversionExecutor(built.args)
        if on_start is not None:
            on_start(executor)
        try:
            executor.run()
        except BaseException:
            if built.atomic:
                built.output_path.unlink(missing_ok=True)
            raise

        if built.atomic:
            try:
                commit_output(built.output_path, built.final_path)
            except RenameFailed:
                built.output_path.unlink(missing_ok=True)
                raise

    verify_output(built.final_path)
    log.info(f"Conversion complete: {built.final_path}")
    return built.final_path
