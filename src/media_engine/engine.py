"""FFmpeg process runner with streamed progress.

The encoder binaries are configured per MediaEngine instance rather than
process-wide, so the pipeline can be handed a fake engine in tests.

FFmpeg is started with ``-progress pipe:1``; its key=value progress blocks
are parsed into ProgressEvent objects and consumed by a logger. Success or
failure is decided only by the process exit status.
"""

import subprocess
import tempfile
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from aws_lambda_powertools import Logger

from ..shared.exceptions import EncodeError
from ..shared.models import VideoMetadata
from .probe import probe_media

logger = Logger(service="media-engine")

# Global flags placed ahead of every FFmpeg invocation
FFMPEG_GLOBAL_ARGS = ["-hide_banner", "-nostdin", "-y", "-nostats", "-progress", "pipe:1"]

# How much stderr to keep in the error when FFmpeg fails
STDERR_TAIL_BYTES = 2000

PROGRESS_LOG_STEP_PERCENT = 25


@dataclass(frozen=True)
class ProgressEvent:
    """One progress block reported by FFmpeg."""

    frame: int | None
    out_time_seconds: float | None
    speed: str | None
    percent: float | None
    done: bool


def parse_progress(lines: Iterable[str], duration_seconds: float | None = None) -> Iterator[ProgressEvent]:
    """Parse FFmpeg ``-progress`` output into events.

    FFmpeg writes blocks of ``key=value`` lines, each terminated by
    ``progress=continue`` or ``progress=end``.

    Args:
        lines: Text lines from FFmpeg's progress pipe
        duration_seconds: Source duration, used to compute a percentage

    Yields:
        ProgressEvent per completed block
    """
    block: dict[str, str] = {}

    for raw_line in lines:
        line = raw_line.strip()
        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        if key != "progress":
            block[key] = value
            continue

        out_time = _out_time_seconds(block)
        percent = None
        if out_time is not None and duration_seconds:
            percent = min(100.0, max(0.0, out_time / duration_seconds * 100))

        yield ProgressEvent(
            frame=_parse_int(block.get("frame")),
            out_time_seconds=out_time,
            speed=block.get("speed"),
            percent=percent,
            done=value == "end",
        )
        block = {}


def log_progress(events: Iterable[ProgressEvent], label: str) -> ProgressEvent | None:
    """Consume progress events, logging each 25% step.

    Returns:
        The last event seen, if any
    """
    next_step = PROGRESS_LOG_STEP_PERCENT
    last = None

    for event in events:
        last = event
        logger.debug(
            "FFmpeg progress",
            extra={
                "label": label,
                "frame": event.frame,
                "out_time_seconds": event.out_time_seconds,
                "speed": event.speed,
            },
        )
        if event.percent is not None and event.percent >= next_step:
            logger.info(f"{label} processing: {event.percent:.1f}%")
            while next_step <= event.percent:
                next_step += PROGRESS_LOG_STEP_PERCENT

    return last


class MediaEngine:
    """Runs FFmpeg and FFprobe for a single configuration.

    Example:
        >>> engine = MediaEngine(ffmpeg_path="/opt/bin/ffmpeg", ffprobe_path="/opt/bin/ffprobe")
        >>> metadata = engine.probe("/tmp/job/abc123.mp4")
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        timeout_seconds: float = 480.0,
        probe_timeout_seconds: float = 60.0,
    ) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.timeout_seconds = timeout_seconds
        self.probe_timeout_seconds = probe_timeout_seconds

    @classmethod
    def from_settings(cls, settings: Any) -> "MediaEngine":
        return cls(
            ffmpeg_path=settings.ffmpeg_path,
            ffprobe_path=settings.ffprobe_path,
            timeout_seconds=settings.ffmpeg_timeout_seconds,
            probe_timeout_seconds=settings.ffprobe_timeout_seconds,
        )

    def probe(self, file_path: str) -> VideoMetadata:
        """Probe a local file.

        Raises:
            ProbeError: If the file cannot be read as video
        """
        return probe_media(self.ffprobe_path, file_path, timeout=self.probe_timeout_seconds)

    def run(
        self,
        args: list[str],
        *,
        label: str,
        duration_seconds: float | None = None,
    ) -> None:
        """Run FFmpeg to completion.

        Args:
            args: FFmpeg arguments (inputs, options, output), without the binary
            label: Short name for logs and errors (e.g. '720p MP4')
            duration_seconds: Source duration, for progress percentages

        Raises:
            EncodeError: If FFmpeg is missing, times out, or exits nonzero
        """
        cmd = [self.ffmpeg_path, *FFMPEG_GLOBAL_ARGS, *args]
        logger.info(f"FFmpeg {label} started", extra={"command": " ".join(cmd)})

        # stderr is spooled to disk so a chatty encoder can never fill the pipe
        with tempfile.TemporaryFile() as stderr_file:
            try:
                process = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                    text=True,
                )
            except FileNotFoundError:
                raise EncodeError(
                    "FFmpeg not found - ensure FFmpeg is installed",
                    {"label": label, "ffmpeg_path": self.ffmpeg_path},
                )

            timed_out = threading.Event()

            def _kill() -> None:
                timed_out.set()
                process.kill()

            timer = threading.Timer(self.timeout_seconds, _kill)
            timer.start()
            try:
                log_progress(parse_progress(process.stdout, duration_seconds), label)
                returncode = process.wait()
            finally:
                timer.cancel()
                if process.poll() is None:
                    process.kill()
                    process.wait()
                process.stdout.close()

            if timed_out.is_set():
                raise EncodeError(
                    f"{label} timed out after {self.timeout_seconds:g}s",
                    {"label": label, "timeout_seconds": self.timeout_seconds},
                )

            if returncode != 0:
                stderr_file.seek(0)
                stderr_tail = stderr_file.read()[-STDERR_TAIL_BYTES:].decode("utf-8", errors="replace")
                logger.error(
                    f"FFmpeg {label} failed",
                    extra={"returncode": returncode, "stderr": stderr_tail},
                )
                raise EncodeError(
                    f"{label} failed: FFmpeg exited with code {returncode}",
                    {"label": label, "returncode": returncode, "stderr": stderr_tail},
                )

        logger.info(f"FFmpeg {label} complete")


def _out_time_seconds(block: dict[str, str]) -> float | None:
    # out_time_ms is reported in microseconds as well
    for key in ("out_time_us", "out_time_ms"):
        micros = _parse_int(block.get(key))
        if micros is not None:
            return micros / 1_000_000
    return None


def _parse_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None
