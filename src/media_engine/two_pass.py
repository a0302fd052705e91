"""Two-pass encode session.

The analysis pass writes a statistics log that the encode pass reads.
A TwoPassSession owns that log: it is created by begin_two_pass, shared
by both passes, and released on every exit path.

libvpx writes ``<prefix>-0.log``; x264/x265 add ``.mbtree``/``.cutree``
side files, so release removes everything starting with the prefix.
"""

import uuid
from pathlib import Path

from aws_lambda_powertools import Logger

from ..shared.exceptions import EncodeError

logger = Logger(service="media-engine")


class TwoPassSession:
    """Handle on one two-pass encode and its statistics log."""

    def __init__(self, log_prefix: Path) -> None:
        self.log_prefix = log_prefix
        self.analysis_complete = False
        self.released = False

    @property
    def stats_log(self) -> Path:
        """Statistics log written by the analysis pass."""
        return Path(f"{self.log_prefix}-0.log")

    def log_files(self) -> list[Path]:
        return sorted(self.log_prefix.parent.glob(f"{self.log_prefix.name}*"))

    def mark_analysis_complete(self) -> None:
        """Record that pass 1 finished; its log must now exist.

        Raises:
            EncodeError: If the analysis pass left no statistics log
        """
        if not self.stats_log.is_file():
            raise EncodeError(
                "Two-pass analysis finished without writing a statistics log",
                {"stats_log": str(self.stats_log)},
            )
        self.analysis_complete = True

    def require_analysis(self) -> None:
        """Guard pass 2 against running before pass 1 succeeded."""
        if self.released:
            raise EncodeError("Two-pass session already released")
        if not self.analysis_complete:
            raise EncodeError("Encode pass requested before the analysis pass completed")

    def release(self) -> None:
        """Delete the statistics log(s). Safe to call more than once."""
        for log_file in self.log_files():
            try:
                log_file.unlink(missing_ok=True)
                logger.debug(f"Cleaned up pass log: {log_file}")
            except OSError as e:
                logger.warning(f"Failed to clean up pass log {log_file}: {e}")
        self.released = True

    def __enter__(self) -> "TwoPassSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def begin_two_pass(directory: Path, label: str) -> TwoPassSession:
    """Start a two-pass session with a log prefix unique to this call.

    Args:
        directory: Job scratch directory the log is written to
        label: Prefix for the log file name (e.g. the video id)
    """
    prefix = directory / f"{label}-passlog-{uuid.uuid4().hex[:8]}"
    return TwoPassSession(prefix)
