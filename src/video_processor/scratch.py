"""Job-scoped scratch space.

Every file a job writes locally is handed out by (or registered with) a
ScratchSpace. Leaving the ``with`` block removes all of them and the job
directory, whether the job succeeded or raised.
"""

import shutil
import tempfile
from pathlib import Path

from aws_lambda_powertools import Logger

logger = Logger(service="video-processor")


class ScratchSpace:
    """Manifest of scratch paths with guaranteed cleanup.

    Example:
        >>> with ScratchSpace(root="/tmp", label="abc123") as scratch:
        ...     source = scratch.path("abc123.mp4")
        ...     # download, encode ...
        >>> # every tracked file and the job directory are gone here
    """

    def __init__(self, root: str | Path, label: str) -> None:
        self.root = Path(root)
        self.label = label
        self.directory: Path | None = None
        self.manifest: list[Path] = []

    def __enter__(self) -> "ScratchSpace":
        self.root.mkdir(parents=True, exist_ok=True)
        self.directory = Path(tempfile.mkdtemp(prefix=f"video-{self.label}-", dir=self.root))
        logger.debug("Created scratch directory", extra={"directory": str(self.directory)})
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def path(self, name: str) -> Path:
        """Reserve a file path inside the job directory and track it."""
        if self.directory is None:
            raise RuntimeError("Scratch space used outside its context")
        return self.track(self.directory / name)

    def track(self, path: Path) -> Path:
        """Add a path to the cleanup manifest."""
        if path not in self.manifest:
            self.manifest.append(path)
        return path

    def cleanup(self) -> None:
        """Delete every tracked path, then the job directory.

        Errors are logged rather than raised so cleanup never masks the
        job's own outcome.
        """
        for path in self.manifest:
            try:
                if path.exists():
                    path.unlink()
                    logger.debug(f"Cleaned up: {path}")
            except OSError as e:
                logger.warning(f"Failed to cleanup {path}: {e}")

        if self.directory is not None and self.directory.exists():
            # Catches anything an encoder wrote that was never tracked
            try:
                shutil.rmtree(self.directory)
            except OSError as e:
                logger.warning(f"Failed to remove scratch directory {self.directory}: {e}")

        self.manifest = []
