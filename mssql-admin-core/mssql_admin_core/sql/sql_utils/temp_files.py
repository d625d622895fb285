"""
Temporary script files for downloaded or generated SQL text.
"""

import itertools
import logging
import secrets
import string
import threading
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

RUN_ID_ALPHABET = string.ascii_lowercase + string.digits
RUN_ID_LENGTH = 8


def _new_run_id() -> str:
    return "".join(secrets.choice(RUN_ID_ALPHABET) for _ in range(RUN_ID_LENGTH))


class TempArtifactManager:
    """
    Allocates uniquely named temporary files and deletes them on cleanup.

    Names follow ``<prefix>-<run_id>-<counter><suffix>`` under the scratch
    directory, so two allocations of one invocation never collide. Use it
    as a context manager to guarantee cleanup on every exit path:

        >>> with TempArtifactManager(config.scratch_dir) as temp_files:
        ...     path = temp_files.allocate()
    """

    def __init__(self, scratch_dir: Path, prefix: str = "mssqladmin"):
        self.scratch_dir = Path(scratch_dir)
        self.prefix = prefix
        self.run_id = _new_run_id()
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._paths: List[Path] = []
        self._cleaned = False

    @property
    def paths(self) -> List[Path]:
        """Paths allocated so far (copy)."""
        return list(self._paths)

    def allocate(self, prefix: Optional[str] = None, suffix: str = ".sql") -> Path:
        """Reserve a new path and register it for cleanup.

        The file itself is not created; callers write to the returned path.
        """
        with self._lock:
            number = next(self._counter)
            path = self.scratch_dir / f"{prefix or self.prefix}-{self.run_id}-{number}{suffix}"
            self._paths.append(path)
        logger.debug(f"Allocated temporary file {path}")
        return path

    def write(self, text: str, prefix: Optional[str] = None, suffix: str = ".sql") -> Path:
        """Allocate a path and write text to it."""
        path = self.allocate(prefix=prefix, suffix=suffix)
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def cleanup(self) -> None:
        """Delete every allocated file. Runs once; later calls do nothing."""
        with self._lock:
            if self._cleaned:
                return
            self._cleaned = True
            paths, self._paths = self._paths, []

        for path in paths:
            try:
                path.unlink()
                logger.debug(f"Removed temporary file {path}")
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.debug(f"Could not remove temporary file {path}: {e}")

    def __enter__(self) -> "TempArtifactManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
