"""Transient local staging of certificate files."""

import os
import tempfile
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from radsec_operations.lib.logging_config import LOGGER


class StagingArea:
    """Directory on the control host holding certificates awaiting transfer."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def stage(self, filename: str, pem: str) -> Path:
        """Write pem to ``path/filename`` readable by the owner only."""
        self.path.mkdir(parents=True, exist_ok=True)
        target = self.path / filename
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(pem)
        # O_CREAT mode is ignored for an existing file
        os.chmod(target, 0o600)
        return target

    def remove(self, staged: Path) -> None:
        """Delete a staged file; a missing file is not an error."""
        staged.unlink(missing_ok=True)
        LOGGER.info("Removed staged file %s", staged.name)

    @contextmanager
    def staged(self, filename: str, pem: str) -> Generator[Path]:
        """Stage a file for the duration of the block and always delete it.

        Each call gets its own private subdirectory, so concurrent callers
        staging the same filename never share a path.
        """
        self.path.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix="device-", dir=self.path))
        staged = StagingArea(workdir).stage(filename, pem)
        try:
            yield staged
        finally:
            self.remove(staged)
            workdir.rmdir()
