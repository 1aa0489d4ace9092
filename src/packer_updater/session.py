"""Per-attempt temporary working area."""

import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from pathlib import Path
from typing import Optional

from packer_updater.errors import ExtractionFailed, FilesystemFailure

logger = logging.getLogger(__name__)


class InstallSession:
    """Unique temporary directory for one install attempt.

    Used as a context manager; the directory is removed on every exit path.

    Example:
        >>> with InstallSession() as session:
        ...     archive = session.path / "packer.zip"
    """

    def __init__(self, prefix: str = "packer-update", parent: Optional[Path] = None):
        self.prefix = f"{prefix}-{os.getpid()}-"
        self.parent = parent
        self.path: Optional[Path] = None

    def __enter__(self) -> "InstallSession":
        try:
            self.path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.parent))
        except OSError as e:
            raise FilesystemFailure(f"Failed to create temporary directory: {e}") from e

        logger.debug(f"Created session directory {self.path}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.path is None:
            return

        logger.info("Cleaning up temporary files")
        shutil.rmtree(self.path, ignore_errors=True)
        self.path = None

    def file(self, name: str) -> Path:
        if self.path is None:
            raise RuntimeError("Install session is not active")
        return self.path / name

    def extract(self, archive: Path, expected: str) -> Path:
        """Extract ``archive`` into the session and locate ``expected``.

        Args:
            archive: Verified zip archive
            expected: File name of the binary inside the archive

        Returns:
            Path to the extracted binary

        Raises:
            ExtractionFailed: If the archive is corrupt, encrypted, unsafe or
                lacks the binary
        """
        destination = self.file("extracted")
        logger.info(f"Extracting {archive.name}")

        try:
            with zipfile.ZipFile(archive) as zf:
                root = destination.resolve()
                for member in zf.namelist():
                    resolved = (destination / member).resolve()
                    if resolved != root and root not in resolved.parents:
                        raise ExtractionFailed(
                            f"Archive member escapes extraction directory: {member}"
                        )
                zf.extractall(destination)
        except (
            zipfile.BadZipFile,
            zlib.error,
            NotImplementedError,
            RuntimeError,
            EOFError,
            OSError,
        ) as e:
            raise ExtractionFailed(f"Failed to extract {archive.name}: {e}") from e

        binary = destination / expected
        if not binary.is_file():
            raise ExtractionFailed(f"{expected} not found in extracted files")

        return binary
