"""SHA-256 verification of downloaded artifacts against a SUMS manifest."""

import hashlib
import logging
from pathlib import Path
from typing import Dict

from packer_updater.errors import ChecksumMismatch, ChecksumMissing, FilesystemFailure

logger = logging.getLogger(__name__)


def parse_manifest(text: str) -> Dict[str, str]:
    """Parse ``sha256sum``-style output into a filename -> digest mapping.

    Accepts both text (``digest  name``) and binary (``digest *name``) lines.
    Blank and malformed lines are skipped.
    """
    entries: Dict[str, str] = {}

    for line in text.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) != 2:
            continue

        digest, filename = parts
        filename = filename.strip().lstrip("*")
        if filename:
            entries[filename] = digest.lower()

    return entries


def sha256_file(path: Path) -> str:
    """Compute the hex SHA-256 digest of a file."""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(65536):
            sha256.update(chunk)
    return sha256.hexdigest()


def verify(artifact: Path, manifest: Path) -> str:
    """Verify an artifact against its manifest entry.

    Args:
        artifact: Downloaded archive
        manifest: Downloaded SUMS file

    Returns:
        The verified digest

    Raises:
        ChecksumMissing: If the manifest has no entry for the artifact
        ChecksumMismatch: If the digests differ
        FilesystemFailure: If either file cannot be read
    """
    logger.info(f"Verifying SHA256 checksum for {artifact.name}")

    try:
        text = manifest.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise FilesystemFailure(f"Failed to read {manifest.name}: {e}") from e

    entries = parse_manifest(text)
    expected = entries.get(artifact.name)

    if expected is None:
        logger.error(f"No checksum found for {artifact.name} in {manifest.name}")
        raise ChecksumMissing(artifact.name, manifest)

    try:
        actual = sha256_file(artifact)
    except OSError as e:
        raise FilesystemFailure(f"Failed to read {artifact.name}: {e}") from e

    if actual != expected:
        logger.error(f"Expected: {expected}")
        logger.error(f"Actual:   {actual}")
        raise ChecksumMismatch(artifact.name, expected, actual)

    logger.info("SHA256 checksum verification passed")
    return actual
