"""Error taxonomy for the update workflow."""

from enum import Enum
from pathlib import Path
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories surfaced to the user."""

    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    TRANSIENT_NETWORK = "transient_network"
    INTEGRITY_FAILURE = "integrity_failure"
    FILESYSTEM_FAILURE = "filesystem_failure"
    SMOKE_TEST_FAILURE = "smoke_test_failure"


class UpdateError(Exception):
    """Base class for all update failures."""

    kind: ErrorKind = ErrorKind.FILESYSTEM_FAILURE


class InvalidInput(UpdateError):
    kind = ErrorKind.INVALID_INPUT


class InvalidVersionFormat(InvalidInput):
    """Version string does not match the accepted grammar."""

    def __init__(self, value: str, expected: str, reason: Optional[str] = None):
        self.value = value
        self.expected = expected
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(
            f"Invalid version format: {value!r}{detail}. Expected format: {expected}"
        )


class VersionNotFound(UpdateError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, version):
        self.version = version
        super().__init__(f"Version {version} does not exist or is not available")


class DownloadFailed(UpdateError):
    """All fetch attempts for a URL were exhausted."""

    kind = ErrorKind.TRANSIENT_NETWORK

    def __init__(self, url: str, attempts: int, last_error: Optional[Exception] = None):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed to download after {attempts} attempts: {url}")


class IntegrityFailure(UpdateError):
    kind = ErrorKind.INTEGRITY_FAILURE


class ChecksumMissing(IntegrityFailure):
    def __init__(self, filename: str, manifest: Path):
        self.filename = filename
        self.manifest = manifest
        super().__init__(f"No checksum found for {filename} in {manifest.name}")


class ChecksumMismatch(IntegrityFailure):
    def __init__(self, filename: str, expected: str, actual: str):
        self.filename = filename
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"SHA256 checksum verification failed for {filename}: "
            f"expected {expected}, got {actual}"
        )


class FilesystemFailure(UpdateError):
    kind = ErrorKind.FILESYSTEM_FAILURE


class BackupFailed(FilesystemFailure):
    pass


class ExtractionFailed(FilesystemFailure):
    pass


class PlacementFailed(FilesystemFailure):
    pass


class RestoreFailed(FilesystemFailure):
    pass


class SmokeTestFailure(UpdateError):
    kind = ErrorKind.SMOKE_TEST_FAILURE
