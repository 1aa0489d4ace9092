"""Updater for a locally installed HashiCorp Packer binary.

Provides:
- Resolving and validating requested versions
- Downloading release archives with retries
- Verifying SHA256 checksums
- Replacing the binary with automatic rollback on failure
"""

__version__ = "1.0.0"

from packer_updater.config import UpdaterConfig
from packer_updater.installer import Installer, InstallPhase, InstallResult
from packer_updater.version import Version, parse_and_validate

__all__ = [
    "Installer",
    "InstallPhase",
    "InstallResult",
    "UpdaterConfig",
    "Version",
    "parse_and_validate",
]
