"""Updater configuration."""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field

from packer_updater.version import Version

ENV_PREFIX = "PACKER_UPDATER_"


class UpdaterConfig(BaseModel):
    """Configuration for the Packer updater.

    Defines where releases come from, where the binary lives and how
    hard the fetcher tries before giving up.
    """

    # Release host
    base_url: str = Field(
        default="https://releases.hashicorp.com/packer",
        description="Release download base URL"
    )

    index_url: str = Field(
        default="https://api.releases.hashicorp.com/v1/releases/packer",
        description="Release index API endpoint"
    )

    product: str = Field(
        default="packer",
        pattern=r"^[a-z0-9_-]+$",
        description="Product name used in artifact file names"
    )

    # Platform
    os_name: str = Field(
        default="windows",
        pattern=r"^[a-z0-9]+$",
        description="Target operating system of the artifact"
    )

    arch: str = Field(
        default="amd64",
        pattern=r"^[a-z0-9_]+$",
        description="Target architecture of the artifact"
    )

    # Local filesystem
    install_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory holding the installed binary"
    )

    log_file: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "packer-update.log",
        description="Append-only log file"
    )

    # Retry configuration
    max_attempts: int = Field(
        default=3,
        description="Download attempts before giving up",
        ge=1,
        le=10
    )

    retry_delay_sec: float = Field(
        default=2.0,
        description="Base delay, multiplied by the attempt number",
        ge=0.0,
        le=60.0
    )

    # Timeout configuration
    connect_timeout_sec: float = Field(
        default=30.0,
        description="Download connect timeout in seconds",
        gt=0.0,
        le=300.0
    )

    download_timeout_sec: float = Field(
        default=300.0,
        description="Overall download timeout in seconds",
        gt=0.0,
        le=3600.0
    )

    query_timeout_sec: float = Field(
        default=10.0,
        description="Timeout for index queries and existence checks",
        gt=0.0,
        le=120.0
    )

    smoke_test_timeout_sec: float = Field(
        default=30.0,
        description="Timeout for the installed binary's version query",
        gt=0.0,
        le=600.0
    )

    # Listing
    latest_count: int = Field(
        default=10,
        description="Number of versions shown in listings",
        ge=1,
        le=100
    )

    @property
    def binary_name(self) -> str:
        if self.os_name == "windows":
            return f"{self.product}.exe"
        return self.product

    @property
    def target_path(self) -> Path:
        return self.install_dir / self.binary_name

    def artifact_name(self, version: Version) -> str:
        return f"{self.product}_{version}_{self.os_name}_{self.arch}.zip"

    def manifest_name(self, version: Version) -> str:
        return f"{self.product}_{version}_SHA256SUMS"

    def artifact_url(self, version: Version) -> str:
        return f"{self.base_url.rstrip('/')}/{version}/{self.artifact_name(version)}"

    def manifest_url(self, version: Version) -> str:
        return f"{self.base_url.rstrip('/')}/{version}/{self.manifest_name(version)}"

    @classmethod
    def from_env(cls, **overrides: Any) -> "UpdaterConfig":
        """Build configuration from ``PACKER_UPDATER_*`` environment variables.

        Args:
            **overrides: Values that take precedence over the environment
                (None values are ignored)

        Returns:
            Validated configuration
        """
        values: Dict[str, Any] = {}

        for name in cls.model_fields:
            env_value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if env_value:
                values[name] = env_value

        values.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**values)
