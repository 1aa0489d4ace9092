"""Helpers for building fake Packer releases and binaries."""

import hashlib
import io
import zipfile
from pathlib import Path
from typing import Optional, Tuple


def write_fake_binary(path: Path, version: str, exit_code: int = 0) -> Path:
    """Write an executable script that reports ``version`` like Packer does."""
    path.write_text(f'#!/bin/sh\necho "Packer v{version}"\nexit {exit_code}\n')
    path.chmod(0o755)
    return path


def build_release(
    binary_name: str,
    version: str,
    artifact_name: str,
    binary_body: Optional[str] = None,
    include_binary: bool = True
) -> Tuple[bytes, bytes]:
    """Build a release archive and a matching SHA256SUMS manifest."""
    body = binary_body or f'#!/bin/sh\necho "Packer v{version}"\n'

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        if include_binary:
            zf.writestr(binary_name, body)
        zf.writestr("LICENSE.txt", "license")
    archive = buffer.getvalue()

    digest = hashlib.sha256(archive).hexdigest()
    manifest = (
        f"{'0' * 64}  packer_{version}_darwin_arm64.zip\n"
        f"{digest}  {artifact_name}\n"
    ).encode()
    return archive, manifest
