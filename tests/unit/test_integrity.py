"""Tests for checksum verification."""

import hashlib

import pytest

from packer_updater.errors import ChecksumMismatch, ChecksumMissing, ErrorKind, FilesystemFailure
from packer_updater.integrity import parse_manifest, sha256_file, verify


@pytest.fixture
def artifact(tmp_path):
    path = tmp_path / "packer_1.9.4_linux_amd64.zip"
    path.write_bytes(b"release archive")
    return path


def write_manifest(tmp_path, content: str):
    path = tmp_path / "packer_1.9.4_SHA256SUMS"
    path.write_text(content)
    return path


class TestParseManifest:
    """Test SHA256SUMS parsing."""

    def test_text_and_binary_lines(self):
        entries = parse_manifest(
            "ABCDEF  packer_1.9.4_linux_amd64.zip\n"
            "123456 *packer_1.9.4_windows_amd64.zip\n"
            "\n"
            "malformed-line\n"
        )

        assert entries == {
            "packer_1.9.4_linux_amd64.zip": "abcdef",
            "packer_1.9.4_windows_amd64.zip": "123456",
        }

    def test_empty_manifest(self):
        assert parse_manifest("") == {}


class TestVerify:
    """Test verify() outcomes."""

    def test_verified(self, tmp_path, artifact):
        digest = hashlib.sha256(b"release archive").hexdigest()
        manifest = write_manifest(tmp_path, f"{digest}  {artifact.name}\n")

        assert verify(artifact, manifest) == digest

    def test_uppercase_manifest_digest(self, tmp_path, artifact):
        """Test hex digests compare case-insensitively."""
        digest = hashlib.sha256(b"release archive").hexdigest().upper()
        manifest = write_manifest(tmp_path, f"{digest}  {artifact.name}\n")

        assert verify(artifact, manifest) == digest.lower()

    def test_missing_entry(self, tmp_path, artifact):
        manifest = write_manifest(tmp_path, f"{'a' * 64}  packer_1.9.4_darwin_arm64.zip\n")

        with pytest.raises(ChecksumMissing) as exc_info:
            verify(artifact, manifest)

        assert exc_info.value.kind is ErrorKind.INTEGRITY_FAILURE
        assert exc_info.value.filename == artifact.name

    def test_partial_name_is_not_a_match(self, tmp_path, artifact):
        """Test lookup is by exact file name, not substring."""
        manifest = write_manifest(
            tmp_path, f"{'a' * 64}  {artifact.name}.sig\n"
        )

        with pytest.raises(ChecksumMissing):
            verify(artifact, manifest)

    def test_mismatch_carries_both_digests(self, tmp_path, artifact):
        manifest = write_manifest(tmp_path, f"{'0' * 64}  {artifact.name}\n")

        with pytest.raises(ChecksumMismatch) as exc_info:
            verify(artifact, manifest)

        error = exc_info.value
        assert error.kind is ErrorKind.INTEGRITY_FAILURE
        assert error.expected == "0" * 64
        assert error.actual == sha256_file(artifact)

    def test_unreadable_manifest(self, tmp_path, artifact):
        with pytest.raises(FilesystemFailure) as exc_info:
            verify(artifact, tmp_path / "packer_1.9.4_SHA256SUMS")

        assert exc_info.value.kind is ErrorKind.FILESYSTEM_FAILURE
        assert "SHA256SUMS" in str(exc_info.value)

    def test_unreadable_artifact(self, tmp_path, artifact):
        manifest = write_manifest(tmp_path, f"{'0' * 64}  {artifact.name}\n")
        artifact.unlink()

        with pytest.raises(FilesystemFailure, match=artifact.name):
            verify(artifact, manifest)
