"""Tests for backup and restore of the installed binary."""

from datetime import datetime
from unittest.mock import patch

import pytest

from packer_updater.backup import BackupManager
from packer_updater.errors import BackupFailed, RestoreFailed

FIXED_TIME = datetime(2024, 1, 15, 10, 30, 45)


@pytest.fixture
def manager():
    return BackupManager(clock=lambda: FIXED_TIME)


@pytest.fixture
def target(install_dir):
    path = install_dir / "packer"
    path.write_bytes(b"original binary")
    return path


class TestBackup:
    """Test BackupManager.backup()."""

    def test_no_existing_target(self, manager, install_dir):
        """Test a first-time install has nothing to back up."""
        assert manager.backup(install_dir / "packer") is None
        assert list(install_dir.iterdir()) == []

    def test_creates_timestamped_sibling(self, manager, target):
        record = manager.backup(target)

        assert record.backup_path == target.with_name("packer.backup.20240115_103045")
        assert record.backup_path.read_bytes() == b"original binary"
        assert record.target == target
        assert target.read_bytes() == b"original binary"

    def test_copy_failure(self, manager, target):
        with patch("packer_updater.backup.shutil.copy2", side_effect=PermissionError("denied")):
            with pytest.raises(BackupFailed):
                manager.backup(target)

        assert target.read_bytes() == b"original binary"
        assert not target.with_name("packer.backup.20240115_103045").exists()


class TestRestore:
    """Test restore() and discard()."""

    def test_restore_puts_original_back(self, manager, target):
        record = manager.backup(target)
        target.write_bytes(b"broken new binary")

        manager.restore(record)

        assert target.read_bytes() == b"original binary"
        assert not record.backup_path.exists()

    def test_restore_failure_keeps_backup(self, manager, target):
        record = manager.backup(target)
        target.write_bytes(b"broken new binary")

        with patch("packer_updater.backup.shutil.copy2", side_effect=OSError("disk full")):
            with pytest.raises(RestoreFailed):
                manager.restore(record)

        assert record.backup_path.read_bytes() == b"original binary"

    def test_discard(self, manager, target):
        record = manager.backup(target)

        manager.discard(record)

        assert not record.backup_path.exists()
        assert target.exists()

    def test_discard_missing_file(self, manager, target):
        record = manager.backup(target)
        record.backup_path.unlink()

        manager.discard(record)
