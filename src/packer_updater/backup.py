"""Backup and rollback of the installed binary."""

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from packer_updater.errors import BackupFailed, RestoreFailed

logger = logging.getLogger(__name__)

BACKUP_MARKER = "backup"


@dataclass(frozen=True)
class BackupRecord:
    """A timestamped copy of the binary taken before it was touched."""

    target: Path
    backup_path: Path
    created_at: datetime


class BackupManager:
    """Snapshots the target binary and puts it back on failure."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock

    def backup_path_for(self, target: Path, when: datetime) -> Path:
        timestamp = when.strftime("%Y%m%d_%H%M%S")
        return target.with_name(f"{target.name}.{BACKUP_MARKER}.{timestamp}")

    def backup(self, target: Path) -> Optional[BackupRecord]:
        """Copy the current binary beside itself.

        Args:
            target: Installed binary path

        Returns:
            Backup record, or None when there is nothing to back up

        Raises:
            BackupFailed: If the copy could not be made
        """
        if not target.is_file():
            logger.info(f"No existing {target.name} found, skipping backup")
            return None

        created_at = self._clock()
        backup_path = self.backup_path_for(target, created_at)

        logger.info(f"Creating backup: {backup_path.name}")

        try:
            shutil.copy2(target, backup_path)
        except OSError as e:
            logger.error(f"Failed to create backup: {e}")
            backup_path.unlink(missing_ok=True)
            raise BackupFailed(f"Failed to create backup of {target}: {e}") from e

        return BackupRecord(target=target, backup_path=backup_path, created_at=created_at)

    def restore(self, record: BackupRecord) -> None:
        """Copy the backup back over the target and delete it.

        The backup file is kept if the copy fails, since it is then the
        only intact copy of the original binary.

        Raises:
            RestoreFailed: If the backup could not be copied back
        """
        logger.info(f"Restoring from backup: {record.backup_path.name}")

        try:
            shutil.copy2(record.backup_path, record.target)
        except OSError as e:
            logger.error(f"Failed to restore from backup: {e}")
            raise RestoreFailed(
                f"Failed to restore {record.target} from {record.backup_path}: {e}"
            ) from e

        logger.info("Restored from backup successfully")
        self.discard(record)

    def discard(self, record: BackupRecord) -> None:
        """Delete the backup file."""
        try:
            record.backup_path.unlink(missing_ok=True)
            logger.info(f"Removed backup file {record.backup_path.name}")
        except OSError as e:
            logger.warning(f"Failed to remove backup {record.backup_path}: {e}")
