"""Point-in-time file copy of the ledger store, taken before a migration batch."""

import shutil
import logging
from datetime import datetime
from pathlib import Path

from database.connection import DatabaseConnection

logger = logging.getLogger("wealth_tracker.migrations.backup")

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class BackupError(Exception):
    """The backup copy could not be created or verified."""


class BackupManager:
    """Copies the ledger file to ``<name>.backup.<YYYYMMDD>_<HHMMSS>``.

    This is a manual-recovery safety net: after a failed batch the operator
    restores the copy by hand.
    """

    def __init__(self, ledger: DatabaseConnection, backup_dir: Path | None = None):
        self.ledger = ledger
        self.backup_dir = Path(backup_dir) if backup_dir else None

    def backup_path(self, now: datetime | None = None) -> Path:
        now = now or datetime.now()
        source = self.ledger.db_path
        directory = self.backup_dir or source.parent
        return directory / f"{source.name}.backup.{now.strftime(BACKUP_TIMESTAMP_FORMAT)}"

    def create_backup(self) -> Path | None:
        """Copy the ledger file; None when there is no file to protect."""
        source = self.ledger.db_path
        if not source.exists():
            logger.info("No ledger file at %s, nothing to back up", source)
            return None

        target = self.backup_path()
        if target.exists():
            raise BackupError(f"Backup target already exists: {target}")
        target.parent.mkdir(parents=True, exist_ok=True)

        shutil.copy2(source, target)

        if not target.exists() or target.stat().st_size != source.stat().st_size:
            raise BackupError(f"Backup verification failed for {target}")

        logger.info("Backup created: %s", target)
        return target

    def list_backups(self) -> list[Path]:
        """Existing backups of this ledger, oldest first."""
        source = self.ledger.db_path
        directory = self.backup_dir or source.parent
        if not directory.exists():
            return []
        return sorted(directory.glob(f"{source.name}.backup.*"))
