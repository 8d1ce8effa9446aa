"""Operator-facing surface over detection, migration, backup and backfill."""

import logging
from pathlib import Path

from database.connection import Stores
from database.migrations.backfill import BackfillEngine, BackfillResult
from database.migrations.backup import BackupManager
from database.migrations.detector import VersionDetector
from database.migrations.registry import LATEST_VERSION, MIGRATIONS
from database.migrations.runner import MigrationResult, MigrationRunner

logger = logging.getLogger("wealth_tracker.migrations")


class SchemaMaintenance:
    """Wires the components around one pair of store handles.

    Callers check ``MigrationResult.success``; only structural problems
    (backup failure, backfill on an unmigrated ledger) raise.
    """

    def __init__(self, stores: Stores, backup_dir: Path | None = None,
                 base_currency: str = "EUR"):
        self.stores = stores
        self.detector = VersionDetector(stores.ledger, MIGRATIONS)
        self.runner = MigrationRunner(stores, self.detector, MIGRATIONS)
        self.backups = BackupManager(stores.ledger, backup_dir)
        self.backfill = BackfillEngine(stores, base_currency)

    @property
    def latest_version(self) -> int:
        return LATEST_VERSION

    def status(self) -> dict:
        pending = self.runner.pending_migrations()
        return {
            "current_version": self.detector.current_version(),
            "pending_migrations": pending,
            "applied_migrations": self.detector.applied_versions(),
        }

    def run_all(self, dry_run: bool = False) -> list[MigrationResult]:
        return self.runner.run_all(dry_run=dry_run)

    def create_backup(self) -> Path | None:
        return self.backups.create_backup()

    def run_all_backfills(self) -> dict[str, BackfillResult]:
        return self.backfill.run_all_backfills()
