"""Migration runner: applies pending migrations in order, one transaction each."""

import sqlite3
import time
import logging
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass

from database.connection import Stores
from database.migrations.detector import VersionDetector, timestamp_now
from database.migrations.registry import MIGRATIONS, MigrationDefinition, TargetStore

logger = logging.getLogger("wealth_tracker.migrations.runner")

# Alias of the ledger store inside a rates-store connection
LEDGER_ALIAS = "ledger"


@dataclass(frozen=True)
class MigrationResult:
    version: int
    description: str
    success: bool
    duration_ms: int
    error: str | None = None


class ForeignKeyViolation(sqlite3.IntegrityError):
    pass


class MigrationRunner:
    """Runs migration definitions against the ledger and rates stores.

    Statements and the version record of one migration commit together. For
    rates-store migrations the ledger is ATTACHed to the same connection so
    the record lands in ``ledger.schema_version`` inside that transaction.
    """

    def __init__(self, stores: Stores, detector: VersionDetector = None,
                 migrations: list[MigrationDefinition] = None):
        self.stores = stores
        self.migrations = migrations if migrations is not None else MIGRATIONS
        self.detector = detector or VersionDetector(stores.ledger, self.migrations)

    def current_version(self) -> int:
        return self.detector.current_version()

    def pending_migrations(self) -> list[MigrationDefinition]:
        current = self.detector.current_version()
        return [m for m in self.migrations if m.version > current]

    def run_migration(self, migration: MigrationDefinition, dry_run: bool = False) -> MigrationResult:
        """Apply one migration; dry runs always roll back.

        Errors are returned in the result rather than raised.
        """
        start = time.perf_counter()
        try:
            if not dry_run:
                current = self.detector.current_version()
                if migration.version != current + 1:
                    return self._result(
                        migration, start,
                        error=f"out of order: expected v{current + 1}, got v{migration.version}",
                    )
            with self._open(migration.target_store, attach_ledger=not dry_run) as conn:
                conn.execute("BEGIN")
                self._apply(conn, migration)
                if dry_run:
                    conn.execute("ROLLBACK")
                else:
                    self._record(conn, migration)
                    conn.execute("COMMIT")
        except Exception as e:
            logger.debug("Migration v%d raised", migration.version, exc_info=True)
            return self._result(migration, start, error=str(e))
        return self._result(migration, start)

    def run_all(self, dry_run: bool = False) -> list[MigrationResult]:
        """Run every pending migration in order, stopping at the first failure."""
        pending = self.pending_migrations()
        if not pending:
            logger.info("No pending migrations")
            return []

        prefix = "[DRY RUN] " if dry_run else ""
        logger.info("%sFound %d pending migration(s)", prefix, len(pending))

        if dry_run:
            return self._rehearse(pending)

        results = []
        for migration in pending:
            logger.info("Running migration %s", migration.label)
            result = self.run_migration(migration)
            results.append(result)
            if not self._report(result, prefix):
                break
        return results

    def _rehearse(self, pending: list[MigrationDefinition]) -> list[MigrationResult]:
        """Dry-run a batch inside one rolled-back transaction per store.

        Each migration gets its own savepoint, so later migrations are checked
        against the schema earlier pending ones would produce.
        """
        results = []
        with ExitStack() as stack:
            conns = {}
            for store in TargetStore:
                conn = stack.enter_context(self._open(store, attach_ledger=False))
                conn.execute("BEGIN")
                conns[store] = conn

            for migration in pending:
                logger.info("[DRY RUN] Running migration %s", migration.label)
                conn = conns[migration.target_store]
                start = time.perf_counter()
                conn.execute("SAVEPOINT rehearsal")
                try:
                    self._apply(conn, migration)
                except Exception as e:
                    logger.debug("Migration v%d raised", migration.version, exc_info=True)
                    result = self._result(migration, start, error=str(e))
                else:
                    conn.execute("RELEASE rehearsal")
                    result = self._result(migration, start)
                results.append(result)
                if not self._report(result, "[DRY RUN] "):
                    break

            # connect_manual rolls back whatever is still open on exit
            for conn in conns.values():
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
        return results

    @contextmanager
    def _open(self, store: TargetStore, attach_ledger: bool):
        """Manual-transaction connection with foreign keys off for table rebuilds.

        Both pragmas and ATTACH must run before BEGIN; sqlite ignores or
        rejects them inside a transaction.
        """
        handle = self.stores.ledger if store is TargetStore.LEDGER else self.stores.rates
        with handle.connect_manual() as conn:
            conn.execute("PRAGMA foreign_keys=OFF")
            if attach_ledger and store is TargetStore.RATES:
                conn.execute(
                    f"ATTACH DATABASE ? AS {LEDGER_ALIAS}", (str(self.stores.ledger.db_path),)
                )
            yield conn

    @staticmethod
    def _foreign_key_violations(conn: sqlite3.Connection) -> set[tuple]:
        rows = conn.execute("PRAGMA main.foreign_key_check").fetchall()
        return {(r[0], r[1], r[2]) for r in rows}

    def _apply(self, conn: sqlite3.Connection, migration: MigrationDefinition):
        """Execute the batch; only violations the batch introduced fail it."""
        existing = self._foreign_key_violations(conn)
        if existing:
            logger.warning("v%d: %d foreign key violation(s) predate the migration",
                           migration.version, len(existing))
        for statement in migration.statements:
            conn.execute(statement)
        violations = sorted(self._foreign_key_violations(conn) - existing,
                            key=lambda v: (v[0], v[1] or 0))
        if violations:
            first = violations[0]
            raise ForeignKeyViolation(
                f"{len(violations)} foreign key violation(s), first in table "
                f"{first[0]} row {first[1]} referencing {first[2]}"
            )

    @staticmethod
    def _record(conn: sqlite3.Connection, migration: MigrationDefinition):
        schema = LEDGER_ALIAS if migration.target_store is TargetStore.RATES else "main"
        conn.execute(
            f"""INSERT INTO {schema}.schema_version (version, description, applied_at)
                VALUES (?, ?, ?)""",
            (migration.version, migration.description, timestamp_now()),
        )

    @staticmethod
    def _result(migration: MigrationDefinition, start: float, error: str = None) -> MigrationResult:
        return MigrationResult(
            version=migration.version,
            description=migration.description,
            success=error is None,
            duration_ms=int((time.perf_counter() - start) * 1000),
            error=error,
        )

    @staticmethod
    def _report(result: MigrationResult, prefix: str) -> bool:
        if result.success:
            logger.info("%sMigration v%d completed in %dms", prefix, result.version, result.duration_ms)
        else:
            logger.error("%sMigration v%d failed: %s", prefix, result.version, result.error)
        return result.success

