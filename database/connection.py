"""SQLite store handles with context management."""

import sqlite3
import logging
from dataclasses import dataclass
from pathlib import Path
from contextlib import contextmanager

logger = logging.getLogger("wealth_tracker.database")


class DatabaseConnection:
    """Handle on one SQLite store file.

    Connections are opened per operation. The default rollback journal is kept
    (no WAL) so that a transaction spanning an ATTACHed store stays atomic
    across both files.
    """

    def __init__(self, db_path: Path, name: str = "store"):
        self.db_path = Path(db_path)
        self.name = name
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _open(self, isolation_level="") -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), isolation_level=isolation_level)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connect(self):
        """Context manager yielding a database connection with auto-commit."""
        conn = self._open()
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def connect_manual(self):
        """Connection in autocommit mode; the caller issues BEGIN/COMMIT/ROLLBACK.

        Needed where a transaction must wrap DDL, ATTACH or PRAGMA statements
        that the sqlite3 module would otherwise commit implicitly.
        """
        conn = self._open(isolation_level=None)
        try:
            yield conn
        finally:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            conn.close()

    def execute(self, sql: str, params: tuple = ()) -> list:
        """Execute a query and return all results."""
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.fetchall()

    def execute_one(self, sql: str, params: tuple = ()):
        """Execute a query and return the first result."""
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.fetchone()

    def has_user_tables(self) -> bool:
        """True when the file holds tables beyond the version bookkeeping.

        Never creates the file.
        """
        if not self.db_path.exists():
            return False
        row = self.execute_one(
            """SELECT 1 FROM sqlite_master
               WHERE type = 'table' AND name NOT LIKE 'sqlite_%' AND name != 'schema_version'
               LIMIT 1"""
        )
        return row is not None

    def columns(self, table: str) -> set[str]:
        """Column names of *table*; empty when the table is missing."""
        # table_info takes no bound parameters; names come from code, not input
        rows = self.execute(f"PRAGMA table_info({table})")
        return {r["name"] for r in rows}


@dataclass(frozen=True)
class Stores:
    """The two store handles, built once at process start and passed down."""
    ledger: DatabaseConnection
    rates: DatabaseConnection


def open_stores(ledger_path: Path, rates_path: Path) -> Stores:
    stores = Stores(
        ledger=DatabaseConnection(ledger_path, name="ledger"),
        rates=DatabaseConnection(rates_path, name="rates"),
    )
    for store in (stores.ledger, stores.rates):
        logger.debug("%s store: %s", store.name, store.db_path)
    return stores
