"""Schema version detection for the ledger store.

The ``schema_version`` table is authoritative once it holds rows. Stores
created before version tracking existed are recognized by fingerprints:
sets of tables and columns that only appear once a given migration has run.
Detection back-fills synthetic version records so later calls take the fast
path.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from database.connection import DatabaseConnection
from database.migrations.registry import MIGRATIONS, MigrationDefinition

logger = logging.getLogger("wealth_tracker.migrations.detector")

SCHEMA_VERSION_DDL = """CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    applied_at TEXT NOT NULL
)"""


@dataclass(frozen=True)
class SchemaVersionRecord:
    version: int
    description: str
    applied_at: str


@dataclass(frozen=True)
class SchemaFingerprint:
    """Tables and (table, column) pairs whose presence implies *version*."""
    version: int
    tables: frozenset[str] = field(default_factory=frozenset)
    columns: frozenset[tuple[str, str]] = field(default_factory=frozenset)


# Highest version first; the first full match wins.
FINGERPRINTS: list[SchemaFingerprint] = [
    SchemaFingerprint(
        version=3,
        tables=frozenset({"liabilities", "liability_balances"}),
        columns=frozenset({
            ("assets", "asset_class"),
            ("holdings", "asset_id"),
            ("holdings", "value_eur"),
            ("snapshots", "total_assets_eur"),
        }),
    ),
    SchemaFingerprint(
        version=2,
        tables=frozenset({"snapshots", "holdings", "assets", "allocation_targets"}),
    ),
    SchemaFingerprint(
        version=1,
        tables=frozenset({"snapshots", "holdings", "assets"}),
        columns=frozenset({("holdings", "asset_symbol")}),
    ),
]


def timestamp_now() -> str:
    """UTC timestamp in sqlite's CURRENT_TIMESTAMP layout."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class VersionDetector:
    """Determines the current schema version of the ledger store."""

    def __init__(self, ledger: DatabaseConnection,
                 migrations: list[MigrationDefinition] = None,
                 fingerprints: list[SchemaFingerprint] = None):
        self.ledger = ledger
        self.migrations = migrations if migrations is not None else MIGRATIONS
        self.fingerprints = sorted(
            fingerprints if fingerprints is not None else FINGERPRINTS,
            key=lambda f: -f.version,
        )

    def ensure_version_table(self):
        with self.ledger.connect() as conn:
            conn.execute(SCHEMA_VERSION_DDL)

    def recorded_version(self) -> int:
        """MAX(version) from the tracking table, 0 when it is empty."""
        self.ensure_version_table()
        row = self.ledger.execute_one("SELECT MAX(version) AS v FROM schema_version")
        return row["v"] if row and row["v"] is not None else 0

    def current_version(self) -> int:
        version = self.recorded_version()
        if version > 0:
            return version

        detected = self.detect()
        if detected > 0:
            logger.info("Detected existing schema at version %d, marking as applied", detected)
            self.mark_applied(detected)
        return detected

    def applied_versions(self) -> list[SchemaVersionRecord]:
        self.ensure_version_table()
        rows = self.ledger.execute(
            "SELECT version, description, applied_at FROM schema_version ORDER BY version"
        )
        return [SchemaVersionRecord(r["version"], r["description"], r["applied_at"]) for r in rows]

    def detect(self) -> int:
        """Highest version whose fingerprint fully matches, else 0."""
        schema = self._read_schema()
        for fingerprint in self.fingerprints:
            if self._matches(fingerprint, schema):
                return fingerprint.version
        return 0

    def mark_applied(self, up_to_version: int):
        """Write synthetic records for versions 1..up_to_version.

        The original apply times are unknown, so every row carries the
        detection time. Existing rows are left alone.
        """
        applied_at = timestamp_now()
        rows = [
            (m.version, m.description, applied_at)
            for m in self.migrations if m.version <= up_to_version
        ]
        with self.ledger.connect() as conn:
            conn.execute(SCHEMA_VERSION_DDL)
            conn.executemany(
                """INSERT OR IGNORE INTO schema_version (version, description, applied_at)
                   VALUES (?, ?, ?)""",
                rows,
            )

    def _read_schema(self) -> dict[str, set[str]]:
        """Map of table name to its column names for the whole ledger store."""
        schema = {}
        with self.ledger.connect() as conn:
            tables = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
            ).fetchall()
            for row in tables:
                name = row["name"]
                columns = conn.execute(f'PRAGMA table_info("{name}")').fetchall()
                schema[name] = {c["name"] for c in columns}
        return schema

    @staticmethod
    def _matches(fingerprint: SchemaFingerprint, schema: dict[str, set[str]]) -> bool:
        if not all(table in schema for table in fingerprint.tables):
            return False
        return all(
            column in schema.get(table, ())
            for table, column in fingerprint.columns
        )
