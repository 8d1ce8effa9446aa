"""Ordered catalogue of schema migrations for the ledger and rates stores.

Each migration is plain data: a version, a description, the store it targets
and the statement batch read from its SQL file. The runner consumes the list
generically, in ascending version order.
"""

import re
import sqlite3
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger("wealth_tracker.migrations.registry")

MIGRATIONS_DIR = Path(__file__).resolve().parent

_FILENAME_RE = re.compile(r"^(\d{3})_[a-z0-9_]+\.sql$")


class RegistryError(Exception):
    """The migration catalogue is malformed."""


class TargetStore(str, Enum):
    LEDGER = "ledger"
    RATES = "rates"


@dataclass(frozen=True)
class MigrationDefinition:
    version: int
    description: str
    target_store: TargetStore
    filename: str
    statements: tuple[str, ...]

    @property
    def label(self) -> str:
        return f"v{self.version}: {self.description}"


def split_statements(sql: str) -> list[str]:
    """Split a SQL script into single statements.

    Uses sqlite's own completeness check, so trigger bodies containing
    semicolons stay in one piece. Comment-only fragments are dropped.
    """
    statements = []
    buffer = ""
    for line in sql.splitlines(keepends=True):
        buffer += line
        if sqlite3.complete_statement(buffer):
            statements.append(buffer.strip())
            buffer = ""

    leftover = "\n".join(
        line for line in buffer.splitlines()
        if line.strip() and not line.strip().startswith("--")
    )
    if leftover.strip():
        raise RegistryError(f"Unterminated SQL statement: {leftover.strip()[:80]}")
    return statements


def _load(version: int, description: str, target_store: TargetStore,
          filename: str) -> MigrationDefinition:
    path = MIGRATIONS_DIR / target_store.value / filename
    statements = split_statements(path.read_text(encoding="utf-8"))
    if not statements:
        raise RegistryError(f"Migration {filename} contains no statements")
    return MigrationDefinition(
        version=version,
        description=description,
        target_store=target_store,
        filename=filename,
        statements=tuple(statements),
    )


def validate_registry(migrations: list[MigrationDefinition]):
    """Versions must run 1..N without gaps and match their file prefixes."""
    for expected, migration in enumerate(migrations, start=1):
        if migration.version != expected:
            raise RegistryError(
                f"Migration versions must be contiguous from 1: expected v{expected}, "
                f"found v{migration.version} ({migration.filename})"
            )
        match = _FILENAME_RE.match(migration.filename)
        if not match or int(match.group(1)) != migration.version:
            raise RegistryError(
                f"Migration file {migration.filename} does not match version {migration.version}"
            )


MIGRATIONS: list[MigrationDefinition] = [
    _load(1, "Initial schema", TargetStore.LEDGER,
          "001_initial.sql"),
    _load(2, "Allocation targets", TargetStore.LEDGER,
          "002_allocation_targets.sql"),
    _load(3, "Multi-asset wealth management schema", TargetStore.LEDGER,
          "003_multi_asset.sql"),
    _load(4, "Rates store schema", TargetStore.RATES,
          "004_rates_schema.sql"),
    _load(5, "Remove redundant liability balance values", TargetStore.LEDGER,
          "005_liability_balance_values.sql"),
    _load(6, "Add asset metadata", TargetStore.LEDGER,
          "006_asset_metadata.sql"),
    _load(7, "Rate lookup index by date", TargetStore.RATES,
          "007_rate_date_index.sql"),
]

validate_registry(MIGRATIONS)

LATEST_VERSION = MIGRATIONS[-1].version


def get_migration(version: int) -> MigrationDefinition:
    return MIGRATIONS[version - 1]
