"""Shared test fixtures for the wealth tracker migration test suite."""

import pytest

from database.connection import open_stores
from database.migrations.maintenance import SchemaMaintenance
from database.migrations.registry import MIGRATIONS, TargetStore


@pytest.fixture
def stores(tmp_path):
    """Fresh ledger and rates store handles in an isolated directory."""
    return open_stores(tmp_path / "ledger.db", tmp_path / "rates.db")


@pytest.fixture
def maintenance(stores):
    return SchemaMaintenance(stores)


@pytest.fixture
def runner(maintenance):
    return maintenance.runner


@pytest.fixture
def detector(maintenance):
    return maintenance.detector


@pytest.fixture
def legacy_schema(stores):
    """Build a store the way pre-tracking builds did: schema only, no version records."""
    def build(version: int):
        for migration in MIGRATIONS[:version]:
            store = stores.ledger if migration.target_store is TargetStore.LEDGER else stores.rates
            with store.connect_manual() as conn:
                for statement in migration.statements:
                    conn.execute(statement)
        return stores
    return build


@pytest.fixture
def migrated(stores, maintenance):
    """Both stores at the latest schema version."""
    results = maintenance.run_all()
    assert results and all(r.success for r in results)
    return stores


def _insert(store, sql: str, params: tuple = ()) -> int:
    with store.connect() as conn:
        return conn.execute(sql, params).lastrowid


class LedgerSeeder:
    """Inserts snapshots, assets, holdings and rates into migrated stores."""

    def __init__(self, stores):
        self.stores = stores
        self._assets = {}

    def snapshot(self, date: str, **totals) -> int:
        columns = ["date", *totals]
        placeholders = ", ".join("?" for _ in columns)
        return _insert(
            self.stores.ledger,
            f"INSERT INTO snapshots ({', '.join(columns)}) VALUES ({placeholders})",
            (date, *totals.values()),
        )

    def asset(self, symbol: str) -> int:
        if symbol not in self._assets:
            self._assets[symbol] = _insert(
                self.stores.ledger,
                "INSERT INTO assets (symbol, name) VALUES (?, ?)", (symbol, symbol.title())
            )
        return self._assets[symbol]

    def holding(self, snapshot_id: int, symbol: str, amount: float, value_eur: float = None) -> int:
        return _insert(
            self.stores.ledger,
            """INSERT INTO holdings (snapshot_id, asset_id, amount, value_eur)
               VALUES (?, ?, ?, ?)""",
            (snapshot_id, self.asset(symbol), amount, value_eur),
        )

    def rate(self, symbol: str, price: float, timestamp: str, base_currency: str = "EUR"):
        _insert(
            self.stores.rates,
            """INSERT INTO historical_rates (asset_symbol, base_currency, price, timestamp)
               VALUES (?, ?, ?, ?)""",
            (symbol, base_currency, price, timestamp),
        )

    def holding_value(self, holding_id: int):
        row = self.stores.ledger.execute_one(
            "SELECT value_eur FROM holdings WHERE id = ?", (holding_id,)
        )
        return row["value_eur"]

    def snapshot_totals(self, snapshot_id: int) -> dict:
        row = self.stores.ledger.execute_one(
            """SELECT total_assets_eur, total_liabilities_eur, net_worth_eur
               FROM snapshots WHERE id = ?""",
            (snapshot_id,),
        )
        return dict(row)


@pytest.fixture
def seed(migrated):
    return LedgerSeeder(migrated)


@pytest.fixture
def backfill(maintenance, migrated):
    return maintenance.backfill
