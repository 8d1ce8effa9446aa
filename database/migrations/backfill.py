"""Backfill passes for derived values left unset by older schema revisions.

Both passes only look at rows whose derived field is NULL; rows that already
carry a value are never counted or rewritten, so running a pass twice is a
no-op the second time.
"""

import logging
import sqlite3
from dataclasses import dataclass, field

from database.connection import Stores
from utils.validators import validate_amount, validate_date, validate_price

logger = logging.getLogger("wealth_tracker.migrations.backfill")

# Liability tracking arrived later, snapshot totals backfilled here assume none
BACKFILL_LIABILITIES_EUR = 0.0


class SchemaNotReadyError(RuntimeError):
    """The ledger lacks the columns a backfill pass populates."""


@dataclass
class BackfillResult:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


class BackfillEngine:
    """Populates holding EUR values and snapshot totals."""

    def __init__(self, stores: Stores, base_currency: str = "EUR"):
        self.stores = stores
        self.base_currency = base_currency

    def backfill_holding_values(self) -> BackfillResult:
        """Set value_eur = amount * historical price on the snapshot date.

        A holding with no matching rate is skipped; missing history is
        expected. Any other fault is recorded per row and the pass goes on.
        """
        self._require_columns("holdings", "value_eur")
        result = BackfillResult()

        with self.stores.ledger.connect() as ledger_conn, self.stores.rates.connect() as rates_conn:
            rows = ledger_conn.execute(
                """SELECT h.id, h.asset_id, h.amount, a.symbol AS asset_symbol,
                          s.date AS snapshot_date
                   FROM holdings h
                   LEFT JOIN assets a ON a.id = h.asset_id
                   LEFT JOIN snapshots s ON s.id = h.snapshot_id
                   WHERE h.value_eur IS NULL
                   ORDER BY h.id"""
            ).fetchall()

            for row in rows:
                result.processed += 1
                try:
                    if row["asset_symbol"] is None:
                        raise LookupError(f"asset {row['asset_id']} not found")
                    date = validate_date(row["snapshot_date"])
                    amount = validate_amount(row["amount"])
                    price = self._lookup_rate(rates_conn, row["asset_symbol"], date)
                    if price is None:
                        result.skipped += 1
                        logger.debug("No %s rate for %s on %s", self.base_currency,
                                     row["asset_symbol"], date)
                        continue
                    ledger_conn.execute(
                        "UPDATE holdings SET value_eur = ? WHERE id = ? AND value_eur IS NULL",
                        (amount * price, row["id"]),
                    )
                    result.updated += 1
                except Exception as e:
                    result.errors.append(f"Holding {row['id']}: {e}")
                    logger.warning("Holding %s backfill failed: %s", row["id"], e)

        logger.info("Holding values: %d processed, %d updated, %d skipped, %d errors",
                    result.processed, result.updated, result.skipped, len(result.errors))
        return result

    def backfill_snapshot_totals(self) -> BackfillResult:
        """Write total assets, liabilities and net worth for unset snapshots.

        Assets are the sum of holding values, with unset values counted as
        zero; run backfill_holding_values first. A snapshot without holdings
        is written with zero totals.
        """
        self._require_columns("snapshots", "total_assets_eur")
        result = BackfillResult()

        with self.stores.ledger.connect() as conn:
            rows = conn.execute(
                """SELECT s.id, COALESCE(SUM(h.value_eur), 0) AS total_assets
                   FROM snapshots s
                   LEFT JOIN holdings h ON h.snapshot_id = s.id
                   WHERE s.total_assets_eur IS NULL
                   GROUP BY s.id
                   ORDER BY s.date"""
            ).fetchall()

            for row in rows:
                result.processed += 1
                try:
                    total_assets = float(row["total_assets"])
                    net_worth = total_assets - BACKFILL_LIABILITIES_EUR
                    conn.execute(
                        """UPDATE snapshots
                           SET total_assets_eur = ?, total_liabilities_eur = ?, net_worth_eur = ?
                           WHERE id = ? AND total_assets_eur IS NULL""",
                        (total_assets, BACKFILL_LIABILITIES_EUR, net_worth, row["id"]),
                    )
                    result.updated += 1
                except Exception as e:
                    result.errors.append(f"Snapshot {row['id']}: {e}")
                    logger.warning("Snapshot %s backfill failed: %s", row["id"], e)

        logger.info("Snapshot totals: %d processed, %d updated, %d errors",
                    result.processed, result.updated, len(result.errors))
        return result

    def run_all_backfills(self) -> dict[str, BackfillResult]:
        """Holdings first: snapshot totals read the values that pass writes."""
        holdings = self.backfill_holding_values()
        snapshots = self.backfill_snapshot_totals()
        return {"holdings": holdings, "snapshots": snapshots}

    def _lookup_rate(self, rates_conn: sqlite3.Connection, symbol: str, date: str) -> float | None:
        """Latest price observed on *date*, None when there is none."""
        row = rates_conn.execute(
            """SELECT price FROM historical_rates
               WHERE asset_symbol = ? AND base_currency = ? AND substr(timestamp, 1, 10) = ?
               ORDER BY timestamp DESC LIMIT 1""",
            (symbol, self.base_currency, date),
        ).fetchone()
        if row is None:
            return None
        price = validate_price(row["price"])
        if price is None:
            raise ValueError(f"invalid {symbol} rate {row['price']!r} on {date}")
        return price

    def _require_columns(self, table: str, column: str):
        if column not in self.stores.ledger.columns(table):
            raise SchemaNotReadyError(
                f"{table}.{column} does not exist; run pending migrations before backfilling"
            )
