"""Tests for schema version detection and legacy fingerprinting."""

from datetime import datetime

from database.migrations.detector import SchemaFingerprint, VersionDetector, timestamp_now
from database.migrations.registry import MIGRATIONS


def _version_rows(stores):
    return stores.ledger.execute("SELECT version FROM schema_version ORDER BY version")


class TestCurrentVersion:
    def test_empty_store_is_version_zero(self, detector):
        assert detector.current_version() == 0
        assert detector.applied_versions() == []

    def test_empty_store_pending_starts_at_one(self, runner):
        pending = runner.pending_migrations()
        assert pending[0].version == 1
        assert len(pending) == len(MIGRATIONS)

    def test_version_table_is_authoritative(self, stores, detector, legacy_schema):
        legacy_schema(2)
        detector.ensure_version_table()
        stores.ledger.execute(
            "INSERT INTO schema_version (version, description, applied_at) VALUES (?, ?, ?)",
            (3, "Multi-asset wealth management schema", "2025-01-01 00:00:00"),
        )
        # The fingerprint would say 2; the recorded row wins
        assert detector.current_version() == 3


class TestLegacyDetection:
    def test_detects_version_two(self, stores, runner, detector, legacy_schema):
        legacy_schema(2)
        pending = runner.pending_migrations()
        assert pending[0].version == 3

        applied = detector.applied_versions()
        assert [r.version for r in applied] == [1, 2]
        assert applied[0].description == "Initial schema"
        assert applied[1].description == "Allocation targets"
        assert detector.current_version() == 2

    def test_detects_version_one(self, runner, detector, legacy_schema):
        legacy_schema(1)
        assert runner.pending_migrations()[0].version == 2
        assert [r.version for r in detector.applied_versions()] == [1]

    def test_detects_version_three(self, detector, legacy_schema):
        legacy_schema(3)
        assert detector.detect() == 3

    def test_detection_is_idempotent(self, stores, detector, legacy_schema):
        legacy_schema(2)
        assert detector.current_version() == 2
        assert detector.current_version() == 2
        detector.mark_applied(2)
        assert len(_version_rows(stores)) == 2

    def test_mark_applied_keeps_existing_rows(self, stores, detector):
        detector.mark_applied(1)
        first = detector.applied_versions()[0].applied_at
        detector.mark_applied(3)
        records = detector.applied_versions()
        assert [r.version for r in records] == [1, 2, 3]
        assert records[0].applied_at == first

    def test_unknown_schema_is_zero(self, stores, detector):
        stores.ledger.execute("CREATE TABLE unrelated (id INTEGER)")
        assert detector.detect() == 0
        assert detector.current_version() == 0
        assert _version_rows(stores) == []


class TestFingerprints:
    def test_highest_match_wins(self, stores):
        stores.ledger.execute("CREATE TABLE a (x INTEGER, y INTEGER)")
        detector = VersionDetector(stores.ledger, MIGRATIONS, [
            SchemaFingerprint(1, tables=frozenset({"a"})),
            SchemaFingerprint(2, columns=frozenset({("a", "y")})),
        ])
        assert detector.detect() == 2

    def test_missing_column_does_not_match(self, stores):
        stores.ledger.execute("CREATE TABLE a (x INTEGER)")
        detector = VersionDetector(stores.ledger, MIGRATIONS, [
            SchemaFingerprint(1, tables=frozenset({"a"}), columns=frozenset({("a", "y")})),
        ])
        assert detector.detect() == 0


class TestTimestamps:
    def test_applied_at_uses_sqlite_clock(self, stores):
        now = datetime.strptime(timestamp_now(), "%Y-%m-%d %H:%M:%S")
        sqlite_now = datetime.strptime(
            stores.ledger.execute_one("SELECT CURRENT_TIMESTAMP AS ts")["ts"], "%Y-%m-%d %H:%M:%S"
        )
        assert abs((sqlite_now - now).total_seconds()) < 60
