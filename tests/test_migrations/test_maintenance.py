"""Tests for the operator-facing maintenance facade."""

from database.migrations.registry import LATEST_VERSION


class TestStatus:
    def test_fresh_store(self, maintenance):
        status = maintenance.status()
        assert status["current_version"] == 0
        assert len(status["pending_migrations"]) == LATEST_VERSION
        assert status["applied_migrations"] == []

    def test_legacy_store_reports_detected_versions(self, maintenance, legacy_schema):
        legacy_schema(2)
        status = maintenance.status()
        assert status["current_version"] == 2
        assert [r.version for r in status["applied_migrations"]] == [1, 2]
        assert status["pending_migrations"][0].version == 3

    def test_migrated_store(self, migrated, maintenance):
        status = maintenance.status()
        assert status["current_version"] == maintenance.latest_version
        assert status["pending_migrations"] == []
        assert len(status["applied_migrations"]) == LATEST_VERSION


class TestOperations:
    def test_backup_then_migrate(self, maintenance, legacy_schema):
        legacy_schema(2)
        backup = maintenance.create_backup()
        assert backup is not None and backup.exists()

        results = maintenance.run_all()
        assert all(r.success for r in results)
        assert maintenance.backups.list_backups() == [backup]

    def test_dry_run_then_apply(self, maintenance):
        assert all(r.success for r in maintenance.run_all(dry_run=True))
        assert maintenance.status()["current_version"] == 0

        assert all(r.success for r in maintenance.run_all())
        assert maintenance.status()["current_version"] == LATEST_VERSION

    def test_backfills_after_migration(self, seed, maintenance):
        snap = seed.snapshot("2024-01-31")
        seed.holding(snap, "BTC", 0.5)
        seed.rate("BTC", 40000.0, "2024-01-31T12:00:00Z")

        results = maintenance.run_all_backfills()
        assert results["holdings"].updated == 1
        assert results["snapshots"].updated == 1
