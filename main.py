"""Wealth Tracker - schema migration and backfill CLI."""

import argparse
import sys

from config.settings import ENVIRONMENTS, get_settings, load_settings
from config.logging_config import setup_logging
from database.connection import open_stores
from database.migrations.maintenance import SchemaMaintenance
from utils.console import (
    fail, header, neutral, ok,
    print_backfill_results, print_migration_results, print_status,
)


def cmd_status(args, maintenance, ledger_in_use):
    """Show current schema version, applied and pending migrations."""
    status = maintenance.status()
    print_status(status, maintenance.latest_version, maintenance.backups.list_backups())


def cmd_migrate(args, maintenance, ledger_in_use):
    """Apply pending migrations, then backfill derived values."""
    status = maintenance.status()
    pending = status["pending_migrations"]

    print(header("MIGRATE"))
    print(f"\n  Schema version:     {status['current_version']}")
    print(f"  Pending migrations: {len(pending)}")

    if not pending:
        print(f"\n  {ok('Database is up to date')}")
        return

    print()
    for m in pending:
        print(f"  {neutral(f'v{m.version}: {m.description} [{m.target_store.value}]')}")

    if args.dry_run:
        results = maintenance.run_all(dry_run=True)
        print_migration_results(results, dry_run=True)
        print("\n  Dry run complete - no changes made.")
        if not all(r.success for r in results):
            sys.exit(1)
        return

    if not args.yes:
        print("\n  Review the pending migrations above.")
        print("  To apply them, run: python main.py migrate --yes")
        print("  To validate without applying, run: python main.py migrate --dry-run")
        return

    backup_path = None
    if ledger_in_use:
        backup_path = maintenance.create_backup()
        print(f"\n  {ok(f'Backup created: {backup_path}')}")
    else:
        print("\n  No backup needed (new database)")

    results = maintenance.run_all(dry_run=False)
    print_migration_results(results)

    if not all(r.success for r in results):
        print(f"\n  {fail('Some migrations failed.')}")
        if backup_path:
            print(f"  You can restore from backup: {backup_path}")
        sys.exit(1)

    print(f"\n  {ok(f'Migration complete. Schema version: {maintenance.detector.current_version()}')}")

    if args.skip_backfill:
        print("  Backfill skipped. Run it later with: python main.py backfill")
        return
    print_backfill_results(maintenance.run_all_backfills())


def cmd_backfill(args, maintenance, ledger_in_use):
    """Populate holding values and snapshot totals left unset by older revisions."""
    print_backfill_results(maintenance.run_all_backfills())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wealth_tracker",
        description="Wealth Tracker - ledger and rates store migrations",
    )
    parser.add_argument("--env", choices=ENVIRONMENTS, default=None,
                        help="Data environment (defaults to APP_ENV or dev)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # status
    p_status = subparsers.add_parser("status", help="Show schema version and pending migrations")
    p_status.set_defaults(func=cmd_status)

    # migrate
    p_mig = subparsers.add_parser("migrate", help="Run pending migrations")
    p_mig.add_argument("--dry-run", action="store_true",
                       help="Execute migrations in a rolled-back transaction")
    p_mig.add_argument("--yes", action="store_true", help="Apply without review (required to migrate)")
    p_mig.add_argument("--skip-backfill", action="store_true",
                       help="Do not run backfill passes after migrating")
    p_mig.set_defaults(func=cmd_migrate)

    # backfill
    p_bf = subparsers.add_parser("backfill", help="Run backfill passes only")
    p_bf.set_defaults(func=cmd_backfill)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    settings = load_settings(args.env) if args.env else get_settings()
    logger = setup_logging(settings.log_dir, settings.log_level)
    logger.info("Environment: %s", settings.environment)

    stores = open_stores(settings.ledger_path, settings.rates_path)
    # Checked before any command runs: a ledger holding no data needs no backup
    ledger_in_use = stores.ledger.has_user_tables()
    maintenance = SchemaMaintenance(stores, settings.backup_dir, settings.base_currency)

    try:
        args.func(args, maintenance, ledger_in_use)
    except KeyboardInterrupt:
        print("\nAborted.")
    except Exception as e:
        logger.error("Command failed: %s", e, exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
