"""Console rendering for migration status, results and backfill reports.

Windows-safe: Unicode status symbols fall back to ASCII when the terminal
cannot encode them.
"""

import sys
import os

from tabulate import tabulate


def _supports_unicode() -> bool:
    """Check if the current terminal supports Unicode output."""
    if os.name == "nt":
        try:
            "\u2713\u2717\u25cb".encode(sys.stdout.encoding or "ascii")
            return True
        except (UnicodeEncodeError, LookupError):
            return False
    return True


USE_UNICODE = _supports_unicode()

CHECK = "\u2713" if USE_UNICODE else "[+]"
CROSS = "\u2717" if USE_UNICODE else "[-]"
CIRCLE = "\u25cb" if USE_UNICODE else "[o]"

# Errors listed per backfill pass before truncating
MAX_ERRORS_SHOWN = 5


def ok(msg: str) -> str:
    return f"{CHECK} {msg}"


def fail(msg: str) -> str:
    return f"{CROSS} {msg}"


def neutral(msg: str) -> str:
    return f"{CIRCLE} {msg}"


def header(title: str, width: int = 60) -> str:
    return f"\n{'=' * width}\n{title}\n{'=' * width}"


def separator(width: int = 60) -> str:
    return "-" * width


def print_status(status: dict, latest_version: int, backups: list | None = None):
    print(header("SCHEMA STATUS"))
    print(f"\n  Current version: {status['current_version']} (latest {latest_version})")

    applied = status["applied_migrations"]
    if applied:
        print(f"\n{separator()}")
        print("  APPLIED MIGRATIONS:")
        rows = [[ok(f"v{r.version}"), r.description, r.applied_at] for r in applied]
        print(tabulate(rows, headers=["Version", "Description", "Applied at"], tablefmt="simple"))

    pending = status["pending_migrations"]
    print(f"\n{separator()}")
    if pending:
        print("  PENDING MIGRATIONS:")
        rows = [[neutral(f"v{m.version}"), m.description, m.target_store.value] for m in pending]
        print(tabulate(rows, headers=["Version", "Description", "Store"], tablefmt="simple"))
    else:
        print(f"  {ok('Database is up to date')}")

    if backups:
        print(f"\n  Backups on disk: {len(backups)} (latest {backups[-1]})")


def print_migration_results(results: list, dry_run: bool = False):
    title = "[DRY RUN] MIGRATION RESULTS" if dry_run else "MIGRATION RESULTS"
    print(header(title))
    for r in results:
        if r.success:
            print(f"  {ok(f'v{r.version}: {r.description} ({r.duration_ms}ms)')}")
        else:
            print(f"  {fail(f'v{r.version}: {r.description} - {r.error}')}")


def print_backfill_results(results: dict):
    print(header("BACKFILL RESULTS"))
    rows = [
        [name.capitalize(), r.processed, r.updated, r.skipped, len(r.errors)]
        for name, r in results.items()
    ]
    print(tabulate(rows, headers=["Pass", "Processed", "Updated", "Skipped", "Errors"],
                   tablefmt="simple"))

    for name, r in results.items():
        if not r.errors:
            continue
        print(f"\n  {name.capitalize()} warnings (first {MAX_ERRORS_SHOWN}):")
        for err in r.errors[:MAX_ERRORS_SHOWN]:
            print(f"    - {err}")
