"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..actual_client import ActualClient, ActualError
from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..ingest import SourceReadError, build_encoding_fixes, load_source, parse_source
from ..schemas.transaction import ParseResult
from ..services import ImportService, ImportSummary, PreconditionError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if not verbose:
        # urllib3 logs every retry and connection at DEBUG/INFO
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="primoco-actual",
        description="Import a Primoco CSV export into Actual Budget",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # import command
    import_parser = subparsers.add_parser(
        "import", help="Import a Primoco CSV export into Actual"
    )
    import_parser.add_argument(
        "csv",
        type=Path,
        nargs="?",
        default=None,
        help="CSV export to import (default: import.csv_path from config)",
    )
    import_parser.add_argument(
        "--force-duplicates",
        action="store_true",
        help="Import identical rows as separate transactions",
    )
    import_parser.add_argument(
        "--mark-cleared",
        action="store_true",
        help="Mark imported transactions as cleared",
    )
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and report without contacting Actual",
    )

    # sync command
    subparsers.add_parser("sync", help="Sync the budget with the server and exit")

    # init command
    subparsers.add_parser("init", help="Write a default config file")

    return parser


def print_parse_summary(parsed: ParseResult) -> None:
    """Print what the parse pass found."""
    print(f"  ✔ Encoding: {parsed.encoding}, separator: '{parsed.delimiter}'")
    print(f"  ✔ Accounts found:     {len(parsed.accounts)}")
    print(f"  ✔ Categories found:   {len(parsed.categories)}")
    print(f"  ✔ Transactions found: {len(parsed.transactions)}")
    if parsed.identities.duplicate_rows:
        print(f"  ❗ Duplicate rows:     {parsed.identities.duplicate_rows}")
    if parsed.skipped:
        print(f"  ❗ Rows skipped:       {parsed.skipped}")
        print(f"     invalid date:      {parsed.invalid_dates}")
        print(f"     future date:       {parsed.future_dates}")
        print(f"     invalid amount:    {parsed.invalid_amounts}")
        print(f"     unknown type:      {parsed.invalid_kinds}")
        print(f"     missing account:   {parsed.missing_accounts}")


def print_duplicate_report(parsed: ParseResult) -> None:
    """Report rows sharing an import identity."""
    count = parsed.identities.duplicate_count
    if not count:
        return

    if parsed.identities.force_duplicates:
        print(f"\n❗ {count} duplicates forcefully imported.")
        return

    print(
        f"\n❗ Warning: {count} duplicate transactions detected based on imported_id."
    )
    for fingerprint, rows in parsed.identities.duplicates().items():
        print(f"\n{fingerprint}")
        for row in rows:
            print(f"    {json.dumps(row, ensure_ascii=False)}")


def print_import_summary(summary: ImportSummary) -> None:
    """Print ledger-side results."""
    rec = summary.reconciliation
    upload = summary.upload

    print()
    print("📊 Import Results")
    print("=" * 40)
    print(f"  Accounts created:      {summary.accounts_created}")
    print(f"  Accounts reused:       {summary.accounts_reused}")
    print(f"  Categories created:    {summary.categories_created}")
    print(f"  Categories reused:     {summary.categories_reused}")
    print(f"  Postings sent:         {upload.sent} in {upload.batches} batch(es)")
    print(f"  Added / updated:       {upload.added} / {upload.updated}")
    print(f"  Import errors:         {upload.errors}")
    print(f"  Linked transfers:      {rec.linked_transfers}")
    print(f"  Transfers as expense:  {rec.downgraded_transfers}")
    print(f"  Skipped (no account):  {rec.skipped_unresolved_account}")
    print(f"  Skipped (no payee):    {rec.skipped_no_transfer_payee}")
    print()


def create_client(config: Config) -> ActualClient:
    """Build the Actual client from configuration."""
    return ActualClient(
        base_url=config.actual.base_url,
        api_key=config.actual.api_key,
        sync_id=config.actual.sync_id,
        encryption_password=config.actual.encryption_password,
        timeout=config.actual.timeout_seconds,
    )


def cmd_import(config: Config, dry_run: bool = False) -> int:
    """Import the configured CSV export into Actual.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    print("📥 Reading export...")

    try:
        source = load_source(config.import_.csv_path)
    except SourceReadError as e:
        print(f"❌ {e}")
        return 1

    parsed = parse_source(
        source,
        date_format=config.import_.date_format,
        encoding_fixes=build_encoding_fixes(config.import_.encoding_fixes),
        force_duplicates=config.import_.force_duplicates,
    )
    print_parse_summary(parsed)

    if dry_run:
        print("\n  ℹ️  DRY RUN mode - nothing sent to Actual")
        print_duplicate_report(parsed)
        return 0

    client = create_client(config)
    print(f"\n🔌 Connecting to Actual: {config.actual.base_url}")

    try:
        service = ImportService(client, config)
        service.check_ledger()
        print("  ✓ Actual connection OK")

        print("\n📤 Starting import...")
        summary = service.run(parsed)
    except (ActualError, PreconditionError) as e:
        logger.error(f"Error in import: {e}", exc_info=config.verbose)
        print(f"❌ Import failed: {e}")
        return 1
    finally:
        print("Shutting down...")
        client.shutdown()

    print_import_summary(summary)
    print("✓ Import Complete!")
    print_duplicate_report(parsed)
    return 0


def cmd_sync(config: Config) -> int:
    """Verify the budget and sync it with the server."""
    client = create_client(config)
    print(f"🔄 Syncing budget {config.actual.sync_id}...")

    try:
        ImportService(client, config).check_ledger()
        client.sync()
    except (ActualError, PreconditionError) as e:
        logger.error(f"Error in sync: {e}", exc_info=config.verbose)
        print(f"❌ Sync failed: {e}")
        return 1
    finally:
        client.shutdown()

    print("✓ Sync Complete!")
    return 0


def cmd_init(config_path: Path) -> int:
    """Write a default config file unless one exists."""
    if config_path.exists():
        print(f"❌ {config_path} already exists")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def apply_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Apply CLI flags on top of file and environment settings."""
    if parsed.verbose:
        config.verbose = True
    if getattr(parsed, "csv", None):
        config.import_.csv_path = parsed.csv
    if getattr(parsed, "force_duplicates", False):
        config.import_.force_duplicates = True
    if getattr(parsed, "mark_cleared", False):
        config.import_.mark_cleared = True
    return config


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init":
        return cmd_init(parsed.config)

    # Load config
    try:
        config = apply_overrides(load_config(parsed.config), parsed)
        config.ensure_valid(require_source=parsed.command == "import")
    except ConfigValidationError as e:
        print(f"❌ Invalid configuration: {e}")
        return 1
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    setup_logging(config.verbose)

    # Route to command
    if parsed.command == "import":
        return cmd_import(config, dry_run=parsed.dry_run)
    elif parsed.command == "sync":
        return cmd_sync(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
