"""
tableload CLI - Restore table dumps into an existing database.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..config import LoadConfig
from ..connections import create_connection
from ..core.errors import TableLoadError
from ..loader import Loader


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tableload",
        description="Restore serialized table dumps into existing database tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load a YAML dump into a SQLite database
  tableload --backend sqlite --sqlite-path app.db load dump.yml

  # Append a JSON dump without clearing the tables first
  tableload --config tableload.yml load dump.json --no-truncate

  # Load every dump file in a directory in one transaction
  TABLELOAD_PG_DSN="host=localhost dbname=app" tableload --backend postgresql load-dir dumps/
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Load command")

    load_parser = subparsers.add_parser("load", help="Load a single dump file")
    load_parser.add_argument("path", type=Path, help="Dump file (.yml, .yaml or .json)")
    load_parser.add_argument(
        "--format",
        choices=["yaml", "json"],
        default=None,
        help="Dump format (default: from file extension)",
    )

    dir_parser = subparsers.add_parser("load-dir", help="Load every dump file in a directory")
    dir_parser.add_argument("path", type=Path, help="Directory of dump files")

    for sub in (load_parser, dir_parser):
        sub.add_argument(
            "--no-truncate",
            action="store_true",
            help="Append to tables instead of clearing them first",
        )
        sub.add_argument(
            "--no-reset-sequences",
            action="store_true",
            help="Skip primary-key sequence reset after each table",
        )
        sub.add_argument(
            "--exclude",
            action="append",
            default=None,
            metavar="TABLE",
            help="Table to skip (repeatable; replaces the configured list)",
        )
        sub.add_argument(
            "--dry-run",
            action="store_true",
            help="Validate the dump against the database without writing",
        )

    # Global options
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument(
        "--backend",
        choices=["sqlite", "sqlserver", "postgresql"],
        default=None,
        help="Database backend (overrides config)",
    )
    parser.add_argument("--sqlite-path", default=None, help="SQLite database file")
    parser.add_argument("--dsn", default=None, help="PostgreSQL connection string")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for loading dumps."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = LoadConfig(args.config)
    except (FileNotFoundError, OSError) as e:
        logger.error(f"Could not read config: {e}")
        return 1

    if args.backend:
        config.config["database"]["backend"] = args.backend
    connection_kwargs = config.connection_kwargs()
    if args.sqlite_path:
        connection_kwargs["db_path"] = args.sqlite_path
    if args.dsn:
        connection_kwargs["dsn"] = args.dsn

    loader_config = config.get_loader_config()
    exclude_tables = args.exclude if args.exclude is not None else config.get_exclude_tables()

    try:
        connection = create_connection(**connection_kwargs)
    except (ImportError, ValueError) as e:
        logger.error(f"Could not create connection: {e}")
        return 1

    with connection:
        loader = Loader(
            connection,
            truncate=loader_config.get("truncate", True) and not args.no_truncate,
            reset_sequences=loader_config.get("reset_sequences", True) and not args.no_reset_sequences,
            exclude_tables=exclude_tables,
            dry_run=args.dry_run,
        )
        try:
            if args.command == "load":
                results = loader.load_file(args.path, args.format or loader_config.get("format"))
            else:
                results = loader.load_from_dir(args.path)
        except TableLoadError as e:
            logger.error(f"Load failed: {e}")
            return 1

    print(json.dumps(results, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
