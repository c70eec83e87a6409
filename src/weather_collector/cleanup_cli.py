"""History cleanup CLI: prune archived snapshots older than N days."""

from __future__ import annotations

import argparse
import sys
import uuid
from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from .cli import open_journal, write_event
from .config import load_settings
from .exceptions import ConfigError, StoreError
from .log_setup import setup_logger
from .models import CleanupResult
from .retention import RetentionCleaner
from .store.sql import SqlWeatherStore


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("days_to_keep must be >= 0")
    return parsed


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse cleanup CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Delete weather history archived more than N days ago."
    )
    parser.add_argument(
        "days_to_keep",
        nargs="?",
        type=_non_negative_int,
        default=None,
        help="Retention window in days (default: HISTORY_RETENTION_DAYS, 90).",
    )
    return parser.parse_args(argv)


def _print_cleanup_result(console: Console, result: CleanupResult) -> None:
    table = Table(title=f"History Cleanup (older than {result.days_to_keep} days)")
    table.add_column("Class")
    table.add_column("Deleted", justify="right")
    table.add_column("Error", overflow="fold")
    for location_class in sorted(set(result.deleted) | set(result.errors)):
        table.add_row(
            location_class.value,
            str(result.deleted.get(location_class, "-")),
            result.errors.get(location_class, "-"),
        )
    console.print(table)
    console.print(f"Cutoff={result.cutoff.isoformat()} total_deleted={result.total}")


def main(argv: Sequence[str] | None = None) -> int:
    """Run one retention cleanup pass."""
    try:
        args = parse_args(argv)
    except SystemExit as exc:
        # --help exits 0; usage errors map onto the CLI's single failure code
        if not exc.code:
            raise
        return 1
    logger = setup_logger()
    console = Console()
    session_id = uuid.uuid4().hex[:12]

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 1
    logger.setLevel(settings.log_level)

    days_to_keep = (
        args.days_to_keep if args.days_to_keep is not None else settings.history_retention_days
    )
    journal = open_journal(settings, session_id, logger)
    write_event(journal, logger, "cleanup_startup", {"days_to_keep": days_to_keep})

    try:
        store = SqlWeatherStore.connect(
            settings.database_url, echo=settings.db_echo, logger=logger
        )
    except StoreError as exc:
        logger.error("Database unavailable: %s", exc)
        write_event(journal, logger, "cleanup_failure", {"error": str(exc)})
        return 1

    exit_code = 1
    try:
        result = RetentionCleaner(store, logger=logger).cleanup(days_to_keep)
        write_event(journal, logger, "cleanup_summary", result.model_dump(mode="json"))
        _print_cleanup_result(console, result)
        exit_code = 0 if result.succeeded else 1
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected cleanup failure: %s", exc)
    finally:
        store.close()
        write_event(journal, logger, "cleanup_shutdown", {"exit_code": exit_code})

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
