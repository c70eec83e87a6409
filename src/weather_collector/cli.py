"""Run-all CLI: refresh city, grid and port weather in sequence."""

from __future__ import annotations

import argparse
import logging
import sys
import time
import uuid
from collections.abc import Callable, Sequence
from typing import Any

from rich.console import Console
from rich.table import Table

from .collectors import CollectionFlow, build_flow
from .config import Settings, load_settings
from .exceptions import ConfigError, JournalError, StoreError
from .journal import JournalWriter
from .log_setup import setup_logger
from .models import LocationClass, RunSummary
from .orchestrator import Orchestrator
from .store.sql import SqlWeatherStore

ALL_CLASSES = (LocationClass.CITY, LocationClass.GRID, LocationClass.PORT)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse run-all CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Refresh current weather for cities, grid points and ports."
    )
    parser.add_argument(
        "--only",
        choices=[cls.value for cls in ALL_CLASSES],
        action="append",
        default=None,
        help="Restrict the run to one location class (repeatable).",
    )
    return parser.parse_args(argv)


def open_journal(
    settings: Settings, session_id: str, logger: logging.Logger
) -> JournalWriter | None:
    try:
        return JournalWriter(journal_dir=settings.journal_dir, session_id=session_id)
    except JournalError as exc:
        logger.error("Run journal unavailable, continuing without it: %s", exc)
        return None


def write_event(
    journal: JournalWriter | None,
    logger: logging.Logger,
    event_type: str,
    payload: dict[str, Any],
) -> None:
    """Journal an event; journal failures are logged and never abort the run."""
    if journal is None:
        return
    try:
        journal.write_event(
            event_type, payload=payload, metadata={"session_id": journal.session_id}
        )
    except JournalError as exc:
        logger.error("Failed to write %s event: %s", event_type, exc)


def print_run_summary(console: Console, summary: RunSummary) -> None:
    table = Table(title="Weather Collection Summary")
    table.add_column("Class")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Fetched", justify="right")
    table.add_column("Archived", justify="right")
    table.add_column("Written", justify="right")
    table.add_column("Dropped", justify="right")
    table.add_column("Seconds", justify="right")
    table.add_column("Error", overflow="fold")

    for outcome in summary.outcomes:
        if outcome.skipped_fresh:
            status = "[cyan]fresh[/cyan]"
        elif outcome.succeeded:
            status = "[green]ok[/green]"
        else:
            status = "[red]failed[/red]"
        table.add_row(
            outcome.location_class.value,
            status,
            str(outcome.attempts),
            f"{outcome.fetched}/{outcome.requested}",
            str(outcome.archived),
            str(outcome.written),
            str(len(outcome.dropped_keys)),
            f"{outcome.duration_seconds:.1f}",
            outcome.error or "-",
        )
    console.print(table)
    console.print(
        f"Run {'succeeded' if summary.succeeded else 'FAILED'} "
        f"in {summary.duration_seconds:.1f}s"
    )


def run_collection(
    location_classes: Sequence[LocationClass],
    *,
    run_name: str,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> int:
    """Shared entry flow for the run-all and per-class commands; returns an exit code."""
    logger = setup_logger()
    console = Console()
    session_id = uuid.uuid4().hex[:12]

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 1
    logger.setLevel(settings.log_level)

    journal = open_journal(settings, session_id, logger)
    write_event(
        journal,
        logger,
        f"{run_name}_startup",
        {
            "classes": [cls.value for cls in location_classes],
            "config": settings.safe_summary(),
        },
    )

    try:
        store = SqlWeatherStore.connect(
            settings.database_url, echo=settings.db_echo, logger=logger
        )
    except StoreError as exc:
        logger.error("Database unavailable: %s", exc)
        write_event(journal, logger, f"{run_name}_failure", {"error": str(exc)})
        return 1

    exit_code = 1
    flows: list[CollectionFlow] = []
    try:
        flows = [
            build_flow(cls, settings=settings, store=store, logger=logger, sleep_fn=sleep_fn)
            for cls in location_classes
        ]
        orchestrator = Orchestrator(
            flows,
            logger=logger,
            max_attempts=settings.collector_max_attempts,
            retry_delay_seconds=settings.collector_retry_delay_seconds,
            pause_seconds=settings.collector_pause_seconds,
            sleep_fn=sleep_fn,
        )
        summary = orchestrator.run()
        for outcome in summary.outcomes:
            write_event(journal, logger, "class_outcome", outcome.model_dump(mode="json"))
        write_event(
            journal,
            logger,
            f"{run_name}_summary",
            {
                "succeeded": summary.succeeded,
                "duration_seconds": summary.duration_seconds,
                "classes": [outcome.location_class.value for outcome in summary.outcomes],
            },
        )
        print_run_summary(console, summary)
        exit_code = summary.exit_code
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected collection failure: %s", exc)
        write_event(
            journal,
            logger,
            f"{run_name}_failure_unhandled",
            {"error": str(exc), "type": type(exc).__name__},
        )
    finally:
        for flow in flows:
            flow.close()
        store.close()
        write_event(journal, logger, f"{run_name}_shutdown", {"exit_code": exit_code})

    return exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """Run every (or the selected) collector in order."""
    args = parse_args(argv)
    if args.only:
        selected = [cls for cls in ALL_CLASSES if cls.value in args.only]
    else:
        selected = list(ALL_CLASSES)
    return run_collection(selected, run_name="collect_all")


if __name__ == "__main__":
    sys.exit(main())
