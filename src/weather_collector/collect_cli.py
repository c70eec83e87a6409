"""Per-class collector entry points."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from .cli import run_collection
from .models import LocationClass


def _parse_args(location_class: LocationClass, argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=f"Refresh current {location_class.value} weather if it is stale."
    )
    return parser.parse_args(argv)


def run_class(location_class: LocationClass, argv: Sequence[str] | None = None) -> int:
    _parse_args(location_class, argv)
    return run_collection([location_class], run_name=f"collect_{location_class.value}")


def main_city(argv: Sequence[str] | None = None) -> int:
    """Refresh provincial-capital weather."""
    return run_class(LocationClass.CITY, argv)


def main_grid(argv: Sequence[str] | None = None) -> int:
    """Refresh the regular-lattice weather grid."""
    return run_class(LocationClass.GRID, argv)


def main_port(argv: Sequence[str] | None = None) -> int:
    """Refresh maritime port forecasts."""
    return run_class(LocationClass.PORT, argv)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Refresh weather for one location class.")
    parser.add_argument("location_class", choices=[cls.value for cls in LocationClass])
    args, rest = parser.parse_known_args()
    sys.exit(run_class(LocationClass(args.location_class), rest))
