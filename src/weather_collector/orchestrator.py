"""Sequential orchestration of the per-class collection flows."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from .collectors import CollectionFlow
from .exceptions import CollectionError, NoLocationsError, StoreError, WeatherProviderError
from .models import ClassOutcome, LocationClass, RunSummary

_EXPECTED_FAILURES = (CollectionError, StoreError, WeatherProviderError)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Orchestrator:
    """Runs each flow in order: freshness gate, then collect with bounded retry.

    One class failing never stops the classes after it.
    """

    def __init__(
        self,
        flows: Sequence[CollectionFlow],
        *,
        logger: logging.Logger,
        max_attempts: int = 3,
        retry_delay_seconds: float = 5.0,
        pause_seconds: float = 5.0,
        sleep_fn: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        now_fn: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0.")
        self.flows = list(flows)
        self.logger = logger
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self.pause_seconds = pause_seconds
        self._sleep = sleep_fn
        self._clock = clock
        self._now = now_fn

    def run(self) -> RunSummary:
        summary = RunSummary(started_at=self._now())
        started = self._clock()
        total = len(self.flows)
        for index, flow in enumerate(self.flows, start=1):
            self.logger.info("Starting %s collection (%d/%d)", flow.location_class, index, total)
            outcome = self.run_flow(flow)
            summary.outcomes.append(outcome)
            if index < total and self.pause_seconds > 0:
                self._sleep(self.pause_seconds)

        summary.duration_seconds = round(self._clock() - started, 3)
        for outcome in summary.outcomes:
            self.logger.info(
                "%s: %s (attempts=%d fetched=%d/%d archived=%d written=%d dropped=%d)",
                outcome.location_class,
                self._status_label(outcome),
                outcome.attempts,
                outcome.fetched,
                outcome.requested,
                outcome.archived,
                outcome.written,
                len(outcome.dropped_keys),
            )
        self.logger.info(
            "Run finished in %.1fs: %s",
            summary.duration_seconds,
            "all classes succeeded" if summary.succeeded else "some classes failed",
        )
        return summary

    def run_flow(self, flow: CollectionFlow) -> ClassOutcome:
        started = self._clock()
        location_class = flow.location_class
        if flow.is_fresh():
            self.logger.info("Skipping %s collection; data is fresh", location_class)
            return ClassOutcome(
                location_class=location_class,
                succeeded=True,
                skipped_fresh=True,
                duration_seconds=round(self._clock() - started, 3),
            )

        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                outcome = flow.collect()
            except NoLocationsError as exc:
                self.logger.error("%s collection cannot run: %s", location_class, exc)
                return self._failed(location_class, attempt, exc, started)
            except _EXPECTED_FAILURES as exc:
                last_error = exc
                self.logger.error(
                    "%s collection attempt %d/%d failed: %s",
                    location_class,
                    attempt,
                    self.max_attempts,
                    exc,
                )
            except Exception as exc:
                last_error = exc
                self.logger.exception(
                    "%s collection attempt %d/%d crashed: %s",
                    location_class,
                    attempt,
                    self.max_attempts,
                    exc,
                )
            else:
                return outcome.model_copy(
                    update={
                        "attempts": attempt,
                        "duration_seconds": round(self._clock() - started, 3),
                    }
                )

            if attempt < self.max_attempts:
                self.logger.info(
                    "Retrying %s collection in %.1fs", location_class, self.retry_delay_seconds
                )
                if self.retry_delay_seconds > 0:
                    self._sleep(self.retry_delay_seconds)

        return self._failed(location_class, self.max_attempts, last_error, started)

    def _failed(
        self,
        location_class: LocationClass,
        attempts: int,
        error: Exception | None,
        started: float,
    ) -> ClassOutcome:
        return ClassOutcome(
            location_class=location_class,
            succeeded=False,
            attempts=attempts,
            error=f"{type(error).__name__}: {error}" if error else "unknown error",
            duration_seconds=round(self._clock() - started, 3),
        )

    @staticmethod
    def _status_label(outcome: ClassOutcome) -> str:
        if outcome.skipped_fresh:
            return "skipped (fresh)"
        return "ok" if outcome.succeeded else f"FAILED ({outcome.error})"
