"""Hourly decay of the valuation while the market is open.

Each pass reads the persisted watermark (the last local hour boundary already
charged), counts the open hour boundaries between it and the current hour
boundary, and charges them in one aggregated transaction. The whole pass runs
inside the store's atomic read-modify-write, and the bucket count is derived
from the persisted watermark rather than from local elapsed time, so repeated,
concurrent or failed passes never charge the same hour twice.

Usage (long-running):
    scheduler = DecayScheduler(store=store, account="me")
    stop = asyncio.Event()
    await scheduler.run(stop)

Usage (one pass, e.g. from cron):
    ok = scheduler.run_decay_catch_up()
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from engine.calendar.market_hours import MarketCalendar
from engine.clock import Clock, system_clock_ms
from engine.config import DEFAULT_DECAY_PER_OPEN_HOUR, DEFAULT_GRACE_SECONDS
from engine.ledger.state import LedgerState, merge_document
from engine.persistence.interfaces import LedgerDocumentStore, LedgerStoreError
from engine.tax.rules import apply_tax
from engine.types import DecayOutcome

logger = logging.getLogger(__name__)


def decay_label(open_buckets: int) -> str:
    return f"Decay x{open_buckets}"


def apply_decay(
    state: LedgerState,
    *,
    current_bucket_ms: int,
    now_ms: int,
    calendar: MarketCalendar,
    decay_per_open_hour: int = DEFAULT_DECAY_PER_OPEN_HOUR,
) -> tuple[LedgerState, DecayOutcome]:
    """Charge every open hour between the stored watermark and ``current_bucket_ms``.

    Pure: returns the next state and what happened. With no watermark yet the
    watermark is only initialized; history before tracking is never charged.
    """
    if state.decay_watermark is None:
        next_state = state.with_watermark(current_bucket_ms)
        return next_state, DecayOutcome(bootstrapped=True, open_buckets=0, watermark=current_bucket_ms)

    open_buckets = calendar.count_open_buckets(state.decay_watermark, current_bucket_ms)
    next_state = state.with_watermark(current_bucket_ms)

    if open_buckets == 0 or decay_per_open_hour == 0:
        return next_state, DecayOutcome(bootstrapped=False, open_buckets=open_buckets, watermark=next_state.decay_watermark)

    delta = -decay_per_open_hour * open_buckets
    # Decay is never taxed today; routed through the tax rule so it stays one code path.
    effective_delta, _ = apply_tax("decay", delta, next_state.valuation)
    next_state, tx = next_state.apply(delta=effective_delta, label=decay_label(open_buckets), timestamp=now_ms)

    return next_state, DecayOutcome(
        bootstrapped=False,
        open_buckets=open_buckets,
        watermark=next_state.decay_watermark,
        transaction=tx,
    )


class SchedulerState(str, Enum):
    IDLE = "idle"
    APPLYING = "applying"


@dataclass
class SchedulerStatus:
    """Snapshot of the scheduler, suitable for a 'sync degraded' indicator."""

    state: SchedulerState = SchedulerState.IDLE
    runs: int = 0
    failures: int = 0
    consecutive_failures: int = 0
    last_run_at: Optional[int] = None
    last_success_at: Optional[int] = None
    last_error: Optional[str] = None
    last_outcome: Optional[DecayOutcome] = None
    next_wake_at: Optional[int] = None

    @property
    def sync_degraded(self) -> bool:
        return self.consecutive_failures > 0

    def to_dict(self) -> dict[str, Any]:
        outcome = self.last_outcome
        return {
            "state": self.state.value,
            "runs": self.runs,
            "failures": self.failures,
            "sync_degraded": self.sync_degraded,
            "last_run_at": self.last_run_at,
            "last_success_at": self.last_success_at,
            "last_error": self.last_error,
            "last_open_buckets": outcome.open_buckets if outcome else None,
            "watermark": outcome.watermark if outcome else None,
            "next_wake_at": self.next_wake_at,
        }


class DecayScheduler:
    """Runs decay catch-up now and after every local hour boundary.

    Idle -> Applying on start and on each wake; Applying -> Idle when the pass
    finishes, whether it committed or not. A failed pass is not retried until
    the next wake.
    """

    def __init__(
        self,
        *,
        store: LedgerDocumentStore,
        account: str,
        calendar: MarketCalendar | None = None,
        clock: Clock | None = None,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        decay_per_open_hour: int = DEFAULT_DECAY_PER_OPEN_HOUR,
    ) -> None:
        self.store = store
        self.account = account
        self.calendar = calendar or MarketCalendar()
        self.clock = clock or system_clock_ms
        self.grace_seconds = grace_seconds
        self.decay_per_open_hour = decay_per_open_hour
        self._status = SchedulerStatus()
        # passes may run concurrently on worker threads (API requests)
        self._status_lock = threading.Lock()
        self._in_flight = 0

    @property
    def status(self) -> SchedulerStatus:
        return self._status

    def status_dict(self) -> dict[str, Any]:
        with self._status_lock:
            return self._status.to_dict()

    def run_decay_catch_up(self) -> bool:
        """Run one atomic catch-up pass. Returns True when it committed."""
        now_ms = self.clock()
        current_bucket_ms = self.calendar.hour_bucket_start(now_ms)
        outcome: dict[str, DecayOutcome] = {}

        def modify(current: Any) -> dict[str, Any]:
            state = LedgerState.from_document(current)
            next_state, result = apply_decay(
                state,
                current_bucket_ms=current_bucket_ms,
                now_ms=now_ms,
                calendar=self.calendar,
                decay_per_open_hour=self.decay_per_open_hour,
            )
            outcome["result"] = result
            return merge_document(current, next_state)

        with self._status_lock:
            self._in_flight += 1
            self._status.state = SchedulerState.APPLYING
            self._status.runs += 1
            self._status.last_run_at = now_ms
        started = time.monotonic()
        try:
            self.store.atomic_read_modify_write(self.account, modify)
        except (LedgerStoreError, OSError) as exc:
            with self._status_lock:
                self._status.failures += 1
                self._status.consecutive_failures += 1
                self._status.last_error = f"{type(exc).__name__}: {exc}"
                in_a_row = self._status.consecutive_failures
            logger.warning(f"Decay catch-up for {self.account} failed ({in_a_row} in a row): {exc}")
            return False
        finally:
            with self._status_lock:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._status.state = SchedulerState.IDLE

        result = outcome["result"]
        with self._status_lock:
            self._status.consecutive_failures = 0
            self._status.last_error = None
            self._status.last_success_at = now_ms
            self._status.last_outcome = result
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if result.bootstrapped:
            logger.info(f"Decay tracking started for {self.account} at bucket {result.watermark}")
        elif result.transaction is not None:
            logger.info(
                f"Decay charged for {self.account}: {result.open_buckets} open hour(s), "
                f"{result.transaction.delta:+d} UC ({elapsed_ms}ms)"
            )
        else:
            logger.debug(f"No open hours to charge for {self.account}; watermark at {result.watermark}")
        return True

    def next_wake_ms(self, now_ms: int) -> int:
        return self.calendar.next_hour_bucket_start(now_ms) + int(self.grace_seconds * 1000)

    def seconds_until_next_wake(self, now_ms: int) -> float:
        return max(0.0, (self.next_wake_ms(now_ms) - now_ms) / 1000)

    async def run(self, stop_event: asyncio.Event, *, max_passes: int | None = None) -> None:
        """Catch up immediately, then once per local hour until ``stop_event`` is set."""
        logger.info(f"Decay scheduler started for {self.account} ({self.calendar.timezone_name})")
        passes = 0
        try:
            while not stop_event.is_set():
                await asyncio.to_thread(self.run_decay_catch_up)
                passes += 1
                if max_passes is not None and passes >= max_passes:
                    break

                now_ms = self.clock()
                self._status.next_wake_at = self.next_wake_ms(now_ms)
                delay = self.seconds_until_next_wake(now_ms)
                logger.debug(f"Next decay wake in {delay:.1f}s")
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("Decay scheduler cancelled")
            raise
        finally:
            self._status.next_wake_at = None
            logger.info(f"Decay scheduler stopped for {self.account}")
