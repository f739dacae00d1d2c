"""Direct ledger events (goals, habits, addictions, buys).

Every event is taxed against the valuation read inside the same atomic
read-modify-write that appends it, so two sessions recording events at the
same moment cannot overwrite each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from engine.clock import Clock, system_clock_ms
from engine.ledger.state import LedgerState, merge_document
from engine.persistence.interfaces import LedgerDocumentStore
from engine.tax.rules import apply_tax
from engine.types import DeltaKind, Transaction

logger = logging.getLogger(__name__)

TAXED_SUFFIX = " (taxed)"


@dataclass(frozen=True)
class CatalogEvent:
    kind: DeltaKind
    label: str
    delta: int


EVENT_CATALOG: dict[str, CatalogEvent] = {
    "goal_complete": CatalogEvent("goal", "Goal complete", 400),
    "goal_failed": CatalogEvent("goal", "Goal failed", -200),
    "good_hold": CatalogEvent("good", "Good habit hold", 100),
    "good_sold": CatalogEvent("good", "Good habit sold", -50),
    "bad_hold": CatalogEvent("bad", "Bad habit hold", 100),
    "bad_sold": CatalogEvent("bad", "Bad habit sold", -50),
    "addiction_hold": CatalogEvent("addiction", "Addiction hold", 200),
    "addiction_sold": CatalogEvent("addiction", "Addiction sold", -100),
    "buy": CatalogEvent("buy", "BUY: {activity}", 25),
}


@dataclass(frozen=True)
class EventResult:
    transaction: Transaction
    was_taxed: bool
    valuation: int


class LedgerService:
    def __init__(self, *, store: LedgerDocumentStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or system_clock_ms

    def load(self, account: str) -> LedgerState:
        return LedgerState.from_document(self.store.get_document(account))

    def record_event(self, account: str, *, kind: str, label: str, delta: int) -> EventResult:
        """Tax ``delta``, append one transaction and persist atomically."""
        outcome: dict[str, Any] = {}

        def modify(current: Any) -> dict[str, Any]:
            state = LedgerState.from_document(current)
            effective_delta, was_taxed = apply_tax(kind, delta, state.valuation)
            tx_label = f"{label}{TAXED_SUFFIX}" if was_taxed else label
            next_state, tx = state.apply(delta=effective_delta, label=tx_label, timestamp=self.clock())
            # The callback may run more than once under contention; keep the last run.
            outcome.update(transaction=tx, was_taxed=was_taxed, valuation=next_state.valuation)
            return merge_document(current, next_state)

        self.store.atomic_read_modify_write(account, modify)

        result = EventResult(**outcome)
        logger.info(
            f"Recorded {kind} event for {account}: {result.transaction.delta:+d} UC "
            f"(requested {delta:+d}, taxed={result.was_taxed}), valuation={result.valuation}"
        )
        return result

    def record_catalog_event(self, account: str, code: str, *, activity: Optional[str] = None) -> EventResult:
        event = EVENT_CATALOG.get(code)
        if event is None:
            raise ValueError(f"Unknown event code: {code}")

        label = event.label
        if "{activity}" in label:
            activity = (activity or "").strip()
            if not activity:
                raise ValueError(f"Event {code} requires an activity")
            label = label.format(activity=activity)

        return self.record_event(account, kind=event.kind, label=label, delta=event.delta)
