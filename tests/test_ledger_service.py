"""Tests for direct ledger events."""

import threading

import pytest

from engine.clock import FixedClock
from engine.ledger.service import EVENT_CATALOG, LedgerService
from engine.ledger.state import LedgerState
from engine.storage.memory_store import InMemoryLedgerStore


@pytest.fixture
def service(store: InMemoryLedgerStore, winter_clock: FixedClock) -> LedgerService:
    return LedgerService(store=store, clock=winter_clock)


def test_first_event_creates_ledger_from_defaults(service: LedgerService, store: InMemoryLedgerStore) -> None:
    result = service.record_event("me", kind="goal", label="Goal complete", delta=400)

    assert result.valuation == 10_400
    assert result.was_taxed is False
    assert result.transaction.label == "Goal complete"

    document = store.get_document("me")
    assert document["valuation"] == 10_400
    assert document["transactions"][0]["id"] == result.transaction.id
    assert "decayWatermark" not in document


def test_taxed_event_label_and_delta(service: LedgerService, store: InMemoryLedgerStore) -> None:
    store.put_document("me", {"valuation": 100_000, "transactions": []})  # price 10.00

    result = service.record_event("me", kind="good", label="Good habit hold", delta=100)

    assert result.transaction.delta == 75
    assert result.transaction.label == "Good habit hold (taxed)"
    assert result.valuation == 100_075


def test_losses_floor_valuation_at_zero(service: LedgerService, store: InMemoryLedgerStore) -> None:
    store.put_document("me", {"valuation": 120, "transactions": []})

    result = service.record_event("me", kind="goal", label="Goal failed", delta=-200)

    assert result.valuation == 0
    assert result.transaction.delta == -200
    assert service.load("me").valuation == 0


def test_event_preserves_watermark_and_foreign_keys(service: LedgerService, store: InMemoryLedgerStore) -> None:
    store.put_document("me", {"valuation": 10_000, "decayWatermark": 3_600_000, "goals": ["g"], "transactions": []})

    service.record_event("me", kind="buy", label="BUY: walk", delta=25)

    document = store.get_document("me")
    assert document["decayWatermark"] == 3_600_000
    assert document["goals"] == ["g"]


def test_catalog_event_uses_catalog_delta(service: LedgerService) -> None:
    result = service.record_catalog_event("me", "addiction_hold")

    assert result.transaction.delta == EVENT_CATALOG["addiction_hold"].delta == 200
    assert result.transaction.label == "Addiction hold"


def test_buy_requires_activity(service: LedgerService) -> None:
    with pytest.raises(ValueError):
        service.record_catalog_event("me", "buy", activity="   ")

    result = service.record_catalog_event("me", "buy", activity=" read a book ")
    assert result.transaction.label == "BUY: read a book"
    assert result.transaction.delta == 25


def test_unknown_catalog_code(service: LedgerService) -> None:
    with pytest.raises(ValueError, match="Unknown event code"):
        service.record_catalog_event("me", "lottery_win")


def test_load_absent_account_returns_initial_state(service: LedgerService) -> None:
    assert service.load("nobody") == LedgerState.initial()


def test_concurrent_events_do_not_lose_updates(store: InMemoryLedgerStore) -> None:
    store.max_attempts = 1000
    service = LedgerService(store=store, clock=lambda: 1_700_000_000_000)
    workers = 8
    per_worker = 25

    def record() -> None:
        for _ in range(per_worker):
            service.record_event("me", kind="goal", label="Goal complete", delta=1)

    threads = [threading.Thread(target=record) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    state = service.load("me")
    assert state.valuation == 10_000 + workers * per_worker
    assert len(state.transactions) == workers * per_worker
