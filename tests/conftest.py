"""Shared test fixtures for pytest.

Provides calendars, clocks, stores and mocked SQLAlchemy engines used across
multiple test files.
"""

from datetime import datetime, timezone
from typing import Any
from unittest.mock import Mock

import pytest

from engine.calendar.market_hours import MarketCalendar
from engine.clock import FixedClock
from engine.storage.memory_store import InMemoryLedgerStore
from engine.types import Transaction


def utc_ms(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    """Epoch ms for a UTC civil time."""
    return int(datetime(year, month, day, hour, minute, tzinfo=timezone.utc).timestamp() * 1000)


@pytest.fixture
def calendar() -> MarketCalendar:
    return MarketCalendar(timezone_name="Europe/London")


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def winter_clock() -> FixedClock:
    """15:20 UTC on a January Monday (London is on GMT, market open)."""
    return FixedClock(utc_ms(2024, 1, 15, 15, 20))


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """Five transactions over two days, newest first like the stored log."""
    txs = [
        Transaction(id="t1", timestamp=utc_ms(2024, 1, 14, 9, 0), delta=400, label="Goal complete"),
        Transaction(id="t2", timestamp=utc_ms(2024, 1, 14, 13, 30), delta=-50, label="Good habit sold"),
        Transaction(id="t3", timestamp=utc_ms(2024, 1, 14, 18, 0), delta=-15, label="Decay x3"),
        Transaction(id="t4", timestamp=utc_ms(2024, 1, 15, 8, 0), delta=100, label="Good habit hold"),
        Transaction(id="t5", timestamp=utc_ms(2024, 1, 15, 14, 45), delta=-200, label="Goal failed"),
    ]
    return list(reversed(txs))


@pytest.fixture
def mock_db_engine() -> Mock:
    """Mock SQLAlchemy engine for testing database operations."""
    mock_engine = Mock()
    mock_conn = Mock()
    mock_result = Mock()
    mock_result.rowcount = 1
    mock_result.fetchone.return_value = None
    mock_result.fetchall.return_value = []
    mock_conn.execute.return_value = mock_result
    mock_engine.begin.return_value.__enter__ = Mock(return_value=mock_conn)
    mock_engine.begin.return_value.__exit__ = Mock(return_value=False)
    return mock_engine


@pytest.fixture
def mock_postgres_store(mock_db_engine: Mock) -> Any:
    """PostgresLedgerStore wired to a mocked engine."""
    from unittest.mock import patch

    from engine.storage.postgres.config import PostgresConfig
    from engine.storage.postgres.stores import PostgresLedgerStore

    store = PostgresLedgerStore(config=PostgresConfig(database_url="postgresql://fake"))

    with (
        patch.object(store, "_get_engine", return_value=mock_db_engine),
        patch.object(store, "_require_sqlalchemy", return_value=(Mock(), Mock(side_effect=lambda sql: sql))),
    ):
        yield store
