"""Process-wide singletons shared by the API routes."""

from __future__ import annotations

import logging

from engine.calendar.market_hours import MarketCalendar
from engine.clock import Clock, system_clock_ms
from engine.config import EngineConfig
from engine.persistence.interfaces import LedgerDocumentStore

logger = logging.getLogger(__name__)

_config: EngineConfig | None = None
_store: LedgerDocumentStore | None = None
_calendar: MarketCalendar | None = None
_clock: Clock | None = None


def get_config() -> EngineConfig:
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def get_store() -> LedgerDocumentStore:
    """Get or initialize the ledger store."""
    global _store
    if _store is None:
        config = get_config()
        if not config.database_url:
            logger.warning("DATABASE_URL not set; ledgers are kept in memory only")
        _store = config.create_store()
    return _store


def get_calendar() -> MarketCalendar:
    global _calendar
    if _calendar is None:
        _calendar = MarketCalendar(timezone_name=get_config().timezone_name)
    return _calendar


def get_clock() -> Clock:
    return _clock or system_clock_ms


def configure(
    *,
    config: EngineConfig | None = None,
    store: LedgerDocumentStore | None = None,
    calendar: MarketCalendar | None = None,
    clock: Clock | None = None,
) -> None:
    """Replace the singletons (tests, embedding)."""
    global _config, _store, _calendar, _clock
    _config = config
    _store = store
    _calendar = calendar
    _clock = clock
