"""Runtime configuration read from the environment.

Environment:
    DATABASE_URL         - PostgreSQL URL. Unset selects the in-memory store.
    LEDGER_ACCOUNT       - Account key the decay scheduler runs for (default: me)
    MARKET_TIMEZONE      - Reference civil timezone (default: Europe/London)
    DECAY_GRACE_SECONDS  - Delay after each hour boundary (default: 2)
    DECAY_PER_OPEN_HOUR  - UC charged per open hour (default: 5)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from engine.calendar.market_hours import DEFAULT_TIMEZONE

DEFAULT_ACCOUNT = "me"
DEFAULT_GRACE_SECONDS = 2.0
DEFAULT_DECAY_PER_OPEN_HOUR = 5


@dataclass(frozen=True)
class EngineConfig:
    database_url: Optional[str] = None
    account: str = DEFAULT_ACCOUNT
    timezone_name: str = DEFAULT_TIMEZONE
    grace_seconds: float = DEFAULT_GRACE_SECONDS
    decay_per_open_hour: int = DEFAULT_DECAY_PER_OPEN_HOUR

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        env = os.environ if environ is None else environ

        grace_raw = env.get("DECAY_GRACE_SECONDS")
        decay_raw = env.get("DECAY_PER_OPEN_HOUR")
        try:
            grace_seconds = float(grace_raw) if grace_raw else DEFAULT_GRACE_SECONDS
        except ValueError as exc:
            raise ValueError(f"DECAY_GRACE_SECONDS must be a number, got {grace_raw!r}") from exc
        try:
            decay_per_open_hour = int(decay_raw) if decay_raw else DEFAULT_DECAY_PER_OPEN_HOUR
        except ValueError as exc:
            raise ValueError(f"DECAY_PER_OPEN_HOUR must be an integer, got {decay_raw!r}") from exc

        if grace_seconds < 0:
            raise ValueError("DECAY_GRACE_SECONDS must be >= 0")
        if decay_per_open_hour < 0:
            raise ValueError("DECAY_PER_OPEN_HOUR must be >= 0")

        return cls(
            database_url=env.get("DATABASE_URL") or None,
            account=env.get("LEDGER_ACCOUNT") or DEFAULT_ACCOUNT,
            timezone_name=env.get("MARKET_TIMEZONE") or DEFAULT_TIMEZONE,
            grace_seconds=grace_seconds,
            decay_per_open_hour=decay_per_open_hour,
        )

    def create_store(self):
        """Build the ledger store this configuration points at."""
        from engine.storage import InMemoryLedgerStore, PostgresConfig, PostgresLedgerStore

        if self.database_url:
            return PostgresLedgerStore(config=PostgresConfig(database_url=self.database_url))
        return InMemoryLedgerStore()
