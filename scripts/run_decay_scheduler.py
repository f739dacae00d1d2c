#!/usr/bin/env python3
"""Run the hourly decay scheduler for one account.

Catches up immediately (covering any downtime), then wakes after every local
hour boundary of the market timezone. Ctrl+C / SIGTERM stop it between passes.

Usage:
    python scripts/run_decay_scheduler.py [--account ACCOUNT] [--once]

Environment:
    DATABASE_URL         - PostgreSQL connection string (required unless --allow-memory)
    LEDGER_ACCOUNT       - Default account (default: me)
    MARKET_TIMEZONE      - Reference timezone (default: Europe/London)
    DECAY_GRACE_SECONDS  - Delay after each hour boundary (default: 2)

Examples:
    python scripts/run_decay_scheduler.py
    python scripts/run_decay_scheduler.py --once        # single pass, for cron/systemd timers
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from engine.calendar.market_hours import MarketCalendar  # noqa: E402
from engine.config import EngineConfig  # noqa: E402
from engine.decay.scheduler import DecayScheduler  # noqa: E402

logger = logging.getLogger("decay_scheduler")


def build_scheduler(config: EngineConfig, account: str) -> DecayScheduler:
    return DecayScheduler(
        store=config.create_store(),
        account=account,
        calendar=MarketCalendar(timezone_name=config.timezone_name),
        grace_seconds=config.grace_seconds,
        decay_per_open_hour=config.decay_per_open_hour,
    )


async def run_forever(scheduler: DecayScheduler) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover - Windows
            pass

    await scheduler.run(stop_event)


def main() -> int:
    parser = argparse.ArgumentParser(description="Apply hourly valuation decay while the market is open.")
    parser.add_argument("--account", default=None, help="Account key (default: LEDGER_ACCOUNT or 'me')")
    parser.add_argument("--once", action="store_true", help="Run a single catch-up pass and exit")
    parser.add_argument(
        "--allow-memory",
        action="store_true",
        help="Run without DATABASE_URL against a throwaway in-memory store",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = EngineConfig.from_env()
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not config.database_url and not args.allow_memory:
        print("Error: DATABASE_URL environment variable is required", file=sys.stderr)
        return 1

    account = args.account or config.account
    scheduler = build_scheduler(config, account)

    if args.once:
        ok = scheduler.run_decay_catch_up()
        return 0 if ok else 2

    try:
        asyncio.run(run_forever(scheduler))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
