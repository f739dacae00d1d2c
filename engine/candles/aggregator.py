"""Rebuild OHLC bars of the valuation from the transaction log.

The log only holds deltas, so the valuation entering the window is recovered by
subtracting every in-window delta from the current valuation, then the window is
replayed forward bucket by bucket. When the valuation was floored at zero
somewhere inside the window the reverse step cannot see it and the
reconstruction is approximate; that precision loss is accepted.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Sequence

from engine.ledger.state import LedgerState
from engine.types import DAY_MS, HOUR_MS, Timeframe, Transaction, ValuationCandle, price_from_valuation

# timeframe -> (bucket width in ms, minimum lookback in buckets)
TIMEFRAMES: dict[str, tuple[int, int]] = {
    "4h": (4 * HOUR_MS, 90),
    "8h": (8 * HOUR_MS, 90),
    "1d": (DAY_MS, 60),
    "1w": (7 * DAY_MS, 26),
}
DEFAULT_TIMEFRAME: Timeframe = "1d"


def floor_to_bucket(ts: int, bucket_ms: int) -> int:
    return (ts // bucket_ms) * bucket_ms


def build_candles(
    current_valuation: int,
    transactions: Sequence[Transaction],
    bucket_ms: int,
    min_lookback_buckets: int,
    *,
    now_ms: int,
) -> list[ValuationCandle]:
    """Return one bar per bucket from the lookback start through the current bucket.

    The lookback is widened to reach the earliest transaction, never narrowed.
    ``transactions`` may arrive in any order; they are replayed ascending.
    """
    if bucket_ms <= 0:
        raise ValueError("bucket_ms must be positive")

    ordered = sorted(transactions, key=lambda tx: tx.timestamp)

    end_bucket = floor_to_bucket(now_ms, bucket_ms)
    earliest_bucket = floor_to_bucket(ordered[0].timestamp, bucket_ms) if ordered else end_bucket
    computed_buckets = max(1, (end_bucket - earliest_bucket) // bucket_ms + 1)
    span_buckets = max(min_lookback_buckets, computed_buckets)
    start_bucket = end_bucket - bucket_ms * (span_buckets - 1)

    valuation = current_valuation - sum(tx.delta for tx in ordered if tx.timestamp >= start_bucket)
    valuation = max(0, valuation)

    by_bucket: dict[int, list[Transaction]] = defaultdict(list)
    for tx in ordered:
        bucket = floor_to_bucket(tx.timestamp, bucket_ms)
        if start_bucket <= bucket <= end_bucket:
            by_bucket[bucket].append(tx)

    candles: list[ValuationCandle] = []
    for bucket in range(start_bucket, end_bucket + 1, bucket_ms):
        open_uc = high_uc = low_uc = valuation
        for tx in by_bucket.get(bucket, ()):
            valuation = max(0, valuation + tx.delta)
            high_uc = max(high_uc, valuation)
            low_uc = min(low_uc, valuation)

        candles.append(
            ValuationCandle(
                open_time=bucket,
                close_time=bucket + bucket_ms,
                open=price_from_valuation(open_uc),
                high=price_from_valuation(high_uc),
                low=price_from_valuation(low_uc),
                close=price_from_valuation(valuation),
            )
        )

    return candles


def build_timeframe_candles(state: LedgerState, timeframe: str, *, now_ms: int) -> list[ValuationCandle]:
    try:
        bucket_ms, lookback = TIMEFRAMES[timeframe]
    except KeyError as exc:
        raise ValueError(f"Unsupported timeframe: {timeframe}") from exc

    return build_candles(state.valuation, state.ascending_transactions(), bucket_ms, lookback, now_ms=now_ms)


def timeframe_change_pct(candles: Sequence[ValuationCandle]) -> float:
    """Percent change from the first bar's open to the last bar's close."""
    if len(candles) < 2:
        return 0.0

    base = candles[0].open
    if base <= 0:
        return 0.0
    return float((candles[-1].close - base) / base * 100)
