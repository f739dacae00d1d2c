from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal, NamedTuple

DeltaKind = Literal["goal", "good", "bad", "addiction", "buy", "decay"]
Timeframe = Literal["4h", "8h", "1d", "1w"]

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

UC_PER_PRICE_UNIT = 10_000
INITIAL_VALUATION_UC = 10_000
MAX_TRANSACTIONS = 2000


def price_from_valuation(valuation_uc: int) -> Decimal:
    """Convert an integer UC valuation into its price (UC / 10000)."""
    return Decimal(valuation_uc) / Decimal(UC_PER_PRICE_UNIT)


@dataclass(frozen=True)
class Transaction:
    id: str
    timestamp: int  # epoch ms
    delta: int  # signed UC
    label: str

    def to_document(self) -> dict[str, object]:
        return {"id": self.id, "timestamp": self.timestamp, "delta": self.delta, "label": self.label}


class TaxResult(NamedTuple):
    effective_delta: int
    was_taxed: bool


@dataclass(frozen=True)
class ValuationCandle:
    open_time: int  # bucket start, epoch ms
    close_time: int  # next bucket start, epoch ms
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "t": self.open_time,
            "o": float(self.open),
            "h": float(self.high),
            "l": float(self.low),
            "c": float(self.close),
        }


@dataclass(frozen=True)
class DecayOutcome:
    bootstrapped: bool
    open_buckets: int
    watermark: int
    transaction: Transaction | None = None
