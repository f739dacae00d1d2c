"""Ledger state and its persisted document form.

Documents come from a shared store that older clients also write to, so parsing
never fails: each malformed field falls back to its default (valuation 10000,
empty log, no watermark) and malformed transaction entries are dropped.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from engine.types import INITIAL_VALUATION_UC, MAX_TRANSACTIONS, Transaction

logger = logging.getLogger(__name__)


def new_transaction_id() -> str:
    return uuid.uuid4().hex


def _as_int(value: Any) -> Optional[int]:
    # bool is an int subclass; never accept it as a number
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _parse_transaction(raw: Any) -> Optional[Transaction]:
    if not isinstance(raw, Mapping):
        return None

    tx_id = raw.get("id")
    timestamp = _as_int(raw.get("timestamp"))
    delta = _as_int(raw.get("delta"))
    label = raw.get("label", "")
    if not isinstance(tx_id, str) or not tx_id or timestamp is None or delta is None:
        return None
    if not isinstance(label, str):
        label = str(label)
    return Transaction(id=tx_id, timestamp=timestamp, delta=delta, label=label)


@dataclass(frozen=True)
class LedgerState:
    valuation: int = INITIAL_VALUATION_UC
    transactions: tuple[Transaction, ...] = ()  # newest first
    decay_watermark: Optional[int] = None

    @classmethod
    def initial(cls) -> "LedgerState":
        return cls()

    @classmethod
    def from_document(cls, document: Any) -> "LedgerState":
        if not isinstance(document, Mapping):
            return cls.initial()

        valuation = _as_int(document.get("valuation"))
        if valuation is None:
            valuation = INITIAL_VALUATION_UC
        elif valuation < 0:
            logger.warning(f"Stored valuation {valuation} is negative, clamping to 0")
            valuation = 0

        raw_transactions = document.get("transactions")
        transactions: list[Transaction] = []
        if isinstance(raw_transactions, list):
            for raw in raw_transactions:
                tx = _parse_transaction(raw)
                if tx is None:
                    logger.debug(f"Dropping malformed transaction entry: {raw!r}")
                    continue
                transactions.append(tx)

        return cls(
            valuation=valuation,
            transactions=tuple(transactions[:MAX_TRANSACTIONS]),
            decay_watermark=_as_int(document.get("decayWatermark")),
        )

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "valuation": self.valuation,
            "transactions": [tx.to_document() for tx in self.transactions],
        }
        if self.decay_watermark is not None:
            document["decayWatermark"] = self.decay_watermark
        return document

    def apply(self, *, delta: int, label: str, timestamp: int, tx_id: str | None = None) -> tuple["LedgerState", Transaction]:
        """Append one transaction and move the valuation, flooring at zero."""
        tx = Transaction(id=tx_id or new_transaction_id(), timestamp=timestamp, delta=delta, label=label)
        next_valuation = max(0, self.valuation + delta)
        transactions = ((tx,) + self.transactions)[:MAX_TRANSACTIONS]
        return replace(self, valuation=next_valuation, transactions=transactions), tx

    def with_watermark(self, watermark: int) -> "LedgerState":
        """Advance the decay watermark; it never moves backwards."""
        if self.decay_watermark is not None and watermark < self.decay_watermark:
            return self
        return replace(self, decay_watermark=watermark)

    def ascending_transactions(self) -> list[Transaction]:
        return sorted(self.transactions, key=lambda tx: tx.timestamp)


def merge_document(existing: Any, state: LedgerState) -> dict[str, Any]:
    """Write ``state`` over ``existing`` while keeping unrelated keys.

    Accounts share the document with other data (habits, goals); a ledger write
    only replaces the ledger fields.
    """
    merged: dict[str, Any] = dict(existing) if isinstance(existing, Mapping) else {}
    merged.update(state.to_document())
    if state.decay_watermark is None:
        merged.pop("decayWatermark", None)
    return merged
