"""Progressive tax on valuation gains.

Only positive deltas are taxed. The multiplier depends on the event category
and the current price tier; higher prices keep a smaller share of each gain.
"""

from __future__ import annotations

import math

from engine.types import TaxResult, price_from_valuation

# (minimum price, {category: multiplier}) evaluated from the highest tier down.
TAX_TIERS: tuple[tuple[float, dict[str, float]], ...] = (
    (20.0, {"addiction": 0.25, "good": 0.5, "bad": 0.5}),
    (5.0, {"addiction": 0.5, "good": 0.75, "bad": 0.75}),
)


def tax_multiplier(category: str, valuation_uc: int) -> float:
    price = float(price_from_valuation(valuation_uc))
    for minimum_price, multipliers in TAX_TIERS:
        if price >= minimum_price:
            return multipliers.get(category, 1.0)
    return 1.0


def apply_tax(category: str, delta: int, current_valuation: int) -> TaxResult:
    """Return the effective delta for ``category`` at ``current_valuation``.

    Losses and decay (``delta <= 0``) pass through untouched. Gains are scaled
    by the tier multiplier and rounded half-up to a whole UC.
    """
    if delta <= 0:
        return TaxResult(effective_delta=delta, was_taxed=False)

    multiplier = tax_multiplier(category, current_valuation)
    effective = int(math.floor(delta * multiplier + 0.5))
    return TaxResult(effective_delta=effective, was_taxed=effective != delta)
