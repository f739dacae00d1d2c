"""Tests for the progressive tax rule."""

import pytest

from engine.tax.rules import apply_tax, tax_multiplier


@pytest.mark.parametrize("category", ["goal", "good", "bad", "addiction", "buy", "decay", "unknown"])
@pytest.mark.parametrize("delta", [0, -1, -5, -200])
@pytest.mark.parametrize("valuation", [0, 10_000, 60_000, 250_000])
def test_non_positive_delta_is_never_taxed(category: str, delta: int, valuation: int) -> None:
    assert apply_tax(category, delta, valuation) == (delta, False)


def test_addiction_above_twenty_keeps_a_quarter() -> None:
    effective, taxed = apply_tax("addiction", 100, 250_000)  # price 25.0

    assert effective == 25
    assert taxed is True


def test_good_between_five_and_twenty_keeps_three_quarters() -> None:
    effective, taxed = apply_tax("good", 100, 100_000)  # price 10.0

    assert effective == 75
    assert taxed is True


def test_buy_below_five_is_untaxed() -> None:
    effective, taxed = apply_tax("buy", 100, 20_000)  # price 2.0

    assert effective == 100
    assert taxed is False


@pytest.mark.parametrize(
    "category,valuation,expected",
    [
        ("addiction", 200_000, 0.25),  # exactly 20.00 is the top tier
        ("good", 200_000, 0.5),
        ("bad", 200_000, 0.5),
        ("goal", 200_000, 1.0),
        ("buy", 200_000, 1.0),
        ("addiction", 50_000, 0.5),  # exactly 5.00 is the middle tier
        ("bad", 50_000, 0.75),
        ("goal", 50_000, 1.0),
        ("addiction", 49_999, 1.0),
        ("good", 10_000, 1.0),
        ("bad", 199_999, 0.75),
    ],
)
def test_tier_boundaries(category: str, valuation: int, expected: float) -> None:
    assert tax_multiplier(category, valuation) == expected


def test_rounding_is_half_up() -> None:
    # 1 * 0.5 = 0.5 rounds up to 1, so the delta is unchanged and not flagged as taxed
    assert apply_tax("good", 1, 250_000) == (1, False)
    # 3 * 0.5 = 1.5 -> 2
    assert apply_tax("bad", 3, 250_000) == (2, True)
    # 2 * 0.25 = 0.5 -> 1
    assert apply_tax("addiction", 2, 250_000) == (1, True)


def test_result_exposes_named_fields() -> None:
    result = apply_tax("good", 100, 100_000)

    assert result.effective_delta == 75
    assert result.was_taxed is True
