"""Tests for decimal money value objects."""

from decimal import Decimal

import pytest

from taxledger.domain import MonetaryAmount, money, money_zero, usd


def test_money_addition_keeps_exact_decimals() -> None:
    total = usd("0.1") + usd("0.2")

    assert total == MonetaryAmount(amount=Decimal("0.3"), currency="USD")


def test_money_rejects_float_amounts() -> None:
    with pytest.raises(TypeError):
        MonetaryAmount(amount=0.1, currency="USD")
    with pytest.raises(TypeError):
        money(0.1, "USD")


def test_money_rejects_bool_amounts() -> None:
    with pytest.raises(TypeError):
        MonetaryAmount(amount=True, currency="USD")
    with pytest.raises(TypeError):
        money(False, "USD")


def test_money_rejects_mixed_currency_arithmetic() -> None:
    """Refuse to add amounts of different currencies.

    Returns:
        None: Assertions validate the currency guard.

    Raises:
        AssertionError: Raised when mixed-currency addition succeeds.
    """

    with pytest.raises(ValueError, match="currency mismatch"):
        _ = usd("1") + money("1", "EUR")


def test_money_scale_computes_proportional_share() -> None:
    premium = usd("-30")

    assert premium.money_scale(1, 3) == usd("-10")
    assert premium.money_scale(3, 3) == premium


def test_money_scale_rejects_zero_denominator() -> None:
    with pytest.raises(ValueError):
        usd("5").money_scale(1, 0)


def test_money_zero_and_sign_helpers() -> None:
    assert money_zero("eur") == MonetaryAmount(amount=Decimal("0"), currency="EUR")
    assert (-usd("2")).money_is_negative()
    assert not money_zero("USD").money_is_negative()
    assert usd("2.5").money_multiply(4) == usd("10.0")
