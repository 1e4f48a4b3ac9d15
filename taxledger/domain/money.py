"""Decimal monetary amount value object shared across ledger and analytics layers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

USD = "USD"
EUR = "EUR"


@dataclass(frozen=True)
class MonetaryAmount:
    """Immutable decimal amount tagged with an ISO currency code.

    Attributes:
        amount: Exact decimal amount. Floats are rejected.
        currency: Upper-case ISO currency code.
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, (bool, float)) or not isinstance(self.amount, (Decimal, int)):
            raise TypeError("amount must be a Decimal or int, not bool or float")
        if isinstance(self.amount, int):
            object.__setattr__(self, "amount", Decimal(self.amount))
        normalized_currency = (self.currency or "").strip().upper()
        if not normalized_currency:
            raise ValueError("currency must not be blank")
        object.__setattr__(self, "currency", normalized_currency)

    def __add__(self, other: MonetaryAmount) -> MonetaryAmount:
        self._money_require_same_currency(other)
        return MonetaryAmount(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: MonetaryAmount) -> MonetaryAmount:
        self._money_require_same_currency(other)
        return MonetaryAmount(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> MonetaryAmount:
        return MonetaryAmount(amount=-self.amount, currency=self.currency)

    def money_scale(self, numerator: Decimal | int, denominator: Decimal | int) -> MonetaryAmount:
        """Return the proportional share `amount * numerator / denominator`.

        Args:
            numerator: Share numerator, typically the matched quantity.
            denominator: Share denominator, typically the trade quantity.

        Returns:
            MonetaryAmount: Scaled amount in the same currency.

        Raises:
            ValueError: Raised when denominator is zero.
        """

        if Decimal(denominator) == 0:
            raise ValueError("denominator must not be zero")
        return MonetaryAmount(
            amount=self.amount * Decimal(numerator) / Decimal(denominator),
            currency=self.currency,
        )

    def money_multiply(self, factor: Decimal | int) -> MonetaryAmount:
        """Return the amount multiplied by an exact decimal factor."""

        return MonetaryAmount(amount=self.amount * Decimal(factor), currency=self.currency)

    def money_is_negative(self) -> bool:
        """Return whether the amount is strictly below zero."""

        return self.amount < 0

    def _money_require_same_currency(self, other: MonetaryAmount) -> None:
        if not isinstance(other, MonetaryAmount):
            raise TypeError("operand must be a MonetaryAmount")
        if other.currency != self.currency:
            raise ValueError(f"currency mismatch: {self.currency} != {other.currency}")


def money(amount: Decimal | int | str, currency: str) -> MonetaryAmount:
    """Build a monetary amount from an exact decimal representation.

    Args:
        amount: Decimal, int or decimal string.
        currency: ISO currency code.

    Returns:
        MonetaryAmount: Parsed amount.

    Raises:
        ValueError: Raised when the amount text is not a decimal number.
        TypeError: Raised when a bool or float is supplied.
    """

    if isinstance(amount, (bool, float)):
        raise TypeError("amount must not be a bool or float")
    if isinstance(amount, str):
        try:
            parsed_amount = Decimal(amount.strip())
        except InvalidOperation as error:
            raise ValueError(f"invalid decimal amount: {amount!r}") from error
        if not parsed_amount.is_finite():
            raise ValueError(f"invalid decimal amount: {amount!r}")
        return MonetaryAmount(amount=parsed_amount, currency=currency)
    return MonetaryAmount(amount=Decimal(amount), currency=currency)


def usd(amount: Decimal | int | str) -> MonetaryAmount:
    """Build a USD monetary amount."""

    return money(amount, USD)


def money_zero(currency: str) -> MonetaryAmount:
    """Return a zero amount in the given currency."""

    return MonetaryAmount(amount=Decimal("0"), currency=currency)


__all__ = ["EUR", "USD", "MonetaryAmount", "money", "money_zero", "usd"]
