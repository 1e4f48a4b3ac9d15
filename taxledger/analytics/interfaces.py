"""Typed interfaces for currency conversion and fiscal-year aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from taxledger.domain import MonetaryAmount


class ExchangeRatePort(Protocol):
    """Port definition for historical USD to home-currency rates."""

    def rate_usd_to_home(self, rate_date: date) -> Decimal:
        """Return the rate that converts one USD into the home currency.

        Args:
            rate_date: Local calendar date of the converted amount.

        Returns:
            Decimal: Conversion rate.

        Raises:
            MissingExchangeRateError: Raised when no rate covers the date.
        """


@dataclass(frozen=True)
class ProfitsSummary:
    """Realized totals of one tax year in the home currency.

    Attributes:
        profit_from_options: Premiums recognized minus buy-back costs covered by them.
        loss_from_options: Non-negative magnitude of option losses.
        profit_from_stocks: Realized stock gains, may be negative.
    """

    profit_from_options: MonetaryAmount
    loss_from_options: MonetaryAmount
    profit_from_stocks: MonetaryAmount


@dataclass
class FiscalYearState:
    """Mutable accumulators of one tax year.

    Attributes:
        year: Tax year.
        profit_from_options: Option profit accumulator.
        loss_from_options: Option loss accumulator, non-negative.
        profit_from_stocks: Stock profit accumulator.
    """

    year: int
    profit_from_options: MonetaryAmount
    loss_from_options: MonetaryAmount
    profit_from_stocks: MonetaryAmount

    def fiscal_year_profits(self) -> ProfitsSummary:
        return ProfitsSummary(
            profit_from_options=self.profit_from_options,
            loss_from_options=self.loss_from_options,
            profit_from_stocks=self.profit_from_stocks,
        )


__all__ = ["ExchangeRatePort", "FiscalYearState", "ProfitsSummary"]
