"""Per-tax-year accumulation of realized option and stock results.

Option premiums are recognized as profit when the short position is opened.
Buy-backs either reduce that profit or, when the lot closed at a net loss,
move the recognized premium out of profit and book the net loss separately.
Profit and loss stay two independent non-negative bookkeeping lines.
"""

from __future__ import annotations

import logging
from typing import assert_never

from taxledger.domain import MonetaryAmount, money_zero
from taxledger.ledger.interfaces import (
    MatchEvent,
    MatchEventSink,
    OptionClosed,
    OptionOpened,
    OptionRemoved,
    StockClosed,
    StockOpened,
)

from .currency_converter import CurrencyConverter
from .interfaces import FiscalYearState, ProfitsSummary
from .tax_dates import tax_resolve_year

logger = logging.getLogger(__name__)


class FiscalYearAggregator(MatchEventSink):
    """Converts match events into home-currency totals keyed by tax year."""

    def __init__(self, converter: CurrencyConverter):
        """Initialize aggregator.

        Args:
            converter: Currency converter bound to the reporting time zone.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when converter is None.
        """

        if converter is None:
            raise ValueError("converter must not be None")
        self._converter = converter
        self._fiscal_years: dict[int, FiscalYearState] = {}

    @property
    def home_currency(self) -> str:
        return self._converter.home_currency

    def on_match_event(self, event: MatchEvent) -> None:
        """Apply one match event to the affected tax year.

        Args:
            event: Event emitted by the position ledger.

        Returns:
            None: Accumulators are updated as side effect.

        Raises:
            MissingExchangeRateError: Raised when a conversion rate is missing.
        """

        match event:
            case OptionOpened():
                self._fiscal_year_option_opened(event)
            case OptionClosed():
                self._fiscal_year_option_closed(event)
            case StockClosed():
                self._fiscal_year_stock_closed(event)
            case StockOpened() | OptionRemoved():
                logger.debug("No monetary effect for event=%s", type(event).__name__)
            case _:
                assert_never(event)

    def profits(self, year: int) -> ProfitsSummary:
        """Return the totals of one tax year; untouched years are all zero."""

        fiscal_year = self._fiscal_years.get(year)
        if fiscal_year is None:
            zero_amount = money_zero(self.home_currency)
            return ProfitsSummary(
                profit_from_options=zero_amount,
                loss_from_options=zero_amount,
                profit_from_stocks=zero_amount,
            )
        return fiscal_year.fiscal_year_profits()

    def years(self) -> list[int]:
        return sorted(self._fiscal_years)

    def fiscal_year_states(self) -> list[FiscalYearState]:
        """Return detached copies of every tax year state, ordered by year."""

        return [
            FiscalYearState(
                year=state.year,
                profit_from_options=state.profit_from_options,
                loss_from_options=state.loss_from_options,
                profit_from_stocks=state.profit_from_stocks,
            )
            for _, state in sorted(self._fiscal_years.items())
        ]

    def restore(self, states: list[FiscalYearState]) -> None:
        """Replace every tax year state.

        Args:
            states: Restored states, at most one per year.

        Returns:
            None: Accumulators are replaced as side effect.

        Raises:
            ValueError: Raised on duplicate years, foreign currencies or negative losses.
        """

        restored_years: dict[int, FiscalYearState] = {}
        for state in states:
            if state.year in restored_years:
                raise ValueError(f"duplicate fiscal year {state.year}")
            for amount in (state.profit_from_options, state.loss_from_options, state.profit_from_stocks):
                if amount.currency != self.home_currency:
                    raise ValueError(
                        f"fiscal year {state.year} amount currency {amount.currency} != {self.home_currency}"
                    )
            if state.loss_from_options.money_is_negative():
                raise ValueError(f"fiscal year {state.year} loss_from_options must not be negative")
            restored_years[state.year] = FiscalYearState(
                year=state.year,
                profit_from_options=state.profit_from_options,
                loss_from_options=state.loss_from_options,
                profit_from_stocks=state.profit_from_stocks,
            )
        self._fiscal_years = restored_years

    def reset(self) -> None:
        self._fiscal_years = {}

    def _fiscal_year_for(self, year: int) -> FiscalYearState:
        fiscal_year = self._fiscal_years.get(year)
        if fiscal_year is None:
            zero_amount = money_zero(self.home_currency)
            fiscal_year = FiscalYearState(
                year=year,
                profit_from_options=zero_amount,
                loss_from_options=zero_amount,
                profit_from_stocks=zero_amount,
            )
            self._fiscal_years[year] = fiscal_year
        return fiscal_year

    def _fiscal_year_option_opened(self, event: OptionOpened) -> None:
        trade = event.trade
        premium = self._converter.convert(trade.value, trade.date)
        fiscal_year = self._fiscal_year_for(tax_resolve_year(trade.date, self._converter.report_timezone))
        fiscal_year.profit_from_options = fiscal_year.profit_from_options + premium
        logger.info(
            "Option premium year=%s key=%s premium=%s",
            fiscal_year.year,
            trade.position_key.option_key_text(),
            premium.amount,
        )

    def _fiscal_year_option_closed(self, event: OptionClosed) -> None:
        open_trade = event.open_trade
        close_trade = event.close_trade
        report_timezone = self._converter.report_timezone
        open_year = tax_resolve_year(open_trade.date, report_timezone)
        fiscal_year = self._fiscal_year_for(tax_resolve_year(close_trade.date, report_timezone))

        close_cost = self._converter.convert(
            close_trade.value.money_scale(event.quantity, close_trade.quantity),
            close_trade.date,
        )

        if open_year != fiscal_year.year:
            # premium was booked in the opening year
            loss = MonetaryAmount(amount=abs(close_cost.amount), currency=close_cost.currency)
            fiscal_year.loss_from_options = fiscal_year.loss_from_options + loss
            logger.info(
                "Option buy-back of prior-year premium year=%s open_year=%s loss=%s",
                fiscal_year.year,
                open_year,
                loss.amount,
            )
            return

        premium = self._converter.convert(
            open_trade.value.money_scale(event.quantity, open_trade.quantity),
            open_trade.date,
        )
        net = premium + close_cost
        if net.money_is_negative():
            fiscal_year.profit_from_options = fiscal_year.profit_from_options - premium
            fiscal_year.loss_from_options = fiscal_year.loss_from_options + (-net)
        else:
            fiscal_year.profit_from_options = fiscal_year.profit_from_options + close_cost
        logger.info(
            "Option close year=%s key=%s quantity=%s premium=%s close_cost=%s net=%s",
            fiscal_year.year,
            open_trade.position_key.option_key_text(),
            event.quantity,
            premium.amount,
            close_cost.amount,
            net.amount,
        )

    def _fiscal_year_stock_closed(self, event: StockClosed) -> None:
        close_trade = event.close_trade
        gain_per_share = close_trade.average_price + event.open_trade.average_price
        gain = self._converter.convert(gain_per_share.money_multiply(event.quantity), close_trade.date)
        fiscal_year = self._fiscal_year_for(tax_resolve_year(close_trade.date, self._converter.report_timezone))
        fiscal_year.profit_from_stocks = fiscal_year.profit_from_stocks + gain
        logger.info(
            "Stock close year=%s symbol=%s quantity=%s gain=%s",
            fiscal_year.year,
            close_trade.symbol,
            event.quantity,
            gain.amount,
        )


__all__ = ["FiscalYearAggregator"]
