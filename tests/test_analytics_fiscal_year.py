"""Tests for home-currency conversion and per-tax-year aggregation.

These tests validate the option close rules (net gain, net loss, prior-year
premium), stock gains, tax-year boundaries in the reporting time zone and
state restore.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from taxledger.adapters import StaticExchangeRateRepository
from taxledger.analytics import (
    CurrencyConverter,
    FiscalYearAggregator,
    FiscalYearState,
    tax_resolve_local_date,
    tax_resolve_timezone,
    tax_resolve_year,
)
from taxledger.domain import (
    CallOrPut,
    MissingExchangeRateError,
    OptionTrade,
    StockTrade,
    TradeAction,
    money,
    money_zero,
    usd,
)
from taxledger.ledger import OptionClosed, OptionOpened, PositionLedger, StockClosed, StockOpened


def _eur(amount: str):
    return money(amount, "EUR")


def _build_aggregator(rates: dict | None = None) -> FiscalYearAggregator:
    """Create an aggregator with a fixed rate table.

    Args:
        rates: Optional rate table; defaults to a 1:1 rate for 2021 to 2023.

    Returns:
        FiscalYearAggregator: Aggregator converting USD to EUR in CET.
    """

    rate_table = rates or {f"{year}-{month:02d}": Decimal("1") for year in (2021, 2022, 2023) for month in range(1, 13)}
    converter = CurrencyConverter(
        exchange_rates=StaticExchangeRateRepository(rate_table),
        report_timezone=tax_resolve_timezone("CET"),
    )
    return FiscalYearAggregator(converter=converter)


def _option_trade(action: TradeAction, quantity: int, value: str, when: datetime) -> OptionTrade:
    return OptionTrade(
        date=when,
        action=action,
        root_symbol="SPY",
        expiration=date(2023, 6, 16),
        strike=Decimal("400"),
        call_or_put=CallOrPut.CALL,
        quantity=quantity,
        value=usd(value),
        average_price=usd(Decimal(value) / quantity),
        commissions=usd("0"),
        fees=usd("0"),
    )


def _stock_trade(action: TradeAction, quantity: int, average_price: str, when: datetime) -> StockTrade:
    return StockTrade(
        date=when,
        symbol="AMD",
        action=action,
        quantity=quantity,
        value=usd(Decimal(average_price) * quantity),
        average_price=usd(average_price),
        commissions=usd("0"),
        fees=usd("0"),
    )


def _apply(aggregator: FiscalYearAggregator, ledger: PositionLedger, *transactions) -> None:
    for transaction in transactions:
        for event in ledger.ledger_apply(transaction):
            aggregator.on_match_event(event)


def test_fiscal_year_scenario_a_net_gain_reduces_profit_by_buy_back_cost() -> None:
    """Book premium at open and subtract the buy-back cost when the close nets a gain.

    Returns:
        None: Assertions validate 2022 totals.

    Raises:
        AssertionError: Raised when totals deviate from the expected values.
    """

    aggregator = _build_aggregator()
    ledger = PositionLedger()

    _apply(
        aggregator,
        ledger,
        _option_trade(TradeAction.SELL_TO_OPEN, 2, "20", datetime(2022, 1, 1, 12, tzinfo=timezone.utc)),
        _option_trade(TradeAction.BUY_TO_CLOSE, 2, "-9", datetime(2022, 2, 1, 12, tzinfo=timezone.utc)),
    )

    profits = aggregator.profits(2022)
    assert profits.profit_from_options == _eur("11")
    assert profits.loss_from_options == _eur("0")
    assert profits.profit_from_stocks == _eur("0")


def test_fiscal_year_net_loss_moves_premium_out_of_profit_and_books_loss() -> None:
    aggregator = _build_aggregator()
    ledger = PositionLedger()

    _apply(
        aggregator,
        ledger,
        _option_trade(TradeAction.SELL_TO_OPEN, 2, "20", datetime(2022, 1, 3, 12, tzinfo=timezone.utc)),
        _option_trade(TradeAction.BUY_TO_CLOSE, 2, "-30", datetime(2022, 2, 1, 12, tzinfo=timezone.utc)),
    )

    profits = aggregator.profits(2022)
    assert profits.profit_from_options == _eur("0")
    assert profits.loss_from_options == _eur("10")


def test_fiscal_year_break_even_close_leaves_no_profit_and_no_loss() -> None:
    aggregator = _build_aggregator()
    ledger = PositionLedger()

    _apply(
        aggregator,
        ledger,
        _option_trade(TradeAction.SELL_TO_OPEN, 1, "15", datetime(2022, 1, 3, 12, tzinfo=timezone.utc)),
        _option_trade(TradeAction.BUY_TO_CLOSE, 1, "-15", datetime(2022, 1, 4, 12, tzinfo=timezone.utc)),
    )

    assert aggregator.profits(2022).profit_from_options == _eur("0")
    assert aggregator.profits(2022).loss_from_options == _eur("0")


def test_fiscal_year_partial_close_uses_proportional_premium() -> None:
    aggregator = _build_aggregator()
    ledger = PositionLedger()

    _apply(
        aggregator,
        ledger,
        _option_trade(TradeAction.SELL_TO_OPEN, 4, "40", datetime(2022, 1, 3, 12, tzinfo=timezone.utc)),
        _option_trade(TradeAction.BUY_TO_CLOSE, 1, "-25", datetime(2022, 1, 4, 12, tzinfo=timezone.utc)),
    )

    profits = aggregator.profits(2022)
    assert profits.profit_from_options == _eur("30")
    assert profits.loss_from_options == _eur("15")


def test_fiscal_year_buy_back_of_prior_year_premium_is_booked_as_loss() -> None:
    aggregator = _build_aggregator()
    ledger = PositionLedger()

    _apply(
        aggregator,
        ledger,
        _option_trade(TradeAction.SELL_TO_OPEN, 1, "50", datetime(2021, 12, 1, 12, tzinfo=timezone.utc)),
        _option_trade(TradeAction.BUY_TO_CLOSE, 1, "-20", datetime(2022, 1, 10, 12, tzinfo=timezone.utc)),
    )

    assert aggregator.profits(2021).profit_from_options == _eur("50")
    assert aggregator.profits(2022).profit_from_options == _eur("0")
    assert aggregator.profits(2022).loss_from_options == _eur("20")
    assert aggregator.years() == [2021, 2022]


def test_fiscal_year_stock_close_books_gain_at_close_date_rate() -> None:
    aggregator = _build_aggregator(
        {
            date(2022, 3, 1): Decimal("0.5"),
            date(2022, 6, 1): Decimal("0.8"),
        }
    )
    ledger = PositionLedger()

    _apply(
        aggregator,
        ledger,
        _stock_trade(TradeAction.BUY_TO_OPEN, 10, "-100", datetime(2022, 3, 1, 15, tzinfo=timezone.utc)),
        _stock_trade(TradeAction.SELL_TO_CLOSE, 10, "120", datetime(2022, 6, 1, 15, tzinfo=timezone.utc)),
    )

    assert aggregator.profits(2022).profit_from_stocks == _eur("160.0")
    assert aggregator.profits(2022).profit_from_options == _eur("0")


def test_fiscal_year_tax_year_follows_reporting_time_zone() -> None:
    """Assign a New Year's Eve UTC trade to the next year in CET.

    Returns:
        None: Assertions validate the year boundary.

    Raises:
        AssertionError: Raised when the UTC year is used.
    """

    late_utc = datetime(2021, 12, 31, 23, 30, tzinfo=timezone.utc)
    report_timezone = tax_resolve_timezone("CET")

    assert tax_resolve_year(late_utc, report_timezone) == 2022
    assert tax_resolve_local_date(late_utc, report_timezone) == date(2022, 1, 1)

    aggregator = _build_aggregator()
    _apply(aggregator, PositionLedger(), _option_trade(TradeAction.SELL_TO_OPEN, 1, "10", late_utc))
    assert aggregator.years() == [2022]


def test_tax_resolve_rejects_unknown_zone_and_naive_timestamps() -> None:
    with pytest.raises(ValueError):
        tax_resolve_timezone("Mars/Olympus_Mons")
    with pytest.raises(ValueError):
        tax_resolve_year(datetime(2022, 1, 1), tax_resolve_timezone("CET"))


def test_fiscal_year_untouched_year_reports_zero() -> None:
    aggregator = _build_aggregator()

    profits = aggregator.profits(1999)

    assert profits.profit_from_options == money_zero("EUR")
    assert profits.loss_from_options == money_zero("EUR")
    assert profits.profit_from_stocks == money_zero("EUR")
    assert aggregator.years() == []


def test_fiscal_year_opened_and_removed_events_have_no_monetary_effect_for_stocks() -> None:
    aggregator = _build_aggregator()
    trade = _stock_trade(TradeAction.BUY_TO_OPEN, 10, "-100", datetime(2022, 3, 1, 15, tzinfo=timezone.utc))

    aggregator.on_match_event(StockOpened(trade=trade))

    assert aggregator.years() == []


def test_fiscal_year_missing_rate_propagates() -> None:
    aggregator = _build_aggregator({"2022-01": Decimal("1")})
    trade = _option_trade(TradeAction.SELL_TO_OPEN, 1, "10", datetime(2023, 1, 5, 12, tzinfo=timezone.utc))

    with pytest.raises(MissingExchangeRateError):
        aggregator.on_match_event(OptionOpened(trade=trade))


def test_fiscal_year_restore_replaces_states_and_validates_currency() -> None:
    aggregator = _build_aggregator()
    aggregator.on_match_event(
        OptionOpened(
            trade=_option_trade(TradeAction.SELL_TO_OPEN, 1, "10", datetime(2021, 5, 5, 12, tzinfo=timezone.utc))
        )
    )
    restored_state = FiscalYearState(
        year=2022,
        profit_from_options=_eur("100"),
        loss_from_options=_eur("5"),
        profit_from_stocks=_eur("-7"),
    )

    aggregator.restore([restored_state])

    assert aggregator.years() == [2022]
    assert aggregator.profits(2022).profit_from_stocks == _eur("-7")
    with pytest.raises(ValueError):
        aggregator.restore(
            [
                FiscalYearState(
                    year=2022,
                    profit_from_options=usd("1"),
                    loss_from_options=_eur("0"),
                    profit_from_stocks=_eur("0"),
                )
            ]
        )
    with pytest.raises(ValueError):
        aggregator.restore([restored_state, restored_state])


def test_currency_converter_uses_local_date_and_rejects_foreign_currency() -> None:
    converter = CurrencyConverter(
        exchange_rates=StaticExchangeRateRepository(
            {date(2021, 12, 31): Decimal("0.5"), date(2022, 1, 1): Decimal("0.9")}
        ),
        report_timezone=tax_resolve_timezone("CET"),
    )

    converted = converter.convert(usd("10"), datetime(2021, 12, 31, 23, 30, tzinfo=timezone.utc))

    assert converted == _eur("9.0")
    with pytest.raises(ValueError):
        converter.convert(_eur("10"), datetime(2022, 1, 1, 12, tzinfo=timezone.utc))


def test_stock_closed_event_spanning_lots_books_each_lot_gain() -> None:
    aggregator = _build_aggregator()
    first_open = _stock_trade(TradeAction.BUY_TO_OPEN, 1, "-10", datetime(2022, 1, 3, 15, tzinfo=timezone.utc))
    second_open = _stock_trade(TradeAction.BUY_TO_OPEN, 1, "-20", datetime(2022, 1, 4, 15, tzinfo=timezone.utc))
    close_trade = _stock_trade(TradeAction.SELL_TO_CLOSE, 2, "25", datetime(2022, 1, 5, 15, tzinfo=timezone.utc))

    aggregator.on_match_event(StockClosed(open_trade=first_open, close_trade=close_trade, quantity=1))
    aggregator.on_match_event(StockClosed(open_trade=second_open, close_trade=close_trade, quantity=1))

    assert aggregator.profits(2022).profit_from_stocks == _eur("20")


def test_option_closed_event_is_scaled_by_close_trade_quantity() -> None:
    aggregator = _build_aggregator()
    open_trade = _option_trade(TradeAction.SELL_TO_OPEN, 1, "30", datetime(2022, 1, 3, 12, tzinfo=timezone.utc))
    close_trade = _option_trade(TradeAction.BUY_TO_CLOSE, 3, "-30", datetime(2022, 1, 9, 12, tzinfo=timezone.utc))

    aggregator.on_match_event(OptionOpened(trade=open_trade))
    aggregator.on_match_event(OptionClosed(open_trade=open_trade, close_trade=close_trade, quantity=1))

    assert aggregator.profits(2022).profit_from_options == _eur("20")
