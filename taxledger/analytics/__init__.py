"""Analytics layer package for currency conversion and tax-year aggregation."""

from .currency_converter import CurrencyConverter
from .fiscal_year import FiscalYearAggregator
from .interfaces import ExchangeRatePort, FiscalYearState, ProfitsSummary
from .tax_dates import DEFAULT_REPORT_TIMEZONE, tax_resolve_local_date, tax_resolve_timezone, tax_resolve_year

__all__ = [
    "DEFAULT_REPORT_TIMEZONE",
    "CurrencyConverter",
    "ExchangeRatePort",
    "FiscalYearAggregator",
    "FiscalYearState",
    "ProfitsSummary",
    "tax_resolve_local_date",
    "tax_resolve_timezone",
    "tax_resolve_year",
]
