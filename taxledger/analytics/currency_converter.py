"""USD to home-currency conversion at the rate of a transaction's local date."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from taxledger.domain import EUR, USD, MonetaryAmount

from .interfaces import ExchangeRatePort
from .tax_dates import tax_resolve_local_date


class CurrencyConverter:
    """Converts source-currency amounts with a historical rate collaborator."""

    def __init__(
        self,
        exchange_rates: ExchangeRatePort,
        report_timezone: ZoneInfo,
        home_currency: str = EUR,
        source_currency: str = USD,
    ):
        """Initialize converter.

        Args:
            exchange_rates: Historical rate source.
            report_timezone: Time zone that decides the rate date.
            home_currency: Target currency code.
            source_currency: Convertible currency code.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies are missing or currency codes are blank.
        """

        if exchange_rates is None:
            raise ValueError("exchange_rates must not be None")
        if report_timezone is None:
            raise ValueError("report_timezone must not be None")
        if not home_currency.strip():
            raise ValueError("home_currency must not be blank")
        if not source_currency.strip():
            raise ValueError("source_currency must not be blank")
        self._exchange_rates = exchange_rates
        self._report_timezone = report_timezone
        self._home_currency = home_currency.strip().upper()
        self._source_currency = source_currency.strip().upper()

    @property
    def home_currency(self) -> str:
        return self._home_currency

    @property
    def report_timezone(self) -> ZoneInfo:
        return self._report_timezone

    def convert(self, amount: MonetaryAmount, at: datetime) -> MonetaryAmount:
        """Convert an amount at the rate of the local date of `at`.

        The result is not rounded; rounding belongs to presentation.

        Args:
            amount: Amount in the source currency.
            at: Offset-aware timestamp of the transaction owning the amount.

        Returns:
            MonetaryAmount: Amount in the home currency.

        Raises:
            ValueError: Raised when the amount currency is not the source currency.
            MissingExchangeRateError: Raised when no rate covers the date.
        """

        if amount.currency != self._source_currency:
            raise ValueError(
                f"cannot convert {amount.currency}; only {self._source_currency} amounts are convertible"
            )
        rate = self._exchange_rates.rate_usd_to_home(tax_resolve_local_date(at, self._report_timezone))
        return MonetaryAmount(amount=amount.amount * rate, currency=self._home_currency)


__all__ = ["CurrencyConverter"]
