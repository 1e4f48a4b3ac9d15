"""Historical exchange-rate sources backing currency conversion.

`EcbExchangeRateRepository` reads the ECB reference rate history
(`eurofxref-hist.csv`), which quotes USD per one EUR per business day.
"""

from __future__ import annotations

import csv
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from pathlib import Path

from taxledger.analytics.interfaces import ExchangeRatePort
from taxledger.domain import ConfigurationError, MissingExchangeRateError

logger = logging.getLogger(__name__)

_ECB_DATE_COLUMN = "Date"
_ECB_MISSING_VALUES = frozenset({"", "N/A"})


class EcbExchangeRateRepository(ExchangeRatePort):
    """Daily USD to EUR rates from an ECB reference rate CSV file."""

    def __init__(self, csv_path: Path | str, currency_column: str = "USD", decimal_places: int = 4):
        """Initialize repository without reading the file.

        Args:
            csv_path: Path of `eurofxref-hist.csv`.
            currency_column: Column quoting the source currency per one EUR.
            decimal_places: Scale of returned rates, rounded half up.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when arguments are blank or out of range.
        """

        if csv_path is None or not str(csv_path).strip():
            raise ValueError("csv_path must not be blank")
        if not currency_column.strip():
            raise ValueError("currency_column must not be blank")
        if decimal_places < 0:
            raise ValueError("decimal_places must be >= 0")
        self._csv_path = Path(csv_path)
        self._currency_column = currency_column.strip()
        self._quantum = Decimal(1).scaleb(-decimal_places)
        self._rates: dict[date, Decimal] | None = None

    def rate_usd_to_home(self, rate_date: date) -> Decimal:
        """Return `1 / (USD per EUR)` for the given date.

        Args:
            rate_date: Local calendar date.

        Returns:
            Decimal: EUR per one USD, rounded half up.

        Raises:
            MissingExchangeRateError: Raised when the file has no rate for the date.
            ConfigurationError: Raised when the file cannot be read or parsed.
        """

        rate_eur_to_usd = self._ecb_rates().get(rate_date)
        if rate_eur_to_usd is None:
            raise MissingExchangeRateError(rate_date, source=str(self._csv_path))
        rate = (Decimal(1) / rate_eur_to_usd).quantize(self._quantum, rounding=ROUND_HALF_UP)
        logger.debug("usd_to_home date=%s rate=%s", rate_date.isoformat(), rate)
        return rate

    def ecb_rate_count(self) -> int:
        return len(self._ecb_rates())

    def _ecb_rates(self) -> dict[date, Decimal]:
        if self._rates is None:
            self._rates = self._ecb_read_csv()
        return self._rates

    def _ecb_read_csv(self) -> dict[date, Decimal]:
        try:
            with self._csv_path.open("r", encoding="utf-8", newline="") as csv_file:
                reader = csv.DictReader(csv_file)
                fieldnames = [name.strip() for name in (reader.fieldnames or [])]
                if _ECB_DATE_COLUMN not in fieldnames or self._currency_column not in fieldnames:
                    raise ConfigurationError(
                        f"exchange rate file {self._csv_path} must contain columns "
                        f"{_ECB_DATE_COLUMN} and {self._currency_column}",
                        details={"path": str(self._csv_path), "columns": fieldnames},
                    )
                rates: dict[date, Decimal] = {}
                for row in reader:
                    normalized_row = {
                        key.strip(): (value or "").strip() for key, value in row.items() if key is not None
                    }
                    rate_text = normalized_row.get(self._currency_column, "")
                    if rate_text in _ECB_MISSING_VALUES:
                        continue
                    rates[date.fromisoformat(normalized_row[_ECB_DATE_COLUMN])] = Decimal(rate_text)
        except OSError as error:
            raise ConfigurationError(
                f"exchange rate file {self._csv_path} cannot be read",
                details={"path": str(self._csv_path)},
            ) from error
        except ConfigurationError:
            raise
        except (ValueError, InvalidOperation) as error:
            raise ConfigurationError(
                f"exchange rate file {self._csv_path} contains an invalid row: {error}",
                details={"path": str(self._csv_path)},
            ) from error

        logger.info("Loaded %s exchange rates from %s", len(rates), self._csv_path)
        return rates


class StaticExchangeRateRepository(ExchangeRatePort):
    """Fixed rate table keyed by day or by month.

    Keys are `date` objects or `YYYY-MM` month strings; an exact day entry wins
    over its month entry.
    """

    def __init__(self, rates: dict[date | str, Decimal]):
        if rates is None:
            raise ValueError("rates must not be None")
        self._daily_rates: dict[date, Decimal] = {}
        self._monthly_rates: dict[str, Decimal] = {}
        for key, rate in rates.items():
            if isinstance(key, date):
                self._daily_rates[key] = Decimal(rate)
            else:
                self._monthly_rates[_static_validate_month_key(key)] = Decimal(rate)

    def rate_usd_to_home(self, rate_date: date) -> Decimal:
        rate = self._daily_rates.get(rate_date)
        if rate is None:
            rate = self._monthly_rates.get(rate_date.strftime("%Y-%m"))
        if rate is None:
            raise MissingExchangeRateError(rate_date, source="static rate table")
        return rate


def _static_validate_month_key(key: str) -> str:
    try:
        return datetime.strptime(str(key).strip(), "%Y-%m").strftime("%Y-%m")
    except ValueError as error:
        raise ValueError(f"month key must use YYYY-MM format: {key!r}") from error


__all__ = ["EcbExchangeRateRepository", "StaticExchangeRateRepository"]
