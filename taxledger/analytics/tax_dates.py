"""Time zone helpers for tax-year and rate-date boundaries."""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_REPORT_TIMEZONE = "CET"


def tax_resolve_timezone(timezone_name: str) -> ZoneInfo:
    """Resolve an IANA time zone name.

    Args:
        timezone_name: Time zone name such as `CET` or `Europe/Berlin`.

    Returns:
        ZoneInfo: Resolved time zone.

    Raises:
        ValueError: Raised when the name is blank or unknown.
    """

    normalized_name = (timezone_name or "").strip()
    if not normalized_name:
        raise ValueError("timezone_name must not be blank")
    try:
        return ZoneInfo(normalized_name)
    except (ZoneInfoNotFoundError, ValueError) as error:
        raise ValueError(f"unknown time zone: {normalized_name}") from error


def tax_resolve_local_date(timestamp: datetime, report_timezone: ZoneInfo) -> date:
    """Return the calendar date of an offset-aware timestamp in the report time zone.

    Args:
        timestamp: Offset-aware timestamp.
        report_timezone: Reporting time zone.

    Returns:
        date: Local calendar date.

    Raises:
        ValueError: Raised when timestamp is offset-naive.
    """

    if timestamp.tzinfo is None or timestamp.utcoffset() is None:
        raise ValueError("timestamp must be offset-aware")
    return timestamp.astimezone(report_timezone).date()


def tax_resolve_year(timestamp: datetime, report_timezone: ZoneInfo) -> int:
    """Return the tax year a timestamp falls into."""

    return tax_resolve_local_date(timestamp, report_timezone).year


__all__ = [
    "DEFAULT_REPORT_TIMEZONE",
    "tax_resolve_local_date",
    "tax_resolve_timezone",
    "tax_resolve_year",
]
