"""Reporting periods."""

from __future__ import annotations

from datetime import date, timedelta

from ghgcalc.models import MAX_REFERENCE_YEAR, MIN_REFERENCE_YEAR


def validate_year(year: int) -> int:
    if not MIN_REFERENCE_YEAR <= year <= MAX_REFERENCE_YEAR:
        raise ValueError(
            f"year must be between {MIN_REFERENCE_YEAR} and {MAX_REFERENCE_YEAR}, got {year}"
        )
    return year


def reporting_window(year: int, start_month: int = 1) -> tuple[date, date]:
    """First and last day (inclusive) of a reporting year.

    With start_month=1 this is the calendar year YYYY-01-01 .. YYYY-12-31;
    otherwise the fiscal year that starts in `start_month` of `year`.

    Raises:
        ValueError: If year is out of range or start_month is not 1..12
    """
    validate_year(year)
    if not 1 <= start_month <= 12:
        raise ValueError(f"start_month must be between 1 and 12, got {start_month}")

    start = date(year, start_month, 1)
    if start_month == 1:
        return start, date(year, 12, 31)
    return start, date(year + 1, start_month, 1) - timedelta(days=1)
