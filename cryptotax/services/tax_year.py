"""
cryptotax/services/tax_year.py

Resolves statutory tax years, which run from 1 March to the end of February.
Example: 2024-03-01 -> 2025-02-28 belongs to tax year label "2024/2025".

Pure functions; total over valid calendar dates.
"""

from datetime import date, datetime, timezone
from typing import Union

from cryptotax.constants import TAX_YEAR_START_MONTH

DateLike = Union[date, datetime]


def is_leap_year(year: int) -> bool:
    """Gregorian rule: divisible by 4, not by 100 unless also by 400."""
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def tax_year_start(d: DateLike) -> int:
    """
    Calendar year in which the tax year containing `d` began.
    March onwards belongs to the current year; January and February to the previous one.
    """
    if d.month >= TAX_YEAR_START_MONTH:
        return d.year
    return d.year - 1


def label_for_start_year(start_year: int) -> str:
    return f"{start_year:04d}/{start_year + 1:04d}"


def tax_year_label(d: DateLike) -> str:
    """Label such as "2024/2025" for the tax year containing `d`."""
    return label_for_start_year(tax_year_start(d))


def tax_year_start_date(start_year: int) -> datetime:
    return datetime(start_year, TAX_YEAR_START_MONTH, 1, tzinfo=timezone.utc)


def tax_year_end_date(start_year: int) -> datetime:
    """Last second of February in start_year + 1 (the 29th in leap years)."""
    end_year = start_year + 1
    day = 29 if is_leap_year(end_year) else 28
    return datetime(end_year, 2, day, 23, 59, 59, tzinfo=timezone.utc)
