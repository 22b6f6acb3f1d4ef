"""
Partial-date parsing and calendar interval utilities.

Source dates arrive with three granularities: full date, year + month, and
year only. Missing parts are imputed deterministically:

    year only      -> June 30 of that year
    year + month   -> the 15th of that month
    full date      -> as-is

Intervals are measured in calendar years: whole anniversaries plus the
fraction of the following anniversary year, counted in days.
"""

import calendar
import re
from datetime import date, datetime
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from helpers_hof import constants
from helpers_hof.data_utils import validate_and_clean_strings

PRECISION_DAY = 'day'
PRECISION_MONTH = 'month'
PRECISION_YEAR = 'year'

_YEAR_FIRST = re.compile(r'^(\d{4})(?:[-/](\d{0,2})(?:[-/](\d{0,2}))?)?$')
_COMPACT = re.compile(r'^(\d{4})(\d{2})(\d{2})$')
_US = re.compile(r'^(\d{0,2})/(\d{0,2})/(\d{4})$')

_MIN_YEAR = pd.Timestamp.min.year + 1
_MAX_YEAR = pd.Timestamp.max.year - 1


def _split_date_text(text: str) -> Optional[Tuple[int, int, int]]:
    """Return (year, month, day) with 0 for unknown parts, or None if unrecognised."""
    # Drop a trailing time component ("1975-01-01 00:00:00", "1975-01-01T00:00")
    text = re.split(r'[T ]', text, maxsplit=1)[0]

    match = _COMPACT.match(text)
    if match:
        return int(match.group(1)), int(match.group(2)), int(match.group(3))

    match = _YEAR_FIRST.match(text)
    if match:
        year, month, day = match.groups()
        return int(year), int(month or 0), int(day or 0)

    match = _US.match(text)
    if match:
        month, day, year = match.groups()
        return int(year), int(month or 0), int(day or 0)

    return None


def parse_partial_date(value, config=None) -> Tuple[pd.Timestamp, Optional[str]]:
    """
    Parse a possibly-partial date into a single calendar date.

    Args:
        value: raw text ("1904-09-15", "1904-09", "1904", "09/15/1904",
            "//1904", "19040900"), a year number, or an already-typed date.
        config: PipelineConfig supplying the imputation policy (defaults to
            the module constants).

    Returns:
        (timestamp, precision); (NaT, None) when the value is missing or
        fails validity checks.
    """
    value = validate_and_clean_strings(value)
    if value is None:
        return pd.NaT, None

    if isinstance(value, (pd.Timestamp, datetime, date, np.datetime64)):
        ts = pd.Timestamp(value)
        if pd.isna(ts):
            return pd.NaT, None
        return ts.normalize(), PRECISION_DAY

    if isinstance(value, (int, np.integer, float, np.floating)):
        if float(value) != int(value):
            return pd.NaT, None
        value = str(int(value))

    parts = _split_date_text(str(value))
    if parts is None:
        return pd.NaT, None
    year, month, day = parts

    if not (_MIN_YEAR <= year <= _MAX_YEAR):
        return pd.NaT, None

    year_month = getattr(config, 'year_only_impute_month', constants.YEAR_ONLY_IMPUTE_MONTH)
    year_day = getattr(config, 'year_only_impute_day', constants.YEAR_ONLY_IMPUTE_DAY)
    month_day = getattr(config, 'month_only_impute_day', constants.MONTH_ONLY_IMPUTE_DAY)

    # A day without a month carries no usable information
    if month == 0:
        return pd.Timestamp(year, year_month, year_day), PRECISION_YEAR

    if not 1 <= month <= 12:
        return pd.NaT, None

    if day == 0:
        return pd.Timestamp(year, month, month_day), PRECISION_MONTH

    if day > calendar.monthrange(year, month)[1]:
        return pd.NaT, None

    return pd.Timestamp(year, month, day), PRECISION_DAY


def _anniversary(start: pd.Timestamp, years: int) -> pd.Timestamp:
    """start shifted by whole years; Feb 29 falls back to Feb 28 in common years."""
    year = start.year + years
    day = min(start.day, calendar.monthrange(year, start.month)[1])
    return pd.Timestamp(year, start.month, day)


def years_between(start, end) -> float:
    """
    Exact calendar interval from start to end in years.

    Whole years are counted by anniversaries; the remainder is the number of
    days past the last anniversary divided by the length (365 or 366 days) of
    the anniversary year it falls in. Negative when end precedes start; NaN
    when either endpoint is missing.
    """
    if start is None or end is None or pd.isna(start) or pd.isna(end):
        return np.nan
    start = pd.Timestamp(start).normalize()
    end = pd.Timestamp(end).normalize()

    if end < start:
        return -years_between(end, start)

    whole = end.year - start.year
    if _anniversary(start, whole) > end:
        whole -= 1

    last = _anniversary(start, whole)
    following = _anniversary(start, whole + 1)
    fraction = (end - last).days / (following - last).days
    return whole + fraction


def year_of(ts) -> Optional[int]:
    return None if ts is None or pd.isna(ts) else int(pd.Timestamp(ts).year)
