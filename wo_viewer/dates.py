"""
Date normalizer for work-order date cells.

Every date is stored as an ISO ``YYYY-MM-DD`` string so that plain string
comparison is chronological. ``None`` is the absent-date marker; it is never
the empty string. Display formatting (MM/DD/YYYY) happens only through
``format_display``.

Input dispatch, first hit wins:
  1. native date/datetime values  -> their calendar day, time dropped
  2. numbers                      -> spreadsheet serial days from 1899-12-30
  3. text: M/D/YYYY (or M/D/YY -> 20YY), strict YYYY-MM-DD, then a generic
     pandas parse for anything that still looks like a full date
  4. anything else                -> None
"""

from __future__ import annotations

import math
import numbers
import re
import warnings
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import pandas as pd

EXCEL_EPOCH = date(1899, 12, 30)

MONTH_FIRST = "month_first"
DAY_FIRST = "day_first"
DATE_ORDERS = (MONTH_FIRST, DAY_FIRST)

TWO_DIGIT_CENTURY = 2000

SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_NAME_RE = re.compile(
    r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?(?![a-z])",
    re.IGNORECASE,
)
DIGIT_GROUP_RE = re.compile(r"\d+")


def _check_order(date_order: str) -> None:
    if date_order not in DATE_ORDERS:
        raise ValueError(
            f"Unknown date order '{date_order}'. Expected one of: {', '.join(DATE_ORDERS)}"
        )


def serial_to_iso(serial: float) -> Optional[str]:
    """Spreadsheet serial day count -> ISO date. Serial 1 is 1899-12-31."""
    try:
        return (EXCEL_EPOCH + timedelta(days=math.floor(serial))).isoformat()
    except (OverflowError, ValueError):
        return None


def _parse_slash_date(text: str, date_order: str) -> Optional[str]:
    match = SLASH_DATE_RE.fullmatch(text)
    if not match:
        return None
    first, second, year_text = match.groups()
    year = int(year_text)
    if len(year_text) == 2:
        year += TWO_DIGIT_CENTURY
    if date_order == DAY_FIRST:
        day, month = int(first), int(second)
    else:
        month, day = int(first), int(second)
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _parse_iso_date(text: str) -> Optional[str]:
    if not ISO_DATE_RE.fullmatch(text):
        return None
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        return None


def _looks_like_full_date(text: str) -> bool:
    # The generic parser fills in missing parts from "today"; only let it see
    # text that names a year plus a month and day.
    groups = DIGIT_GROUP_RE.findall(text)
    has_year = any(len(group) == 4 for group in groups)
    if not has_year:
        return False
    if MONTH_NAME_RE.search(text):
        return len(groups) >= 2
    return len(groups) >= 3


def _parse_generic_date(text: str, date_order: str) -> Optional[str]:
    if not _looks_like_full_date(text):
        return None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            parsed = pd.to_datetime(text, errors="coerce", dayfirst=date_order == DAY_FIRST)
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date().isoformat()


TEXT_STRATEGIES = (
    ("slash", _parse_slash_date),
    ("iso", lambda text, _order: _parse_iso_date(text)),
    ("generic", _parse_generic_date),
)


def parse_text_date(text: str, date_order: str = MONTH_FIRST) -> Optional[str]:
    _check_order(date_order)
    text = text.strip()
    if not text:
        return None
    for _, strategy in TEXT_STRATEGIES:
        parsed = strategy(text, date_order)
        if parsed is not None:
            return parsed
    return None


def parse_date(value: Any, date_order: str = MONTH_FIRST) -> Optional[str]:
    """
    Convert one raw cell into an ISO date string, or ``None`` when the cell
    is empty or does not hold a recognizable date. Never raises for cell
    content; raises ValueError only for an unknown ``date_order``.
    """
    _check_order(date_order)
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            return None
        return serial_to_iso(number)
    return parse_text_date(str(value), date_order)


def format_display(iso_value: Optional[str]) -> str:
    """ISO date -> MM/DD/YYYY; absent or malformed values render as ''."""
    if not iso_value:
        return ""
    try:
        parsed = date.fromisoformat(iso_value)
    except (TypeError, ValueError):
        return ""
    return f"{parsed.month:02d}/{parsed.day:02d}/{parsed.year:04d}"


def coerce_iso_date(value: Any, date_order: str = MONTH_FIRST) -> Optional[str]:
    """
    Normalize a user-supplied bound (date, datetime or text) to ISO.

    Unlike ``parse_date`` an unreadable non-empty value is an argument error.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        raise ValueError(f"Date bound must be a date or date text, got {value!r}")
    parsed = parse_date(value, date_order)
    if parsed is None:
        raise ValueError(f"Could not read date bound {value!r}")
    return parsed
