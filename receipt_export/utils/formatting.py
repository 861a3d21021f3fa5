"""Display formatting for receipt amounts and dates.

Both formatters are total: they never raise, whatever the caller passes in.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext, localcontext
from typing import Any, Optional

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# Month name to number for "March 15, 2024" / "15 Mar 2024"
MONTH_NAMES = {
    "jan": 1, "january": 1, "feb": 2, "february": 2, "mar": 3, "march": 3,
    "apr": 4, "april": 4, "may": 5, "jun": 6, "june": 6, "jul": 7, "july": 7,
    "aug": 8, "august": 8, "sep": 9, "sept": 9, "september": 9, "oct": 10, "october": 10,
    "nov": 11, "november": 11, "dec": 12, "december": 12,
}

# US convention: month first
US_NUMERIC_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4}|\d{2})$")
MONTH_DAY_YEAR = re.compile(r"^([a-zA-Z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})$")
DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})\s+([a-zA-Z]+)\.?,?\s+(\d{4})$")

CENTS = Decimal("0.01")
ZERO = Decimal("0")

# Covers every float (max ~1.8e308); longer text amounts count as zero
MAX_INTEGER_DIGITS = 400
# Room for a total of many capped amounts plus the cents
MONEY_PRECISION = MAX_INTEGER_DIGITS + 50


def money_context():
    """Decimal context wide enough to sum and quantize any accepted amount."""
    ctx = getcontext().copy()
    ctx.prec = MONEY_PRECISION
    return localcontext(ctx)


def coerce_amount(value: Any) -> Decimal:
    """Convert a raw amount to Decimal; missing or non-numeric values count as zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip().replace(",", ""))
        except InvalidOperation:
            return ZERO
        if amount.is_finite() and amount.adjusted() >= MAX_INTEGER_DIGITS:
            return ZERO
    else:
        return ZERO
    if not amount.is_finite() or amount.adjusted() >= MONEY_PRECISION - 2:
        return ZERO
    return amount


def format_currency(amount: Any) -> str:
    """Render an amount as US dollars, e.g. ``$1,234.56`` or ``-$5.00``."""
    with money_context():
        value = coerce_amount(amount).quantize(CENTS, rounding=ROUND_HALF_UP)
        sign = "-" if value < 0 else ""
        return f"{sign}${abs(value):,.2f}"


def _month_number(name: str) -> Optional[int]:
    return MONTH_NAMES.get(name.lower())


def _build_date(year: int, month: Optional[int], day: int) -> Optional[date]:
    if month is None:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_text_date(text: str) -> Optional[date]:
    # fromisoformat() only accepts a trailing "Z" from 3.11 on
    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso_text).date()
    except ValueError:
        pass

    m = US_NUMERIC_DATE.match(text)
    if m:
        month, day, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if len(m.group(3)) == 2:
            year += 2000
        return _build_date(year, month, day)

    m = MONTH_DAY_YEAR.match(text)
    if m:
        return _build_date(int(m.group(3)), _month_number(m.group(1)), int(m.group(2)))

    m = DAY_MONTH_YEAR.match(text)
    if m:
        return _build_date(int(m.group(3)), _month_number(m.group(2)), int(m.group(1)))

    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = re.sub(r"\s+", " ", value).strip()
    if not text:
        return None
    return _parse_text_date(text)


def format_date(value: Any) -> str:
    """Render a date as ``Mon D, YYYY``.

    Accepts ISO-8601, ``MM/DD/YYYY`` and month-name forms such as
    ``March 15, 2024``. Unparseable input is returned as-is; missing input
    becomes ``"Invalid Date"``.
    """
    parsed = _parse_date(value)
    if parsed is None:
        if value is None or value == "":
            return "Invalid Date"
        return str(value)
    return f"{MONTH_ABBREVIATIONS[parsed.month - 1]} {parsed.day}, {parsed.year}"
