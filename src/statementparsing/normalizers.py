"""
Date and amount normalization for statement text.

Statements use the comma-decimal / period-thousands convention
(``1.234,56``) and day-first dates. None of these functions raise on bad
input; they return ``None`` instead.
"""

import math
import numbers
import re
import unicodedata
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

EXCEL_EPOCH = date(1899, 12, 30)

# Tried in order, first valid match wins.
_DATE_PATTERNS = [
    (re.compile(r"^(\d{2})/(\d{2})/(\d{4})$"), ("day", "month", "year")),
    (re.compile(r"^(\d{2})-(\d{2})-(\d{4})$"), ("day", "month", "year")),
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"), ("year", "month", "day")),
    (re.compile(r"^(\d{2})/(\d{2})/(\d{2})$"), ("day", "month", "short_year")),
]

MONTH_ABBREVIATIONS = {
    "jan": 1,
    "fev": 2,
    "mar": 3,
    "abr": 4,
    "mai": 5,
    "jun": 6,
    "jul": 7,
    "ago": 8,
    "set": 9,
    "out": 10,
    "nov": 11,
    "dez": 12,
}

_CURRENCY_PATTERN = re.compile(r"R\$|US\$|[$€£¥]|\s")
_DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")


def parse_date(text: str | None) -> date | None:
    """
    Parse a statement date.

    Supported patterns: DD/MM/YYYY, DD-MM-YYYY, YYYY-MM-DD and DD/MM/YY
    (century taken as 2000+YY).

    Returns:
        The calendar date, or None when nothing matches or the date does
        not exist (e.g. 32/13/2024).
    """
    if not text:
        return None
    text = text.strip()

    for pattern, roles in _DATE_PATTERNS:
        match = pattern.match(text)
        if not match:
            continue
        parts = dict(zip(roles, (int(group) for group in match.groups())))
        year = parts.get("year", 2000 + parts.get("short_year", 0))
        try:
            return date(year, parts["month"], parts["day"])
        except ValueError:
            continue

    return None


def parse_day_month(text: str | None, year: int | None = None) -> date | None:
    """Parse a ``DD MMM`` card statement date with Portuguese month names."""
    if not text:
        return None
    match = re.match(r"^(\d{2})\s+(\w{3})", text.strip())
    if not match:
        return None

    month = MONTH_ABBREVIATIONS.get(strip_accents(match.group(2)).lower())
    if month is None:
        return None
    try:
        return date(year or date.today().year, month, int(match.group(1)))
    except ValueError:
        return None


def excel_serial_to_date(serial) -> date | None:
    """Convert a spreadsheet date serial (days since 1899-12-30)."""
    if isinstance(serial, bool) or not isinstance(serial, numbers.Real):
        return None
    if math.isnan(serial) or serial < 1:
        return None
    try:
        return EXCEL_EPOCH + timedelta(days=int(serial))
    except OverflowError:
        return None


def coerce_cell_date(value) -> date | None:
    """Turn a spreadsheet cell into a date: native date, serial or text."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return excel_serial_to_date(value)
    if isinstance(value, str):
        return parse_date(value)
    return None


def parse_amount(text: str | None) -> Decimal | None:
    """
    Parse a comma-decimal amount such as ``R$ -1.234,56``.

    Currency symbols and whitespace are stripped, thousands periods removed
    and the decimal comma replaced by a period.

    Returns:
        Signed Decimal, or None when the text is not a number.
    """
    if text is None:
        return None
    cleaned = _CURRENCY_PATTERN.sub("", str(text))
    cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    return _to_decimal(cleaned)


def parse_interchange_amount(text: str | None) -> Decimal | None:
    """Parse a period-decimal signed amount (``+1500.00``, ``-23.5``)."""
    if text is None:
        return None
    cleaned = _CURRENCY_PATTERN.sub("", str(text))
    if "," in cleaned and "." not in cleaned:
        cleaned = cleaned.replace(",", ".")
    return _to_decimal(cleaned)


def coerce_cell_amount(value) -> Decimal | None:
    """Use numeric spreadsheet cells directly, parse anything else as text."""
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        if math.isnan(value):
            return None
        return Decimal(str(value))
    if isinstance(value, str):
        return parse_amount(value)
    return None


def format_amount(value: Decimal) -> str:
    """Format an amount the way ``parse_amount`` reads it (``-1.234,56``)."""
    sign = "-" if value < 0 else ""
    text = f"{abs(value):,f}"
    return sign + text.replace(",", "_").replace(".", ",").replace("_", ".")


def strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def contains_any(text: str, tokens) -> bool:
    """Case- and accent-insensitive substring check."""
    haystack = strip_accents(text).lower()
    return any(strip_accents(token).lower() in haystack for token in tokens)


def contains_word(text: str, tokens) -> bool:
    """Like ``contains_any``, but tokens must match on word boundaries."""
    haystack = strip_accents(text).lower()
    return any(
        re.search(rf"\b{re.escape(strip_accents(token).lower())}\b", haystack)
        for token in tokens
    )


def _to_decimal(cleaned: str) -> Decimal | None:
    if not _DECIMAL_PATTERN.match(cleaned):
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None
