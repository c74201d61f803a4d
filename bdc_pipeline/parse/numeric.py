"""
Lexing of numeric, date and rate cells from SOI tables.

All functions are tolerant: anything that cannot be read returns None
rather than raising.
"""

import calendar
import math
import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

from .models import InterestRate


PLACEHOLDERS = {"", "-", "--", "---", "—", "–", "n/a", "na", "n.a.", "none", "nm", "*"}

_NUMERIC_STRIP_RE = re.compile(r"[$,\s\u200b\ufeff]")
_FOOTNOTE_RE = re.compile(r"(?:\(\s*[a-z0-9]{1,3}\s*\)|\*+|†+|‡+)", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def parse_numeric(text: Optional[str]) -> Optional[float]:
    """
    Parse a monetary cell.

    "$1,234.5" -> 1234.5, "(123.4)" -> -123.4, placeholders -> None.
    Percentages and text are not numeric.
    """
    if text is None:
        return None
    cleaned = _NUMERIC_STRIP_RE.sub("", str(text))
    if cleaned.lower() in PLACEHOLDERS:
        return None

    negative = cleaned.startswith("(") and cleaned.endswith(")")
    if negative:
        cleaned = cleaned[1:-1]
        if cleaned.lower() in PLACEHOLDERS:
            return None

    # float() accepts "nan", "inf" and "1_000"; none of those are amounts
    if "_" in cleaned or not any(ch.isdigit() for ch in cleaned):
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return -value if negative else value


# =============================================================================
# Dates
# =============================================================================

MONTHS = {
    name.lower(): index
    for index, name in enumerate(calendar.month_name)
    if name
}
MONTHS.update({
    name.lower(): index
    for index, name in enumerate(calendar.month_abbr)
    if name
})
MONTHS["sept"] = 9

_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})/(\d{4})$")
_MONTH_DAY_YEAR_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")
_LONG_DATE_RE = re.compile(r"^([A-Za-z]{3,9})\.?\s+(\d{1,2}),?\s+(\d{4})$")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_MONTH_NAME_YEAR_RE = re.compile(r"^([A-Za-z]{3,9})\.?,?\s+(\d{4})$")
_YEAR_RE = re.compile(r"\b\d{4}\b")


def _last_day(year: int, month: int) -> Optional[date]:
    if not 1 <= month <= 12:
        return None
    return date(year, month, calendar.monthrange(year, month)[1])


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _clean_date_text(text: str) -> str:
    cleaned = _FOOTNOTE_RE.sub(" ", text)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    return cleaned.strip(" ,;")


def parse_date(text: Optional[str]) -> Optional[str]:
    """
    Parse a maturity cell into an ISO date string.

    Tried in order: MM/YYYY (last day of month), MM/DD/YYYY, "Month DD, YYYY",
    YYYY-MM-DD, then a lenient parse of any text carrying a four-digit year.

    Args:
        text: Raw cell text

    Returns:
        "YYYY-MM-DD" or None for placeholders and unreadable text
    """
    if text is None:
        return None
    cleaned = _clean_date_text(str(text))
    if cleaned.lower() in PLACEHOLDERS:
        return None

    match = _MONTH_YEAR_RE.match(cleaned)
    if match:
        parsed = _last_day(int(match.group(2)), int(match.group(1)))
        if parsed:
            return parsed.isoformat()

    match = _MONTH_DAY_YEAR_RE.match(cleaned)
    if match:
        year = int(match.group(3))
        if year < 100:
            year += 2000
        parsed = _safe_date(year, int(match.group(1)), int(match.group(2)))
        if parsed:
            return parsed.isoformat()

    match = _LONG_DATE_RE.match(cleaned)
    if match:
        month = MONTHS.get(match.group(1).lower())
        if month:
            parsed = _safe_date(int(match.group(3)), month, int(match.group(2)))
            if parsed:
                return parsed.isoformat()

    match = _ISO_DATE_RE.match(cleaned)
    if match:
        parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed:
            return parsed.isoformat()

    return _parse_date_fallback(cleaned)


def _parse_date_fallback(cleaned: str) -> Optional[str]:
    if not _YEAR_RE.search(cleaned):
        return None

    # "March 2027" means the end of that month, as MM/YYYY does
    match = _MONTH_NAME_YEAR_RE.match(cleaned)
    if match:
        month = MONTHS.get(match.group(1).lower())
        if month:
            parsed = _last_day(int(match.group(2)), month)
            return parsed.isoformat() if parsed else None

    try:
        parsed = date_parser.parse(cleaned, default=datetime(2000, 1, 1))
    except (ValueError, OverflowError):
        return None
    return parsed.date().isoformat()


# =============================================================================
# Interest rates
# =============================================================================

REFERENCE_RATES = ("sofr", "euribor", "libor", "prime", "sonia", "bbsy", "cdor", "saron", "tona")

# "S + 5.75%", "E+6.00%": single-letter index abbreviations
_RATE_ABBREVIATION_RE = re.compile(r"(?<![A-Za-z])([SLPE])\s*\+\s*\d")
_RATE_ABBREVIATIONS = {"S": "SOFR", "L": "LIBOR", "P": "PRIME", "E": "EURIBOR"}


def extract_interest_rate(text: Optional[str]) -> InterestRate:
    """
    Split a rate cell into the full rate text and its reference index.

    "SOFR + 5.25%" -> InterestRate("SOFR + 5.25%", "SOFR")
    "12.00% PIK"   -> InterestRate("12.00% PIK", None)
    """
    if text is None:
        return InterestRate()
    rate = _WHITESPACE_RE.sub(" ", str(text)).strip()
    if not rate:
        return InterestRate()

    lowered = rate.lower()
    for reference in REFERENCE_RATES:
        if reference in lowered:
            return InterestRate(rate=rate, reference=reference.upper())

    match = _RATE_ABBREVIATION_RE.search(rate)
    if match:
        return InterestRate(rate=rate, reference=_RATE_ABBREVIATIONS[match.group(1)])
    return InterestRate(rate=rate, reference=None)


# =============================================================================
# Company names
# =============================================================================

_TRAILING_FOOTNOTES_RE = re.compile(
    r"(?:\s*(?:\(\s*[a-z0-9]{1,3}\s*\)|\*+|†+|‡+|#))+\s*$", re.IGNORECASE
)

ENTITY_SUFFIX_RE = re.compile(
    r"(?<![\w-])("
    r"inc|incorporated|llc|l\.l\.c|lp|l\.p|llp|l\.l\.p|lllp|corp|corporation|co|company|"
    r"ltd|limited|holdings?|group|plc|gmbh|s\.a|s\.a\.r\.l|sarl|"
    r"b\.v|bv|n\.v|nv|ag|ulc|trust|partners"
    r")\.?(?![\w-])",
    re.IGNORECASE,
)


def clean_company_name(text: Optional[str]) -> str:
    """Strip trailing footnote markers like "(1)(2)" or "*" and collapse whitespace."""
    if not text:
        return ""
    name = _WHITESPACE_RE.sub(" ", str(text)).strip()
    name = _TRAILING_FOOTNOTES_RE.sub("", name)
    return name.strip(" ,;")


def has_entity_suffix(text: Optional[str]) -> bool:
    """True when the text carries a legal-entity marker (Inc, LLC, L.P., ...)."""
    if not text:
        return False
    return ENTITY_SUFFIX_RE.search(text) is not None


# =============================================================================
# Scaling
# =============================================================================

def normalize_amount(
    value: Optional[float],
    multiplier: float,
    precision: int = 1,
) -> Optional[float]:
    """
    Scale a reported amount to millions and round it.

    Precision is widened until a non-zero value keeps a significant digit,
    so scaling never turns a real position into zero.
    """
    if value is None:
        return None
    scaled = value * multiplier
    rounded = round(scaled, precision)
    while rounded == 0 and scaled != 0 and precision < 9:
        precision += 1
        rounded = round(scaled, precision)
    return rounded
