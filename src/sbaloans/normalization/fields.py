"""
Field-level coercion of raw text into typed values.

Each parser is total: it never raises and always returns a ParseResult
carrying the typed value (or None) together with the raw input, so
callers can count and diagnose values that could not be parsed.
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Generic, TypeVar

import pandas as pd

T = TypeVar("T")

_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2,4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_INTEGER = re.compile(r"^\d+$")
_DECIMAL_INTEGER = re.compile(r"^\d+\.\d*$")
_FISCAL_YEAR = re.compile(r"^\d{4}$")
_CURRENCY = re.compile(r"^[$,\d.\s]+$")
_NON_AMOUNT = re.compile(r"[^\d.]")
_NAICS = re.compile(r"^\d{2,6}$")
_STATE = re.compile(r"^[A-Z]{2}$")

CENTS = Decimal("0.01")

# Range the typed output columns can hold (datetime64[ns], Int64)
FIRST_DATE = (pd.Timestamp.min + pd.Timedelta(days=1)).date()
LAST_DATE = pd.Timestamp.max.date()
INT64_MAX = 2**63 - 1
FIRST_FISCAL_YEAR = 1000


class ParseStatus(str, Enum):
    """Outcome of parsing one raw value."""

    PARSED = "parsed"
    BLANK = "blank"  # absent or whitespace-only
    INVALID = "invalid"  # present but unparseable


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """
    Typed value plus diagnostics for one raw field.

    Attributes:
        value: Parsed value, or None when blank or invalid.
        raw: The original raw value.
        status: Whether the value parsed, was blank, or was invalid.
    """

    value: T | None
    raw: str | None
    status: ParseStatus

    @property
    def ok(self) -> bool:
        """True when a value was produced."""
        return self.status is ParseStatus.PARSED

    @property
    def invalid(self) -> bool:
        """True when a non-blank value could not be parsed."""
        return self.status is ParseStatus.INVALID


def parsed(value: T, raw: str | None) -> ParseResult[T]:
    return ParseResult(value, raw, ParseStatus.PARSED)


def blank(raw: str | None) -> ParseResult[T]:
    return ParseResult(None, raw, ParseStatus.BLANK)


def invalid(raw: str | None) -> ParseResult[T]:
    return ParseResult(None, raw, ParseStatus.INVALID)


def clean(raw: str | None) -> str | None:
    """Trim a raw value; whitespace-only becomes None."""
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _expand_year(digits: str) -> int:
    """Resolve 2 and 3 digit years to the year nearest 2020."""
    year = int(digits)
    if len(digits) == 4:
        return year
    if len(digits) == 2:
        return year + 2000 if year < 70 else year + 1900
    return year + 2000 if year < 520 else year + 1000


def parse_date(raw: str | None) -> ParseResult[date]:
    """
    Parse ``MM/DD/YYYY`` (1-2 digit month/day, 2-4 digit year) or ``YYYY-MM-DD...``.

    Shape is matched first; a value of the right shape that names no
    real calendar day (``13/45/2020``) is invalid, never rolled over.
    Days outside FIRST_DATE..LAST_DATE (sentinels such as ``9999-12-31``)
    are invalid as well.

    Args:
        raw: Raw field value.

    Returns:
        ParseResult with a ``datetime.date``.
    """
    text = clean(raw)
    if text is None:
        return blank(raw)

    match = _US_DATE.match(text)
    if match:
        month, day, year = int(match[1]), int(match[2]), _expand_year(match[3])
    else:
        match = _ISO_DATE.match(text)
        if not match:
            return invalid(raw)
        year, month, day = int(match[1]), int(match[2]), int(match[3])

    try:
        value = date(year, month, day)
    except ValueError:
        return invalid(raw)
    if not FIRST_DATE <= value <= LAST_DATE:
        return invalid(raw)
    return parsed(value, raw)


def _round_half_away(text: str) -> int:
    return int(Decimal(text).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def parse_integer(raw: str | None) -> ParseResult[int]:
    """
    Parse a digit string, rounding a decimal part half away from zero.

    ``"36"`` -> 36, ``"36.6"`` -> 37, ``"2.5"`` -> 3. Signs, exponents and
    any other characters make the value invalid, and so does a value
    above INT64_MAX.
    """
    text = clean(raw)
    if text is None:
        return blank(raw)
    if _INTEGER.match(text):
        value = int(text)
    elif _DECIMAL_INTEGER.match(text):
        try:
            value = _round_half_away(text)
        except InvalidOperation:
            return invalid(raw)
    else:
        return invalid(raw)
    if value > INT64_MAX:
        return invalid(raw)
    return parsed(value, raw)


def parse_term_months(raw: str | None) -> ParseResult[int]:
    """Parse a loan term; a term of zero months is treated as unparseable."""
    result = parse_integer(raw)
    if result.ok and result.value == 0:
        return invalid(raw)
    return result


def parse_bounded_integer(raw: str | None, ceiling: int) -> ParseResult[int]:
    """Parse an integer and clamp it to ``[0, ceiling]``."""
    result = parse_integer(raw)
    if not result.ok or result.value is None:
        return result
    return parsed(max(0, min(result.value, ceiling)), raw)


def parse_fiscal_year(raw: str | None) -> ParseResult[int]:
    """Parse a four-digit fiscal year no earlier than FIRST_FISCAL_YEAR."""
    text = clean(raw)
    if text is None:
        return blank(raw)
    if _FISCAL_YEAR.match(text) and int(text) >= FIRST_FISCAL_YEAR:
        return parsed(int(text), raw)
    return invalid(raw)


def parse_currency(raw: str | None) -> ParseResult[Decimal]:
    """
    Parse a non-negative currency amount to two decimal places.

    Accepts bare amounts (``"1234.5"``) and formatted ones
    (``"$1,234.50"``): every character other than digits and the decimal
    point is stripped before parsing. Negative, empty-after-stripping and
    malformed values are invalid.
    """
    text = clean(raw)
    if text is None:
        return blank(raw)
    if not _CURRENCY.match(text):
        return invalid(raw)

    digits = _NON_AMOUNT.sub("", text)
    if not digits or digits == ".":
        return invalid(raw)
    try:
        amount = Decimal(digits).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return invalid(raw)
    return parsed(amount, raw)


def parse_state_code(raw: str | None) -> ParseResult[str]:
    """
    Upper-case and truncate to a two-letter code.

    Only the shape is checked; whether the code names a real state is a
    downstream quality check.
    """
    text = clean(raw)
    if text is None:
        return blank(raw)
    code = text.upper()[:2]
    if not _STATE.match(code):
        return invalid(raw)
    return parsed(code, raw)


def parse_naics(raw: str | None) -> ParseResult[str]:
    """Keep the first six characters; valid codes are 2-6 digits."""
    text = clean(raw)
    if text is None:
        return blank(raw)
    code = text[:6]
    if not _NAICS.match(code):
        return invalid(raw)
    return parsed(code, raw)


def parse_text(raw: str | None, max_length: int) -> ParseResult[str]:
    """Trim and cap free text; blank values become absent."""
    text = clean(raw)
    if text is None:
        return blank(raw)
    return parsed(text[:max_length].rstrip(), raw)
