"""
Ordered pattern-rule tables for enumerated fields.

Each table is a plain list of (predicate, result) rules evaluated top to
bottom on the trimmed, upper-cased raw value. The first matching rule
wins, so the order of a table is part of its meaning: rules overlap
(``"NEW"`` also contains ``"NEW"``, ``"2"`` is also a number).
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar

from sbaloans.normalization.fields import ParseResult, ParseStatus, clean, parsed

R = TypeVar("R")

_NUMBER = re.compile(r"^\d+(\.\d+)?$")


class BusinessType(str, Enum):
    """Business age classification at the time of approval."""

    NEW = "New"
    EXISTING = "Existing"
    UNKNOWN = "Unknown"


class LoanStatus(str, Enum):
    """Loan outcome."""

    PAID_IN_FULL = "PaidInFull"
    CHARGED_OFF = "ChargedOff"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class PatternRule(Generic[R]):
    """
    One classification rule.

    Attributes:
        predicate: Test applied to the trimmed, upper-cased value.
        result: Value returned when the predicate holds.
        description: Human-readable form of the predicate.
    """

    predicate: Callable[[str], bool]
    result: R
    description: str = ""

    def matches(self, value: str) -> bool:
        return self.predicate(value)


def exact(*values: str) -> Callable[[str], bool]:
    """Whole-value match against any of ``values``."""
    wanted = frozenset(v.upper() for v in values)
    return lambda value: value in wanted


def contains(*parts: str) -> Callable[[str], bool]:
    """Substring match requiring every one of ``parts``."""
    wanted = tuple(p.upper() for p in parts)
    return lambda value: all(p in value for p in wanted)


def numeric(test: Callable[[Decimal], bool]) -> Callable[[str], bool]:
    """Match values that read as a non-negative number satisfying ``test``."""

    def predicate(value: str) -> bool:
        return bool(_NUMBER.match(value)) and test(Decimal(value))

    return predicate


BUSINESS_TYPE_RULES: list[PatternRule[BusinessType]] = [
    PatternRule(
        exact("NEW BUSINESS", "STARTUP", "NEW", "2"),
        BusinessType.NEW,
        "exact NEW BUSINESS/STARTUP/NEW/2",
    ),
    PatternRule(
        exact("EXISTING BUSINESS", "EXISTING", "1"),
        BusinessType.EXISTING,
        "exact EXISTING BUSINESS/EXISTING/1",
    ),
    PatternRule(contains("NEW"), BusinessType.NEW, "contains NEW"),
    PatternRule(contains("EXIST"), BusinessType.EXISTING, "contains EXIST"),
    # Business age in years
    PatternRule(numeric(lambda n: n < 2), BusinessType.NEW, "number < 2"),
    PatternRule(numeric(lambda n: n >= 2), BusinessType.EXISTING, "number >= 2"),
]

LOAN_STATUS_RULES: list[PatternRule[LoanStatus]] = [
    PatternRule(contains("PIF"), LoanStatus.PAID_IN_FULL, "contains PIF"),
    PatternRule(contains("PAID", "FULL"), LoanStatus.PAID_IN_FULL, "contains PAID and FULL"),
    PatternRule(contains("CHGOFF"), LoanStatus.CHARGED_OFF, "contains CHGOFF"),
    PatternRule(contains("CHARGE", "OFF"), LoanStatus.CHARGED_OFF, "contains CHARGE and OFF"),
    # Still active: committed but not disbursed, or cancelled
    PatternRule(exact("COMMIT"), LoanStatus.UNKNOWN, "exact COMMIT"),
    PatternRule(exact("CANCLD"), LoanStatus.UNKNOWN, "exact CANCLD"),
    # Policy choice: exempt loans count as repaid
    PatternRule(exact("EXEMPT"), LoanStatus.PAID_IN_FULL, "exact EXEMPT"),
]

REVOLVING_LINE_RULES: list[PatternRule[bool]] = [
    PatternRule(exact("Y", "YES", "1", "TRUE", "REVOLVING"), True, "exact Y/YES/1/TRUE/REVOLVING"),
]

LOW_DOC_RULES: list[PatternRule[bool]] = [
    PatternRule(exact("Y", "YES", "1", "TRUE"), True, "exact Y/YES/1/TRUE"),
    PatternRule(contains("LOWDOC"), True, "contains LOWDOC"),
    PatternRule(contains("LOW DOC"), True, "contains LOW DOC"),
]


def classify(
    raw: str | None,
    rules: Sequence[PatternRule[R]],
    default: R,
) -> ParseResult[R]:
    """
    Classify a raw value with the first matching rule.

    Matching is case-insensitive on the trimmed value. Values that match
    no rule fall back to ``default``; a fallback is a classification, not
    a parse failure, so it is reported as parsed. Blank input yields the
    default with a BLANK status.

    Args:
        raw: Raw field value.
        rules: Ordered rule table.
        default: Result when nothing matches.

    Returns:
        ParseResult holding the classification.
    """
    text = clean(raw)
    if text is None:
        return ParseResult(default, raw, ParseStatus.BLANK)

    value = text.upper()
    for rule in rules:
        if rule.matches(value):
            return parsed(rule.result, raw)
    return parsed(default, raw)
