"""
Record-level transformation.

Applies the field parsers to one raw record, enforces the cross-field
derivation rules and decides whether the record is accepted. Only a
missing lender-location identifier rejects a record; every other problem
degrades the affected field to absent/unknown.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

from sbaloans.config.settings import LimitsConfig
from sbaloans.normalization.columns import LOGICAL_FIELDS, ColumnMapper, FieldKind
from sbaloans.normalization.fields import (
    ParseResult,
    clean,
    parse_bounded_integer,
    parse_currency,
    parse_date,
    parse_fiscal_year,
    parse_integer,
    parse_naics,
    parse_state_code,
    parse_term_months,
    parse_text,
)
from sbaloans.normalization.rules import (
    BUSINESS_TYPE_RULES,
    LOAN_STATUS_RULES,
    LOW_DOC_RULES,
    REVOLVING_LINE_RULES,
    BusinessType,
    LoanStatus,
    PatternRule,
    classify,
)

T = TypeVar("T")

MISSING_IDENTIFIER = "missing required identifier"

# Parsers of the kinds that take no per-field setting
KIND_PARSERS: dict[FieldKind, Callable[[str | None], ParseResult[Any]]] = {
    FieldKind.STATE: parse_state_code,
    FieldKind.NAICS: parse_naics,
    FieldKind.DATE: parse_date,
    FieldKind.FISCAL_YEAR: parse_fiscal_year,
    FieldKind.INTEGER: parse_integer,
    FieldKind.TERM: parse_term_months,
    FieldKind.CURRENCY: parse_currency,
}

# Rule table and fallback of every ENUM and FLAG field
CLASSIFIED_FIELDS: dict[str, tuple[Sequence[PatternRule[Any]], Any]] = {
    "business_age": (BUSINESS_TYPE_RULES, BusinessType.UNKNOWN),
    "loan_status": (LOAN_STATUS_RULES, LoanStatus.UNKNOWN),
    "revolving_line": (REVOLVING_LINE_RULES, False),
    "low_doc": (LOW_DOC_RULES, False),
}

# Logical fields copied onto the canonical attribute of the same name
DIRECT_FIELDS: tuple[str, ...] = (
    "business_name",
    "city",
    "zip",
    "bank_name",
    "bank_state",
    "naics",
    "franchise_code",
    "approval_date",
    "approval_fiscal_year",
    "disbursement_date",
    "chargeoff_date",
    "term_months",
    "sba_approved",
    "chargeoff_amount",
)

@dataclass(frozen=True)
class CanonicalLoan:
    """
    A normalized loan record.

    Every optional attribute is None when the source value was absent or
    unparseable. ``id`` stays None until identities are assigned.
    """

    business_name: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    bank_name: str | None = None
    bank_state: str | None = None
    naics: str | None = None
    franchise_code: str | None = None
    approval_date: date | None = None
    approval_fiscal_year: int | None = None
    disbursement_date: date | None = None
    chargeoff_date: date | None = None
    term_months: int | None = None
    num_employees: int | None = None
    business_type: BusinessType = BusinessType.UNKNOWN
    jobs_created: int = 0
    jobs_retained: int = 0
    revolving_line: bool = False
    low_doc: bool = False
    gross_approved: Decimal | None = None
    sba_approved: Decimal | None = None
    disbursement_gross: Decimal | None = None
    chargeoff_amount: Decimal | None = None
    loan_status: LoanStatus = LoanStatus.UNKNOWN
    id: str | None = None


# Canonical column order of the output table
CANONICAL_COLUMNS: tuple[str, ...] = (
    "id",
    "business_name",
    "city",
    "state",
    "zip",
    "bank_name",
    "bank_state",
    "naics",
    "franchise_code",
    "approval_date",
    "approval_fiscal_year",
    "disbursement_date",
    "term_months",
    "num_employees",
    "business_type",
    "jobs_created",
    "jobs_retained",
    "revolving_line",
    "low_doc",
    "gross_approved",
    "sba_approved",
    "disbursement_gross",
    "loan_status",
    "chargeoff_date",
    "chargeoff_amount",
)


@dataclass(frozen=True)
class Rejection:
    """A raw record that was dropped, with the reason."""

    reason: str
    raw: Mapping[str, str | None] = field(default_factory=dict)


@dataclass(frozen=True)
class TransformResult:
    """
    Outcome of transforming one raw record.

    Exactly one of ``loan`` and ``rejection`` is set.

    Attributes:
        loan: The accepted record.
        rejection: Why the record was dropped.
        invalid_fields: Canonical fields whose raw value was present but
            unparseable.
    """

    loan: CanonicalLoan | None = None
    rejection: Rejection | None = None
    invalid_fields: tuple[str, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.loan is not None


class RecordTransformer:
    """
    Transforms raw records of one generation into canonical loans.

    Args:
        mapper: Raw -> logical column mapper of the generation.
        limits: Length caps and ceilings.
    """

    def __init__(self, mapper: ColumnMapper, limits: LimitsConfig | None = None) -> None:
        self.mapper = mapper
        self.limits = limits or LimitsConfig()

    @classmethod
    def for_field_map(
        cls, field_map: Mapping[str, str], limits: LimitsConfig | None = None
    ) -> "RecordTransformer":
        """Build a transformer straight from a raw -> logical mapping."""
        return cls(ColumnMapper(field_map), limits)

    def parse(self, name: str, raw: str | None) -> ParseResult[Any]:
        """
        Parse one raw value with the coercion policy of a logical field.

        Args:
            name: Logical field whose FieldKind selects the parser.
            raw: Raw value, which need not come from ``name`` itself.

        Returns:
            ParseResult of the field's parser.

        Raises:
            ValueError: If the field is classified or gated, not parsed.
        """
        kind = LOGICAL_FIELDS[name]
        if kind is FieldKind.TEXT:
            return parse_text(raw, getattr(self.limits, f"{name}_length"))
        if kind is FieldKind.BOUNDED_INTEGER:
            return parse_bounded_integer(raw, self.limits.employee_ceiling)
        if kind in KIND_PARSERS:
            return KIND_PARSERS[kind](raw)
        msg = f"Logical field '{name}' of kind '{kind.value}' has no parser"
        raise ValueError(msg)

    def classify_value(self, name: str, raw: str | None) -> Any:
        """Map a raw ENUM or FLAG value through the field's ordered rule table."""
        rules, default = CLASSIFIED_FIELDS[name]
        return classify(raw, rules, default).value

    def transform(self, raw: Mapping[str, str | None]) -> TransformResult:
        """
        Transform one raw record.

        Args:
            raw: Raw record keyed by source column name.

        Returns:
            TransformResult with either a loan or a rejection.
        """
        values = self.mapper.apply(raw)

        if clean(values.get("lender_location_id")) is None:
            return TransformResult(rejection=Rejection(MISSING_IDENTIFIER, dict(raw)))

        invalid: list[str] = []

        def take(name: str, result: ParseResult[T]) -> T | None:
            if result.invalid:
                invalid.append(name)
            return result.value

        get = values.get
        provides = self.mapper.provides

        direct = {name: take(name, self.parse(name, get(name))) for name in DIRECT_FIELDS}

        borrower_state = self.parse("borrower_state", get("borrower_state"))
        state_result = (
            borrower_state
            if borrower_state.ok
            else self.parse("project_state", get("project_state"))
        )
        if not state_result.ok and borrower_state.invalid:
            state_result = borrower_state

        gross = self.parse("gross_approved", get("gross_approved"))
        jobs_supported = self.parse("jobs_supported", get("jobs_supported"))

        employee_source = "num_employees" if provides("num_employees") else "jobs_supported"
        employees = self.parse("num_employees", get(employee_source))

        jobs_created, jobs_retained = self._jobs(values, jobs_supported, invalid)

        if provides("disbursement_gross"):
            disbursement_gross = take(
                "disbursement_gross", self.parse("disbursement_gross", get("disbursement_gross"))
            )
        else:
            disbursement_gross = gross.value

        loan = CanonicalLoan(
            **direct,
            state=take("state", state_result),
            num_employees=take("num_employees", employees),
            business_type=self.classify_value("business_age", get("business_age")),
            jobs_created=jobs_created,
            jobs_retained=jobs_retained,
            revolving_line=self.classify_value("revolving_line", get("revolving_line")),
            low_doc=self.classify_value("low_doc", get("low_doc")),
            gross_approved=take("gross_approved", gross),
            disbursement_gross=disbursement_gross,
            loan_status=self.classify_value("loan_status", get("loan_status")),
        )
        return TransformResult(loan=loan, invalid_fields=tuple(invalid))

    def _jobs(
        self,
        values: Mapping[str, str | None],
        jobs_supported: ParseResult[int],
        invalid: list[str],
    ) -> tuple[int, int]:
        """Jobs created/retained, split evenly from jobs supported when not given."""
        if self.mapper.provides("jobs_created") or self.mapper.provides("jobs_retained"):
            created = self.parse("jobs_created", values.get("jobs_created"))
            retained = self.parse("jobs_retained", values.get("jobs_retained"))
            if created.invalid:
                invalid.append("jobs_created")
            if retained.invalid:
                invalid.append("jobs_retained")
            return created.value or 0, retained.value or 0

        if jobs_supported.invalid:
            invalid.append("jobs_created")
            invalid.append("jobs_retained")
        if jobs_supported.value is None:
            return 0, 0
        half = jobs_supported.value // 2
        return half, half
