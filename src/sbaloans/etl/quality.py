"""
Data quality accounting for an ingestion run.

The QualityReport is the only state shared across the map step. It is
made of plain counters, so merging per-source reports is associative and
commutative: any processing order yields the same totals.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from sbaloans.metrics.reference import NAICS_SECTORS, STATE_REGIONS
from sbaloans.normalization.rules import LoanStatus
from sbaloans.transform.record import CANONICAL_COLUMNS, CanonicalLoan, TransformResult

# Fields whose null/invalid rates are reported (id is assigned later)
QUALITY_FIELDS: tuple[str, ...] = tuple(c for c in CANONICAL_COLUMNS if c != "id")

# Cross-field inconsistencies: flagged, never rejected or corrected
QUALITY_FLAGS: tuple[str, ...] = (
    "chargeoff_before_disbursement",
    "disbursement_before_approval",
    "fiscal_year_mismatch",
    "sba_exceeds_gross",
    "unknown_state_code",
    "unknown_naics_sector",
    "chargeoff_missing_date",
    "chargeoff_missing_amount",
    "chargeoff_zero_amount",
    "paid_with_chargeoff_date",
    "paid_with_chargeoff_amount",
    "extreme_term",
    "large_employer",
)

# Checks that need the whole accepted set, computed after the merge
DATASET_CHECKS: tuple[str, ...] = (
    "potential_duplicates",
    "gross_approved_low_outliers",
    "gross_approved_high_outliers",
)

# Loans sharing all of these are reported as potential duplicates
DUPLICATE_KEY: tuple[str, ...] = (
    "business_name",
    "city",
    "state",
    "approval_date",
    "gross_approved",
)

EXTREME_TERM_MONTHS = 300
LARGE_EMPLOYER = 500


def cross_field_flags(loan: CanonicalLoan) -> tuple[str, ...]:
    """
    Quality flags raised by one loan.

    Args:
        loan: Accepted canonical loan.

    Returns:
        Names from QUALITY_FLAGS, in that order.
    """
    flags: list[str] = []

    if loan.chargeoff_date and loan.disbursement_date:
        if loan.chargeoff_date < loan.disbursement_date:
            flags.append("chargeoff_before_disbursement")

    if loan.disbursement_date and loan.approval_date:
        if loan.disbursement_date < loan.approval_date:
            flags.append("disbursement_before_approval")

    # Federal fiscal years start in October, so FY may run one ahead
    if loan.approval_fiscal_year is not None and loan.approval_date is not None:
        year = loan.approval_date.year
        if loan.approval_fiscal_year not in (year, year + 1):
            flags.append("fiscal_year_mismatch")

    if loan.sba_approved is not None and loan.gross_approved is not None:
        if loan.sba_approved > loan.gross_approved:
            flags.append("sba_exceeds_gross")

    if loan.state is not None and loan.state not in STATE_REGIONS:
        flags.append("unknown_state_code")

    if loan.naics is not None and loan.naics[:2] not in NAICS_SECTORS:
        flags.append("unknown_naics_sector")

    if loan.loan_status is LoanStatus.CHARGED_OFF:
        if loan.chargeoff_date is None:
            flags.append("chargeoff_missing_date")
        if loan.chargeoff_amount is None:
            flags.append("chargeoff_missing_amount")
        elif loan.chargeoff_amount == 0:
            flags.append("chargeoff_zero_amount")

    if loan.loan_status is LoanStatus.PAID_IN_FULL:
        if loan.chargeoff_date is not None:
            flags.append("paid_with_chargeoff_date")
        if (loan.chargeoff_amount or 0) > 0:
            flags.append("paid_with_chargeoff_amount")

    if loan.term_months is not None and loan.term_months > EXTREME_TERM_MONTHS:
        flags.append("extreme_term")

    if loan.num_employees is not None and loan.num_employees > LARGE_EMPLOYER:
        flags.append("large_employer")

    return tuple(flags)


def dataset_checks(frame: pd.DataFrame) -> Counter[str]:
    """
    Quality checks over the whole canonical table.

    Potential duplicates counts every named loan that shares its
    DUPLICATE_KEY with another one (absent values compare equal).
    Outliers lie more than 1.5 IQR outside the quartiles of
    ``gross_approved``, using linear interpolation between ranks.

    Args:
        frame: Canonical loan table.

    Returns:
        Counts keyed by the names in DATASET_CHECKS.
    """
    counts: Counter[str] = Counter()

    named = frame[frame["business_name"].notna()]
    counts["potential_duplicates"] = int(
        named.duplicated(subset=list(DUPLICATE_KEY), keep=False).sum()
    )

    gross = frame["gross_approved"].dropna().astype(float)
    if not gross.empty:
        q1, q3 = gross.quantile(0.25), gross.quantile(0.75)
        spread = 1.5 * (q3 - q1)
        counts["gross_approved_low_outliers"] = int((gross < q1 - spread).sum())
        counts["gross_approved_high_outliers"] = int((gross > q3 + spread).sum())

    return +counts


def _pct(part: int, whole: int) -> float:
    return round(100.0 * part / whole, 2) if whole else 0.0


@dataclass(frozen=True)
class FieldQuality:
    """Null and invalid rates of one canonical field over accepted rows."""

    field: str
    null_count: int
    null_pct: float
    invalid_count: int
    invalid_pct: float


@dataclass
class QualityReport:
    """
    Row, rejection, field and flag counts of one ingestion run.

    Attributes:
        total_rows: Raw rows seen.
        accepted: Rows that became canonical loans.
        rejected: Rows dropped at the identifier gate.
        rejection_reasons: Rejections per reason.
        null_counts: Accepted rows with the field absent, per field.
        invalid_counts: Accepted rows whose raw value was unparseable, per field.
        flag_counts: Accepted rows raising each cross-field flag.
        dataset_counts: Results of DATASET_CHECKS over the canonical table.
        rows_per_source: Raw rows per source extract.
    """

    total_rows: int = 0
    accepted: int = 0
    rejected: int = 0
    rejection_reasons: Counter[str] = field(default_factory=Counter)
    null_counts: Counter[str] = field(default_factory=Counter)
    invalid_counts: Counter[str] = field(default_factory=Counter)
    flag_counts: Counter[str] = field(default_factory=Counter)
    dataset_counts: Counter[str] = field(default_factory=Counter)
    rows_per_source: Counter[str] = field(default_factory=Counter)

    def record(self, result: TransformResult, source: str) -> None:
        """
        Account for one transformed row.

        Args:
            result: Transformer output for the row.
            source: Name of the extract the row came from.
        """
        self.total_rows += 1
        self.rows_per_source[source] += 1

        loan = result.loan
        if loan is None:
            self.rejected += 1
            if result.rejection is not None:
                self.rejection_reasons[result.rejection.reason] += 1
            return

        self.accepted += 1
        for name in QUALITY_FIELDS:
            if getattr(loan, name) is None:
                self.null_counts[name] += 1
        self.invalid_counts.update(result.invalid_fields)
        self.flag_counts.update(cross_field_flags(loan))

    def merge(self, other: "QualityReport") -> "QualityReport":
        """Combine two reports into a new one."""
        return QualityReport(
            total_rows=self.total_rows + other.total_rows,
            accepted=self.accepted + other.accepted,
            rejected=self.rejected + other.rejected,
            rejection_reasons=self.rejection_reasons + other.rejection_reasons,
            null_counts=self.null_counts + other.null_counts,
            invalid_counts=self.invalid_counts + other.invalid_counts,
            flag_counts=self.flag_counts + other.flag_counts,
            dataset_counts=self.dataset_counts + other.dataset_counts,
            rows_per_source=self.rows_per_source + other.rows_per_source,
        )

    __add__ = merge

    @property
    def acceptance_rate(self) -> float:
        """Percentage of raw rows accepted."""
        return _pct(self.accepted, self.total_rows)

    def null_pct(self, name: str) -> float:
        """Percentage of accepted rows where ``name`` is absent."""
        return _pct(self.null_counts[name], self.accepted)

    def invalid_pct(self, name: str) -> float:
        """Percentage of accepted rows where ``name`` was unparseable."""
        return _pct(self.invalid_counts[name], self.accepted)

    def fields(self) -> list[FieldQuality]:
        """Per-field quality rows in canonical column order."""
        return [
            FieldQuality(
                field=name,
                null_count=self.null_counts[name],
                null_pct=self.null_pct(name),
                invalid_count=self.invalid_counts[name],
                invalid_pct=self.invalid_pct(name),
            )
            for name in QUALITY_FIELDS
        ]

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation with deterministic key order."""
        return {
            "total_rows": self.total_rows,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "acceptance_rate": self.acceptance_rate,
            "rejection_reasons": dict(sorted(self.rejection_reasons.items())),
            "rows_per_source": dict(sorted(self.rows_per_source.items())),
            "flags": {name: self.flag_counts[name] for name in QUALITY_FLAGS},
            "dataset_checks": {name: self.dataset_counts[name] for name in DATASET_CHECKS},
            "fields": {
                fq.field: {
                    "null_count": fq.null_count,
                    "null_pct": fq.null_pct,
                    "invalid_count": fq.invalid_count,
                    "invalid_pct": fq.invalid_pct,
                }
                for fq in self.fields()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QualityReport":
        """Rebuild a report written by ``to_dict``."""
        fields = data.get("fields", {})
        return cls(
            total_rows=int(data["total_rows"]),
            accepted=int(data["accepted"]),
            rejected=int(data["rejected"]),
            rejection_reasons=Counter(data.get("rejection_reasons", {})),
            null_counts=Counter(
                {k: v["null_count"] for k, v in fields.items() if v["null_count"]}
            ),
            invalid_counts=Counter(
                {k: v["invalid_count"] for k, v in fields.items() if v["invalid_count"]}
            ),
            flag_counts=Counter({k: v for k, v in data.get("flags", {}).items() if v}),
            dataset_counts=Counter(
                {k: v for k, v in data.get("dataset_checks", {}).items() if v}
            ),
            rows_per_source=Counter(data.get("rows_per_source", {})),
        )
