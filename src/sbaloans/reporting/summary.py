"""
Post-import summary of the canonical loan table.

Reads the canonical frame only; it is the single aggregation the
package builds on top of the normalized data.
"""

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from sbaloans.normalization.rules import LoanStatus
from sbaloans.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ImportSummary:
    """
    Headline figures of an imported portfolio.

    Attributes:
        total_loans: Rows in the canonical table.
        status_counts: Loans per loan status (every status listed).
        first_fiscal_year: Earliest approval fiscal year, if any.
        last_fiscal_year: Latest approval fiscal year, if any.
        distinct_states: Number of distinct borrower states.
        total_gross_approved: Sum of gross approved amounts.
        total_sba_approved: Sum of SBA-guaranteed amounts.
        total_chargeoff_amount: Sum of charged-off amounts.
        average_loan_size: Mean positive gross approved amount.
        average_term_months: Mean term of loans with a term.
    """

    total_loans: int
    status_counts: dict[str, int] = field(default_factory=dict)
    first_fiscal_year: int | None = None
    last_fiscal_year: int | None = None
    distinct_states: int = 0
    total_gross_approved: float = 0.0
    total_sba_approved: float = 0.0
    total_chargeoff_amount: float = 0.0
    average_loan_size: float | None = None
    average_term_months: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_loans": self.total_loans,
            "status_counts": dict(self.status_counts),
            "first_fiscal_year": self.first_fiscal_year,
            "last_fiscal_year": self.last_fiscal_year,
            "distinct_states": self.distinct_states,
            "total_gross_approved": self.total_gross_approved,
            "total_sba_approved": self.total_sba_approved,
            "total_chargeoff_amount": self.total_chargeoff_amount,
            "average_loan_size": self.average_loan_size,
            "average_term_months": self.average_term_months,
        }


def _optional_int(value: Any) -> int | None:
    return None if pd.isna(value) else int(value)


def _optional_mean(series: pd.Series) -> float | None:
    return round(float(series.mean()), 2) if len(series) else None


def summarize(df: pd.DataFrame) -> ImportSummary:
    """
    Summarize a typed canonical frame.

    Args:
        df: Canonical frame (see etl.output.coerce_canonical_frame).

    Returns:
        ImportSummary of the table.
    """
    counts = df["loan_status"].value_counts()
    status_counts = {s.value: int(counts.get(s.value, 0)) for s in LoanStatus}

    gross = df["gross_approved"].dropna()
    terms = df["term_months"].dropna()
    fiscal_years = df["approval_fiscal_year"].dropna()

    summary = ImportSummary(
        total_loans=len(df),
        status_counts=status_counts,
        first_fiscal_year=_optional_int(fiscal_years.min()),
        last_fiscal_year=_optional_int(fiscal_years.max()),
        distinct_states=int(df["state"].dropna().nunique()),
        total_gross_approved=round(float(gross.sum()), 2),
        total_sba_approved=round(float(df["sba_approved"].sum()), 2),
        total_chargeoff_amount=round(float(df["chargeoff_amount"].sum()), 2),
        average_loan_size=_optional_mean(gross[gross > 0]),
        average_term_months=_optional_mean(terms[terms > 0].astype("float64")),
    )
    log.info(
        "Summarized canonical table",
        loans=summary.total_loans,
        fiscal_years=(summary.first_fiscal_year, summary.last_fiscal_year),
    )
    return summary
