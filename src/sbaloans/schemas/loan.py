"""
Pandera schemas for the canonical and enriched loan tables.

Both tables are pipeline outputs. Validation runs on the typed frame
right before it is written and again when a written file is checked.
"""

import pandas as pd
import pandera.pandas as pa
from pandera.typing import Series

from sbaloans.metrics.derived import (
    BUSINESS_SIZES,
    GUARANTEE_CATEGORIES,
    LOAN_SIZE_BUCKETS,
    SEASONING_BUCKETS,
    TERM_CATEGORIES,
)
from sbaloans.normalization.rules import BusinessType, LoanStatus

ID_PATTERN = r"^[A-Za-z0-9]+-\d+$"
STATE_PATTERN = r"^[A-Z]{2}$"
NAICS_PATTERN = r"^\d{2,6}$"


class CanonicalLoanSchema(pa.DataFrameModel):
    """
    Schema for the canonical loan table.

    One row per accepted loan. Absent values are nullable; enumerations
    and flags are always populated.
    """

    id: Series[pd.StringDtype] = pa.Field(
        unique=True,
        str_matches=ID_PATTERN,
        description="Assigned loan id (<prefix>-<zero-padded sequence>)",
    )
    business_name: Series[pd.StringDtype] = pa.Field(nullable=True)
    city: Series[pd.StringDtype] = pa.Field(nullable=True)
    state: Series[pd.StringDtype] = pa.Field(
        nullable=True,
        str_matches=STATE_PATTERN,
        description="Borrower state, falling back to project state",
    )
    zip: Series[pd.StringDtype] = pa.Field(nullable=True)
    bank_name: Series[pd.StringDtype] = pa.Field(nullable=True)
    bank_state: Series[pd.StringDtype] = pa.Field(nullable=True, str_matches=STATE_PATTERN)
    naics: Series[pd.StringDtype] = pa.Field(
        nullable=True,
        str_matches=NAICS_PATTERN,
        description="NAICS industry code (2-6 digits)",
    )
    franchise_code: Series[pd.StringDtype] = pa.Field(nullable=True)
    approval_date: Series[pa.DateTime] = pa.Field(nullable=True)
    approval_fiscal_year: Series[pd.Int64Dtype] = pa.Field(
        nullable=True,
        ge=1000,
        le=9999,
        description="Federal fiscal year of approval",
    )
    disbursement_date: Series[pa.DateTime] = pa.Field(nullable=True)
    term_months: Series[pd.Int64Dtype] = pa.Field(
        nullable=True,
        gt=0,
        description="Loan term in months (zero is never stored)",
    )
    num_employees: Series[pd.Int64Dtype] = pa.Field(nullable=True, ge=0)
    business_type: Series[pd.StringDtype] = pa.Field(
        isin=[t.value for t in BusinessType],
    )
    jobs_created: Series[pd.Int64Dtype] = pa.Field(ge=0)
    jobs_retained: Series[pd.Int64Dtype] = pa.Field(ge=0)
    revolving_line: Series[bool]
    low_doc: Series[bool]
    gross_approved: Series[float] = pa.Field(nullable=True, ge=0)
    sba_approved: Series[float] = pa.Field(nullable=True, ge=0)
    disbursement_gross: Series[float] = pa.Field(nullable=True, ge=0)
    loan_status: Series[pd.StringDtype] = pa.Field(
        isin=[s.value for s in LoanStatus],
    )
    chargeoff_date: Series[pa.DateTime] = pa.Field(nullable=True)
    chargeoff_amount: Series[float] = pa.Field(nullable=True, ge=0)

    @pa.dataframe_check
    def ids_are_dense(cls, df: pd.DataFrame) -> bool:
        """Id sequence numbers are exactly 1..N."""
        numbers = df["id"].astype(str).str.rsplit("-", n=1).str[-1].astype(int)
        return sorted(numbers) == list(range(1, len(df) + 1))

    class Config:
        """Schema configuration."""

        name = "CanonicalLoanSchema"
        strict = True
        coerce = True
        ordered = True


class EnrichedLoanSchema(CanonicalLoanSchema):
    """
    Schema for the canonical table joined with derived metrics.
    """

    guarantee_pct: Series[float] = pa.Field(nullable=True, ge=0)
    loan_size_bucket: Series[pd.StringDtype] = pa.Field(isin=list(LOAN_SIZE_BUCKETS))
    term_category: Series[pd.StringDtype] = pa.Field(isin=list(TERM_CATEGORIES))
    is_defaulted: Series[bool]
    is_paid_in_full: Series[bool]
    loss_severity_pct: Series[float] = pa.Field(ge=0)
    vintage_year: Series[pd.Int64Dtype] = pa.Field(nullable=True)
    vintage_quarter: Series[pd.Int64Dtype] = pa.Field(nullable=True, ge=1, le=4)
    vintage_month: Series[pd.Int64Dtype] = pa.Field(nullable=True, ge=1, le=12)
    naics_sector: Series[pd.StringDtype]
    industry_sector: Series[pd.StringDtype]
    region: Series[pd.StringDtype]
    division: Series[pd.StringDtype]
    business_size: Series[pd.StringDtype] = pa.Field(isin=list(BUSINESS_SIZES))
    months_to_default: Series[pd.Int64Dtype] = pa.Field(nullable=True)
    seasoning_bucket: Series[pd.StringDtype] = pa.Field(isin=list(SEASONING_BUCKETS))
    guarantee_category: Series[pd.StringDtype] = pa.Field(isin=list(GUARANTEE_CATEGORIES))
    exclude_from_analysis: Series[bool]

    @pa.dataframe_check
    def defaulted_and_paid_exclusive(cls, df: pd.DataFrame) -> bool:
        """A loan is never both charged off and paid in full."""
        return not bool((df["is_defaulted"] & df["is_paid_in_full"]).any())

    class Config:
        """Schema configuration."""

        name = "EnrichedLoanSchema"
        strict = True
        coerce = True
        ordered = True
