"""
Derived loan metrics.

Every metric exists twice: as a pure scalar function of canonical loan
values, and as a vectorised formula over the canonical frame registered
as a DerivedMetric. Both paths use the same breakpoints and rounding, so
they agree row by row. Nothing here mutates its input.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

import numpy as np
import pandas as pd

from sbaloans.metrics.reference import NAICS_SECTORS, STATE_REGIONS
from sbaloans.normalization.rules import LoanStatus
from sbaloans.transform.record import CanonicalLoan
from sbaloans.utils.logging import get_logger

log = get_logger(__name__)

Amount = Decimal | float | int
UNKNOWN = "Unknown"

# Lower-inclusive upper-exclusive loan size breakpoints; above the last is Jumbo
LOAN_SIZE_BREAKPOINTS: tuple[tuple[int, str], ...] = (
    (50_000, "Micro"),
    (150_000, "Small"),
    (350_000, "Medium"),
    (1_000_000, "Large"),
)
LOAN_SIZE_BUCKETS = ("Micro", "Small", "Medium", "Large", "Jumbo", UNKNOWN)

# Upper-inclusive term breakpoints in months; above the last is Extended
TERM_BREAKPOINTS: tuple[tuple[int, str], ...] = (
    (12, "Short"),
    (60, "Medium"),
    (120, "Long"),
)
TERM_CATEGORIES = ("Short", "Medium", "Long", "Extended", UNKNOWN)

# Upper-inclusive employee breakpoints; above the last is Large
BUSINESS_SIZE_BREAKPOINTS: tuple[tuple[int, str], ...] = (
    (10, "Micro"),
    (50, "Small"),
    (250, "Medium"),
)
BUSINESS_SIZES = ("Micro", "Small", "Medium", "Large", UNKNOWN)

# Upper-inclusive months-to-default breakpoints; above the last is 85+
SEASONING_BREAKPOINTS: tuple[tuple[int, str], ...] = (
    (12, "0-12 months"),
    (24, "13-24 months"),
    (36, "25-36 months"),
    (48, "37-48 months"),
    (60, "49-60 months"),
    (84, "61-84 months"),
)
SEASONING_ERROR = "Data Error"
SEASONING_BUCKETS = (
    *(label for _, label in SEASONING_BREAKPOINTS),
    "85+ months",
    SEASONING_ERROR,
    UNKNOWN,
)

# Lower-inclusive guarantee percentage floors, checked top down
GUARANTEE_FLOORS: tuple[tuple[int, str], ...] = (
    (90, "90-100%"),
    (80, "80-89%"),
    (75, "75-79%"),
    (50, "50-74%"),
)
GUARANTEE_CATEGORIES = ("90-100%", "80-89%", "75-79%", "50-74%", "<50%", UNKNOWN)


def _round2(value: float) -> float:
    """Round to cents the same way Series.round does."""
    return float(np.round(value, 2))


# =============================================================================
# Scalar metrics
# =============================================================================


def guarantee_pct(sba_approved: Amount | None, gross_approved: Amount | None) -> float | None:
    """
    SBA-guaranteed share of the gross amount, in percent.

    Returns:
        Percentage rounded to 2 decimals, or None when either amount is
        absent or the gross amount is zero.
    """
    if sba_approved is None or gross_approved is None or gross_approved == 0:
        return None
    return _round2(float(sba_approved) / float(gross_approved) * 100)


def categorize_loan_size(gross_approved: Amount | None) -> str:
    """Loan size bucket; each bucket includes its lower bound."""
    if gross_approved is None:
        return UNKNOWN
    for bound, label in LOAN_SIZE_BREAKPOINTS:
        if gross_approved < bound:
            return label
    return "Jumbo"


def term_category(term_months: int | None) -> str:
    """Short (<=12), Medium (<=60), Long (<=120) or Extended."""
    if term_months is None:
        return UNKNOWN
    for bound, label in TERM_BREAKPOINTS:
        if term_months <= bound:
            return label
    return "Extended"


def is_defaulted(loan_status: LoanStatus | str) -> bool:
    return loan_status == LoanStatus.CHARGED_OFF


def is_paid_in_full(loan_status: LoanStatus | str) -> bool:
    return loan_status == LoanStatus.PAID_IN_FULL


def loss_severity_pct(
    loan_status: LoanStatus | str,
    chargeoff_amount: Amount | None,
    gross_approved: Amount | None,
) -> float:
    """
    Charged-off share of the gross amount, in percent.

    Zero unless the loan defaulted and has a positive gross amount. An
    absent charge-off amount counts as zero.
    """
    if not is_defaulted(loan_status) or gross_approved is None or gross_approved <= 0:
        return 0.0
    return _round2(float(chargeoff_amount or 0) / float(gross_approved) * 100)


def vintage_year(approval_date: date | None) -> int | None:
    return approval_date.year if approval_date else None


def vintage_quarter(approval_date: date | None) -> int | None:
    return (approval_date.month - 1) // 3 + 1 if approval_date else None


def vintage_month(approval_date: date | None) -> int | None:
    return approval_date.month if approval_date else None


def naics_sector(naics: str | None) -> str:
    """Two-digit NAICS sector code."""
    return naics[:2] if naics else UNKNOWN


def industry_sector(naics: str | None) -> str:
    """NAICS sector name."""
    if not naics:
        return UNKNOWN
    return NAICS_SECTORS.get(naics[:2], UNKNOWN)


def region(state: str | None) -> str:
    """US Census region of a state code."""
    info = STATE_REGIONS.get(state) if state else None
    return info.region if info else UNKNOWN


def division(state: str | None) -> str:
    """US Census division of a state code."""
    info = STATE_REGIONS.get(state) if state else None
    return info.division if info else UNKNOWN


def business_size(num_employees: int | None) -> str:
    """Micro (<=10), Small (<=50), Medium (<=250) or Large; zero is unknown."""
    if not num_employees:
        return UNKNOWN
    for bound, label in BUSINESS_SIZE_BREAKPOINTS:
        if num_employees <= bound:
            return label
    return "Large"


def _whole_months(start: date, end: date) -> int:
    if end < start:
        return -_whole_months(end, start)
    months = (end.year - start.year) * 12 + (end.month - start.month)
    return months - 1 if end.day < start.day else months


def months_to_default(
    loan_status: LoanStatus | str,
    disbursement_date: date | None,
    approval_date: date | None,
    chargeoff_date: date | None,
) -> int | None:
    """
    Whole months from disbursement (or approval) to charge-off.

    Only defined for charged-off loans with a charge-off date. Negative
    when the charge-off precedes the start date.
    """
    start = disbursement_date or approval_date
    if not is_defaulted(loan_status) or start is None or chargeoff_date is None:
        return None
    return _whole_months(start, chargeoff_date)


def seasoning_bucket(months: int | None) -> str:
    if months is None:
        return UNKNOWN
    if months < 0:
        return SEASONING_ERROR
    for bound, label in SEASONING_BREAKPOINTS:
        if months <= bound:
            return label
    return "85+ months"


def guarantee_category(pct: float | None) -> str:
    if pct is None:
        return UNKNOWN
    for floor, label in GUARANTEE_FLOORS:
        if pct >= floor:
            return label
    return "<50%"


def exclude_from_analysis(
    gross_approved: Amount | None,
    loan_status: LoanStatus | str,
    approval_date: date | None,
) -> bool:
    """
    Whether the loan should be left out of portfolio analysis.

    Excluded: no positive gross amount, an outcome that is neither paid in
    full nor charged off, or no approval date.
    """
    return (
        gross_approved is None
        or gross_approved <= 0
        or not (is_defaulted(loan_status) or is_paid_in_full(loan_status))
        or approval_date is None
    )


def derived_metrics(loan: CanonicalLoan) -> dict[str, Any]:
    """
    All derived metrics of one loan.

    Args:
        loan: Canonical loan.

    Returns:
        Metric name -> value, in DERIVED_COLUMNS order.
    """
    pct = guarantee_pct(loan.sba_approved, loan.gross_approved)
    months = months_to_default(
        loan.loan_status, loan.disbursement_date, loan.approval_date, loan.chargeoff_date
    )
    return {
        "guarantee_pct": pct,
        "loan_size_bucket": categorize_loan_size(loan.gross_approved),
        "term_category": term_category(loan.term_months),
        "is_defaulted": is_defaulted(loan.loan_status),
        "is_paid_in_full": is_paid_in_full(loan.loan_status),
        "loss_severity_pct": loss_severity_pct(
            loan.loan_status, loan.chargeoff_amount, loan.gross_approved
        ),
        "vintage_year": vintage_year(loan.approval_date),
        "vintage_quarter": vintage_quarter(loan.approval_date),
        "vintage_month": vintage_month(loan.approval_date),
        "naics_sector": naics_sector(loan.naics),
        "industry_sector": industry_sector(loan.naics),
        "region": region(loan.state),
        "division": division(loan.state),
        "business_size": business_size(loan.num_employees),
        "months_to_default": months,
        "seasoning_bucket": seasoning_bucket(months),
        "guarantee_category": guarantee_category(pct),
        "exclude_from_analysis": exclude_from_analysis(
            loan.gross_approved, loan.loan_status, loan.approval_date
        ),
    }


# =============================================================================
# Vectorised metrics
# =============================================================================


def _mask(condition: pd.Series) -> np.ndarray:
    """Boolean ndarray from a possibly nullable comparison; NA is False."""
    return condition.fillna(False).to_numpy(dtype=bool)


def _labels(
    df: pd.DataFrame,
    conditions: list[pd.Series],
    labels: list[str],
    default: str,
) -> pd.Series:
    selected = np.select([_mask(c) for c in conditions], labels, default=default)
    return pd.Series(selected, index=df.index, dtype="string")


def _upper_inclusive(
    df: pd.DataFrame,
    values: pd.Series,
    breakpoints: tuple[tuple[int, str], ...],
    top: str,
) -> pd.Series:
    conditions = [values.isna()] + [values <= bound for bound, _ in breakpoints]
    labels = [UNKNOWN] + [label for _, label in breakpoints]
    return _labels(df, conditions, labels, top)


def _guarantee_pct(df: pd.DataFrame) -> pd.Series:
    gross = df["gross_approved"].where(df["gross_approved"] != 0)
    return (df["sba_approved"] / gross * 100).round(2)


def _term_category(df: pd.DataFrame) -> pd.Series:
    return _upper_inclusive(df, df["term_months"], TERM_BREAKPOINTS, "Extended")


def _loan_size_bucket(df: pd.DataFrame) -> pd.Series:
    gross = df["gross_approved"]
    conditions = [gross.isna()] + [gross < bound for bound, _ in LOAN_SIZE_BREAKPOINTS]
    labels = [UNKNOWN] + [label for _, label in LOAN_SIZE_BREAKPOINTS]
    return _labels(df, conditions, labels, "Jumbo")


def _is_defaulted(df: pd.DataFrame) -> pd.Series:
    return df["loan_status"].eq(LoanStatus.CHARGED_OFF.value).fillna(False).astype(bool)


def _is_paid_in_full(df: pd.DataFrame) -> pd.Series:
    return df["loan_status"].eq(LoanStatus.PAID_IN_FULL.value).fillna(False).astype(bool)


def _loss_severity_pct(df: pd.DataFrame) -> pd.Series:
    gross = df["gross_approved"].where(df["gross_approved"] > 0)
    severity = (df["chargeoff_amount"].fillna(0.0) / gross * 100).round(2)
    return severity.where(_is_defaulted(df) & gross.notna(), 0.0).astype("float64")


def _naics_sector(df: pd.DataFrame) -> pd.Series:
    return df["naics"].str[:2].fillna(UNKNOWN).astype("string")


def _industry_sector(df: pd.DataFrame) -> pd.Series:
    sector = df["naics"].str[:2].astype(object)
    return sector.map(NAICS_SECTORS).fillna(UNKNOWN).astype("string")


def _state_lookup(df: pd.DataFrame, attribute: str) -> pd.Series:
    lookup = {code: getattr(info, attribute) for code, info in STATE_REGIONS.items()}
    return df["state"].astype(object).map(lookup).fillna(UNKNOWN).astype("string")


def _business_size(df: pd.DataFrame) -> pd.Series:
    employees = df["num_employees"].mask((df["num_employees"] == 0).fillna(False))
    return _upper_inclusive(df, employees, BUSINESS_SIZE_BREAKPOINTS, "Large")


def _months_to_default(df: pd.DataFrame) -> pd.Series:
    start = df["disbursement_date"].fillna(df["approval_date"])
    end = df["chargeoff_date"]
    forward = end >= start
    lo = start.where(forward, end)
    hi = end.where(forward, start)
    months = (
        (hi.dt.year - lo.dt.year) * 12
        + (hi.dt.month - lo.dt.month)
        - (hi.dt.day < lo.dt.day).astype(int)
    )
    months = months.where(forward, -months).where(_is_defaulted(df))
    return months.astype("Int64")


def _seasoning_bucket(df: pd.DataFrame) -> pd.Series:
    months = _months_to_default(df)
    conditions = [months.isna(), months < 0] + [
        months <= bound for bound, _ in SEASONING_BREAKPOINTS
    ]
    labels = [UNKNOWN, SEASONING_ERROR] + [label for _, label in SEASONING_BREAKPOINTS]
    return _labels(df, conditions, labels, "85+ months")


def _guarantee_category(df: pd.DataFrame) -> pd.Series:
    pct = _guarantee_pct(df)
    conditions = [pct.isna()] + [pct >= floor for floor, _ in GUARANTEE_FLOORS]
    labels = [UNKNOWN] + [label for _, label in GUARANTEE_FLOORS]
    return _labels(df, conditions, labels, "<50%")


def _exclude_from_analysis(df: pd.DataFrame) -> pd.Series:
    gross = df["gross_approved"]
    known_outcome = _is_defaulted(df) | _is_paid_in_full(df)
    excluded = gross.isna() | (gross <= 0) | ~known_outcome | df["approval_date"].isna()
    return excluded.astype(bool)


@dataclass(frozen=True)
class DerivedMetric:
    """
    Definition of a derived metric over the canonical frame.

    Attributes:
        name: Metric name (column name in output).
        formula: Function that computes the metric from a DataFrame.
        dependencies: Canonical columns required for computation.
        description: Human-readable description.
    """

    name: str
    formula: Callable[[pd.DataFrame], pd.Series]
    dependencies: tuple[str, ...]
    description: str = ""


_DEFAULT_TIMING = ("loan_status", "disbursement_date", "approval_date", "chargeoff_date")

DERIVED_METRICS: list[DerivedMetric] = [
    DerivedMetric(
        name="guarantee_pct",
        formula=_guarantee_pct,
        dependencies=("sba_approved", "gross_approved"),
        description="SBA-guaranteed share of gross approved, percent",
    ),
    DerivedMetric(
        name="loan_size_bucket",
        formula=_loan_size_bucket,
        dependencies=("gross_approved",),
        description="Micro/Small/Medium/Large/Jumbo by gross approved",
    ),
    DerivedMetric(
        name="term_category",
        formula=_term_category,
        dependencies=("term_months",),
        description="Short/Medium/Long/Extended by term",
    ),
    DerivedMetric(
        name="is_defaulted",
        formula=_is_defaulted,
        dependencies=("loan_status",),
        description="Loan was charged off",
    ),
    DerivedMetric(
        name="is_paid_in_full",
        formula=_is_paid_in_full,
        dependencies=("loan_status",),
        description="Loan was paid in full",
    ),
    DerivedMetric(
        name="loss_severity_pct",
        formula=_loss_severity_pct,
        dependencies=("loan_status", "chargeoff_amount", "gross_approved"),
        description="Charged-off share of gross approved for defaulted loans, percent",
    ),
    DerivedMetric(
        name="vintage_year",
        formula=lambda df: df["approval_date"].dt.year.astype("Int64"),
        dependencies=("approval_date",),
        description="Origination cohort year",
    ),
    DerivedMetric(
        name="vintage_quarter",
        formula=lambda df: df["approval_date"].dt.quarter.astype("Int64"),
        dependencies=("approval_date",),
        description="Origination calendar quarter",
    ),
    DerivedMetric(
        name="vintage_month",
        formula=lambda df: df["approval_date"].dt.month.astype("Int64"),
        dependencies=("approval_date",),
        description="Origination calendar month",
    ),
    DerivedMetric(
        name="naics_sector",
        formula=_naics_sector,
        dependencies=("naics",),
        description="Two-digit NAICS sector code",
    ),
    DerivedMetric(
        name="industry_sector",
        formula=_industry_sector,
        dependencies=("naics",),
        description="NAICS sector name",
    ),
    DerivedMetric(
        name="region",
        formula=lambda df: _state_lookup(df, "region"),
        dependencies=("state",),
        description="US Census region of the borrower state",
    ),
    DerivedMetric(
        name="division",
        formula=lambda df: _state_lookup(df, "division"),
        dependencies=("state",),
        description="US Census division of the borrower state",
    ),
    DerivedMetric(
        name="business_size",
        formula=_business_size,
        dependencies=("num_employees",),
        description="Micro/Small/Medium/Large by employee count",
    ),
    DerivedMetric(
        name="months_to_default",
        formula=_months_to_default,
        dependencies=_DEFAULT_TIMING,
        description="Whole months from disbursement (or approval) to charge-off",
    ),
    DerivedMetric(
        name="seasoning_bucket",
        formula=_seasoning_bucket,
        dependencies=_DEFAULT_TIMING,
        description="Months-to-default bucket",
    ),
    DerivedMetric(
        name="guarantee_category",
        formula=_guarantee_category,
        dependencies=("sba_approved", "gross_approved"),
        description="Guarantee percentage bucket",
    ),
    DerivedMetric(
        name="exclude_from_analysis",
        formula=_exclude_from_analysis,
        dependencies=("gross_approved", "loan_status", "approval_date"),
        description="Invalid amount, unknown outcome or missing approval date",
    ),
]

DERIVED_COLUMNS: tuple[str, ...] = tuple(m.name for m in DERIVED_METRICS)


@dataclass
class MetricRegistry:
    """
    Registry of derived metrics.

    Provides lookup and dependency checking.
    """

    metrics: dict[str, DerivedMetric] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Initialize with the default metrics."""
        for metric in DERIVED_METRICS:
            self.register(metric)

    def register(self, metric: DerivedMetric) -> None:
        if metric.name in self.metrics:
            log.warning("Overwriting existing metric", name=metric.name)
        self.metrics[metric.name] = metric

    def get(self, name: str) -> DerivedMetric:
        """
        Get a metric by name.

        Raises:
            KeyError: If metric not found.
        """
        if name not in self.metrics:
            available = ", ".join(self.metrics.keys())
            msg = f"Unknown metric '{name}'. Available: {available}"
            raise KeyError(msg)
        return self.metrics[name]

    def list_metrics(self) -> list[str]:
        """List all registered metric names."""
        return list(self.metrics.keys())

    def check_dependencies(self, df: pd.DataFrame, names: list[str]) -> list[str]:
        """
        Columns required by ``names`` that are missing from ``df``.

        Returns:
            Sorted list of missing column names.
        """
        required: set[str] = set()
        for name in names:
            required.update(self.get(name).dependencies)
        return sorted(col for col in required if col not in df.columns)


def add_derived_metrics(
    df: pd.DataFrame,
    names: list[str] | None = None,
    registry: MetricRegistry | None = None,
) -> pd.DataFrame:
    """
    Append derived metric columns to a canonical frame.

    Args:
        df: Typed canonical frame (see etl.output.coerce_canonical_frame).
        names: Metrics to compute (default: all, in registry order).
        registry: Metric registry (default: the built-in metrics).

    Returns:
        New DataFrame with metric columns appended.

    Raises:
        KeyError: If a metric name is unknown.
        ValueError: If required canonical columns are missing.
    """
    registry = registry or MetricRegistry()
    names = names if names is not None else registry.list_metrics()

    missing = registry.check_dependencies(df, names)
    if missing:
        msg = f"Cannot compute derived metrics, missing columns: {missing}"
        raise ValueError(msg)

    out = df.copy()
    for name in names:
        out[name] = registry.get(name).formula(df)

    log.info("Computed derived metrics", rows=len(out), metrics=len(names))
    return out


# Column dtypes of the derived metrics, used when reading them back from CSV
_FLOAT_METRICS = ("guarantee_pct", "loss_severity_pct")
_INTEGER_METRICS = ("vintage_year", "vintage_quarter", "vintage_month", "months_to_default")
_FLAG_METRICS = ("is_defaulted", "is_paid_in_full", "exclude_from_analysis")


def coerce_derived_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Apply derived-metric dtypes to columns read back as text."""
    out = df.copy()
    for name in DERIVED_COLUMNS:
        if name not in out.columns:
            continue
        series = out[name].astype("string").str.strip()
        series = series.mask(series.eq("").fillna(False).astype(bool))
        if name in _FLAG_METRICS:
            out[name] = series.eq("True").fillna(False).astype(bool)
        elif name in _FLOAT_METRICS:
            out[name] = pd.to_numeric(series).astype("float64")
        elif name in _INTEGER_METRICS:
            out[name] = pd.to_numeric(series).astype("Int64")
        else:
            out[name] = series.astype("string")
    return out

