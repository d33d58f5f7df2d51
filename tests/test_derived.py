"""Tests for derived loan metrics."""

from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from sbaloans.config import PipelineConfig
from sbaloans.etl import run_ingestion
from sbaloans.etl.output import loans_to_frame
from sbaloans.etl.identity import assign_identities
from sbaloans.metrics import (
    DERIVED_COLUMNS,
    DerivedMetric,
    MetricRegistry,
    add_derived_metrics,
    derived_metrics,
)
from sbaloans.metrics.derived import (
    business_size,
    categorize_loan_size,
    exclude_from_analysis,
    guarantee_category,
    guarantee_pct,
    industry_sector,
    loss_severity_pct,
    months_to_default,
    region,
    seasoning_bucket,
    term_category,
    vintage_quarter,
)
from sbaloans.normalization.rules import LoanStatus
from sbaloans.transform import CanonicalLoan


class TestScalarMetrics:
    """Tests for the scalar metric functions."""

    @pytest.mark.parametrize(
        ("amount", "expected"),
        [
            (Decimal("49999.99"), "Micro"),
            (Decimal("50000"), "Small"),
            (149_999.99, "Small"),
            (150_000, "Medium"),
            (350_000, "Large"),
            (Decimal("999999.99"), "Large"),
            (1_000_000, "Jumbo"),
            (None, "Unknown"),
        ],
    )
    def test_loan_size_lower_bound_inclusive(self, amount: object, expected: str) -> None:
        assert categorize_loan_size(amount) == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("term", "expected"),
        [(12, "Short"), (13, "Medium"), (60, "Medium"), (120, "Long"), (121, "Extended")],
    )
    def test_term_category(self, term: int, expected: str) -> None:
        assert term_category(term) == expected

    def test_guarantee_pct(self) -> None:
        assert guarantee_pct(Decimal("187500"), Decimal("250000")) == 75.0
        assert guarantee_pct(1, 3) == 33.33
        assert guarantee_pct(100, 0) is None
        assert guarantee_pct(None, 100) is None

    @pytest.mark.parametrize(
        ("pct", "expected"),
        [(90.0, "90-100%"), (89.99, "80-89%"), (75.0, "75-79%"), (50.0, "50-74%"),
         (49.9, "<50%"), (None, "Unknown")],
    )
    def test_guarantee_category(self, pct: float | None, expected: str) -> None:
        assert guarantee_category(pct) == expected

    def test_loss_severity(self) -> None:
        assert loss_severity_pct(LoanStatus.CHARGED_OFF, Decimal("12000"), Decimal("50000")) == 24.0
        assert loss_severity_pct(LoanStatus.CHARGED_OFF, None, Decimal("50000")) == 0.0
        assert loss_severity_pct(LoanStatus.PAID_IN_FULL, Decimal("10"), Decimal("50")) == 0.0
        assert loss_severity_pct(LoanStatus.CHARGED_OFF, Decimal("10"), 0) == 0.0

    def test_months_to_default(self) -> None:
        """Test whole months from disbursement, falling back to approval."""
        charged = LoanStatus.CHARGED_OFF
        assert months_to_default(charged, date(2021, 1, 15), None, date(2023, 6, 30)) == 29
        assert months_to_default(charged, date(2021, 1, 31), None, date(2021, 2, 28)) == 0
        assert months_to_default(charged, None, date(2020, 1, 1), date(2021, 1, 1)) == 12
        assert months_to_default(charged, date(2021, 3, 1), None, date(2021, 1, 1)) == -2
        assert months_to_default(charged, None, None, date(2021, 1, 1)) is None
        paid = LoanStatus.PAID_IN_FULL
        assert months_to_default(paid, date(2021, 1, 1), None, date(2022, 1, 1)) is None

    @pytest.mark.parametrize(
        ("months", "expected"),
        [(0, "0-12 months"), (12, "0-12 months"), (13, "13-24 months"), (84, "61-84 months"),
         (85, "85+ months"), (-1, "Data Error"), (None, "Unknown")],
    )
    def test_seasoning_bucket(self, months: int | None, expected: str) -> None:
        assert seasoning_bucket(months) == expected

    def test_business_size(self) -> None:
        assert business_size(10) == "Micro"
        assert business_size(11) == "Small"
        assert business_size(250) == "Medium"
        assert business_size(251) == "Large"
        assert business_size(0) == "Unknown"
        assert business_size(None) == "Unknown"

    def test_lookups(self) -> None:
        assert industry_sector("722511") == "Accommodation and Food Services"
        assert industry_sector("99") == "Unknown"
        assert region("OH") == "Midwest"
        assert region("ZZ") == "Unknown"
        assert vintage_quarter(date(2020, 11, 2)) == 4

    def test_exclude_from_analysis(self) -> None:
        approved = date(2015, 1, 1)
        assert not exclude_from_analysis(Decimal("100"), LoanStatus.PAID_IN_FULL, approved)
        assert exclude_from_analysis(Decimal("0"), LoanStatus.PAID_IN_FULL, approved)
        assert exclude_from_analysis(Decimal("100"), LoanStatus.UNKNOWN, approved)
        assert exclude_from_analysis(Decimal("100"), LoanStatus.CHARGED_OFF, None)

    def test_derived_metrics_keys(self) -> None:
        assert tuple(derived_metrics(CanonicalLoan())) == DERIVED_COLUMNS


class TestAddDerivedMetrics:
    """Tests for the vectorised metrics over the canonical frame."""

    def test_scalar_and_vector_agree(self, pipeline_config: PipelineConfig) -> None:
        """Test that every frame metric equals the scalar function row by row."""
        result = run_ingestion(pipeline_config, write=False)
        enriched = add_derived_metrics(result.frame)

        for position, loan in enumerate(result.loans):
            expected = derived_metrics(loan)
            for name, value in expected.items():
                actual = enriched[name].iloc[position]
                if value is None:
                    assert pd.isna(actual), name
                else:
                    assert actual == value, name

    def test_edge_rows_agree(self) -> None:
        loans = [
            CanonicalLoan(
                gross_approved=Decimal("0"),
                sba_approved=Decimal("0"),
                num_employees=0,
                loan_status=LoanStatus.CHARGED_OFF,
                disbursement_date=date(2021, 3, 1),
                chargeoff_date=date(2021, 1, 1),
            ),
            CanonicalLoan(
                gross_approved=Decimal("49999.99"),
                sba_approved=Decimal("44999.99"),
                num_employees=300,
                term_months=240,
                approval_date=date(2019, 2, 28),
                chargeoff_date=date(2027, 6, 1),
                loan_status=LoanStatus.CHARGED_OFF,
                state="PR",
                naics="11",
            ),
            CanonicalLoan(),
        ]
        assigned = assign_identities(enumerate(loans))
        enriched = add_derived_metrics(loans_to_frame(assigned))

        for position, loan in enumerate(assigned):
            for name, value in derived_metrics(loan).items():
                actual = enriched[name].iloc[position]
                if value is None:
                    assert pd.isna(actual), name
                else:
                    assert actual == value, name

    def test_input_not_mutated(self, pipeline_config: PipelineConfig) -> None:
        frame = run_ingestion(pipeline_config, write=False).frame
        before = frame.copy()
        enriched = add_derived_metrics(frame)

        pd.testing.assert_frame_equal(frame, before)
        assert list(enriched.columns) == list(frame.columns) + list(DERIVED_COLUMNS)

    def test_subset_of_metrics(self, pipeline_config: PipelineConfig) -> None:
        frame = run_ingestion(pipeline_config, write=False).frame
        enriched = add_derived_metrics(frame, names=["region", "is_defaulted"])
        assert enriched["region"].tolist() == ["Midwest", "South", "West"]
        assert enriched["is_defaulted"].tolist() == [False, False, True]

    def test_missing_dependency(self) -> None:
        with pytest.raises(ValueError, match="missing columns"):
            add_derived_metrics(pd.DataFrame({"state": ["OH"]}), names=["guarantee_pct"])


class TestMetricRegistry:
    """Tests for the metric registry."""

    def test_defaults_registered(self) -> None:
        registry = MetricRegistry()
        assert registry.list_metrics() == list(DERIVED_COLUMNS)

    def test_unknown_metric(self) -> None:
        with pytest.raises(KeyError, match="Unknown metric"):
            MetricRegistry().get("default_rate")

    def test_register_custom_metric(self) -> None:
        registry = MetricRegistry()
        registry.register(
            DerivedMetric(
                name="unguaranteed",
                formula=lambda df: df["gross_approved"] - df["sba_approved"],
                dependencies=("gross_approved", "sba_approved"),
            )
        )
        df = pd.DataFrame({"gross_approved": [100.0], "sba_approved": [75.0]})
        out = add_derived_metrics(df, names=["unguaranteed"], registry=registry)
        assert out["unguaranteed"].tolist() == [25.0]

    def test_check_dependencies(self) -> None:
        missing = MetricRegistry().check_dependencies(
            pd.DataFrame({"loan_status": []}), ["months_to_default"]
        )
        assert missing == ["approval_date", "chargeoff_date", "disbursement_date"]
