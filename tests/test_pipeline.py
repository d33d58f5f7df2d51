"""Tests for the ingestion pipeline."""

import json
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from pathlib import Path

import pandas as pd
import pytest

from sbaloans.config import ExecutionConfig, LimitsConfig, PipelineConfig
from sbaloans.etl import IngestionPipeline, SourceUnavailableError, run_ingestion
from sbaloans.etl.output import read_canonical_csv
from sbaloans.ingestion import CsvExtractSource, InMemorySource
from sbaloans.normalization.rules import BusinessType, LoanStatus
from sbaloans.transform import CANONICAL_COLUMNS

WriteExtract = Callable[[Path, list[dict[str, str]]], Path]


class TestEndToEnd:
    """Two generations, one rejection, one malformed date, one formatted amount."""

    def test_loans_and_report(self, pipeline_config: PipelineConfig) -> None:
        result = run_ingestion(pipeline_config, write=False)

        assert result.n_loans == 3
        assert result.report.total_rows == 4
        assert result.report.accepted == 3
        assert result.report.rejected == 1
        assert result.report.invalid_counts["approval_date"] == 1
        assert result.report.rows_per_source == {"early": 2, "late": 2}
        assert sum(result.report.flag_counts.values()) == 0
        assert result.canonical_path is None

    def test_identity_order(self, pipeline_config: PipelineConfig) -> None:
        """Test ids follow fiscal year, then approval date with absent dates last."""
        result = run_ingestion(pipeline_config, write=False)

        names = [loan.business_name for loan in result.loans]
        ids = [loan.id for loan in result.loans]
        assert names == ["Acme Tool Co", "Cedar Dental", "Bayside Bakery"]
        assert ids == ["SBA-00000001", "SBA-00000002", "SBA-00000003"]

    def test_normalized_values(self, pipeline_config: PipelineConfig) -> None:
        result = run_ingestion(pipeline_config, write=False)
        acme, cedar, bayside = result.loans

        assert acme.approval_date == date(2010, 3, 15)
        assert acme.business_type is BusinessType.EXISTING
        assert acme.loan_status is LoanStatus.PAID_IN_FULL
        assert (acme.jobs_created, acme.jobs_retained) == (5, 5)

        assert cedar.state == "TX"
        assert cedar.term_months == 37
        assert cedar.gross_approved == Decimal("150000.00")
        assert cedar.disbursement_gross == Decimal("150000.00")
        assert cedar.loan_status is LoanStatus.PAID_IN_FULL

        assert bayside.state == "CA"
        assert bayside.approval_date is None
        assert bayside.loan_status is LoanStatus.CHARGED_OFF

    def test_frame_matches_loans(self, pipeline_config: PipelineConfig) -> None:
        result = run_ingestion(pipeline_config, write=False)
        frame = result.frame

        assert list(frame.columns) == list(CANONICAL_COLUMNS)
        assert frame["id"].tolist() == [loan.id for loan in result.loans]
        assert frame["approval_date"].isna().tolist() == [False, False, True]
        assert str(frame["term_months"].dtype) == "Int64"


class TestOutputs:
    """Tests for written outputs."""

    def test_writes_table_and_report(self, pipeline_config: PipelineConfig) -> None:
        result = run_ingestion(pipeline_config)

        assert result.canonical_path == pipeline_config.canonical_path
        lines = pipeline_config.canonical_path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == ",".join(CANONICAL_COLUMNS)
        assert len(lines) == 4
        assert lines[1].startswith("SBA-00000001,Acme Tool Co,Dayton,OH,,")
        assert "2010-03-15" in lines[1]
        assert "250000.00" in lines[1]

        report = json.loads(pipeline_config.quality_report_path.read_text(encoding="utf-8"))
        assert report["total_rows"] == 4
        assert report["accepted"] == 3
        assert report["rejected"] == 1
        assert report["fields"]["approval_date"]["invalid_count"] == 1
        assert report["fields"]["approval_date"]["null_pct"] == 33.33

    def test_table_reads_back(self, pipeline_config: PipelineConfig) -> None:
        result = run_ingestion(pipeline_config)
        df = read_canonical_csv(pipeline_config.canonical_path)
        pd.testing.assert_frame_equal(df, result.frame, check_dtype=False)

    def test_deterministic_output(self, pipeline_config: PipelineConfig) -> None:
        """Test that identical input produces byte-identical output."""
        run_ingestion(pipeline_config)
        table = pipeline_config.canonical_path.read_bytes()
        report = pipeline_config.quality_report_path.read_bytes()

        run_ingestion(pipeline_config)

        assert pipeline_config.canonical_path.read_bytes() == table
        assert pipeline_config.quality_report_path.read_bytes() == report

    def test_parallel_matches_sequential(self, pipeline_config: PipelineConfig) -> None:
        sequential = run_ingestion(pipeline_config, write=False)
        parallel_config = pipeline_config.model_copy(
            update={"execution": ExecutionConfig(parallel=True, max_workers=2)}
        )
        parallel = run_ingestion(parallel_config, write=False)

        assert parallel.loans == sequential.loans
        assert parallel.report.to_dict() == sequential.report.to_dict()

    def test_missing_source_keeps_previous_outputs(
        self, pipeline_config: PipelineConfig
    ) -> None:
        """Test that an unreadable extract aborts without touching outputs."""
        run_ingestion(pipeline_config)
        table = pipeline_config.canonical_path.read_bytes()
        report = pipeline_config.quality_report_path.read_bytes()

        (pipeline_config.data_root / "early.csv").unlink()
        with pytest.raises(SourceUnavailableError, match="early"):
            run_ingestion(pipeline_config)

        assert pipeline_config.canonical_path.read_bytes() == table
        assert pipeline_config.quality_report_path.read_bytes() == report
        assert sorted(p.name for p in pipeline_config.output_dir.iterdir()) == [
            "loans.csv",
            "quality_report.json",
        ]

    def test_dry_run_writes_nothing(self, pipeline_config: PipelineConfig) -> None:
        run_ingestion(pipeline_config, write=False)
        assert not pipeline_config.output_dir.exists()


class TestSources:
    """Tests for source handling."""

    def test_in_memory_sources(self, pipeline_config: PipelineConfig) -> None:
        sources = [
            InMemorySource("a", "foia_lower", [{"l2locid": "1", "borrname": "Acme"}]),
            InMemorySource("b", "foia_camel", [{"LocationID": "2", "BorrName": "Beta"}]),
        ]
        result = IngestionPipeline(pipeline_config, sources=sources).run(write=False)
        assert [loan.business_name for loan in result.loans] == ["Acme", "Beta"]

    def test_only_rejections(self, pipeline_config: PipelineConfig) -> None:
        sources = [InMemorySource("a", "foia_lower", [{"l2locid": "", "borrname": "X"}])]
        result = IngestionPipeline(pipeline_config, sources=sources).run(write=False)
        assert result.n_loans == 0
        assert result.report.rejected == 1
        assert len(result.frame) == 0

    def test_missing_identifier_column(self, pipeline_config: PipelineConfig) -> None:
        sources = [InMemorySource("a", "foia_lower", [{"borrname": "Acme"}])]
        with pytest.raises(SourceUnavailableError, match="missing required columns"):
            IngestionPipeline(pipeline_config, sources=sources).run(write=False)

    def test_unknown_generation(self, pipeline_config: PipelineConfig) -> None:
        sources = [InMemorySource("a", "foia_2030", [{"l2locid": "1"}])]
        with pytest.raises(SourceUnavailableError, match="unknown generation"):
            IngestionPipeline(pipeline_config, sources=sources).run(write=False)

    def test_duplicate_source_names(self, pipeline_config: PipelineConfig) -> None:
        sources = [
            InMemorySource("a", "foia_lower", []),
            InMemorySource("a", "foia_lower", []),
        ]
        with pytest.raises(ValueError, match="unique"):
            IngestionPipeline(pipeline_config, sources=sources)

    @pytest.mark.parametrize(
        ("column", "raw", "field"),
        [
            ("approvaldate", "9999-12-31", "approval_date"),
            ("approvaldate", "01/05/0020", "approval_date"),
            ("approvalfiscalyear", "0000", "approval_fiscal_year"),
            ("terminmonths", "99999999999999999999", "term_months"),
        ],
    )
    def test_unrepresentable_cell_does_not_abort(
        self, pipeline_config: PipelineConfig, column: str, raw: str, field: str
    ) -> None:
        """Test that a value the typed table cannot hold degrades its field only."""
        rows = [{"l2locid": "1", column: raw}, {"l2locid": "2"}]
        sources = [InMemorySource("a", "foia_lower", rows)]
        result = IngestionPipeline(pipeline_config, sources=sources).run(write=False)

        assert result.n_loans == 2
        assert result.report.invalid_counts[field] == 1
        assert result.frame[field].isna().all()

    def test_employee_ceiling_above_default(self, pipeline_config: PipelineConfig) -> None:
        """Test that a raised ceiling is honoured by the canonical table."""
        config = pipeline_config.model_copy(
            update={"limits": LimitsConfig(employee_ceiling=50_000)}
        )
        rows = [{"l2locid": "1", "jobssupported": "20000"}]
        sources = [InMemorySource("a", "foia_lower", rows)]
        result = IngestionPipeline(config, sources=sources).run(write=False)

        assert result.frame["num_employees"].tolist() == [20000]
        assert result.report.flag_counts["large_employer"] == 1

    def test_dataset_checks(self, pipeline_config: PipelineConfig) -> None:
        """Test that duplicates and amount outliers are counted over all sources."""
        row = {
            "l2locid": "1",
            "borrname": "Twin Co",
            "borrcity": "Reno",
            "borrstate": "NV",
            "approvaldate": "2019-05-01",
            "grossapproval": "100000",
        }
        small = [{"l2locid": str(i), "grossapproval": "100000"} for i in range(10, 16)]
        sources = [
            InMemorySource("a", "foia_lower", [row, *small]),
            InMemorySource("b", "foia_lower", [row, {"l2locid": "9", "grossapproval": "5000000"}]),
        ]
        report = IngestionPipeline(pipeline_config, sources=sources).run(write=False).report

        assert report.dataset_counts["potential_duplicates"] == 2
        assert report.dataset_counts["gross_approved_high_outliers"] == 1
        assert report.dataset_counts["gross_approved_low_outliers"] == 0


class TestCsvExtractSource:
    """Tests for CSV extract reading."""

    def test_reads_text_in_chunks(self, tmp_path: Path, write_extract: WriteExtract) -> None:
        path = write_extract(
            tmp_path / "x.csv",
            [{"l2locid": "007", "grossapproval": "1,000"}, {"l2locid": "008", "grossapproval": ""}],
        )
        source = CsvExtractSource("x", "foia_lower", path, chunk_size=1)

        assert source.columns() == ["l2locid", "grossapproval"]
        assert list(source.records()) == [
            {"l2locid": "007", "grossapproval": "1,000"},
            {"l2locid": "008", "grossapproval": ""},
        ]

    def test_missing_file(self, tmp_path: Path) -> None:
        source = CsvExtractSource("gone", "foia_lower", tmp_path / "gone.csv")
        with pytest.raises(SourceUnavailableError, match="file not found"):
            source.columns()

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(SourceUnavailableError):
            CsvExtractSource("empty", "foia_lower", path).columns()

    def test_header_case_drift(
        self, tmp_path: Path, pipeline_config: PipelineConfig, write_extract: WriteExtract
    ) -> None:
        """Test that upper-cased headers still map to the lower-case generation."""
        rows = [{k.upper(): v for k, v in {"l2locid": "1", "borrname": "Acme"}.items()}]
        path = write_extract(tmp_path / "upper.csv", rows)
        source = CsvExtractSource("upper", "foia_lower", path)
        result = IngestionPipeline(pipeline_config, sources=[source]).run(write=False)
        assert result.loans[0].business_name == "Acme"

    def test_field_maps_are_equivalent(
        self, lower_field_map: dict[str, str], camel_field_map: dict[str, str]
    ) -> None:
        assert sorted(lower_field_map.values()) == sorted(camel_field_map.values())
