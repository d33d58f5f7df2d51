"""Tests for validation module."""

import json

import pytest
from rich.console import Console

from sbaloans.config import PipelineConfig
from sbaloans.etl import run_ingestion
from sbaloans.etl.output import read_canonical_csv, read_enriched_csv, write_csv_atomic
from sbaloans.etl.quality import QualityReport
from sbaloans.metrics import add_derived_metrics
from sbaloans.reporting import summarize
from sbaloans.validation import ConsoleReporter, ValidationResult, ValidationRunner


@pytest.fixture
def ingested(pipeline_config: PipelineConfig) -> PipelineConfig:
    """Config whose canonical table and quality report have been written."""
    run_ingestion(pipeline_config)
    return pipeline_config


def by_name(results: list[ValidationResult]) -> dict[str, ValidationResult]:
    return {r.dataset_name: r for r in results}


class TestValidationRunner:
    """Tests for ValidationRunner."""

    def test_nothing_written(self, pipeline_config: PipelineConfig) -> None:
        """Test that missing outputs are reported, not raised."""
        results = by_name(ValidationRunner(pipeline_config).run())

        assert set(results) == {"canonical", "enriched", "quality_report"}
        assert all(not r.exists for r in results.values())
        assert all(r.schema_valid is None for r in results.values())
        assert results["canonical"].error_message == "File not found"

    def test_after_ingestion(self, ingested: PipelineConfig) -> None:
        results = by_name(ValidationRunner(ingested).run())

        assert results["canonical"].schema_valid is True
        assert results["canonical"].row_count == 3
        assert results["enriched"].exists is False
        assert results["quality_report"].schema_valid is True
        assert results["quality_report"].row_count == 4

    def test_enriched_table(self, ingested: PipelineConfig) -> None:
        enriched = add_derived_metrics(read_canonical_csv(ingested.canonical_path))
        write_csv_atomic(enriched, ingested.enriched_path)

        results = by_name(ValidationRunner(ingested).run())
        assert results["enriched"].schema_valid is True
        assert results["enriched"].row_count == 3

    def test_enriched_reads_back(self, ingested: PipelineConfig) -> None:
        enriched = add_derived_metrics(read_canonical_csv(ingested.canonical_path))
        write_csv_atomic(enriched, ingested.enriched_path)

        df = read_enriched_csv(ingested.enriched_path)
        assert df["months_to_default"].tolist()[2] == 29
        assert str(df["is_defaulted"].dtype) == "bool"
        assert df["guarantee_pct"].tolist()[:2] == [75.0, 75.0]

    def test_corrupted_table(self, ingested: PipelineConfig) -> None:
        text = ingested.canonical_path.read_text(encoding="utf-8")
        ingested.canonical_path.write_text(
            text.replace("SBA-00000003", "SBA-00000001"), encoding="utf-8"
        )

        result = by_name(ValidationRunner(ingested).run())["canonical"]
        assert result.schema_valid is False
        assert result.error_message

    def test_missing_column(self, ingested: PipelineConfig) -> None:
        lines = ingested.canonical_path.read_text(encoding="utf-8").splitlines()
        trimmed = [line.split(",", 1)[1] for line in lines]
        ingested.canonical_path.write_text("\n".join(trimmed) + "\n", encoding="utf-8")

        result = by_name(ValidationRunner(ingested).run())["canonical"]
        assert result.schema_valid is False
        assert "KeyError" in (result.error_message or "")

    def test_inconsistent_report(self, ingested: PipelineConfig) -> None:
        path = ingested.quality_report_path
        data = json.loads(path.read_text(encoding="utf-8"))
        data["accepted"] = 5
        path.write_text(json.dumps(data), encoding="utf-8")

        result = by_name(ValidationRunner(ingested).run())["quality_report"]
        assert result.schema_valid is False
        assert "total rows" in (result.error_message or "")
        assert "canonical table has 3 rows" in (result.error_message or "")

    def test_unreadable_report(self, ingested: PipelineConfig) -> None:
        ingested.quality_report_path.write_text("{not json", encoding="utf-8")
        result = by_name(ValidationRunner(ingested).run())["quality_report"]
        assert result.schema_valid is False
        assert "Unreadable" in (result.error_message or "")


class TestConsoleReporter:
    """Tests for console output."""

    def test_prints_results(self, ingested: PipelineConfig) -> None:
        console = Console(record=True, width=160)
        ConsoleReporter(console).print_results(ValidationRunner(ingested).run())
        text = console.export_text()
        assert "canonical" in text
        assert "quality_report" in text

    def test_prints_quality_report(self, ingested: PipelineConfig) -> None:
        report = QualityReport.from_dict(
            json.loads(ingested.quality_report_path.read_text(encoding="utf-8"))
        )
        console = Console(record=True, width=160)
        ConsoleReporter(console).print_quality_report(report, all_fields=True)
        text = console.export_text()
        assert "approval_date" in text
        assert "early" in text

    def test_prints_summary(self, ingested: PipelineConfig) -> None:
        console = Console(record=True, width=160)
        summary = summarize(read_canonical_csv(ingested.canonical_path))
        ConsoleReporter(console).print_summary(summary)
        assert "ChargedOff" in console.export_text()
