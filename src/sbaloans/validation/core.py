"""
Core validation logic for pipeline outputs.

Validates written output files against registered Pandera schemas and
checks that the quality report agrees with the canonical table.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pandas as pd
import pandera.errors

from sbaloans.config.settings import PipelineConfig
from sbaloans.etl.output import read_canonical_csv, read_enriched_csv
from sbaloans.etl.quality import QualityReport
from sbaloans.schemas.registry import SchemaRegistry
from sbaloans.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a single output file."""

    dataset_name: str
    schema_name: str | None
    file_path: Path
    exists: bool
    schema_valid: bool | None
    row_count: int | None
    error_message: str | None


class ValidationRunner:
    """
    Validates the outputs of a project.

    Checks the canonical table, the enriched table (when present) and the
    quality report.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize validation runner.

        Args:
            config: Pipeline configuration containing output paths.
        """
        self.config = config

    def run(self) -> list[ValidationResult]:
        """
        Validate every output file of the project.

        Returns:
            List of validation results, one per output.
        """
        config = self.config
        canonical = self._validate_table(
            "canonical", config.canonical_path, "canonical_loan", read_canonical_csv
        )
        enriched = self._validate_table(
            "enriched", config.enriched_path, "enriched_loan", read_enriched_csv
        )
        report = self._validate_quality_report(config.quality_report_path, canonical)
        return [canonical, enriched, report]

    def _validate_table(
        self,
        dataset_name: str,
        file_path: Path,
        schema_name: str,
        loader: Callable[[Path], pd.DataFrame],
    ) -> ValidationResult:
        """Load a table with its reader and validate it against its schema."""
        if not file_path.exists():
            log.warning("Output file not found", dataset=dataset_name, path=str(file_path))
            return ValidationResult(
                dataset_name=dataset_name,
                schema_name=schema_name,
                file_path=file_path,
                exists=False,
                schema_valid=None,
                row_count=None,
                error_message="File not found",
            )

        row_count: int | None = None
        try:
            df = loader(file_path)
            row_count = len(df)
            SchemaRegistry.validate(df, schema_name, lazy=True)
        except (pandera.errors.SchemaError, pandera.errors.SchemaErrors) as e:
            error_msg = self._format_schema_error(e)
            log.error(
                "Schema validation failed",
                dataset=dataset_name,
                schema=schema_name,
                error=error_msg,
            )
            return ValidationResult(
                dataset_name=dataset_name,
                schema_name=schema_name,
                file_path=file_path,
                exists=True,
                schema_valid=False,
                row_count=row_count,
                error_message=error_msg,
            )
        except (KeyError, ValueError, OSError) as e:
            error_msg = f"{type(e).__name__}: {e!s}"
            log.error("Validation error", dataset=dataset_name, error=error_msg)
            return ValidationResult(
                dataset_name=dataset_name,
                schema_name=schema_name,
                file_path=file_path,
                exists=True,
                schema_valid=False,
                row_count=row_count,
                error_message=error_msg,
            )

        log.info("Validation passed", dataset=dataset_name, schema=schema_name, rows=row_count)
        return ValidationResult(
            dataset_name=dataset_name,
            schema_name=schema_name,
            file_path=file_path,
            exists=True,
            schema_valid=True,
            row_count=row_count,
            error_message=None,
        )

    def _validate_quality_report(
        self, file_path: Path, canonical: ValidationResult
    ) -> ValidationResult:
        """Check the report parses and its counts match the canonical table."""
        result = ValidationResult(
            dataset_name="quality_report",
            schema_name=None,
            file_path=file_path,
            exists=file_path.exists(),
            schema_valid=None,
            row_count=None,
            error_message=None,
        )
        if not result.exists:
            result.error_message = "File not found"
            return result

        try:
            report = QualityReport.from_dict(json.loads(file_path.read_text(encoding="utf-8")))
        except (KeyError, TypeError, ValueError) as e:
            result.schema_valid = False
            result.error_message = f"Unreadable quality report: {type(e).__name__}: {e!s}"
            log.error("Validation error", dataset=result.dataset_name, error=result.error_message)
            return result

        result.row_count = report.total_rows
        problems = []
        if report.accepted + report.rejected != report.total_rows:
            problems.append(
                f"accepted ({report.accepted}) + rejected ({report.rejected}) "
                f"!= total rows ({report.total_rows})"
            )
        if canonical.row_count is not None and canonical.row_count != report.accepted:
            problems.append(
                f"canonical table has {canonical.row_count} rows, "
                f"report accepted {report.accepted}"
            )

        result.schema_valid = not problems
        result.error_message = "\n".join(problems) or None
        if problems:
            log.error("Quality report inconsistent", problems=problems)
        return result

    def _format_schema_error(
        self, error: pandera.errors.SchemaError | pandera.errors.SchemaErrors
    ) -> str:
        """
        Format schema error for user-friendly display.

        Args:
            error: Pandera SchemaError or SchemaErrors.

        Returns:
            Formatted error message (first 5 violations).
        """
        failures = getattr(error, "failure_cases", None)
        if isinstance(failures, pd.DataFrame):
            n_failures = len(failures)
            columns = [c for c in ("column", "check", "failure_case") if c in failures.columns]
            shown = failures[columns] if columns else failures
            if n_failures > 5:
                failures_str = shown.head(5).to_string(index=False)
                return f"{n_failures} validation errors (showing first 5):\n{failures_str}"
            return f"{n_failures} validation error(s):\n{shown.to_string(index=False)}"

        return str(error).split("\n")[0][:200]
