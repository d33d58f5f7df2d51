"""
Ingestion pipeline.

Runs the batch in four phases: map every source's rows to canonical
loans, sort all accepted loans globally, assign identities, and write the
canonical table plus its quality report. Only the map phase runs
concurrently; ids need the complete sorted set, so everything after it is
a single pass.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from sbaloans.config.settings import PipelineConfig
from sbaloans.etl.identity import assign_identities
from sbaloans.etl.output import StagedOutput, loans_to_frame
from sbaloans.etl.quality import QualityReport, dataset_checks
from sbaloans.ingestion.base import IngestionError, RawRecordSource, SourceUnavailableError
from sbaloans.ingestion.extracts import CsvExtractSource
from sbaloans.normalization.columns import missing_required_columns
from sbaloans.schemas.registry import SchemaRegistry
from sbaloans.transform.record import CanonicalLoan, RecordTransformer
from sbaloans.utils.logging import get_logger, log_context

log = get_logger(__name__)


@dataclass
class SourceBatch:
    """
    Accepted loans and quality counts of one mapped source.

    Attributes:
        source: Source name.
        loans: Accepted loans in row order.
        report: Quality counts of the source.
    """

    source: str
    loans: list[CanonicalLoan] = field(default_factory=list)
    report: QualityReport = field(default_factory=QualityReport)


@dataclass
class IngestionResult:
    """
    Result of an ingestion run.

    Attributes:
        loans: Canonical loans in id order.
        frame: Validated canonical table.
        report: Quality report of the whole run.
        canonical_path: Where the table was written (if written).
        quality_report_path: Where the report was written (if written).
    """

    loans: list[CanonicalLoan]
    frame: pd.DataFrame
    report: QualityReport
    canonical_path: Path | None = None
    quality_report_path: Path | None = None

    @property
    def n_loans(self) -> int:
        return len(self.loans)


class IngestionPipeline:
    """
    Batch normalization of SBA 7(a) extracts into the canonical table.

    Args:
        config: Pipeline configuration.
        sources: Sources to read (default: CSV extracts from the config,
            in configured order).
    """

    def __init__(
        self,
        config: PipelineConfig,
        sources: list[RawRecordSource] | None = None,
    ) -> None:
        self.config = config
        if sources is None:
            sources = [CsvExtractSource.from_config(config, s) for s in config.sources]
        self.sources = sources

        names = [s.name for s in self.sources]
        if len(set(names)) != len(names):
            msg = f"Source names must be unique, got: {names}"
            raise ValueError(msg)

    def run(self, *, write: bool = True) -> IngestionResult:
        """
        Run the full pipeline.

        Args:
            write: Whether to write the canonical table and quality report.

        Returns:
            IngestionResult with loans, frame and quality report.

        Raises:
            SourceUnavailableError: If any source cannot be read. No
                output file is touched in that case.
            pandera.errors.SchemaError: If the canonical frame is invalid
                (SchemaErrors when dtype coercion fails).
        """
        execution = self.config.execution
        log.info(
            "Starting ingestion",
            project=self.config.project,
            sources=len(self.sources),
            parallel=execution.parallel,
        )

        if execution.parallel and len(self.sources) > 1:
            batches = self._map_parallel()
        else:
            batches = [self.map_source(source) for source in self.sources]

        report = QualityReport()
        entries: list[tuple[int, CanonicalLoan]] = []
        for batch in batches:
            report = report.merge(batch.report)
            entries.extend(enumerate(batch.loans, start=len(entries)))

        identity = self.config.identity
        loans = assign_identities(entries, prefix=identity.prefix, width=identity.width)

        frame = SchemaRegistry.validate(loans_to_frame(loans), "canonical_loan")
        report.dataset_counts.update(dataset_checks(frame))
        log.info(
            "Canonical table validated",
            rows=len(frame),
            rejected=report.rejected,
            acceptance_rate=report.acceptance_rate,
        )

        result = IngestionResult(loans=loans, frame=frame, report=report)
        if write:
            self._write(result)
        return result

    def map_source(self, source: RawRecordSource) -> SourceBatch:
        """
        Transform every row of one source.

        Args:
            source: Source to read.

        Returns:
            SourceBatch with accepted loans and quality counts.

        Raises:
            SourceUnavailableError: If the source cannot be read or its
                header lacks the required identifier column.
        """
        if source.generation not in self.config.generations:
            raise SourceUnavailableError(
                source.name, f"unknown generation '{source.generation}'"
            )
        field_map = self.config.generations[source.generation].field_map

        missing = missing_required_columns(source.columns(), field_map)
        if missing:
            raise SourceUnavailableError(source.name, f"missing required columns {missing}")

        transformer = RecordTransformer.for_field_map(field_map, self.config.limits)
        batch = SourceBatch(source=source.name)

        with log_context(source=source.name, generation=source.generation):
            for raw in source.records():
                result = transformer.transform(raw)
                batch.report.record(result, source.name)
                if result.loan is not None:
                    batch.loans.append(result.loan)

            log.info(
                "Mapped source",
                rows=batch.report.total_rows,
                accepted=batch.report.accepted,
                rejected=batch.report.rejected,
            )
        return batch

    def _map_parallel(self) -> list[SourceBatch]:
        """Map sources concurrently; results come back in source order."""
        workers = min(self.config.execution.max_workers, len(self.sources))
        log.info("Mapping sources in parallel", workers=workers)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.map_source, s) for s in self.sources]
            batches = []
            for source, future in zip(self.sources, futures):
                try:
                    batches.append(future.result())
                except IngestionError as e:
                    log.error("Failed to map source", source=source.name, error=str(e))
                    for pending in futures:
                        pending.cancel()
                    raise
        return batches

    def _write(self, result: IngestionResult) -> None:
        """Write table and report; targets change only if both are staged."""
        config = self.config
        staged = StagedOutput()
        try:
            staged.add_csv(config.canonical_path, result.frame)
            staged.add_json(config.quality_report_path, result.report.to_dict())
            staged.commit()
        finally:
            staged.discard()

        result.canonical_path = config.canonical_path
        result.quality_report_path = config.quality_report_path
        log.info(
            "Wrote canonical outputs",
            table=str(config.canonical_path),
            report=str(config.quality_report_path),
        )


def run_ingestion(config: PipelineConfig, *, write: bool = True) -> IngestionResult:
    """
    Convenience function to run the ingestion pipeline.

    Args:
        config: Pipeline configuration.
        write: Whether to write outputs.

    Returns:
        IngestionResult with loans, frame and quality report.
    """
    return IngestionPipeline(config).run(write=write)
