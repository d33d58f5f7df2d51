"""
Raw record sources for SBA FOIA extracts.

Extracts are read as text only: no value is converted here, so every
cell reaches the field parsers exactly as published.
"""

from collections.abc import Iterator, Sequence
from pathlib import Path

import pandas as pd

from sbaloans.config.settings import PipelineConfig, SourceConfig
from sbaloans.ingestion.base import RawRecord, RawRecordSource, SourceUnavailableError
from sbaloans.utils.logging import get_logger

log = get_logger(__name__)

# Errors pandas raises for files that exist but cannot be read as CSV
_READ_ERRORS = (
    OSError,
    UnicodeDecodeError,
    pd.errors.EmptyDataError,
    pd.errors.ParserError,
)


class CsvExtractSource(RawRecordSource):
    """
    Source backed by one CSV extract.

    Args:
        name: Source identifier.
        generation: Generation whose field mapping applies.
        path: CSV file path.
        chunk_size: Rows per read chunk.
        encoding: File encoding.
    """

    def __init__(
        self,
        name: str,
        generation: str,
        path: Path,
        chunk_size: int = 100_000,
        encoding: str = "utf-8",
    ) -> None:
        super().__init__(name, generation)
        self.path = Path(path)
        self.chunk_size = chunk_size
        self.encoding = encoding

    @classmethod
    def from_config(cls, config: PipelineConfig, source: SourceConfig) -> "CsvExtractSource":
        """Build a source from its configuration entry."""
        return cls(
            name=source.name,
            generation=source.generation,
            path=config.resolve_source(source),
            chunk_size=config.execution.chunk_size,
            encoding=source.encoding,
        )

    def _check_exists(self) -> None:
        if not self.path.is_file():
            raise SourceUnavailableError(self.name, f"file not found: {self.path}")

    def columns(self) -> list[str]:
        """Header of the extract."""
        self._check_exists()
        try:
            header = pd.read_csv(self.path, nrows=0, dtype=str, encoding=self.encoding)
        except _READ_ERRORS as e:
            raise SourceUnavailableError(self.name, str(e)) from e
        return [str(c) for c in header.columns]

    def _iter_raw(self) -> Iterator[RawRecord]:
        """Stream rows chunk by chunk; empty cells arrive as empty strings."""
        self._check_exists()
        rows = 0
        try:
            reader = pd.read_csv(
                self.path,
                dtype=str,
                keep_default_na=False,
                chunksize=self.chunk_size,
                encoding=self.encoding,
            )
            with reader:
                for chunk in reader:
                    rows += len(chunk)
                    yield from chunk.to_dict(orient="records")
        except _READ_ERRORS as e:
            raise SourceUnavailableError(self.name, f"read failed after {rows} rows: {e}") from e

        log.debug("Finished reading extract", source=self.name, path=str(self.path), rows=rows)


class InMemorySource(RawRecordSource):
    """
    Source over records already in memory.

    Useful for tests and for callers that fetch extracts themselves.
    """

    def __init__(self, name: str, generation: str, records: Sequence[RawRecord]) -> None:
        super().__init__(name, generation)
        self._records = list(records)

    def columns(self) -> list[str]:
        """Union of record keys, in first-seen order."""
        seen: dict[str, None] = {}
        for record in self._records:
            for key in record:
                seen.setdefault(key, None)
        return list(seen)

    def _iter_raw(self) -> Iterator[RawRecord]:
        yield from self._records
