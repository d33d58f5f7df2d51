"""
Raw record sources.

Sources only read; all interpretation of values happens in the field
normalizer and the record transformer.
"""

from sbaloans.ingestion.base import (
    IngestionError,
    RawRecord,
    RawRecordSource,
    SourceUnavailableError,
)
from sbaloans.ingestion.extracts import CsvExtractSource, InMemorySource

__all__ = [
    "CsvExtractSource",
    "InMemorySource",
    "IngestionError",
    "RawRecord",
    "RawRecordSource",
    "SourceUnavailableError",
]
