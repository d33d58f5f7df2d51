"""
Ingestion pipeline for SBA 7(a) loan extracts.

Orchestrates transformation, identity assignment, quality accounting and
output of the canonical loan table.
"""

from sbaloans.etl.identity import IdentityAlreadyAssignedError, assign_identities
from sbaloans.etl.pipeline import IngestionPipeline, IngestionResult, run_ingestion
from sbaloans.etl.quality import QualityReport, cross_field_flags
from sbaloans.ingestion.base import IngestionError, SourceUnavailableError

__all__ = [
    "IdentityAlreadyAssignedError",
    "IngestionError",
    "IngestionPipeline",
    "IngestionResult",
    "QualityReport",
    "SourceUnavailableError",
    "assign_identities",
    "cross_field_flags",
    "run_ingestion",
]
