"""
Schema definitions using Pandera for data validation.

All output contracts are defined here so that every written table is
validated against an explicit structure.
"""

from sbaloans.schemas.loan import CanonicalLoanSchema, EnrichedLoanSchema
from sbaloans.schemas.registry import DataRole, SchemaInfo, SchemaRegistry

__all__ = [
    "CanonicalLoanSchema",
    "DataRole",
    "EnrichedLoanSchema",
    "SchemaInfo",
    "SchemaRegistry",
]
