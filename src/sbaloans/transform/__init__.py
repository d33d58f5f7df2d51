"""
Record transformer: raw records in, canonical loans or rejections out.
"""

from sbaloans.transform.record import (
    CANONICAL_COLUMNS,
    MISSING_IDENTIFIER,
    CanonicalLoan,
    RecordTransformer,
    Rejection,
    TransformResult,
)

__all__ = [
    "CANONICAL_COLUMNS",
    "MISSING_IDENTIFIER",
    "CanonicalLoan",
    "RecordTransformer",
    "Rejection",
    "TransformResult",
]
