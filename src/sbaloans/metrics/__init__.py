"""
Derived loan metrics and reference lookups.
"""

from sbaloans.metrics.derived import (
    DERIVED_COLUMNS,
    DERIVED_METRICS,
    DerivedMetric,
    MetricRegistry,
    add_derived_metrics,
    derived_metrics,
)
from sbaloans.metrics.reference import NAICS_SECTORS, STATE_REGIONS, StateRegion

__all__ = [
    "DERIVED_COLUMNS",
    "DERIVED_METRICS",
    "NAICS_SECTORS",
    "STATE_REGIONS",
    "DerivedMetric",
    "MetricRegistry",
    "StateRegion",
    "add_derived_metrics",
    "derived_metrics",
]
