"""
sbaloans: SBA 7(a) loan normalization pipeline.

This package turns raw, inconsistently formatted SBA FOIA extracts into a
strongly typed canonical loan table, a data quality report and a set of
derived reporting attributes.
"""

from importlib.metadata import version

__version__ = version("sbaloans")

__all__ = ["__version__"]
