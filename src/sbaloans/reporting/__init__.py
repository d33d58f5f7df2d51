"""Import summary of the canonical loan table."""

from sbaloans.reporting.summary import ImportSummary, summarize

__all__ = ["ImportSummary", "summarize"]
