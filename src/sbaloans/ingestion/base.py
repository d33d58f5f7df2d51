"""
Base classes for raw record sources.

A source yields raw records (column name -> raw string) from one extract.
Every source belongs to a generation, which names the raw -> logical
field mapping used to read it.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping

from sbaloans.utils.logging import get_logger

log = get_logger(__name__)

RawRecord = Mapping[str, str | None]


class IngestionError(Exception):
    """Base class for failures that abort an ingestion run."""


class SourceUnavailableError(IngestionError):
    """Raised when an extract is missing, unreadable or lacks required columns."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Source '{source}' unavailable: {reason}")


class RawRecordSource(ABC):
    """
    Abstract base class for raw record sources.

    Args:
        name: Source identifier, unique within a run.
        generation: Generation whose field mapping applies.
    """

    def __init__(self, name: str, generation: str) -> None:
        self.name = name
        self.generation = generation

    @abstractmethod
    def columns(self) -> list[str]:
        """
        Raw column names of the source.

        Raises:
            SourceUnavailableError: If the source cannot be opened.
        """
        ...

    @abstractmethod
    def _iter_raw(self) -> Iterator[RawRecord]:
        """Yield raw records. Implemented by subclasses."""
        ...

    def records(self) -> Iterator[RawRecord]:
        """
        Yield every raw record in source order.

        Raises:
            SourceUnavailableError: If the source cannot be read.
        """
        log.info("Reading source", source=self.name, generation=self.generation)
        yield from self._iter_raw()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, generation={self.generation!r})"
