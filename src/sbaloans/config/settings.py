"""
Typed configuration models using Pydantic.

Source extracts, their generation (raw column naming convention) and the
raw->logical field mappings are all configuration. The transform code
never branches on a generation name.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sbaloans.normalization.columns import validate_field_map


class SourceConfig(BaseModel):
    """One raw extract file."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Extract identifier (e.g., 'fy2010_2019')")
    path: Path = Field(description="CSV path, relative to data_root")
    generation: str = Field(description="Key into PipelineConfig.generations")
    encoding: str = Field(default="utf-8", description="File encoding of the extract")


class GenerationConfig(BaseModel):
    """Column naming convention shared by one or more extracts."""

    model_config = ConfigDict(frozen=True)

    field_map: dict[str, str] = Field(
        description="Raw column name -> logical field name"
    )

    @field_validator("field_map")
    @classmethod
    def validate_mapping(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure every target is a known logical field and the identifier is mapped."""
        validate_field_map(v)
        return v


class IdentityConfig(BaseModel):
    """Loan id scheme: ``<prefix>-<zero-padded sequence>``."""

    model_config = ConfigDict(frozen=True)

    prefix: str = Field(default="SBA", min_length=1, max_length=8)
    width: int = Field(default=8, ge=1, le=18, description="Zero-padding width")

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Prefixes are alphanumeric so ids sort and split cleanly."""
        if not v.isalnum():
            msg = f"Identity prefix must be alphanumeric, got: {v!r}"
            raise ValueError(msg)
        return v


class LimitsConfig(BaseModel):
    """Length caps and ceilings applied during normalization."""

    model_config = ConfigDict(frozen=True)

    employee_ceiling: int = Field(default=9999, ge=0)
    business_name_length: int = Field(default=255, ge=1)
    city_length: int = Field(default=100, ge=1)
    bank_name_length: int = Field(default=255, ge=1)
    zip_length: int = Field(default=10, ge=1)
    franchise_code_length: int = Field(default=10, ge=1)


class ExecutionConfig(BaseModel):
    """Map-phase execution settings."""

    model_config = ConfigDict(frozen=True)

    parallel: bool = Field(default=True, description="Transform extracts concurrently")
    max_workers: int = Field(default=4, ge=1, le=64)
    chunk_size: int = Field(default=100_000, ge=1, description="CSV rows per read chunk")


class LoggingConfig(BaseModel):
    """Structured logging settings."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = False


class OutputConfig(BaseModel):
    """Output paths configuration.

    Structure: ./output/{project}/loans.csv, quality_report.json, loans_enriched.csv
    """

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(
        default=Path("./output"), description="Root directory for all outputs"
    )


class PipelineConfig(BaseModel):
    """Complete pipeline configuration.

    The project name drives the output directory: ./output/{project}/
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'sba-7a')")
    data_root: Path = Field(default=Path("./data"), description="Root for source paths")
    sources: list[SourceConfig] = Field(min_length=1)
    generations: dict[str, GenerationConfig]
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @model_validator(mode="after")
    def validate_sources(self) -> "PipelineConfig":
        """Source names are unique and each refers to a known generation."""
        names = [s.name for s in self.sources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            msg = f"Duplicate source names: {duplicates}"
            raise ValueError(msg)

        unknown = sorted(
            {s.generation for s in self.sources if s.generation not in self.generations}
        )
        if unknown:
            msg = f"Sources refer to unknown generations: {unknown}"
            raise ValueError(msg)
        return self

    def resolve_source(self, source: SourceConfig) -> Path:
        """Resolve a source path against data_root."""
        return self.data_root / source.path

    def field_map(self, source: SourceConfig) -> dict[str, str]:
        """Raw -> logical mapping for a source's generation."""
        return self.generations[source.generation].field_map

    # Output path helpers
    @property
    def output_dir(self) -> Path:
        """Path to the project's output directory."""
        return self.output.output_root / self.project

    @property
    def canonical_path(self) -> Path:
        """Path to the canonical loan table."""
        return self.output_dir / "loans.csv"

    @property
    def quality_report_path(self) -> Path:
        """Path to the quality report of the last run."""
        return self.output_dir / "quality_report.json"

    @property
    def enriched_path(self) -> Path:
        """Path to the canonical table joined with derived metrics."""
        return self.output_dir / "loans_enriched.csv"
