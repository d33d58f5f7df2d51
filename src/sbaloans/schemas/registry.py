"""
Schema registry for versioning and discovery.

Provides centralized access to all schema definitions with version tracking.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

import pandera.pandas as pa

from sbaloans.schemas.loan import CanonicalLoanSchema, EnrichedLoanSchema

if TYPE_CHECKING:
    import pandas as pd


class DataRole(Enum):
    """Classification of data products by their role in the pipeline."""

    CANONICAL = "canonical"  # Normalized loan table
    DERIVED = "derived"  # Canonical table plus derived metrics


@dataclass(frozen=True)
class SchemaInfo:
    """Metadata about a registered schema."""

    name: str
    schema: type[pa.DataFrameModel]
    version: str
    role: DataRole
    description: str


class SchemaRegistry:
    """
    Centralized registry for all data schemas.

    Provides version tracking and schema discovery.
    """

    _version = "1.0.0"

    _schemas: ClassVar[dict[str, SchemaInfo]] = {
        "canonical_loan": SchemaInfo(
            name="canonical_loan",
            schema=CanonicalLoanSchema,
            version="1.0.0",
            role=DataRole.CANONICAL,
            description="Normalized SBA 7(a) loans with assigned ids",
        ),
        "enriched_loan": SchemaInfo(
            name="enriched_loan",
            schema=EnrichedLoanSchema,
            version="1.0.0",
            role=DataRole.DERIVED,
            description="Canonical loans with derived risk and cohort metrics",
        ),
    }

    @classmethod
    def registry_version(cls) -> str:
        """Get the registry version."""
        return cls._version

    @classmethod
    def get_info(cls, name: str) -> SchemaInfo:
        """
        Get full schema info by name.

        Args:
            name: Schema identifier.

        Returns:
            SchemaInfo with metadata.

        Raises:
            KeyError: If schema not found.
        """
        if name not in cls._schemas:
            available = ", ".join(cls._schemas.keys())
            msg = f"Unknown schema '{name}'. Available: {available}"
            raise KeyError(msg)
        return cls._schemas[name]

    @classmethod
    def get(cls, name: str) -> type[pa.DataFrameModel]:
        """Get the DataFrameModel class registered under ``name``."""
        return cls.get_info(name).schema

    @classmethod
    def list_schemas(cls) -> list[str]:
        """List all registered schema names."""
        return list(cls._schemas.keys())

    @classmethod
    def list_by_role(cls, role: DataRole) -> list[str]:
        return [name for name, info in cls._schemas.items() if info.role == role]

    @classmethod
    def validate(
        cls, df: "pd.DataFrame", schema_name: str, *, lazy: bool = False
    ) -> "pd.DataFrame":
        """
        Validate a DataFrame against a registered schema.

        Args:
            df: DataFrame to validate.
            schema_name: Name of schema to validate against.
            lazy: Collect all failures instead of stopping at the first.

        Returns:
            Validated (coerced) DataFrame.

        Raises:
            pandera.errors.SchemaError: If validation fails.
            pandera.errors.SchemaErrors: If lazy validation fails.
        """
        return cls.get(schema_name).validate(df, lazy=lazy)
