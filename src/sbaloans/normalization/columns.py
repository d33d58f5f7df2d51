"""
Logical field catalogue and per-generation column mapping.

Every source extract ("generation") names the same logical fields differently.
The mapping from raw header to logical field is configuration; this module
only knows the logical fields, their kinds, and how to apply a mapping.
"""

from collections.abc import Iterable, Mapping
from enum import Enum


class FieldKind(str, Enum):
    """Coercion policy applied to a logical field."""

    IDENTIFIER = "identifier"
    TEXT = "text"
    STATE = "state"
    NAICS = "naics"
    DATE = "date"
    FISCAL_YEAR = "fiscal_year"
    INTEGER = "integer"
    TERM = "term"
    BOUNDED_INTEGER = "bounded_integer"
    CURRENCY = "currency"
    ENUM = "enum"
    FLAG = "flag"


# Logical fields a generation may map raw columns onto
LOGICAL_FIELDS: dict[str, FieldKind] = {
    # Hard gate
    "lender_location_id": FieldKind.IDENTIFIER,
    # Borrower
    "business_name": FieldKind.TEXT,
    "city": FieldKind.TEXT,
    "borrower_state": FieldKind.STATE,
    "project_state": FieldKind.STATE,
    "zip": FieldKind.TEXT,
    # Lender
    "bank_name": FieldKind.TEXT,
    "bank_state": FieldKind.STATE,
    # Industry
    "naics": FieldKind.NAICS,
    "franchise_code": FieldKind.TEXT,
    # Dates
    "approval_date": FieldKind.DATE,
    "approval_fiscal_year": FieldKind.FISCAL_YEAR,
    "disbursement_date": FieldKind.DATE,
    "chargeoff_date": FieldKind.DATE,
    # Terms and business characteristics
    "term_months": FieldKind.TERM,
    "num_employees": FieldKind.BOUNDED_INTEGER,
    "business_age": FieldKind.ENUM,
    "jobs_supported": FieldKind.INTEGER,
    "jobs_created": FieldKind.INTEGER,
    "jobs_retained": FieldKind.INTEGER,
    # Program flags
    "revolving_line": FieldKind.FLAG,
    "low_doc": FieldKind.FLAG,
    # Amounts
    "gross_approved": FieldKind.CURRENCY,
    "sba_approved": FieldKind.CURRENCY,
    "disbursement_gross": FieldKind.CURRENCY,
    "chargeoff_amount": FieldKind.CURRENCY,
    # Outcome
    "loan_status": FieldKind.ENUM,
}

REQUIRED_FIELDS: tuple[str, ...] = ("lender_location_id",)


def _key(name: str) -> str:
    """Header comparison key: headers drift in case and padding between extracts."""
    return name.strip().lower()


def validate_field_map(field_map: Mapping[str, str]) -> None:
    """
    Check a raw-name -> logical-name mapping.

    Args:
        field_map: Mapping of raw column name to logical field name.

    Raises:
        ValueError: If a target is unknown, mapped twice, or a required
            logical field has no source column.
    """
    unknown = sorted({v for v in field_map.values() if v not in LOGICAL_FIELDS})
    if unknown:
        msg = f"Unknown logical fields in mapping: {unknown}"
        raise ValueError(msg)

    targets = list(field_map.values())
    duplicates = sorted({t for t in targets if targets.count(t) > 1})
    if duplicates:
        msg = f"Logical fields mapped more than once: {duplicates}"
        raise ValueError(msg)

    missing = [f for f in REQUIRED_FIELDS if f not in targets]
    if missing:
        msg = f"Mapping must provide required fields: {missing}"
        raise ValueError(msg)


def missing_required_columns(
    columns: Iterable[str],
    field_map: Mapping[str, str],
) -> list[str]:
    """
    Return raw column names a header lacks for the required logical fields.

    Args:
        columns: Header of the extract.
        field_map: Mapping of raw column name to logical field name.

    Returns:
        Raw names of required columns that are absent from the header.
    """
    present = {_key(c) for c in columns}
    return [
        raw
        for raw, logical in field_map.items()
        if logical in REQUIRED_FIELDS and _key(raw) not in present
    ]


class ColumnMapper:
    """
    Renames raw records to logical field names for one generation.

    Raw headers are matched case-insensitively after trimming. Raw
    fields without a mapping are dropped; logical fields the generation
    does not provide are simply absent from the output.
    """

    def __init__(self, field_map: Mapping[str, str]) -> None:
        validate_field_map(field_map)
        self._lookup = {_key(raw): logical for raw, logical in field_map.items()}

    @property
    def provided(self) -> frozenset[str]:
        """Logical fields this generation supplies."""
        return frozenset(self._lookup.values())

    def provides(self, logical: str) -> bool:
        """Whether the generation maps a raw column onto ``logical``."""
        return logical in self._lookup.values()

    def apply(self, raw: Mapping[str, str | None]) -> dict[str, str | None]:
        """
        Rename one raw record.

        Args:
            raw: Raw record keyed by source header.

        Returns:
            Record keyed by logical field name.
        """
        out: dict[str, str | None] = {}
        for name, value in raw.items():
            logical = self._lookup.get(_key(name))
            if logical is not None:
                out[logical] = value
        return out
