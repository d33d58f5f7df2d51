"""
Canonical table conversion and atomic file output.

The canonical table is written as CSV with a fixed column order, ISO
dates, two-decimal amounts and empty cells for absent values. Outputs are
first staged as temporary files next to their targets and only moved into
place once every output of a run has been staged.
"""

import json
import os
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import asdict
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

import pandas as pd

from sbaloans.metrics.derived import coerce_derived_columns
from sbaloans.transform.record import CANONICAL_COLUMNS, CanonicalLoan
from sbaloans.utils.logging import get_logger

log = get_logger(__name__)

STRING_COLUMNS: tuple[str, ...] = (
    "id",
    "business_name",
    "city",
    "state",
    "zip",
    "bank_name",
    "bank_state",
    "naics",
    "franchise_code",
    "business_type",
    "loan_status",
)
DATE_COLUMNS: tuple[str, ...] = ("approval_date", "disbursement_date", "chargeoff_date")
INTEGER_COLUMNS: tuple[str, ...] = (
    "approval_fiscal_year",
    "term_months",
    "num_employees",
    "jobs_created",
    "jobs_retained",
)
AMOUNT_COLUMNS: tuple[str, ...] = (
    "gross_approved",
    "sba_approved",
    "disbursement_gross",
    "chargeoff_amount",
)
FLAG_COLUMNS: tuple[str, ...] = ("revolving_line", "low_doc")

DATE_FORMAT = "%Y-%m-%d"
AMOUNT_FORMAT = "%.2f"


def _cell(value: Any) -> Any:
    """Plain value of one canonical attribute for the frame."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def loans_to_frame(loans: Iterable[CanonicalLoan]) -> pd.DataFrame:
    """
    Convert canonical loans to the typed canonical frame.

    Args:
        loans: Canonical loans, typically in id order.

    Returns:
        DataFrame with CANONICAL_COLUMNS in order and canonical dtypes.
    """
    rows = [{k: _cell(v) for k, v in asdict(loan).items()} for loan in loans]
    df = pd.DataFrame.from_records(rows, columns=list(CANONICAL_COLUMNS))
    return coerce_canonical_frame(df)


def _blank_to_na(series: pd.Series) -> pd.Series:
    if series.dtype == object or pd.api.types.is_string_dtype(series.dtype):
        blank = series.astype("string").str.strip().eq("").fillna(False)
        return series.mask(blank.astype(bool))
    return series


def coerce_canonical_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Apply canonical dtypes to a frame holding canonical columns.

    Accepts both freshly built frames and frames read back from CSV as
    text. Empty strings become missing values.

    Raises:
        KeyError: If a canonical column is missing.
        ValueError: If a value cannot take its column's dtype.
    """
    missing = [c for c in CANONICAL_COLUMNS if c not in df.columns]
    if missing:
        msg = f"Missing canonical columns: {missing}"
        raise KeyError(msg)

    out = pd.DataFrame(index=df.index)
    for column in CANONICAL_COLUMNS:
        series = df[column]
        if column in FLAG_COLUMNS:
            out[column] = series.astype(str).str.strip().eq("True").astype(bool)
            continue

        series = _blank_to_na(series)
        if column in STRING_COLUMNS:
            out[column] = series.astype("string")
        elif column in DATE_COLUMNS:
            out[column] = pd.to_datetime(series, format=DATE_FORMAT)
        elif column in INTEGER_COLUMNS:
            out[column] = pd.to_numeric(series).astype("Int64")
        else:
            out[column] = pd.to_numeric(series).astype("float64")

    # Extra columns (e.g. derived metrics) pass through untouched
    extra = [c for c in df.columns if c not in CANONICAL_COLUMNS]
    for column in extra:
        out[column] = df[column]
    return out.reset_index(drop=True)


def frame_to_csv_text(df: pd.DataFrame) -> str:
    """Render a frame in the canonical CSV format."""
    return df.to_csv(
        index=False,
        date_format=DATE_FORMAT,
        float_format=AMOUNT_FORMAT,
        na_rep="",
        lineterminator="\n",
    )


def read_canonical_csv(path: Path) -> pd.DataFrame:
    """
    Read a canonical CSV back into a typed frame.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Canonical table not found: {path}"
        raise FileNotFoundError(msg)
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return coerce_canonical_frame(df)


def _stage(text: str, target: Path) -> Path:
    """Write ``text`` to a temporary file in the target's directory."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
    except BaseException:
        Path(name).unlink(missing_ok=True)
        raise
    return Path(name)


class StagedOutput:
    """
    A set of output files committed together.

    Files are staged into temporaries; ``commit`` moves them into place,
    ``discard`` removes them. Targets are untouched until commit.
    """

    def __init__(self) -> None:
        self._staged: dict[Path, Path] = {}

    def add_text(self, target: Path, text: str) -> None:
        """Stage text content for ``target``."""
        target = Path(target)
        if target in self._staged:
            self._staged.pop(target).unlink(missing_ok=True)
        self._staged[target] = _stage(text, target)

    def add_csv(self, target: Path, df: pd.DataFrame) -> None:
        """Stage a frame in the canonical CSV format."""
        self.add_text(target, frame_to_csv_text(df))

    def add_json(self, target: Path, data: Mapping[str, Any]) -> None:
        """Stage a JSON document."""
        self.add_text(target, json.dumps(data, indent=2, default=str) + "\n")

    def commit(self) -> list[Path]:
        """Move every staged file onto its target."""
        committed = []
        for target, temp in self._staged.items():
            os.replace(temp, target)
            committed.append(target)
            log.debug("Committed output", path=str(target))
        self._staged.clear()
        return committed

    def discard(self) -> None:
        """Remove staged files without touching targets."""
        for temp in self._staged.values():
            temp.unlink(missing_ok=True)
        self._staged.clear()


def write_csv_atomic(df: pd.DataFrame, target: Path) -> Path:
    """Write one frame in the canonical CSV format, atomically."""
    staged = StagedOutput()
    try:
        staged.add_csv(target, df)
        staged.commit()
    finally:
        staged.discard()
    return Path(target)


def read_enriched_csv(path: Path) -> pd.DataFrame:
    """
    Read an enriched table (canonical columns plus derived metrics).

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    return coerce_derived_columns(read_canonical_csv(path))
