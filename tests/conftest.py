"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from sbaloans.config import PipelineConfig, config_from_dict
from sbaloans.transform import RecordTransformer

# Same logical fields under the two header conventions of the FOIA extracts
_LOWER_FIELD_MAP: dict[str, str] = {
    "l2locid": "lender_location_id",
    "borrname": "business_name",
    "borrcity": "city",
    "borrstate": "borrower_state",
    "projectstate": "project_state",
    "naicscode": "naics",
    "approvaldate": "approval_date",
    "approvalfiscalyear": "approval_fiscal_year",
    "firstdisbursementdate": "disbursement_date",
    "terminmonths": "term_months",
    "businessage": "business_age",
    "jobssupported": "jobs_supported",
    "grossapproval": "gross_approved",
    "sbaguaranteedapproval": "sba_approved",
    "grosschargeoffamount": "chargeoff_amount",
    "chargeoffdate": "chargeoff_date",
    "loanstatus": "loan_status",
}

_CAMEL_FIELD_MAP: dict[str, str] = {
    "LocationID": "lender_location_id",
    "BorrName": "business_name",
    "BorrCity": "city",
    "BorrState": "borrower_state",
    "ProjectState": "project_state",
    "NAICSCode": "naics",
    "ApprovalDate": "approval_date",
    "ApprovalFY": "approval_fiscal_year",
    "FirstDisbursementDate": "disbursement_date",
    "TerminMonths": "term_months",
    "BusinessAge": "business_age",
    "JobsSupported": "jobs_supported",
    "GrossApproval": "gross_approved",
    "SBAGuaranteedApproval": "sba_approved",
    "GrossChargeoffAmount": "chargeoff_amount",
    "ChargeoffDate": "chargeoff_date",
    "LoanStatus": "loan_status",
}


def _write_extract(path: Path, rows: list[dict[str, str]]) -> Path:
    """Write raw rows as a text-only CSV extract."""
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows, dtype=str).to_csv(path, index=False)
    return path


@pytest.fixture
def lower_field_map() -> dict[str, str]:
    """Field map of the lower-case FOIA header convention."""
    return dict(_LOWER_FIELD_MAP)


@pytest.fixture
def camel_field_map() -> dict[str, str]:
    """Field map of the CamelCase FOIA header convention."""
    return dict(_CAMEL_FIELD_MAP)


@pytest.fixture
def write_extract() -> Callable[[Path, list[dict[str, str]]], Path]:
    """Return a writer of text-only CSV extracts."""
    return _write_extract


@pytest.fixture
def lower_transformer(lower_field_map: dict[str, str]) -> RecordTransformer:
    return RecordTransformer.for_field_map(lower_field_map)


@pytest.fixture
def camel_transformer(camel_field_map: dict[str, str]) -> RecordTransformer:
    return RecordTransformer.for_field_map(camel_field_map)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def camel_rows() -> list[dict[str, str]]:
    """Older extract: one fully valid row and one without lender location id."""
    valid = {
        "LocationID": "1001",
        "BorrName": "Acme Tool Co",
        "BorrCity": "Dayton",
        "BorrState": "OH",
        "ProjectState": "OH",
        "NAICSCode": "332710",
        "ApprovalDate": "03/15/2010",
        "ApprovalFY": "2010",
        "FirstDisbursementDate": "04/01/2010",
        "TerminMonths": "120",
        "BusinessAge": "Existing or more than 2 years old",
        "JobsSupported": "10",
        "GrossApproval": "250000",
        "SBAGuaranteedApproval": "187500",
        "GrossChargeoffAmount": "0",
        "ChargeoffDate": "",
        "LoanStatus": "PIF",
    }
    return [valid, {**valid, "LocationID": "   ", "BorrName": "No Lender Inc"}]


@pytest.fixture
def lower_rows() -> list[dict[str, str]]:
    """Newer extract: one malformed approval date and one formatted amount."""
    return [
        {
            "l2locid": "2002",
            "borrname": "Bayside Bakery",
            "borrcity": "Oakland",
            "borrstate": "ca",
            "projectstate": "CA",
            "naicscode": "311811",
            "approvaldate": "13/45/2020",
            "approvalfiscalyear": "2021",
            "firstdisbursementdate": "2021-01-15",
            "terminmonths": "84",
            "businessage": "New Business or 2 years or less",
            "jobssupported": "5",
            "grossapproval": "50000",
            "sbaguaranteedapproval": "25000",
            "grosschargeoffamount": "12000",
            "chargeoffdate": "2023-06-30",
            "loanstatus": "CHGOFF",
        },
        {
            "l2locid": "3003",
            "borrname": "Cedar Dental",
            "borrcity": "Austin",
            "borrstate": "",
            "projectstate": "TX",
            "naicscode": "621210",
            "approvaldate": "2020-11-02",
            "approvalfiscalyear": "2021",
            "firstdisbursementdate": "",
            "terminmonths": "36.6",
            "businessage": "1",
            "jobssupported": "7",
            "grossapproval": "$150,000.00",
            "sbaguaranteedapproval": "$112,500.00",
            "grosschargeoffamount": "",
            "chargeoffdate": "",
            "loanstatus": "EXEMPT",
        },
    ]


@pytest.fixture
def base_config(tmp_path: Path) -> dict[str, Any]:
    """Create a two-generation configuration dictionary for testing."""
    return {
        "project": "test-sba",
        "data_root": str(tmp_path / "raw"),
        "sources": [
            {"name": "early", "path": "early.csv", "generation": "foia_camel"},
            {"name": "late", "path": "late.csv", "generation": "foia_lower"},
        ],
        "generations": {
            "foia_camel": {"field_map": dict(_CAMEL_FIELD_MAP)},
            "foia_lower": {"field_map": dict(_LOWER_FIELD_MAP)},
        },
        "execution": {"parallel": False},
        "output": {"output_root": str(tmp_path / "output")},
    }


@pytest.fixture
def pipeline_config(
    base_config: dict[str, Any],
    camel_rows: list[dict[str, str]],
    lower_rows: list[dict[str, str]],
) -> PipelineConfig:
    """Validated config whose source extracts exist on disk."""
    config = config_from_dict(base_config)
    _write_extract(config.data_root / "early.csv", camel_rows)
    _write_extract(config.data_root / "late.csv", lower_rows)
    return config
