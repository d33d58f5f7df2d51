"""
Loan identity assignment.

Ids follow a business ordering (fiscal year, approval date, business
name) rather than arrival order, so assignment needs the complete set of
accepted loans: it is a separate pass after everything is materialized,
never part of the streaming map step.
"""

from collections.abc import Iterable
from dataclasses import replace
from datetime import date

from sbaloans.transform.record import CanonicalLoan
from sbaloans.utils.logging import get_logger

log = get_logger(__name__)

SortKey = tuple[bool, int, bool, date, bool, str, int]


class IdentityAlreadyAssignedError(ValueError):
    """Raised when a loan that already carries an id is assigned another."""


def ordering_key(position: int, loan: CanonicalLoan) -> SortKey:
    """
    Global ordering key of an accepted loan.

    Fiscal year, then approval date, then business name; absent values
    sort after present ones. ``position`` (input order) breaks ties.
    """
    return (
        loan.approval_fiscal_year is None,
        loan.approval_fiscal_year or 0,
        loan.approval_date is None,
        loan.approval_date or date.min,
        loan.business_name is None,
        loan.business_name or "",
        position,
    )


def format_identity(sequence: int, prefix: str = "SBA", width: int = 8) -> str:
    """Render ``<prefix>-<zero-padded sequence>``, e.g. ``SBA-00000001``."""
    return f"{prefix}-{sequence:0{width}d}"


def assign_identities(
    entries: Iterable[tuple[int, CanonicalLoan]],
    prefix: str = "SBA",
    width: int = 8,
) -> list[CanonicalLoan]:
    """
    Sort accepted loans globally and give each a dense, unique id.

    Args:
        entries: ``(input_position, loan)`` pairs for every accepted loan.
        prefix: Id prefix.
        width: Zero-padding width of the sequence number.

    Returns:
        Loans in id order, ids running from 1 without gaps.

    Raises:
        IdentityAlreadyAssignedError: If any loan already has an id.
    """
    ordered = sorted(entries, key=lambda entry: ordering_key(*entry))

    assigned: list[CanonicalLoan] = []
    for sequence, (position, loan) in enumerate(ordered, start=1):
        if loan.id is not None:
            msg = f"Loan at input position {position} already has id {loan.id!r}"
            raise IdentityAlreadyAssignedError(msg)
        assigned.append(replace(loan, id=format_identity(sequence, prefix, width)))

    log.info(
        "Assigned loan identities",
        count=len(assigned),
        first=assigned[0].id if assigned else None,
        last=assigned[-1].id if assigned else None,
    )
    return assigned
