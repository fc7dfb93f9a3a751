"""Term Version Store — append-only contract versions.

``create_version`` is the only way ``Contract.current_version``,
``contract_text`` and ``terms`` change after a contract is created. The
bump is a check-and-set on ``current_version``, so two writers racing from
the same version cannot both succeed; the unique (contract_id, version)
constraint backs it up. Neither function commits: callers commit together
with the rest of their transition.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from booking_contracts.errors import StateConflictError
from booking_contracts.models.booking import Booking
from booking_contracts.models.contract import Contract
from booking_contracts.models.contract_version import ContractVersion
from booking_contracts.services.contract_document import render_contract

logger = logging.getLogger(__name__)

INITIAL_CHANGE_SUMMARY = "Initial contract generation from negotiated terms"


def create_initial_version(
    db: Session,
    contract: Contract,
    terms: dict[str, Any],
    created_by: Optional[str],
) -> ContractVersion:
    """Write version 1 for a freshly inserted contract."""
    version = ContractVersion(
        contract_id=contract.contract_id,
        version=1,
        contract_text=contract.contract_text,
        terms=terms,
        created_by=created_by,
        change_summary=INITIAL_CHANGE_SUMMARY,
    )
    db.add(version)
    return version


def create_version(
    db: Session,
    contract: Contract,
    booking: Booking,
    terms: dict[str, Any],
    created_by: Optional[str],
    change_summary: str,
    now: datetime,
) -> ContractVersion:
    """Render ``terms`` and append them as the next version of ``contract``."""
    expected = contract.current_version
    next_version = expected + 1
    contract_text = render_contract(booking, terms)

    updated = (
        db.query(Contract)
        .filter(Contract.contract_id == contract.contract_id, Contract.current_version == expected)
        .update(
            {
                Contract.current_version: next_version,
                Contract.contract_text: contract_text,
                Contract.terms: terms,
                Contract.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise StateConflictError(
            f"Contract version changed concurrently (expected v{expected}). Reload and retry."
        )

    version = ContractVersion(
        contract_id=contract.contract_id,
        version=next_version,
        contract_text=contract_text,
        terms=terms,
        created_by=created_by,
        change_summary=change_summary,
    )
    db.add(version)
    logger.info("Contract %s advanced to version %d", contract.contract_id, next_version)
    return version
