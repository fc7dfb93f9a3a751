"""Signature Ledger — append-only record of party signatures.

Rows are only ever inserted. Whether a contract is fully executed is derived
from the two per-party flags on the contract, never stored separately.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from booking_contracts.errors import ValidationFailedError
from booking_contracts.models.contract import Contract, PartyRole
from booking_contracts.models.contract_signature import ContractSignature, SignatureType
from booking_contracts.models.user import User

logger = logging.getLogger(__name__)

# Accepted spellings for the signing method -> stored signature type
SIGNATURE_METHODS = {
    "type": SignatureType.typed,
    "typed": SignatureType.typed,
    "draw": SignatureType.drawn,
    "drawn": SignatureType.drawn,
    "upload": SignatureType.uploaded,
    "uploaded": SignatureType.uploaded,
}


def signature_type_for(method: str) -> SignatureType:
    try:
        return SIGNATURE_METHODS[method]
    except KeyError:
        raise ValidationFailedError([f'Unknown signature method "{method}"'], message="Invalid signature")


def is_fully_executed(contract: Contract) -> bool:
    return bool(contract.signed_by_artist and contract.signed_by_promoter)


def has_signed(contract: Contract, role: PartyRole) -> bool:
    return bool(contract.signed_by_artist if role == PartyRole.artist else contract.signed_by_promoter)


def record_signature(
    db: Session,
    contract: Contract,
    signer: User,
    role: PartyRole,
    signature_data: Optional[str],
    method: str,
    ip_address: Optional[str],
    user_agent: Optional[str],
    now: datetime,
) -> ContractSignature:
    """Append one signature row (flushed, not committed)."""
    signature = ContractSignature(
        contract_id=contract.contract_id,
        user_id=signer.user_id,
        role=role,
        signature_data=signature_data or signer.display_name or "Signed",
        signature_type=signature_type_for(method),
        ip_address=ip_address,
        user_agent=user_agent,
        signed_at=now,
    )
    db.add(signature)
    db.flush()
    logger.info("Recorded %s signature on contract %s", role.value, contract.contract_id)
    return signature


def render_signature_block(signatures: list[ContractSignature]) -> str:
    rule = "═" * 63
    blocks = []
    for sig in signatures:
        signed_at = sig.signed_at.strftime("%Y-%m-%d %H:%M UTC") if sig.signed_at else "N/A"
        blocks.append(
            f"{sig.role.value.upper()}: {sig.signature_data}\n"
            f"Signed at: {signed_at}\n"
            f"Method: {sig.signature_type.value}\n"
            f"IP: {sig.ip_address or 'N/A'}\n"
        )
    return f"{rule}\nSIGNATURES\n{rule}\n\n" + "\n".join(blocks)
