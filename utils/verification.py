"""Public, read-only lookup of issued certificates."""
from datetime import date, datetime
from typing import Optional

from flask import current_app

from models import NOC
from utils.errors import InvalidInput, NotFound
from utils.lifecycle import normalize_noc_number


def certificate_status(noc: NOC, today: Optional[date] = None) -> str:
    if noc.status == "revoked":
        return "revoked"
    today = today or datetime.utcnow().date()
    return "active" if today < noc.valid_until else "expired"


def verify_noc(noc_number: Optional[str], today: Optional[date] = None) -> dict:
    """Return the public view of a certificate.

    Raises NotFound for an unknown number so callers can tell "never issued"
    apart from "expired".
    """
    number = normalize_noc_number(noc_number)
    if not number:
        raise InvalidInput("NOC number is required")

    noc = NOC.query.filter_by(noc_number=number).first()
    if noc is None:
        current_app.logger.info("Verification miss", extra={"noc_number": number})
        raise NotFound("NOC not found")

    status = certificate_status(noc, today)
    building = noc.building
    return {
        "nocNumber": noc.noc_number,
        "issuedTo": noc.issued_to,
        "issueDate": noc.issue_date.isoformat(),
        "validFrom": noc.valid_from.isoformat(),
        "validUntil": noc.valid_until.isoformat(),
        "status": status,
        "valid": status == "active",
        "conditions": list(noc.conditions or []),
        "verificationHash": noc.verification_hash,
        "building": {
            "name": building.name,
            "address": building.address,
            "city": building.city,
            "category": building.category,
        }
        if building
        else None,
    }
