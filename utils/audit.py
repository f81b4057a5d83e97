"""Audit trail helpers for workflow transitions and access decisions."""
from typing import Any, Dict, Optional

from flask import has_request_context, request

from extensions import db
from models import AuditLog


def log_action(
    action: str,
    user=None,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Stage an audit row on the current session; the caller owns the commit."""
    entry = AuditLog(
        user_id=user.id if user is not None else None,
        action_type=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id else None,
        details=details,
    )
    if has_request_context():
        entry.ip_address = request.remote_addr
        entry.user_agent = (request.headers.get("User-Agent") or "unknown")[:255]
    db.session.add(entry)
    return entry
