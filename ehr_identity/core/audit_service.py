from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from .audit_models import AuditLog


def record_audit_event(
    db: Session,
    action: str,
    user_id: Optional[int] = None,
    request: Optional[Request] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Adds an audit log entry to the current transaction.

    The entry is committed together with the change it describes, so a
    rolled back transition leaves no audit trace.

    Args:
        db: The database session.
        action: What happened (e.g., 'REGISTRATION_APPROVED', 'USER_LOGIN_SUCCESS').
        user_id: The ID of the user who performed the action (if applicable).
        request: The FastAPI request object to extract IP address (if available).
        details: Additional context related to the action.

    Returns:
        The pending AuditLog object.
    """
    ip_address = None
    if request and request.client:
        ip_address = request.client.host

    audit_entry = AuditLog(
        user_id=user_id,
        action=action,
        ip_address=ip_address,
        details=details,
    )
    db.add(audit_entry)
    return audit_entry


def list_audit_events(db: Session, action: Optional[str] = None, limit: int = 100) -> List[AuditLog]:
    """Most recent audit entries, optionally filtered by action."""
    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
