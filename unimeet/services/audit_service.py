# unimeet/services/audit_service.py
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from unimeet.models.audit_entry import AuditAction, AuditEntry

SYSTEM_ACTOR = "SYSTEM"


def record_audit(
    db: Session,
    *,
    action: AuditAction,
    actor_id: str,
    meeting_id: Optional[int] = None,
    hold_id: Optional[int] = None,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    at=None,
) -> AuditEntry:
    """
    Add an audit entry to the caller's transaction.

    Never commits: the entry lands together with the change it describes,
    or not at all.
    """
    entry = AuditEntry(
        action=action.value,
        actor_id=actor_id,
        meeting_id=meeting_id,
        hold_id=hold_id,
        old_status=old_status,
        new_status=new_status,
        details=dict(metadata or {}),
    )
    if at is not None:
        entry.created_at = at
    db.add(entry)
    return entry


def list_meeting_audit(db: Session, meeting_id: int) -> List[AuditEntry]:
    return (
        db.query(AuditEntry)
        .filter(AuditEntry.meeting_id == meeting_id)
        .order_by(AuditEntry.created_at.asc(), AuditEntry.id.asc())
        .all()
    )


def list_hold_audit(db: Session, hold_id: int) -> List[AuditEntry]:
    return (
        db.query(AuditEntry)
        .filter(AuditEntry.hold_id == hold_id)
        .order_by(AuditEntry.created_at.asc(), AuditEntry.id.asc())
        .all()
    )
