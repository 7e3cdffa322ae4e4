# unimeet/models/audit_entry.py
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String

from unimeet.models.base import Base, utcnow


class AuditAction(str, Enum):
    CREATED = "CREATED"
    STATUS_CHANGE = "STATUS_CHANGE"
    RESCHEDULE_PROPOSED = "RESCHEDULE_PROPOSED"
    HOLD_ACQUIRED = "HOLD_ACQUIRED"
    HOLD_RENEWED = "HOLD_RENEWED"
    HOLD_RELEASED = "HOLD_RELEASED"
    HOLD_CONSUMED = "HOLD_CONSUMED"
    HOLD_EXPIRED = "HOLD_EXPIRED"
    REMINDER_SENT = "REMINDER_SENT"


class AuditEntry(Base):
    """
    Append-only record of one meeting transition or hold event.

    Hold ids are kept as plain integers (no FK) because the hold row is
    deleted while its history must survive.
    """

    __tablename__ = "audit_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)

    meeting_id = Column(Integer, nullable=True, index=True)
    hold_id = Column(Integer, nullable=True, index=True)

    action = Column(String(32), nullable=False)
    old_status = Column(String(32), nullable=True)
    new_status = Column(String(32), nullable=True)

    actor_id = Column(String(64), nullable=False)
    details = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
