# unimeet/models/meeting.py
from datetime import timedelta
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from unimeet.models.base import Base, utcnow


class MeetingStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    RESCHEDULE_PROPOSED = "RESCHEDULE_PROPOSED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


# Statuses that still occupy the representative's time window
ACTIVE_STATUSES = (
    MeetingStatus.PENDING.value,
    MeetingStatus.CONFIRMED.value,
    MeetingStatus.RESCHEDULE_PROPOSED.value,
)

_ACTIVE_SQL = "status IN ('PENDING', 'CONFIRMED', 'RESCHEDULE_PROPOSED')"


class Meeting(Base):
    __tablename__ = "meetings"
    __table_args__ = (
        # Storage backstop for double booking: two active meetings can never
        # share a start for the same representative.
        Index(
            "uq_meeting_rep_start_active",
            "representative_id",
            "start_time",
            unique=True,
            sqlite_where=text(_ACTIVE_SQL),
            postgresql_where=text(_ACTIVE_SQL),
        ),
        Index("ix_meeting_rep_window", "representative_id", "start_time", "end_time"),
    )

    id = Column(Integer, primary_key=True, index=True)

    student_id = Column(String(64), nullable=False, index=True)
    representative_id = Column(
        String(64),
        ForeignKey("representatives.id"),
        nullable=False,
    )
    institution_id = Column(
        Integer,
        ForeignKey("institutions.id"),
        nullable=False,
        index=True,
    )

    purpose = Column(String(255), nullable=False)
    student_questions = Column(Text, nullable=True)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    # Store status as a simple string; MeetingStatus is still used in Python
    status = Column(String(32), nullable=False, default=MeetingStatus.PENDING.value)

    # Pending reschedule proposal, cleared once accepted
    reschedule_proposed_by = Column(String(32), nullable=True)
    reschedule_proposed_start = Column(DateTime, nullable=True)
    reschedule_reason = Column(Text, nullable=True)

    meeting_link = Column(String(512), nullable=True)
    video_provider = Column(String(64), nullable=True)
    meeting_code = Column(String(32), nullable=False, unique=True)

    reminder_24h_sent = Column(Boolean, nullable=False, default=False)
    reminder_1h_sent = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    representative = relationship("Representative", backref="meetings")
    institution = relationship("Institution", backref="meetings")

    def move_to(self, new_start) -> None:
        self.start_time = new_start
        self.end_time = new_start + timedelta(minutes=self.duration_minutes)

    def clear_reschedule_proposal(self) -> None:
        self.reschedule_proposed_by = None
        self.reschedule_proposed_start = None
        self.reschedule_reason = None
