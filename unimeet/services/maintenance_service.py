# unimeet/services/maintenance_service.py
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from unimeet.models.audit_entry import AuditAction
from unimeet.models.meeting import Meeting, MeetingStatus
from unimeet.services.audit_service import SYSTEM_ACTOR, record_audit
from unimeet.services.clock import SystemClock
from unimeet.services.meeting_lifecycle import apply_transition
from unimeet.services.notifier import LoggingNotifier, safe_notify

logger = logging.getLogger(__name__)

# A tick every 30 minutes lands inside each window at least once
REMINDER_WINDOWS = {
    "24h": (timedelta(hours=23), timedelta(hours=25), "reminder_24h_sent"),
    "1h": (timedelta(minutes=50), timedelta(minutes=70), "reminder_1h_sent"),
}


@dataclass
class ReminderCounts:
    sent_24h: int = 0
    sent_1h: int = 0


def complete_elapsed_meetings(db: Session, clock=None) -> int:
    """
    Mark every CONFIRMED meeting that has already ended as COMPLETED.

    One transaction per meeting, so a failure leaves earlier ones done.
    """
    clock = clock or SystemClock()
    now = clock.now()

    due = (
        db.query(Meeting)
        .filter(
            Meeting.status == MeetingStatus.CONFIRMED.value,
            Meeting.end_time < now,
        )
        .order_by(Meeting.end_time.asc())
        .all()
    )

    completed = 0
    for meeting in due:
        try:
            apply_transition(
                db,
                meeting,
                MeetingStatus.COMPLETED,
                SYSTEM_ACTOR,
                {"reason": "auto-completed"},
                now,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        completed += 1

    if completed:
        logger.info("Auto-completed %s meetings", completed)
    return completed


def send_due_reminders(db: Session, notifier=None, clock=None) -> ReminderCounts:
    """
    Send the 24h and 1h reminders for CONFIRMED meetings.

    A reminder flag is only set when the notifier succeeded, so a failed
    reminder is retried on the next tick while the window is still open.
    """
    clock = clock or SystemClock()
    notifier = notifier or LoggingNotifier()
    now = clock.now()
    counts = ReminderCounts()

    for label, (lower, upper, flag) in REMINDER_WINDOWS.items():
        meetings = (
            db.query(Meeting)
            .filter(
                Meeting.status == MeetingStatus.CONFIRMED.value,
                getattr(Meeting, flag).is_(False),
                Meeting.start_time >= now + lower,
                Meeting.start_time <= now + upper,
            )
            .order_by(Meeting.start_time.asc())
            .all()
        )

        for meeting in meetings:
            if not safe_notify(notifier, "reminder_due", meeting):
                continue
            try:
                setattr(meeting, flag, True)
                record_audit(
                    db,
                    action=AuditAction.REMINDER_SENT,
                    actor_id=SYSTEM_ACTOR,
                    meeting_id=meeting.id,
                    metadata={"window": label},
                    at=now,
                )
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
            if label == "24h":
                counts.sent_24h += 1
            else:
                counts.sent_1h += 1

    logger.info("Reminders sent: 24h=%s 1h=%s", counts.sent_24h, counts.sent_1h)
    return counts
