# unimeet/services/booking_service.py
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from unimeet.config import get_settings
from unimeet.models.audit_entry import AuditAction
from unimeet.models.hold import Hold
from unimeet.models.institution import ApprovalMode
from unimeet.models.meeting import Meeting, MeetingStatus
from unimeet.models.representative import Representative
from unimeet.services.audit_service import record_audit
from unimeet.services.availability_service import (
    find_conflicting_meeting,
    get_representative,
    load_meetings_for_day,
    load_rules_for_day,
)
from unimeet.services.clock import SystemClock
from unimeet.services.errors import BookingError, ValidationError
from unimeet.services.notifier import LoggingNotifier, safe_notify
from unimeet.services.slot_generator import generate_slots

logger = logging.getLogger(__name__)


@dataclass
class BookingResult:
    meeting: Optional[Meeting]
    error: Optional[BookingError] = None
    # Non-fatal findings, e.g. HOLD_EXPIRED
    warnings: List[BookingError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


MEETING_CODE_ATTEMPTS = 10


def generate_meeting_code() -> str:
    return f"MTG-{secrets.token_hex(3).upper()}"


def allocate_meeting_code(db: Session) -> str:
    """A code no stored meeting carries yet."""
    for _ in range(MEETING_CODE_ATTEMPTS):
        code = generate_meeting_code()
        taken = db.query(Meeting.id).filter(Meeting.meeting_code == code).first()
        if taken is None:
            return code
    raise RuntimeError(
        f"no free meeting code after {MEETING_CODE_ATTEMPTS} attempts"
    )


def lock_representative(db: Session, representative_id: str) -> Representative:
    """
    Serialize writers per representative for the rest of the transaction.

    Row lock on PostgreSQL; on SQLite FOR UPDATE is not rendered and the
    BEGIN IMMEDIATE issued by the session already holds the write lock.
    """
    return (
        db.query(Representative)
        .filter(Representative.id == representative_id)
        .with_for_update()
        .one()
    )


def _initial_status(rep: Representative) -> MeetingStatus:
    mode = None
    if rep.institution is not None:
        mode = rep.institution.approval_mode
    mode = mode or get_settings().DEFAULT_APPROVAL_MODE
    if mode == ApprovalMode.AUTOMATIC.value:
        return MeetingStatus.CONFIRMED
    return MeetingStatus.PENDING


def create_meeting(
    db: Session,
    *,
    student_id: str,
    representative_id: str,
    start_time: datetime,
    duration_minutes: int,
    purpose: str,
    hold_id: Optional[int] = None,
    student_questions: Optional[str] = None,
    notifier=None,
    clock=None,
) -> BookingResult:
    """
    Book a meeting with a representative.

    Inside one transaction:
      - lock the representative
      - check the optional hold; an expired, foreign or mismatched hold only
        adds a HOLD_EXPIRED warning
      - SLOT_TAKEN if an active meeting overlaps [start, start + duration),
        checked even with a valid hold
      - NO_REPRESENTATIVE_AVAILABLE if the representative's rules do not
        offer this start for this duration on that date
      - create the meeting (CONFIRMED for automatic approval, else PENDING),
        audit it, consume the hold

    Notifications go out after commit and never affect the result.
    """
    if not student_id:
        raise ValidationError("student_id is required")
    if not representative_id:
        raise ValidationError("representative_id is required")
    if not isinstance(start_time, datetime):
        raise ValidationError("start_time must be a datetime")
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("duration_minutes must be positive")
    if not purpose or not purpose.strip():
        raise ValidationError("purpose is required")

    clock = clock or SystemClock()
    notifier = notifier or LoggingNotifier()
    end_time = start_time + timedelta(minutes=duration_minutes)
    on_date = start_time.date()

    get_representative(db, representative_id)

    try:
        rep = lock_representative(db, representative_id)
        now = clock.now()
        warnings: List[BookingError] = []

        consumed_hold: Optional[Hold] = None
        if hold_id is not None:
            hold = db.get(Hold, hold_id)
            own = hold is not None and hold.holder_id == student_id
            matches = (
                own
                and hold.representative_id == representative_id
                and hold.start_time == start_time
            )
            if matches and hold.is_live(now):
                consumed_hold = hold
            else:
                warnings.append(BookingError.HOLD_EXPIRED)
                # Own dead hold on this slot: tidy it up with the booking
                if matches:
                    consumed_hold = hold

        conflict = find_conflicting_meeting(db, representative_id, start_time, end_time)
        if conflict is not None:
            db.rollback()
            logger.warning(
                "Booking refused for %s at %s: overlaps meeting %s",
                representative_id,
                start_time.isoformat(),
                conflict.id,
            )
            return BookingResult(meeting=None, error=BookingError.SLOT_TAKEN, warnings=warnings)

        rules = load_rules_for_day(db, on_date, representative_ids=[representative_id])
        day_meetings = load_meetings_for_day(db, [representative_id], on_date)
        candidates = generate_slots(rules, on_date, duration_minutes, day_meetings, now)
        if not any(c.start_time == start_time for c in candidates):
            db.rollback()
            logger.info(
                "Booking refused for %s at %s: not an offered slot",
                representative_id,
                start_time.isoformat(),
            )
            return BookingResult(
                meeting=None,
                error=BookingError.NO_REPRESENTATIVE_AVAILABLE,
                warnings=warnings,
            )

        status = _initial_status(rep)
        meeting = Meeting(
            student_id=student_id,
            representative_id=representative_id,
            institution_id=rep.institution_id,
            purpose=purpose.strip(),
            student_questions=student_questions,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
            status=status.value,
            video_provider=rep.video_provider,
            meeting_link=rep.external_link,
            meeting_code=allocate_meeting_code(db),
            created_at=now,
            updated_at=now,
        )
        db.add(meeting)
        db.flush()

        record_audit(
            db,
            action=AuditAction.CREATED,
            actor_id=student_id,
            meeting_id=meeting.id,
            new_status=status.value,
            metadata={
                "method": "booking",
                "auto_approve": status == MeetingStatus.CONFIRMED,
                "hold_id": hold_id,
                "warnings": [w.value for w in warnings],
            },
            at=now,
        )

        if consumed_hold is not None:
            record_audit(
                db,
                action=AuditAction.HOLD_CONSUMED,
                actor_id=student_id,
                meeting_id=meeting.id,
                hold_id=consumed_hold.id,
                at=now,
            )
            db.delete(consumed_hold)

        db.commit()
    except IntegrityError:
        db.rollback()
        # Only the active (representative, start) index means the slot is
        # gone; any other constraint is an infrastructure failure.
        winner = find_conflicting_meeting(db, representative_id, start_time, end_time)
        db.rollback()
        if winner is None:
            raise
        logger.warning(
            "Booking for %s at %s lost a race to meeting %s",
            representative_id,
            start_time.isoformat(),
            winner.id,
        )
        return BookingResult(meeting=None, error=BookingError.SLOT_TAKEN)
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(meeting)
    logger.info(
        "Meeting %s (%s) booked for student %s with %s at %s, status %s",
        meeting.id,
        meeting.meeting_code,
        student_id,
        representative_id,
        start_time.isoformat(),
        meeting.status,
    )

    safe_notify(notifier, "meeting_created", meeting)
    if meeting.status == MeetingStatus.CONFIRMED.value:
        safe_notify(notifier, "meeting_confirmed", meeting)

    return BookingResult(meeting=meeting, warnings=warnings)
