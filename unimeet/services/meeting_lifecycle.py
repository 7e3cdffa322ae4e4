# unimeet/services/meeting_lifecycle.py
"""
Meeting state machine.

ALLOWED_TRANSITIONS is the single authority on which status changes exist.
Every change goes through `apply_transition`, which also writes the one
audit entry per transition.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from unimeet.models.audit_entry import AuditAction
from unimeet.models.meeting import Meeting, MeetingStatus
from unimeet.services.audit_service import record_audit
from unimeet.services.availability_service import find_conflicting_meeting
from unimeet.services.booking_service import lock_representative
from unimeet.services.clock import SystemClock
from unimeet.services.errors import NotFoundError, TransitionError, ValidationError
from unimeet.services.notifier import LoggingNotifier, safe_notify

logger = logging.getLogger(__name__)

S = MeetingStatus

ALLOWED_TRANSITIONS = {
    S.DRAFT: {S.PENDING},
    S.PENDING: {S.CONFIRMED, S.REJECTED},
    S.CONFIRMED: {S.CANCELLED, S.COMPLETED, S.NO_SHOW, S.RESCHEDULE_PROPOSED},
    S.RESCHEDULE_PROPOSED: {S.CONFIRMED, S.CANCELLED},
    S.REJECTED: set(),
    S.CANCELLED: set(),
    S.COMPLETED: set(),
    S.NO_SHOW: set(),
}

TERMINAL_STATUSES = frozenset({S.REJECTED, S.CANCELLED, S.COMPLETED})

# ProposeReschedule sits outside the table: it also writes proposal fields
RESCHEDULABLE_STATUSES = frozenset({S.PENDING, S.CONFIRMED})

ROLE_REPRESENTATIVE = "REPRESENTATIVE"
ROLE_ADMIN = "ADMIN"
ROLE_STUDENT = "STUDENT"

MANUAL_LINK_PROVIDER = "Manual Link"


@dataclass
class TransitionResult:
    meeting: Optional[Meeting]
    error: Optional[TransitionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_status(value) -> MeetingStatus:
    try:
        return MeetingStatus(value)
    except ValueError as e:
        raise ValidationError(f"unknown meeting status: {value!r}") from e


def can_transition(current, target) -> bool:
    return parse_status(target) in ALLOWED_TRANSITIONS.get(parse_status(current), set())


def actor_role(meeting: Meeting, actor_id: str) -> Optional[str]:
    if actor_id == meeting.representative_id:
        return ROLE_REPRESENTATIVE
    institution = meeting.institution
    if institution is not None and institution.admin_user_id and actor_id == institution.admin_user_id:
        return ROLE_ADMIN
    if actor_id == meeting.student_id:
        return ROLE_STUDENT
    return None


def is_authorized(meeting: Meeting, actor_id: str, target: MeetingStatus) -> bool:
    """Representative and admin may request any transition; the student may only cancel."""
    role = actor_role(meeting, actor_id)
    if role in (ROLE_REPRESENTATIVE, ROLE_ADMIN):
        return True
    return role == ROLE_STUDENT and target == S.CANCELLED


def get_meeting(db: Session, meeting_id: int) -> Meeting:
    meeting = db.get(Meeting, meeting_id)
    if meeting is None:
        raise NotFoundError(f"Meeting {meeting_id} not found")
    return meeting


def apply_transition(
    db: Session,
    meeting: Meeting,
    target: MeetingStatus,
    actor_id: str,
    metadata: Optional[Dict[str, Any]],
    now: datetime,
) -> Optional[TransitionError]:
    """
    Mutate `meeting` to `target` inside the caller's transaction.

    The caller has already checked authorization and the table. Returns an
    error (and changes nothing) only when accepting a reschedule would
    collide with another active meeting.
    """
    old_status = meeting.status
    details: Dict[str, Any] = dict(metadata or {})

    accepting = (
        old_status == S.RESCHEDULE_PROPOSED.value
        and target == S.CONFIRMED
        and meeting.reschedule_proposed_start is not None
    )
    if accepting:
        new_start = meeting.reschedule_proposed_start
        new_end = new_start + timedelta(minutes=meeting.duration_minutes)
        lock_representative(db, meeting.representative_id)
        if find_conflicting_meeting(
            db,
            meeting.representative_id,
            new_start,
            new_end,
            exclude_meeting_id=meeting.id,
        ):
            return TransitionError.SLOT_TAKEN
        details["previous_start_time"] = meeting.start_time.isoformat()
        details["start_time"] = new_start.isoformat()
        meeting.move_to(new_start)
        meeting.clear_reschedule_proposal()
    details["reschedule_accepted"] = accepting

    link = details.get("meeting_link")
    if link:
        meeting.meeting_link = link
        meeting.video_provider = MANUAL_LINK_PROVIDER

    meeting.status = target.value
    meeting.updated_at = now

    record_audit(
        db,
        action=AuditAction.STATUS_CHANGE,
        actor_id=actor_id,
        meeting_id=meeting.id,
        old_status=old_status,
        new_status=target.value,
        metadata=details,
        at=now,
    )
    return None


def _notify_after_transition(notifier, meeting: Meeting) -> None:
    if meeting.status == S.CONFIRMED.value:
        safe_notify(notifier, "meeting_confirmed", meeting)
    elif meeting.status in (S.CANCELLED.value, S.REJECTED.value):
        safe_notify(notifier, "meeting_cancelled", meeting)


def transition_meeting(
    db: Session,
    *,
    meeting_id: int,
    actor_id: str,
    target_status,
    metadata: Optional[Dict[str, Any]] = None,
    notifier=None,
    clock=None,
) -> TransitionResult:
    """
    Move a meeting to `target_status`.

    NOT_AUTHORIZED and INVALID_TRANSITION leave the meeting and its audit
    trail untouched. RESCHEDULE_PROPOSED -> CONFIRMED adopts the proposed
    start and clears the proposal in the same write. Moving to
    RESCHEDULE_PROPOSED is refused here; use `propose_reschedule`.
    """
    if not actor_id:
        raise ValidationError("actor_id is required")
    target = parse_status(target_status)
    clock = clock or SystemClock()
    notifier = notifier or LoggingNotifier()

    meeting = get_meeting(db, meeting_id)

    if not is_authorized(meeting, actor_id, target):
        db.rollback()
        logger.warning(
            "Actor %s may not move meeting %s to %s", actor_id, meeting_id, target.value
        )
        return TransitionResult(meeting=meeting, error=TransitionError.NOT_AUTHORIZED)

    # A proposal needs a start time; only propose_reschedule records one
    if target == S.RESCHEDULE_PROPOSED or not can_transition(meeting.status, target):
        db.rollback()
        logger.info(
            "Invalid transition for meeting %s: %s -> %s",
            meeting_id,
            meeting.status,
            target.value,
        )
        return TransitionResult(meeting=meeting, error=TransitionError.INVALID_TRANSITION)

    old_status = meeting.status
    try:
        error = apply_transition(db, meeting, target, actor_id, metadata, clock.now())
        if error is not None:
            db.rollback()
            return TransitionResult(meeting=get_meeting(db, meeting_id), error=error)
        db.commit()
    except IntegrityError:
        db.rollback()
        return TransitionResult(
            meeting=get_meeting(db, meeting_id), error=TransitionError.SLOT_TAKEN
        )
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(meeting)
    logger.info(
        "Meeting %s moved %s -> %s by %s", meeting.id, old_status, meeting.status, actor_id
    )
    _notify_after_transition(notifier, meeting)
    return TransitionResult(meeting=meeting)


def propose_reschedule(
    db: Session,
    *,
    meeting_id: int,
    actor_id: str,
    new_start_time: datetime,
    reason: Optional[str] = None,
    clock=None,
) -> TransitionResult:
    """
    Record a proposal to move a PENDING or CONFIRMED meeting.

    The meeting keeps its current start until the proposal is accepted via
    a transition to CONFIRMED. Representative, admin and the booking student
    may all propose.
    """
    if not actor_id:
        raise ValidationError("actor_id is required")
    if not isinstance(new_start_time, datetime):
        raise ValidationError("new_start_time must be a datetime")
    clock = clock or SystemClock()
    now = clock.now()
    if new_start_time <= now:
        raise ValidationError("new_start_time must be in the future")

    meeting = get_meeting(db, meeting_id)

    role = actor_role(meeting, actor_id)
    if role is None:
        db.rollback()
        return TransitionResult(meeting=meeting, error=TransitionError.NOT_AUTHORIZED)

    if parse_status(meeting.status) not in RESCHEDULABLE_STATUSES:
        db.rollback()
        return TransitionResult(meeting=meeting, error=TransitionError.INVALID_TRANSITION)

    new_end = new_start_time + timedelta(minutes=meeting.duration_minutes)
    old_status = meeting.status
    try:
        lock_representative(db, meeting.representative_id)
        if find_conflicting_meeting(
            db,
            meeting.representative_id,
            new_start_time,
            new_end,
            exclude_meeting_id=meeting.id,
        ):
            db.rollback()
            return TransitionResult(
                meeting=get_meeting(db, meeting_id), error=TransitionError.SLOT_TAKEN
            )

        meeting.status = S.RESCHEDULE_PROPOSED.value
        meeting.reschedule_proposed_by = role
        meeting.reschedule_proposed_start = new_start_time
        meeting.reschedule_reason = reason
        meeting.updated_at = now

        record_audit(
            db,
            action=AuditAction.RESCHEDULE_PROPOSED,
            actor_id=actor_id,
            meeting_id=meeting.id,
            old_status=old_status,
            new_status=S.RESCHEDULE_PROPOSED.value,
            metadata={
                "proposed_start_time": new_start_time.isoformat(),
                "reason": reason,
                "proposed_by": role,
            },
            at=now,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(meeting)
    logger.info(
        "Reschedule of meeting %s to %s proposed by %s (%s)",
        meeting.id,
        new_start_time.isoformat(),
        actor_id,
        role,
    )
    return TransitionResult(meeting=meeting)
