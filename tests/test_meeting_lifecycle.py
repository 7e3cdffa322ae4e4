# tests/test_meeting_lifecycle.py
import pytest
from sqlalchemy.orm import Session

from factories import (
    BEFORE_MONDAY,
    FakeNotifier,
    at,
    clean_db,
    insert_meeting,
    seed_institution,
    seed_representative,
)
from unimeet.db.session import SessionLocal
from unimeet.models import AuditAction, MeetingStatus
from unimeet.services.audit_service import list_meeting_audit
from unimeet.services.booking_service import create_meeting
from unimeet.services.clock import FixedClock
from unimeet.services.errors import NotFoundError, TransitionError, ValidationError
from unimeet.services.meeting_lifecycle import (
    ALLOWED_TRANSITIONS,
    can_transition,
    get_meeting,
    propose_reschedule,
    transition_meeting,
)

S = MeetingStatus

REP = "rep-1"
ADMIN = "admin-1"
STUDENT = "student-a"


def _seed_meeting(db, approval_mode="AUTOMATIC", start=None) -> int:
    """Booked meeting; AUTOMATIC approval makes it CONFIRMED right away."""
    inst_id = seed_institution(db, approval_mode=approval_mode, admin_user_id=ADMIN)
    seed_representative(db, inst_id, rep_id=REP)
    result = create_meeting(
        db,
        student_id=STUDENT,
        representative_id=REP,
        start_time=start or at(9),
        duration_minutes=30,
        purpose="Scholarships",
        notifier=FakeNotifier(),
        clock=FixedClock(BEFORE_MONDAY),
    )
    assert result.ok
    return result.meeting.id


def _move(db, meeting_id, actor, target, clock=None, **kwargs):
    return transition_meeting(
        db,
        meeting_id=meeting_id,
        actor_id=actor,
        target_status=target,
        clock=clock or FixedClock(BEFORE_MONDAY),
        notifier=kwargs.pop("notifier", FakeNotifier()),
        **kwargs,
    )


def test_transition_table():
    expected = {
        (S.DRAFT, S.PENDING),
        (S.PENDING, S.CONFIRMED),
        (S.PENDING, S.REJECTED),
        (S.CONFIRMED, S.CANCELLED),
        (S.CONFIRMED, S.COMPLETED),
        (S.CONFIRMED, S.NO_SHOW),
        (S.CONFIRMED, S.RESCHEDULE_PROPOSED),
        (S.RESCHEDULE_PROPOSED, S.CONFIRMED),
        (S.RESCHEDULE_PROPOSED, S.CANCELLED),
    }
    for current in S:
        for target in S:
            assert can_transition(current, target) == ((current, target) in expected)

    # Plain strings are accepted too
    assert can_transition("PENDING", "CONFIRMED")
    assert ALLOWED_TRANSITIONS[S.NO_SHOW] == set()


def test_representative_confirms_pending_meeting():
    clean_db()
    notifier = FakeNotifier()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db, approval_mode="MANUAL")

        result = _move(db, meeting_id, REP, "CONFIRMED", notifier=notifier)

        assert result.ok
        assert result.meeting.status == "CONFIRMED"
        assert notifier.names() == ["confirmed"]

        audit = list_meeting_audit(db, meeting_id)
        assert [e.action for e in audit] == [
            AuditAction.CREATED.value,
            AuditAction.STATUS_CHANGE.value,
        ]
        assert (audit[1].old_status, audit[1].new_status) == ("PENDING", "CONFIRMED")
        assert audit[1].actor_id == REP
    finally:
        db.close()


def test_admin_rejects_and_student_is_told():
    clean_db()
    notifier = FakeNotifier()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db, approval_mode="MANUAL")

        result = _move(db, meeting_id, ADMIN, "REJECTED", notifier=notifier)

        assert result.meeting.status == "REJECTED"
        assert notifier.names() == ["cancelled"]
    finally:
        db.close()


def test_terminal_state_never_moves_and_leaves_audit_alone():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)
        assert _move(db, meeting_id, STUDENT, "CANCELLED").ok
        audit_before = len(list_meeting_audit(db, meeting_id))

        for target in S:
            result = _move(db, meeting_id, REP, target.value)
            assert result.error == TransitionError.INVALID_TRANSITION

        assert get_meeting(db, meeting_id).status == "CANCELLED"
        assert len(list_meeting_audit(db, meeting_id)) == audit_before
    finally:
        db.close()


def test_reschedule_proposal_needs_propose_reschedule():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)

        result = _move(db, meeting_id, REP, "RESCHEDULE_PROPOSED")

        assert result.error == TransitionError.INVALID_TRANSITION
        meeting = get_meeting(db, meeting_id)
        assert meeting.status == "CONFIRMED"
        assert meeting.reschedule_proposed_start is None
        assert len(list_meeting_audit(db, meeting_id)) == 1
    finally:
        db.close()


def test_invalid_transition_from_pending():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db, approval_mode="MANUAL")

        result = _move(db, meeting_id, REP, "COMPLETED")

        assert result.error == TransitionError.INVALID_TRANSITION
        assert get_meeting(db, meeting_id).status == "PENDING"
        assert len(list_meeting_audit(db, meeting_id)) == 1
    finally:
        db.close()


def test_authorization():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)

        stranger = _move(db, meeting_id, "someone-else", "CANCELLED")
        assert stranger.error == TransitionError.NOT_AUTHORIZED

        # Students may cancel, nothing else
        student_no_show = _move(db, meeting_id, STUDENT, "NO_SHOW")
        assert student_no_show.error == TransitionError.NOT_AUTHORIZED

        # Authorization is decided before the table
        student_invalid = _move(db, meeting_id, STUDENT, "PENDING")
        assert student_invalid.error == TransitionError.NOT_AUTHORIZED

        assert get_meeting(db, meeting_id).status == "CONFIRMED"
        assert len(list_meeting_audit(db, meeting_id)) == 1
    finally:
        db.close()


def test_draft_goes_to_pending():
    clean_db()

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db, admin_user_id=ADMIN)
        seed_representative(db, inst_id, rep_id=REP)
        meeting_id = insert_meeting(
            db,
            representative_id=REP,
            institution_id=inst_id,
            start_time=at(9),
            status="DRAFT",
            student_id=STUDENT,
        )

        result = _move(db, meeting_id, ADMIN, "PENDING")

        assert result.ok
        assert result.meeting.status == "PENDING"
    finally:
        db.close()


def test_manual_meeting_link_is_recorded():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db, approval_mode="MANUAL")

        result = _move(
            db,
            meeting_id,
            REP,
            "CONFIRMED",
            metadata={"meeting_link": "https://zoom.example.com/j/123"},
        )

        assert result.meeting.meeting_link == "https://zoom.example.com/j/123"
        assert result.meeting.video_provider == "Manual Link"
        audit = list_meeting_audit(db, meeting_id)
        assert audit[-1].details["meeting_link"] == "https://zoom.example.com/j/123"
    finally:
        db.close()


def test_unknown_meeting_and_status():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)
        with pytest.raises(NotFoundError):
            _move(db, meeting_id + 1000, REP, "CANCELLED")
        with pytest.raises(ValidationError):
            _move(db, meeting_id, REP, "ARCHIVED")
    finally:
        db.close()


def test_reschedule_round_trip():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)

        proposed = propose_reschedule(
            db,
            meeting_id=meeting_id,
            actor_id=STUDENT,
            new_start_time=at(10),
            reason="Exam moved",
            clock=FixedClock(BEFORE_MONDAY),
        )
        assert proposed.ok
        meeting = proposed.meeting
        assert meeting.status == "RESCHEDULE_PROPOSED"
        assert meeting.reschedule_proposed_by == "STUDENT"
        assert meeting.reschedule_proposed_start == at(10)
        assert meeting.reschedule_reason == "Exam moved"
        # Nothing moves until the proposal is accepted
        assert meeting.start_time == at(9)

        accepted = _move(db, meeting_id, REP, "CONFIRMED")

        assert accepted.ok
        meeting = accepted.meeting
        assert meeting.status == "CONFIRMED"
        assert meeting.start_time == at(10)
        assert meeting.end_time == at(10, 30)
        assert meeting.reschedule_proposed_by is None
        assert meeting.reschedule_proposed_start is None
        assert meeting.reschedule_reason is None

        audit = list_meeting_audit(db, meeting_id)
        assert [e.action for e in audit] == [
            AuditAction.CREATED.value,
            AuditAction.RESCHEDULE_PROPOSED.value,
            AuditAction.STATUS_CHANGE.value,
        ]
        assert audit[-1].details["reschedule_accepted"] is True
    finally:
        db.close()


def test_student_cannot_accept_own_proposal():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)
        propose_reschedule(
            db,
            meeting_id=meeting_id,
            actor_id=STUDENT,
            new_start_time=at(10),
            clock=FixedClock(BEFORE_MONDAY),
        )

        result = _move(db, meeting_id, STUDENT, "CONFIRMED")

        assert result.error == TransitionError.NOT_AUTHORIZED
        assert get_meeting(db, meeting_id).status == "RESCHEDULE_PROPOSED"
    finally:
        db.close()


def test_reschedule_into_taken_window_is_refused():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)
        other = create_meeting(
            db,
            student_id="student-b",
            representative_id=REP,
            start_time=at(10),
            duration_minutes=30,
            purpose="Housing",
            notifier=FakeNotifier(),
            clock=FixedClock(BEFORE_MONDAY),
        )
        assert other.ok

        result = propose_reschedule(
            db,
            meeting_id=meeting_id,
            actor_id=REP,
            new_start_time=at(10, 15),
            clock=FixedClock(BEFORE_MONDAY),
        )

        assert result.error == TransitionError.SLOT_TAKEN
        assert get_meeting(db, meeting_id).status == "CONFIRMED"
    finally:
        db.close()


def test_accepting_a_stale_proposal_rechecks_the_slot():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)
        assert propose_reschedule(
            db,
            meeting_id=meeting_id,
            actor_id=REP,
            new_start_time=at(10),
            clock=FixedClock(BEFORE_MONDAY),
        ).ok

        # Someone books 10:00 while the proposal is pending
        assert create_meeting(
            db,
            student_id="student-b",
            representative_id=REP,
            start_time=at(10),
            duration_minutes=30,
            purpose="Housing",
            notifier=FakeNotifier(),
            clock=FixedClock(BEFORE_MONDAY),
        ).ok

        result = _move(db, meeting_id, ADMIN, "CONFIRMED")

        assert result.error == TransitionError.SLOT_TAKEN
        meeting = get_meeting(db, meeting_id)
        assert meeting.status == "RESCHEDULE_PROPOSED"
        assert meeting.start_time == at(9)
    finally:
        db.close()


def test_reschedule_guards():
    clean_db()

    db: Session = SessionLocal()
    try:
        meeting_id = _seed_meeting(db)

        with pytest.raises(ValidationError):
            propose_reschedule(
                db,
                meeting_id=meeting_id,
                actor_id=REP,
                new_start_time=BEFORE_MONDAY,
                clock=FixedClock(BEFORE_MONDAY),
            )

        stranger = propose_reschedule(
            db,
            meeting_id=meeting_id,
            actor_id="someone-else",
            new_start_time=at(10),
            clock=FixedClock(BEFORE_MONDAY),
        )
        assert stranger.error == TransitionError.NOT_AUTHORIZED

        assert _move(db, meeting_id, REP, "CANCELLED").ok
        cancelled = propose_reschedule(
            db,
            meeting_id=meeting_id,
            actor_id=REP,
            new_start_time=at(10),
            clock=FixedClock(BEFORE_MONDAY),
        )
        assert cancelled.error == TransitionError.INVALID_TRANSITION
    finally:
        db.close()
