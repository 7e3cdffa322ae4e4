# tests/test_hold_service.py
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from factories import BEFORE_MONDAY, at, clean_db, insert_meeting, seed_institution, seed_representative
from unimeet.db.session import SessionLocal
from unimeet.models import AuditAction, Hold
from unimeet.services.audit_service import list_hold_audit
from unimeet.services.clock import FixedClock
from unimeet.services.errors import HoldError, NotFoundError, ValidationError
from unimeet.services.hold_service import acquire_hold, list_live_holds, release_hold


def test_acquire_then_other_holder_is_refused():
    clean_db()
    clock = FixedClock(BEFORE_MONDAY)

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db)
        rep_id = seed_representative(db, inst_id)

        first = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-a", clock=clock
        )
        assert first.ok
        assert first.renewed is False
        assert first.hold.expires_at == BEFORE_MONDAY + timedelta(minutes=5)

        second = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-b", clock=clock
        )
        assert second.error == HoldError.HELD_BY_OTHER
        assert second.hold is None
    finally:
        db.close()


def test_same_holder_renews():
    clean_db()
    clock = FixedClock(BEFORE_MONDAY)

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db)
        rep_id = seed_representative(db, inst_id)

        first = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-a", clock=clock
        )
        hold_id = first.hold.id

        clock.advance(minutes=3)
        again = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-a", clock=clock
        )

        assert again.ok
        assert again.renewed is True
        assert again.hold.id == hold_id
        assert again.hold.expires_at == BEFORE_MONDAY + timedelta(minutes=8)

        actions = [e.action for e in list_hold_audit(db, hold_id)]
        assert actions == [AuditAction.HOLD_ACQUIRED.value, AuditAction.HOLD_RENEWED.value]
    finally:
        db.close()


def test_expired_hold_is_purged_and_slot_goes_to_next_holder():
    clean_db()
    clock = FixedClock(BEFORE_MONDAY)

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db)
        rep_id = seed_representative(db, inst_id)

        first = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-a", clock=clock
        )
        expired_id = first.hold.id

        clock.advance(minutes=6)
        second = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-b", clock=clock
        )

        assert second.ok
        assert second.hold.holder_id == "student-b"
        assert db.get(Hold, expired_id) is None

        actions = [e.action for e in list_hold_audit(db, expired_id)]
        assert actions[-1] == AuditAction.HOLD_EXPIRED.value
    finally:
        db.close()


def test_expired_hold_id_is_never_reused():
    clean_db()
    clock = FixedClock(BEFORE_MONDAY)

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db)
        rep_id = seed_representative(db, inst_id)

        first = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-a", clock=clock
        )
        stale_id = first.hold.id

        clock.advance(minutes=6)
        second = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-b", clock=clock
        )
        live_id = second.hold.id

        assert live_id != stale_id

        # Releasing the dead hold must not touch the new holder's reservation
        assert release_hold(db, stale_id, actor_id="student-a", clock=clock) is False
        assert db.get(Hold, live_id).holder_id == "student-b"

        stale_history = [(e.action, e.actor_id) for e in list_hold_audit(db, stale_id)]
        assert stale_history == [
            (AuditAction.HOLD_ACQUIRED.value, "student-a"),
            (AuditAction.HOLD_EXPIRED.value, "SYSTEM"),
        ]
        live_history = [e.action for e in list_hold_audit(db, live_id)]
        assert live_history == [AuditAction.HOLD_ACQUIRED.value]
    finally:
        db.close()


def test_booked_slot_cannot_be_held():
    clean_db()
    clock = FixedClock(BEFORE_MONDAY)

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db)
        rep_id = seed_representative(db, inst_id)
        insert_meeting(db, representative_id=rep_id, institution_id=inst_id, start_time=at(9))

        exact = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-a", clock=clock
        )
        assert exact.error == HoldError.ALREADY_BOOKED

        # 08:45 + 30 minutes runs into the 09:00 meeting
        overlapping = acquire_hold(
            db,
            representative_id=rep_id,
            start_time=at(8, 45),
            holder_id="student-a",
            duration_minutes=30,
            clock=clock,
        )
        assert overlapping.error == HoldError.ALREADY_BOOKED

        free = acquire_hold(
            db, representative_id=rep_id, start_time=at(9, 30), holder_id="student-a", clock=clock
        )
        assert free.ok
    finally:
        db.close()


def test_cancelled_meeting_does_not_block_hold():
    clean_db()
    clock = FixedClock(BEFORE_MONDAY)

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db)
        rep_id = seed_representative(db, inst_id)
        insert_meeting(
            db,
            representative_id=rep_id,
            institution_id=inst_id,
            start_time=at(9),
            status="CANCELLED",
        )

        result = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-a", clock=clock
        )
        assert result.ok
    finally:
        db.close()


def test_release_hold_and_list_live_holds():
    clean_db()
    clock = FixedClock(BEFORE_MONDAY)

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db)
        rep_id = seed_representative(db, inst_id)

        a = acquire_hold(
            db, representative_id=rep_id, start_time=at(9), holder_id="student-a", clock=clock
        )
        b = acquire_hold(
            db, representative_id=rep_id, start_time=at(10), holder_id="student-b", clock=clock
        )

        a_id, b_id = a.hold.id, b.hold.id

        live = list_live_holds(db, rep_id, at(9).date(), clock=clock)
        assert [h.id for h in live] == [a_id, b_id]

        assert release_hold(db, a_id, clock=clock) is True
        assert release_hold(db, a_id, clock=clock) is False

        audit = list_hold_audit(db, a_id)
        assert audit[-1].action == AuditAction.HOLD_RELEASED.value
        assert audit[-1].actor_id == "student-a"

        clock.advance(minutes=10)
        assert list_live_holds(db, rep_id, at(9).date(), clock=clock) == []
    finally:
        db.close()


def test_invalid_input():
    clean_db()
    clock = FixedClock(BEFORE_MONDAY)

    db: Session = SessionLocal()
    try:
        inst_id = seed_institution(db)
        rep_id = seed_representative(db, inst_id)

        with pytest.raises(ValidationError):
            acquire_hold(db, representative_id=rep_id, start_time=at(9), holder_id="", clock=clock)
        with pytest.raises(ValidationError):
            acquire_hold(
                db,
                representative_id=rep_id,
                start_time=at(9),
                holder_id="student-a",
                duration_minutes=0,
                clock=clock,
            )
        with pytest.raises(NotFoundError):
            acquire_hold(
                db, representative_id="nobody", start_time=at(9), holder_id="student-a", clock=clock
            )
    finally:
        db.close()
