# unimeet/routers/meetings.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from unimeet.db.session import get_db
from unimeet.models.audit_entry import AuditEntry
from unimeet.models.meeting import Meeting
from unimeet.routers.common import conflict, iso
from unimeet.schemas.scheduling import BookingCreate, RescheduleRequest, TransitionRequest
from unimeet.services.audit_service import list_meeting_audit
from unimeet.services.booking_service import create_meeting
from unimeet.services.clock import get_clock
from unimeet.services.errors import NotFoundError
from unimeet.services.meeting_lifecycle import (
    get_meeting,
    parse_status,
    propose_reschedule,
    transition_meeting,
)
from unimeet.services.notifier import get_notifier

router = APIRouter()


def _meeting_to_dict(m: Meeting) -> Dict[str, Any]:
    return {
        "id": m.id,
        "meeting_code": m.meeting_code,
        "student_id": m.student_id,
        "representative_id": m.representative_id,
        "institution_id": m.institution_id,
        "purpose": m.purpose,
        "student_questions": m.student_questions,
        "start_time": iso(m.start_time),
        "end_time": iso(m.end_time),
        "duration_minutes": m.duration_minutes,
        "status": m.status,
        "reschedule_proposed_by": m.reschedule_proposed_by,
        "reschedule_proposed_start": iso(m.reschedule_proposed_start),
        "reschedule_reason": m.reschedule_reason,
        "meeting_link": m.meeting_link,
        "video_provider": m.video_provider,
        "created_at": iso(m.created_at),
        "updated_at": iso(m.updated_at),
    }


def _audit_to_dict(e: AuditEntry) -> Dict[str, Any]:
    return {
        "id": e.id,
        "meeting_id": e.meeting_id,
        "hold_id": e.hold_id,
        "action": e.action,
        "old_status": e.old_status,
        "new_status": e.new_status,
        "actor_id": e.actor_id,
        "metadata": e.details,
        "created_at": iso(e.created_at),
    }


@router.post("")
def book_meeting(
        payload: BookingCreate,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
        notifier=Depends(get_notifier),
) -> Dict[str, Any]:
    """
    Book a meeting, optionally consuming a hold.

    The slot is re-checked against committed meetings even with a valid
    hold; an expired hold shows up under "warnings" but does not fail the
    booking by itself.
    """
    try:
        result = create_meeting(
            db,
            student_id=payload.student_id,
            representative_id=payload.representative_id,
            start_time=payload.start_time,
            duration_minutes=payload.duration_minutes,
            purpose=payload.purpose,
            hold_id=payload.hold_id,
            student_questions=payload.student_questions,
            notifier=notifier,
            clock=clock,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.ok:
        raise conflict(result.error)

    return {
        "meeting": _meeting_to_dict(result.meeting),
        "warnings": [w.value for w in result.warnings],
    }


@router.get("")
def list_meetings(
        student_id: Optional[str] = None,
        representative_id: Optional[str] = None,
        status: Optional[str] = None,
        db: Session = Depends(get_db),
) -> Dict[str, Any]:
    if not student_id and not representative_id:
        raise HTTPException(
            status_code=400,
            detail="student_id or representative_id is required",
        )

    query = db.query(Meeting)
    if student_id:
        query = query.filter(Meeting.student_id == student_id)
    if representative_id:
        query = query.filter(Meeting.representative_id == representative_id)
    if status:
        try:
            query = query.filter(Meeting.status == parse_status(status).value)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    meetings = query.order_by(Meeting.start_time.asc()).all()
    return {"meetings": [_meeting_to_dict(m) for m in meetings]}


@router.get("/{meeting_id}")
def get_meeting_detail(
        meeting_id: int,
        db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        meeting = get_meeting(db, meeting_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"meeting": _meeting_to_dict(meeting)}


@router.get("/{meeting_id}/audit")
def get_meeting_audit(
        meeting_id: int,
        db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        get_meeting(db, meeting_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "meeting_id": meeting_id,
        "entries": [_audit_to_dict(e) for e in list_meeting_audit(db, meeting_id)],
    }


@router.post("/{meeting_id}/transition")
def transition(
        meeting_id: int,
        payload: TransitionRequest,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
        notifier=Depends(get_notifier),
) -> Dict[str, Any]:
    try:
        result = transition_meeting(
            db,
            meeting_id=meeting_id,
            actor_id=payload.actor_id,
            target_status=payload.target_status,
            metadata=payload.metadata,
            notifier=notifier,
            clock=clock,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.ok:
        raise conflict(result.error)

    return {"meeting": _meeting_to_dict(result.meeting)}


@router.post("/{meeting_id}/reschedule")
def reschedule(
        meeting_id: int,
        payload: RescheduleRequest,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
) -> Dict[str, Any]:
    try:
        result = propose_reschedule(
            db,
            meeting_id=meeting_id,
            actor_id=payload.actor_id,
            new_start_time=payload.new_start_time,
            reason=payload.reason,
            clock=clock,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.ok:
        raise conflict(result.error)

    return {"meeting": _meeting_to_dict(result.meeting)}
