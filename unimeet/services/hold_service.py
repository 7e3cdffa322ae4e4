# unimeet/services/hold_service.py
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from unimeet.config import get_settings
from unimeet.models.audit_entry import AuditAction
from unimeet.models.hold import Hold
from unimeet.services.audit_service import SYSTEM_ACTOR, record_audit
from unimeet.services.availability_service import (
    find_conflicting_meeting,
    get_representative,
)
from unimeet.services.clock import SystemClock
from unimeet.services.errors import HoldError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class HoldResult:
    hold: Optional[Hold]
    error: Optional[HoldError] = None
    renewed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def purge_expired_holds(db: Session, now: datetime) -> int:
    """
    Lazy expiry: drop every hold whose TTL has passed.

    Runs inside the caller's transaction and is idempotent, so every
    acquire can afford a full pass.
    """
    expired = db.query(Hold).filter(Hold.expires_at <= now).all()
    for hold in expired:
        record_audit(
            db,
            action=AuditAction.HOLD_EXPIRED,
            actor_id=SYSTEM_ACTOR,
            hold_id=hold.id,
            metadata={
                "representative_id": hold.representative_id,
                "start_time": hold.start_time.isoformat(),
                "holder_id": hold.holder_id,
            },
            at=now,
        )
        db.delete(hold)
    if expired:
        db.flush()
    return len(expired)


def acquire_hold(
    db: Session,
    *,
    representative_id: str,
    start_time: datetime,
    holder_id: str,
    duration_minutes: Optional[int] = None,
    clock=None,
    ttl_minutes: Optional[int] = None,
) -> HoldResult:
    """
    Reserve (representative, start_time) for `holder_id` for a few minutes.

    Steps, all in one transaction:
      1. purge expired holds
      2. ALREADY_BOOKED if an active meeting covers the start (or overlaps
         [start, start + duration) when a duration is given)
      3. HELD_BY_OTHER if someone else holds a live hold on the slot;
         the same holder renews
      4. upsert with expires_at = now + TTL

    The unique constraint on (representative_id, start_time) decides races:
    the loser's insert fails and it gets HELD_BY_OTHER.
    """
    if not holder_id:
        raise ValidationError("holder_id is required")
    if not isinstance(start_time, datetime):
        raise ValidationError("start_time must be a datetime")
    if duration_minutes is not None and duration_minutes <= 0:
        raise ValidationError("duration_minutes must be positive")

    clock = clock or SystemClock()
    ttl = ttl_minutes if ttl_minutes is not None else get_settings().HOLD_TTL_MINUTES

    try:
        get_representative(db, representative_id)
        now = clock.now()

        purge_expired_holds(db, now)

        end_time = (
            start_time + timedelta(minutes=duration_minutes)
            if duration_minutes is not None
            else None
        )
        if find_conflicting_meeting(db, representative_id, start_time, end_time):
            db.commit()
            logger.info(
                "Hold refused for %s at %s: already booked",
                representative_id,
                start_time.isoformat(),
            )
            return HoldResult(hold=None, error=HoldError.ALREADY_BOOKED)

        hold = (
            db.query(Hold)
            .filter(
                Hold.representative_id == representative_id,
                Hold.start_time == start_time,
            )
            .first()
        )
        if hold is not None and hold.holder_id != holder_id:
            db.commit()
            return HoldResult(hold=None, error=HoldError.HELD_BY_OTHER)

        renewed = hold is not None
        expires_at = now + timedelta(minutes=ttl)
        if renewed:
            hold.expires_at = expires_at
        else:
            hold = Hold(
                representative_id=representative_id,
                start_time=start_time,
                holder_id=holder_id,
                expires_at=expires_at,
                created_at=now,
            )
            db.add(hold)
            db.flush()

        record_audit(
            db,
            action=AuditAction.HOLD_RENEWED if renewed else AuditAction.HOLD_ACQUIRED,
            actor_id=holder_id,
            hold_id=hold.id,
            metadata={
                "representative_id": representative_id,
                "start_time": start_time.isoformat(),
                "expires_at": expires_at.isoformat(),
            },
            at=now,
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            "Hold race lost for %s at %s by %s",
            representative_id,
            start_time.isoformat(),
            holder_id,
        )
        return HoldResult(hold=None, error=HoldError.HELD_BY_OTHER)
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(hold)
    logger.info(
        "Hold %s %s for %s at %s by %s",
        hold.id,
        "renewed" if renewed else "acquired",
        representative_id,
        start_time.isoformat(),
        holder_id,
    )
    return HoldResult(hold=hold, renewed=renewed)


def release_hold(
    db: Session,
    hold_id: int,
    *,
    actor_id: Optional[str] = None,
    clock=None,
) -> bool:
    """Delete a hold unconditionally. Returns False if it was already gone."""
    clock = clock or SystemClock()
    try:
        hold = db.get(Hold, hold_id)
        if hold is None:
            db.commit()
            return False
        record_audit(
            db,
            action=AuditAction.HOLD_RELEASED,
            actor_id=actor_id or hold.holder_id,
            hold_id=hold.id,
            metadata={
                "representative_id": hold.representative_id,
                "start_time": hold.start_time.isoformat(),
            },
            at=clock.now(),
        )
        db.delete(hold)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Hold %s released", hold_id)
    return True


def list_live_holds(
    db: Session,
    representative_id: str,
    on_date: date,
    clock=None,
) -> List[Hold]:
    """Unexpired holds of a representative on a date, for greying out slots."""
    clock = clock or SystemClock()
    day_start = datetime.combine(on_date, time.min)
    return (
        db.query(Hold)
        .filter(
            Hold.representative_id == representative_id,
            Hold.start_time >= day_start,
            Hold.start_time < day_start + timedelta(days=1),
            Hold.expires_at > clock.now(),
        )
        .order_by(Hold.start_time.asc())
        .all()
    )
