# unimeet/routers/holds.py
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from unimeet.db.session import get_db
from unimeet.models.hold import Hold
from unimeet.routers.common import conflict, iso
from unimeet.schemas.scheduling import HoldCreate
from unimeet.services.clock import get_clock
from unimeet.services.errors import NotFoundError
from unimeet.services.hold_service import acquire_hold, list_live_holds, release_hold

router = APIRouter()


def _hold_to_dict(hold: Hold) -> Dict[str, Any]:
    return {
        "id": hold.id,
        "representative_id": hold.representative_id,
        "start_time": iso(hold.start_time),
        "holder_id": hold.holder_id,
        "expires_at": iso(hold.expires_at),
    }


@router.get("")
def get_live_holds(
        representative_id: str,
        on_date: date = Query(..., alias="date"),
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
) -> Dict[str, Any]:
    holds = list_live_holds(db, representative_id, on_date, clock=clock)
    return {"holds": [_hold_to_dict(h) for h in holds]}


@router.post("")
def create_hold(
        payload: HoldCreate,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
) -> Dict[str, Any]:
    """
    Reserve a slot for a few minutes while the student finishes booking.
    Re-posting the same slot as the same holder renews the hold.
    """
    try:
        result = acquire_hold(
            db,
            representative_id=payload.representative_id,
            start_time=payload.start_time,
            holder_id=payload.holder_id,
            duration_minutes=payload.duration_minutes,
            clock=clock,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.ok:
        raise conflict(result.error)

    return {"hold": _hold_to_dict(result.hold), "renewed": result.renewed}


@router.delete("/{hold_id}")
def delete_hold(
        hold_id: int,
        actor_id: Optional[str] = None,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
) -> Dict[str, Any]:
    released = release_hold(db, hold_id, actor_id=actor_id, clock=clock)
    return {"hold_id": hold_id, "released": released}
