# unimeet/routers/slots.py
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from unimeet.db.session import get_db
from unimeet.routers.common import iso
from unimeet.services.availability_service import get_slots
from unimeet.services.clock import get_clock
from unimeet.services.errors import NotFoundError

router = APIRouter()


@router.get("")
def list_slots(
        on_date: date = Query(..., alias="date"),
        duration: int = Query(...),
        representative_id: Optional[str] = None,
        institution_id: Optional[int] = None,
        degree_level: Optional[str] = None,
        country: Optional[str] = None,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
) -> Dict[str, Any]:
    """
    Bookable start times for a representative or a whole institution.

    Read-only: slots already booked are excluded, live holds are not
    (fetch them from /holds to grey them out).
    """
    try:
        slots = get_slots(
            db,
            on_date=on_date,
            duration_minutes=duration,
            representative_id=representative_id,
            institution_id=institution_id,
            degree_level=degree_level,
            country=country,
            clock=clock,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "date": on_date.isoformat(),
        "duration_minutes": duration,
        "slots": [
            {
                "start_time": iso(s.start_time),
                "end_time": iso(s.end_time),
                "time": s.start_time.strftime("%H:%M"),
                "representative_ids": s.representative_ids,
            }
            for s in slots
        ],
    }
