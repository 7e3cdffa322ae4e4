# unimeet/routers/availability.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from unimeet.db.session import get_db
from unimeet.models.availability_rule import AvailabilityRule
from unimeet.routers.common import iso
from unimeet.schemas.scheduling import WeeklyAvailabilityPayload
from unimeet.services.availability_service import (
    DayWindow,
    get_representative,
    list_rules,
    set_weekly_availability,
)
from unimeet.services.errors import NotFoundError

router = APIRouter()


def _rule_to_dict(rule: AvailabilityRule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "representative_id": rule.representative_id,
        "institution_id": rule.institution_id,
        "day_of_week": rule.day_of_week,
        "start_time": rule.start_time.strftime("%H:%M"),
        "end_time": rule.end_time.strftime("%H:%M"),
        "allowed_durations": rule.allowed_durations,
        "buffer_minutes": rule.buffer_minutes,
        "min_lead_time_hours": rule.min_lead_time_hours,
        "daily_cap": rule.daily_cap,
        "eligible_degree_levels": rule.eligible_degree_levels,
        "eligible_countries": rule.eligible_countries,
        "blackout_dates": rule.blackout_dates,
        "updated_at": iso(rule.updated_at),
    }


@router.put("/{representative_id}/availability")
def put_weekly_availability(
        representative_id: str,
        payload: WeeklyAvailabilityPayload,
        db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Replace the representative's weekly schedule.

    Days sent with "active": false, and days not sent at all, end up
    without a rule and offer no slots.
    """
    days = {
        d.day: DayWindow(active=d.active, start_time=d.start_time, end_time=d.end_time)
        for d in payload.days
    }
    try:
        rules = set_weekly_availability(
            db,
            representative_id=representative_id,
            days=days,
            allowed_durations=payload.allowed_durations,
            buffer_minutes=payload.buffer_minutes,
            min_lead_time_hours=payload.min_lead_time_hours,
            daily_cap=payload.daily_cap,
            eligible_degree_levels=payload.eligible_degree_levels,
            eligible_countries=payload.eligible_countries,
            blackout_dates=payload.blackout_dates,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "representative_id": representative_id,
        "rules": [_rule_to_dict(r) for r in rules],
    }


@router.get("/{representative_id}/availability")
def get_weekly_availability(
        representative_id: str,
        db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        get_representative(db, representative_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "representative_id": representative_id,
        "rules": [_rule_to_dict(r) for r in list_rules(db, representative_id)],
    }
