# unimeet/services/availability_service.py
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from unimeet.models.availability_rule import DAY_CODES, AvailabilityRule
from unimeet.models.institution import Institution
from unimeet.models.meeting import ACTIVE_STATUSES, Meeting
from unimeet.models.representative import Representative
from unimeet.services.clock import SystemClock
from unimeet.services.errors import NotFoundError, ValidationError
from unimeet.services.slot_generator import (
    CandidateSlot,
    day_code,
    filter_eligible_rules,
    generate_slots,
    parse_time_of_day,
)

logger = logging.getLogger(__name__)


@dataclass
class DayWindow:
    active: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None


def get_representative(db: Session, representative_id: str) -> Representative:
    if not representative_id:
        raise ValidationError("representative_id is required")
    rep = db.get(Representative, representative_id)
    if rep is None:
        raise NotFoundError(f"Representative {representative_id} not found")
    return rep


def _normalize_blackout_dates(values: Iterable) -> List[str]:
    normalized = set()
    for value in values or []:
        if isinstance(value, date):
            normalized.add(value.isoformat())
            continue
        try:
            normalized.add(date.fromisoformat(str(value).strip()).isoformat())
        except ValueError as e:
            raise ValidationError(f"invalid blackout date: {value!r}") from e
    return sorted(normalized)


def set_weekly_availability(
    db: Session,
    *,
    representative_id: str,
    days: Dict[str, DayWindow],
    allowed_durations: Iterable[int],
    buffer_minutes: int = 0,
    min_lead_time_hours: int = 0,
    daily_cap: int = 8,
    eligible_degree_levels: Optional[Iterable[str]] = None,
    eligible_countries: Optional[Iterable[str]] = None,
    blackout_dates: Optional[Iterable] = None,
) -> List[AvailabilityRule]:
    """
    Replace a representative's weekly availability.

    Behavior:
    - Each active day in `days` gets its rule created or updated with the
      shared settings.
    - Inactive days, and days missing from `days`, lose their rule: an
      inactive rule is never stored.
    - Everything is validated first, then written in one commit.

    Returns the representative's rules after the update, MON..SUN.
    """
    rep = get_representative(db, representative_id)

    unknown = set(days) - set(DAY_CODES)
    if unknown:
        raise ValidationError(f"unknown day codes: {', '.join(sorted(unknown))}")

    durations = sorted({int(d) for d in allowed_durations or []})
    if not durations or durations[0] <= 0:
        raise ValidationError("allowed_durations must contain positive minutes")
    if buffer_minutes < 0:
        raise ValidationError("buffer_minutes must not be negative")
    if min_lead_time_hours < 0:
        raise ValidationError("min_lead_time_hours must not be negative")
    if daily_cap <= 0:
        raise ValidationError("daily_cap must be positive")

    blackout = _normalize_blackout_dates(blackout_dates)
    levels = [lvl.strip() for lvl in eligible_degree_levels or [] if lvl.strip()]
    countries = [c.strip() for c in eligible_countries or [] if c.strip()]

    windows: Dict[str, tuple] = {}
    for code, window in days.items():
        if not window.active:
            continue
        if window.start_time is None or window.end_time is None:
            raise ValidationError(f"{code}: start_time and end_time are required")
        start = parse_time_of_day(window.start_time)
        end = parse_time_of_day(window.end_time)
        if end <= start:
            raise ValidationError(f"{code}: end_time must be after start_time")
        windows[code] = (start, end)

    existing = {
        rule.day_of_week: rule
        for rule in db.query(AvailabilityRule)
        .filter(AvailabilityRule.representative_id == rep.id)
        .all()
    }

    for code in DAY_CODES:
        rule = existing.get(code)
        if code not in windows:
            if rule is not None:
                db.delete(rule)
            continue

        if rule is None:
            rule = AvailabilityRule(
                representative_id=rep.id,
                institution_id=rep.institution_id,
                day_of_week=code,
            )
            db.add(rule)

        rule.start_time, rule.end_time = windows[code]
        rule.allowed_durations = durations
        rule.buffer_minutes = buffer_minutes
        rule.min_lead_time_hours = min_lead_time_hours
        rule.daily_cap = daily_cap
        rule.eligible_degree_levels = levels
        rule.eligible_countries = countries
        rule.blackout_dates = blackout
        rule.is_active = True

    db.commit()

    logger.info(
        "Availability for representative %s set on %s",
        rep.id,
        ",".join(windows) or "no days",
    )
    return list_rules(db, rep.id)


def list_rules(db: Session, representative_id: str) -> List[AvailabilityRule]:
    rules = (
        db.query(AvailabilityRule)
        .filter(AvailabilityRule.representative_id == representative_id)
        .all()
    )
    return sorted(rules, key=lambda r: DAY_CODES.index(r.day_of_week))


def load_rules_for_day(
    db: Session,
    on_date: date,
    *,
    representative_ids: Optional[List[str]] = None,
    institution_id: Optional[int] = None,
) -> List[AvailabilityRule]:
    query = db.query(AvailabilityRule).filter(
        AvailabilityRule.day_of_week == day_code(on_date),
        AvailabilityRule.is_active.is_(True),
    )
    if representative_ids is not None:
        query = query.filter(AvailabilityRule.representative_id.in_(representative_ids))
    if institution_id is not None:
        query = query.filter(AvailabilityRule.institution_id == institution_id)
    return query.all()


def load_meetings_for_day(
    db: Session, representative_ids: List[str], on_date: date
) -> List[Meeting]:
    """Every meeting of these representatives touching `on_date`, any status."""
    if not representative_ids:
        return []
    day_start = datetime.combine(on_date, time.min)
    day_end = day_start + timedelta(days=1)
    return (
        db.query(Meeting)
        .filter(
            Meeting.representative_id.in_(representative_ids),
            Meeting.start_time < day_end,
            Meeting.end_time > day_start,
        )
        .all()
    )


def get_slots(
    db: Session,
    *,
    on_date: date,
    duration_minutes: int,
    representative_id: Optional[str] = None,
    institution_id: Optional[int] = None,
    degree_level: Optional[str] = None,
    country: Optional[str] = None,
    clock=None,
) -> List[CandidateSlot]:
    """
    Bookable slots for one representative, or for every representative of
    an institution, on a given date. Read-only.

    Only meetings are consulted; live holds are a presentation concern
    (see hold_service.list_live_holds).
    """
    if (representative_id is None) == (institution_id is None):
        raise ValidationError("pass exactly one of representative_id or institution_id")
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("duration_minutes must be positive")

    clock = clock or SystemClock()

    if representative_id is not None:
        get_representative(db, representative_id)
        rules = load_rules_for_day(db, on_date, representative_ids=[representative_id])
    else:
        if db.get(Institution, institution_id) is None:
            raise NotFoundError(f"Institution {institution_id} not found")
        rules = load_rules_for_day(db, on_date, institution_id=institution_id)

    rules = filter_eligible_rules(rules, degree_level=degree_level, country=country)
    if not rules:
        return []

    rep_ids = sorted({r.representative_id for r in rules})
    meetings = load_meetings_for_day(db, rep_ids, on_date)

    return generate_slots(rules, on_date, duration_minutes, meetings, clock.now())


def find_conflicting_meeting(
    db: Session,
    representative_id: str,
    start: datetime,
    end: Optional[datetime] = None,
    exclude_meeting_id: Optional[int] = None,
) -> Optional[Meeting]:
    """
    First active meeting of the representative overlapping [start, end).

    Without `end` the check is for the single instant `start`, i.e. any
    active meeting whose window contains it.
    """
    query = db.query(Meeting).filter(
        Meeting.representative_id == representative_id,
        Meeting.status.in_(ACTIVE_STATUSES),
    )
    if end is None:
        query = query.filter(Meeting.start_time <= start, Meeting.end_time > start)
    else:
        query = query.filter(Meeting.start_time < end, Meeting.end_time > start)
    if exclude_meeting_id is not None:
        query = query.filter(Meeting.id != exclude_meeting_id)
    return query.order_by(Meeting.start_time.asc()).first()
