# unimeet/services/slot_generator.py
"""
Bookable slot derivation.

Everything here is pure: rules and meetings go in (saved or not), candidate
slots come out. Loading the inputs is the caller's job, see
`availability_service.get_slots`.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Set

from unimeet.models.availability_rule import DAY_CODES
from unimeet.models.meeting import ACTIVE_STATUSES, MeetingStatus
from unimeet.services.errors import ValidationError

# Meetings that used up one of the representative's daily bookings
_CAPACITY_EXCLUDED = (
    MeetingStatus.DRAFT.value,
    MeetingStatus.REJECTED.value,
    MeetingStatus.CANCELLED.value,
)


@dataclass
class CandidateSlot:
    start_time: datetime
    end_time: datetime
    representative_ids: List[str] = field(default_factory=list)


def day_code(on_date: date) -> str:
    return DAY_CODES[on_date.weekday()]  # 0=MON,...,6=SUN


def overlaps(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open interval overlap: [a) and [b) share at least one instant."""
    return start_a < end_b and end_a > start_b


def meeting_window(meeting):
    end = meeting.end_time
    if end is None:
        end = meeting.start_time + timedelta(minutes=meeting.duration_minutes)
    return meeting.start_time, end


def counts_toward_daily_cap(meeting, on_date: date) -> bool:
    return (
        meeting.status not in _CAPACITY_EXCLUDED
        and meeting.start_time.date() == on_date
    )


def _is_blackout(rule, on_date: date) -> bool:
    return on_date.isoformat() in {str(d) for d in (rule.blackout_dates or [])}


def _allows_duration(rule, duration_minutes: int) -> bool:
    return duration_minutes in {int(d) for d in (rule.allowed_durations or [])}


def filter_eligible_rules(
    rules: Iterable,
    degree_level: Optional[str] = None,
    country: Optional[str] = None,
) -> List:
    """
    Keep rules whose eligibility filters admit the student.

    An empty filter list admits everyone; an unknown student attribute
    (None) is not checked against that filter.
    """
    kept = []
    for rule in rules:
        levels = [lvl.upper() for lvl in (rule.eligible_degree_levels or [])]
        countries = [c.upper() for c in (rule.eligible_countries or [])]
        if degree_level and levels and degree_level.upper() not in levels:
            continue
        if country and countries and country.upper() not in countries:
            continue
        kept.append(rule)
    return kept


def generate_slots(
    rules: Iterable,
    on_date: date,
    duration_minutes: int,
    committed_meetings: Iterable,
    now: datetime,
) -> List[CandidateSlot]:
    """
    Derive the bookable start times on `on_date` for a meeting of
    `duration_minutes`.

    For each active rule of that weekday offering the duration, walks the
    rule window in steps of duration + buffer and keeps a start when:
      - the date is not one of the rule's blackout dates
      - the window does not overlap an active meeting of that representative
      - it starts at least `min_lead_time_hours` after `now`
      - the representative is below `daily_cap` meetings that day

    Starts offered by several representatives are merged into one
    CandidateSlot listing all of them. Sorted by start time.
    """
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("duration_minutes must be positive")

    code = day_code(on_date)
    duration = timedelta(minutes=duration_minutes)
    meetings = list(committed_meetings)

    reps_by_start: Dict[datetime, Set[str]] = {}

    for rule in rules:
        if rule.is_active is False:
            continue
        if rule.day_of_week != code or not _allows_duration(rule, duration_minutes):
            continue
        if _is_blackout(rule, on_date):
            continue

        rep_meetings = [
            m for m in meetings if m.representative_id == rule.representative_id
        ]

        if rule.daily_cap is not None:
            booked_today = sum(
                1 for m in rep_meetings if counts_toward_daily_cap(m, on_date)
            )
            if booked_today >= rule.daily_cap:
                continue

        busy = [meeting_window(m) for m in rep_meetings if m.status in ACTIVE_STATUSES]
        earliest = now + timedelta(hours=rule.min_lead_time_hours or 0)
        step = duration + timedelta(minutes=rule.buffer_minutes or 0)

        window_start = datetime.combine(on_date, rule.start_time)
        window_end = datetime.combine(on_date, rule.end_time)

        current = window_start
        while current + duration <= window_end:
            slot_end = current + duration
            if current >= earliest and not any(
                overlaps(current, slot_end, b_start, b_end) for b_start, b_end in busy
            ):
                reps_by_start.setdefault(current, set()).add(rule.representative_id)
            current += step

    return [
        CandidateSlot(
            start_time=start,
            end_time=start + duration,
            representative_ids=sorted(reps),
        )
        for start, reps in sorted(reps_by_start.items())
    ]


def parse_time_of_day(value) -> time:
    """Accept `time` objects or "HH:MM" strings."""
    if isinstance(value, time):
        return value
    try:
        hours, minutes = str(value).split(":")[:2]
        return time(int(hours), int(minutes))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"invalid time of day: {value!r}") from e
