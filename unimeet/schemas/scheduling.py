# unimeet/schemas/scheduling.py
from datetime import date, datetime, time, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

DayCode = Literal["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]


def to_naive_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC; convert offset-aware input."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


class HoldCreate(BaseModel):
    representative_id: str
    start_time: UtcDatetime
    holder_id: str
    duration_minutes: Optional[int] = None


class BookingCreate(BaseModel):
    student_id: str
    representative_id: str
    start_time: UtcDatetime
    duration_minutes: int
    purpose: str
    hold_id: Optional[int] = None
    student_questions: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("duration_minutes")
    def validate_duration(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("duration_minutes must be positive")
        return v


class TransitionRequest(BaseModel):
    actor_id: str
    target_status: str
    metadata: Optional[Dict[str, Any]] = None


class RescheduleRequest(BaseModel):
    actor_id: str
    new_start_time: UtcDatetime
    reason: Optional[str] = Field(default=None, max_length=1000)


class DayAvailability(BaseModel):
    day: DayCode
    active: bool = True
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    @model_validator(mode="after")
    def check_end_after_start(self) -> "DayAvailability":
        if self.active:
            if self.start_time is None or self.end_time is None:
                raise ValueError("start_time and end_time are required for active days")
            if self.end_time <= self.start_time:
                raise ValueError("end_time must be after start_time")
        return self


class WeeklyAvailabilityPayload(BaseModel):
    days: List[DayAvailability]
    allowed_durations: List[int]
    buffer_minutes: int = 0
    min_lead_time_hours: int = 0
    daily_cap: int = 8
    eligible_degree_levels: List[str] = Field(default_factory=list)
    eligible_countries: List[str] = Field(default_factory=list)
    blackout_dates: List[date] = Field(default_factory=list)
