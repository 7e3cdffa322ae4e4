# unimeet/models/availability_rule.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)

from unimeet.models.base import Base, utcnow

DAY_CODES = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]


class AvailabilityRule(Base):
    """
    Recurring weekly availability of one representative for one day.

    Example: "Mondays 09:00–12:00, 15 or 30 minute meetings, 5 minute buffer"
    is a single row. A day the representative switched off has no row.
    """

    __tablename__ = "availability_rules"
    __table_args__ = (
        UniqueConstraint("representative_id", "day_of_week", name="uq_rule_rep_day"),
    )

    id = Column(Integer, primary_key=True, index=True)

    representative_id = Column(
        String(64),
        ForeignKey("representatives.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    institution_id = Column(
        Integer,
        ForeignKey("institutions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # One of DAY_CODES, 0=MON ... 6=SUN like datetime.weekday()
    day_of_week = Column(String(3), nullable=False)

    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    # Minutes, e.g. [15, 30]
    allowed_durations = Column(JSON, nullable=False, default=list)
    buffer_minutes = Column(Integer, nullable=False, default=0)
    min_lead_time_hours = Column(Integer, nullable=False, default=0)
    daily_cap = Column(Integer, nullable=False, default=8)

    # Empty list = no restriction
    eligible_degree_levels = Column(JSON, nullable=False, default=list)
    eligible_countries = Column(JSON, nullable=False, default=list)

    # ISO dates ("2025-03-17") on which the rule does not apply
    blackout_dates = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
