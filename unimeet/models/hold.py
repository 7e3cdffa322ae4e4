# unimeet/models/hold.py
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from unimeet.models.base import Base, utcnow


class Hold(Base):
    """Short-lived reservation of (representative, start) during booking."""

    __tablename__ = "holds"
    __table_args__ = (
        UniqueConstraint("representative_id", "start_time", name="uq_hold_rep_start"),
        # Hold rows are deleted; their ids must never be handed out again
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)

    representative_id = Column(String(64), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)

    holder_id = Column(String(64), nullable=False, index=True)

    # A hold with expires_at <= now is dead, even if the row still exists
    expires_at = Column(DateTime, nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def is_live(self, now) -> bool:
        return self.expires_at > now
