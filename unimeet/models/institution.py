# unimeet/models/institution.py
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String

from unimeet.models.base import Base, utcnow


class ApprovalMode(str, Enum):
    AUTOMATIC = "AUTOMATIC"
    MANUAL = "MANUAL"


class Institution(Base):
    __tablename__ = "institutions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    # AUTOMATIC -> new meetings start CONFIRMED, MANUAL -> PENDING
    approval_mode = Column(String(16), nullable=True)

    # User id of the institution admin (may manage every meeting)
    admin_user_id = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
