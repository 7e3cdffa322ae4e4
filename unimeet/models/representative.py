# unimeet/models/representative.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from unimeet.models.base import Base, utcnow


class Representative(Base):
    """
    Institution staff member who owns availability.

    The primary key is the representative's user id, so actor ids coming
    from the auth layer can be compared with it directly.
    """

    __tablename__ = "representatives"

    id = Column(String(64), primary_key=True)

    institution_id = Column(
        Integer,
        ForeignKey("institutions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    display_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)

    # Defaults copied onto each new meeting
    video_provider = Column(String(64), nullable=False, default="Google Meet")
    external_link = Column(String(512), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    institution = relationship("Institution", backref="representatives")
