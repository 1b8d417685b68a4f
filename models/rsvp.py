# models/rsvp.py
from sqlalchemy import Column, BigInteger, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from .base import Base


class EventRSVP(Base):
    __tablename__ = "event_rsvps"

    id = Column(BigInteger, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "event_date", name="uq_rsvp_user_date"),
    )

    def __repr__(self):
        return f"<EventRSVP user={self.user_id} date={self.event_date}>"
