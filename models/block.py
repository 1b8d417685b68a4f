# models/block.py
from sqlalchemy import Column, BigInteger, DateTime, ForeignKey
from sqlalchemy.sql import func

from .base import Base


class BlockedUser(Base):
    """Private, time-limited exclusion of a candidate from the owner's searches."""
    __tablename__ = "blocked_users"

    id = Column(BigInteger, primary_key=True, index=True)
    owner_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    blocked_user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    blocked_until = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<BlockedUser {self.owner_id}→{self.blocked_user_id} until={self.blocked_until}>"
