# models/user.py
from sqlalchemy import Column, BigInteger, DateTime, String
from sqlalchemy.sql import func

from .base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(BigInteger, primary_key=True, index=True)
    # Stable identifier handed out by the sign-in provider
    identity_subject = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User id={self.id} subject={self.identity_subject}>"
