# models/profile.py
from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func

from .base import Base


class UserProfile(Base):
    """Private attributes and preferences of one user."""
    __tablename__ = "user_profiles"

    id = Column(BigInteger, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String(20), nullable=False)
    home_city = Column(String(64), nullable=False)
    cities = Column(JSON, nullable=False, default=list)
    bio = Column(Text, nullable=True)
    interests = Column(JSON, nullable=False, default=list)
    desired_genders = Column(JSON, nullable=False, default=list)
    desired_age_min = Column(Integer, nullable=False, default=18)
    desired_age_max = Column(Integer, nullable=False, default=99)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<UserProfile user_id={self.user_id} name={self.name}>"


class DiscoverableProfile(Base):
    """Public, searchable subset of a UserProfile."""
    __tablename__ = "discoverable_profiles"

    id = Column(BigInteger, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    age = Column(Integer, nullable=False, index=True)
    gender = Column(String(20), nullable=False, index=True)
    cities = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<DiscoverableProfile user_id={self.user_id} {self.gender}/{self.age}>"
