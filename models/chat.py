# models/chat.py
from datetime import datetime

from sqlalchemy import (
    Column,
    BigInteger,
    Integer,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .base import Base


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(BigInteger, primary_key=True, index=True)
    created_by = Column(BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    partner_id = Column(BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def participants(self) -> tuple:
        return tuple(uid for uid in (self.created_by, self.partner_id) if uid is not None)

    def __repr__(self):
        return f"<ChatSession id={self.id} {self.created_by}<->{self.partner_id}>"


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(BigInteger, primary_key=True, index=True)
    session_id = Column(
        BigInteger,
        ForeignKey("chat_sessions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    sender_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    # Assigned on insert; sub-second precision keeps the ordering stable
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ChatMessage id={self.id} session={self.session_id}>"


class ChatDecision(Base):
    __tablename__ = "chat_decisions"

    id = Column(BigInteger, primary_key=True, index=True)
    # No FK: verdicts are kept after a non-mutual session is purged
    session_id = Column(BigInteger, index=True, nullable=False)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    did_connect = Column(Integer, nullable=False)  # 1 = connect, 0 = pass
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_decision_session_user"),
    )

    @property
    def connected(self) -> bool:
        return self.did_connect == 1

    def __repr__(self):
        return f"<ChatDecision session={self.session_id} user={self.user_id} connect={self.did_connect}>"
