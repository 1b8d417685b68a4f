# models/decision_intent.py
from sqlalchemy import Column, BigInteger, Integer, String, DateTime
from sqlalchemy.sql import func

from .base import Base

STEP_PENDING = "pending"
STEP_DECISION_SAVED = "decision_saved"
STEP_BLOCK_SAVED = "block_saved"
STEP_COMPLETED = "completed"
# Another decision by the same user already exists for the session
STEP_CONFLICT = "conflict"


class DecisionIntent(Base):
    """
    Write-ahead record for the decision → block → cleanup sequence.
    ``step`` names the last step that finished; anything short of
    ``completed`` is picked up again by the resume pass.
    """
    __tablename__ = "decision_intents"

    id = Column(BigInteger, primary_key=True, index=True)
    session_id = Column(BigInteger, index=True, nullable=False)
    user_id = Column(BigInteger, index=True, nullable=False)
    candidate_id = Column(BigInteger, nullable=True)
    did_connect = Column(Integer, nullable=False)
    step = Column(String(32), nullable=False, default=STEP_PENDING)
    decision_id = Column(BigInteger, nullable=True)
    block_id = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<DecisionIntent session={self.session_id} user={self.user_id} step={self.step}>"
