from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class MessageRead(BaseModel):
    id: int
    session_id: int
    sender_id: int
    text: str
    created_at: datetime
    is_mine: bool = False

    class Config:
        from_attributes = True


class MessagesResponse(BaseModel):
    messages: List[MessageRead]
    # False when the store holds no more messages than the caller already shows
    changed: bool = True


class SendMessageRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class DecisionRequest(BaseModel):
    did_connect: bool
    candidate_id: Optional[int] = Field(None, description="Blocked for 30 days on a pass")


class DecisionResponse(BaseModel):
    session_id: int
    did_connect: bool
    step: str
    cleanup_state: Optional[str] = None
    block_until: Optional[datetime] = None


class ReportRequest(BaseModel):
    reported_id: int
    reason: str = Field("", max_length=1000)


class ReportResponse(BaseModel):
    id: int
    session_id: int
    reported_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class PushNotification(BaseModel):
    record_type: str
    record_id: int


class PushResponse(BaseModel):
    merged: bool


class ResumeResponse(BaseModel):
    resumed: int
    completed: int
