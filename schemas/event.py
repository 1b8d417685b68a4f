from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel

from schemas.chat import MessageRead
from schemas.profile import MatchSnapshotRead


class RSVPResponse(BaseModel):
    status: str
    event_date: str
    lobby_opens_at: datetime
    event_starts_at: datetime


class SuggestionRead(BaseModel):
    kind: str
    message: str
    city: Optional[str] = None
    age_range: Optional[Tuple[int, int]] = None


class SuggestionAnswer(BaseModel):
    accept: bool


class EventDecisionRequest(BaseModel):
    did_connect: bool


class EventStateResponse(BaseModel):
    phase: str
    date_count: int
    max_dates: int
    session_id: Optional[int] = None
    match: Optional[MatchSnapshotRead] = None
    chat_closed: bool = False
    did_connect: Optional[bool] = None
    profile_revealed: bool = False
    seconds_remaining: Optional[float] = None
    status_message: str = ""
    suggestion: Optional[SuggestionRead] = None
    messages: List[MessageRead] = []
