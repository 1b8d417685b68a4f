import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import InvalidTransitionError
from core.security import get_current_user
from models.user import User
from schemas.chat import MessageRead
from schemas.event import (
    EventDecisionRequest,
    EventStateResponse,
    RSVPResponse,
    SuggestionAnswer,
    SuggestionRead,
)
from schemas.profile import MatchSnapshotRead
from services.event_runtime import LiveEventRuntime, runtimes
from services.rsvp import (
    event_starts_at,
    fetch_rsvp_status,
    lobby_opens_at,
    normalize_event_date,
    perform_rsvp,
)

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/event", tags=["event"])


def _rsvp_response(rsvp_status, now: datetime) -> RSVPResponse:
    return RSVPResponse(
        status=rsvp_status.value,
        event_date=normalize_event_date(now).isoformat(),
        lobby_opens_at=lobby_opens_at(now),
        event_starts_at=event_starts_at(now),
    )


def _state_response(runtime: LiveEventRuntime) -> EventStateResponse:
    state = runtime.state
    suggestion = None
    if runtime.suggestion is not None:
        suggestion = SuggestionRead(
            kind=runtime.suggestion.kind.value,
            message=runtime.suggestion.status_message,
            city=runtime.suggestion.suggested_city,
            age_range=runtime.suggestion.suggested_age_range,
        )
    messages = []
    if runtime.feed is not None:
        messages = [
            MessageRead(
                id=m.id,
                session_id=m.session_id,
                sender_id=m.sender_id,
                text=m.text,
                created_at=m.created_at,
                is_mine=m.is_from(runtime.user_id),
            )
            for m in runtime.feed.messages
        ]
    return EventStateResponse(
        phase=state.phase.value,
        date_count=state.date_count,
        max_dates=runtime.max_dates,
        session_id=state.session_id,
        match=MatchSnapshotRead.model_validate(state.match) if state.match else None,
        chat_closed=state.chat_closed,
        did_connect=state.did_connect,
        profile_revealed=runtime.profile_revealed,
        seconds_remaining=runtime.seconds_remaining,
        status_message=runtime.status_message,
        suggestion=suggestion,
        messages=messages,
    )


def _runtime_or_404(user_id: int) -> LiveEventRuntime:
    runtime = runtimes.get(user_id)
    if runtime is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not in tonight's event")
    return runtime


@router.get("/rsvp", response_model=RSVPResponse, summary="Tonight's RSVP status")
async def get_rsvp(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    now = datetime.now()
    return _rsvp_response(await fetch_rsvp_status(db, current_user.id, now), now)


@router.post("/rsvp", response_model=RSVPResponse, summary="RSVP for tonight's event")
async def post_rsvp(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    now = datetime.now()
    return _rsvp_response(await perform_rsvp(db, current_user.id, now), now)


@router.post("/lobby", response_model=EventStateResponse, summary="Join the lobby")
async def enter_lobby(current_user: User = Depends(get_current_user)):
    runtime = runtimes.start(current_user.id)
    try:
        await runtime.enter_lobby()
    except InvalidTransitionError as e:
        runtimes.discard(current_user.id)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.info("User %s joined the lobby", current_user.id)
    return _state_response(runtime)


@router.get("/state", response_model=EventStateResponse, summary="Current phase of the live event")
async def get_state(current_user: User = Depends(get_current_user)):
    return _state_response(_runtime_or_404(current_user.id))


@router.post("/match", response_model=EventStateResponse, summary="Search for a date now")
async def search(current_user: User = Depends(get_current_user)):
    runtime = _runtime_or_404(current_user.id)
    try:
        await runtime.find_match()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _state_response(runtime)


@router.post("/suggestion", response_model=EventStateResponse, summary="Accept or decline a broadening suggestion")
async def answer_suggestion(
    payload: SuggestionAnswer,
    current_user: User = Depends(get_current_user),
):
    runtime = _runtime_or_404(current_user.id)
    try:
        await runtime.answer_suggestion(payload.accept)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _state_response(runtime)


@router.post("/decision", response_model=EventStateResponse, summary="Decide on the date that just ended")
async def decide(
    payload: EventDecisionRequest,
    current_user: User = Depends(get_current_user),
):
    runtime = _runtime_or_404(current_user.id)
    try:
        await runtime.decide(payload.did_connect)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _state_response(runtime)


@router.post("/next", response_model=EventStateResponse, summary="Move on to the next date")
async def next_date(current_user: User = Depends(get_current_user)):
    runtime = _runtime_or_404(current_user.id)
    try:
        await runtime.next_date()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _state_response(runtime)


@router.post("/leave", response_model=EventStateResponse, summary="Leave tonight's event")
async def leave(current_user: User = Depends(get_current_user)):
    runtime = _runtime_or_404(current_user.id)
    await runtime.leave()
    runtimes.discard(current_user.id)
    return _state_response(runtime)
