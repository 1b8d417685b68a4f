import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import (
    DuplicateDecisionError,
    InvalidTransitionError,
    NotParticipantError,
    RecordStoreError,
    StaleReferenceError,
)
from core.security import get_current_user
from models.user import User
from schemas.chat import (
    DecisionRequest,
    DecisionResponse,
    MessageRead,
    MessagesResponse,
    ReportRequest,
    ReportResponse,
    ResumeResponse,
    SendMessageRequest,
)
from services.decision_recorder import record_decision, resume_pending
from services.event_runtime import runtimes
from services.message_relay import MessageFeed, fetch_message, fetch_messages, send_message
from services.reports import submit_report

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _message_read(message, user_id: int) -> MessageRead:
    return MessageRead(
        id=message.id,
        session_id=message.session_id,
        sender_id=message.sender_id,
        text=message.text,
        created_at=message.created_at,
        is_mine=message.is_from(user_id),
    )


@router.post("/intents/resume", response_model=ResumeResponse, summary="Finish interrupted decisions")
async def resume_intents(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    results = await resume_pending(db, current_user.id)
    return ResumeResponse(resumed=len(results), completed=sum(1 for r in results if r.completed))


@router.get("/{session_id}/messages", response_model=MessagesResponse, summary="All messages of a session")
async def list_messages(
    session_id: int,
    known_count: int = Query(0, ge=0, description="Messages the caller already shows"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        messages = await fetch_messages(db, session_id)
    except SQLAlchemyError as e:
        logger.warning("Error fetching messages of session %s: %s", session_id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Could not load messages")
    return MessagesResponse(
        messages=[_message_read(m, current_user.id) for m in messages],
        changed=len(messages) > known_count,
    )


@router.get("/{session_id}/messages/{message_id}", response_model=MessageRead, summary="One message")
async def get_message(
    session_id: int,
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        message = await fetch_message(db, message_id)
    except SQLAlchemyError as e:
        logger.warning("Error fetching message %s: %s", message_id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Could not load the message")
    if message is None or message.session_id != session_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return _message_read(message, current_user.id)


@router.post(
    "/{session_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a chat message"
)
async def post_message(
    session_id: int,
    payload: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    runtime = runtimes.get(current_user.id)
    try:
        if runtime is not None and runtime.feed is not None and runtime.feed.session_id == session_id:
            message = await runtime.send(payload.text)
        else:
            message = await send_message(db, MessageFeed(session_id, current_user.id), current_user.id, payload.text)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StaleReferenceError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session no longer exists")
    except RecordStoreError as e:
        # The client restores the draft from the response
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": str(e), "draft": payload.text},
        )
    return _message_read(message, current_user.id)


@router.post("/{session_id}/decision", response_model=DecisionResponse, summary="Connect or pass")
async def post_decision(
    session_id: int,
    payload: DecisionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await record_decision(
            db, session_id, current_user.id, payload.did_connect, candidate_id=payload.candidate_id
        )
    except StaleReferenceError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session no longer exists")
    except NotParticipantError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except DuplicateDecisionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except RecordStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return DecisionResponse(
        session_id=session_id,
        did_connect=payload.did_connect,
        step=result.intent.step,
        cleanup_state=result.cleanup.state.value if result.cleanup else None,
        block_until=result.block.blocked_until if result.block else None,
    )


@router.post(
    "/{session_id}/report",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report the partner of a session"
)
async def post_report(
    session_id: int,
    payload: ReportRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        report = await submit_report(db, session_id, current_user.id, payload.reported_id, payload.reason)
    except RecordStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return report
