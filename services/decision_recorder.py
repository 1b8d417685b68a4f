"""
Recording a participant's verdict on a chat session.

The verdict touches three records that cannot be written atomically: the
ChatDecision, an optional BlockedUser, and the cleanup of the session. A
DecisionIntent row is written first and advanced after every step, so an
interrupted sequence can be driven to completion by ``resume_pending``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    DuplicateDecisionError,
    NotParticipantError,
    PartialBatchError,
    RecordStoreError,
    StaleReferenceError,
)
from models.block import BlockedUser
from models.chat import ChatDecision, ChatSession
from models.decision_intent import (
    DecisionIntent,
    STEP_BLOCK_SAVED,
    STEP_COMPLETED,
    STEP_CONFLICT,
    STEP_DECISION_SAVED,
    STEP_PENDING,
)
from services.block_registry import block_user
from services.session_cleanup import CleanupResult, evaluate_session

logger = logging.getLogger(__name__)


@dataclass
class DecisionResult:
    intent: DecisionIntent
    decision: Optional[ChatDecision] = None
    block: Optional[BlockedUser] = None
    cleanup: Optional[CleanupResult] = None

    @property
    def completed(self) -> bool:
        return self.intent.step == STEP_COMPLETED


async def _existing_decision(db: AsyncSession, session_id: int, user_id: int) -> Optional[ChatDecision]:
    result = await db.execute(
        select(ChatDecision).where(
            ChatDecision.session_id == session_id,
            ChatDecision.user_id == user_id,
        )
    )
    return result.scalars().first()


async def _advance(db: AsyncSession, intent: DecisionIntent, step: str) -> None:
    intent.step = step
    await db.commit()


async def _save_decision(db: AsyncSession, intent: DecisionIntent) -> ChatDecision:
    existing = await _existing_decision(db, intent.session_id, intent.user_id)
    if existing is not None:
        if existing.did_connect != intent.did_connect:
            await _advance(db, intent, STEP_CONFLICT)
            raise DuplicateDecisionError(intent.session_id, intent.user_id)
        # Written before a crash, step not yet advanced
        decision = existing
    else:
        decision = ChatDecision(
            session_id=intent.session_id,
            user_id=intent.user_id,
            did_connect=intent.did_connect,
        )
        db.add(decision)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            await db.refresh(intent)
            await _advance(db, intent, STEP_CONFLICT)
            raise DuplicateDecisionError(intent.session_id, intent.user_id) from exc
        await db.refresh(decision)

    intent.decision_id = decision.id
    await _advance(db, intent, STEP_DECISION_SAVED)
    return decision


async def _drive(db: AsyncSession, intent: DecisionIntent, now: Optional[datetime] = None) -> DecisionResult:
    result = DecisionResult(intent=intent)

    if intent.step == STEP_PENDING:
        result.decision = await _save_decision(db, intent)
    elif intent.decision_id is not None:
        result.decision = await db.get(ChatDecision, intent.decision_id)

    if intent.step == STEP_DECISION_SAVED:
        if not intent.did_connect and intent.candidate_id is not None:
            try:
                result.block = await block_user(db, intent.user_id, intent.candidate_id, now)
            except SQLAlchemyError as exc:
                await db.rollback()
                await db.refresh(intent)
                logger.error("Error creating block for intent %s: %s", intent.id, exc)
            else:
                intent.block_id = result.block.id
                await _advance(db, intent, STEP_BLOCK_SAVED)
        else:
            await _advance(db, intent, STEP_BLOCK_SAVED)

    # Cleanup runs even when the block write failed; it is safe to repeat
    if intent.step in (STEP_DECISION_SAVED, STEP_BLOCK_SAVED):
        try:
            result.cleanup = await evaluate_session(db, intent.session_id, just_saved=result.decision)
        except (RecordStoreError, PartialBatchError) as exc:
            # Intent stays at its step; resume_pending repeats the cleanup
            logger.error("Cleanup check for session %s failed: %s", intent.session_id, exc)
        # Failed per-record deletes roll back and expire loaded rows
        await db.refresh(intent)
        if result.decision is not None:
            await db.refresh(result.decision)
        if result.cleanup is not None:
            if intent.step == STEP_BLOCK_SAVED:
                await _advance(db, intent, STEP_COMPLETED)

    return result


async def record_decision(
    db: AsyncSession,
    session_id: int,
    user_id: int,
    did_connect: bool,
    candidate_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> DecisionResult:
    """
    Record ``user_id``'s verdict on ``session_id``. A rejection also blocks
    ``candidate_id``, the other participant by default. The cleanup check
    runs right after.

    Raises StaleReferenceError when the session no longer exists,
    NotParticipantError when ``user_id`` is not one of its two users,
    DuplicateDecisionError when the user already decided on it and
    RecordStoreError when the intent or decision cannot be written.
    """
    try:
        session = await db.get(ChatSession, session_id)
        if session is None:
            raise StaleReferenceError("ChatSession", session_id)
        if user_id not in session.participants:
            raise NotParticipantError(session_id, user_id)
        if candidate_id is None:
            candidate_id = next((uid for uid in session.participants if uid != user_id), None)
        if await _existing_decision(db, session_id, user_id) is not None:
            raise DuplicateDecisionError(session_id, user_id)

        intent = DecisionIntent(
            session_id=session_id,
            user_id=user_id,
            candidate_id=candidate_id,
            did_connect=1 if did_connect else 0,
            step=STEP_PENDING,
        )
        db.add(intent)
        await db.commit()
        await db.refresh(intent)

        result = await _drive(db, intent, now)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise RecordStoreError("Could not record your decision", exc) from exc

    logger.info(
        "User %s decided %s on session %s (step=%s)",
        user_id, "connect" if did_connect else "pass", session_id, intent.step,
    )
    return result


async def resume_pending(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> List[DecisionResult]:
    """Drive every unfinished intent of ``user_id`` forward."""
    res = await db.execute(
        select(DecisionIntent)
        .where(
            DecisionIntent.user_id == user_id,
            DecisionIntent.step.notin_([STEP_COMPLETED, STEP_CONFLICT]),
        )
        .order_by(DecisionIntent.created_at.asc())
    )
    intent_ids = [intent.id for intent in res.scalars().all()]
    results: List[DecisionResult] = []
    for intent_id in intent_ids:
        intent = await db.get(DecisionIntent, intent_id, populate_existing=True)
        try:
            results.append(await _drive(db, intent, now))
        except DuplicateDecisionError as exc:
            logger.warning("Intent %s conflicts with an existing decision: %s", intent_id, exc)
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Resuming intent %s failed: %s", intent_id, exc)
    return results
