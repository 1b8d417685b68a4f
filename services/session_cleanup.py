"""
Post-decision cleanup of a chat session.

    awaiting-decisions ──(both connect)──▶ mutual (terminal)
            │
            └──(exactly 2 decisions, not both connect)──▶ non-mutual-pending-report-check
                                                    ├──(report exists)──▶ retained
                                                    └──(no report)─────▶ purged

Messages and the session record of a purged session are deleted one record
at a time; a record that is already gone counts as deleted.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import PartialBatchError, RecordStoreError
from models.chat import ChatDecision, ChatMessage, ChatSession
from models.report import Report

logger = logging.getLogger(__name__)


class CleanupState(str, Enum):
    AWAITING_DECISIONS = "awaiting-decisions"
    MUTUAL = "mutual"
    NON_MUTUAL_PENDING_REPORT_CHECK = "non-mutual-pending-report-check"
    RETAINED = "retained"
    PURGED = "purged"


@dataclass
class CleanupResult:
    session_id: int
    state: CleanupState
    decision_count: int
    deleted_messages: int = 0
    unresolved: Dict[int, str] = field(default_factory=dict)


def classify(decisions: Sequence[ChatDecision]) -> CleanupState:
    if sum(1 for d in decisions if d.did_connect == 1) >= 2:
        return CleanupState.MUTUAL
    if len(decisions) != 2:
        return CleanupState.AWAITING_DECISIONS
    return CleanupState.NON_MUTUAL_PENDING_REPORT_CHECK


async def fetch_decisions(db: AsyncSession, session_id: int) -> List[ChatDecision]:
    result = await db.execute(select(ChatDecision).where(ChatDecision.session_id == session_id))
    return list(result.scalars().all())


async def is_reported(db: AsyncSession, session_id: int) -> bool:
    result = await db.execute(select(func.count(Report.id)).where(Report.session_id == session_id))
    return result.scalar_one() > 0


async def _delete_one(db: AsyncSession, model, record_id: int) -> Optional[str]:
    """Delete a single record in its own transaction. Returns an error string or None."""
    try:
        result = await db.execute(delete(model).where(model.id == record_id))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        return str(exc)
    if result.rowcount == 0:
        logger.debug("%s %s was already gone", model.__name__, record_id)
    return None


async def purge_session(db: AsyncSession, session_id: int) -> CleanupResult:
    try:
        result = await db.execute(select(ChatMessage.id).where(ChatMessage.session_id == session_id))
    except SQLAlchemyError as exc:
        raise RecordStoreError(f"Could not list messages of session {session_id}", exc) from exc
    message_ids = [row[0] for row in result.all()]

    unresolved: Dict[int, str] = {}
    for message_id in message_ids:
        error = await _delete_one(db, ChatMessage, message_id)
        if error:
            unresolved[message_id] = error
    deleted = len(message_ids) - len(unresolved)

    if unresolved:
        # Keep the session so the leftover messages stay reachable
        logger.error(
            "Partial cleanup of session %s: %d message(s) unresolved: %s",
            session_id, len(unresolved), sorted(unresolved),
        )
    else:
        error = await _delete_one(db, ChatSession, session_id)
        if error:
            unresolved[session_id] = error
            logger.error("Failed to delete chat session %s: %s", session_id, error)
        else:
            logger.info("Chat session %s and its messages cleaned up", session_id)

    return CleanupResult(
        session_id=session_id,
        state=CleanupState.PURGED,
        decision_count=0,
        deleted_messages=deleted,
        unresolved=unresolved,
    )


async def evaluate_session(
    db: AsyncSession,
    session_id: int,
    just_saved: Optional[ChatDecision] = None,
) -> CleanupResult:
    """
    Re-read the session's decisions and apply the cleanup rule.

    ``just_saved`` is added when the query does not return it yet.
    Only the two participants' decisions count once the session names them.

    Raises RecordStoreError when the decisions cannot be read and
    PartialBatchError when a purge leaves records behind.
    """
    try:
        session = await db.get(ChatSession, session_id)
        decisions = await fetch_decisions(db, session_id)
    except SQLAlchemyError as exc:
        raise RecordStoreError(f"Could not read decisions of session {session_id}", exc) from exc

    if just_saved is not None and all(d.id != just_saved.id for d in decisions):
        decisions.append(just_saved)
    if session is not None and session.partner_id is not None:
        decisions = [d for d in decisions if d.user_id in session.participants]

    state = classify(decisions)
    count = len(decisions)
    if state != CleanupState.NON_MUTUAL_PENDING_REPORT_CHECK:
        logger.debug("Session %s: %s (%d decisions)", session_id, state.value, count)
        return CleanupResult(session_id=session_id, state=state, decision_count=count)

    try:
        reported = await is_reported(db, session_id)
    except SQLAlchemyError as exc:
        logger.warning("Error checking reports for session %s, keeping messages: %s", session_id, exc)
        return CleanupResult(session_id=session_id, state=state, decision_count=count)

    if reported:
        logger.info("Session %s is reported, messages retained", session_id)
        return CleanupResult(session_id=session_id, state=CleanupState.RETAINED, decision_count=count)

    result = await purge_session(db, session_id)
    result.decision_count = count
    if result.unresolved:
        raise PartialBatchError(result.unresolved)
    return result
