import logging
from dataclasses import dataclass
from typing import Collection, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.database import AsyncSessionLocal
from models.chat import ChatSession
from models.profile import UserProfile
from services.candidate_finder import FinderOutcome, OutcomeKind, find_candidate
from services.profiles import MatchSnapshot, build_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStart:
    session_id: int
    match: MatchSnapshot


async def initiate_session(
    db: AsyncSession,
    acting_user_id: int,
    candidate: UserProfile,
) -> Optional[SessionStart]:
    """
    Create the ChatSession for a chosen candidate and capture their snapshot.
    Returns None when the session could not be created.
    """
    session = ChatSession(created_by=acting_user_id, partner_id=candidate.user_id)
    db.add(session)
    try:
        await db.commit()
        await db.refresh(session)
        snapshot = await build_snapshot(db, candidate)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Chat session creation failed for %s: %s", acting_user_id, exc)
        return None

    logger.info("Session %s created: %s ↔ %s", session.id, acting_user_id, candidate.user_id)
    return SessionStart(session_id=session.id, match=snapshot)


@dataclass
class MatchmakingResult:
    outcome: FinderOutcome
    start: Optional[SessionStart] = None


async def find_match(
    user_id: int,
    already_matched: Collection[int] = (),
    bypass_suggestion: bool = False,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    **finder_kwargs,
) -> MatchmakingResult:
    """Search for a candidate and, on success, open a chat session with them."""
    outcome = await find_candidate(
        user_id,
        already_matched=already_matched,
        bypass_suggestion=bypass_suggestion,
        session_factory=session_factory,
        **finder_kwargs,
    )
    if outcome.kind != OutcomeKind.MATCH:
        return MatchmakingResult(outcome=outcome)

    async with session_factory() as db:
        start = await initiate_session(db, user_id, outcome.candidate)
    if start is None:
        return MatchmakingResult(
            outcome=FinderOutcome.no_match("Could not start a chat. No match this round.", long=True)
        )
    return MatchmakingResult(outcome=outcome, start=start)
