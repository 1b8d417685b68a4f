import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.database import AsyncSessionLocal
from core.exceptions import RecordStoreError
from models.chat import ChatDecision
from services.profiles import MatchSnapshot, build_snapshot, get_profile

logger = logging.getLogger(__name__)


@dataclass
class ConnectionsResult:
    connections: List[MatchSnapshot] = field(default_factory=list)
    error: Optional[str] = None


async def _mutual_partner_ids(session_factory, user_id: int) -> List[int]:
    async with session_factory() as db:
        mine = await db.execute(
            select(ChatDecision.session_id).where(
                ChatDecision.user_id == user_id,
                ChatDecision.did_connect == 1,
            )
        )
        session_ids = [row[0] for row in mine.all()]
        if not session_ids:
            return []
        theirs = await db.execute(
            select(ChatDecision.user_id).where(
                ChatDecision.session_id.in_(session_ids),
                ChatDecision.user_id != user_id,
                ChatDecision.did_connect == 1,
            )
        )
        # Same pair may have met on several nights
        return list(dict.fromkeys(row[0] for row in theirs.all()))


async def _fetch_snapshot(session_factory, user_id: int) -> Tuple[int, Optional[MatchSnapshot], Optional[str]]:
    try:
        async with session_factory() as db:
            profile = await get_profile(db, user_id)
            if profile is None:
                return user_id, None, None
            return user_id, await build_snapshot(db, profile), None
    except SQLAlchemyError as exc:
        logger.warning("Error fetching connection profile %s: %s", user_id, exc)
        return user_id, None, str(exc)


async def list_connections(
    user_id: int,
    session_factory: async_sessionmaker = AsyncSessionLocal,
) -> ConnectionsResult:
    """Users with whom ``user_id`` shares a mutual session, sorted by name."""
    try:
        partner_ids = await _mutual_partner_ids(session_factory, user_id)
    except SQLAlchemyError as exc:
        logger.warning("Error fetching decisions of %s: %s", user_id, exc)
        raise RecordStoreError("Could not load your connections", exc) from exc

    fetched = await asyncio.gather(*(_fetch_snapshot(session_factory, uid) for uid in partner_ids))

    connections = [snapshot for _, snapshot, _ in fetched if snapshot is not None]
    connections.sort(key=lambda s: s.name.lower())
    failures = {uid: err for uid, _, err in fetched if err is not None}

    result = ConnectionsResult(connections=connections)
    if failures:
        logger.error("Connections of %s incomplete, failed profiles: %s", user_id, sorted(failures))
        result.error = "Some connections could not be loaded."
    return result
