import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from models.block import BlockedUser

logger = logging.getLogger(__name__)


class BlockRegistry:
    """
    Snapshot of one user's blocks as of the last fetch.

    Expired blocks are never deleted; they simply fail the time check.
    """

    def __init__(self, owner_id: int, expiries: Optional[Dict[int, datetime]] = None):
        self.owner_id = owner_id
        self._expiries: Dict[int, datetime] = dict(expiries or {})

    @classmethod
    async def fetch(
        cls,
        db: AsyncSession,
        owner_id: int,
        now: Optional[datetime] = None,
    ) -> "BlockRegistry":
        now = now or datetime.utcnow()
        result = await db.execute(
            select(BlockedUser.blocked_user_id, BlockedUser.blocked_until)
            .where(
                BlockedUser.owner_id == owner_id,
                BlockedUser.blocked_until > now,
            )
        )
        expiries: Dict[int, datetime] = {}
        for blocked_id, until in result.all():
            if blocked_id not in expiries or until > expiries[blocked_id]:
                expiries[blocked_id] = until
        return cls(owner_id, expiries)

    def is_blocked(self, candidate_id: int, now: Optional[datetime] = None) -> bool:
        until = self._expiries.get(candidate_id)
        if until is None:
            return False
        return until > (now or datetime.utcnow())

    def blocked_ids(self, now: Optional[datetime] = None) -> Set[int]:
        now = now or datetime.utcnow()
        return {uid for uid, until in self._expiries.items() if until > now}


async def block_user(
    db: AsyncSession,
    owner_id: int,
    blocked_user_id: int,
    now: Optional[datetime] = None,
) -> BlockedUser:
    """Write a private block expiring BLOCK_COOLDOWN_DAYS from ``now``."""
    now = now or datetime.utcnow()
    block = BlockedUser(
        owner_id=owner_id,
        blocked_user_id=blocked_user_id,
        blocked_until=now + timedelta(days=settings.BLOCK_COOLDOWN_DAYS),
    )
    db.add(block)
    await db.commit()
    await db.refresh(block)
    logger.info("User %s blocked %s until %s", owner_id, blocked_user_id, block.blocked_until)
    return block
