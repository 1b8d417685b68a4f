"""
Candidate search for the live event.

A search runs in three passes:

1. the acting user's private profile and active blocks are fetched
   concurrently;
2. discoverable profiles are queried with the acting user's gender and age
   criteria and filtered on location, then self, already-seen and blocked
   users are dropped;
3. the survivors' private profiles are fetched concurrently and only those
   whose own criteria accept the acting user are kept. One of them is picked
   at random.

A thin pool (fewer than MIN_CANDIDATES_BEFORE_SUGGESTION) yields a
suggestion to broaden the search instead of a result, unless the user already
declined one during this search.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Collection, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.database import AsyncSessionLocal
from models.profile import DiscoverableProfile, UserProfile
from services.block_registry import BlockRegistry
from services.preferences import Preferences, is_mutual, widened_age_range

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    MATCH = "match"
    SUGGEST_CITY = "suggest_city"
    SUGGEST_AGE_RANGE = "suggest_age_range"
    NO_MATCH = "no_match"


@dataclass
class FinderOutcome:
    kind: OutcomeKind
    status_message: str = ""
    candidate: Optional[UserProfile] = None
    suggested_city: Optional[str] = None
    suggested_age_range: Optional[Tuple[int, int]] = None
    # How long the status stays on screen before "no match" resolves
    retry_after_seconds: int = 0

    @classmethod
    def no_match(cls, message: str, long: bool = False) -> "FinderOutcome":
        # Exhausted-pool outcomes stay on screen one second longer
        delay = settings.NO_MATCH_DELAY_SECONDS + (1 if long else 0)
        return cls(kind=OutcomeKind.NO_MATCH, status_message=message, retry_after_seconds=delay)


async def _load_own_profile(session_factory, user_id: int) -> Optional[UserProfile]:
    async with session_factory() as db:
        result = await db.execute(select(UserProfile).where(UserProfile.user_id == user_id))
        return result.scalar_one_or_none()


async def _load_blocks(session_factory, user_id: int, now: datetime) -> BlockRegistry:
    try:
        async with session_factory() as db:
            return await BlockRegistry.fetch(db, user_id, now)
    except SQLAlchemyError as exc:
        logger.warning("Error fetching blocked users for %s: %s", user_id, exc)
        return BlockRegistry(user_id)


async def _load_candidate_profile(session_factory, user_id: int) -> Optional[UserProfile]:
    try:
        async with session_factory() as db:
            result = await db.execute(select(UserProfile).where(UserProfile.user_id == user_id))
            return result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.warning("Error fetching profile %s: %s", user_id, exc)
        return None


def _suggestion(own: Preferences, rng: random.Random) -> Optional[FinderOutcome]:
    available = [c for c in settings.SUGGESTION_CITIES if c not in own.cities]
    if available:
        city = rng.choice(available)
        return FinderOutcome(
            kind=OutcomeKind.SUGGEST_CITY,
            status_message=(
                "We found only a few potential matches with your current preferences. "
                f"Would you like to add {city} to your interested cities for more options tonight?"
            ),
            suggested_city=city,
        )

    lower, upper = widened_age_range(own.desired_age_min, own.desired_age_max)
    if (lower, upper) == (own.desired_age_min, own.desired_age_max):
        return None
    return FinderOutcome(
        kind=OutcomeKind.SUGGEST_AGE_RANGE,
        status_message=(
            f"Still few matches. Would you like to expand your desired age range to {lower}-{upper}?"
        ),
        suggested_age_range=(lower, upper),
    )


async def find_candidate(
    user_id: int,
    already_matched: Collection[int] = (),
    bypass_suggestion: bool = False,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> FinderOutcome:
    """Run one search attempt for ``user_id``. Never raises on store errors."""
    now = now or datetime.utcnow()
    rng = rng or random.Random()

    try:
        own_profile, blocks = await asyncio.gather(
            _load_own_profile(session_factory, user_id),
            _load_blocks(session_factory, user_id, now),
        )
    except SQLAlchemyError as exc:
        logger.warning("Could not fetch profile of %s: %s", user_id, exc)
        own_profile = None
    if own_profile is None:
        return FinderOutcome.no_match("Could not fetch your profile to find matches.")
    own = Preferences.from_profile(own_profile)

    try:
        async with session_factory() as db:
            result = await db.execute(
                select(DiscoverableProfile).where(
                    DiscoverableProfile.gender.in_(list(own.desired_genders)),
                    DiscoverableProfile.age >= own.desired_age_min,
                    DiscoverableProfile.age <= own.desired_age_max,
                )
            )
            discoverable = result.scalars().all()
    except SQLAlchemyError as exc:
        logger.warning("Discoverable profile query failed for %s: %s", user_id, exc)
        return FinderOutcome.no_match("Error finding potential matches.")

    excluded = set(already_matched)
    # Location lives in a JSON list, so containment is checked here
    pool: List[int] = [
        d.user_id
        for d in discoverable
        if own.home_city in (d.cities or [])
        and d.user_id != user_id
        and d.user_id not in excluded
        and not blocks.is_blocked(d.user_id, now)
    ]

    if not bypass_suggestion and len(pool) < settings.MIN_CANDIDATES_BEFORE_SUGGESTION:
        suggestion = _suggestion(own, rng)
        if suggestion is not None:
            logger.info("Thin pool (%d) for %s, offering %s", len(pool), user_id, suggestion.kind.value)
            return suggestion

    if not pool:
        return FinderOutcome.no_match("No new matches found that fit your preferences.", long=True)

    profiles = await asyncio.gather(
        *(_load_candidate_profile(session_factory, uid) for uid in pool)
    )
    two_way = [
        p for p in profiles
        if p is not None and is_mutual(own, Preferences.from_profile(p))
    ]
    logger.info("Search for %s: %d in pool, %d mutual", user_id, len(pool), len(two_way))

    if not two_way:
        return FinderOutcome.no_match("No one fit your mutual preferences.", long=True)

    return FinderOutcome(kind=OutcomeKind.MATCH, candidate=rng.choice(two_way))
