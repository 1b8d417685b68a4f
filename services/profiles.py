import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import RecordStoreError, StaleReferenceError
from models.block import BlockedUser
from models.chat import ChatDecision
from models.photo import ProfilePhoto
from models.profile import DiscoverableProfile, UserProfile
from models.rsvp import EventRSVP
from models.user import User
from utils.s3 import build_photo_urls, delete_file_from_s3, list_photo_keys

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchSnapshot:
    """Public-facing view of a candidate, captured once at match time."""
    user_id: int
    name: str
    age: int
    home_city: str
    bio: str
    interests: List[str] = field(default_factory=list)
    photos: List[str] = field(default_factory=list)


async def get_profile(db: AsyncSession, user_id: int) -> Optional[UserProfile]:
    result = await db.execute(select(UserProfile).where(UserProfile.user_id == user_id))
    return result.scalar_one_or_none()


async def require_profile(db: AsyncSession, user_id: int) -> UserProfile:
    profile = await get_profile(db, user_id)
    if profile is None:
        raise StaleReferenceError("UserProfile", user_id)
    return profile


async def build_snapshot(db: AsyncSession, profile: UserProfile) -> MatchSnapshot:
    photos = await build_photo_urls(profile.user_id, db)
    return MatchSnapshot(
        user_id=profile.user_id,
        name=profile.name or "Unknown",
        age=profile.age or 0,
        home_city=profile.home_city or "",
        bio=profile.bio or "Loves having a good time!",
        interests=list(profile.interests or []),
        photos=photos,
    )


async def add_interested_city(db: AsyncSession, user_id: int, city: str) -> UserProfile:
    """Add ``city`` to the user's interested cities, private and public copies."""
    profile = await require_profile(db, user_id)
    cities = list(profile.cities or [])
    if city in cities:
        return profile

    cities.append(city)
    # JSON columns are replaced, not mutated in place
    profile.cities = cities
    res = await db.execute(select(DiscoverableProfile).where(DiscoverableProfile.user_id == user_id))
    discoverable = res.scalar_one_or_none()
    if discoverable is not None:
        discoverable.cities = list(cities)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise RecordStoreError("Could not save your cities", exc) from exc
    await db.refresh(profile)
    logger.info("User %s added %s to interested cities", user_id, city)
    return profile


async def update_age_range(db: AsyncSession, user_id: int, lower: int, upper: int) -> UserProfile:
    if lower > upper:
        raise ValueError("Lower age bound must not exceed the upper bound")
    profile = await require_profile(db, user_id)
    profile.desired_age_min = lower
    profile.desired_age_max = upper
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise RecordStoreError("Could not save your age range", exc) from exc
    await db.refresh(profile)
    logger.info("User %s widened desired ages to %s-%s", user_id, lower, upper)
    return profile


async def delete_account(db: AsyncSession, user_id: int) -> List[str]:
    """
    Remove everything the user owns. Each step runs on its own; a failed
    step is logged and reported back, the remaining steps still run.
    """
    failures: List[str] = []

    try:
        keys = await list_photo_keys(user_id, db)
    except SQLAlchemyError as exc:
        logger.error("Could not list photos of user %s: %s", user_id, exc)
        failures.append("photos")
        keys = []
    for key in keys:
        try:
            delete_file_from_s3(key, settings.AWS_S3_BUCKET_NAME)
        except Exception as exc:  # noqa: BLE001
            logger.error("Could not delete photo %s: %s", key, exc)
            failures.append(f"photo:{key}")

    steps = [
        ("photos", delete(ProfilePhoto).where(ProfilePhoto.user_id == user_id)),
        ("discoverable_profile", delete(DiscoverableProfile).where(DiscoverableProfile.user_id == user_id)),
        ("rsvps", delete(EventRSVP).where(EventRSVP.user_id == user_id)),
        ("decisions", delete(ChatDecision).where(ChatDecision.user_id == user_id)),
        ("blocks", delete(BlockedUser).where(BlockedUser.owner_id == user_id)),
        ("profile", delete(UserProfile).where(UserProfile.user_id == user_id)),
        ("user", delete(User).where(User.id == user_id)),
    ]
    for name, stmt in steps:
        try:
            await db.execute(stmt)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Deleting %s of user %s failed: %s", name, user_id, exc)
            failures.append(name)

    logger.info("Account %s deleted (%d failed steps)", user_id, len(failures))
    return failures
