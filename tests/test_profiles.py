import asyncio
from datetime import datetime

import pytest
from sqlalchemy import func, select

from core.database import AsyncSessionLocal
from core.exceptions import StaleReferenceError
from models.profile import DiscoverableProfile, UserProfile
from models.rsvp import EventRSVP
from models.user import User
from services.preferences import Preferences, accepts, is_mutual
from services.profiles import add_interested_city, delete_account, update_age_range
from services.rsvp import perform_rsvp
from utils.reset_db import async_reset_database
from utils.seed_db import MOCK_USERS, seed


def test_added_city_reaches_the_discoverable_profile(make_user):
    user_id = asyncio.run(make_user("Alex", cities=("Carlsbad",)))

    async def scenario():
        async with AsyncSessionLocal() as db:
            await add_interested_city(db, user_id, "Encinitas")
            await add_interested_city(db, user_id, "Encinitas")
            res = await db.execute(select(DiscoverableProfile).where(DiscoverableProfile.user_id == user_id))
            return res.scalar_one().cities

    assert asyncio.run(scenario()) == ["Carlsbad", "Encinitas"]


def test_age_range_update_validates_bounds(make_user):
    user_id = asyncio.run(make_user("Alex", desired_age_min=21, desired_age_max=30))

    async def widen():
        async with AsyncSessionLocal() as db:
            return await update_age_range(db, user_id, 18, 35)

    profile = asyncio.run(widen())
    assert (profile.desired_age_min, profile.desired_age_max) == (18, 35)

    async def invert():
        async with AsyncSessionLocal() as db:
            await update_age_range(db, user_id, 40, 30)

    with pytest.raises(ValueError):
        asyncio.run(invert())


def test_missing_profile_is_stale():
    async def scenario():
        async with AsyncSessionLocal() as db:
            await add_interested_city(db, 99999901, "Encinitas")

    with pytest.raises(StaleReferenceError):
        asyncio.run(scenario())


def test_delete_account_removes_owned_records(make_user):
    user_id = asyncio.run(make_user("Alex"))
    asyncio.run(make_user("Blake"))

    async def scenario():
        async with AsyncSessionLocal() as db:
            await perform_rsvp(db, user_id, datetime(2026, 10, 18, 12, 0))
            failures = await delete_account(db, user_id)
            profiles = (await db.execute(select(func.count(UserProfile.id)))).scalar_one()
            rsvps = (await db.execute(select(func.count(EventRSVP.id)))).scalar_one()
            user = await db.get(User, user_id)
            return failures, profiles, rsvps, user

    failures, profiles, rsvps, user = asyncio.run(scenario())
    assert failures == []
    assert profiles == 1
    assert rsvps == 0
    assert user is None


def test_seed_is_idempotent():
    created = asyncio.run(seed())
    assert len(created) == len(MOCK_USERS)
    assert asyncio.run(seed()) == []


def test_reset_with_seed_recreates_mock_users():
    asyncio.run(async_reset_database(with_seed=True))

    async def count():
        async with AsyncSessionLocal() as db:
            return (await db.execute(select(func.count(User.id)))).scalar_one()

    assert asyncio.run(count()) == len(MOCK_USERS)


def test_seed_users_hold_a_single_mutual_pair():
    prefs = {
        data["name"]: Preferences.from_profile(UserProfile(user_id=i, **data))
        for i, data in enumerate(MOCK_USERS, start=1)
    }
    pairs = {
        frozenset((x, y))
        for x in prefs for y in prefs
        if x != y and is_mutual(prefs[x], prefs[y])
    }
    assert pairs == {frozenset(("Liam", "James"))}
    assert accepts(prefs["Liam"], prefs["Noah"])
    assert not accepts(prefs["Noah"], prefs["Liam"])
