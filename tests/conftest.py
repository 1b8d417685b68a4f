import asyncio
import os
import tempfile

_tmp_dir = tempfile.mkdtemp(prefix="sevenpm-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["IDENTITY_PROVIDER_SECRET"] = "identity-secret"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from core.config import settings  # noqa: E402
from core.database import AsyncSessionLocal, engine  # noqa: E402
from models.base import Base  # noqa: E402
import models.registry  # noqa: E402,F401
from models.profile import DiscoverableProfile, UserProfile  # noqa: E402
from models.user import User  # noqa: E402
from services.event_runtime import runtimes  # noqa: E402


async def _recreate_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def fresh_schema():
    asyncio.run(_recreate_schema())
    yield


@pytest.fixture(autouse=True)
def restore_settings():
    original = settings.dict()
    try:
        yield
    finally:
        for key, value in original.items():
            setattr(settings, key, value)


@pytest.fixture(autouse=True)
def clear_runtimes():
    yield
    asyncio.run(runtimes.shutdown())


@pytest.fixture
def session_factory():
    return AsyncSessionLocal


async def create_user(
    name: str,
    age: int = 25,
    gender: str = "Male",
    home_city: str = "Carlsbad",
    cities=("Carlsbad",),
    desired_genders=("Male",),
    desired_age_min: int = 18,
    desired_age_max: int = 99,
    bio: str = "",
    discoverable: bool = True,
) -> int:
    async with AsyncSessionLocal() as db:
        user = User(identity_subject=f"test-{name.lower()}")
        db.add(user)
        await db.flush()
        db.add(UserProfile(
            user_id=user.id,
            name=name,
            age=age,
            gender=gender,
            home_city=home_city,
            cities=list(cities),
            bio=bio,
            interests=[],
            desired_genders=list(desired_genders),
            desired_age_min=desired_age_min,
            desired_age_max=desired_age_max,
        ))
        if discoverable:
            db.add(DiscoverableProfile(user_id=user.id, age=age, gender=gender, cities=list(cities)))
        await db.commit()
        return user.id


@pytest.fixture
def make_user():
    """``asyncio.run(make_user("Liam", age=25, ...))`` -> user id."""
    return create_user
