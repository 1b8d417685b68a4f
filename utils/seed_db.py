# utils/seed_db.py
"""Seed the North County San Diego test users for a local event night."""
import asyncio
import logging
from typing import Dict, List

from sqlalchemy import select

from core.database import AsyncSessionLocal
from models.photo import ProfilePhoto
from models.profile import DiscoverableProfile, UserProfile
from models.user import User

log = logging.getLogger(__name__)

PLACEHOLDER_PHOTO_KEY = "profiles/placeholder_person.jpg"

# Liam and James (both Carlsbad) are the only mutual pair. Liam also
# accepts Noah, but Noah looks only in Oceanside; Oliver wants women and
# Ethan, 21-25 in Encinitas or La Jolla, fits nobody.
MOCK_USERS: List[Dict] = [
    {"name": "Liam", "age": 25, "gender": "Male", "home_city": "Carlsbad", "cities": ["Carlsbad", "Oceanside"],
     "bio": "Surfer and software engineer.", "interests": ["Surfing", "Tech"],
     "desired_genders": ["Male"], "desired_age_min": 21, "desired_age_max": 30},
    {"name": "Noah", "age": 29, "gender": "Male", "home_city": "Oceanside", "cities": ["Oceanside"],
     "bio": "Just a guy who likes long walks on the beach... to the taco shop.",
     "interests": ["Tacos", "Craft Beer"],
     "desired_genders": ["Male", "Female"], "desired_age_min": 20, "desired_age_max": 32},
    {"name": "Ethan", "age": 22, "gender": "Male", "home_city": "Encinitas", "cities": ["Encinitas", "La Jolla"],
     "bio": "Student at UCSD, love to skate and find new coffee spots.", "interests": ["Skateboarding", "Coffee"],
     "desired_genders": ["Male"], "desired_age_min": 21, "desired_age_max": 25},
    {"name": "Oliver", "age": 28, "gender": "Male", "home_city": "La Jolla", "cities": ["La Jolla"],
     "bio": "Architect and travel blogger.", "interests": ["Architecture", "Travel"],
     "desired_genders": ["Female"], "desired_age_min": 25, "desired_age_max": 35},
    {"name": "James", "age": 30, "gender": "Male", "home_city": "Carlsbad", "cities": ["Carlsbad"],
     "bio": "Fitness coach and entrepreneur.", "interests": ["Fitness", "Business"],
     "desired_genders": ["Male"], "desired_age_min": 22, "desired_age_max": 28},
]


def _subject(name: str) -> str:
    return f"seed-{name.lower()}"


async def seed(session_factory=AsyncSessionLocal) -> List[int]:
    """Create the mock users that are not there yet; returns their user ids."""
    created: List[int] = []
    async with session_factory() as session:
        for data in MOCK_USERS:
            subject = _subject(data["name"])
            exists = await session.execute(select(User.id).where(User.identity_subject == subject))
            if exists.first() is not None:
                continue

            user = User(identity_subject=subject)
            session.add(user)
            await session.flush()

            session.add(UserProfile(user_id=user.id, **data))
            session.add(DiscoverableProfile(
                user_id=user.id,
                age=data["age"],
                gender=data["gender"],
                cities=list(data["cities"]),
            ))
            session.add(ProfilePhoto(user_id=user.id, s3_key=PLACEHOLDER_PHOTO_KEY, position=0))
            created.append(user.id)
        await session.commit()

    log.info("Seeded %d mock users", len(created))
    return created


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())
