"""Preference matching between two profiles."""
from dataclasses import dataclass
from typing import FrozenSet, Tuple

from models.profile import UserProfile

MIN_AGE = 18
MAX_AGE = 99
AGE_WIDEN_STEP = 5


@dataclass(frozen=True)
class Preferences:
    user_id: int
    gender: str
    age: int
    home_city: str
    cities: FrozenSet[str]
    desired_genders: FrozenSet[str]
    desired_age_min: int = MIN_AGE
    desired_age_max: int = MAX_AGE

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "Preferences":
        return cls(
            user_id=profile.user_id,
            gender=profile.gender or "",
            age=profile.age or 0,
            home_city=profile.home_city or "",
            cities=frozenset(profile.cities or ()),
            desired_genders=frozenset(profile.desired_genders or ()),
            desired_age_min=profile.desired_age_min if profile.desired_age_min is not None else MIN_AGE,
            desired_age_max=profile.desired_age_max if profile.desired_age_max is not None else MAX_AGE,
        )


def accepts(seeker: Preferences, other: Preferences) -> bool:
    """True when ``other`` satisfies all three of ``seeker``'s criteria."""
    return (
        other.gender in seeker.desired_genders
        and seeker.desired_age_min <= other.age <= seeker.desired_age_max
        and other.home_city in seeker.cities
    )


def is_mutual(a: Preferences, b: Preferences) -> bool:
    return accepts(a, b) and accepts(b, a)


def widened_age_range(lower: int, upper: int) -> Tuple[int, int]:
    return max(MIN_AGE, lower - AGE_WIDEN_STEP), min(MAX_AGE, upper + AGE_WIDEN_STEP)
