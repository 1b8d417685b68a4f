import asyncio
import random
from datetime import datetime, timedelta

from core.database import AsyncSessionLocal
from models.chat import ChatSession
from services.block_registry import block_user
from services.candidate_finder import OutcomeKind, find_candidate
from services.session_initiator import find_match

ALL_CITIES = ("Carlsbad", "Oceanside", "Encinitas", "La Jolla", "Hillcrest")


def _seed_pair(make_user, **overrides_b):
    a = asyncio.run(make_user(
        "Alex", age=25, home_city="Carlsbad", cities=("Carlsbad", "Oceanside"),
        desired_genders=("Male",), desired_age_min=21, desired_age_max=30,
    ))
    b_kwargs = dict(
        age=25, home_city="Oceanside", cities=("Oceanside", "Carlsbad"),
        desired_genders=("Male",), desired_age_min=20, desired_age_max=32,
    )
    b_kwargs.update(overrides_b)
    b = asyncio.run(make_user("Blake", **b_kwargs))
    return a, b


def test_mutual_candidate_is_found(make_user):
    a, b = _seed_pair(make_user)
    outcome = asyncio.run(find_candidate(a, bypass_suggestion=True, rng=random.Random(1)))
    assert outcome.kind == OutcomeKind.MATCH
    assert outcome.candidate.user_id == b


def test_search_never_returns_self(make_user):
    a = asyncio.run(make_user(
        "Solo", home_city="Carlsbad", cities=ALL_CITIES, desired_genders=("Male",),
        desired_age_min=18, desired_age_max=99,
    ))
    outcome = asyncio.run(find_candidate(a, bypass_suggestion=True))
    assert outcome.kind == OutcomeKind.NO_MATCH
    assert outcome.status_message == "No new matches found that fit your preferences."
    assert outcome.retry_after_seconds == 3


def test_thin_pool_suggests_a_new_city(make_user):
    a, _ = _seed_pair(make_user)
    outcome = asyncio.run(find_candidate(a, rng=random.Random(3)))
    assert outcome.kind == OutcomeKind.SUGGEST_CITY
    assert outcome.suggested_city in {"Encinitas", "La Jolla", "Hillcrest"}
    assert outcome.suggested_city in outcome.status_message


def test_thin_pool_without_new_cities_suggests_wider_ages(make_user):
    a = asyncio.run(make_user(
        "Alex", home_city="Carlsbad", cities=ALL_CITIES,
        desired_genders=("Male",), desired_age_min=21, desired_age_max=30,
    ))
    outcome = asyncio.run(find_candidate(a))
    assert outcome.kind == OutcomeKind.SUGGEST_AGE_RANGE
    assert outcome.suggested_age_range == (18, 35)


def test_declined_suggestion_is_not_repeated(make_user):
    a, b = _seed_pair(make_user)
    first = asyncio.run(find_candidate(a))
    assert first.kind == OutcomeKind.SUGGEST_CITY
    second = asyncio.run(find_candidate(a, bypass_suggestion=True))
    assert second.kind == OutcomeKind.MATCH
    assert second.candidate.user_id == b


def test_one_sided_candidate_is_filtered_out(make_user):
    a, _ = _seed_pair(make_user, desired_genders=("Female",))
    outcome = asyncio.run(find_candidate(a, bypass_suggestion=True))
    assert outcome.kind == OutcomeKind.NO_MATCH
    assert outcome.status_message == "No one fit your mutual preferences."


def test_already_matched_candidate_is_skipped(make_user):
    a, b = _seed_pair(make_user)
    outcome = asyncio.run(find_candidate(a, already_matched=[b], bypass_suggestion=True))
    assert outcome.kind == OutcomeKind.NO_MATCH


def test_blocked_candidate_is_skipped_until_expiry(make_user):
    a, b = _seed_pair(make_user)
    now = datetime.utcnow()

    async def block():
        async with AsyncSessionLocal() as db:
            await block_user(db, a, b, now)

    asyncio.run(block())

    blocked = asyncio.run(find_candidate(a, bypass_suggestion=True, now=now + timedelta(days=29)))
    assert blocked.kind == OutcomeKind.NO_MATCH

    expired = asyncio.run(find_candidate(a, bypass_suggestion=True, now=now + timedelta(days=30)))
    assert expired.kind == OutcomeKind.MATCH


def test_missing_profile_reports_status():
    outcome = asyncio.run(find_candidate(99999901))
    assert outcome.kind == OutcomeKind.NO_MATCH
    assert outcome.status_message == "Could not fetch your profile to find matches."


def test_find_match_opens_a_chat_session(make_user):
    a, b = _seed_pair(make_user)
    result = asyncio.run(find_match(a, bypass_suggestion=True))
    assert result.start is not None
    assert result.start.match.user_id == b
    assert result.start.match.name == "Blake"

    async def load():
        async with AsyncSessionLocal() as db:
            return await db.get(ChatSession, result.start.session_id)

    session = asyncio.run(load())
    assert session.participants == (a, b)


def test_find_match_passes_suggestions_through(make_user):
    a, _ = _seed_pair(make_user)
    result = asyncio.run(find_match(a))
    assert result.start is None
    assert result.outcome.kind == OutcomeKind.SUGGEST_CITY
