import asyncio
from datetime import datetime

import pytest

from core.config import settings
from core.database import AsyncSessionLocal
from core.exceptions import InvalidTransitionError
from services.candidate_finder import OutcomeKind
from services.event_runtime import LiveEventRuntime, RuntimeRegistry
from services.live_event import Phase
from services.message_relay import MessageFeed, send_message
from services.profiles import get_profile
from services.timers import Countdown, PeriodicTask

# Last moment of the lobby: the event starts 0.1s later
LOBBY_CLOSING = datetime(2026, 10, 18, 19, 1, 59, 900000)
IN_LOBBY = datetime(2026, 10, 18, 18, 55)
LATE_NIGHT = datetime(2026, 10, 18, 23, 30)


@pytest.fixture
def fast_clock():
    settings.CHAT_DURATION_SECONDS = 1.5
    settings.PROFILE_REVEAL_AFTER_SECONDS = 0.1
    settings.MESSAGE_POLL_INTERVAL_SECONDS = 0.05
    settings.NO_MATCH_DELAY_SECONDS = 0
    settings.MIN_CANDIDATES_BEFORE_SUGGESTION = 1


def test_cancelled_countdown_never_fires():
    fired = []

    async def scenario():
        async def callback():
            fired.append(True)

        countdown = Countdown(0.05, callback).start()
        countdown.cancel()
        await asyncio.sleep(0.1)
        return countdown

    countdown = asyncio.run(scenario())
    assert fired == []
    assert countdown.cancelled
    assert not countdown.fired


def test_countdown_fires_once():
    fired = []

    async def scenario():
        async def callback():
            fired.append(True)

        countdown = Countdown(0.01, callback).start()
        await countdown.wait()
        countdown.cancel()
        return countdown

    countdown = asyncio.run(scenario())
    assert fired == [True]
    assert countdown.fired and not countdown.cancelled


def test_periodic_task_stops_on_cancel():
    async def scenario():
        async def callback():
            pass

        task = PeriodicTask(0.01, callback).start()
        await asyncio.sleep(0.1)
        task.cancel()
        runs = task.runs
        await asyncio.sleep(0.05)
        return runs, task.runs, task.running

    runs, later, running = asyncio.run(scenario())
    assert runs >= 2
    assert later == runs
    assert not running


def _mutual_pair(make_user):
    a = asyncio.run(make_user(
        "Alex", home_city="Carlsbad", cities=("Carlsbad", "Oceanside"),
        desired_genders=("Male",), desired_age_min=21, desired_age_max=30,
    ))
    b = asyncio.run(make_user(
        "Blake", home_city="Oceanside", cities=("Oceanside", "Carlsbad"),
        desired_genders=("Male",), desired_age_min=20, desired_age_max=32,
    ))
    return a, b


async def _wait_for(predicate, timeout=1.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(0.02)
    return True


def test_runtime_drives_a_date_from_lobby_to_decision(make_user, fast_clock):
    a, b = _mutual_pair(make_user)

    async def scenario():
        runtime = LiveEventRuntime(a, clock=lambda: LOBBY_CLOSING)
        await runtime.enter_lobby()
        await runtime.timer("lobby").wait()

        assert runtime.state.phase == Phase.IN_CHAT
        assert runtime.state.match.user_id == b
        assert runtime.polling

        async with AsyncSessionLocal() as db:
            await send_message(db, MessageFeed(runtime.state.session_id, b), b, "hi Alex")
        received = await _wait_for(lambda: len(runtime.feed) == 1)
        await runtime.timer("reveal").wait()
        revealed = runtime.profile_revealed

        await runtime.timer("chat").wait()
        closed = runtime.state.chat_closed
        polling_after_close = runtime.polling

        await runtime.decide(True)
        phase = runtime.state.phase
        await runtime.leave()
        return runtime, received, revealed, closed, polling_after_close, phase

    runtime, received, revealed, closed, polling_after_close, phase = asyncio.run(scenario())
    assert received and revealed and closed
    assert not polling_after_close
    assert phase == Phase.POST_CHAT
    assert runtime.last_decision is not None
    assert runtime.state.phase == Phase.EVENT_ENDED
    assert runtime.state.date_count == 1


def test_decision_before_chat_closes_is_rejected(make_user, fast_clock):
    a, _ = _mutual_pair(make_user)

    async def scenario():
        runtime = LiveEventRuntime(a, clock=lambda: LOBBY_CLOSING)
        await runtime.enter_lobby()
        await runtime.timer("lobby").wait()
        try:
            await runtime.decide(True)
        finally:
            await runtime.leave()

    with pytest.raises(InvalidTransitionError):
        asyncio.run(scenario())


def test_leaving_cancels_pending_countdowns(make_user):
    a = asyncio.run(make_user("Alex"))

    async def scenario():
        runtime = LiveEventRuntime(a, clock=lambda: IN_LOBBY)
        await runtime.enter_lobby()
        lobby = runtime.timer("lobby")
        await runtime.leave()
        await asyncio.sleep(0)
        return runtime, lobby

    runtime, lobby = asyncio.run(scenario())
    assert lobby.cancelled
    assert runtime.timer("lobby") is None
    assert runtime.state.phase == Phase.EVENT_ENDED


def test_no_match_ends_the_event_after_a_delay(make_user, fast_clock):
    a = asyncio.run(make_user(
        "Alex", cities=("Carlsbad", "Oceanside", "Encinitas", "La Jolla", "Hillcrest"),
    ))

    async def scenario():
        runtime = LiveEventRuntime(a, clock=lambda: LOBBY_CLOSING)
        await runtime.enter_lobby()
        await runtime.timer("lobby").wait()
        status = runtime.status_message
        await runtime.timer("no_match").wait()
        return runtime, status

    runtime, status = asyncio.run(scenario())
    assert status == "No new matches found that fit your preferences."
    assert runtime.state.phase == Phase.EVENT_ENDED


def test_declined_suggestion_searches_without_suggestions(make_user, fast_clock):
    settings.MIN_CANDIDATES_BEFORE_SUGGESTION = 2
    a, b = _mutual_pair(make_user)

    async def scenario():
        runtime = LiveEventRuntime(a, clock=lambda: LOBBY_CLOSING)
        await runtime.enter_lobby()
        await runtime.timer("lobby").wait()
        suggested = runtime.suggestion
        outcome = await runtime.answer_suggestion(False)
        await runtime.leave()
        return runtime, suggested, outcome

    runtime, suggested, outcome = asyncio.run(scenario())
    assert suggested.kind == OutcomeKind.SUGGEST_CITY
    assert outcome.kind == OutcomeKind.MATCH
    assert runtime.state.already_matched == (b,)


def test_accepted_city_suggestion_is_saved(make_user, fast_clock):
    settings.MIN_CANDIDATES_BEFORE_SUGGESTION = 2
    a, _ = _mutual_pair(make_user)

    async def scenario():
        runtime = LiveEventRuntime(a, clock=lambda: LOBBY_CLOSING)
        await runtime.enter_lobby()
        await runtime.timer("lobby").wait()
        city = runtime.suggestion.suggested_city
        await runtime.answer_suggestion(True)
        await runtime.leave()
        async with AsyncSessionLocal() as db:
            profile = await get_profile(db, a)
        return city, profile.cities

    city, cities = asyncio.run(scenario())
    assert city in cities


def test_registry_replaces_and_shuts_down_runtimes():
    registry = RuntimeRegistry()

    async def scenario():
        first = registry.start(1)
        await first.enter_lobby(now=IN_LOBBY)
        lobby = first.timer("lobby")
        second = registry.start(1)
        await asyncio.sleep(0)
        await registry.shutdown()
        return first, second, lobby

    first, second, lobby = asyncio.run(scenario())
    assert first is not second
    assert lobby.cancelled
    assert len(registry) == 0


@pytest.mark.parametrize("now", [datetime(2026, 10, 18, 9, 0), LATE_NIGHT])
def test_lobby_rejects_joins_outside_its_window(make_user, now):
    a = asyncio.run(make_user("Alex"))

    async def scenario():
        runtime = LiveEventRuntime(a, clock=lambda: now)
        with pytest.raises(InvalidTransitionError):
            await runtime.enter_lobby()
        await asyncio.sleep(0.05)
        return runtime

    runtime = asyncio.run(scenario())
    assert runtime.timer("lobby") is None
    assert runtime.state.phase == Phase.LOBBY
