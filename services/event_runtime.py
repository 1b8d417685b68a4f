"""
Per-user driver of the live event.

A ``LiveEventRuntime`` wraps the pure state machine of ``services.live_event``
with the side effects of each phase: the lobby countdown, the candidate
search, the chat countdown with its profile reveal, the message poller and
the decision write. Every deferred callback is held as a cancellable timer;
leaving the event cancels all of them, so nothing fires into a runtime that
is gone.
"""
import logging
import time
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.database import AsyncSessionLocal
from core.exceptions import DatingError, InvalidTransitionError
from services import message_relay
from services.candidate_finder import FinderOutcome, OutcomeKind
from services.decision_recorder import DecisionResult, record_decision
from services.live_event import (
    ChatTimerExpired,
    DecisionMade,
    EventStarted,
    FindNext,
    Leave,
    LiveEventState,
    MatchFound,
    NoMatchFound,
    Phase,
    transition,
)
from services.profiles import add_interested_city, update_age_range
from services.rsvp import event_starts_at, is_lobby_open, lobby_opens_at, seconds_until_start
from services.session_initiator import find_match
from services.timers import Countdown, PeriodicTask

logger = logging.getLogger(__name__)


class LiveEventRuntime:

    def __init__(
        self,
        user_id: int,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        max_dates: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.user_id = user_id
        self.session_factory = session_factory
        self.max_dates = max_dates if max_dates is not None else settings.MAX_DATES_PER_EVENT
        self.clock = clock

        self.state = LiveEventState()
        self.status_message = ""
        self.suggestion: Optional[FinderOutcome] = None
        self.bypass_suggestion = False
        self.profile_revealed = False
        self.feed: Optional[message_relay.MessageFeed] = None
        self.last_decision: Optional[DecisionResult] = None

        self._timers: Dict[str, Countdown] = {}
        self._poller: Optional[PeriodicTask] = None
        self._chat_started: Optional[float] = None

    # timers

    def _schedule(self, name: str, delay: float, callback) -> Countdown:
        self._cancel_timer(name)
        timer = Countdown(delay, callback, name=f"{name}:{self.user_id}").start()
        self._timers[name] = timer
        return timer

    def _cancel_timer(self, name: str) -> None:
        timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()

    def timer(self, name: str) -> Optional[Countdown]:
        return self._timers.get(name)

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.running

    def cancel_all(self) -> None:
        for name in list(self._timers):
            self._cancel_timer(name)
        self._stop_poller()

    def _stop_poller(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None

    @property
    def seconds_remaining(self) -> Optional[float]:
        if self._chat_started is None:
            return None
        elapsed = time.monotonic() - self._chat_started
        return max(0.0, settings.CHAT_DURATION_SECONDS - elapsed)

    # state machine

    async def dispatch(self, event) -> LiveEventState:
        previous = self.state
        self.state = transition(previous, event, self.max_dates)
        logger.debug("User %s: %s -> %s on %s", self.user_id, previous.phase.value,
                     self.state.phase.value, type(event).__name__)
        self._after_transition(previous, self.state)
        return self.state

    def _after_transition(self, previous: LiveEventState, current: LiveEventState) -> None:
        if current.phase == Phase.IN_CHAT and previous.phase != Phase.IN_CHAT:
            self._start_chat()
        elif current.phase == Phase.IN_CHAT and current.chat_closed and not previous.chat_closed:
            self._stop_poller()
        if previous.phase == Phase.IN_CHAT and current.phase != Phase.IN_CHAT:
            self._stop_chat()
        if current.phase == Phase.EVENT_ENDED:
            self.cancel_all()

    def _start_chat(self) -> None:
        self.feed = message_relay.MessageFeed(self.state.session_id, self.user_id)
        self.profile_revealed = False
        self._chat_started = time.monotonic()
        self._schedule("chat", settings.CHAT_DURATION_SECONDS, self._on_chat_expired)
        self._schedule("reveal", settings.PROFILE_REVEAL_AFTER_SECONDS, self._on_reveal)
        self._poller = PeriodicTask(
            settings.MESSAGE_POLL_INTERVAL_SECONDS, self._poll_messages, name=f"poll:{self.user_id}"
        ).start()

    def _stop_chat(self) -> None:
        self._cancel_timer("chat")
        self._cancel_timer("reveal")
        self._stop_poller()
        self.feed = None
        self._chat_started = None

    async def _on_event_start(self) -> None:
        await self.dispatch(EventStarted())
        await self.find_match()

    async def _on_chat_expired(self) -> None:
        await self.dispatch(ChatTimerExpired())

    async def _on_reveal(self) -> None:
        self.profile_revealed = True

    async def _on_no_match(self) -> None:
        if self.state.phase == Phase.MATCHING:
            await self.dispatch(NoMatchFound())

    async def _poll_messages(self) -> None:
        feed = self.feed
        if feed is None:
            return
        async with self.session_factory() as db:
            await message_relay.poll(db, feed)

    # operations

    async def enter_lobby(self, now: Optional[datetime] = None) -> LiveEventState:
        if self.state.phase != Phase.LOBBY:
            raise InvalidTransitionError(f"Cannot enter the lobby in phase {self.state.phase.value}")
        now = now or self.clock()
        if not is_lobby_open(now):
            raise InvalidTransitionError(
                f"The lobby is open from {lobby_opens_at(now):%H:%M} until {event_starts_at(now):%H:%M}"
            )
        delay = seconds_until_start(now)
        self._schedule("lobby", delay, self._on_event_start)
        logger.info("User %s entered the lobby, event starts in %.0fs", self.user_id, delay)
        return self.state

    async def find_match(self) -> FinderOutcome:
        if self.state.phase != Phase.MATCHING:
            raise InvalidTransitionError(f"Cannot search in phase {self.state.phase.value}")

        self.suggestion = None
        self.status_message = "Finding your next date..."
        result = await find_match(
            self.user_id,
            already_matched=self.state.already_matched,
            bypass_suggestion=self.bypass_suggestion,
            session_factory=self.session_factory,
        )
        outcome = result.outcome

        if result.start is not None:
            self.bypass_suggestion = False
            self.status_message = ""
            await self.dispatch(MatchFound(session_id=result.start.session_id, match=result.start.match))
        elif outcome.kind in (OutcomeKind.SUGGEST_CITY, OutcomeKind.SUGGEST_AGE_RANGE):
            self.suggestion = outcome
            self.status_message = outcome.status_message
        else:
            self.status_message = outcome.status_message
            self._schedule("no_match", outcome.retry_after_seconds, self._on_no_match)
        return outcome

    async def answer_suggestion(self, accept: bool) -> FinderOutcome:
        """Apply or decline the pending broadening suggestion, then search again."""
        suggestion = self.suggestion
        if suggestion is None:
            raise InvalidTransitionError("No suggestion is pending")
        self.suggestion = None

        if not accept:
            self.bypass_suggestion = True
        else:
            try:
                async with self.session_factory() as db:
                    if suggestion.kind == OutcomeKind.SUGGEST_CITY:
                        await add_interested_city(db, self.user_id, suggestion.suggested_city)
                    else:
                        lower, upper = suggestion.suggested_age_range
                        await update_age_range(db, self.user_id, lower, upper)
            except DatingError as exc:
                logger.warning("Could not apply suggestion for %s: %s", self.user_id, exc)
                self.bypass_suggestion = True
        return await self.find_match()

    async def send(self, text: str) -> message_relay.RelayedMessage:
        if self.state.phase != Phase.IN_CHAT or self.state.chat_closed or self.feed is None:
            raise InvalidTransitionError("Chat is not open")
        async with self.session_factory() as db:
            return await message_relay.send_message(db, self.feed, self.user_id, text)

    async def handle_push(self, record_type: str, record_id: int) -> bool:
        feed = self.feed
        if feed is None:
            return False
        async with self.session_factory() as db:
            return await message_relay.handle_push(db, feed, record_type, record_id)

    async def decide(self, did_connect: bool, now: Optional[datetime] = None) -> LiveEventState:
        state = self.state
        if state.phase != Phase.IN_CHAT or not state.chat_closed:
            raise InvalidTransitionError("Decisions are taken once the chat has closed")

        self.last_decision = None
        try:
            async with self.session_factory() as db:
                self.last_decision = await record_decision(
                    db,
                    state.session_id,
                    self.user_id,
                    did_connect,
                    candidate_id=state.match.user_id if state.match else None,
                    now=now,
                )
        except DatingError as exc:
            # The user still moves on; an unfinished intent is resumed later
            logger.error("Decision of %s on session %s failed: %s", self.user_id, state.session_id, exc)
            self.status_message = "Your decision could not be saved."
        return await self.dispatch(DecisionMade(did_connect=did_connect))

    async def next_date(self) -> LiveEventState:
        await self.dispatch(FindNext())
        if self.state.phase == Phase.MATCHING:
            await self.find_match()
        return self.state

    async def leave(self) -> LiveEventState:
        return await self.dispatch(Leave())


class RuntimeRegistry:
    """Active runtimes by user id."""

    def __init__(self):
        self._runtimes: Dict[int, LiveEventRuntime] = {}

    def get(self, user_id: int) -> Optional[LiveEventRuntime]:
        return self._runtimes.get(user_id)

    def start(self, user_id: int, session_factory: async_sessionmaker = AsyncSessionLocal) -> LiveEventRuntime:
        self.discard(user_id)
        runtime = LiveEventRuntime(user_id, session_factory=session_factory)
        self._runtimes[user_id] = runtime
        return runtime

    def discard(self, user_id: int) -> None:
        runtime = self._runtimes.pop(user_id, None)
        if runtime is not None:
            runtime.cancel_all()

    def __len__(self):
        return len(self._runtimes)

    async def shutdown(self) -> None:
        for user_id in list(self._runtimes):
            self.discard(user_id)


runtimes = RuntimeRegistry()
