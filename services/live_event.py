"""
Live event phases as a pure state machine.

``transition(state, event)`` never performs I/O; timers, searches and
decision writes live in ``services.event_runtime``.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from core.config import settings
from core.exceptions import InvalidTransitionError
from services.profiles import MatchSnapshot


class Phase(str, Enum):
    LOBBY = "lobby"
    MATCHING = "matching"
    IN_CHAT = "in_chat"
    POST_CHAT = "post_chat"
    EVENT_ENDED = "event_ended"


@dataclass(frozen=True)
class LiveEventState:
    phase: Phase = Phase.LOBBY
    date_count: int = 0
    already_matched: Tuple[int, ...] = ()
    session_id: Optional[int] = None
    match: Optional[MatchSnapshot] = None
    chat_closed: bool = False
    did_connect: Optional[bool] = None


@dataclass(frozen=True)
class EventStarted:
    pass


@dataclass(frozen=True)
class MatchFound:
    session_id: int
    match: MatchSnapshot


@dataclass(frozen=True)
class NoMatchFound:
    pass


@dataclass(frozen=True)
class ChatTimerExpired:
    pass


@dataclass(frozen=True)
class DecisionMade:
    did_connect: bool


@dataclass(frozen=True)
class FindNext:
    pass


@dataclass(frozen=True)
class Leave:
    pass


def _reject(state: LiveEventState, event) -> InvalidTransitionError:
    return InvalidTransitionError(f"{type(event).__name__} is not allowed in phase {state.phase.value}")


def transition(state: LiveEventState, event, max_dates: Optional[int] = None) -> LiveEventState:
    max_dates = max_dates if max_dates is not None else settings.MAX_DATES_PER_EVENT

    if isinstance(event, Leave):
        return replace(state, phase=Phase.EVENT_ENDED)

    if state.phase == Phase.LOBBY and isinstance(event, EventStarted):
        return replace(state, phase=Phase.MATCHING)

    if state.phase == Phase.MATCHING:
        if isinstance(event, MatchFound):
            return replace(
                state,
                phase=Phase.IN_CHAT,
                session_id=event.session_id,
                match=event.match,
                already_matched=state.already_matched + (event.match.user_id,),
                chat_closed=False,
                did_connect=None,
            )
        if isinstance(event, NoMatchFound):
            return replace(state, phase=Phase.EVENT_ENDED)

    if state.phase == Phase.IN_CHAT:
        if isinstance(event, ChatTimerExpired):
            return replace(state, chat_closed=True)
        if isinstance(event, DecisionMade):
            if not state.chat_closed:
                raise _reject(state, event)
            return replace(
                state,
                phase=Phase.POST_CHAT,
                date_count=state.date_count + 1,
                did_connect=event.did_connect,
            )

    if state.phase == Phase.POST_CHAT and isinstance(event, FindNext):
        if state.date_count >= max_dates:
            return replace(state, phase=Phase.EVENT_ENDED)
        return replace(
            state,
            phase=Phase.MATCHING,
            session_id=None,
            match=None,
            chat_closed=False,
            did_connect=None,
        )

    raise _reject(state, event)
