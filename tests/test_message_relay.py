import asyncio
from datetime import datetime, timedelta

import pytest

from core.database import AsyncSessionLocal
from core.exceptions import StaleReferenceError
from models.chat import ChatSession
from services.message_relay import (
    MESSAGE_RECORD_TYPE,
    MessageFeed,
    RelayedMessage,
    handle_push,
    poll,
    send_message,
)


def _message(message_id, session_id=1, sender_id=10, seconds=0):
    return RelayedMessage(
        id=message_id,
        session_id=session_id,
        sender_id=sender_id,
        text=f"m{message_id}",
        created_at=datetime(2026, 10, 18, 19, 5) + timedelta(seconds=seconds),
    )


def test_refresh_only_replaces_a_longer_list():
    feed = MessageFeed(1, 10)
    feed.append_local(_message(1))
    feed.append_local(_message(2, seconds=1))

    assert not feed.replace_if_grown([_message(1)])
    assert not feed.replace_if_grown([_message(3), _message(4)])
    assert [m.id for m in feed.messages] == [1, 2]

    assert feed.replace_if_grown([_message(2, seconds=1), _message(1), _message(5, seconds=2)])
    assert [m.id for m in feed.messages] == [1, 2, 5]


def test_merge_suppresses_duplicates_and_foreign_sessions():
    feed = MessageFeed(1, 10)
    assert feed.merge(_message(1))
    assert not feed.merge(_message(1))
    assert not feed.merge(_message(2, session_id=2))
    assert len(feed) == 1


def test_is_from_uses_explicit_sender():
    message = _message(1, sender_id=10)
    assert message.is_from(10)
    assert not message.is_from(11)


async def _new_session(created_by: int) -> int:
    async with AsyncSessionLocal() as db:
        session = ChatSession(created_by=created_by)
        db.add(session)
        await db.commit()
        await db.refresh(session)
        return session.id


def test_send_then_poll_from_the_other_side(make_user):
    a = asyncio.run(make_user("Alex"))
    b = asyncio.run(make_user("Blake"))
    session_id = asyncio.run(_new_session(a))
    sender_feed = MessageFeed(session_id, a)
    receiver_feed = MessageFeed(session_id, b)

    async def scenario():
        async with AsyncSessionLocal() as db:
            sent = await send_message(db, sender_feed, a, "hey there")
            changed = await poll(db, receiver_feed)
            unchanged = await poll(db, receiver_feed)
            return sent, changed, unchanged

    sent, changed, unchanged = asyncio.run(scenario())
    assert [m.id for m in sender_feed.messages] == [sent.id]
    assert changed and not unchanged
    assert receiver_feed.messages[0].text == "hey there"
    assert not receiver_feed.messages[0].is_from(b)


def test_blank_message_is_refused():
    feed = MessageFeed(1, 10)

    async def scenario():
        async with AsyncSessionLocal() as db:
            await send_message(db, feed, 10, "   ")

    with pytest.raises(ValueError):
        asyncio.run(scenario())
    assert len(feed) == 0


def test_send_to_purged_session_rolls_back_optimistic_entry(make_user):
    a = asyncio.run(make_user("Alex"))
    feed = MessageFeed(12345605, a)

    async def scenario():
        async with AsyncSessionLocal() as db:
            await send_message(db, feed, a, "anyone?")

    with pytest.raises(StaleReferenceError):
        asyncio.run(scenario())
    assert len(feed) == 0


def test_push_merges_message_once(make_user):
    a = asyncio.run(make_user("Alex"))
    b = asyncio.run(make_user("Blake"))
    session_id = asyncio.run(_new_session(a))
    receiver_feed = MessageFeed(session_id, b)

    async def scenario():
        async with AsyncSessionLocal() as db:
            sent = await send_message(db, MessageFeed(session_id, a), a, "ping")
            first = await handle_push(db, receiver_feed, MESSAGE_RECORD_TYPE, sent.id)
            again = await handle_push(db, receiver_feed, MESSAGE_RECORD_TYPE, sent.id)
            other_type = await handle_push(db, receiver_feed, "ChatDecision", sent.id)
            missing = await handle_push(db, receiver_feed, MESSAGE_RECORD_TYPE, 99999906)
            return first, again, other_type, missing

    assert asyncio.run(scenario()) == (True, False, False, False)
    assert len(receiver_feed) == 1
