"""
Message relay for a chat session.

Every viewer keeps a ``MessageFeed``: the locally displayed list of messages.
Three things feed it:

* ``send_message`` appends the outbound message before the write is confirmed
  and takes it back out if the write fails;
* ``poll`` re-reads the whole session and swaps the list in only when the store
  reports more messages than the feed holds;
* ``handle_push`` fetches the one message named by a push notification and
  merges it unless a message with the same id is already shown.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import RecordStoreError, StaleReferenceError
from core.id_generator import generate_random_id
from models.chat import ChatMessage, ChatSession

logger = logging.getLogger(__name__)

MESSAGE_RECORD_TYPE = "ChatMessage"


@dataclass(frozen=True)
class RelayedMessage:
    id: int
    session_id: int
    sender_id: int
    text: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: ChatMessage) -> "RelayedMessage":
        return cls(
            id=record.id,
            session_id=record.session_id,
            sender_id=record.sender_id,
            text=record.text,
            created_at=record.created_at,
        )

    def is_from(self, user_id: int) -> bool:
        return self.sender_id == user_id


def _sort_key(message: RelayedMessage):
    return message.created_at, message.id


class MessageFeed:
    """Locally displayed messages of one session, for one viewer."""

    def __init__(self, session_id: int, viewer_id: int):
        self.session_id = session_id
        self.viewer_id = viewer_id
        self.messages: List[RelayedMessage] = []

    def __len__(self):
        return len(self.messages)

    def contains(self, message_id: int) -> bool:
        return any(m.id == message_id for m in self.messages)

    def append_local(self, message: RelayedMessage) -> bool:
        if self.contains(message.id):
            return False
        self.messages.append(message)
        return True

    def discard(self, message_id: int) -> None:
        self.messages = [m for m in self.messages if m.id != message_id]

    def replace_if_grown(self, fetched: List[RelayedMessage]) -> bool:
        """Monotonic-count refresh: only a longer list replaces the current one."""
        if len(fetched) <= len(self.messages):
            return False
        self.messages = sorted(fetched, key=_sort_key)
        return True

    def merge(self, message: RelayedMessage) -> bool:
        if message.session_id != self.session_id or self.contains(message.id):
            return False
        self.messages.append(message)
        self.messages.sort(key=_sort_key)
        return True


async def send_message(
    db: AsyncSession,
    feed: MessageFeed,
    sender_id: int,
    text: str,
) -> RelayedMessage:
    """
    Persist ``text`` as a new message of ``feed.session_id``.

    Raises ValueError for blank text, StaleReferenceError when the session is
    gone and RecordStoreError when the write fails; in the last two cases the
    optimistic entry is removed again.
    """
    if not text or not text.strip():
        raise ValueError("Message text is empty")

    record = ChatMessage(
        id=generate_random_id("chat_messages"),
        session_id=feed.session_id,
        sender_id=sender_id,
        text=text,
        created_at=datetime.utcnow(),
    )
    local = RelayedMessage.from_record(record)
    feed.append_local(local)

    try:
        if await db.get(ChatSession, feed.session_id) is None:
            feed.discard(local.id)
            raise StaleReferenceError("ChatSession", feed.session_id)
        db.add(record)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        feed.discard(local.id)
        logger.warning("Error sending message to session %s: %s", feed.session_id, exc)
        raise RecordStoreError("Message could not be sent", exc) from exc

    return local


async def fetch_messages(db: AsyncSession, session_id: int) -> List[RelayedMessage]:
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
    )
    return [RelayedMessage.from_record(r) for r in result.scalars().all()]


async def poll(db: AsyncSession, feed: MessageFeed) -> bool:
    """Re-query the session; True when the feed was replaced."""
    try:
        fetched = await fetch_messages(db, feed.session_id)
    except SQLAlchemyError as exc:
        logger.warning("Error fetching messages for session %s: %s", feed.session_id, exc)
        return False
    return feed.replace_if_grown(fetched)


async def fetch_message(db: AsyncSession, message_id: int) -> Optional[RelayedMessage]:
    record = await db.get(ChatMessage, message_id)
    return RelayedMessage.from_record(record) if record is not None else None


async def handle_push(
    db: AsyncSession,
    feed: MessageFeed,
    record_type: str,
    record_id: int,
) -> bool:
    """Targeted re-fetch triggered by a push; True when a new message was merged."""
    if record_type != MESSAGE_RECORD_TYPE:
        logger.debug("Ignoring push for record type %s", record_type)
        return False
    try:
        message = await fetch_message(db, record_id)
    except SQLAlchemyError as exc:
        logger.warning("Error fetching pushed message %s: %s", record_id, exc)
        return False
    if message is None:
        logger.info("Pushed message %s no longer exists", record_id)
        return False
    if message.session_id != feed.session_id:
        logger.debug("Message %s is not for session %s", record_id, feed.session_id)
        return False
    return feed.merge(message)
