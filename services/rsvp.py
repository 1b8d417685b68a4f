"""Nightly event schedule and per-day RSVPs."""
import logging
from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from models.rsvp import EventRSVP

logger = logging.getLogger(__name__)


class RSVPStatus(str, Enum):
    CONFIRMED = "confirmed"
    NOT_RSVPD = "not_rsvpd"
    CLOSED = "closed"
    DISABLED = "disabled"


def _parse_clock(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def normalize_event_date(now: datetime) -> date:
    return now.date()


def lobby_opens_at(now: datetime) -> datetime:
    return datetime.combine(now.date(), _parse_clock(settings.EVENT_LOBBY_TIME))


def event_starts_at(now: datetime) -> datetime:
    return datetime.combine(now.date(), _parse_clock(settings.EVENT_START_TIME))


def is_lobby_open(now: datetime) -> bool:
    return lobby_opens_at(now) <= now < event_starts_at(now)


def seconds_until_start(now: datetime) -> float:
    return max(0.0, (event_starts_at(now) - now).total_seconds())


async def fetch_rsvp_status(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> RSVPStatus:
    now = now or datetime.now()
    try:
        result = await db.execute(
            select(EventRSVP.id).where(
                EventRSVP.user_id == user_id,
                EventRSVP.event_date == normalize_event_date(now),
            )
        )
        found = result.first() is not None
    except SQLAlchemyError as exc:
        logger.warning("Error fetching RSVP status for %s: %s", user_id, exc)
        return RSVPStatus.DISABLED

    if found:
        return RSVPStatus.CONFIRMED
    if now >= lobby_opens_at(now):
        return RSVPStatus.CLOSED
    return RSVPStatus.NOT_RSVPD


async def perform_rsvp(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> RSVPStatus:
    """Opt in to tonight's event. Repeating the call is a no-op."""
    now = now or datetime.now()
    status = await fetch_rsvp_status(db, user_id, now)
    if status != RSVPStatus.NOT_RSVPD:
        return status

    db.add(EventRSVP(user_id=user_id, event_date=normalize_event_date(now)))
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent request already stored it
        await db.rollback()
        return RSVPStatus.CONFIRMED
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Failed to RSVP user %s: %s", user_id, exc)
        return RSVPStatus.DISABLED

    logger.info("User %s RSVPd for %s", user_id, normalize_event_date(now))
    return RSVPStatus.CONFIRMED
