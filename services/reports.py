import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import RecordStoreError
from models.report import Report

logger = logging.getLogger(__name__)


async def submit_report(
    db: AsyncSession,
    session_id: int,
    reporter_id: int,
    reported_id: int,
    reason: str = "",
) -> Report:
    """Flag a session for moderation; a reported session is never purged."""
    report = Report(
        session_id=session_id,
        reporter_id=reporter_id,
        reported_id=reported_id,
        reason=reason or "",
    )
    db.add(report)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Error submitting report on session %s: %s", session_id, exc)
        raise RecordStoreError("Report could not be submitted", exc) from exc
    await db.refresh(report)
    logger.info("User %s reported %s in session %s", reporter_id, reported_id, session_id)
    return report
