"""Request timeline — free-text notes and the audit log entries written by workflow steps."""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.config import settings
from mrms.errors import NotFound, ValidationError
from mrms.models.request import MaterialRequest
from mrms.models.request_note import RequestNote

logger = structlog.get_logger()


async def latest_note(session: AsyncSession, request_number: str) -> Optional[RequestNote]:
    result = await session.execute(
        select(RequestNote)
        .where(RequestNote.request_number == request_number)
        .order_by(RequestNote.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


def _is_recent_duplicate(note: Optional[RequestNote], content: str, now: datetime) -> bool:
    if note is None or note.content != content:
        return False
    window = timedelta(seconds=settings.DRAFT_NOTE_DEDUP_SECONDS)
    return note.created_at is not None and (now - note.created_at) < window


async def record_note(
    session: AsyncSession,
    user,
    request_number: str,
    content: str,
    status: Optional[str] = None,
    note_type: str = "note",
    created_at: Optional[datetime] = None,
) -> RequestNote:
    """
    Append a timeline entry.

    Uses session.add() only — caller owns the flush and the transaction.
    """
    note = RequestNote(
        request_number=request_number,
        user_id=user.id,
        role=user.role,
        status=status,
        type=note_type,
        content=content,
        created_at=created_at or datetime.utcnow(),
    )
    session.add(note)
    logger.info(
        "request_note_recorded",
        request_number=request_number,
        note_type=note_type,
        status=status,
        user_id=str(user.id),
    )
    return note


async def record_log(
    session: AsyncSession,
    user,
    request_number: str,
    content: str,
    status: Optional[str] = None,
    suppress_duplicates: bool = False,
) -> Optional[RequestNote]:
    """
    Write an audit entry. With ``suppress_duplicates`` an entry identical to the
    newest one on the same request number, written within the dedup window,
    is skipped and None is returned.
    """
    now = datetime.utcnow()
    if suppress_duplicates:
        previous = await latest_note(session, request_number)
        if _is_recent_duplicate(previous, content, now):
            logger.info("request_note_duplicate_skipped", request_number=request_number)
            return None
    return await record_note(
        session, user, request_number, content, status=status, note_type="log", created_at=now
    )


async def move_notes(
    session: AsyncSession, from_number: str, to_number: str
) -> list[RequestNote]:
    """Re-key every note of ``from_number`` onto ``to_number``; returns them oldest first."""
    result = await session.execute(
        select(RequestNote)
        .where(RequestNote.request_number == from_number)
        .order_by(RequestNote.created_at)
    )
    notes = list(result.scalars().all())
    for note in notes:
        note.request_number = to_number
    if notes:
        logger.info("request_notes_moved", source=from_number, target=to_number, count=len(notes))
    return notes


async def delete_notes(session: AsyncSession, request_number: str) -> None:
    await session.execute(
        delete(RequestNote).where(RequestNote.request_number == request_number)
    )


async def add_note(session: AsyncSession, user, request_number: str, content: str) -> RequestNote:
    """User-authored note; the note captures the group's status at the time of writing."""
    content = (content or "").strip()
    if not content:
        raise ValidationError("Note content is required")

    result = await session.execute(
        select(MaterialRequest)
        .where(MaterialRequest.request_number == request_number)
        .order_by(MaterialRequest.item_order)
    )
    request = result.scalars().first()
    if not request:
        raise NotFound("Request not found")
    if user.role == "site_engineer" and str(request.created_by) != str(user.id):
        raise NotFound("Request not found")

    note = await record_note(session, user, request_number, content, status=request.status)
    await session.flush()
    return note


async def get_notes(session: AsyncSession, request_number: str) -> list[RequestNote]:
    """Notes for a request group, newest first."""
    result = await session.execute(
        select(RequestNote)
        .where(RequestNote.request_number == request_number)
        .order_by(RequestNote.created_at.desc())
    )
    return list(result.scalars().all())
