from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.middleware.auth import get_current_user
from mrms.models.request_note import RequestNote
from mrms.models.user import User
from mrms.schemas.common import iso
from mrms.schemas.note import NoteCreate, NoteResponse
from mrms.services import note_service

logger = structlog.get_logger()
router = APIRouter()


def _to_response(n: RequestNote) -> NoteResponse:
    return NoteResponse(
        id=str(n.id),
        request_number=n.request_number,
        user_id=str(n.user_id),
        role=n.role,
        status=n.status,
        type=n.type or "note",
        content=n.content,
        created_at=iso(n.created_at) or "",
    )


@router.get("/{request_number}", response_model=list[NoteResponse])
async def get_notes(
    request_number: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notes = await note_service.get_notes(db, request_number)
    return [_to_response(n) for n in notes]


@router.post("/{request_number}", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def add_note(
    request_number: str,
    body: NoteCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    note = await note_service.add_note(db, current_user, request_number, body.content)
    return _to_response(note)
