"""
Unit tests for mrms/services/note_service.py

Tests: duplicate-log suppression window, add_note visibility, note moves.
"""

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from mrms.errors import NotFound, ValidationError
from mrms.models.request_note import RequestNote
from mrms.services import note_service


def _make_user(role: str = "manager"):
    u = MagicMock()
    u.id = uuid.uuid4()
    u.role = role
    return u


def _make_note(content: str, age_seconds: float, number: str = "008") -> RequestNote:
    return RequestNote(
        id=uuid.uuid4(),
        request_number=number,
        user_id=uuid.uuid4(),
        role="manager",
        status="rejected",
        type="log",
        content=content,
        created_at=datetime.utcnow() - timedelta(seconds=age_seconds),
    )


def _result(first=None, many=None):
    r = MagicMock()
    r.scalars.return_value.first.return_value = first
    r.scalars.return_value.all.return_value = many if many is not None else []
    return r


def _mock_session(*results) -> AsyncMock:
    session = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    session.execute.side_effect = list(results)
    return session


@pytest.mark.asyncio
async def test_identical_log_within_window_is_skipped():
    session = _mock_session(_result(first=_make_note("Rejected: No budget", age_seconds=1)))

    note = await note_service.record_log(
        session, _make_user(), "008", "Rejected: No budget", suppress_duplicates=True
    )

    assert note is None
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_identical_log_after_window_is_written():
    session = _mock_session(_result(first=_make_note("Rejected: No budget", age_seconds=60)))

    note = await note_service.record_log(
        session, _make_user(), "008", "Rejected: No budget", suppress_duplicates=True
    )

    assert note is not None
    assert note.type == "log"
    session.add.assert_called_once_with(note)


@pytest.mark.asyncio
async def test_different_content_is_written():
    session = _mock_session(_result(first=_make_note("Rejected: No budget", age_seconds=1)))

    note = await note_service.record_log(
        session, _make_user(), "008", "Rejected: Wrong item", suppress_duplicates=True
    )

    assert note.content == "Rejected: Wrong item"


@pytest.mark.asyncio
async def test_record_log_without_suppression_skips_lookup():
    session = _mock_session()

    await note_service.record_log(session, _make_user(), "008", "PO-000001 approved")

    session.execute.assert_not_awaited()
    session.add.assert_called_once()


@pytest.mark.asyncio
async def test_move_notes_rekeys_in_order():
    old = _make_note("first", age_seconds=30, number="DRAFT-001")
    new = _make_note("second", age_seconds=10, number="DRAFT-001")
    session = _mock_session(_result(many=[old, new]))

    moved = await note_service.move_notes(session, "DRAFT-001", "014")

    assert [n.content for n in moved] == ["first", "second"]
    assert all(n.request_number == "014" for n in moved)


@pytest.mark.asyncio
async def test_add_note_captures_group_status():
    request = MagicMock()
    request.status = "cc_pending"
    request.created_by = uuid.uuid4()
    session = _mock_session(_result(first=request))
    user = _make_user("purchase_officer")

    note = await note_service.add_note(session, user, "008", "  Vendor called back  ")

    assert note.content == "Vendor called back"
    assert note.status == "cc_pending"
    assert note.role == "purchase_officer"
    assert note.type == "note"
    session.flush.assert_awaited_once()


@pytest.mark.asyncio
async def test_add_note_empty_content():
    session = _mock_session()
    with pytest.raises(ValidationError, match="Note content is required"):
        await note_service.add_note(session, _make_user(), "008", "   ")
    session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_add_note_on_other_engineers_request_hidden():
    request = MagicMock()
    request.status = "pending"
    request.created_by = uuid.uuid4()
    session = _mock_session(_result(first=request))

    with pytest.raises(NotFound):
        await note_service.add_note(session, _make_user("site_engineer"), "008", "hello")
    session.add.assert_not_called()
