"""
Unit tests for mrms/services/request_service.py

Tests: numbering, group creation, drafts (update / send), manager review
(single + bulk), purchase-stage moves, mark delivery, inventory split.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from mrms.errors import (
    BusinessRuleViolation,
    InvalidTransition,
    Unauthorized,
    ValidationError,
)
from mrms.models.inventory import InventoryItem
from mrms.models.request import MaterialRequest
from mrms.models.request_note import RequestNote
from mrms.schemas.request import (
    MaterialItemCreate,
    MaterialRequestCreate,
    MultipleRequestCreate,
    RequestDetailsUpdate,
)
from mrms.services import request_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_user(role: str = "site_engineer", site_ids: Optional[set] = None):
    u = MagicMock()
    u.id = uuid.uuid4()
    u.role = role
    u.assigned_site_ids = site_ids or set()
    return u


def _make_request(
    status: str = "pending",
    quantity: int = 10,
    created_by: Optional[uuid.UUID] = None,
    request_number: str = "001",
    item_order: Optional[int] = 1,
    item_name: str = "Cement Bag",
) -> MaterialRequest:
    return MaterialRequest(
        id=uuid.uuid4(),
        request_number=request_number,
        item_order=item_order,
        created_by=created_by or uuid.uuid4(),
        site_id=uuid.uuid4(),
        item_name=item_name,
        description="OPC 53 grade",
        quantity=quantity,
        unit="bags",
        required_by=datetime.utcnow() + timedelta(days=7),
        is_urgent=False,
        status=status,
        created_at=datetime(2026, 1, 1, 9, 0, 0),
    )


def _make_item(stock: int, name: str = "Cement Bag") -> InventoryItem:
    return InventoryItem(id=uuid.uuid4(), item_name=name, unit="bags", central_stock=stock, is_active=True)


def _make_site(site_id: uuid.UUID, active: bool = True):
    s = MagicMock()
    s.id = site_id
    s.is_active = active
    return s


def _result(one=None, many=None, first=None, scalar=None):
    r = MagicMock()
    r.scalar_one_or_none.return_value = one
    r.scalars.return_value.all.return_value = many if many is not None else []
    r.scalars.return_value.first.return_value = first
    r.scalar.return_value = scalar
    return r


def _mock_session(*results) -> AsyncMock:
    session = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.execute.side_effect = list(results)
    return session


def _group_payload(site_id, names=("Cement Bag", "Sand"), order_note=None) -> MultipleRequestCreate:
    return MultipleRequestCreate(
        site_id=str(site_id),
        required_by=datetime(2026, 2, 1),
        items=[
            MaterialItemCreate(item_name=n, description=f"{n} for slab", quantity=5, unit="nos")
            for n in names
        ],
        order_note=order_note,
    )


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_next_request_number_is_max_plus_one():
    session = _mock_session(_result(many=["001", "009", "010"]))
    assert await request_service.next_request_number(session) == "011"


@pytest.mark.asyncio
async def test_next_request_number_starts_at_001():
    session = _mock_session(_result(many=[]))
    assert await request_service.next_request_number(session) == "001"


@pytest.mark.asyncio
async def test_next_draft_number_ignores_malformed():
    session = _mock_session(_result(many=["DRAFT-001", "DRAFT-003", "DRAFT-x"]))
    assert await request_service.next_draft_number(session) == "DRAFT-004"


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_multiple_assigns_one_number_and_item_order():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", {site_id})
    session = _mock_session(
        _result(one=_make_site(site_id)),   # get_assigned_site
        _result(many=["003"]),               # next_request_number
    )

    requests = await request_service.create_multiple_material_requests(
        session, user, _group_payload(site_id, order_note="Deliver before Monday")
    )

    assert [r.request_number for r in requests] == ["004", "004"]
    assert [r.item_order for r in requests] == [1, 2]
    assert all(r.status == "pending" for r in requests)
    session.add_all.assert_called_once()
    note = session.add.call_args[0][0]
    assert isinstance(note, RequestNote)
    assert note.request_number == "004"
    assert note.content == "Deliver before Monday"


@pytest.mark.asyncio
async def test_save_as_draft_uses_draft_number():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", {site_id})
    session = _mock_session(
        _result(one=_make_site(site_id)),
        _result(many=["DRAFT-001"]),
    )

    requests = await request_service.save_multiple_material_requests_as_draft(
        session, user, _group_payload(site_id)
    )

    assert {r.request_number for r in requests} == {"DRAFT-002"}
    assert all(r.status == "draft" for r in requests)
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_create_on_unassigned_site_is_unauthorized():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", set())
    session = _mock_session(_result(one=_make_site(site_id)))

    with pytest.raises(Unauthorized):
        await request_service.create_multiple_material_requests(session, user, _group_payload(site_id))
    session.add_all.assert_not_called()


@pytest.mark.asyncio
async def test_manager_cannot_create_requests():
    session = _mock_session()
    with pytest.raises(Unauthorized):
        await request_service.create_multiple_material_requests(
            session, _make_user("manager"), _group_payload(uuid.uuid4())
        )
    session.execute.assert_not_awaited()


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_send_draft_moves_every_sibling_to_new_number():
    user = _make_user("site_engineer")
    group = [
        _make_request("draft", created_by=user.id, request_number="DRAFT-002", item_order=i)
        for i in (1, 2, 3)
    ]
    draft_note = RequestNote(
        id=uuid.uuid4(), request_number="DRAFT-002", user_id=user.id, role="site_engineer",
        status="draft", type="note", content="Need these for slab casting",
        created_at=datetime(2026, 1, 1, 9, 0, 0),
    )
    session = _mock_session(
        _result(many=group),             # get_request_group
        _result(many=["005", "006"]),    # next_request_number
        _result(many=[draft_note]),      # move_notes
    )

    new_number, requests = await request_service.send_draft_request(
        session, user, "DRAFT-002", order_note="Urgent, please expedite"
    )

    assert new_number == "007"
    assert all(r.request_number == "007" for r in requests)
    assert all(r.status == "pending" for r in requests)
    assert draft_note.request_number == "007"
    session.add.assert_called_once()
    added = session.add.call_args[0][0]
    assert added.request_number == "007"
    assert added.content == "Urgent, please expedite"


@pytest.mark.asyncio
async def test_send_draft_skips_order_note_equal_to_latest_draft_note():
    user = _make_user("site_engineer")
    group = [_make_request("draft", created_by=user.id, request_number="DRAFT-001")]
    draft_note = RequestNote(
        id=uuid.uuid4(), request_number="DRAFT-001", user_id=user.id, role="site_engineer",
        status="draft", type="note", content="same text", created_at=datetime(2026, 1, 1),
    )
    session = _mock_session(
        _result(many=group),
        _result(many=[]),
        _result(many=[draft_note]),
    )

    await request_service.send_draft_request(session, user, "DRAFT-001", order_note="same text")

    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_send_draft_rejects_mixed_group_without_mutation():
    user = _make_user("site_engineer")
    group = [
        _make_request("draft", created_by=user.id, request_number="DRAFT-004"),
        _make_request("pending", created_by=user.id, request_number="DRAFT-004"),
    ]
    session = _mock_session(_result(many=group))

    with pytest.raises(ValidationError, match="draft status"):
        await request_service.send_draft_request(session, user, "DRAFT-004")

    assert [r.status for r in group] == ["draft", "pending"]
    assert all(r.request_number == "DRAFT-004" for r in group)
    assert session.execute.await_count == 1


@pytest.mark.asyncio
async def test_send_draft_of_someone_else_fails():
    owner = _make_user("site_engineer")
    other = _make_user("site_engineer")
    group = [_make_request("draft", created_by=owner.id, request_number="DRAFT-001")]
    session = _mock_session(_result(many=group))

    with pytest.raises(ValidationError):
        await request_service.send_draft_request(session, other, "DRAFT-001")
    assert group[0].status == "draft"


@pytest.mark.asyncio
async def test_update_draft_keeps_number_and_created_at():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", {site_id})
    group = [
        _make_request("draft", created_by=user.id, request_number="DRAFT-003", item_order=i)
        for i in (1, 2)
    ]
    original_created = group[0].created_at
    session = _mock_session(
        _result(many=group),                 # get_request_group
        _result(one=_make_site(site_id)),    # get_assigned_site
        _result(first=None),                 # latest_note
    )

    requests = await request_service.update_draft_request(
        session, user, "DRAFT-003",
        _group_payload(site_id, names=("Steel",), order_note="Changed to steel"),
    )

    assert session.delete.await_count == 2
    assert len(requests) == 1
    assert requests[0].request_number == "DRAFT-003"
    assert requests[0].created_at == original_created
    assert requests[0].status == "draft"
    session.add.assert_called_once()


@pytest.mark.asyncio
async def test_delete_draft_removes_rows_and_notes():
    user = _make_user("site_engineer")
    group = [_make_request("draft", created_by=user.id, request_number="DRAFT-009")]
    session = _mock_session(_result(many=group), _result())

    deleted = await request_service.delete_draft_request(session, user, "DRAFT-009")

    assert deleted == 1
    session.delete.assert_awaited_once_with(group[0])
    assert session.execute.await_count == 2


# ---------------------------------------------------------------------------
# Manager review
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "verb,stored,action",
    [
        ("approved", "recheck", None),
        ("direct_po", "recheck", "po"),
        ("delivery_stage", "recheck", "delivery"),
    ],
)
async def test_manager_review_maps_verbs(verb, stored, action):
    manager = _make_user("manager")
    req = _make_request("pending")
    session = _mock_session(_result(one=req))

    updated = await request_service.update_request_status(session, manager, str(req.id), verb)

    assert updated.status == stored
    assert updated.direct_action == action
    assert updated.approved_by == manager.id
    assert updated.approved_at is not None


@pytest.mark.asyncio
async def test_manager_reject_records_log_note():
    manager = _make_user("manager")
    req = _make_request("pending", request_number="012")
    session = _mock_session(_result(one=req), _result(first=None))

    await request_service.update_request_status(
        session, manager, req.id, "rejected", rejection_reason="Budget exhausted"
    )

    assert req.status == "rejected"
    assert req.rejection_reason == "Budget exhausted"
    note = session.add.call_args[0][0]
    assert note.type == "log"
    assert note.content == "Rejected: Budget exhausted"
    assert note.request_number == "012"


@pytest.mark.asyncio
async def test_manager_reject_duplicate_note_suppressed():
    manager = _make_user("manager")
    req = _make_request("pending", request_number="012")
    recent = RequestNote(
        id=uuid.uuid4(), request_number="012", user_id=manager.id, role="manager",
        status="rejected", type="log", content="Rejected: Budget exhausted",
        created_at=datetime.utcnow() - timedelta(seconds=1),
    )
    session = _mock_session(_result(one=req), _result(first=recent))

    await request_service.update_request_status(
        session, manager, req.id, "rejected", rejection_reason="Budget exhausted"
    )

    assert req.status == "rejected"
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_manager_reject_requires_reason():
    manager = _make_user("manager")
    req = _make_request("pending")
    session = _mock_session(_result(one=req))

    with pytest.raises(ValidationError, match="Rejection reason is required"):
        await request_service.update_request_status(session, manager, req.id, "rejected", "   ")
    assert req.status == "pending"


@pytest.mark.asyncio
async def test_manager_review_only_from_pending():
    manager = _make_user("manager")
    req = _make_request("recheck")
    session = _mock_session(_result(one=req))

    with pytest.raises(InvalidTransition):
        await request_service.update_request_status(session, manager, req.id, "approved")
    assert req.status == "recheck"


@pytest.mark.asyncio
async def test_engineer_cannot_review():
    session = _mock_session()
    with pytest.raises(Unauthorized):
        await request_service.update_request_status(
            session, _make_user("site_engineer"), uuid.uuid4(), "approved"
        )
    session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_purchase_officer_shortcut_to_ready_for_po():
    po = _make_user("purchase_officer")
    req = _make_request("cc_rejected")
    session = _mock_session(_result(one=req))

    await request_service.update_request_status(session, po, req.id, "ready_for_po")

    assert req.status == "ready_for_po"
    assert req.direct_action == "po"


@pytest.mark.asyncio
async def test_purchase_officer_shortcut_keeps_existing_direct_action():
    po = _make_user("purchase_officer")
    req = _make_request("recheck")
    req.direct_action = "delivery"
    session = _mock_session(_result(one=req))

    await request_service.update_request_status(session, po, req.id, "ready_for_po")

    assert req.direct_action == "delivery"


@pytest.mark.asyncio
async def test_purchase_officer_shortcut_rejected_from_pending_po():
    po = _make_user("purchase_officer")
    req = _make_request("pending_po")
    session = _mock_session(_result(one=req))

    with pytest.raises(InvalidTransition):
        await request_service.update_request_status(session, po, req.id, "ready_for_po")
    assert req.status == "pending_po"


# ---------------------------------------------------------------------------
# Bulk review
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_bulk_update_counts_only_pending_rows():
    manager = _make_user("manager")
    pending = _make_request("pending")
    already_done = _make_request("recheck")
    missing_id = uuid.uuid4()
    session = _mock_session(_result(many=[pending, already_done]))

    outcome = await request_service.bulk_update_request_status(
        session, manager, [str(pending.id), str(already_done.id), str(missing_id)], "approved"
    )

    assert outcome.updated_count == 1
    assert outcome.updated_ids == [pending.id]
    assert outcome.skipped_ids == [already_done.id, missing_id]
    assert pending.status == "recheck"
    assert already_done.status == "recheck"
    assert already_done.approved_by is None


@pytest.mark.asyncio
async def test_bulk_reject_writes_one_note_per_request_number():
    manager = _make_user("manager")
    a1 = _make_request("pending", request_number="004", item_order=1)
    a2 = _make_request("pending", request_number="004", item_order=2)
    b1 = _make_request("pending", request_number="005")
    session = _mock_session(
        _result(many=[a1, a2, b1]),
        _result(first=None),   # latest note for 004
        _result(first=None),   # latest note for 005
    )

    outcome = await request_service.bulk_update_request_status(
        session, manager, [a1.id, a2.id, b1.id], "rejected", rejection_reason="Over budget"
    )

    assert outcome.updated_count == 3
    assert all(r.status == "rejected" for r in (a1, a2, b1))
    notes = [c[0][0] for c in session.add.call_args_list]
    assert [n.request_number for n in notes] == ["004", "005"]
    assert all(n.content == "Rejected (Bulk): Over budget" for n in notes)


@pytest.mark.asyncio
async def test_bulk_update_requires_ids():
    session = _mock_session()
    with pytest.raises(ValidationError, match="No requests selected"):
        await request_service.bulk_update_request_status(session, _make_user("manager"), [], "approved")


@pytest.mark.asyncio
async def test_bulk_duplicate_ids_processed_once():
    manager = _make_user("manager")
    pending = _make_request("pending")
    session = _mock_session(_result(many=[pending]))

    outcome = await request_service.bulk_update_request_status(
        session, manager, [pending.id, str(pending.id)], "approved"
    )

    assert outcome.updated_count == 1


# ---------------------------------------------------------------------------
# Purchase stage
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_purchase_status_follows_table():
    po = _make_user("purchase_officer")
    req = _make_request("recheck")
    session = _mock_session(_result(one=req))

    await request_service.update_purchase_request_status(session, po, req.id, "ready_for_cc")
    assert req.status == "ready_for_cc"


@pytest.mark.asyncio
async def test_update_purchase_status_illegal_edge_leaves_status():
    po = _make_user("purchase_officer")
    req = _make_request("ready_for_po")
    session = _mock_session(_result(one=req))

    with pytest.raises(InvalidTransition):
        await request_service.update_purchase_request_status(session, po, req.id, "cc_pending")
    assert req.status == "ready_for_po"


@pytest.mark.asyncio
async def test_update_purchase_status_wrong_role_checked_first():
    session = _mock_session()
    with pytest.raises(Unauthorized):
        await request_service.update_purchase_request_status(
            session, _make_user("manager"), uuid.uuid4(), "ready_for_cc"
        )
    session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_purchase_officer_cannot_confirm_delivery():
    po = _make_user("purchase_officer")
    req = _make_request("delivery_stage")
    session = _mock_session(_result(one=req))

    with pytest.raises(Unauthorized):
        await request_service.update_purchase_request_status(session, po, req.id, "delivered")
    assert req.status == "delivery_stage"


@pytest.mark.asyncio
@pytest.mark.parametrize("start", ["approved", "ready_for_cc", "recheck"])
async def test_direct_to_po_allowed_sources(start):
    req = _make_request(start)
    session = _mock_session(_result(one=req))
    await request_service.direct_to_po(session, _make_user("purchase_officer"), req.id)
    assert req.status == "ready_for_po"


@pytest.mark.asyncio
async def test_direct_to_po_from_pending_fails():
    req = _make_request("pending")
    session = _mock_session(_result(one=req))
    with pytest.raises(InvalidTransition):
        await request_service.direct_to_po(session, _make_user("purchase_officer"), req.id)
    assert req.status == "pending"


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_mark_delivery_increments_matching_stock():
    engineer = _make_user("site_engineer")
    req = _make_request("delivery_stage", quantity=25, created_by=engineer.id)
    item = _make_item(stock=5)
    session = _mock_session(_result(one=req), _result(first=item))

    await request_service.mark_delivery(session, engineer, req.id)

    assert req.status == "delivered"
    assert req.delivery_marked_at is not None
    assert item.central_stock == 30
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_mark_delivery_creates_inventory_row_when_missing():
    engineer = _make_user("site_engineer")
    req = _make_request("delivery_stage", quantity=12, created_by=engineer.id, item_name="  PVC   Pipe ")
    session = _mock_session(_result(one=req), _result(first=None))

    await request_service.mark_delivery(session, engineer, req.id)

    created = session.add.call_args[0][0]
    assert isinstance(created, InventoryItem)
    assert created.item_name == "PVC Pipe"
    assert created.central_stock == 12


@pytest.mark.asyncio
async def test_mark_delivery_by_other_engineer_unauthorized():
    owner = _make_user("site_engineer")
    other = _make_user("site_engineer")
    req = _make_request("delivery_stage", created_by=owner.id)
    session = _mock_session(_result(one=req))

    with pytest.raises(Unauthorized):
        await request_service.mark_delivery(session, other, req.id)
    assert req.status == "delivery_stage"


@pytest.mark.asyncio
async def test_mark_delivery_wrong_status():
    engineer = _make_user("site_engineer")
    req = _make_request("ready_for_po", created_by=engineer.id)
    session = _mock_session(_result(one=req))

    with pytest.raises(InvalidTransition):
        await request_service.mark_delivery(session, engineer, req.id)


# ---------------------------------------------------------------------------
# Split from inventory
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_split_scenario_100_with_stock_60():
    po = _make_user("purchase_officer")
    req = _make_request("recheck", quantity=100)
    item = _make_item(stock=60)
    session = _mock_session(_result(one=req), _result(first=item))

    delivered, remaining = await request_service.split_and_deliver_inventory(session, po, req.id, 40)

    assert delivered.quantity == 40
    assert delivered.status == "delivery_stage"
    assert delivered.direct_action == "delivery"
    assert delivered.request_number == req.request_number
    assert remaining is req
    assert remaining.quantity == 60
    assert remaining.status == "recheck"
    assert delivered.quantity + remaining.quantity == 100
    assert item.central_stock == 20
    session.add.assert_called_once_with(delivered)


@pytest.mark.asyncio
@pytest.mark.parametrize("qty", [0, -5, 100, 150])
async def test_split_invalid_quantity(qty):
    po = _make_user("purchase_officer")
    req = _make_request("recheck", quantity=100)
    session = _mock_session(_result(one=req))

    with pytest.raises(BusinessRuleViolation, match="Invalid split quantity"):
        await request_service.split_and_deliver_inventory(session, po, req.id, qty)

    assert req.quantity == 100
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_split_insufficient_stock_mutates_nothing():
    po = _make_user("purchase_officer")
    req = _make_request("ready_for_cc", quantity=100)
    item = _make_item(stock=30)
    session = _mock_session(_result(one=req), _result(first=item))

    with pytest.raises(BusinessRuleViolation, match="Insufficient inventory"):
        await request_service.split_and_deliver_inventory(session, po, req.id, 40)

    assert req.quantity == 100
    assert item.central_stock == 30
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_split_requires_purchase_officer():
    session = _mock_session()
    with pytest.raises(Unauthorized):
        await request_service.split_and_deliver_inventory(session, _make_user("manager"), uuid.uuid4(), 5)


# ---------------------------------------------------------------------------
# Single create / details edit
# ---------------------------------------------------------------------------


def _single_payload(site_id, request_number=None) -> MaterialRequestCreate:
    return MaterialRequestCreate(
        site_id=str(site_id),
        required_by=datetime(2026, 2, 1),
        item_name=" Binding Wire ",
        description="18 gauge",
        quantity=20,
        unit="kg",
        request_number=request_number,
    )


@pytest.mark.asyncio
async def test_create_single_request_with_new_explicit_number_starts_group():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", {site_id})
    session = _mock_session(
        _result(one=_make_site(site_id)),   # get_assigned_site
        _result(many=[]),                    # get_request_group
    )

    request = await request_service.create_material_request(session, user, _single_payload(site_id, "042"))

    assert request.request_number == "042"
    assert request.item_order == 1
    assert request.item_name == "Binding Wire"
    assert request.status == "pending"
    assert session.execute.await_count == 2
    session.add.assert_called_once_with(request)


@pytest.mark.asyncio
async def test_create_single_request_appends_to_own_pending_group():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", {site_id})
    siblings = [
        _make_request("pending", created_by=user.id, request_number="042", item_order=1),
        _make_request("pending", created_by=user.id, request_number="042", item_order=2),
    ]
    session = _mock_session(_result(one=_make_site(site_id)), _result(many=siblings))

    request = await request_service.create_material_request(session, user, _single_payload(site_id, "042"))

    assert request.item_order == 3


@pytest.mark.asyncio
async def test_create_single_request_rejects_draft_number():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", {site_id})
    session = _mock_session(_result(one=_make_site(site_id)))

    with pytest.raises(ValidationError, match="Draft numbers"):
        await request_service.create_material_request(session, user, _single_payload(site_id, "DRAFT-001"))
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_create_single_request_cannot_join_another_engineers_group():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", {site_id})
    others = [_make_request("pending", request_number="042", item_order=1)]
    session = _mock_session(_result(one=_make_site(site_id)), _result(many=others))

    with pytest.raises(Unauthorized, match="another user"):
        await request_service.create_material_request(session, user, _single_payload(site_id, "042"))
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_create_single_request_cannot_join_reviewed_group():
    site_id = uuid.uuid4()
    user = _make_user("site_engineer", {site_id})
    siblings = [_make_request("approved", created_by=user.id, request_number="042")]
    session = _mock_session(_result(one=_make_site(site_id)), _result(many=siblings))

    with pytest.raises(BusinessRuleViolation, match="pending request"):
        await request_service.create_material_request(session, user, _single_payload(site_id, "042"))
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_update_details_patches_given_fields_only():
    req = _make_request("ready_for_cc", quantity=10)
    session = _mock_session(_result(one=req))

    await request_service.update_request_details(
        session, _make_user("purchase_officer"), req.id, RequestDetailsUpdate(quantity=25, unit="nos")
    )

    assert req.quantity == 25
    assert req.unit == "nos"
    assert req.item_name == "Cement Bag"


@pytest.mark.asyncio
async def test_update_details_rejects_zero_quantity():
    req = _make_request("recheck", quantity=10)
    session = _mock_session(_result(one=req))

    with pytest.raises(ValidationError):
        await request_service.update_request_details(
            session, _make_user("purchase_officer"), req.id, RequestDetailsUpdate(quantity=0)
        )
    assert req.quantity == 10


@pytest.mark.asyncio
async def test_update_details_locked_after_po():
    req = _make_request("pending_po")
    session = _mock_session(_result(one=req))

    with pytest.raises(BusinessRuleViolation):
        await request_service.update_request_details(
            session, _make_user("purchase_officer"), req.id, RequestDetailsUpdate(unit="nos")
        )
