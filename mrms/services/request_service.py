"""
Material request workflow — creation, drafts, manager review, purchase-stage
moves, delivery and inventory splits.

Each function runs inside the caller's transaction (see ``get_db``). All
checks run before the first mutation, so a raised error leaves every row as
it was.
"""

from dataclasses import dataclass, field
from datetime import datetime
import re
from typing import Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.errors import (
    BusinessRuleViolation,
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationError,
)
from mrms.models.request import MaterialRequest
from mrms.services import inventory_service, note_service
from mrms.services.lookups import get_assigned_site, get_request, get_request_group, to_uuid
from mrms.services.status_machine import (
    MANAGER,
    MANAGER_REVIEW_OUTCOMES,
    PURCHASE_OFFICER,
    SITE_ENGINEER,
    VALID_TRANSITIONS,
    check_purchase_transition,
    require_owner,
    require_role,
)

logger = structlog.get_logger()

DRAFT_PREFIX = "DRAFT-"
_SEQUENTIAL_RE = re.compile(r"^\d+$")
_DRAFT_RE = re.compile(r"^DRAFT-(\d+)$")

# Statuses from which a purchase officer may jump straight to ready_for_po
PO_SHORTCUT_SOURCES = frozenset({"recheck", "ready_for_cc", "cc_pending", "cc_rejected"})
DIRECT_TO_PO_SOURCES = frozenset({"approved", "ready_for_cc", "recheck"})
DETAIL_EDIT_STATUSES = frozenset({"approved", "ready_for_cc", "cc_pending", "recheck"})


@dataclass
class BulkUpdateResult:
    updated_ids: list = field(default_factory=list)
    skipped_ids: list = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.updated_ids)


# ---------- NUMBERING ----------


async def next_request_number(session: AsyncSession) -> str:
    result = await session.execute(
        select(MaterialRequest.request_number)
        .where(MaterialRequest.request_number.op("~")(r"^[0-9]+$"))
        .distinct()
    )
    numbers = [int(n) for n in result.scalars().all() if _SEQUENTIAL_RE.match(n)]
    return f"{max(numbers, default=0) + 1:03d}"


async def next_draft_number(session: AsyncSession) -> str:
    result = await session.execute(
        select(MaterialRequest.request_number)
        .where(MaterialRequest.request_number.like(f"{DRAFT_PREFIX}%"))
        .distinct()
    )
    numbers = []
    for n in result.scalars().all():
        m = _DRAFT_RE.match(n)
        if m:
            numbers.append(int(m.group(1)))
    return f"{DRAFT_PREFIX}{max(numbers, default=0) + 1:03d}"


# ---------- CREATE / DRAFTS ----------


def _build_item(user, site_id, required_by, item, request_number, status, item_order, created_at=None):
    now = datetime.utcnow()
    return MaterialRequest(
        request_number=request_number,
        item_order=item_order,
        created_by=user.id,
        site_id=site_id,
        item_name=item.item_name.strip(),
        description=item.description,
        specs_brand=item.specs_brand,
        quantity=item.quantity,
        unit=item.unit,
        required_by=required_by,
        is_urgent=item.is_urgent,
        notes=item.notes,
        status=status,
        created_at=created_at or now,
        updated_at=now,
    )


async def create_material_request(session: AsyncSession, user, data) -> MaterialRequest:
    require_role(user, SITE_ENGINEER, "Unauthorized: Only site engineers can create requests")
    site = await get_assigned_site(session, user, data.site_id)
    item_order = 1
    if data.request_number:
        request_number = data.request_number.strip()
        if request_number.startswith(DRAFT_PREFIX):
            raise ValidationError("Draft numbers cannot be used for submitted requests")
        siblings = await get_request_group(session, request_number)
        if siblings:
            if any(r.created_by != user.id for r in siblings):
                raise Unauthorized("Unauthorized: Request number belongs to another user")
            if any(r.status != "pending" for r in siblings):
                raise BusinessRuleViolation("Items can only be added to a pending request")
            item_order = max(r.item_order or 0 for r in siblings) + 1
    else:
        request_number = await next_request_number(session)

    request = _build_item(
        user, site.id, data.required_by, data, request_number, "pending", item_order=item_order
    )
    session.add(request)
    await session.flush()
    logger.info(
        "request_created",
        request_id=str(request.id),
        request_number=request_number,
        user_id=str(user.id),
    )
    return request


async def _create_group(session, user, data, request_number, status) -> list[MaterialRequest]:
    if not data.items:
        raise ValidationError("At least one item is required")
    site = await get_assigned_site(session, user, data.site_id)
    if request_number is None:
        request_number = (
            await next_draft_number(session) if status == "draft" else await next_request_number(session)
        )

    requests = [
        _build_item(user, site.id, data.required_by, item, request_number, status, item_order=i)
        for i, item in enumerate(data.items, start=1)
    ]
    session.add_all(requests)

    order_note = (data.order_note or "").strip()
    if order_note:
        await note_service.record_note(session, user, request_number, order_note, status=status)

    await session.flush()
    logger.info(
        "request_group_created",
        request_number=request_number,
        status=status,
        items=len(requests),
        user_id=str(user.id),
    )
    return requests


async def create_multiple_material_requests(session: AsyncSession, user, data) -> list[MaterialRequest]:
    require_role(user, SITE_ENGINEER, "Unauthorized: Only site engineers can create requests")
    return await _create_group(session, user, data, None, "pending")


async def save_multiple_material_requests_as_draft(session: AsyncSession, user, data) -> list[MaterialRequest]:
    require_role(user, SITE_ENGINEER, "Unauthorized: Only site engineers can save drafts")
    return await _create_group(session, user, data, None, "draft")


async def _get_own_draft_group(session, user, request_number, mismatch_error) -> list[MaterialRequest]:
    group = await get_request_group(session, request_number)
    if not group:
        raise NotFound("Draft request not found")
    for r in group:
        if r.status != "draft" or str(r.created_by) != str(user.id):
            raise mismatch_error
    return group


async def update_draft_request(session: AsyncSession, user, request_number: str, data) -> list[MaterialRequest]:
    """Replace every line item of a draft; the draft keeps its number and creation time."""
    require_role(user, SITE_ENGINEER, "Unauthorized: Only site engineers can update drafts")
    group = await _get_own_draft_group(
        session, user, request_number, Unauthorized("Unauthorized: You can only update your own drafts")
    )
    if not data.items:
        raise ValidationError("At least one item is required")
    site = await get_assigned_site(session, user, data.site_id)

    created_at = group[0].created_at
    for r in group:
        await session.delete(r)
    await session.flush()

    requests = [
        _build_item(
            user, site.id, data.required_by, item, request_number, "draft",
            item_order=i, created_at=created_at,
        )
        for i, item in enumerate(data.items, start=1)
    ]
    session.add_all(requests)

    order_note = (data.order_note or "").strip()
    if order_note:
        latest = await note_service.latest_note(session, request_number)
        if not latest or latest.content != order_note:
            await note_service.record_note(session, user, request_number, order_note, status="draft")

    await session.flush()
    logger.info("draft_updated", request_number=request_number, items=len(requests))
    return requests


async def send_draft_request(
    session: AsyncSession, user, request_number: str, order_note: Optional[str] = None
) -> tuple[str, list[MaterialRequest]]:
    """Submit a draft: every sibling gets the next sequential number and becomes pending."""
    require_role(user, SITE_ENGINEER, "Unauthorized: Only site engineers can send drafts")
    group = await _get_own_draft_group(
        session, user, request_number,
        ValidationError("All requests must be in draft status and created by you"),
    )
    new_number = await next_request_number(session)

    now = datetime.utcnow()
    for r in group:
        r.request_number = new_number
        r.status = "pending"
        r.updated_at = now

    # Draft numbers are reused once freed, so the notes move rather than copy
    draft_notes = await note_service.move_notes(session, request_number, new_number)

    order_note = (order_note or "").strip()
    if order_note:
        latest = draft_notes[-1] if draft_notes else None
        if not latest or latest.content != order_note:
            await note_service.record_note(session, user, new_number, order_note, status="pending")

    await session.flush()
    logger.info(
        "draft_sent",
        draft_number=request_number,
        request_number=new_number,
        items=len(group),
        user_id=str(user.id),
    )
    return new_number, group


async def delete_draft_request(session: AsyncSession, user, request_number: str) -> int:
    require_role(user, SITE_ENGINEER, "Unauthorized: Only site engineers can delete drafts")
    group = await _get_own_draft_group(
        session, user, request_number, Unauthorized("Unauthorized: You can only delete your own drafts")
    )
    for r in group:
        await session.delete(r)
    await note_service.delete_notes(session, request_number)
    await session.flush()
    logger.info("draft_deleted", request_number=request_number, items=len(group))
    return len(group)


# ---------- MANAGER REVIEW ----------


def _review_outcome(new_status: str, rejection_reason: Optional[str]) -> tuple[str, Optional[str]]:
    if new_status not in MANAGER_REVIEW_OUTCOMES:
        raise ValidationError(f"Unsupported status for review: {new_status}")
    if new_status == "rejected" and not (rejection_reason or "").strip():
        raise ValidationError("Rejection reason is required")
    return MANAGER_REVIEW_OUTCOMES[new_status]


def _apply_review(request: MaterialRequest, user, stored_status, direct_action, rejection_reason, now):
    request.status = stored_status
    request.approved_by = user.id
    request.approved_at = now
    request.updated_at = now
    if direct_action:
        request.direct_action = direct_action
    if stored_status == "rejected":
        request.rejection_reason = rejection_reason.strip()


async def update_request_status(
    session: AsyncSession,
    user,
    request_id,
    new_status: str,
    rejection_reason: Optional[str] = None,
    direct_action: Optional[str] = None,
) -> MaterialRequest:
    """
    Manager review of a pending request, or the purchase officer's shortcut to
    ready_for_po. Review verbs map onto stored statuses via MANAGER_REVIEW_OUTCOMES.
    """
    is_po_shortcut = user.role == PURCHASE_OFFICER and new_status == "ready_for_po"
    if user.role != MANAGER and not is_po_shortcut:
        raise Unauthorized("Unauthorized: Only managers can update request status")

    request = await get_request(session, request_id)
    now = datetime.utcnow()

    if is_po_shortcut:
        if request.status not in PO_SHORTCUT_SOURCES:
            raise InvalidTransition(request.status, new_status)
        old_status = request.status
        request.status = "ready_for_po"
        request.direct_action = request.direct_action or "po"
        request.updated_at = now
        await session.flush()
        logger.info(
            "request_status_updated",
            request_id=str(request.id),
            old_status=old_status,
            new_status=request.status,
            user_id=str(user.id),
        )
        return request

    stored_status, outcome_action = _review_outcome(new_status, rejection_reason)
    if request.status != "pending":
        raise InvalidTransition(request.status, stored_status)

    _apply_review(request, user, stored_status, outcome_action or direct_action, rejection_reason, now)
    if stored_status == "rejected":
        await note_service.record_log(
            session, user, request.request_number,
            f"Rejected: {request.rejection_reason}",
            status="rejected", suppress_duplicates=True,
        )

    await session.flush()
    logger.info(
        "request_status_updated",
        request_id=str(request.id),
        old_status="pending",
        new_status=stored_status,
        direct_action=request.direct_action,
        user_id=str(user.id),
    )
    return request


async def bulk_update_request_status(
    session: AsyncSession,
    user,
    request_ids: list,
    new_status: str,
    rejection_reason: Optional[str] = None,
) -> BulkUpdateResult:
    """
    Review many requests at once. Ids that are missing or no longer pending are
    skipped; only the ids actually moved are reported as updated.
    """
    require_role(user, MANAGER, "Unauthorized: Only managers can update request status")
    if not request_ids:
        raise ValidationError("No requests selected")
    stored_status, outcome_action = _review_outcome(new_status, rejection_reason)

    ids = list(dict.fromkeys(to_uuid(rid, "request_id") for rid in request_ids))
    result = await session.execute(
        select(MaterialRequest).where(MaterialRequest.id.in_(ids)).with_for_update()
    )
    by_id = {r.id: r for r in result.scalars().all()}

    outcome = BulkUpdateResult()
    touched_numbers: list[str] = []
    now = datetime.utcnow()
    for rid in ids:
        request = by_id.get(rid)
        if request is None or request.status != "pending":
            outcome.skipped_ids.append(rid)
            continue
        _apply_review(request, user, stored_status, outcome_action, rejection_reason, now)
        outcome.updated_ids.append(rid)
        if request.request_number not in touched_numbers:
            touched_numbers.append(request.request_number)

    if stored_status == "rejected":
        for number in touched_numbers:
            await note_service.record_log(
                session, user, number,
                f"Rejected (Bulk): {rejection_reason.strip()}",
                status="rejected", suppress_duplicates=True,
            )

    await session.flush()
    logger.info(
        "request_status_bulk_updated",
        new_status=stored_status,
        requested=len(ids),
        updated=outcome.updated_count,
        skipped=len(outcome.skipped_ids),
        user_id=str(user.id),
    )
    return outcome


# ---------- PURCHASE STAGE ----------


async def update_purchase_request_status(session: AsyncSession, user, request_id, new_status: str) -> MaterialRequest:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can update purchase request status")
    request = await get_request(session, request_id)
    check_purchase_transition(user, request.status, new_status)

    old_status = request.status
    request.status = new_status
    request.updated_at = datetime.utcnow()
    await session.flush()
    logger.info(
        "request_status_updated",
        request_id=str(request.id),
        old_status=old_status,
        new_status=new_status,
        user_id=str(user.id),
    )
    return request


async def direct_to_po(session: AsyncSession, user, request_id) -> MaterialRequest:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can move requests to PO")
    request = await get_request(session, request_id)
    if request.status not in DIRECT_TO_PO_SOURCES:
        raise InvalidTransition(request.status, "ready_for_po")

    old_status = request.status
    request.status = "ready_for_po"
    request.updated_at = datetime.utcnow()
    await session.flush()
    logger.info(
        "request_status_updated",
        request_id=str(request.id),
        old_status=old_status,
        new_status="ready_for_po",
        user_id=str(user.id),
    )
    return request


async def update_request_details(session: AsyncSession, user, request_id, data) -> MaterialRequest:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can edit request details")
    request = await get_request(session, request_id)
    if request.status not in DETAIL_EDIT_STATUSES:
        raise BusinessRuleViolation(
            f"Request details cannot be edited while the request is {request.status}"
        )

    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "quantity" in updates and updates["quantity"] <= 0:
        raise ValidationError("Quantity must be greater than 0")
    for name, value in updates.items():
        setattr(request, name, value)
    request.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("request_details_updated", request_id=str(request.id), fields=sorted(updates))
    return request


# ---------- DELIVERY ----------


async def mark_delivery(session: AsyncSession, user, request_id) -> MaterialRequest:
    """Site engineer confirms receipt; stock of the matching inventory item grows by the quantity."""
    require_role(user, SITE_ENGINEER, "Unauthorized: Only site engineers can mark delivery")
    request = await get_request(session, request_id)
    require_owner(user, request.created_by, "Unauthorized: You can only mark delivery for your own requests")
    if request.status != "delivery_stage":
        raise InvalidTransition(request.status, "delivered")

    await inventory_service.receive_stock(
        session, user, request.item_name, request.quantity, unit=request.unit
    )
    now = datetime.utcnow()
    request.status = "delivered"
    request.delivery_marked_at = now
    request.updated_at = now
    await session.flush()
    logger.info(
        "request_delivered",
        request_id=str(request.id),
        quantity=request.quantity,
        user_id=str(user.id),
    )
    return request


async def split_and_deliver_inventory(
    session: AsyncSession, user, request_id, inventory_quantity: int
) -> tuple[MaterialRequest, MaterialRequest]:
    """
    Serve part of a request from central stock.

    A copy holding ``inventory_quantity`` goes straight to delivery_stage; the
    original keeps its status with the remainder. Returns (delivered, remaining).
    """
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can split requests")
    request = await get_request(session, request_id, for_update=True)
    if request.status not in VALID_TRANSITIONS or request.status in ("delivery_stage", "ready_for_delivery"):
        raise InvalidTransition(request.status, "delivery_stage")
    if not 0 < inventory_quantity < request.quantity:
        raise BusinessRuleViolation("Invalid split quantity")

    await inventory_service.take_stock(session, request.item_name, inventory_quantity)

    now = datetime.utcnow()
    delivered = MaterialRequest(
        request_number=request.request_number,
        item_order=request.item_order,
        created_by=request.created_by,
        site_id=request.site_id,
        item_name=request.item_name,
        description=request.description,
        specs_brand=request.specs_brand,
        quantity=inventory_quantity,
        unit=request.unit,
        required_by=request.required_by,
        is_urgent=request.is_urgent,
        notes=request.notes,
        status="delivery_stage",
        direct_action="delivery",
        approved_by=request.approved_by,
        approved_at=request.approved_at,
        created_at=now,
        updated_at=now,
    )
    session.add(delivered)
    request.quantity -= inventory_quantity
    request.updated_at = now
    await session.flush()
    logger.info(
        "request_split_for_delivery",
        request_id=str(request.id),
        delivered_id=str(delivered.id),
        delivered_quantity=inventory_quantity,
        remaining_quantity=request.quantity,
        user_id=str(user.id),
    )
    return delivered, request


# ---------- QUERIES ----------


async def get_request_for_user(session: AsyncSession, user, request_id) -> MaterialRequest:
    request = await get_request(session, request_id)
    if user.role == SITE_ENGINEER and str(request.created_by) != str(user.id):
        raise NotFound("Request not found")
    if request.status == "draft" and str(request.created_by) != str(user.id):
        raise NotFound("Request not found")
    return request


async def get_requests_by_number(session: AsyncSession, user, request_number: str) -> list[MaterialRequest]:
    group = await get_request_group(session, request_number)
    visible = []
    for r in group:
        if user.role == SITE_ENGINEER and str(r.created_by) != str(user.id):
            continue
        if r.status == "draft" and str(r.created_by) != str(user.id):
            continue
        visible.append(r)
    return visible


async def list_requests(
    session: AsyncSession,
    user,
    status: Optional[str] = None,
    site_id: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[MaterialRequest], int]:
    """Role-scoped listing: site engineers see their own rows; drafts stay private to their creator."""
    filters = [
        or_(MaterialRequest.status != "draft", MaterialRequest.created_by == user.id)
    ]
    if user.role == SITE_ENGINEER:
        filters.append(MaterialRequest.created_by == user.id)
    elif user.role == PURCHASE_OFFICER:
        filters.append(MaterialRequest.status.notin_(("pending", "rejected")))
    if status:
        filters.append(MaterialRequest.status == status)
    if site_id:
        filters.append(MaterialRequest.site_id == to_uuid(site_id, "site_id"))

    total = (
        await session.execute(select(func.count(MaterialRequest.id)).where(*filters))
    ).scalar() or 0
    result = await session.execute(
        select(MaterialRequest)
        .where(*filters)
        .order_by(MaterialRequest.created_at.desc(), MaterialRequest.item_order)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total
