"""
Vendor cost comparisons — quotes prepared by purchase officers and reviewed
by managers, plus the manager's split-fulfillment plan.

The comparison's status moves in lock-step with its request's status:

  submit / resubmit   comparison → cc_pending,  request → cc_pending
  review (approve)    comparison → cc_approved, request → ready_for_po
  review (reject)     comparison → cc_rejected, request → ready_for_cc
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.errors import InvalidTransition, ValidationError
from mrms.models.cost_comparison import CostComparison, VendorQuote, SPLIT_APPROVED_MARKER
from mrms.models.request import MaterialRequest
from mrms.services import note_service
from mrms.services.lookups import (
    find_cost_comparison,
    get_active_vendors,
    get_cost_comparison,
    get_request,
    to_uuid,
)
from mrms.services.status_machine import (
    MANAGER,
    PURCHASE_OFFICER,
    check_purchase_transition,
    check_transition,
    require_role,
)

logger = structlog.get_logger()

EDITABLE_REQUEST_STATUSES = frozenset({"ready_for_cc", "cc_pending"})
SPLIT_SOURCE_STATUSES = frozenset({"recheck", "ready_for_cc", "cc_pending", "cc_rejected"})


async def _validate_quotes(session: AsyncSession, quotes) -> None:
    seen = set()
    for q in quotes:
        vid = to_uuid(q.vendor_id, "vendor_id")
        if vid in seen:
            raise ValidationError("Each vendor can only be quoted once")
        seen.add(vid)
    await get_active_vendors(session, seen)


async def _replace_quotes(session: AsyncSession, cc: CostComparison, quotes) -> None:
    cc.quotes.clear()
    # Old rows must be gone before re-inserting the same (comparison, vendor) pairs
    await session.flush()
    for position, q in enumerate(quotes):
        cc.quotes.append(
            VendorQuote(
                position=position,
                vendor_id=to_uuid(q.vendor_id, "vendor_id"),
                unit_price=q.unit_price,
                amount=q.amount,
                unit=q.unit,
                discount_percent=q.discount_percent,
                gst_percent=q.gst_percent,
            )
        )


async def upsert_cost_comparison(session: AsyncSession, user, data) -> CostComparison:
    """Create the comparison in draft, or replace the quotes of the existing one."""
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can prepare cost comparisons")
    request = await get_request(session, data.request_id)
    if request.status not in EDITABLE_REQUEST_STATUSES:
        raise InvalidTransition(request.status, "cc_pending")
    await _validate_quotes(session, data.vendor_quotes)

    cc = await find_cost_comparison(session, request.id)
    created = cc is None
    if created:
        cc = CostComparison(request_id=request.id, created_by=user.id, status="draft")
        session.add(cc)

    cc.is_direct_delivery = data.is_direct_delivery
    if data.inventory_fulfillment_quantity is not None:
        cc.inventory_fulfillment_quantity = data.inventory_fulfillment_quantity
    if data.purchase_quantity is not None:
        cc.purchase_quantity = data.purchase_quantity
    cc.updated_at = datetime.utcnow()
    await _replace_quotes(session, cc, data.vendor_quotes)

    await session.flush()
    logger.info(
        "cost_comparison_saved",
        cost_comparison_id=str(cc.id),
        request_id=str(request.id),
        quotes=len(data.vendor_quotes),
        created=created,
    )
    return cc


async def submit_cost_comparison(session: AsyncSession, user, request_id) -> CostComparison:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can submit cost comparisons")
    cc = await get_cost_comparison(session, request_id)
    if not cc.quotes:
        raise ValidationError("Please add at least one vendor quote before submitting")
    if cc.status != "draft":
        raise InvalidTransition(cc.status, "cc_pending")
    request = await get_request(session, request_id)
    check_purchase_transition(user, request.status, "cc_pending")

    now = datetime.utcnow()
    cc.status = "cc_pending"
    cc.updated_at = now
    request.status = "cc_pending"
    request.updated_at = now
    await session.flush()
    logger.info(
        "cost_comparison_submitted",
        cost_comparison_id=str(cc.id),
        request_id=str(request.id),
        user_id=str(user.id),
    )
    return cc


async def review_cost_comparison(
    session: AsyncSession,
    user,
    request_id,
    action: str,
    selected_vendor_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> CostComparison:
    """
    Manager decision on a pending comparison.

    Approving needs a selected vendor that is one of the quotes; rejecting
    needs a reason. Every check runs before anything is written.
    """
    require_role(user, MANAGER, "Unauthorized: Only managers can review cost comparisons")
    cc = await get_cost_comparison(session, request_id)
    if cc.status != "cc_pending":
        raise InvalidTransition(cc.status, "cc_approved" if action == "approve" else "cc_rejected")
    request = await get_request(session, request_id)
    notes = (notes or "").strip()
    now = datetime.utcnow()

    if action == "approve":
        if not selected_vendor_id:
            raise ValidationError("Please select a vendor before approving")
        vendor_id = to_uuid(selected_vendor_id, "selected_vendor_id")
        if all(q.vendor_id != vendor_id for q in cc.quotes):
            raise ValidationError("Selected vendor must be in the quotes list")
        check_transition(request.status, "cc_approved")

        cc.status = "cc_approved"
        cc.selected_vendor_id = vendor_id
        cc.approved_by = user.id
        cc.approved_at = now
        if notes:
            cc.manager_notes = notes
        request.status = "ready_for_po"
        log_content = "Cost comparison approved"
    elif action == "reject":
        if not notes:
            raise ValidationError("Rejection reason is required")
        check_transition(request.status, "cc_rejected")

        cc.status = "cc_rejected"
        cc.manager_notes = notes
        cc.rejected_at = now
        request.status = "ready_for_cc"
        log_content = f"Cost comparison rejected: {notes}"
    else:
        raise ValidationError(f"Unsupported review action: {action}")

    cc.updated_at = now
    request.updated_at = now
    await note_service.record_log(
        session, user, request.request_number, log_content, status=cc.status
    )
    await session.flush()
    logger.info(
        "cost_comparison_reviewed",
        cost_comparison_id=str(cc.id),
        request_id=str(request.id),
        action=action,
        selected_vendor_id=str(cc.selected_vendor_id) if cc.selected_vendor_id else None,
        user_id=str(user.id),
    )
    return cc


async def resubmit_cost_comparison(session: AsyncSession, user, request_id, data) -> CostComparison:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can resubmit cost comparisons")
    cc = await get_cost_comparison(session, request_id)
    if cc.status != "cc_rejected":
        raise InvalidTransition(cc.status, "cc_pending")
    if not data.vendor_quotes:
        raise ValidationError("Please add at least one vendor quote before submitting")
    await _validate_quotes(session, data.vendor_quotes)
    request = await get_request(session, request_id)
    check_purchase_transition(user, request.status, "cc_pending")

    now = datetime.utcnow()
    await _replace_quotes(session, cc, data.vendor_quotes)
    cc.is_direct_delivery = data.is_direct_delivery
    cc.status = "cc_pending"
    cc.selected_vendor_id = None
    cc.updated_at = now
    request.status = "cc_pending"
    request.updated_at = now
    await session.flush()
    logger.info(
        "cost_comparison_resubmitted",
        cost_comparison_id=str(cc.id),
        request_id=str(request.id),
        quotes=len(data.vendor_quotes),
    )
    return cc


async def approve_split_fulfillment(
    session: AsyncSession, user, request_id, inventory_quantity: int, notes: Optional[str] = None
) -> tuple[MaterialRequest, CostComparison]:
    """
    Manager approves serving part (or all) of a request from central stock.

    The request goes to delivery_stage when stock covers the whole quantity,
    otherwise back to recheck for the purchase officer to buy the rest.
    """
    require_role(user, MANAGER, "Unauthorized: Only managers can approve split fulfillment")
    request = await get_request(session, request_id)
    if not 0 < inventory_quantity <= request.quantity:
        raise ValidationError("Invalid split quantity")
    target_status = "delivery_stage" if inventory_quantity >= request.quantity else "recheck"
    if request.status not in SPLIT_SOURCE_STATUSES:
        raise InvalidTransition(request.status, target_status)

    cc = await find_cost_comparison(session, request.id)
    if cc is None:
        cc = CostComparison(request_id=request.id, created_by=user.id, status="draft")
        session.add(cc)

    now = datetime.utcnow()
    cc.inventory_fulfillment_quantity = inventory_quantity
    cc.purchase_quantity = request.quantity - inventory_quantity
    parts = [p for p in ((cc.manager_notes or "").strip(), (notes or "").strip()) if p]
    if SPLIT_APPROVED_MARKER not in " ".join(parts):
        parts.append(SPLIT_APPROVED_MARKER)
    cc.manager_notes = " | ".join(parts)
    if cc.status == "cc_pending":
        cc.status = "draft"
    cc.updated_at = now

    old_status = request.status
    request.status = target_status
    if target_status == "delivery_stage":
        request.direct_action = "delivery"
    request.updated_at = now

    await note_service.record_log(
        session, user, request.request_number,
        f"Split fulfillment approved: {inventory_quantity} {request.unit} from inventory",
        status=target_status,
    )
    await session.flush()
    logger.info(
        "split_fulfillment_approved",
        request_id=str(request.id),
        inventory_quantity=inventory_quantity,
        purchase_quantity=cc.purchase_quantity,
        old_status=old_status,
        new_status=target_status,
    )
    return request, cc


async def get_for_request(session: AsyncSession, user, request_id) -> CostComparison:
    require_role(user, (MANAGER, PURCHASE_OFFICER))
    return await get_cost_comparison(session, request_id)


async def list_pending(session: AsyncSession, user) -> list[CostComparison]:
    require_role(user, MANAGER, "Unauthorized: Only managers can view pending cost comparisons")
    result = await session.execute(
        select(CostComparison)
        .where(CostComparison.status == "cc_pending")
        .order_by(CostComparison.updated_at.desc())
    )
    return list(result.scalars().all())
