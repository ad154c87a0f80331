"""
Purchase orders, either raised against requests that reached ready_for_po or
raised directly by a purchase officer for a site (direct POs).

PO lifecycle: pending_approval → ordered | rejected, and cancelled from any
state except delivered. Each step on a request-linked PO also moves the
request:

  create   request ready_for_po → pending_po
  approve  request pending_po   → ready_for_delivery
  reject   request pending_po   → rejected_po
  cancel   request pending_po   → rejected_po (if still pending)

Direct POs carry a delivery site instead of a request and touch no request.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.errors import BusinessRuleViolation, InvalidTransition, NotFound, ValidationError
from mrms.models.purchase_order import PurchaseOrder
from mrms.services import note_service
from mrms.services.lookups import (
    find_cost_comparison,
    get_active_site,
    get_active_vendor,
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

PO_PREFIX = "PO"
_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


def compute_total(
    quantity: int, unit_rate, discount_percent=0, gst_percent=0, per_unit_basis=None
) -> Decimal:
    """(qty / basis) × rate × (1 − discount%) × (1 + gst%), rounded half-up to paise."""
    base = Decimal(quantity) / Decimal(per_unit_basis or 1) * Decimal(str(unit_rate))
    discounted = base * (1 - Decimal(str(discount_percent or 0)) / _HUNDRED)
    total = discounted * (1 + Decimal(str(gst_percent or 0)) / _HUNDRED)
    return total.quantize(_CENT, rounding=ROUND_HALF_UP)


async def _generate_po_number(session: AsyncSession) -> str:
    result = await session.execute(select(func.count(PurchaseOrder.id)))
    count = (result.scalar() or 0) + 1
    return f"{PO_PREFIX}-{count:06d}"


async def get_purchase_order(session: AsyncSession, po_id) -> PurchaseOrder:
    result = await session.execute(
        select(PurchaseOrder).where(PurchaseOrder.id == to_uuid(po_id, "po_id"))
    )
    po = result.scalar_one_or_none()
    if not po:
        raise NotFound("Purchase order not found")
    return po


async def create_purchase_order(session: AsyncSession, user, data) -> PurchaseOrder:
    """
    Raise a PO for a ready_for_po request.

    Vendor and pricing default to the approved cost comparison's selected quote
    when the caller leaves them out.
    """
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can create purchase orders")
    request = await get_request(session, data.request_id)
    check_purchase_transition(user, request.status, "pending_po")

    cc = await find_cost_comparison(session, request.id)
    selected_quote = None
    if cc is not None and cc.status == "cc_approved" and cc.selected_vendor_id:
        selected_quote = next((q for q in cc.quotes if q.vendor_id == cc.selected_vendor_id), None)

    vendor_id = data.vendor_id or (cc.selected_vendor_id if selected_quote else None)
    if not vendor_id:
        raise ValidationError("Vendor is required")
    vendor = await get_active_vendor(session, vendor_id)
    quote = selected_quote if selected_quote and selected_quote.vendor_id == vendor.id else None

    unit_rate = data.unit_rate if data.unit_rate is not None else (quote.unit_price if quote else None)
    if unit_rate is None or Decimal(str(unit_rate)) <= 0:
        raise ValidationError("Unit rate must be greater than 0")
    discount = data.discount_percent if data.discount_percent is not None else (
        (quote.discount_percent if quote else None) or Decimal("0")
    )
    gst = data.gst_percent if data.gst_percent is not None else (
        (quote.gst_percent if quote else None) or Decimal("0")
    )
    if not Decimal("0") <= Decimal(str(gst)) <= _HUNDRED:
        raise ValidationError("GST percent must be between 0 and 100")

    po_number = await _generate_po_number(session)
    po = PurchaseOrder(
        po_number=po_number,
        request_id=request.id,
        vendor_id=vendor.id,
        created_by=user.id,
        item_description=f"{request.item_name} - {request.description}",
        quantity=request.quantity,
        unit=request.unit,
        hsn_sac_code=data.hsn_sac_code,
        unit_rate=unit_rate,
        discount_percent=discount,
        gst_percent=gst,
        total_amount=compute_total(request.quantity, unit_rate, discount, gst),
        notes=data.notes,
        status="pending_approval",
        expected_delivery_date=data.expected_delivery_date,
    )
    session.add(po)
    request.status = "pending_po"
    request.updated_at = datetime.utcnow()
    await session.flush()
    logger.info(
        "purchase_order_created",
        po_id=str(po.id),
        po_number=po_number,
        request_id=str(request.id),
        vendor_id=str(vendor.id),
        total=str(po.total_amount),
    )
    return po


async def approve_purchase_order(session: AsyncSession, user, po_id) -> PurchaseOrder:
    require_role(user, MANAGER, "Unauthorized: Only managers can approve purchase orders")
    po = await get_purchase_order(session, po_id)
    if po.request_id is None:
        return await _approve_direct(session, user, po)
    if po.status != "pending_approval":
        raise InvalidTransition(po.status, "ordered")
    request = await get_request(session, po.request_id)
    check_transition(request.status, "ready_for_delivery")

    now = datetime.utcnow()
    po.status = "ordered"
    po.approved_by = user.id
    po.approved_at = now
    po.updated_at = now
    request.status = "ready_for_delivery"
    request.updated_at = now
    await note_service.record_log(
        session, user, request.request_number, f"{po.po_number} approved", status=request.status
    )
    await session.flush()
    logger.info("purchase_order_approved", po_id=str(po.id), po_number=po.po_number)
    return po


async def reject_purchase_order(session: AsyncSession, user, po_id, reason: Optional[str]) -> PurchaseOrder:
    require_role(user, MANAGER, "Unauthorized: Only managers can reject purchase orders")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required")
    po = await get_purchase_order(session, po_id)
    if po.request_id is None:
        return await _reject_direct(session, user, po, reason)
    if po.status != "pending_approval":
        raise InvalidTransition(po.status, "rejected")
    request = await get_request(session, po.request_id)
    check_transition(request.status, "rejected_po")

    now = datetime.utcnow()
    po.status = "rejected"
    po.rejection_reason = reason
    po.updated_at = now
    request.status = "rejected_po"
    request.updated_at = now
    await note_service.record_log(
        session, user, request.request_number, f"{po.po_number} rejected: {reason}", status=request.status
    )
    await session.flush()
    logger.info("purchase_order_rejected", po_id=str(po.id), po_number=po.po_number)
    return po


async def cancel_purchase_order(session: AsyncSession, user, po_id) -> PurchaseOrder:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can cancel purchase orders")
    po = await get_purchase_order(session, po_id)
    if po.status == "delivered":
        raise BusinessRuleViolation("Cannot cancel a delivered purchase order")
    if po.status == "cancelled":
        raise BusinessRuleViolation("Purchase order is already cancelled")
    request = await get_request(session, po.request_id) if po.request_id is not None else None

    now = datetime.utcnow()
    old_status = po.status
    po.status = "cancelled"
    po.updated_at = now
    if request is not None and request.status == "pending_po":
        request.status = "rejected_po"
        request.updated_at = now
    await session.flush()
    logger.info(
        "purchase_order_cancelled",
        po_id=str(po.id),
        po_number=po.po_number,
        old_status=old_status,
    )
    return po


async def list_purchase_orders(
    session: AsyncSession,
    user,
    status: Optional[str] = None,
    request_id: Optional[str] = None,
    is_direct: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[PurchaseOrder], int]:
    require_role(user, (MANAGER, PURCHASE_OFFICER))
    filters = []
    if status:
        filters.append(PurchaseOrder.status == status)
    if request_id:
        filters.append(PurchaseOrder.request_id == to_uuid(request_id, "request_id"))
    if is_direct is not None:
        filters.append(PurchaseOrder.is_direct == is_direct)

    total = (
        await session.execute(select(func.count(PurchaseOrder.id)).where(*filters))
    ).scalar() or 0
    result = await session.execute(
        select(PurchaseOrder)
        .where(*filters)
        .order_by(PurchaseOrder.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


# ---------- DIRECT POs ----------


async def create_direct_purchase_order(session: AsyncSession, user, data) -> PurchaseOrder:
    """Raise a PO for a site without a material request; it still needs manager approval."""
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can create direct POs")
    vendor = await get_active_vendor(session, data.vendor_id)
    site = await get_active_site(session, data.delivery_site_id)
    if data.quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")
    if Decimal(str(data.unit_rate)) <= 0:
        raise ValidationError("Unit rate must be greater than 0")
    if not Decimal("0") <= Decimal(str(data.gst_percent)) <= _HUNDRED:
        raise ValidationError("GST percent must be between 0 and 100")
    description = data.item_description.strip()
    if not description:
        raise ValidationError("Item description is required")

    discount = data.discount_percent or Decimal("0")
    po_number = await _generate_po_number(session)
    po = PurchaseOrder(
        po_number=po_number,
        request_id=None,
        delivery_site_id=site.id,
        is_direct=True,
        vendor_id=vendor.id,
        created_by=user.id,
        item_description=description,
        quantity=data.quantity,
        unit=data.unit,
        hsn_sac_code=data.hsn_sac_code,
        unit_rate=data.unit_rate,
        per_unit_basis=data.per_unit_basis,
        per_unit_basis_unit=data.per_unit_basis_unit,
        discount_percent=discount,
        gst_percent=data.gst_percent,
        total_amount=compute_total(
            data.quantity, data.unit_rate, discount, data.gst_percent, data.per_unit_basis
        ),
        notes=data.notes,
        status="pending_approval",
        valid_till=data.valid_till,
    )
    session.add(po)
    await session.flush()
    logger.info(
        "direct_purchase_order_created",
        po_id=str(po.id),
        po_number=po_number,
        site_id=str(site.id),
        vendor_id=str(vendor.id),
        total=str(po.total_amount),
    )
    return po


async def _get_direct_purchase_order(session: AsyncSession, po_id) -> PurchaseOrder:
    po = await get_purchase_order(session, po_id)
    if po.request_id is not None:
        raise NotFound("Direct purchase order not found")
    return po


async def _approve_direct(session: AsyncSession, user, po: PurchaseOrder) -> PurchaseOrder:
    if po.status != "pending_approval":
        raise BusinessRuleViolation("PO is not pending approval")
    now = datetime.utcnow()
    po.status = "ordered"
    po.approved_by = user.id
    po.approved_at = now
    po.updated_at = now
    await session.flush()
    logger.info("direct_purchase_order_approved", po_id=str(po.id), po_number=po.po_number)
    return po


async def _reject_direct(session: AsyncSession, user, po: PurchaseOrder, reason: str) -> PurchaseOrder:
    if po.status != "pending_approval":
        raise BusinessRuleViolation("PO is not pending approval")
    now = datetime.utcnow()
    po.status = "rejected"
    po.rejection_reason = reason
    # approved_by / approved_at record whoever decided, either way
    po.approved_by = user.id
    po.approved_at = now
    po.updated_at = now
    await session.flush()
    logger.info("direct_purchase_order_rejected", po_id=str(po.id), po_number=po.po_number)
    return po


async def approve_direct_purchase_order(session: AsyncSession, user, po_id) -> PurchaseOrder:
    require_role(user, MANAGER, "Unauthorized: Only managers can approve direct POs")
    po = await _get_direct_purchase_order(session, po_id)
    return await _approve_direct(session, user, po)


async def reject_direct_purchase_order(
    session: AsyncSession, user, po_id, reason: Optional[str]
) -> PurchaseOrder:
    require_role(user, MANAGER, "Unauthorized: Only managers can reject direct POs")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required")
    po = await _get_direct_purchase_order(session, po_id)
    return await _reject_direct(session, user, po, reason)


async def list_direct_purchase_orders(
    session: AsyncSession, user, status: Optional[str] = None, page: int = 1, limit: int = 20
) -> tuple[list[PurchaseOrder], int]:
    return await list_purchase_orders(
        session, user, status=status, is_direct=True, page=page, limit=limit
    )
