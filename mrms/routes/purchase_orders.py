from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.middleware.auth import get_current_user
from mrms.middleware.authorization import require_roles
from mrms.models.purchase_order import PurchaseOrder
from mrms.models.user import User
from mrms.schemas.common import PaginatedResponse, build_pagination, iso
from mrms.schemas.purchase_order import (
    DirectPurchaseOrderCreate,
    PurchaseOrderCreate,
    PurchaseOrderReject,
    PurchaseOrderResponse,
)
from mrms.services import purchase_order_service

logger = structlog.get_logger()
router = APIRouter()


def _to_response(po: PurchaseOrder) -> PurchaseOrderResponse:
    return PurchaseOrderResponse(
        id=str(po.id),
        po_number=po.po_number,
        request_id=str(po.request_id) if po.request_id else None,
        delivery_site_id=str(po.delivery_site_id) if po.delivery_site_id else None,
        is_direct=bool(po.is_direct),
        vendor_id=str(po.vendor_id),
        created_by=str(po.created_by),
        item_description=po.item_description,
        quantity=po.quantity,
        unit=po.unit,
        hsn_sac_code=po.hsn_sac_code,
        unit_rate=po.unit_rate,
        per_unit_basis=po.per_unit_basis,
        per_unit_basis_unit=po.per_unit_basis_unit,
        discount_percent=po.discount_percent,
        gst_percent=po.gst_percent,
        total_amount=po.total_amount,
        notes=po.notes,
        status=po.status,
        approved_by=str(po.approved_by) if po.approved_by else None,
        approved_at=iso(po.approved_at),
        rejection_reason=po.rejection_reason,
        expected_delivery_date=iso(po.expected_delivery_date),
        valid_till=iso(po.valid_till),
        created_at=iso(po.created_at) or "",
        updated_at=iso(po.updated_at) or "",
    )


@router.get("", response_model=PaginatedResponse[PurchaseOrderResponse])
async def list_purchase_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    po_status: str = Query(None, alias="status"),
    request_id: str = Query(None),
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager", "purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    items, total = await purchase_order_service.list_purchase_orders(
        db, current_user, status=po_status, request_id=request_id, page=page, limit=limit
    )
    return PaginatedResponse(
        data=[_to_response(po) for po in items],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/direct", response_model=PaginatedResponse[PurchaseOrderResponse])
async def list_direct_purchase_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    po_status: str = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager", "purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    items, total = await purchase_order_service.list_direct_purchase_orders(
        db, current_user, status=po_status, page=page, limit=limit
    )
    return PaginatedResponse(
        data=[_to_response(po) for po in items],
        pagination=build_pagination(page, limit, total),
    )


@router.post("/direct", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_direct_purchase_order(
    body: DirectPurchaseOrderCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    po = await purchase_order_service.create_direct_purchase_order(db, current_user, body)
    return _to_response(po)


@router.post("/direct/{po_id}/approve", response_model=PurchaseOrderResponse)
async def approve_direct_purchase_order(
    po_id: str,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    po = await purchase_order_service.approve_direct_purchase_order(db, current_user, po_id)
    return _to_response(po)


@router.post("/direct/{po_id}/reject", response_model=PurchaseOrderResponse)
async def reject_direct_purchase_order(
    po_id: str,
    body: PurchaseOrderReject,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    po = await purchase_order_service.reject_direct_purchase_order(db, current_user, po_id, body.reason)
    return _to_response(po)


@router.get("/{po_id}", response_model=PurchaseOrderResponse)
async def get_purchase_order(
    po_id: str,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager", "purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    po = await purchase_order_service.get_purchase_order(db, po_id)
    return _to_response(po)


@router.post("", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    body: PurchaseOrderCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    po = await purchase_order_service.create_purchase_order(db, current_user, body)
    return _to_response(po)


@router.post("/{po_id}/approve", response_model=PurchaseOrderResponse)
async def approve_purchase_order(
    po_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await purchase_order_service.approve_purchase_order(db, current_user, po_id)
    return _to_response(po)


@router.post("/{po_id}/reject", response_model=PurchaseOrderResponse)
async def reject_purchase_order(
    po_id: str,
    body: PurchaseOrderReject,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await purchase_order_service.reject_purchase_order(db, current_user, po_id, body.reason)
    return _to_response(po)


@router.post("/{po_id}/cancel", response_model=PurchaseOrderResponse)
async def cancel_purchase_order(
    po_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await purchase_order_service.cancel_purchase_order(db, current_user, po_id)
    return _to_response(po)
