from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.middleware.auth import get_current_user
from mrms.middleware.authorization import require_roles
from mrms.models.inventory import InventoryItem
from mrms.models.user import User
from mrms.schemas.common import PaginatedResponse, build_pagination, iso
from mrms.schemas.inventory import (
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    StockDeductRequest,
    VendorLinkRequest,
)
from mrms.services import inventory_service

logger = structlog.get_logger()
router = APIRouter()


def _to_response(item: InventoryItem) -> InventoryItemResponse:
    return InventoryItemResponse(
        id=str(item.id),
        item_name=item.item_name,
        description=item.description,
        hsn_sac_code=item.hsn_sac_code,
        unit=item.unit,
        central_stock=item.central_stock or 0,
        vendor_ids=[str(v.id) for v in item.vendors],
        is_active=item.is_active,
        created_at=iso(item.created_at) or "",
        updated_at=iso(item.updated_at) or "",
    )


@router.get("", response_model=PaginatedResponse[InventoryItemResponse])
async def list_inventory(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: str = Query(None, max_length=300),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await inventory_service.list_items(db, search, page, limit)
    return PaginatedResponse(
        data=[_to_response(i) for i in items],
        pagination=build_pagination(page, limit, total),
    )


@router.post("", response_model=InventoryItemResponse, status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    body: InventoryItemCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    item = await inventory_service.create_item(db, current_user, body)
    return _to_response(item)


@router.post("/deduct", response_model=InventoryItemResponse)
async def deduct_inventory_stock_by_name(
    body: StockDeductRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await inventory_service.deduct_inventory_stock_by_name(
        db, current_user, body.item_name, body.quantity, body.reason
    )
    return _to_response(item)


@router.post("/link-vendor", response_model=InventoryItemResponse)
async def link_vendor_to_item(
    body: VendorLinkRequest,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    item = await inventory_service.link_vendor_to_item(db, current_user, body.item_name, body.vendor_id)
    return _to_response(item)


@router.patch("/{item_id}", response_model=InventoryItemResponse)
async def update_inventory_item(
    item_id: str,
    body: InventoryItemUpdate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    item = await inventory_service.update_item(db, current_user, item_id, body)
    return _to_response(item)


@router.delete("/{item_id}", response_model=InventoryItemResponse)
async def delete_inventory_item(
    item_id: str,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    item = await inventory_service.deactivate_item(db, current_user, item_id)
    return _to_response(item)
