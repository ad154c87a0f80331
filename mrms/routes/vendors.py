from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.middleware.auth import get_current_user
from mrms.middleware.authorization import require_roles
from mrms.models.user import User
from mrms.models.vendor import Vendor
from mrms.schemas.common import PaginatedResponse, build_pagination, iso
from mrms.schemas.vendor import VendorCreate, VendorResponse, VendorUpdate
from mrms.services import vendor_service

logger = structlog.get_logger()
router = APIRouter()


def _to_response(v: Vendor) -> VendorResponse:
    return VendorResponse(
        id=str(v.id),
        company_name=v.company_name,
        contact_name=v.contact_name,
        email=v.email,
        phone=v.phone,
        gst_number=v.gst_number,
        address=v.address,
        is_active=v.is_active,
        created_at=iso(v.created_at) or "",
    )


@router.get("", response_model=PaginatedResponse[VendorResponse])
async def list_vendors(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: str = Query(None, max_length=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    vendors, total = await vendor_service.list_vendors(db, search, page, limit)
    return PaginatedResponse(
        data=[_to_response(v) for v in vendors],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/{vendor_id}", response_model=VendorResponse)
async def get_vendor(
    vendor_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    vendor = await vendor_service.get_vendor(db, vendor_id)
    return _to_response(vendor)


@router.post("", response_model=VendorResponse, status_code=status.HTTP_201_CREATED)
async def create_vendor(
    body: VendorCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    vendor = await vendor_service.create_vendor(db, current_user, body)
    return _to_response(vendor)


@router.patch("/{vendor_id}", response_model=VendorResponse)
async def update_vendor(
    vendor_id: str,
    body: VendorUpdate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    vendor = await vendor_service.update_vendor(db, current_user, vendor_id, body)
    return _to_response(vendor)


@router.delete("/{vendor_id}", response_model=VendorResponse)
async def delete_vendor(
    vendor_id: str,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    vendor = await vendor_service.deactivate_vendor(db, current_user, vendor_id)
    return _to_response(vendor)
