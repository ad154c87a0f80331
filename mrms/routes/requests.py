from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.middleware.auth import get_current_user
from mrms.middleware.authorization import require_roles
from mrms.models.request import MaterialRequest
from mrms.models.user import User
from mrms.schemas.common import PaginatedResponse, build_pagination, iso
from mrms.schemas.request import (
    BulkStatusUpdateRequest,
    BulkUpdateResponse,
    DraftSendRequest,
    MaterialRequestCreate,
    MaterialRequestResponse,
    MultipleRequestCreate,
    PurchaseStatusUpdateRequest,
    RequestDetailsUpdate,
    RequestGroupResponse,
    SplitDeliveryRequest,
    SplitDeliveryResponse,
    StatusUpdateRequest,
)
from mrms.services import request_service

logger = structlog.get_logger()
router = APIRouter()


def to_response(r: MaterialRequest) -> MaterialRequestResponse:
    return MaterialRequestResponse(
        id=str(r.id),
        request_number=r.request_number,
        item_order=r.item_order,
        created_by=str(r.created_by),
        site_id=str(r.site_id),
        item_name=r.item_name,
        description=r.description,
        specs_brand=r.specs_brand,
        quantity=r.quantity,
        unit=r.unit,
        required_by=iso(r.required_by) or "",
        is_urgent=bool(r.is_urgent),
        notes=r.notes,
        status=r.status,
        direct_action=r.direct_action,
        approved_by=str(r.approved_by) if r.approved_by else None,
        approved_at=iso(r.approved_at),
        rejection_reason=r.rejection_reason,
        delivery_marked_at=iso(r.delivery_marked_at),
        created_at=iso(r.created_at) or "",
        updated_at=iso(r.updated_at) or "",
    )


def _group_response(request_number: str, requests: list[MaterialRequest]) -> RequestGroupResponse:
    return RequestGroupResponse(
        request_number=request_number,
        requests=[to_response(r) for r in requests],
    )


# ---------- LIST / GET ----------


@router.get("", response_model=PaginatedResponse[MaterialRequestResponse])
async def list_requests(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    request_status: str = Query(None, alias="status"),
    site_id: str = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await request_service.list_requests(
        db, current_user, status=request_status, site_id=site_id, page=page, limit=limit
    )
    logger.info("request_list_result", count=len(items), total=total)
    return PaginatedResponse(
        data=[to_response(r) for r in items],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/by-number/{request_number}", response_model=RequestGroupResponse)
async def get_requests_by_number(
    request_number: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    requests = await request_service.get_requests_by_number(db, current_user, request_number)
    return _group_response(request_number, requests)


@router.get("/{request_id}", response_model=MaterialRequestResponse)
async def get_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await request_service.get_request_for_user(db, current_user, request_id)
    return to_response(request)


# ---------- CREATE / DRAFTS ----------


@router.post("", response_model=MaterialRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_material_request(
    body: MaterialRequestCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("site_engineer")),
    db: AsyncSession = Depends(get_db),
):
    request = await request_service.create_material_request(db, current_user, body)
    return to_response(request)


@router.post("/batch", response_model=RequestGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_multiple_material_requests(
    body: MultipleRequestCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("site_engineer")),
    db: AsyncSession = Depends(get_db),
):
    requests = await request_service.create_multiple_material_requests(db, current_user, body)
    return _group_response(requests[0].request_number, requests)


@router.post("/drafts", response_model=RequestGroupResponse, status_code=status.HTTP_201_CREATED)
async def save_multiple_material_requests_as_draft(
    body: MultipleRequestCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("site_engineer")),
    db: AsyncSession = Depends(get_db),
):
    requests = await request_service.save_multiple_material_requests_as_draft(db, current_user, body)
    return _group_response(requests[0].request_number, requests)


@router.put("/drafts/{request_number}", response_model=RequestGroupResponse)
async def update_draft_request(
    request_number: str,
    body: MultipleRequestCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    requests = await request_service.update_draft_request(db, current_user, request_number, body)
    return _group_response(request_number, requests)


@router.post("/drafts/{request_number}/send", response_model=RequestGroupResponse)
async def send_draft_request(
    request_number: str,
    body: Optional[DraftSendRequest] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    new_number, requests = await request_service.send_draft_request(
        db, current_user, request_number, body.order_note if body else None
    )
    return _group_response(new_number, requests)


@router.delete("/drafts/{request_number}")
async def delete_draft_request(
    request_number: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    deleted = await request_service.delete_draft_request(db, current_user, request_number)
    return {"request_number": request_number, "deleted": deleted}


# ---------- STATUS ----------


@router.post("/bulk-status", response_model=BulkUpdateResponse)
async def bulk_update_request_status(
    body: BulkStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    outcome = await request_service.bulk_update_request_status(
        db, current_user, body.request_ids, body.status, body.rejection_reason
    )
    return BulkUpdateResponse(
        updated_count=outcome.updated_count,
        updated_ids=[str(i) for i in outcome.updated_ids],
        skipped_ids=[str(i) for i in outcome.skipped_ids],
    )


@router.patch("/{request_id}/status", response_model=MaterialRequestResponse)
async def update_request_status(
    request_id: str,
    body: StatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await request_service.update_request_status(
        db, current_user, request_id, body.status, body.rejection_reason, body.direct_action
    )
    return to_response(request)


@router.patch("/{request_id}/purchase-status", response_model=MaterialRequestResponse)
async def update_purchase_request_status(
    request_id: str,
    body: PurchaseStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await request_service.update_purchase_request_status(
        db, current_user, request_id, body.status
    )
    return to_response(request)


@router.post("/{request_id}/direct-to-po", response_model=MaterialRequestResponse)
async def direct_to_po(
    request_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await request_service.direct_to_po(db, current_user, request_id)
    return to_response(request)


@router.patch("/{request_id}/details", response_model=MaterialRequestResponse)
async def update_request_details(
    request_id: str,
    body: RequestDetailsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await request_service.update_request_details(db, current_user, request_id, body)
    return to_response(request)


# ---------- DELIVERY ----------


@router.post("/{request_id}/mark-delivery", response_model=MaterialRequestResponse)
async def mark_delivery(
    request_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await request_service.mark_delivery(db, current_user, request_id)
    return to_response(request)


@router.post("/{request_id}/split-delivery", response_model=SplitDeliveryResponse)
async def split_and_deliver_inventory(
    request_id: str,
    body: SplitDeliveryRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    delivered, remaining = await request_service.split_and_deliver_inventory(
        db, current_user, request_id, body.inventory_quantity
    )
    return SplitDeliveryResponse(delivered=to_response(delivered), remaining=to_response(remaining))
