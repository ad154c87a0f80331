from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.middleware.auth import get_current_user
from mrms.middleware.authorization import require_roles
from mrms.models.cost_comparison import CostComparison
from mrms.models.user import User
from mrms.routes.requests import to_response as request_to_response
from mrms.schemas.common import iso
from mrms.schemas.cost_comparison import (
    CostComparisonResponse,
    CostComparisonResubmit,
    CostComparisonReview,
    CostComparisonUpsert,
    SplitFulfillmentApproval,
    VendorQuoteResponse,
)
from mrms.schemas.request import MaterialRequestResponse
from mrms.services import cost_comparison_service

logger = structlog.get_logger()
router = APIRouter()


def _to_response(cc: CostComparison) -> CostComparisonResponse:
    return CostComparisonResponse(
        id=str(cc.id),
        request_id=str(cc.request_id),
        created_by=str(cc.created_by),
        status=cc.status,
        vendor_quotes=[
            VendorQuoteResponse(
                vendor_id=str(q.vendor_id),
                unit_price=q.unit_price,
                amount=q.amount,
                unit=q.unit,
                discount_percent=q.discount_percent,
                gst_percent=q.gst_percent,
            )
            for q in cc.quotes
        ],
        selected_vendor_id=str(cc.selected_vendor_id) if cc.selected_vendor_id else None,
        manager_notes=cc.manager_notes,
        is_direct_delivery=bool(cc.is_direct_delivery),
        inventory_fulfillment_quantity=cc.inventory_fulfillment_quantity,
        purchase_quantity=cc.purchase_quantity,
        is_split_approved=cc.is_split_approved,
        approved_by=str(cc.approved_by) if cc.approved_by else None,
        approved_at=iso(cc.approved_at),
        rejected_at=iso(cc.rejected_at),
        created_at=iso(cc.created_at) or "",
        updated_at=iso(cc.updated_at) or "",
    )


@router.get("/pending", response_model=list[CostComparisonResponse])
async def list_pending_cost_comparisons(
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    items = await cost_comparison_service.list_pending(db, current_user)
    return [_to_response(cc) for cc in items]


@router.get("/by-request/{request_id}", response_model=CostComparisonResponse)
async def get_cost_comparison(
    request_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cc = await cost_comparison_service.get_for_request(db, current_user, request_id)
    return _to_response(cc)


@router.put("", response_model=CostComparisonResponse)
async def upsert_cost_comparison(
    body: CostComparisonUpsert,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("purchase_officer")),
    db: AsyncSession = Depends(get_db),
):
    cc = await cost_comparison_service.upsert_cost_comparison(db, current_user, body)
    return _to_response(cc)


@router.post("/by-request/{request_id}/submit", response_model=CostComparisonResponse)
async def submit_cost_comparison(
    request_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cc = await cost_comparison_service.submit_cost_comparison(db, current_user, request_id)
    return _to_response(cc)


@router.post("/by-request/{request_id}/review", response_model=CostComparisonResponse)
async def review_cost_comparison(
    request_id: str,
    body: CostComparisonReview,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cc = await cost_comparison_service.review_cost_comparison(
        db, current_user, request_id, body.action, body.selected_vendor_id, body.notes
    )
    return _to_response(cc)


@router.post("/by-request/{request_id}/resubmit", response_model=CostComparisonResponse)
async def resubmit_cost_comparison(
    request_id: str,
    body: CostComparisonResubmit,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cc = await cost_comparison_service.resubmit_cost_comparison(db, current_user, request_id, body)
    return _to_response(cc)


@router.post("/by-request/{request_id}/split-fulfillment", response_model=MaterialRequestResponse)
async def approve_split_fulfillment(
    request_id: str,
    body: SplitFulfillmentApproval,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request, _cc = await cost_comparison_service.approve_split_fulfillment(
        db, current_user, request_id, body.inventory_quantity, body.notes
    )
    return request_to_response(request)
