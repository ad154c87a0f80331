from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.middleware.auth import get_current_user
from mrms.middleware.authorization import require_roles
from mrms.models.site import Site
from mrms.models.user import User
from mrms.schemas.common import iso
from mrms.schemas.site import SiteAssignmentRequest, SiteCreate, SiteResponse, SiteUpdate
from mrms.services import site_service

logger = structlog.get_logger()
router = APIRouter()


def _to_response(s: Site) -> SiteResponse:
    return SiteResponse(
        id=str(s.id),
        name=s.name,
        code=s.code,
        address=s.address,
        description=s.description,
        type=s.type,
        is_active=s.is_active,
        created_at=iso(s.created_at) or "",
    )


@router.get("", response_model=list[SiteResponse])
async def list_sites(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sites = await site_service.list_sites(db, current_user)
    return [_to_response(s) for s in sites]


@router.post("", response_model=SiteResponse, status_code=status.HTTP_201_CREATED)
async def create_site(
    body: SiteCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    site = await site_service.create_site(db, current_user, body)
    return _to_response(site)


@router.patch("/{site_id}", response_model=SiteResponse)
async def update_site(
    site_id: str,
    body: SiteUpdate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    site = await site_service.update_site(db, current_user, site_id, body)
    return _to_response(site)


@router.delete("/{site_id}", response_model=SiteResponse)
async def delete_site(
    site_id: str,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    site = await site_service.deactivate_site(db, current_user, site_id)
    return _to_response(site)


@router.put("/assignments/{user_id}", response_model=list[SiteResponse])
async def assign_sites(
    user_id: str,
    body: SiteAssignmentRequest,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    target = await site_service.assign_sites(db, current_user, user_id, body.site_ids)
    return [_to_response(s) for s in target.assigned_sites]
