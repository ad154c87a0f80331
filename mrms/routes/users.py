from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.middleware.auth import get_current_user
from mrms.middleware.authorization import require_roles
from mrms.models.user import User
from mrms.schemas.common import PaginatedResponse, build_pagination, iso
from mrms.schemas.user import UserCreate, UserResponse, UserUpdate
from mrms.services import user_service

logger = structlog.get_logger()
router = APIRouter()


def _to_response(u: User) -> UserResponse:
    return UserResponse(
        id=str(u.id),
        username=u.username,
        full_name=u.full_name,
        phone_number=u.phone_number,
        role=u.role,
        is_active=bool(u.is_active),
        assigned_site_ids=sorted(str(s.id) for s in u.assigned_sites),
        created_at=iso(u.created_at),
    )


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    role: str = Query(None),
    is_active: bool = Query(None),
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    items, total = await user_service.list_users(
        db, current_user, role=role, is_active=is_active, page=page, limit=limit
    )
    return PaginatedResponse(
        data=[_to_response(u) for u in items],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return _to_response(current_user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    target = await user_service.get_user_for_manager(db, current_user, user_id)
    return _to_response(target)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    target = await user_service.create_user(db, current_user, body)
    return _to_response(target)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    target = await user_service.update_user(db, current_user, user_id, body)
    return _to_response(target)


@router.post("/{user_id}/disable", response_model=UserResponse)
async def disable_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    target = await user_service.disable_user(db, current_user, user_id)
    return _to_response(target)


@router.post("/{user_id}/enable", response_model=UserResponse)
async def enable_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("manager")),
    db: AsyncSession = Depends(get_db),
):
    target = await user_service.enable_user(db, current_user, user_id)
    return _to_response(target)
