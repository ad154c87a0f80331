"""
User administration. Managers create accounts, change roles and site
assignments, and disable or re-enable users. Sign-in itself belongs to the
external identity provider; a disabled user's tokens stop resolving.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.errors import BusinessRuleViolation, ValidationError
from mrms.models.user import User
from mrms.services.lookups import get_active_sites, get_user, to_uuid
from mrms.services.status_machine import MANAGER, SITE_ENGINEER, require_role

logger = structlog.get_logger()


async def _username_taken(session: AsyncSession, username: str) -> bool:
    result = await session.execute(select(User.id).where(User.username == username))
    return result.scalars().first() is not None


async def _sites_for_role(session: AsyncSession, role: str, site_ids) -> list:
    if role != SITE_ENGINEER:
        if site_ids:
            raise BusinessRuleViolation("Sites can only be assigned to site engineers")
        return []
    return await get_active_sites(session, site_ids or [])


async def list_users(
    session: AsyncSession,
    user,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[User], int]:
    require_role(user, MANAGER, "Unauthorized: Only managers can manage users")
    filters = []
    if role:
        filters.append(User.role == role)
    if is_active is not None:
        filters.append(User.is_active == is_active)

    total = (await session.execute(select(func.count(User.id)).where(*filters))).scalar() or 0
    result = await session.execute(
        select(User)
        .where(*filters)
        .order_by(User.full_name)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_user_for_manager(session: AsyncSession, user, user_id) -> User:
    require_role(user, MANAGER, "Unauthorized: Only managers can manage users")
    return await get_user(session, user_id)


async def create_user(session: AsyncSession, user, data) -> User:
    require_role(user, MANAGER, "Unauthorized: Only managers can manage users")
    username = data.username.strip()
    if not username:
        raise ValidationError("Username is required")
    if await _username_taken(session, username):
        raise BusinessRuleViolation("Username already exists")

    extra = {}
    if data.user_id:
        extra["id"] = to_uuid(data.user_id, "user_id")
        existing = await session.execute(select(User.id).where(User.id == extra["id"]))
        if existing.scalars().first() is not None:
            raise BusinessRuleViolation("User already exists")

    sites = await _sites_for_role(session, data.role, data.assigned_site_ids)
    now = datetime.utcnow()
    new_user = User(
        username=username,
        full_name=data.full_name.strip(),
        phone_number=data.phone_number,
        role=data.role,
        is_active=True,
        created_by=user.id,
        assigned_sites=sites,
        created_at=now,
        updated_at=now,
        **extra,
    )
    session.add(new_user)
    await session.flush()
    logger.info(
        "user_created",
        user_id=str(new_user.id),
        username=username,
        role=data.role,
        created_by=str(user.id),
    )
    return new_user


async def update_user(session: AsyncSession, user, user_id, data) -> User:
    """Patch profile fields, role and site assignment; a role change away from site engineer drops the sites."""
    require_role(user, MANAGER, "Unauthorized: Only managers can manage users")
    target = await get_user(session, user_id)
    updates = data.model_dump(exclude_unset=True, exclude_none=True)

    role = updates.pop("role", target.role)
    if role != target.role and target.id == user.id:
        raise BusinessRuleViolation("Cannot change your own role")
    site_ids = updates.pop("assigned_site_ids", None)
    if site_ids is not None or role != target.role:
        target.assigned_sites = await _sites_for_role(session, role, site_ids)
    target.role = role

    if "full_name" in updates:
        updates["full_name"] = updates["full_name"].strip()
    for name, value in updates.items():
        setattr(target, name, value)
    target.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("user_updated", user_id=str(target.id), role=target.role, updated_by=str(user.id))
    return target


async def disable_user(session: AsyncSession, user, user_id) -> User:
    require_role(user, MANAGER, "Unauthorized: Only managers can manage users")
    target = await get_user(session, user_id)
    if target.id == user.id:
        raise BusinessRuleViolation("Cannot disable your own account")
    target.is_active = False
    target.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("user_disabled", user_id=str(target.id), disabled_by=str(user.id))
    return target


async def enable_user(session: AsyncSession, user, user_id) -> User:
    require_role(user, MANAGER, "Unauthorized: Only managers can manage users")
    target = await get_user(session, user_id)
    target.is_active = True
    target.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("user_enabled", user_id=str(target.id), enabled_by=str(user.id))
    return target
