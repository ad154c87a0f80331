"""Sites (construction sites and stores) and their assignment to users."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.errors import BusinessRuleViolation, NotFound
from mrms.models.site import Site
from mrms.models.user import User
from mrms.services.lookups import get_active_sites, get_user, to_uuid
from mrms.services.status_machine import MANAGER, SITE_ENGINEER, require_role

logger = structlog.get_logger()


async def _name_taken(session: AsyncSession, name: str, exclude_id=None) -> bool:
    q = select(Site.id).where(
        func.lower(Site.name) == name.strip().lower(),
        Site.is_active == True,  # noqa: E712
    )
    if exclude_id is not None:
        q = q.where(Site.id != exclude_id)
    result = await session.execute(q)
    return result.scalars().first() is not None


async def get_site(session: AsyncSession, site_id) -> Site:
    result = await session.execute(select(Site).where(Site.id == to_uuid(site_id, "site_id")))
    site = result.scalar_one_or_none()
    if not site:
        raise NotFound("Site not found")
    return site


async def create_site(session: AsyncSession, user, data) -> Site:
    require_role(user, MANAGER, "Unauthorized: Only managers can manage sites")
    if await _name_taken(session, data.name):
        raise BusinessRuleViolation("A location with this name already exists")

    site = Site(
        name=data.name.strip(),
        code=data.code,
        address=data.address,
        description=data.description,
        type=data.type,
        created_by=user.id,
    )
    session.add(site)
    await session.flush()
    logger.info("site_created", site_id=str(site.id), name=site.name)
    return site


async def update_site(session: AsyncSession, user, site_id, data) -> Site:
    require_role(user, MANAGER, "Unauthorized: Only managers can manage sites")
    site = await get_site(session, site_id)
    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in updates:
        if await _name_taken(session, updates["name"], exclude_id=site.id):
            raise BusinessRuleViolation("A location with this name already exists")
        updates["name"] = updates["name"].strip()

    for name, value in updates.items():
        setattr(site, name, value)
    site.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("site_updated", site_id=str(site.id), fields=sorted(updates))
    return site


async def deactivate_site(session: AsyncSession, user, site_id) -> Site:
    require_role(user, MANAGER, "Unauthorized: Only managers can manage sites")
    site = await get_site(session, site_id)
    site.is_active = False
    site.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("site_deactivated", site_id=str(site.id))
    return site


async def assign_sites(session: AsyncSession, user, target_user_id, site_ids: list) -> User:
    """Replace the set of sites a site engineer may raise requests for."""
    require_role(user, MANAGER, "Unauthorized: Only managers can assign sites")
    target = await get_user(session, target_user_id)
    if target.role != SITE_ENGINEER:
        raise BusinessRuleViolation("Sites can only be assigned to site engineers")

    sites = await get_active_sites(session, site_ids)

    target.assigned_sites = sites
    target.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("sites_assigned", user_id=str(target.id), site_count=len(sites))
    return target


async def list_sites(session: AsyncSession, user) -> list[Site]:
    """Site engineers see only their assigned sites; other roles see every active site."""
    q = select(Site).where(Site.is_active == True).order_by(Site.name)  # noqa: E712
    if user.role == SITE_ENGINEER:
        ids = user.assigned_site_ids
        if not ids:
            return []
        q = q.where(Site.id.in_(ids))
    result = await session.execute(q)
    return list(result.scalars().all())
