"""
Shared row lookups used by the workflow services.

Every helper issues exactly one query. ``for_update`` variants lock the row
for the rest of the caller's transaction.
"""

from typing import Iterable, Optional, Union
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mrms.errors import NotFound, Unauthorized, ValidationError
from mrms.models.cost_comparison import CostComparison
from mrms.models.request import MaterialRequest
from mrms.models.site import Site
from mrms.models.user import User
from mrms.models.vendor import Vendor


def to_uuid(value: Union[str, uuid.UUID, None], field_name: str = "id") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise ValidationError(f"{field_name} must be a valid UUID")


async def get_request(
    session: AsyncSession, request_id, for_update: bool = False
) -> MaterialRequest:
    q = select(MaterialRequest).where(MaterialRequest.id == to_uuid(request_id, "request_id"))
    if for_update:
        q = q.with_for_update()
    result = await session.execute(q)
    request = result.scalar_one_or_none()
    if not request:
        raise NotFound("Request not found")
    return request


async def get_request_group(session: AsyncSession, request_number: str) -> list[MaterialRequest]:
    """All sibling line items sharing ``request_number``, in item order."""
    result = await session.execute(
        select(MaterialRequest)
        .where(MaterialRequest.request_number == request_number)
        .order_by(MaterialRequest.item_order, MaterialRequest.created_at)
    )
    return list(result.scalars().all())


async def find_cost_comparison(session: AsyncSession, request_id) -> Optional[CostComparison]:
    result = await session.execute(
        select(CostComparison).where(
            CostComparison.request_id == to_uuid(request_id, "request_id")
        )
    )
    return result.scalar_one_or_none()


async def get_cost_comparison(session: AsyncSession, request_id) -> CostComparison:
    cc = await find_cost_comparison(session, request_id)
    if not cc:
        raise NotFound("Cost comparison not found")
    return cc


async def get_active_vendors(session: AsyncSession, vendor_ids: Iterable) -> dict:
    """Map of vendor id → Vendor; raises NotFound naming the first missing or inactive id."""
    ids = [to_uuid(v, "vendor_id") for v in vendor_ids]
    if not ids:
        return {}
    result = await session.execute(
        select(Vendor).where(Vendor.id.in_(ids), Vendor.is_active == True)  # noqa: E712
    )
    vendors = {v.id: v for v in result.scalars().all()}
    for vid in ids:
        if vid not in vendors:
            raise NotFound(f"Vendor not found or inactive: {vid}")
    return vendors


async def get_active_vendor(session: AsyncSession, vendor_id) -> Vendor:
    vendors = await get_active_vendors(session, [vendor_id])
    return vendors[to_uuid(vendor_id, "vendor_id")]


async def get_user(session: AsyncSession, user_id) -> User:
    result = await session.execute(select(User).where(User.id == to_uuid(user_id, "user_id")))
    target = result.scalar_one_or_none()
    if not target:
        raise NotFound("User not found")
    return target


async def get_active_site(session: AsyncSession, site_id) -> Site:
    result = await session.execute(select(Site).where(Site.id == to_uuid(site_id, "site_id")))
    site = result.scalar_one_or_none()
    if not site or not site.is_active:
        raise NotFound("Site not found or inactive")
    return site


async def get_active_sites(session: AsyncSession, site_ids: Iterable) -> list[Site]:
    """Active sites in request order, duplicates dropped; raises NotFound naming the first missing id."""
    ids = list(dict.fromkeys(to_uuid(s, "site_id") for s in site_ids))
    if not ids:
        return []
    result = await session.execute(
        select(Site).where(Site.id.in_(ids), Site.is_active == True)  # noqa: E712
    )
    sites = {s.id: s for s in result.scalars().all()}
    for sid in ids:
        if sid not in sites:
            raise NotFound(f"Site not found or inactive: {sid}")
    return [sites[sid] for sid in ids]


async def get_assigned_site(session: AsyncSession, user, site_id) -> Site:
    """Active site the user is assigned to."""
    site = await get_active_site(session, site_id)
    if site.id not in user.assigned_site_ids:
        raise Unauthorized("Unauthorized: Site is not assigned to you")
    return site
