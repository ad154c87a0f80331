# mrms/services/vendor_service.py
"""
Vendor master data. Company names are unique among active vendors,
compared case-insensitively.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.errors import BusinessRuleViolation, NotFound
from mrms.models.vendor import Vendor
from mrms.services.lookups import to_uuid
from mrms.services.status_machine import PURCHASE_OFFICER, require_role

logger = structlog.get_logger()


async def _find_by_company_name(session: AsyncSession, company_name: str) -> Optional[Vendor]:
    result = await session.execute(
        select(Vendor).where(
            func.lower(Vendor.company_name) == company_name.strip().lower(),
            Vendor.is_active == True,  # noqa: E712
        )
    )
    return result.scalars().first()


async def get_vendor(session: AsyncSession, vendor_id) -> Vendor:
    result = await session.execute(select(Vendor).where(Vendor.id == to_uuid(vendor_id, "vendor_id")))
    vendor = result.scalar_one_or_none()
    if not vendor:
        raise NotFound("Vendor not found")
    return vendor


async def create_vendor(session: AsyncSession, user, data) -> Vendor:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can manage vendors")
    if await _find_by_company_name(session, data.company_name):
        raise BusinessRuleViolation("Vendor with this company name already exists")

    vendor = Vendor(
        company_name=data.company_name.strip(),
        contact_name=data.contact_name,
        email=str(data.email).lower(),
        phone=data.phone,
        gst_number=data.gst_number,
        address=data.address,
        created_by=user.id,
    )
    session.add(vendor)
    await session.flush()
    logger.info("vendor_created", vendor_id=str(vendor.id), company_name=vendor.company_name)
    return vendor


async def update_vendor(session: AsyncSession, user, vendor_id, data) -> Vendor:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can manage vendors")
    vendor = await get_vendor(session, vendor_id)

    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "company_name" in updates:
        clash = await _find_by_company_name(session, updates["company_name"])
        if clash and clash.id != vendor.id:
            raise BusinessRuleViolation("Vendor with this company name already exists")
        updates["company_name"] = updates["company_name"].strip()
    if "email" in updates:
        updates["email"] = str(updates["email"]).lower()

    for name, value in updates.items():
        setattr(vendor, name, value)
    vendor.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("vendor_updated", vendor_id=str(vendor.id), fields=sorted(updates))
    return vendor


async def deactivate_vendor(session: AsyncSession, user, vendor_id) -> Vendor:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can manage vendors")
    vendor = await get_vendor(session, vendor_id)
    vendor.is_active = False
    vendor.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("vendor_deactivated", vendor_id=str(vendor.id))
    return vendor


async def list_vendors(
    session: AsyncSession, search: Optional[str], page: int, limit: int
) -> tuple[list[Vendor], int]:
    q = select(Vendor).where(Vendor.is_active == True)  # noqa: E712
    count_q = select(func.count(Vendor.id)).where(Vendor.is_active == True)  # noqa: E712
    if search:
        q = q.where(Vendor.company_name.ilike(f"%{search}%"))
        count_q = count_q.where(Vendor.company_name.ilike(f"%{search}%"))

    total = (await session.execute(count_q)).scalar() or 0
    result = await session.execute(
        q.order_by(Vendor.company_name).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total
