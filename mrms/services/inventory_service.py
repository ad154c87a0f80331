"""
Central inventory — stock lookups and counter changes.

Item names are matched case-insensitively with runs of whitespace collapsed,
so "Cement  Bag" and "cement bag" are the same item. Every read that precedes
a stock change locks the row (SELECT ... FOR UPDATE).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.errors import BusinessRuleViolation, NotFound, ValidationError
from mrms.models.inventory import InventoryItem
from mrms.services.lookups import get_active_vendor, get_active_vendors, to_uuid
from mrms.services.status_machine import PURCHASE_OFFICER, require_role

logger = structlog.get_logger()


def normalize_item_name(name: str) -> str:
    return " ".join((name or "").split()).lower()


def _normalized_name_column():
    return func.lower(func.regexp_replace(func.trim(InventoryItem.item_name), r"\s+", " ", "g"))


async def find_item_by_name(
    session: AsyncSession, item_name: str, for_update: bool = False
) -> Optional[InventoryItem]:
    q = (
        select(InventoryItem)
        .where(
            InventoryItem.is_active == True,  # noqa: E712
            _normalized_name_column() == normalize_item_name(item_name),
        )
        .order_by(InventoryItem.created_at)
        .limit(1)
    )
    if for_update:
        q = q.with_for_update()
    result = await session.execute(q)
    return result.scalars().first()


async def get_item(session: AsyncSession, item_id) -> InventoryItem:
    result = await session.execute(
        select(InventoryItem).where(InventoryItem.id == to_uuid(item_id, "item_id"))
    )
    item = result.scalar_one_or_none()
    if not item or not item.is_active:
        raise NotFound("Inventory item not found")
    return item


async def take_stock(session: AsyncSession, item_name: str, quantity: int) -> InventoryItem:
    """Decrement stock for a split delivery. Nothing changes when stock is short."""
    item = await find_item_by_name(session, item_name, for_update=True)
    if not item or item.central_stock < quantity:
        raise BusinessRuleViolation("Insufficient inventory")
    item.central_stock -= quantity
    item.updated_at = datetime.utcnow()
    logger.info(
        "inventory_deducted",
        item_id=str(item.id),
        quantity=quantity,
        remaining=item.central_stock,
    )
    return item


async def receive_stock(
    session: AsyncSession, user, item_name: str, quantity: int, unit: Optional[str] = None
) -> InventoryItem:
    """Add delivered quantity to the matching item, creating the item when none matches."""
    item = await find_item_by_name(session, item_name, for_update=True)
    if item:
        item.central_stock += quantity
        item.updated_at = datetime.utcnow()
        logger.info(
            "inventory_received",
            item_id=str(item.id),
            quantity=quantity,
            stock=item.central_stock,
        )
        return item

    item = InventoryItem(
        item_name=" ".join(item_name.split()),
        unit=unit,
        central_stock=quantity,
        created_by=user.id,
    )
    session.add(item)
    logger.info("inventory_item_created_from_delivery", item_name=item.item_name, quantity=quantity)
    return item


async def deduct_inventory_stock_by_name(
    session: AsyncSession, user, item_name: str, quantity: int, reason: Optional[str] = None
) -> InventoryItem:
    require_role(user, PURCHASE_OFFICER, "Unauthorized: Only purchase officers can deduct inventory")
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")

    item = await find_item_by_name(session, item_name, for_update=True)
    if not item:
        raise NotFound(f"Inventory item not found: {item_name}")
    if item.central_stock < quantity:
        raise BusinessRuleViolation(
            f"Insufficient stock for {item.item_name}: "
            f"available {item.central_stock}, requested {quantity}"
        )

    item.central_stock -= quantity
    item.updated_at = datetime.utcnow()
    await session.flush()
    logger.info(
        "inventory_deducted",
        item_id=str(item.id),
        quantity=quantity,
        remaining=item.central_stock,
        reason=reason,
        user_id=str(user.id),
    )
    return item


async def create_item(session: AsyncSession, user, data) -> InventoryItem:
    require_role(user, PURCHASE_OFFICER)
    if await find_item_by_name(session, data.item_name):
        raise BusinessRuleViolation(f"Inventory item already exists: {data.item_name}")

    vendors = await get_active_vendors(session, data.vendor_ids)
    item = InventoryItem(
        item_name=" ".join(data.item_name.split()),
        description=data.description,
        hsn_sac_code=data.hsn_sac_code,
        unit=data.unit,
        central_stock=data.central_stock,
        created_by=user.id,
        vendors=list(vendors.values()),
    )
    session.add(item)
    await session.flush()
    logger.info("inventory_item_created", item_id=str(item.id), item_name=item.item_name)
    return item


async def update_item(session: AsyncSession, user, item_id, data) -> InventoryItem:
    require_role(user, PURCHASE_OFFICER)
    item = await get_item(session, item_id)

    updates = data.model_dump(exclude_unset=True)
    vendor_ids = updates.pop("vendor_ids", None)
    if "item_name" in updates and normalize_item_name(updates["item_name"]) != normalize_item_name(item.item_name):
        clash = await find_item_by_name(session, updates["item_name"])
        if clash and clash.id != item.id:
            raise BusinessRuleViolation(f"Inventory item already exists: {updates['item_name']}")
        updates["item_name"] = " ".join(updates["item_name"].split())
    if vendor_ids is not None:
        vendors = await get_active_vendors(session, vendor_ids)
        item.vendors = list(vendors.values())

    for field, value in updates.items():
        setattr(item, field, value)
    item.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("inventory_item_updated", item_id=str(item.id), fields=sorted(updates))
    return item


async def deactivate_item(session: AsyncSession, user, item_id) -> InventoryItem:
    require_role(user, PURCHASE_OFFICER)
    item = await get_item(session, item_id)
    item.is_active = False
    item.updated_at = datetime.utcnow()
    await session.flush()
    logger.info("inventory_item_deactivated", item_id=str(item.id))
    return item


async def link_vendor_to_item(session: AsyncSession, user, item_name: str, vendor_id) -> InventoryItem:
    require_role(user, PURCHASE_OFFICER)
    item = await find_item_by_name(session, item_name)
    if not item:
        raise NotFound(f"Inventory item not found: {item_name}")
    vendor = await get_active_vendor(session, vendor_id)
    if all(v.id != vendor.id for v in item.vendors):
        item.vendors.append(vendor)
        item.updated_at = datetime.utcnow()
        await session.flush()
        logger.info("inventory_vendor_linked", item_id=str(item.id), vendor_id=str(vendor.id))
    return item


async def list_items(
    session: AsyncSession, search: Optional[str], page: int, limit: int
) -> tuple[list[InventoryItem], int]:
    q = select(InventoryItem).where(InventoryItem.is_active == True)  # noqa: E712
    count_q = select(func.count(InventoryItem.id)).where(InventoryItem.is_active == True)  # noqa: E712
    if search:
        pattern = f"%{normalize_item_name(search)}%"
        q = q.where(_normalized_name_column().like(pattern))
        count_q = count_q.where(_normalized_name_column().like(pattern))

    total = (await session.execute(count_q)).scalar() or 0
    result = await session.execute(
        q.order_by(InventoryItem.item_name).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total
