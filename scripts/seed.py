"""
Seed script for MRMS: a manager, a purchase officer, a site engineer, two sites,
two vendors and a little central stock.
Run from the project root: python -m scripts.seed
"""
import asyncio
import sys
import os
import uuid

# Ensure the project root is on sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from mrms.database import AsyncSessionLocal, engine
from mrms.models.user import User
from mrms.models.site import Site
from mrms.models.vendor import Vendor
from mrms.models.inventory import InventoryItem

# ---------- Fixed UUIDs ----------
# Token subjects issued by the identity provider must match these ids.

USER_MANAGER_ID = uuid.UUID("a0000000-0000-0000-0000-000000000101")
USER_PURCHASE_ID = uuid.UUID("a0000000-0000-0000-0000-000000000102")
USER_ENGINEER_ID = uuid.UUID("a0000000-0000-0000-0000-000000000103")

SITE_TOWER_ID = uuid.UUID("c0000000-0000-0000-0000-000000000001")
SITE_STORE_ID = uuid.UUID("c0000000-0000-0000-0000-000000000002")

VENDOR_ALPHA_ID = uuid.UUID("e0000000-0000-0000-0000-000000000001")
VENDOR_BETA_ID = uuid.UUID("e0000000-0000-0000-0000-000000000002")


async def seed():
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.id == USER_MANAGER_ID))
        if result.scalar_one_or_none():
            print("Seed data already exists. Skipping.")
            return

        # --- Users ---
        manager = User(id=USER_MANAGER_ID, username="manager", full_name="Site Manager", role="manager")
        db.add(manager)
        await db.flush()

        purchase = User(
            id=USER_PURCHASE_ID, username="purchase", full_name="Purchase Officer",
            role="purchase_officer", created_by=manager.id,
        )
        engineer = User(
            id=USER_ENGINEER_ID, username="engineer", full_name="Site Engineer",
            role="site_engineer", created_by=manager.id,
        )
        db.add_all([purchase, engineer])
        await db.flush()

        # --- Sites ---
        tower = Site(id=SITE_TOWER_ID, name="Tower A", code="TWR-A", type="site", created_by=manager.id)
        store = Site(id=SITE_STORE_ID, name="Central Store", code="STORE", type="inventory", created_by=manager.id)
        db.add_all([tower, store])
        await db.flush()
        engineer.assigned_sites = [tower]

        # --- Vendors ---
        vendors = [
            Vendor(id=VENDOR_ALPHA_ID, company_name="Alpha Building Supplies", contact_name="R. Mehta",
                   email="sales@alphabuild.in", phone="9800000001", gst_number="27AAPFU0939F1ZV",
                   address="Plot 12, MIDC, Pune", created_by=purchase.id),
            Vendor(id=VENDOR_BETA_ID, company_name="Beta Steel Traders", contact_name="S. Iyer",
                   email="orders@betasteel.in", phone="9800000002", gst_number="29AABCT1332L1ZT",
                   address="44 Industrial Area, Bengaluru", created_by=purchase.id),
        ]
        db.add_all(vendors)
        await db.flush()

        # --- Central stock ---
        db.add_all([
            InventoryItem(item_name="Cement Bag", unit="bags", central_stock=200,
                          created_by=purchase.id, vendors=[vendors[0]]),
            InventoryItem(item_name="TMT Bar 12mm", unit="pcs", central_stock=500,
                          created_by=purchase.id, vendors=[vendors[1]]),
        ])
        await db.commit()

    await engine.dispose()
    print("Seed data inserted successfully!")
    print("  Users: 3 (manager, purchase, engineer)")
    print("  Sites: 2")
    print("  Vendors: 2")
    print("  Inventory items: 2")


if __name__ == "__main__":
    asyncio.run(seed())
