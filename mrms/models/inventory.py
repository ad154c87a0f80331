import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mrms.database import Base

inventory_vendors = Table(
    "inventory_vendors",
    Base.metadata,
    Column("inventory_id", UUID(as_uuid=True), ForeignKey("inventory.id", ondelete="CASCADE"), primary_key=True),
    Column("vendor_id", UUID(as_uuid=True), ForeignKey("vendors.id", ondelete="CASCADE"), primary_key=True),
)


class InventoryItem(Base):
    __tablename__ = "inventory"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    hsn_sac_code: Mapped[Optional[str]] = mapped_column(String(20))
    unit: Mapped[Optional[str]] = mapped_column(String(30))
    central_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    vendors = relationship("Vendor", secondary=inventory_vendors, lazy="selectin")

    __table_args__ = (
        CheckConstraint("central_stock >= 0", name="chk_inventory_stock"),
        Index("idx_inventory_item_name", "item_name"),
        Index("idx_inventory_active", "is_active"),
    )
