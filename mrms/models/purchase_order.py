import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    String,
    Integer,
    Numeric,
    DateTime,
    Text,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from mrms.database import Base


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    po_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    # None for direct POs, which are raised without a material request
    request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("requests.id")
    )
    delivery_site_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sites.id")
    )
    is_direct: Mapped[bool] = mapped_column(Boolean, default=False)
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vendors.id"), nullable=False
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    item_description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)
    hsn_sac_code: Mapped[Optional[str]] = mapped_column(String(20))
    unit_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    # unit_rate is quoted per this many units (e.g. per 1000 bricks)
    per_unit_basis: Mapped[Optional[int]] = mapped_column(Integer)
    per_unit_basis_unit: Mapped[Optional[str]] = mapped_column(String(30))
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    gst_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(30), default="pending_approval")
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    expected_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    valid_till: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_po_qty"),
        CheckConstraint("unit_rate > 0", name="chk_po_rate"),
        CheckConstraint("gst_percent >= 0 AND gst_percent <= 100", name="chk_po_gst"),
        CheckConstraint(
            "request_id IS NOT NULL OR delivery_site_id IS NOT NULL",
            name="chk_po_destination",
        ),
        CheckConstraint("per_unit_basis IS NULL OR per_unit_basis > 0", name="chk_po_basis"),
        CheckConstraint(
            "status IN ('pending_approval','ordered','rejected','cancelled','delivered')",
            name="chk_po_status",
        ),
        Index("idx_po_request", "request_id"),
        Index("idx_po_vendor", "vendor_id"),
        Index("idx_po_status", "status"),
        Index("idx_po_is_direct", "is_direct"),
    )
