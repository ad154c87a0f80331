import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    Numeric,
    DateTime,
    Text,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mrms.database import Base

CC_STATUSES = ("draft", "cc_pending", "cc_approved", "cc_rejected")

SPLIT_APPROVED_MARKER = "Split Fulfillment Approved"


class CostComparison(Base):
    __tablename__ = "cost_comparisons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("requests.id", ondelete="CASCADE"), nullable=False
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default="draft")
    selected_vendor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vendors.id")
    )
    manager_notes: Mapped[Optional[str]] = mapped_column(Text)
    is_direct_delivery: Mapped[bool] = mapped_column(Boolean, default=False)
    inventory_fulfillment_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    purchase_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    quotes = relationship(
        "VendorQuote",
        order_by="VendorQuote.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("request_id", name="uq_cost_comparison_request"),
        CheckConstraint(
            "status IN ('draft','cc_pending','cc_approved','cc_rejected')",
            name="chk_cc_status",
        ),
        Index("idx_cc_status", "status"),
    )

    @property
    def is_split_approved(self) -> bool:
        return SPLIT_APPROVED_MARKER in (self.manager_notes or "")


class VendorQuote(Base):
    __tablename__ = "vendor_quotes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    cost_comparison_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cost_comparisons.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vendors.id"), nullable=False
    )
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    unit: Mapped[Optional[str]] = mapped_column(String(30))
    discount_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))
    gst_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))

    __table_args__ = (
        UniqueConstraint("cost_comparison_id", "vendor_id", name="uq_quote_vendor"),
        CheckConstraint("unit_price >= 0", name="chk_quote_price"),
    )
