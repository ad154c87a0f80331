import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from mrms.database import Base

REQUEST_STATUSES = (
    "draft",
    "pending",
    "approved",
    "rejected",
    "recheck",
    "ready_for_cc",
    "cc_pending",
    "cc_approved",
    "cc_rejected",
    "ready_for_po",
    "pending_po",
    "rejected_po",
    "ready_for_delivery",
    "delivery_stage",
    "delivered",
)

DIRECT_ACTIONS = ("po", "delivery")


def _in_list(column: str, values: tuple) -> str:
    return f"{column} IN (" + ",".join(f"'{v}'" for v in values) + ")"


class MaterialRequest(Base):
    """One line item of a material request; siblings share ``request_number``."""

    __tablename__ = "requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    request_number: Mapped[str] = mapped_column(String(20), nullable=False)
    item_order: Mapped[Optional[int]] = mapped_column(Integer)
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    site_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sites.id"), nullable=False
    )
    item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    specs_brand: Mapped[Optional[str]] = mapped_column(String(300))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)
    required_by: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_urgent: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    direct_action: Mapped[Optional[str]] = mapped_column(String(20))
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    delivery_marked_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_request_qty"),
        CheckConstraint(_in_list("status", REQUEST_STATUSES), name="chk_request_status"),
        CheckConstraint(
            "direct_action IS NULL OR " + _in_list("direct_action", DIRECT_ACTIONS),
            name="chk_request_direct_action",
        ),
        Index("idx_requests_number", "request_number"),
        Index("idx_requests_created_by", "created_by"),
        Index("idx_requests_site", "site_id"),
        Index("idx_requests_status", "status"),
        Index("idx_requests_created_at", "created_at"),
    )
