from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class PurchaseOrderCreate(BaseModel):
    request_id: str
    vendor_id: Optional[str] = None
    unit_rate: Optional[Decimal] = Field(None, gt=0)
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    gst_percent: Optional[Decimal] = None
    hsn_sac_code: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=2000)
    expected_delivery_date: Optional[datetime] = None


class DirectPurchaseOrderCreate(BaseModel):
    item_description: str = Field(..., min_length=1, max_length=2000)
    hsn_sac_code: Optional[str] = Field(None, max_length=20)
    quantity: int = Field(..., gt=0)
    unit: str = Field(..., min_length=1, max_length=30)
    delivery_site_id: str
    vendor_id: str
    unit_rate: Decimal = Field(..., gt=0)
    per_unit_basis: Optional[int] = Field(None, gt=0)
    per_unit_basis_unit: Optional[str] = Field(None, max_length=30)
    gst_percent: Decimal = Field(..., ge=0, le=100)
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    valid_till: datetime
    notes: Optional[str] = Field(None, max_length=2000)


class PurchaseOrderReject(BaseModel):
    reason: str = Field(..., max_length=1000)


class PurchaseOrderResponse(BaseModel):
    id: str
    po_number: str
    request_id: Optional[str] = None
    delivery_site_id: Optional[str] = None
    is_direct: bool = False
    vendor_id: str
    created_by: str
    item_description: str
    quantity: int
    unit: str
    hsn_sac_code: Optional[str] = None
    unit_rate: Decimal
    per_unit_basis: Optional[int] = None
    per_unit_basis_unit: Optional[str] = None
    discount_percent: Decimal
    gst_percent: Decimal
    total_amount: Decimal
    notes: Optional[str] = None
    status: str
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    expected_delivery_date: Optional[str] = None
    valid_till: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}
