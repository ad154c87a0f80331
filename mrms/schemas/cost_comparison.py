from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class VendorQuoteInput(BaseModel):
    vendor_id: str
    unit_price: Decimal = Field(..., ge=0)
    amount: Optional[Decimal] = Field(None, ge=0)
    unit: Optional[str] = Field(None, max_length=30)
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    gst_percent: Optional[Decimal] = Field(None, ge=0, le=100)


class CostComparisonUpsert(BaseModel):
    request_id: str
    vendor_quotes: List[VendorQuoteInput] = Field(default_factory=list, max_length=20)
    is_direct_delivery: bool = False
    inventory_fulfillment_quantity: Optional[int] = Field(None, ge=0)
    purchase_quantity: Optional[int] = Field(None, ge=0)


class CostComparisonResubmit(BaseModel):
    vendor_quotes: List[VendorQuoteInput] = Field(..., max_length=20)
    is_direct_delivery: bool = False


class CostComparisonReview(BaseModel):
    action: Literal["approve", "reject"]
    selected_vendor_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)


class SplitFulfillmentApproval(BaseModel):
    inventory_quantity: int
    notes: Optional[str] = Field(None, max_length=2000)


class VendorQuoteResponse(BaseModel):
    vendor_id: str
    unit_price: Decimal
    amount: Optional[Decimal] = None
    unit: Optional[str] = None
    discount_percent: Optional[Decimal] = None
    gst_percent: Optional[Decimal] = None


class CostComparisonResponse(BaseModel):
    id: str
    request_id: str
    created_by: str
    status: str
    vendor_quotes: List[VendorQuoteResponse] = []
    selected_vendor_id: Optional[str] = None
    manager_notes: Optional[str] = None
    is_direct_delivery: bool = False
    inventory_fulfillment_quantity: Optional[int] = None
    purchase_quantity: Optional[int] = None
    is_split_approved: bool = False
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    rejected_at: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}
