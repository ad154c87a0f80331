from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class MaterialItemCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=300)
    description: str = Field(..., min_length=1, max_length=2000)
    specs_brand: Optional[str] = Field(None, max_length=300)
    quantity: int = Field(..., ge=1, le=999999)
    unit: str = Field(..., min_length=1, max_length=30)
    is_urgent: bool = False
    notes: Optional[str] = Field(None, max_length=2000)


class MaterialRequestCreate(MaterialItemCreate):
    site_id: str
    required_by: datetime
    request_number: Optional[str] = Field(None, max_length=20)


class MultipleRequestCreate(BaseModel):
    site_id: str
    required_by: datetime
    items: List[MaterialItemCreate] = Field(..., min_length=1, max_length=100)
    order_note: Optional[str] = Field(None, max_length=2000)


class DraftSendRequest(BaseModel):
    order_note: Optional[str] = Field(None, max_length=2000)


class StatusUpdateRequest(BaseModel):
    status: str
    rejection_reason: Optional[str] = Field(None, max_length=1000)
    direct_action: Optional[Literal["po", "delivery"]] = None


class BulkStatusUpdateRequest(BaseModel):
    request_ids: List[str] = Field(..., max_length=500)
    status: str
    rejection_reason: Optional[str] = Field(None, max_length=1000)


class PurchaseStatusUpdateRequest(BaseModel):
    status: str


class RequestDetailsUpdate(BaseModel):
    item_name: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    specs_brand: Optional[str] = Field(None, max_length=300)
    quantity: Optional[int] = None
    unit: Optional[str] = Field(None, min_length=1, max_length=30)


class SplitDeliveryRequest(BaseModel):
    inventory_quantity: int


class MaterialRequestResponse(BaseModel):
    id: str
    request_number: str
    item_order: Optional[int] = None
    created_by: str
    site_id: str
    item_name: str
    description: str
    specs_brand: Optional[str] = None
    quantity: int
    unit: str
    required_by: str
    is_urgent: bool = False
    notes: Optional[str] = None
    status: str
    direct_action: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    delivery_marked_at: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class RequestGroupResponse(BaseModel):
    request_number: str
    requests: List[MaterialRequestResponse] = []


class BulkUpdateResponse(BaseModel):
    updated_count: int
    updated_ids: List[str] = []
    skipped_ids: List[str] = []


class SplitDeliveryResponse(BaseModel):
    delivered: MaterialRequestResponse
    remaining: MaterialRequestResponse
