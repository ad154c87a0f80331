from typing import List, Optional
from pydantic import BaseModel, Field


class InventoryItemCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = Field(None, max_length=2000)
    hsn_sac_code: Optional[str] = Field(None, max_length=20)
    unit: Optional[str] = Field(None, max_length=30)
    central_stock: int = Field(0, ge=0)
    vendor_ids: List[str] = Field(default_factory=list)


class InventoryItemUpdate(BaseModel):
    item_name: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = Field(None, max_length=2000)
    hsn_sac_code: Optional[str] = Field(None, max_length=20)
    unit: Optional[str] = Field(None, max_length=30)
    central_stock: Optional[int] = Field(None, ge=0)
    vendor_ids: Optional[List[str]] = None


class StockDeductRequest(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=300)
    quantity: int
    reason: Optional[str] = Field(None, max_length=1000)


class VendorLinkRequest(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=300)
    vendor_id: str


class InventoryItemResponse(BaseModel):
    id: str
    item_name: str
    description: Optional[str] = None
    hsn_sac_code: Optional[str] = None
    unit: Optional[str] = None
    central_stock: int
    vendor_ids: List[str] = []
    is_active: bool = True
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}
