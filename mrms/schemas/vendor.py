from typing import Optional
from pydantic import BaseModel, EmailStr, Field

GSTIN_PATTERN = r"^\d{2}[A-Z]{5}\d{4}[A-Z][1-9A-Z]Z[0-9A-Z]$"


class VendorCreate(BaseModel):
    company_name: str = Field(..., min_length=2, max_length=200)
    contact_name: Optional[str] = Field(None, max_length=200)
    email: EmailStr
    phone: str = Field(..., min_length=6, max_length=30)
    gst_number: str = Field(..., pattern=GSTIN_PATTERN)
    address: str = Field(..., min_length=1, max_length=1000)


class VendorUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=2, max_length=200)
    contact_name: Optional[str] = Field(None, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=6, max_length=30)
    gst_number: Optional[str] = Field(None, pattern=GSTIN_PATTERN)
    address: Optional[str] = Field(None, min_length=1, max_length=1000)


class VendorResponse(BaseModel):
    id: str
    company_name: str
    contact_name: Optional[str] = None
    email: str
    phone: str
    gst_number: str
    address: str
    is_active: bool = True
    created_at: str

    model_config = {"from_attributes": True}
