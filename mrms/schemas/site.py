from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class SiteCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    code: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=1000)
    description: Optional[str] = Field(None, max_length=2000)
    type: Literal["site", "inventory", "other"] = "site"


class SiteUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=1000)
    description: Optional[str] = Field(None, max_length=2000)
    type: Optional[Literal["site", "inventory", "other"]] = None


class SiteAssignmentRequest(BaseModel):
    site_ids: List[str] = Field(default_factory=list)


class SiteResponse(BaseModel):
    id: str
    name: str
    code: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    type: str
    is_active: bool = True
    created_at: str

    model_config = {"from_attributes": True}
