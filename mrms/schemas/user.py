from typing import List, Literal, Optional
from pydantic import BaseModel, Field

Role = Literal["site_engineer", "manager", "purchase_officer"]


class UserCreate(BaseModel):
    # Subject the identity provider puts in this user's tokens; generated when omitted
    user_id: Optional[str] = None
    username: str = Field(..., min_length=1, max_length=100)
    full_name: str = Field(..., min_length=1, max_length=200)
    phone_number: Optional[str] = Field(None, max_length=30)
    role: Role
    assigned_site_ids: List[str] = Field(default_factory=list)


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone_number: Optional[str] = Field(None, max_length=30)
    role: Optional[Role] = None
    assigned_site_ids: Optional[List[str]] = None


class UserResponse(BaseModel):
    id: str
    username: str
    full_name: str
    phone_number: Optional[str] = None
    role: str
    is_active: bool
    assigned_site_ids: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None

    model_config = {"from_attributes": True}
