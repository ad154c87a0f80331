from typing import Optional
from pydantic import BaseModel, Field


class NoteCreate(BaseModel):
    content: str = Field(..., max_length=5000)


class NoteResponse(BaseModel):
    id: str
    request_number: str
    user_id: str
    role: str
    status: Optional[str] = None
    type: str
    content: str
    created_at: str

    model_config = {"from_attributes": True}
