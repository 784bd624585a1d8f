from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FeeGroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    session_id: int
    is_active: bool = True


class FeeGroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class FeeGroupResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    session_id: int
    is_active: bool
    fee_types_count: int = 0
    created_at: datetime
    updated_at: datetime
