from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    class_id: int


class SectionUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class SectionResponse(BaseModel):
    id: int
    name: str
    class_id: int
    class_name: Optional[str] = None
    session_id: int
    students_count: int = 0
    created_at: datetime
    updated_at: datetime
