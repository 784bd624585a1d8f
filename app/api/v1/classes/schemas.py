from datetime import datetime

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    session_id: int


class ClassUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class ClassResponse(BaseModel):
    id: int
    name: str
    session_id: int
    sections_count: int = 0
    students_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
