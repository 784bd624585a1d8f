from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.core.enums import SessionStatus


class SessionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    start_date: date
    end_date: date
    status: SessionStatus = SessionStatus.INACTIVE

    @model_validator(mode="after")
    def check_dates(self) -> "SessionCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class SessionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[SessionStatus] = None


class SessionSwitch(BaseModel):
    session_id: int


class SessionResponse(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date
    status: str
    is_current: bool = Field(False, description="status active and today within the session dates")
    created_at: datetime
    updated_at: datetime


class SessionStats(BaseModel):
    session: SessionResponse
    total_students: int
    total_classes: int
    total_sections: int
    is_active: bool
    days_remaining: int
    progress_percentage: float
