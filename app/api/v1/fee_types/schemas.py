from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import FeeFrequency


class FeeTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    fee_group_id: int
    session_id: int
    frequency: FeeFrequency = FeeFrequency.ONE_TIME
    due_date: Optional[date] = None
    is_active: bool = True


class FeeTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    fee_group_id: Optional[int] = None
    frequency: Optional[FeeFrequency] = None
    due_date: Optional[date] = None
    is_active: Optional[bool] = None


class FeeTypeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    amount: Decimal
    fee_group_id: int
    fee_group_name: Optional[str] = None
    session_id: int
    frequency: str
    due_date: Optional[date] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
