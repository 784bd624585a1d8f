from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class FeeMasterCreate(BaseModel):
    fee_group_id: int
    fee_type_id: int
    class_id: int
    session_id: int
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None


class FeeMasterUpdate(BaseModel):
    fee_group_id: Optional[int] = None
    fee_type_id: Optional[int] = None
    class_id: Optional[int] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None


class FeeMasterResponse(BaseModel):
    id: int
    fee_group_id: int
    fee_group_name: Optional[str] = None
    fee_type_id: int
    fee_type_name: Optional[str] = None
    class_id: int
    class_name: Optional[str] = None
    session_id: int
    amount: Decimal
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ClassFeeTypeItem(BaseModel):
    fee_master_id: int
    fee_type_id: int
    fee_type_name: str
    amount: Decimal


class ClassFeeGroupItem(BaseModel):
    fee_group_id: int
    fee_group_name: str
    total_amount: Decimal
    fee_types: List[ClassFeeTypeItem]


class ClassFeeSummary(BaseModel):
    """Price list of one class in one session, grouped by fee group."""

    class_id: int
    class_name: str
    session_id: int
    total_fee_types: int
    total_amount: Decimal
    fee_groups: List[ClassFeeGroupItem]
