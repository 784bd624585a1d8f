from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.api.v1.fees.schemas import FeeTransactionResponse


class NotesUpdate(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class ModeTotal(BaseModel):
    count: int
    amount: Decimal


class DailyCollection(BaseModel):
    date: date
    count: int
    amount: Decimal


class TransactionSummary(BaseModel):
    total_transactions: int
    total_amount: Decimal
    unique_students: int
    payment_mode_breakdown: Dict[str, ModeTotal]
    daily_collection: List[DailyCollection]


class TodayCollection(BaseModel):
    date: date
    total_transactions: int
    total_amount: Decimal
    transactions: List[FeeTransactionResponse]


class MonthlyCollection(TransactionSummary):
    month: str


class ReceiptData(BaseModel):
    """Printable receipt: display-formatted date and payment mode."""

    receipt_no: str
    date: str
    student_name: str
    admission_no: str
    class_name: Optional[str] = None
    section_name: Optional[str] = None
    session_name: Optional[str] = None
    fee_type: str
    fee_group: Optional[str] = None
    amount_paid: Decimal
    payment_mode: str
    reference_no: Optional[str] = None
    notes: Optional[str] = None
    collected_by: Optional[str] = None
