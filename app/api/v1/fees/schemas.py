from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import PaymentMode


# --- Assignment ---
class FeeAssignRequest(BaseModel):
    class_id: int
    session_id: int
    fee_type_ids: List[int] = Field(..., min_length=1)
    section_id: Optional[int] = None
    due_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)


class FeeAssignResult(BaseModel):
    assigned_count: int
    skipped_count: int
    total_students: int
    errors: List[str] = Field(default_factory=list)


# --- Student fees ---
class StudentFeeResponse(BaseModel):
    id: int
    student_id: int
    student_name: Optional[str] = None
    admission_no: Optional[str] = None
    class_id: Optional[int] = None
    class_name: Optional[str] = None
    section_id: Optional[int] = None
    section_name: Optional[str] = None
    fee_type_id: int
    fee_type_name: Optional[str] = None
    fee_group_id: Optional[int] = None
    fee_group_name: Optional[str] = None
    session_id: int
    amount_due: Decimal
    amount_paid: Decimal
    remaining_amount: Decimal
    payment_percentage: float
    status: str
    due_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime


class StudentBrief(BaseModel):
    id: int
    name: str
    admission_no: str
    class_name: Optional[str] = None
    section_name: Optional[str] = None


class StudentFeeSummary(BaseModel):
    student: StudentBrief
    session_id: int
    total_due: Decimal
    total_paid: Decimal
    total_remaining: Decimal
    pending_count: int
    partial_count: int
    paid_count: int
    overdue_count: int
    fees: List[StudentFeeResponse]


class FeeReportSummary(BaseModel):
    total_students: int
    total_fees_due: Decimal
    total_fees_paid: Decimal
    total_fees_remaining: Decimal
    pending_amount: Decimal
    partial_amount: Decimal
    overdue_amount: Decimal


class FeeReport(BaseModel):
    summary: FeeReportSummary
    items: List[StudentFeeResponse]


class RefreshStatusRequest(BaseModel):
    session_id: int


class RefreshStatusResult(BaseModel):
    checked: int
    updated: int


# --- Collection ---
class PaymentCreate(BaseModel):
    student_id: int
    fee_type_id: int
    session_id: int
    amount_paid: Decimal = Field(..., ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    payment_date: date
    payment_mode: PaymentMode
    notes: Optional[str] = Field(None, max_length=1000)
    reference_no: Optional[str] = Field(None, max_length=255)


class FeeTransactionResponse(BaseModel):
    id: int
    receipt_no: str
    student_id: int
    student_name: Optional[str] = None
    admission_no: Optional[str] = None
    class_name: Optional[str] = None
    section_name: Optional[str] = None
    fee_type_id: int
    fee_type_name: Optional[str] = None
    fee_group_name: Optional[str] = None
    session_id: int
    amount_paid: Decimal
    payment_date: date
    payment_mode: str
    collected_by: Optional[int] = None
    collected_by_name: Optional[str] = None
    notes: Optional[str] = None
    reference_no: Optional[str] = None
    created_at: datetime


class PaymentResult(BaseModel):
    transaction: FeeTransactionResponse
    student_fee: StudentFeeResponse


# --- Invoice / fee split ---
class InvoiceStudent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    admission_no: str
    class_name: Optional[str] = Field(None, alias="class")
    section: Optional[str] = None


class InvoiceLine(BaseModel):
    fee_type: str
    fee_group: str
    amount_due: Decimal
    amount_paid: Decimal
    remaining: Decimal
    status: str
    due_date: Optional[date] = None


class InvoiceTotals(BaseModel):
    total_due: Decimal
    total_paid: Decimal
    total_remaining: Decimal


class Invoice(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invoice_no: str
    invoice_date: date = Field(..., alias="date")
    student: InvoiceStudent
    session: str
    fees: List[InvoiceLine]
    summary: InvoiceTotals


class FeeSplitGroup(BaseModel):
    total_due: Decimal
    total_paid: Decimal
    total_remaining: Decimal
    fee_types: List[InvoiceLine]


class FeeSplit(BaseModel):
    """Same fee lines grouped by fee group name and bucketed by status."""

    student: InvoiceStudent
    session: str
    by_fee_group: Dict[str, FeeSplitGroup]
    by_status: Dict[str, Decimal]
    summary: InvoiceTotals
