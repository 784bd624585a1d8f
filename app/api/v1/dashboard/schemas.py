from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from app.api.v1.fees.schemas import FeeTransactionResponse


class SystemHealth(BaseModel):
    status: str = "healthy"
    database: str = "connected"
    active_users: int


class RecentActivity(BaseModel):
    id: str
    action: str
    user: str
    time: datetime
    type: str = "success"
    details: Optional[str] = None


class AdminDashboard(BaseModel):
    role: str
    session_id: int
    total_students: int
    total_teachers: int
    total_classes: int
    total_sections: int
    fee_collection_rate: float
    system_health: SystemHealth
    recent_activities: List[RecentActivity]


class ClassOverview(BaseModel):
    id: int
    name: str
    sections_count: int
    students_count: int


class TeacherDashboard(BaseModel):
    role: str
    session_id: int
    total_students: int
    total_classes: int
    classes: List[ClassOverview]


class CollectionTotal(BaseModel):
    date: date
    count: int
    amount: Decimal


class PendingDues(BaseModel):
    amount: Decimal
    count: int
    overdue_count: int
    overdue_amount: Decimal


class MonthlySummary(BaseModel):
    current_month: str
    current_month_amount: Decimal
    previous_month: str
    previous_month_amount: Decimal
    change_percentage: Optional[float] = None


class AccountantDashboard(BaseModel):
    role: str
    session_id: int
    todays_collection: CollectionTotal
    pending_dues: PendingDues
    monthly_summary: MonthlySummary
    recent_transactions: List[FeeTransactionResponse]


class ClassInfo(BaseModel):
    student_id: int
    admission_no: str
    name: str
    class_name: Optional[str] = None
    section_name: Optional[str] = None
    session_id: int
    session_name: Optional[str] = None


class StudentFeeOverview(BaseModel):
    total_due: Decimal
    total_paid: Decimal
    total_remaining: Decimal
    pending_count: int
    partial_count: int
    paid_count: int
    overdue_count: int


class StudentDashboard(BaseModel):
    role: str
    class_info: ClassInfo
    fee_summary: StudentFeeOverview
