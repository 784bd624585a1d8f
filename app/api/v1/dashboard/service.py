"""Per-role dashboard figures, computed from the session's data."""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fee_transactions import service as transaction_service
from app.api.v1.fees import service as fee_service
from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.core.enums import StudentFeeStatus, UserRole, UserStatus
from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import AcademicSession, FeeTransaction, SchoolClass, Section, Student, StudentFee
from app.core.services import to_decimal

from .schemas import (
    AccountantDashboard,
    AdminDashboard,
    ClassInfo,
    ClassOverview,
    CollectionTotal,
    MonthlySummary,
    PendingDues,
    RecentActivity,
    StudentDashboard,
    StudentFeeOverview,
    SystemHealth,
    TeacherDashboard,
)

logger = logging.getLogger(__name__)

Dashboard = Union[AdminDashboard, TeacherDashboard, AccountantDashboard, StudentDashboard]

RECENT_ACTIVITY_LIMIT = 10


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar() or 0


async def _require_session(db: AsyncSession, session_id: Optional[int]) -> AcademicSession:
    if session_id is None:
        raise BusinessRuleError(
            "The session id field is required.",
            errors={"session_id": ["The session id field is required."]},
        )
    session = await db.get(AcademicSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    return session


async def fee_collection_rate(db: AsyncSession, session_id: int) -> float:
    """Collected as a percentage of everything assigned in the session."""
    due, paid = (
        await db.execute(
            select(
                func.coalesce(func.sum(StudentFee.amount_due), 0),
                func.coalesce(func.sum(StudentFee.amount_paid), 0),
            ).where(StudentFee.session_id == session_id)
        )
    ).one()
    due = to_decimal(due)
    if due <= 0:
        return 0.0
    return round(float(to_decimal(paid) / due * 100), 2)


async def recent_activities(
    db: AsyncSession, session_id: int, limit: int = RECENT_ACTIVITY_LIMIT
) -> List[RecentActivity]:
    """Latest admissions and payments in the session, newest first."""
    students = await db.execute(
        select(Student)
        .where(Student.session_id == session_id)
        .order_by(Student.created_at.desc(), Student.id.desc())
        .limit(limit)
    )
    activities = [
        RecentActivity(
            id=f"student-{s.id}",
            action="New student registered",
            user=s.name,
            time=s.created_at,
            details=f"Admission No: {s.admission_no}",
        )
        for s in students.scalars().all()
    ]
    payments = await db.execute(
        select(FeeTransaction, Student.name)
        .join(Student, Student.id == FeeTransaction.student_id)
        .where(FeeTransaction.session_id == session_id)
        .order_by(FeeTransaction.created_at.desc(), FeeTransaction.id.desc())
        .limit(limit)
    )
    activities.extend(
        RecentActivity(
            id=f"payment-{tx.id}",
            action="Fee payment received",
            user=student_name,
            time=tx.created_at,
            details=f"Receipt {tx.receipt_no}: {to_decimal(tx.amount_paid)}",
        )
        for tx, student_name in payments.all()
    )
    activities.sort(key=lambda a: a.time, reverse=True)
    return activities[:limit]


async def admin_dashboard(db: AsyncSession, role: str, session_id: int) -> AdminDashboard:
    return AdminDashboard(
        role=role,
        session_id=session_id,
        total_students=await _count(db, select(func.count(Student.id)).where(Student.session_id == session_id)),
        total_teachers=await _count(
            db,
            select(func.count(User.id)).where(
                User.role == UserRole.TEACHER.value, User.status == UserStatus.ACTIVE.value
            ),
        ),
        total_classes=await _count(
            db, select(func.count(SchoolClass.id)).where(SchoolClass.session_id == session_id)
        ),
        total_sections=await _count(db, select(func.count(Section.id)).where(Section.session_id == session_id)),
        fee_collection_rate=await fee_collection_rate(db, session_id),
        system_health=SystemHealth(
            active_users=await _count(
                db, select(func.count(User.id)).where(User.status == UserStatus.ACTIVE.value)
            ),
        ),
        recent_activities=await recent_activities(db, session_id),
    )


async def teacher_dashboard(db: AsyncSession, role: str, session_id: int) -> TeacherDashboard:
    sections = (
        select(Section.class_id, func.count(Section.id).label("n"))
        .group_by(Section.class_id)
        .subquery()
    )
    students = (
        select(Student.class_id, func.count(Student.id).label("n"))
        .group_by(Student.class_id)
        .subquery()
    )
    result = await db.execute(
        select(SchoolClass.id, SchoolClass.name, sections.c.n, students.c.n)
        .outerjoin(sections, sections.c.class_id == SchoolClass.id)
        .outerjoin(students, students.c.class_id == SchoolClass.id)
        .where(SchoolClass.session_id == session_id)
        .order_by(SchoolClass.name)
    )
    classes = [
        ClassOverview(id=cid, name=name, sections_count=n_sections or 0, students_count=n_students or 0)
        for cid, name, n_sections, n_students in result.all()
    ]
    return TeacherDashboard(
        role=role,
        session_id=session_id,
        total_students=await _count(db, select(func.count(Student.id)).where(Student.session_id == session_id)),
        total_classes=len(classes),
        classes=classes,
    )


async def accountant_dashboard(
    db: AsyncSession, role: str, session_id: int, today: Optional[date] = None
) -> AccountantDashboard:
    today = today or date.today()
    todays = (
        await db.execute(
            select(func.count(FeeTransaction.id), func.coalesce(func.sum(FeeTransaction.amount_paid), 0)).where(
                FeeTransaction.session_id == session_id, FeeTransaction.payment_date == today
            )
        )
    ).one()

    remaining = StudentFee.amount_due - StudentFee.amount_paid
    unpaid = (
        await db.execute(
            select(func.count(StudentFee.id), func.coalesce(func.sum(remaining), 0)).where(
                StudentFee.session_id == session_id, StudentFee.status != StudentFeeStatus.paid.value
            )
        )
    ).one()
    overdue = (
        await db.execute(
            select(func.count(StudentFee.id), func.coalesce(func.sum(remaining), 0)).where(
                StudentFee.session_id == session_id, StudentFee.status == StudentFeeStatus.overdue.value
            )
        )
    ).one()

    month_start = today.replace(day=1)
    next_month = (month_start + timedelta(days=32)).replace(day=1)
    prev_start = transaction_service.previous_month(month_start)
    current_amount = await transaction_service.collected_between(db, session_id, month_start, next_month)
    previous_amount = await transaction_service.collected_between(db, session_id, prev_start, month_start)
    change = None
    if previous_amount > 0:
        change = round(float((current_amount - previous_amount) / previous_amount * 100), 2)

    recent = await transaction_service.list_transactions(db, session_id, 1, 5)
    return AccountantDashboard(
        role=role,
        session_id=session_id,
        todays_collection=CollectionTotal(date=today, count=todays[0] or 0, amount=to_decimal(todays[1])),
        pending_dues=PendingDues(
            amount=to_decimal(unpaid[1]),
            count=unpaid[0] or 0,
            overdue_count=overdue[0] or 0,
            overdue_amount=to_decimal(overdue[1]),
        ),
        monthly_summary=MonthlySummary(
            current_month=f"{month_start:%Y-%m}",
            current_month_amount=current_amount,
            previous_month=f"{prev_start:%Y-%m}",
            previous_month_amount=previous_amount,
            change_percentage=change,
        ),
        recent_transactions=recent.items,
    )


async def student_dashboard(db: AsyncSession, role: str, user_id: int) -> StudentDashboard:
    student = (await db.execute(select(Student).where(Student.user_id == user_id))).scalar_one_or_none()
    if not student:
        raise NotFoundError("Student record not found")
    summary = await fee_service.student_fee_summary(db, student.id, student.session_id)
    session = await db.get(AcademicSession, student.session_id)
    return StudentDashboard(
        role=role,
        class_info=ClassInfo(
            student_id=student.id,
            admission_no=student.admission_no,
            name=student.name,
            class_name=summary.student.class_name,
            section_name=summary.student.section_name,
            session_id=student.session_id,
            session_name=session.name if session else None,
        ),
        fee_summary=StudentFeeOverview(
            total_due=summary.total_due,
            total_paid=summary.total_paid,
            total_remaining=summary.total_remaining,
            pending_count=summary.pending_count,
            partial_count=summary.partial_count,
            paid_count=summary.paid_count,
            overdue_count=summary.overdue_count,
        ),
    )


async def get_dashboard(db: AsyncSession, current_user: CurrentUser, session_id: Optional[int]) -> Dashboard:
    role = current_user.role
    logger.info("Dashboard request for user %s with role %s", current_user.id, role)
    if role == UserRole.STUDENT.value:
        return await student_dashboard(db, role, current_user.id)
    session = await _require_session(db, session_id)
    if role in (UserRole.SUPERADMIN.value, UserRole.ADMIN.value):
        return await admin_dashboard(db, role, session.id)
    if role == UserRole.TEACHER.value:
        return await teacher_dashboard(db, role, session.id)
    if role == UserRole.ACCOUNTANT.value:
        return await accountant_dashboard(db, role, session.id)
    raise BusinessRuleError(f"Invalid role: {role}")
