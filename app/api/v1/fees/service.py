"""Fees service: assignment of class fees to students, student fee rows, and payment collection.

StudentFee.amount_paid is only ever changed by collect_payment, in the same
transaction that writes the FeeTransaction row.
"""

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from fastapi import status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fee_transactions import service as transaction_service
from app.core.config import settings
from app.core.enums import StudentFeeStatus
from app.core.exceptions import BusinessRuleError, NotFoundError, ServiceError
from app.core.models import (
    AcademicSession,
    FeeGroup,
    FeeMaster,
    FeeTransaction,
    FeeType,
    SchoolClass,
    Section,
    Student,
    StudentFee,
)
from app.core.schemas import Page
from app.core.services import build_page, paginate_rows, to_decimal

from .accounting import derive_status, next_receipt_no, payment_percentage, receipt_prefix
from .schemas import (
    FeeAssignRequest,
    FeeAssignResult,
    FeeReport,
    FeeReportSummary,
    PaymentCreate,
    PaymentResult,
    RefreshStatusResult,
    StudentBrief,
    StudentFeeResponse,
    StudentFeeSummary,
)

logger = logging.getLogger(__name__)


def _student_fee_select():
    return (
        select(
            StudentFee,
            Student,
            SchoolClass.name,
            Section.name,
            FeeType.name,
            FeeGroup.id,
            FeeGroup.name,
        )
        .join(Student, Student.id == StudentFee.student_id)
        .join(SchoolClass, SchoolClass.id == Student.class_id)
        .join(Section, Section.id == Student.section_id)
        .join(FeeType, FeeType.id == StudentFee.fee_type_id)
        .join(FeeGroup, FeeGroup.id == FeeType.fee_group_id)
    )


def _to_response(row) -> StudentFeeResponse:
    sf, student, class_name, section_name, fee_type_name, fee_group_id, fee_group_name = row
    due = to_decimal(sf.amount_due)
    paid = to_decimal(sf.amount_paid)
    return StudentFeeResponse(
        id=sf.id,
        student_id=sf.student_id,
        student_name=student.name,
        admission_no=student.admission_no,
        class_id=student.class_id,
        class_name=class_name,
        section_id=student.section_id,
        section_name=section_name,
        fee_type_id=sf.fee_type_id,
        fee_type_name=fee_type_name,
        fee_group_id=fee_group_id,
        fee_group_name=fee_group_name,
        session_id=sf.session_id,
        amount_due=due,
        amount_paid=paid,
        remaining_amount=due - paid,
        payment_percentage=payment_percentage(due, paid),
        status=sf.status,
        due_date=sf.due_date,
        notes=sf.notes,
        created_at=sf.created_at,
    )


async def get_student_fee(db: AsyncSession, student_fee_id: int) -> StudentFeeResponse:
    result = await db.execute(_student_fee_select().where(StudentFee.id == student_fee_id))
    row = result.first()
    if not row:
        raise NotFoundError("Student fee not found")
    return _to_response(row)


# --- Assignment ---
async def assign_fees(db: AsyncSession, payload: FeeAssignRequest) -> FeeAssignResult:
    """Create one StudentFee per (student, fee master row) pair not already assigned."""
    if not await db.get(AcademicSession, payload.session_id):
        raise NotFoundError("Session not found")
    school_class = await db.get(SchoolClass, payload.class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    if payload.section_id is not None:
        section = await db.get(Section, payload.section_id)
        if not section:
            raise NotFoundError("Section not found")
        if section.class_id != school_class.id:
            raise BusinessRuleError("Section does not belong to the selected class")
    fee_type_ids = list(dict.fromkeys(payload.fee_type_ids))
    found = (await db.execute(select(FeeType.id).where(FeeType.id.in_(fee_type_ids)))).scalars().all()
    missing = sorted(set(fee_type_ids) - set(found))
    if missing:
        raise NotFoundError(f"Fee type not found: {', '.join(str(i) for i in missing)}")
    if payload.due_date is not None and payload.due_date < date.today():
        raise BusinessRuleError(
            "The due date must be today or later",
            errors={"due_date": ["The due date must be today or later."]},
        )

    stmt = select(Student).where(
        Student.class_id == payload.class_id,
        Student.session_id == payload.session_id,
    )
    if payload.section_id is not None:
        stmt = stmt.where(Student.section_id == payload.section_id)
    students = (await db.execute(stmt.order_by(Student.name, Student.id))).scalars().all()
    if not students:
        raise BusinessRuleError("No students found in the specified class and section")

    result = await db.execute(
        select(FeeMaster, FeeType.name)
        .join(FeeType, FeeType.id == FeeMaster.fee_type_id)
        .where(
            FeeMaster.class_id == payload.class_id,
            FeeMaster.session_id == payload.session_id,
            FeeMaster.fee_type_id.in_(fee_type_ids),
        )
        .order_by(FeeType.name)
    )
    masters = result.all()
    if not masters:
        raise BusinessRuleError("No fee master entries found for the specified fee types and class")

    existing = await db.execute(
        select(StudentFee.student_id, StudentFee.fee_type_id).where(
            StudentFee.session_id == payload.session_id,
            StudentFee.student_id.in_([s.id for s in students]),
            StudentFee.fee_type_id.in_([fm.fee_type_id for fm, _ in masters]),
        )
    )
    assigned_pairs = {(student_id, fee_type_id) for student_id, fee_type_id in existing.all()}

    assigned = 0
    errors: List[str] = []
    try:
        for student in students:
            for fm, fee_type_name in masters:
                if (student.id, fm.fee_type_id) in assigned_pairs:
                    errors.append(f"Fee type '{fee_type_name}' already assigned to student '{student.name}'")
                    continue
                db.add(
                    StudentFee(
                        student_id=student.id,
                        fee_type_id=fm.fee_type_id,
                        session_id=payload.session_id,
                        amount_due=fm.amount,
                        amount_paid=Decimal("0"),
                        status=StudentFeeStatus.pending.value,
                        due_date=payload.due_date,
                        notes=payload.notes,
                    )
                )
                assigned_pairs.add((student.id, fm.fee_type_id))
                assigned += 1
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Fee assignment for class %s aborted", payload.class_id)
        raise

    logger.info(
        "Assigned %s fee rows to class %s (session %s), %s skipped",
        assigned, payload.class_id, payload.session_id, len(errors),
    )
    return FeeAssignResult(
        assigned_count=assigned,
        skipped_count=len(errors),
        total_students=len(students),
        errors=errors,
    )


# --- Student fees ---
async def list_student_fees(
    db: AsyncSession,
    session_id: int,
    page: int,
    page_size: int,
    student_id: Optional[int] = None,
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    fee_type_id: Optional[int] = None,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> Page[StudentFeeResponse]:
    stmt = _student_fee_select().where(StudentFee.session_id == session_id)
    if student_id is not None:
        stmt = stmt.where(StudentFee.student_id == student_id)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    if section_id is not None:
        stmt = stmt.where(Student.section_id == section_id)
    if fee_type_id is not None:
        stmt = stmt.where(StudentFee.fee_type_id == fee_type_id)
    if status_filter:
        stmt = stmt.where(StudentFee.status == status_filter)
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Student.name).like(like),
                func.lower(Student.admission_no).like(like),
                func.lower(FeeType.name).like(like),
            )
        )
    stmt = stmt.order_by(Student.name, FeeType.name, StudentFee.id)
    rows, total = await paginate_rows(db, stmt, page, page_size)
    return build_page(StudentFeeResponse, [_to_response(r) for r in rows], total, page, page_size)


async def remove_fee_assignment(db: AsyncSession, student_fee_id: int) -> None:
    sf = await db.get(StudentFee, student_fee_id)
    if not sf:
        raise NotFoundError("Student fee not found")
    paid = to_decimal(sf.amount_paid) > 0
    if not paid:
        tx = await db.execute(
            select(FeeTransaction.id)
            .where(
                FeeTransaction.student_id == sf.student_id,
                FeeTransaction.fee_type_id == sf.fee_type_id,
                FeeTransaction.session_id == sf.session_id,
            )
            .limit(1)
        )
        paid = tx.scalar_one_or_none() is not None
    if paid:
        logger.warning("Refused to remove student fee %s: payments recorded", student_fee_id)
        raise BusinessRuleError("Cannot remove fee assignment. It has payments.")
    await db.delete(sf)
    await db.commit()
    logger.info("Student fee %s removed", student_fee_id)


async def student_fee_summary(db: AsyncSession, student_id: int, session_id: int) -> StudentFeeSummary:
    result = await db.execute(
        select(Student, SchoolClass.name, Section.name)
        .join(SchoolClass, SchoolClass.id == Student.class_id)
        .join(Section, Section.id == Student.section_id)
        .where(Student.id == student_id)
    )
    row = result.first()
    if not row:
        raise NotFoundError("Student not found")
    student, class_name, section_name = row

    fees_result = await db.execute(
        _student_fee_select()
        .where(StudentFee.student_id == student_id, StudentFee.session_id == session_id)
        .order_by(FeeGroup.name, FeeType.name)
    )
    fees = [_to_response(r) for r in fees_result.all()]
    counts = {s.value: 0 for s in StudentFeeStatus}
    for fee in fees:
        counts[fee.status] = counts.get(fee.status, 0) + 1
    total_due = sum((f.amount_due for f in fees), Decimal("0"))
    total_paid = sum((f.amount_paid for f in fees), Decimal("0"))
    return StudentFeeSummary(
        student=StudentBrief(
            id=student.id,
            name=student.name,
            admission_no=student.admission_no,
            class_name=class_name,
            section_name=section_name,
        ),
        session_id=session_id,
        total_due=total_due,
        total_paid=total_paid,
        total_remaining=total_due - total_paid,
        pending_count=counts[StudentFeeStatus.pending.value],
        partial_count=counts[StudentFeeStatus.partial.value],
        paid_count=counts[StudentFeeStatus.paid.value],
        overdue_count=counts[StudentFeeStatus.overdue.value],
        fees=fees,
    )


async def fee_reports(
    db: AsyncSession,
    session_id: int,
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    status_filter: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> FeeReport:
    """Outstanding-fee report. date_from/date_to bound the assignment date."""
    stmt = _student_fee_select().where(StudentFee.session_id == session_id)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    if section_id is not None:
        stmt = stmt.where(Student.section_id == section_id)
    if status_filter:
        stmt = stmt.where(StudentFee.status == status_filter)
    if date_from is not None:
        stmt = stmt.where(StudentFee.created_at >= datetime.combine(date_from, time.min))
    if date_to is not None:
        stmt = stmt.where(StudentFee.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
    result = await db.execute(stmt.order_by(SchoolClass.name, Student.name, FeeType.name))
    items = [_to_response(r) for r in result.all()]

    def remaining_with(status_value: str) -> Decimal:
        return sum((i.remaining_amount for i in items if i.status == status_value), Decimal("0"))

    total_due = sum((i.amount_due for i in items), Decimal("0"))
    total_paid = sum((i.amount_paid for i in items), Decimal("0"))
    summary = FeeReportSummary(
        total_students=len({i.student_id for i in items}),
        total_fees_due=total_due,
        total_fees_paid=total_paid,
        total_fees_remaining=total_due - total_paid,
        pending_amount=remaining_with(StudentFeeStatus.pending.value),
        partial_amount=remaining_with(StudentFeeStatus.partial.value),
        overdue_amount=remaining_with(StudentFeeStatus.overdue.value),
    )
    return FeeReport(summary=summary, items=items)


async def refresh_statuses(db: AsyncSession, session_id: int, today: Optional[date] = None) -> RefreshStatusResult:
    """Re-derive status on every fee row of the session; this is how unpaid rows become overdue."""
    if not await db.get(AcademicSession, session_id):
        raise NotFoundError("Session not found")
    today = today or date.today()
    rows = (await db.execute(select(StudentFee).where(StudentFee.session_id == session_id))).scalars().all()
    updated = 0
    for sf in rows:
        new_status = derive_status(
            to_decimal(sf.amount_due),
            to_decimal(sf.amount_paid),
            sf.due_date,
            today,
            settings.fee_overdue_after_partial,
        ).value
        if sf.status != new_status:
            sf.status = new_status
            updated += 1
    await db.commit()
    logger.info("Fee status refresh for session %s: %s checked, %s updated", session_id, len(rows), updated)
    return RefreshStatusResult(checked=len(rows), updated=updated)


# --- Collection ---
async def collect_payment(db: AsyncSession, payload: PaymentCreate, collected_by: Optional[int]) -> PaymentResult:
    """Record a payment against one student fee row and update its running total and status."""
    if not await db.get(Student, payload.student_id):
        raise NotFoundError("Student not found")
    if not await db.get(FeeType, payload.fee_type_id):
        raise NotFoundError("Fee type not found")
    if not await db.get(AcademicSession, payload.session_id):
        raise NotFoundError("Session not found")

    sf = (
        await db.execute(
            select(StudentFee)
            .where(
                StudentFee.student_id == payload.student_id,
                StudentFee.fee_type_id == payload.fee_type_id,
                StudentFee.session_id == payload.session_id,
            )
            .with_for_update()
        )
    ).scalar_one_or_none()
    if not sf:
        raise BusinessRuleError("Fee not assigned to this student")

    amount_due = to_decimal(sf.amount_due)
    already_paid = to_decimal(sf.amount_paid)
    remaining = amount_due - already_paid
    if payload.amount_paid > remaining:
        logger.warning(
            "Rejected payment of %s on student fee %s: only %s remaining",
            payload.amount_paid, sf.id, remaining,
        )
        raise BusinessRuleError(
            "Payment amount exceeds remaining amount",
            errors={"amount_paid": [f"Maximum payable amount is {remaining}"]},
        )

    prefix = receipt_prefix(date.today())
    existing = await db.execute(
        select(FeeTransaction.receipt_no).where(FeeTransaction.receipt_no.like(f"{prefix}%"))
    )
    receipt_no = next_receipt_no(prefix, existing.scalars().all())

    tx = FeeTransaction(
        student_id=payload.student_id,
        fee_type_id=payload.fee_type_id,
        session_id=payload.session_id,
        amount_paid=payload.amount_paid,
        payment_date=payload.payment_date,
        payment_mode=payload.payment_mode.value,
        receipt_no=receipt_no,
        collected_by=collected_by,
        notes=payload.notes,
        reference_no=payload.reference_no,
    )
    try:
        db.add(tx)
        await db.flush()
        sf.amount_paid = already_paid + payload.amount_paid
        sf.status = derive_status(
            amount_due,
            sf.amount_paid,
            sf.due_date,
            date.today(),
            settings.fee_overdue_after_partial,
        ).value
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("Receipt number %s collided, payment not recorded", receipt_no)
        raise ServiceError("Could not allocate a receipt number, please retry", status.HTTP_409_CONFLICT)
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Collected %s (%s) for student %s fee type %s, receipt %s, status %s",
        payload.amount_paid, tx.payment_mode, tx.student_id, tx.fee_type_id, receipt_no, sf.status,
    )
    return PaymentResult(
        transaction=await transaction_service.get_transaction(db, tx.id),
        student_fee=await get_student_fee(db, sf.id),
    )
