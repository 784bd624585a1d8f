"""Invoice and fee-split views over a student's fee rows for one session."""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import StudentFeeStatus
from app.core.exceptions import NotFoundError
from app.core.models import AcademicSession, FeeGroup, FeeType, SchoolClass, Section, Student, StudentFee
from app.core.services import to_decimal

from .accounting import invoice_no
from .schemas import FeeSplit, FeeSplitGroup, Invoice, InvoiceLine, InvoiceStudent, InvoiceTotals

NOT_AVAILABLE = "N/A"


async def _student_block(db: AsyncSession, student_id: int) -> InvoiceStudent:
    result = await db.execute(
        select(Student, SchoolClass.name, Section.name)
        .outerjoin(SchoolClass, SchoolClass.id == Student.class_id)
        .outerjoin(Section, Section.id == Student.section_id)
        .where(Student.id == student_id)
    )
    row = result.first()
    if not row:
        raise NotFoundError("Student not found")
    student, class_name, section_name = row
    return InvoiceStudent(
        id=student.id,
        name=student.name,
        admission_no=student.admission_no,
        class_name=class_name or NOT_AVAILABLE,
        section=section_name or NOT_AVAILABLE,
    )


async def _session_name(db: AsyncSession, session_id: int) -> str:
    session = await db.get(AcademicSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    return session.name


async def _fee_lines(
    db: AsyncSession, student_id: int, session_id: int, include_paid: bool = True
) -> List[Tuple[str, InvoiceLine]]:
    """(fee group name, line) pairs ordered by group then fee type."""
    stmt = (
        select(StudentFee, FeeType.name, FeeGroup.name)
        .join(FeeType, FeeType.id == StudentFee.fee_type_id)
        .join(FeeGroup, FeeGroup.id == FeeType.fee_group_id)
        .where(StudentFee.student_id == student_id, StudentFee.session_id == session_id)
    )
    if not include_paid:
        stmt = stmt.where(StudentFee.status != StudentFeeStatus.paid.value)
    result = await db.execute(stmt.order_by(FeeGroup.name, FeeType.name, StudentFee.id))
    lines = []
    for sf, type_name, group_name in result.all():
        due = to_decimal(sf.amount_due)
        paid = to_decimal(sf.amount_paid)
        lines.append(
            (
                group_name,
                InvoiceLine(
                    fee_type=type_name,
                    fee_group=group_name,
                    amount_due=due,
                    amount_paid=paid,
                    remaining=due - paid,
                    status=sf.status,
                    due_date=sf.due_date,
                ),
            )
        )
    return lines


def _totals(lines: List[InvoiceLine]) -> InvoiceTotals:
    due = sum((l.amount_due for l in lines), Decimal("0"))
    paid = sum((l.amount_paid for l in lines), Decimal("0"))
    return InvoiceTotals(total_due=due, total_paid=paid, total_remaining=due - paid)


async def build_invoice(
    db: AsyncSession,
    student_id: int,
    session_id: int,
    include_paid: bool = True,
    today: Optional[date] = None,
) -> Invoice:
    today = today or date.today()
    student = await _student_block(db, student_id)
    session_name = await _session_name(db, session_id)
    lines = [line for _, line in await _fee_lines(db, student_id, session_id, include_paid)]
    return Invoice(
        invoice_no=invoice_no(student_id, today),
        invoice_date=today,
        student=student,
        session=session_name,
        fees=lines,
        summary=_totals(lines),
    )


async def build_fee_split(db: AsyncSession, student_id: int, session_id: int) -> FeeSplit:
    """Per-group totals, plus outstanding amount per unpaid status and the amount collected on paid rows."""
    student = await _student_block(db, student_id)
    session_name = await _session_name(db, session_id)
    pairs = await _fee_lines(db, student_id, session_id)

    grouped: Dict[str, List[InvoiceLine]] = {}
    for group_name, line in pairs:
        grouped.setdefault(group_name, []).append(line)
    by_fee_group = {}
    for group_name, lines in grouped.items():
        totals = _totals(lines)
        by_fee_group[group_name] = FeeSplitGroup(
            total_due=totals.total_due,
            total_paid=totals.total_paid,
            total_remaining=totals.total_remaining,
            fee_types=lines,
        )

    by_status = {s.value: Decimal("0") for s in StudentFeeStatus}
    for _, line in pairs:
        if line.status == StudentFeeStatus.paid.value:
            by_status[line.status] += line.amount_paid
        else:
            by_status[line.status] = by_status.get(line.status, Decimal("0")) + line.remaining

    return FeeSplit(
        student=student,
        session=session_name,
        by_fee_group=by_fee_group,
        by_status=by_status,
        summary=_totals([line for _, line in pairs]),
    )
