"""Fee transactions: read side of the payment ledger. Only notes may change after insert."""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.schemas import FeeTransactionResponse
from app.auth.models import User
from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import AcademicSession, FeeGroup, FeeTransaction, FeeType, SchoolClass, Section, Student
from app.core.schemas import Page
from app.core.services import build_page, paginate_rows, to_decimal

from .schemas import (
    DailyCollection,
    ModeTotal,
    MonthlyCollection,
    ReceiptData,
    TodayCollection,
    TransactionSummary,
)

logger = logging.getLogger(__name__)


def _transaction_select():
    return (
        select(
            FeeTransaction,
            Student.name,
            Student.admission_no,
            SchoolClass.name,
            Section.name,
            FeeType.name,
            FeeGroup.name,
            User.name,
        )
        .join(Student, Student.id == FeeTransaction.student_id)
        .join(SchoolClass, SchoolClass.id == Student.class_id)
        .join(Section, Section.id == Student.section_id)
        .join(FeeType, FeeType.id == FeeTransaction.fee_type_id)
        .join(FeeGroup, FeeGroup.id == FeeType.fee_group_id)
        .outerjoin(User, User.id == FeeTransaction.collected_by)
    )


def _to_response(row) -> FeeTransactionResponse:
    tx, student_name, admission_no, class_name, section_name, fee_type_name, fee_group_name, collector = row
    return FeeTransactionResponse(
        id=tx.id,
        receipt_no=tx.receipt_no,
        student_id=tx.student_id,
        student_name=student_name,
        admission_no=admission_no,
        class_name=class_name,
        section_name=section_name,
        fee_type_id=tx.fee_type_id,
        fee_type_name=fee_type_name,
        fee_group_name=fee_group_name,
        session_id=tx.session_id,
        amount_paid=to_decimal(tx.amount_paid),
        payment_date=tx.payment_date,
        payment_mode=tx.payment_mode,
        collected_by=tx.collected_by,
        collected_by_name=collector,
        notes=tx.notes,
        reference_no=tx.reference_no,
        created_at=tx.created_at,
    )


async def _fetch_row(db: AsyncSession, *criteria):
    result = await db.execute(_transaction_select().where(*criteria))
    row = result.first()
    if not row:
        raise NotFoundError("Transaction not found")
    return row


async def list_transactions(
    db: AsyncSession,
    session_id: int,
    page: int,
    page_size: int,
    student_id: Optional[int] = None,
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    payment_mode: Optional[str] = None,
    payment_date: Optional[date] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
) -> Page[FeeTransactionResponse]:
    stmt = _transaction_select().where(FeeTransaction.session_id == session_id)
    if student_id is not None:
        stmt = stmt.where(FeeTransaction.student_id == student_id)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    if section_id is not None:
        stmt = stmt.where(Student.section_id == section_id)
    if payment_mode:
        stmt = stmt.where(FeeTransaction.payment_mode == payment_mode)
    if payment_date is not None:
        stmt = stmt.where(FeeTransaction.payment_date == payment_date)
    if date_from is not None:
        stmt = stmt.where(FeeTransaction.payment_date >= date_from)
    if date_to is not None:
        stmt = stmt.where(FeeTransaction.payment_date <= date_to)
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(FeeTransaction.receipt_no).like(like),
                func.lower(Student.name).like(like),
                func.lower(Student.admission_no).like(like),
            )
        )
    stmt = stmt.order_by(FeeTransaction.payment_date.desc(), FeeTransaction.id.desc())
    rows, total = await paginate_rows(db, stmt, page, page_size)
    return build_page(FeeTransactionResponse, [_to_response(r) for r in rows], total, page, page_size)


async def get_transaction(db: AsyncSession, transaction_id: int) -> FeeTransactionResponse:
    return _to_response(await _fetch_row(db, FeeTransaction.id == transaction_id))


async def get_by_receipt(db: AsyncSession, receipt_no: str) -> FeeTransactionResponse:
    return _to_response(await _fetch_row(db, FeeTransaction.receipt_no == receipt_no))


def format_payment_mode(mode: str) -> str:
    return (mode or "").replace("_", " ").title()


async def get_receipt(db: AsyncSession, transaction_id: int) -> ReceiptData:
    row = await _fetch_row(db, FeeTransaction.id == transaction_id)
    tx = row[0]
    data = _to_response(row)
    session = await db.get(AcademicSession, tx.session_id)
    return ReceiptData(
        receipt_no=data.receipt_no,
        date=tx.payment_date.strftime("%d/%m/%Y"),
        student_name=data.student_name,
        admission_no=data.admission_no,
        class_name=data.class_name,
        section_name=data.section_name,
        session_name=session.name if session else None,
        fee_type=data.fee_type_name,
        fee_group=data.fee_group_name,
        amount_paid=data.amount_paid,
        payment_mode=format_payment_mode(tx.payment_mode),
        reference_no=tx.reference_no,
        notes=tx.notes,
        collected_by=data.collected_by_name,
    )


async def update_notes(db: AsyncSession, transaction_id: int, notes: Optional[str]) -> FeeTransactionResponse:
    tx = await db.get(FeeTransaction, transaction_id)
    if not tx:
        raise NotFoundError("Transaction not found")
    tx.notes = notes
    await db.commit()
    logger.info("Notes updated on transaction %s (%s)", tx.id, tx.receipt_no)
    return await get_transaction(db, transaction_id)


async def _summarize(db: AsyncSession, *criteria) -> TransactionSummary:
    count_col = func.count(FeeTransaction.id)
    sum_col = func.coalesce(func.sum(FeeTransaction.amount_paid), 0)

    totals = (
        await db.execute(
            select(count_col, sum_col, func.count(func.distinct(FeeTransaction.student_id))).where(*criteria)
        )
    ).one()

    breakdown: Dict[str, ModeTotal] = {}
    modes = await db.execute(
        select(FeeTransaction.payment_mode, count_col, sum_col)
        .where(*criteria)
        .group_by(FeeTransaction.payment_mode)
        .order_by(FeeTransaction.payment_mode)
    )
    for mode, count, amount in modes.all():
        breakdown[mode] = ModeTotal(count=count, amount=to_decimal(amount))

    daily = await db.execute(
        select(FeeTransaction.payment_date, count_col, sum_col)
        .where(*criteria)
        .group_by(FeeTransaction.payment_date)
        .order_by(FeeTransaction.payment_date)
    )
    return TransactionSummary(
        total_transactions=totals[0] or 0,
        total_amount=to_decimal(totals[1]),
        unique_students=totals[2] or 0,
        payment_mode_breakdown=breakdown,
        daily_collection=[
            DailyCollection(date=day, count=count, amount=to_decimal(amount))
            for day, count, amount in daily.all()
        ],
    )


async def get_summary(
    db: AsyncSession,
    session_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> TransactionSummary:
    criteria = [FeeTransaction.session_id == session_id]
    if date_from is not None:
        criteria.append(FeeTransaction.payment_date >= date_from)
    if date_to is not None:
        criteria.append(FeeTransaction.payment_date <= date_to)
    return await _summarize(db, *criteria)


async def get_today(db: AsyncSession, session_id: Optional[int] = None, today: Optional[date] = None) -> TodayCollection:
    today = today or date.today()
    criteria = [FeeTransaction.payment_date == today]
    if session_id is not None:
        criteria.append(FeeTransaction.session_id == session_id)
    result = await db.execute(
        _transaction_select().where(*criteria).order_by(FeeTransaction.id.desc())
    )
    transactions = [_to_response(r) for r in result.all()]
    return TodayCollection(
        date=today,
        total_transactions=len(transactions),
        total_amount=sum((t.amount_paid for t in transactions), Decimal("0")),
        transactions=transactions,
    )


def month_bounds(month: str) -> Tuple[date, date]:
    """'YYYY-MM' -> (first day, first day of the following month)."""
    try:
        year, mon = (int(part) for part in month.split("-", 1))
        start = date(year, mon, 1)
    except ValueError:
        raise BusinessRuleError("Month must be in YYYY-MM format")
    end = date(year + 1, 1, 1) if mon == 12 else date(year, mon + 1, 1)
    return start, end


async def get_monthly(db: AsyncSession, session_id: int, month: Optional[str] = None) -> MonthlyCollection:
    month = month or date.today().strftime("%Y-%m")
    start, end = month_bounds(month)
    summary = await _summarize(
        db,
        FeeTransaction.session_id == session_id,
        FeeTransaction.payment_date >= start,
        FeeTransaction.payment_date < end,
    )
    return MonthlyCollection(month=f"{start:%Y-%m}", **summary.model_dump())


async def collected_between(db: AsyncSession, session_id: int, start: date, end: date) -> Decimal:
    """Sum of payments with start <= payment_date < end."""
    result = await db.execute(
        select(func.coalesce(func.sum(FeeTransaction.amount_paid), 0)).where(
            FeeTransaction.session_id == session_id,
            FeeTransaction.payment_date >= start,
            FeeTransaction.payment_date < end,
        )
    )
    return to_decimal(result.scalar())


def previous_month(start: date) -> date:
    return (start - timedelta(days=1)).replace(day=1)
