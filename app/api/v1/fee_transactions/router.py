from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.schemas import FeeTransactionResponse
from app.auth.rbac import check_permission
from app.core.config import settings
from app.core.enums import PaymentMode
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, Page
from app.db.session import get_db

from .schemas import MonthlyCollection, NotesUpdate, ReceiptData, TodayCollection, TransactionSummary
from . import service

router = APIRouter(prefix="/api/v1/fee-transactions", tags=["fee-transactions"])


@router.get(
    "",
    response_model=ApiResponse[Page[FeeTransactionResponse]],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_transactions(
    session_id: int = Query(...),
    student_id: Optional[int] = Query(None),
    class_id: Optional[int] = Query(None),
    section_id: Optional[int] = Query(None),
    payment_mode: Optional[PaymentMode] = Query(None),
    payment_date: Optional[date] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Matches receipt number, student name or admission number"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[Page[FeeTransactionResponse]]:
    result = await service.list_transactions(
        db,
        session_id,
        page,
        page_size,
        student_id=student_id,
        class_id=class_id,
        section_id=section_id,
        payment_mode=payment_mode.value if payment_mode else None,
        payment_date=payment_date,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return ApiResponse[Page[FeeTransactionResponse]](data=result)


@router.get(
    "/summary",
    response_model=ApiResponse[TransactionSummary],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def transaction_summary(
    session_id: int = Query(...),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TransactionSummary]:
    data = await service.get_summary(db, session_id, date_from=date_from, date_to=date_to)
    return ApiResponse[TransactionSummary](data=data)


@router.get(
    "/today",
    response_model=ApiResponse[TodayCollection],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def todays_collection(
    session_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TodayCollection]:
    return ApiResponse[TodayCollection](data=await service.get_today(db, session_id))


@router.get(
    "/monthly",
    response_model=ApiResponse[MonthlyCollection],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def monthly_collection(
    session_id: int = Query(...),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="YYYY-MM, defaults to the current month"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[MonthlyCollection]:
    try:
        data = await service.get_monthly(db, session_id, month)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[MonthlyCollection](data=data)


@router.get(
    "/receipt/{receipt_no}",
    response_model=ApiResponse[FeeTransactionResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_by_receipt(
    receipt_no: str,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeTransactionResponse]:
    try:
        return ApiResponse[FeeTransactionResponse](data=await service.get_by_receipt(db, receipt_no))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{transaction_id}",
    response_model=ApiResponse[FeeTransactionResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeTransactionResponse]:
    try:
        return ApiResponse[FeeTransactionResponse](data=await service.get_transaction(db, transaction_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{transaction_id}/receipt",
    response_model=ApiResponse[ReceiptData],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_receipt(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ReceiptData]:
    try:
        return ApiResponse[ReceiptData](data=await service.get_receipt(db, transaction_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch(
    "/{transaction_id}/notes",
    response_model=ApiResponse[FeeTransactionResponse],
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_notes(
    transaction_id: int,
    payload: NotesUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeTransactionResponse]:
    try:
        data = await service.update_notes(db, transaction_id, payload.notes)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeTransactionResponse](message="Transaction notes updated successfully", data=data)
