"""Fees router: assignment, student fee rows, collection, invoice and fee split."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.config import settings
from app.core.enums import StudentFeeStatus
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, Page
from app.db.session import get_db

from .schemas import (
    FeeAssignRequest,
    FeeAssignResult,
    FeeReport,
    FeeSplit,
    Invoice,
    PaymentCreate,
    PaymentResult,
    RefreshStatusRequest,
    RefreshStatusResult,
    StudentFeeResponse,
    StudentFeeSummary,
)
from . import invoice, service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Assignment ---
@router.post(
    "/assign",
    response_model=ApiResponse[FeeAssignResult],
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def assign_fees(
    payload: FeeAssignRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeAssignResult]:
    try:
        result = await service.assign_fees(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeAssignResult](
        message=f"Fees assigned successfully to {result.assigned_count} records",
        data=result,
    )


# --- Student fees ---
@router.get(
    "/student-fees",
    response_model=ApiResponse[Page[StudentFeeResponse]],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_student_fees(
    session_id: int = Query(...),
    student_id: Optional[int] = Query(None),
    class_id: Optional[int] = Query(None),
    section_id: Optional[int] = Query(None),
    fee_type_id: Optional[int] = Query(None),
    fee_status: Optional[StudentFeeStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[Page[StudentFeeResponse]]:
    result = await service.list_student_fees(
        db,
        session_id,
        page,
        page_size,
        student_id=student_id,
        class_id=class_id,
        section_id=section_id,
        fee_type_id=fee_type_id,
        status_filter=fee_status.value if fee_status else None,
        search=search,
    )
    return ApiResponse[Page[StudentFeeResponse]](data=result)


@router.post(
    "/student-fees/refresh-status",
    response_model=ApiResponse[RefreshStatusResult],
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def refresh_fee_statuses(
    payload: RefreshStatusRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[RefreshStatusResult]:
    try:
        result = await service.refresh_statuses(db, payload.session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[RefreshStatusResult](message="Fee statuses refreshed", data=result)


@router.delete(
    "/student-fees/{student_fee_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def remove_fee_assignment(
    student_fee_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.remove_fee_assignment(db, student_fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Fee assignment removed successfully")


@router.get(
    "/student/{student_id}/summary",
    response_model=ApiResponse[StudentFeeSummary],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def student_fee_summary(
    student_id: int,
    session_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentFeeSummary]:
    try:
        return ApiResponse[StudentFeeSummary](
            data=await service.student_fee_summary(db, student_id, session_id)
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/reports",
    response_model=ApiResponse[FeeReport],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def fee_reports(
    session_id: int = Query(...),
    class_id: Optional[int] = Query(None),
    section_id: Optional[int] = Query(None),
    fee_status: Optional[StudentFeeStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeReport]:
    report = await service.fee_reports(
        db,
        session_id,
        class_id=class_id,
        section_id=section_id,
        status_filter=fee_status.value if fee_status else None,
        date_from=date_from,
        date_to=date_to,
    )
    return ApiResponse[FeeReport](data=report)


# --- Collection ---
@router.post(
    "/collect",
    response_model=ApiResponse[PaymentResult],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def collect_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApiResponse[PaymentResult]:
    try:
        result = await service.collect_payment(db, payload, collected_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[PaymentResult](message="Payment collected successfully", data=result)


# --- Invoice / fee split ---
@router.get(
    "/invoice/{student_id}",
    response_model=ApiResponse[Invoice],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def generate_invoice(
    student_id: int,
    session_id: int = Query(...),
    include_paid: bool = Query(True),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[Invoice]:
    try:
        data = await invoice.build_invoice(db, student_id, session_id, include_paid=include_paid)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[Invoice](message="Invoice generated successfully", data=data)


@router.get(
    "/fee-split/{student_id}",
    response_model=ApiResponse[FeeSplit],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def fee_split(
    student_id: int,
    session_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeSplit]:
    try:
        data = await invoice.build_fee_split(db, student_id, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeSplit](message="Fee breakdown retrieved successfully", data=data)
