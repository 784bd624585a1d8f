from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, Page
from app.db.session import get_db

from .schemas import ClassFeeSummary, FeeMasterCreate, FeeMasterResponse, FeeMasterUpdate
from . import service

router = APIRouter(prefix="/api/v1/fee-master", tags=["fee-master"])


@router.get(
    "",
    response_model=ApiResponse[Page[FeeMasterResponse]],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def list_fee_master(
    session_id: int = Query(...),
    class_id: Optional[int] = Query(None),
    fee_group_id: Optional[int] = Query(None),
    fee_type_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[Page[FeeMasterResponse]]:
    result = await service.list_fee_master(
        db,
        session_id,
        page,
        page_size,
        class_id=class_id,
        fee_group_id=fee_group_id,
        fee_type_id=fee_type_id,
        search=search,
    )
    return ApiResponse[Page[FeeMasterResponse]](data=result)


@router.get(
    "/class-summary",
    response_model=ApiResponse[ClassFeeSummary],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def get_class_summary(
    class_id: int = Query(...),
    session_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ClassFeeSummary]:
    try:
        summary = await service.get_class_summary(db, class_id, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[ClassFeeSummary](data=summary)


@router.post(
    "",
    response_model=ApiResponse[FeeMasterResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fee_setup", "create"))],
)
async def create_fee_master(
    payload: FeeMasterCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeMasterResponse]:
    try:
        obj = await service.create_fee_master(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeMasterResponse](message="Fee master entry created successfully", data=obj)


@router.get(
    "/{fee_master_id}",
    response_model=ApiResponse[FeeMasterResponse],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def get_fee_master(
    fee_master_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeMasterResponse]:
    try:
        return ApiResponse[FeeMasterResponse](data=await service.get_fee_master(db, fee_master_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put(
    "/{fee_master_id}",
    response_model=ApiResponse[FeeMasterResponse],
    dependencies=[Depends(check_permission("fee_setup", "update"))],
)
async def update_fee_master(
    fee_master_id: int,
    payload: FeeMasterUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeMasterResponse]:
    try:
        obj = await service.update_fee_master(db, fee_master_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeMasterResponse](message="Fee master entry updated successfully", data=obj)


@router.delete(
    "/{fee_master_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission("fee_setup", "delete"))],
)
async def delete_fee_master(
    fee_master_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_fee_master(db, fee_master_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Fee master entry deleted successfully")
