from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import FeeGroupCreate, FeeGroupResponse, FeeGroupUpdate
from . import service

router = APIRouter(prefix="/api/v1/fee-groups", tags=["fee-groups"])


@router.get(
    "",
    response_model=ApiResponse[List[FeeGroupResponse]],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def list_fee_groups(
    session_id: int = Query(...),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[FeeGroupResponse]]:
    groups = await service.list_fee_groups(db, session_id, is_active=is_active, search=search)
    return ApiResponse[List[FeeGroupResponse]](data=groups)


@router.get(
    "/active",
    response_model=ApiResponse[List[FeeGroupResponse]],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def list_active_fee_groups(
    session_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[FeeGroupResponse]]:
    groups = await service.list_fee_groups(db, session_id, is_active=True)
    return ApiResponse[List[FeeGroupResponse]](data=groups)


@router.post(
    "",
    response_model=ApiResponse[FeeGroupResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fee_setup", "create"))],
)
async def create_fee_group(
    payload: FeeGroupCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeGroupResponse]:
    try:
        obj = await service.create_fee_group(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeGroupResponse](message="Fee group created successfully", data=obj)


@router.get(
    "/{fee_group_id}",
    response_model=ApiResponse[FeeGroupResponse],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def get_fee_group(
    fee_group_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeGroupResponse]:
    try:
        return ApiResponse[FeeGroupResponse](data=await service.get_fee_group(db, fee_group_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put(
    "/{fee_group_id}",
    response_model=ApiResponse[FeeGroupResponse],
    dependencies=[Depends(check_permission("fee_setup", "update"))],
)
async def update_fee_group(
    fee_group_id: int,
    payload: FeeGroupUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeGroupResponse]:
    try:
        obj = await service.update_fee_group(db, fee_group_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeGroupResponse](message="Fee group updated successfully", data=obj)


@router.delete(
    "/{fee_group_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission("fee_setup", "delete"))],
)
async def delete_fee_group(
    fee_group_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_fee_group(db, fee_group_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Fee group deleted successfully")
