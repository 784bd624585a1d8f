from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.enums import FeeFrequency
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import FeeTypeCreate, FeeTypeResponse, FeeTypeUpdate
from . import service

router = APIRouter(prefix="/api/v1/fee-types", tags=["fee-types"])


@router.get(
    "",
    response_model=ApiResponse[List[FeeTypeResponse]],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def list_fee_types(
    session_id: int = Query(...),
    fee_group_id: Optional[int] = Query(None),
    frequency: Optional[FeeFrequency] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[FeeTypeResponse]]:
    items = await service.list_fee_types(
        db,
        session_id,
        fee_group_id=fee_group_id,
        frequency=frequency.value if frequency else None,
        is_active=is_active,
        search=search,
    )
    return ApiResponse[List[FeeTypeResponse]](data=items)


@router.get(
    "/by-group/{fee_group_id}",
    response_model=ApiResponse[List[FeeTypeResponse]],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def list_fee_types_by_group(
    fee_group_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[FeeTypeResponse]]:
    """Active fee types of one group (used by the fee master form)."""
    try:
        return ApiResponse[List[FeeTypeResponse]](data=await service.list_by_group(db, fee_group_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "",
    response_model=ApiResponse[FeeTypeResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fee_setup", "create"))],
)
async def create_fee_type(
    payload: FeeTypeCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeTypeResponse]:
    try:
        obj = await service.create_fee_type(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeTypeResponse](message="Fee type created successfully", data=obj)


@router.get(
    "/{fee_type_id}",
    response_model=ApiResponse[FeeTypeResponse],
    dependencies=[Depends(check_permission("fee_setup", "read"))],
)
async def get_fee_type(
    fee_type_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeTypeResponse]:
    try:
        return ApiResponse[FeeTypeResponse](data=await service.get_fee_type(db, fee_type_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put(
    "/{fee_type_id}",
    response_model=ApiResponse[FeeTypeResponse],
    dependencies=[Depends(check_permission("fee_setup", "update"))],
)
async def update_fee_type(
    fee_type_id: int,
    payload: FeeTypeUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeTypeResponse]:
    try:
        obj = await service.update_fee_type(db, fee_type_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[FeeTypeResponse](message="Fee type updated successfully", data=obj)


@router.delete(
    "/{fee_type_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission("fee_setup", "delete"))],
)
async def delete_fee_type(
    fee_type_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_fee_type(db, fee_type_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Fee type deleted successfully")
