from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_admin
from app.auth.schemas import CurrentUser
from app.core.config import settings
from app.core.enums import UserRole, UserStatus
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, Page
from app.db.session import get_db

from .schemas import UserCreate, UserResponse, UserUpdate
from . import service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("", response_model=ApiResponse[Page[UserResponse]])
async def list_users(
    role: Optional[UserRole] = Query(None),
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Matches name, email or username"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[Page[UserResponse]]:
    result = await service.list_users(
        db,
        page,
        page_size,
        role=role.value if role else None,
        status_filter=status_filter.value if status_filter else None,
        search=search,
    )
    return ApiResponse[Page[UserResponse]](data=result)


@router.post(
    "",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[UserResponse]:
    try:
        user = await service.create_user(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[UserResponse](message="User created successfully", data=user)


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[UserResponse]:
    try:
        return ApiResponse[UserResponse](data=await service.get_user(db, user_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[UserResponse]:
    try:
        user = await service.update_user(db, current_user, user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[UserResponse](message="User updated successfully", data=user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> MessageResponse:
    try:
        await service.delete_user(db, current_user, user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="User deleted successfully")
