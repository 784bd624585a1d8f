from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import SessionCreate, SessionResponse, SessionStats, SessionSwitch, SessionUpdate
from . import service

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


@router.get(
    "",
    response_model=ApiResponse[List[SessionResponse]],
    dependencies=[Depends(check_permission("sessions", "read"))],
)
async def list_sessions(
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[SessionResponse]]:
    return ApiResponse[List[SessionResponse]](data=await service.list_sessions(db))


@router.get(
    "/active",
    response_model=ApiResponse[SessionResponse],
    dependencies=[Depends(check_permission("sessions", "read"))],
)
async def get_active_session(
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SessionResponse]:
    """The session currently marked active. 404 when none is."""
    try:
        return ApiResponse[SessionResponse](data=await service.get_active_session(db))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "",
    response_model=ApiResponse[SessionResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("sessions", "create"))],
)
async def create_session(
    payload: SessionCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SessionResponse]:
    try:
        obj = await service.create_session(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[SessionResponse](message="Session created successfully", data=obj)


@router.post(
    "/switch",
    response_model=ApiResponse[SessionResponse],
    dependencies=[Depends(check_permission("sessions", "update"))],
)
async def switch_session(
    payload: SessionSwitch,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SessionResponse]:
    try:
        obj = await service.switch_session(db, payload.session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[SessionResponse](message="Session switched successfully", data=obj)


@router.get(
    "/{session_id}",
    response_model=ApiResponse[SessionResponse],
    dependencies=[Depends(check_permission("sessions", "read"))],
)
async def get_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SessionResponse]:
    try:
        return ApiResponse[SessionResponse](data=await service.get_session(db, session_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{session_id}/stats",
    response_model=ApiResponse[SessionStats],
    dependencies=[Depends(check_permission("sessions", "read"))],
)
async def get_session_stats(
    session_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SessionStats]:
    try:
        return ApiResponse[SessionStats](data=await service.get_session_stats(db, session_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put(
    "/{session_id}",
    response_model=ApiResponse[SessionResponse],
    dependencies=[Depends(check_permission("sessions", "update"))],
)
async def update_session(
    session_id: int,
    payload: SessionUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SessionResponse]:
    try:
        obj = await service.update_session(db, session_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[SessionResponse](message="Session updated successfully", data=obj)


@router.delete(
    "/{session_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission("sessions", "delete"))],
)
async def delete_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_session(db, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Session deleted successfully")
