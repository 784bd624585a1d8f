from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import SectionCreate, SectionResponse, SectionUpdate
from . import service

router = APIRouter(prefix="/api/v1/sections", tags=["sections"])


@router.post(
    "",
    response_model=ApiResponse[SectionResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("sections", "create"))],
)
async def create_section(
    payload: SectionCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SectionResponse]:
    try:
        obj = await service.create_section(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[SectionResponse](message="Section created successfully", data=obj)


@router.get(
    "",
    response_model=ApiResponse[List[SectionResponse]],
    dependencies=[Depends(check_permission("sections", "read"))],
)
async def list_sections(
    session_id: int = Query(...),
    class_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[SectionResponse]]:
    sections = await service.list_sections(db, session_id, class_id=class_id)
    return ApiResponse[List[SectionResponse]](data=sections)


@router.get(
    "/{section_id}",
    response_model=ApiResponse[SectionResponse],
    dependencies=[Depends(check_permission("sections", "read"))],
)
async def get_section(
    section_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SectionResponse]:
    try:
        return ApiResponse[SectionResponse](data=await service.get_section(db, section_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put(
    "/{section_id}",
    response_model=ApiResponse[SectionResponse],
    dependencies=[Depends(check_permission("sections", "update"))],
)
async def update_section(
    section_id: int,
    payload: SectionUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SectionResponse]:
    try:
        obj = await service.update_section(db, section_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[SectionResponse](message="Section updated successfully", data=obj)


@router.delete(
    "/{section_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission("sections", "delete"))],
)
async def delete_section(
    section_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_section(db, section_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Section deleted successfully")
