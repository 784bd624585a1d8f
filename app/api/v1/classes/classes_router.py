from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.sections import service as section_service
from app.api.v1.sections.schemas import SectionResponse
from app.auth.rbac import check_permission
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import ClassCreate, ClassResponse, ClassUpdate
from . import service

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.post(
    "",
    response_model=ApiResponse[ClassResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("classes", "create"))],
)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ClassResponse]:
    try:
        obj = await service.create_class(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[ClassResponse](message="Class created successfully", data=obj)


@router.get(
    "",
    response_model=ApiResponse[List[ClassResponse]],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_classes(
    session_id: int = Query(..., description="Session whose classes are listed"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[ClassResponse]]:
    return ApiResponse[List[ClassResponse]](data=await service.list_classes(db, session_id))


@router.get(
    "/{class_id}",
    response_model=ApiResponse[ClassResponse],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def get_class(
    class_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ClassResponse]:
    try:
        return ApiResponse[ClassResponse](data=await service.get_class(db, class_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{class_id}/sections",
    response_model=ApiResponse[List[SectionResponse]],
    dependencies=[Depends(check_permission("sections", "read"))],
)
async def list_class_sections(
    class_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[SectionResponse]]:
    try:
        obj = await service.get_class_or_404(db, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    sections = await section_service.list_sections(db, obj.session_id, class_id=class_id)
    return ApiResponse[List[SectionResponse]](data=sections)


@router.put(
    "/{class_id}",
    response_model=ApiResponse[ClassResponse],
    dependencies=[Depends(check_permission("classes", "update"))],
)
async def update_class(
    class_id: int,
    payload: ClassUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ClassResponse]:
    try:
        obj = await service.update_class(db, class_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[ClassResponse](message="Class updated successfully", data=obj)


@router.delete(
    "/{class_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission("classes", "delete"))],
)
async def delete_class(
    class_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_class(db, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Class deleted successfully")
