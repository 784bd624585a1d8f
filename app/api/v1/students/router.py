from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, Page
from app.db.session import get_db

from .schemas import ImportResult, StudentCreate, StudentDetail, StudentResponse, StudentUpdate
from . import importer, service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.get(
    "",
    response_model=ApiResponse[Page[StudentResponse]],
    dependencies=[Depends(check_permission("students", "read"))],
)
async def list_students(
    session_id: int = Query(...),
    class_id: Optional[int] = Query(None),
    section_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Matches name, admission number or email"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[Page[StudentResponse]]:
    result = await service.list_students(
        db,
        session_id,
        page,
        page_size,
        class_id=class_id,
        section_id=section_id,
        search=search,
    )
    return ApiResponse[Page[StudentResponse]](data=result)


@router.get(
    "/bulk-import/template",
    dependencies=[Depends(check_permission("students", "create"))],
)
async def download_import_template() -> Response:
    """CSV containing only the required header row."""
    return Response(
        content=importer.template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="students_import_template.csv"'},
    )


@router.post(
    "/bulk-import",
    response_model=ApiResponse[ImportResult],
    dependencies=[Depends(check_permission("students", "create"))],
)
async def bulk_import_students(
    file: UploadFile = File(..., description="CSV (or .xlsx) with the template header row"),
    session_id: int = Form(...),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ImportResult]:
    content = await file.read()
    try:
        result = await importer.import_students(db, session_id, file.filename or "", content)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[ImportResult](
        message=f"Import completed. {result.imported} imported, {result.failed} failed",
        data=result,
    )


@router.post(
    "",
    response_model=ApiResponse[StudentDetail],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("students", "create"))],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentDetail]:
    try:
        obj = await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[StudentDetail](message="Student created successfully", data=obj)


@router.get(
    "/{student_id}",
    response_model=ApiResponse[StudentDetail],
    dependencies=[Depends(check_permission("students", "read"))],
)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentDetail]:
    try:
        return ApiResponse[StudentDetail](data=await service.get_student(db, student_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put(
    "/{student_id}",
    response_model=ApiResponse[StudentDetail],
    dependencies=[Depends(check_permission("students", "update"))],
)
async def update_student(
    student_id: int,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentDetail]:
    try:
        obj = await service.update_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[StudentDetail](message="Student updated successfully", data=obj)


@router.delete(
    "/{student_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission("students", "delete"))],
)
async def delete_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Student deleted successfully")
