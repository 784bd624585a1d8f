from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse
from app.db.session import get_db

from . import service

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get(
    "",
    response_model=ApiResponse[service.Dashboard],
    dependencies=[Depends(check_permission("dashboard", "read"))],
)
async def get_dashboard(
    session_id: Optional[int] = Query(None, description="Required for every role except student"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApiResponse[service.Dashboard]:
    try:
        data = await service.get_dashboard(db, current_user, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[service.Dashboard](
        message=f"{current_user.role.capitalize()} dashboard data retrieved successfully",
        data=data,
    )
