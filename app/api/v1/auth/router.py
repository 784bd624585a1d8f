from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser, LoginRequest, LoginResponse, MeResponse
from app.auth.services import get_me, login_user, logout_user
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=ApiResponse[LoginResponse],
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[LoginResponse]:
    try:
        result = await login_user(db, payload)
    except ServiceError as e:
        if e.status_code == http_status.HTTP_500_INTERNAL_SERVER_ERROR:
            raise HTTPException(status_code=e.status_code, detail="Internal server error")
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ApiResponse[LoginResponse](message="Login successful", data=result)


@router.post("/login-oauth")
async def login_oauth(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Form login for the OpenAPI 'Authorize' button. `username` accepts an email or a username."""
    identifier = form_data.username.strip()
    payload = LoginRequest(
        email=identifier if "@" in identifier else None,
        username=None if "@" in identifier else identifier,
        password=form_data.password,
    )
    try:
        result = await login_user(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return {
        "access_token": result.token,
        "token_type": "bearer",
    }


@router.post("/logout", response_model=MessageResponse)
async def logout(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    await logout_user(db, current_user)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=ApiResponse[MeResponse])
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApiResponse[MeResponse]:
    try:
        return ApiResponse[MeResponse](data=await get_me(db, current_user))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
