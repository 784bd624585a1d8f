from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import AuthToken, User
from app.auth.permissions import permissions_for_role
from app.auth.schemas import CurrentUser
from app.core.config import settings
from app.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user and their permissions from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    jti = payload.get("jti")
    if not user_id_str or not jti:
        raise credentials_exception

    try:
        user_id = int(user_id_str)
    except (TypeError, ValueError):
        raise credentials_exception

    # Revoked (logged out) tokens no longer have a row
    token_row = await db.execute(
        select(AuthToken.id).where(AuthToken.jti == jti, AuthToken.user_id == user_id)
    )
    if token_row.scalar_one_or_none() is None:
        raise credentials_exception

    user = await db.get(User, user_id)
    if not user or user.status != "active":
        raise credentials_exception

    return CurrentUser(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        permissions=permissions_for_role(user.role),
        token_jti=jti,
    )
