import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import AuthToken, User
from app.auth.permissions import flatten_permissions, permissions_for_role
from app.auth.schemas import CurrentUser, LoginRequest, LoginResponse, MeResponse, UserInfo
from app.auth.security import create_access_token, verify_password
from app.core.exceptions import ServiceError

logger = logging.getLogger(__name__)


def _user_info(user: User) -> UserInfo:
    return UserInfo(
        id=user.id,
        name=user.name,
        email=user.email,
        username=user.username,
        phone=user.phone,
        status=user.status,
        role=user.role,
    )


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # 1. Find user by email or username (case-insensitive)
    conditions = []
    if payload.email:
        conditions.append(func.lower(User.email) == payload.email.strip().lower())
    if payload.username:
        conditions.append(func.lower(User.username) == payload.username.strip().lower())
    user_result = await db.execute(select(User).where(or_(*conditions)))
    user: Optional[User] = user_result.scalars().first()
    if not user:
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 2. Verify password hash
    if not verify_password(payload.password, user.password_hash):
        logger.warning("Failed login for user_id=%s", user.id)
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 3. Check user status
    if user.status != "active":
        raise ServiceError("Account is inactive", status.HTTP_401_UNAUTHORIZED)

    # 4. Issue token and remember its jti so logout can revoke it
    access_payload = {
        "sub": str(user.id),
        "user_id": str(user.id),
        "role": user.role,
        "iat": int(datetime.now(timezone.utc).timestamp()),
    }
    token, jti, expires_at = create_access_token(subject=access_payload)
    db.add(AuthToken(user_id=user.id, jti=jti, expires_at=expires_at))
    try:
        await db.commit()
    except Exception as exc:
        await db.rollback()
        raise ServiceError(
            f"Failed to persist login token: {exc}",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from exc

    logger.info("User %s logged in (role=%s)", user.id, user.role)
    return LoginResponse(token=token, user=_user_info(user))


async def logout_user(db: AsyncSession, current_user: CurrentUser) -> None:
    await db.execute(
        delete(AuthToken).where(
            AuthToken.jti == current_user.token_jti,
            AuthToken.user_id == current_user.id,
        )
    )
    await db.commit()
    logger.info("User %s logged out", current_user.id)


async def get_me(db: AsyncSession, current_user: CurrentUser) -> MeResponse:
    user = await db.get(User, current_user.id)
    if not user:
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
    return MeResponse(
        user=_user_info(user),
        permissions=flatten_permissions(permissions_for_role(user.role)),
    )
