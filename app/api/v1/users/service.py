"""User account management. Only a superadmin may create, modify or delete superadmin accounts."""

import logging
from typing import Optional

from fastapi import status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.auth.security import hash_password
from app.core.enums import UserRole
from app.core.exceptions import BusinessRuleError, NotFoundError, ServiceError
from app.core.schemas import Page
from app.core.services import paginate

from .schemas import UserCreate, UserResponse, UserUpdate

logger = logging.getLogger(__name__)

SUPERADMIN_ONLY_MESSAGE = "Only a superadmin can manage superadmin accounts"


def _user_to_response(u: User) -> UserResponse:
    return UserResponse.model_validate(u)


def _guard_superadmin(actor: CurrentUser, *roles: Optional[str]) -> None:
    if UserRole.SUPERADMIN.value in roles and actor.role != UserRole.SUPERADMIN.value:
        raise ServiceError(SUPERADMIN_ONLY_MESSAGE, status.HTTP_403_FORBIDDEN)


async def _ensure_unique(
    db: AsyncSession,
    email: Optional[str] = None,
    username: Optional[str] = None,
    exclude_id: Optional[int] = None,
) -> None:
    errors = {}
    if email:
        stmt = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if (await db.execute(stmt)).first():
            errors["email"] = ["The email has already been taken."]
    if username:
        stmt = select(User.id).where(func.lower(User.username) == username.lower())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if (await db.execute(stmt)).first():
            errors["username"] = ["The username has already been taken."]
    if errors:
        raise BusinessRuleError(" ".join(m for msgs in errors.values() for m in msgs), errors=errors)


async def list_users(
    db: AsyncSession,
    page: int,
    page_size: int,
    role: Optional[str] = None,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> Page[UserResponse]:
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == role)
    if status_filter:
        stmt = stmt.where(User.status == status_filter)
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(User.name).like(like),
                func.lower(User.email).like(like),
                func.lower(User.username).like(like),
            )
        )
    stmt = stmt.order_by(User.id.desc())
    return await paginate(db, stmt, page, page_size, _user_to_response, UserResponse)


async def get_user(db: AsyncSession, user_id: int) -> UserResponse:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return _user_to_response(user)


async def create_user(db: AsyncSession, actor: CurrentUser, payload: UserCreate) -> UserResponse:
    _guard_superadmin(actor, payload.role.value)
    await _ensure_unique(db, email=payload.email, username=payload.username)
    user = User(
        name=payload.name.strip(),
        email=payload.email.lower(),
        username=payload.username.strip(),
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        status=payload.status.value,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError("Email or username already exists")
    await db.refresh(user)
    logger.info("User %s created by %s (role=%s)", user.id, actor.id, user.role)
    return _user_to_response(user)


async def update_user(
    db: AsyncSession, actor: CurrentUser, user_id: int, payload: UserUpdate
) -> UserResponse:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    _guard_superadmin(actor, user.role, payload.role.value if payload.role else None)
    await _ensure_unique(db, email=payload.email, username=payload.username, exclude_id=user.id)

    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.email is not None:
        user.email = payload.email.lower()
    if payload.username is not None:
        user.username = payload.username.strip()
    if payload.phone is not None:
        user.phone = payload.phone
    if payload.role is not None:
        user.role = payload.role.value
    if payload.status is not None:
        user.status = payload.status.value
    if payload.password:
        user.password_hash = hash_password(payload.password)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError("Email or username already exists")
    await db.refresh(user)
    logger.info("User %s updated by %s", user.id, actor.id)
    return _user_to_response(user)


async def delete_user(db: AsyncSession, actor: CurrentUser, user_id: int) -> None:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.id == actor.id:
        raise BusinessRuleError("Cannot delete your own account")
    _guard_superadmin(actor, user.role)
    await db.delete(user)
    await db.commit()
    logger.info("User %s deleted by %s", user_id, actor.id)
