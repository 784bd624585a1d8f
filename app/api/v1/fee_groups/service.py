import logging
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import AcademicSession, FeeGroup, FeeType

from .schemas import FeeGroupCreate, FeeGroupResponse, FeeGroupUpdate

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "A fee group with this name already exists in the selected session"


def _to_response(g: FeeGroup, fee_types_count: int = 0) -> FeeGroupResponse:
    return FeeGroupResponse(
        id=g.id,
        name=g.name,
        description=g.description,
        session_id=g.session_id,
        is_active=g.is_active,
        fee_types_count=fee_types_count,
        created_at=g.created_at,
        updated_at=g.updated_at,
    )


async def get_fee_group_or_404(db: AsyncSession, fee_group_id: int) -> FeeGroup:
    obj = await db.get(FeeGroup, fee_group_id)
    if not obj:
        raise NotFoundError("Fee group not found")
    return obj


async def _ensure_name_free(db: AsyncSession, session_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(FeeGroup.id).where(
        FeeGroup.session_id == session_id,
        func.lower(FeeGroup.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(FeeGroup.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise BusinessRuleError(DUPLICATE_MESSAGE, errors={"name": [DUPLICATE_MESSAGE]})


async def _fee_type_count(db: AsyncSession, fee_group_id: int) -> int:
    result = await db.execute(select(func.count(FeeType.id)).where(FeeType.fee_group_id == fee_group_id))
    return result.scalar() or 0


async def list_fee_groups(
    db: AsyncSession,
    session_id: int,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> List[FeeGroupResponse]:
    counts = (
        select(FeeType.fee_group_id, func.count(FeeType.id).label("cnt"))
        .group_by(FeeType.fee_group_id)
        .subquery()
    )
    stmt = (
        select(FeeGroup, func.coalesce(counts.c.cnt, 0))
        .outerjoin(counts, counts.c.fee_group_id == FeeGroup.id)
        .where(FeeGroup.session_id == session_id)
    )
    if is_active is not None:
        stmt = stmt.where(FeeGroup.is_active.is_(is_active))
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(func.lower(FeeGroup.name).like(like), func.lower(FeeGroup.description).like(like))
        )
    stmt = stmt.order_by(FeeGroup.name)
    result = await db.execute(stmt)
    return [_to_response(g, count) for g, count in result.all()]


async def get_fee_group(db: AsyncSession, fee_group_id: int) -> FeeGroupResponse:
    obj = await get_fee_group_or_404(db, fee_group_id)
    return _to_response(obj, await _fee_type_count(db, obj.id))


async def create_fee_group(db: AsyncSession, payload: FeeGroupCreate) -> FeeGroupResponse:
    if not await db.get(AcademicSession, payload.session_id):
        raise NotFoundError("Session not found")
    name = payload.name.strip()
    await _ensure_name_free(db, payload.session_id, name)
    obj = FeeGroup(
        name=name,
        description=payload.description,
        session_id=payload.session_id,
        is_active=payload.is_active,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info("Fee group %s (%s) created in session %s", obj.id, obj.name, obj.session_id)
    return _to_response(obj)


async def update_fee_group(db: AsyncSession, fee_group_id: int, payload: FeeGroupUpdate) -> FeeGroupResponse:
    obj = await get_fee_group_or_404(db, fee_group_id)
    if payload.name is not None:
        name = payload.name.strip()
        await _ensure_name_free(db, obj.session_id, name, exclude_id=obj.id)
        obj.name = name
    if payload.description is not None:
        obj.description = payload.description
    if payload.is_active is not None:
        obj.is_active = payload.is_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info("Fee group %s updated", obj.id)
    return _to_response(obj, await _fee_type_count(db, obj.id))


async def delete_fee_group(db: AsyncSession, fee_group_id: int) -> None:
    obj = await get_fee_group_or_404(db, fee_group_id)
    if await _fee_type_count(db, obj.id):
        logger.warning("Refused to delete fee group %s: it owns fee types", fee_group_id)
        raise BusinessRuleError("Cannot delete fee group. It contains fee types.")
    await db.delete(obj)
    await db.commit()
    logger.info("Fee group %s deleted", fee_group_id)
