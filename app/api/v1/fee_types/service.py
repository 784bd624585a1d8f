import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import AcademicSession, FeeGroup, FeeMaster, FeeTransaction, FeeType, StudentFee
from app.core.services import to_decimal

from .schemas import FeeTypeCreate, FeeTypeResponse, FeeTypeUpdate

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "A fee type with this name already exists in the selected fee group and session"


def _to_response(ft: FeeType, fee_group_name: Optional[str] = None) -> FeeTypeResponse:
    return FeeTypeResponse(
        id=ft.id,
        name=ft.name,
        description=ft.description,
        amount=to_decimal(ft.amount),
        fee_group_id=ft.fee_group_id,
        fee_group_name=fee_group_name,
        session_id=ft.session_id,
        frequency=ft.frequency,
        due_date=ft.due_date,
        is_active=ft.is_active,
        created_at=ft.created_at,
        updated_at=ft.updated_at,
    )


async def get_fee_type_or_404(db: AsyncSession, fee_type_id: int) -> FeeType:
    obj = await db.get(FeeType, fee_type_id)
    if not obj:
        raise NotFoundError("Fee type not found")
    return obj


async def _group_in_session(db: AsyncSession, fee_group_id: int, session_id: int) -> FeeGroup:
    group = await db.get(FeeGroup, fee_group_id)
    if not group:
        raise NotFoundError("Fee group not found")
    if group.session_id != session_id:
        raise BusinessRuleError("Fee group does not belong to the selected session")
    return group


async def _ensure_name_free(
    db: AsyncSession, fee_group_id: int, session_id: int, name: str, exclude_id: Optional[int] = None
) -> None:
    stmt = select(FeeType.id).where(
        FeeType.fee_group_id == fee_group_id,
        FeeType.session_id == session_id,
        func.lower(FeeType.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(FeeType.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise BusinessRuleError(DUPLICATE_MESSAGE, errors={"name": [DUPLICATE_MESSAGE]})


async def list_fee_types(
    db: AsyncSession,
    session_id: int,
    fee_group_id: Optional[int] = None,
    frequency: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> List[FeeTypeResponse]:
    stmt = (
        select(FeeType, FeeGroup.name)
        .join(FeeGroup, FeeGroup.id == FeeType.fee_group_id)
        .where(FeeType.session_id == session_id)
    )
    if fee_group_id is not None:
        stmt = stmt.where(FeeType.fee_group_id == fee_group_id)
    if frequency:
        stmt = stmt.where(FeeType.frequency == frequency)
    if is_active is not None:
        stmt = stmt.where(FeeType.is_active.is_(is_active))
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(func.lower(FeeType.name).like(like), func.lower(FeeType.description).like(like))
        )
    stmt = stmt.order_by(FeeGroup.name, FeeType.name)
    result = await db.execute(stmt)
    return [_to_response(ft, group_name) for ft, group_name in result.all()]


async def list_by_group(db: AsyncSession, fee_group_id: int) -> List[FeeTypeResponse]:
    group = await db.get(FeeGroup, fee_group_id)
    if not group:
        raise NotFoundError("Fee group not found")
    return await list_fee_types(db, group.session_id, fee_group_id=group.id, is_active=True)


async def get_fee_type(db: AsyncSession, fee_type_id: int) -> FeeTypeResponse:
    obj = await get_fee_type_or_404(db, fee_type_id)
    group = await db.get(FeeGroup, obj.fee_group_id)
    return _to_response(obj, group.name if group else None)


async def create_fee_type(db: AsyncSession, payload: FeeTypeCreate) -> FeeTypeResponse:
    if not await db.get(AcademicSession, payload.session_id):
        raise NotFoundError("Session not found")
    group = await _group_in_session(db, payload.fee_group_id, payload.session_id)
    if payload.due_date is not None and payload.due_date < date.today():
        raise BusinessRuleError(
            "The due date must be today or later",
            errors={"due_date": ["The due date must be today or later"]},
        )
    name = payload.name.strip()
    await _ensure_name_free(db, group.id, payload.session_id, name)
    obj = FeeType(
        name=name,
        description=payload.description,
        amount=payload.amount,
        fee_group_id=group.id,
        session_id=payload.session_id,
        frequency=payload.frequency.value,
        due_date=payload.due_date,
        is_active=payload.is_active,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info("Fee type %s (%s) created in group %s", obj.id, obj.name, obj.fee_group_id)
    return _to_response(obj, group.name)


async def update_fee_type(db: AsyncSession, fee_type_id: int, payload: FeeTypeUpdate) -> FeeTypeResponse:
    obj = await get_fee_type_or_404(db, fee_type_id)
    fee_group_id = payload.fee_group_id if payload.fee_group_id is not None else obj.fee_group_id
    group = await _group_in_session(db, fee_group_id, obj.session_id)
    name = payload.name.strip() if payload.name is not None else obj.name
    if payload.name is not None or payload.fee_group_id is not None:
        await _ensure_name_free(db, group.id, obj.session_id, name, exclude_id=obj.id)
    obj.name = name
    if group.id != obj.fee_group_id:
        # Price-list rows follow their fee type into the new group
        await db.execute(
            update(FeeMaster).where(FeeMaster.fee_type_id == obj.id).values(fee_group_id=group.id)
        )
        logger.info("Fee type %s moved from group %s to %s", obj.id, obj.fee_group_id, group.id)
    obj.fee_group_id = group.id
    if payload.description is not None:
        obj.description = payload.description
    if payload.amount is not None:
        obj.amount = payload.amount
    if payload.frequency is not None:
        obj.frequency = payload.frequency.value
    if payload.due_date is not None:
        obj.due_date = payload.due_date
    if payload.is_active is not None:
        obj.is_active = payload.is_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info("Fee type %s updated", obj.id)
    return _to_response(obj, group.name)


async def _referenced(db: AsyncSession, model, fee_type_id: int) -> bool:
    result = await db.execute(select(model.id).where(model.fee_type_id == fee_type_id).limit(1))
    return result.scalar_one_or_none() is not None


async def delete_fee_type(db: AsyncSession, fee_type_id: int) -> None:
    obj = await get_fee_type_or_404(db, fee_type_id)
    if await _referenced(db, StudentFee, fee_type_id):
        raise BusinessRuleError("Cannot delete fee type. It is assigned to students.")
    if await _referenced(db, FeeTransaction, fee_type_id):
        raise BusinessRuleError("Cannot delete fee type. It has payment transactions.")
    if await _referenced(db, FeeMaster, fee_type_id):
        raise BusinessRuleError("Cannot delete fee type. It has fee master entries.")
    await db.delete(obj)
    await db.commit()
    logger.info("Fee type %s deleted", fee_type_id)
