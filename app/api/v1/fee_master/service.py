"""Fee master: per-class price list. One row per (fee type, class, session)."""

import logging
from decimal import Decimal
from typing import Dict, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import AcademicSession, FeeGroup, FeeMaster, FeeType, SchoolClass, Student, StudentFee
from app.core.schemas import Page
from app.core.services import build_page, paginate_rows, to_decimal

from .schemas import (
    ClassFeeGroupItem,
    ClassFeeSummary,
    ClassFeeTypeItem,
    FeeMasterCreate,
    FeeMasterResponse,
    FeeMasterUpdate,
)

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "A fee master entry already exists for this fee type, class, and session combination"


def _to_response(
    fm: FeeMaster,
    fee_group_name: Optional[str] = None,
    fee_type_name: Optional[str] = None,
    class_name: Optional[str] = None,
) -> FeeMasterResponse:
    return FeeMasterResponse(
        id=fm.id,
        fee_group_id=fm.fee_group_id,
        fee_group_name=fee_group_name,
        fee_type_id=fm.fee_type_id,
        fee_type_name=fee_type_name,
        class_id=fm.class_id,
        class_name=class_name,
        session_id=fm.session_id,
        amount=to_decimal(fm.amount),
        description=fm.description,
        created_at=fm.created_at,
        updated_at=fm.updated_at,
    )


def _detail_select():
    return (
        select(FeeMaster, FeeGroup.name, FeeType.name, SchoolClass.name)
        .join(FeeGroup, FeeGroup.id == FeeMaster.fee_group_id)
        .join(FeeType, FeeType.id == FeeMaster.fee_type_id)
        .join(SchoolClass, SchoolClass.id == FeeMaster.class_id)
    )


async def _validate_combination(
    db: AsyncSession, fee_group_id: int, fee_type_id: int, class_id: int, session_id: int
) -> Tuple[FeeGroup, FeeType, SchoolClass]:
    if not await db.get(AcademicSession, session_id):
        raise NotFoundError("Session not found")
    group = await db.get(FeeGroup, fee_group_id)
    if not group:
        raise NotFoundError("Fee group not found")
    fee_type = await db.get(FeeType, fee_type_id)
    if not fee_type:
        raise NotFoundError("Fee type not found")
    school_class = await db.get(SchoolClass, class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    if fee_type.fee_group_id != group.id:
        raise BusinessRuleError("Fee type does not belong to the selected fee group")
    if fee_type.session_id != session_id:
        raise BusinessRuleError("Fee type does not belong to the selected session")
    if group.session_id != session_id:
        raise BusinessRuleError("Fee group does not belong to the selected session")
    if school_class.session_id != session_id:
        raise BusinessRuleError("Class does not belong to the selected session")
    return group, fee_type, school_class


async def _ensure_unique(
    db: AsyncSession, fee_type_id: int, class_id: int, session_id: int, exclude_id: Optional[int] = None
) -> None:
    stmt = select(FeeMaster.id).where(
        FeeMaster.fee_type_id == fee_type_id,
        FeeMaster.class_id == class_id,
        FeeMaster.session_id == session_id,
    )
    if exclude_id is not None:
        stmt = stmt.where(FeeMaster.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise BusinessRuleError(DUPLICATE_MESSAGE)


async def get_fee_master_or_404(db: AsyncSession, fee_master_id: int) -> FeeMaster:
    obj = await db.get(FeeMaster, fee_master_id)
    if not obj:
        raise NotFoundError("Fee master entry not found")
    return obj


async def list_fee_master(
    db: AsyncSession,
    session_id: int,
    page: int,
    page_size: int,
    class_id: Optional[int] = None,
    fee_group_id: Optional[int] = None,
    fee_type_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Page[FeeMasterResponse]:
    stmt = _detail_select().where(FeeMaster.session_id == session_id)
    if class_id is not None:
        stmt = stmt.where(FeeMaster.class_id == class_id)
    if fee_group_id is not None:
        stmt = stmt.where(FeeMaster.fee_group_id == fee_group_id)
    if fee_type_id is not None:
        stmt = stmt.where(FeeMaster.fee_type_id == fee_type_id)
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(FeeType.name).like(like),
                func.lower(FeeGroup.name).like(like),
                func.lower(SchoolClass.name).like(like),
            )
        )
    stmt = stmt.order_by(SchoolClass.name, FeeGroup.name, FeeType.name)
    rows, total = await paginate_rows(db, stmt, page, page_size)
    items = [_to_response(fm, g, t, c) for fm, g, t, c in rows]
    return build_page(FeeMasterResponse, items, total, page, page_size)


async def get_fee_master(db: AsyncSession, fee_master_id: int) -> FeeMasterResponse:
    result = await db.execute(_detail_select().where(FeeMaster.id == fee_master_id))
    row = result.first()
    if not row:
        raise NotFoundError("Fee master entry not found")
    return _to_response(*row)


async def create_fee_master(db: AsyncSession, payload: FeeMasterCreate) -> FeeMasterResponse:
    group, fee_type, school_class = await _validate_combination(
        db, payload.fee_group_id, payload.fee_type_id, payload.class_id, payload.session_id
    )
    await _ensure_unique(db, fee_type.id, school_class.id, payload.session_id)
    obj = FeeMaster(
        fee_group_id=group.id,
        fee_type_id=fee_type.id,
        class_id=school_class.id,
        session_id=payload.session_id,
        amount=payload.amount,
        description=payload.description,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info(
        "Fee master %s created: fee_type=%s class=%s amount=%s",
        obj.id, obj.fee_type_id, obj.class_id, obj.amount,
    )
    return _to_response(obj, group.name, fee_type.name, school_class.name)


async def update_fee_master(db: AsyncSession, fee_master_id: int, payload: FeeMasterUpdate) -> FeeMasterResponse:
    obj = await get_fee_master_or_404(db, fee_master_id)
    fee_group_id = payload.fee_group_id if payload.fee_group_id is not None else obj.fee_group_id
    fee_type_id = payload.fee_type_id if payload.fee_type_id is not None else obj.fee_type_id
    class_id = payload.class_id if payload.class_id is not None else obj.class_id
    group, fee_type, school_class = await _validate_combination(
        db, fee_group_id, fee_type_id, class_id, obj.session_id
    )
    await _ensure_unique(db, fee_type.id, school_class.id, obj.session_id, exclude_id=obj.id)
    obj.fee_group_id = group.id
    obj.fee_type_id = fee_type.id
    obj.class_id = school_class.id
    if payload.amount is not None:
        obj.amount = payload.amount
    if payload.description is not None:
        obj.description = payload.description
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info("Fee master %s updated", obj.id)
    return _to_response(obj, group.name, fee_type.name, school_class.name)


async def is_assigned(db: AsyncSession, fm: FeeMaster) -> bool:
    """True when a student of fm's class already has a fee row for fm's fee type and session."""
    result = await db.execute(
        select(StudentFee.id)
        .join(Student, Student.id == StudentFee.student_id)
        .where(
            StudentFee.fee_type_id == fm.fee_type_id,
            StudentFee.session_id == fm.session_id,
            Student.class_id == fm.class_id,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def delete_fee_master(db: AsyncSession, fee_master_id: int) -> None:
    obj = await get_fee_master_or_404(db, fee_master_id)
    if await is_assigned(db, obj):
        logger.warning("Refused to delete fee master %s: already assigned", fee_master_id)
        raise BusinessRuleError("Cannot delete fee master entry. It is already assigned to students.")
    await db.delete(obj)
    await db.commit()
    logger.info("Fee master %s deleted", fee_master_id)


async def get_class_summary(db: AsyncSession, class_id: int, session_id: int) -> ClassFeeSummary:
    school_class = await db.get(SchoolClass, class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    result = await db.execute(
        _detail_select()
        .where(FeeMaster.class_id == class_id, FeeMaster.session_id == session_id)
        .order_by(FeeGroup.name, FeeType.name)
    )
    groups: Dict[int, ClassFeeGroupItem] = {}
    total = Decimal("0")
    count = 0
    for fm, group_name, type_name, _class_name in result.all():
        amount = to_decimal(fm.amount)
        group = groups.get(fm.fee_group_id)
        if group is None:
            group = ClassFeeGroupItem(
                fee_group_id=fm.fee_group_id,
                fee_group_name=group_name,
                total_amount=Decimal("0"),
                fee_types=[],
            )
            groups[fm.fee_group_id] = group
        group.fee_types.append(
            ClassFeeTypeItem(
                fee_master_id=fm.id,
                fee_type_id=fm.fee_type_id,
                fee_type_name=type_name,
                amount=amount,
            )
        )
        group.total_amount += amount
        total += amount
        count += 1
    return ClassFeeSummary(
        class_id=school_class.id,
        class_name=school_class.name,
        session_id=session_id,
        total_fee_types=count,
        total_amount=total,
        fee_groups=list(groups.values()),
    )
