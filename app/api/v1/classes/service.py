import logging
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import AcademicSession, FeeMaster, SchoolClass, Section, Student

from .schemas import ClassCreate, ClassResponse, ClassUpdate

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "A class with this name already exists in the selected session"


def _class_to_response(c: SchoolClass, sections: int = 0, students: int = 0) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        name=c.name,
        session_id=c.session_id,
        sections_count=sections,
        students_count=students,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


async def _counts_by_class(db: AsyncSession, model, class_ids: List[int]) -> Dict[int, int]:
    if not class_ids:
        return {}
    result = await db.execute(
        select(model.class_id, func.count(model.id))
        .where(model.class_id.in_(class_ids))
        .group_by(model.class_id)
    )
    return {row[0]: row[1] for row in result.all()}


async def get_class_or_404(db: AsyncSession, class_id: int) -> SchoolClass:
    obj = await db.get(SchoolClass, class_id)
    if not obj:
        raise NotFoundError("Class not found")
    return obj


async def _ensure_name_free(db: AsyncSession, session_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(SchoolClass.id).where(
        SchoolClass.session_id == session_id,
        func.lower(SchoolClass.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(SchoolClass.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise BusinessRuleError(DUPLICATE_MESSAGE, errors={"name": [DUPLICATE_MESSAGE]})


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    if not await db.get(AcademicSession, payload.session_id):
        raise NotFoundError("Session not found")
    name = payload.name.strip()
    await _ensure_name_free(db, payload.session_id, name)
    obj = SchoolClass(name=name, session_id=payload.session_id)
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info("Class %s (%s) created in session %s", obj.id, obj.name, obj.session_id)
    return _class_to_response(obj)


async def list_classes(db: AsyncSession, session_id: int) -> List[ClassResponse]:
    result = await db.execute(
        select(SchoolClass).where(SchoolClass.session_id == session_id).order_by(SchoolClass.name)
    )
    rows = result.scalars().all()
    ids = [c.id for c in rows]
    sections = await _counts_by_class(db, Section, ids)
    students = await _counts_by_class(db, Student, ids)
    return [_class_to_response(c, sections.get(c.id, 0), students.get(c.id, 0)) for c in rows]


async def get_class(db: AsyncSession, class_id: int) -> ClassResponse:
    obj = await get_class_or_404(db, class_id)
    sections = await _counts_by_class(db, Section, [obj.id])
    students = await _counts_by_class(db, Student, [obj.id])
    return _class_to_response(obj, sections.get(obj.id, 0), students.get(obj.id, 0))


async def update_class(db: AsyncSession, class_id: int, payload: ClassUpdate) -> ClassResponse:
    obj = await get_class_or_404(db, class_id)
    name = payload.name.strip()
    await _ensure_name_free(db, obj.session_id, name, exclude_id=obj.id)
    obj.name = name
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info("Class %s renamed to %s", obj.id, obj.name)
    return await get_class(db, obj.id)


async def delete_class(db: AsyncSession, class_id: int) -> None:
    obj = await get_class_or_404(db, class_id)
    used = await db.execute(select(Student.id).where(Student.class_id == class_id).limit(1))
    if used.scalar_one_or_none() is not None:
        raise BusinessRuleError("Cannot delete class: it is used by students")
    has_sections = await db.execute(select(Section.id).where(Section.class_id == class_id).limit(1))
    if has_sections.scalar_one_or_none() is not None:
        raise BusinessRuleError("Cannot delete class: it has sections")
    priced = await db.execute(select(FeeMaster.id).where(FeeMaster.class_id == class_id).limit(1))
    if priced.scalar_one_or_none() is not None:
        raise BusinessRuleError("Cannot delete class: it has fee master entries")
    await db.delete(obj)
    await db.commit()
    logger.info("Class %s deleted", class_id)


async def find_class_by_name(db: AsyncSession, session_id: int, name: str) -> Optional[SchoolClass]:
    """Case-insensitive lookup used by bulk import."""
    result = await db.execute(
        select(SchoolClass).where(
            SchoolClass.session_id == session_id,
            func.lower(SchoolClass.name) == name.strip().lower(),
        )
    )
    return result.scalars().first()
