import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import SchoolClass, Section, Student

from app.api.v1.classes import service as class_service

from .schemas import SectionCreate, SectionResponse, SectionUpdate

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "A section with this name already exists in the selected class"


def _section_to_response(s: Section, class_name: Optional[str] = None, students: int = 0) -> SectionResponse:
    return SectionResponse(
        id=s.id,
        name=s.name,
        class_id=s.class_id,
        class_name=class_name,
        session_id=s.session_id,
        students_count=students,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def get_section_or_404(db: AsyncSession, section_id: int) -> Section:
    obj = await db.get(Section, section_id)
    if not obj:
        raise NotFoundError("Section not found")
    return obj


async def _ensure_name_free(db: AsyncSession, class_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(Section.id).where(
        Section.class_id == class_id,
        func.lower(Section.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(Section.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise BusinessRuleError(DUPLICATE_MESSAGE, errors={"name": [DUPLICATE_MESSAGE]})


async def create_section(db: AsyncSession, payload: SectionCreate) -> SectionResponse:
    """Create a section under a class. The section inherits the class's session."""
    school_class = await class_service.get_class_or_404(db, payload.class_id)
    name = payload.name.strip()
    await _ensure_name_free(db, school_class.id, name)
    obj = Section(name=name, class_id=school_class.id, session_id=school_class.session_id)
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    await db.refresh(obj)
    logger.info("Section %s (%s) created in class %s", obj.id, obj.name, obj.class_id)
    return _section_to_response(obj, school_class.name)


async def list_sections(
    db: AsyncSession,
    session_id: int,
    class_id: Optional[int] = None,
) -> List[SectionResponse]:
    students_subq = (
        select(Student.section_id, func.count(Student.id).label("cnt"))
        .group_by(Student.section_id)
        .subquery()
    )
    stmt = (
        select(Section, SchoolClass.name, func.coalesce(students_subq.c.cnt, 0))
        .join(SchoolClass, SchoolClass.id == Section.class_id)
        .outerjoin(students_subq, students_subq.c.section_id == Section.id)
        .where(Section.session_id == session_id)
    )
    if class_id is not None:
        stmt = stmt.where(Section.class_id == class_id)
    stmt = stmt.order_by(SchoolClass.name, Section.name)
    result = await db.execute(stmt)
    return [_section_to_response(s, class_name, count) for s, class_name, count in result.all()]


async def get_section(db: AsyncSession, section_id: int) -> SectionResponse:
    obj = await get_section_or_404(db, section_id)
    school_class = await db.get(SchoolClass, obj.class_id)
    count = (
        await db.execute(select(func.count(Student.id)).where(Student.section_id == obj.id))
    ).scalar() or 0
    return _section_to_response(obj, school_class.name if school_class else None, count)


async def update_section(db: AsyncSession, section_id: int, payload: SectionUpdate) -> SectionResponse:
    obj = await get_section_or_404(db, section_id)
    name = payload.name.strip()
    await _ensure_name_free(db, obj.class_id, name, exclude_id=obj.id)
    obj.name = name
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(DUPLICATE_MESSAGE)
    logger.info("Section %s renamed to %s", obj.id, obj.name)
    return await get_section(db, obj.id)


async def delete_section(db: AsyncSession, section_id: int) -> None:
    obj = await get_section_or_404(db, section_id)
    used = await db.execute(select(Student.id).where(Student.section_id == section_id).limit(1))
    if used.scalar_one_or_none() is not None:
        raise BusinessRuleError("Cannot delete section: it is used by students")
    await db.delete(obj)
    await db.commit()
    logger.info("Section %s deleted", section_id)


async def find_section_by_name(db: AsyncSession, class_id: int, name: str) -> Optional[Section]:
    """Case-insensitive lookup within a class, used by bulk import."""
    result = await db.execute(
        select(Section).where(
            Section.class_id == class_id,
            func.lower(Section.name) == name.strip().lower(),
        )
    )
    return result.scalars().first()
