"""Students: enrollment CRUD. Every student owns a login account with role 'student'."""

import logging
from typing import Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.models import User
from app.auth.security import hash_password
from app.core.config import settings
from app.core.enums import UserRole, UserStatus
from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import (
    AcademicSession,
    FeeTransaction,
    Guardian,
    SchoolClass,
    Section,
    Student,
    StudentFee,
    StudentParent,
)
from app.core.schemas import Page
from app.core.services import build_page, paginate_rows

from .schemas import (
    GuardianInfo,
    ParentInfo,
    StudentCreate,
    StudentDetail,
    StudentResponse,
    StudentUpdate,
)

logger = logging.getLogger(__name__)


def _to_response(s: Student, class_name: Optional[str], section_name: Optional[str]) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        admission_no=s.admission_no,
        name=s.name,
        email=s.email,
        phone=s.phone,
        dob=s.dob,
        gender=s.gender,
        address=s.address,
        class_id=s.class_id,
        class_name=class_name,
        section_id=s.section_id,
        section_name=section_name,
        session_id=s.session_id,
        user_id=s.user_id,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _guardian_info(g: Optional[Guardian]) -> Optional[GuardianInfo]:
    if g is None:
        return None
    return GuardianInfo(name=g.name, relationship=g.relationship_to_student, phone=g.phone, email=g.email)


def initial_password(dob) -> str:
    """Students first log in with their date of birth (YYYY-MM-DD), else the configured default."""
    return dob.isoformat() if dob else settings.default_student_password


def _student_select():
    return (
        select(Student, SchoolClass.name, Section.name)
        .join(SchoolClass, SchoolClass.id == Student.class_id)
        .join(Section, Section.id == Student.section_id)
    )


async def resolve_placement(
    db: AsyncSession, session_id: int, class_id: int, section_id: int
) -> Tuple[SchoolClass, Section]:
    """Class must belong to the session and section to the class."""
    if not await db.get(AcademicSession, session_id):
        raise NotFoundError("Session not found")
    school_class = await db.get(SchoolClass, class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    if school_class.session_id != session_id:
        raise BusinessRuleError("Class does not belong to the selected session")
    section = await db.get(Section, section_id)
    if not section:
        raise NotFoundError("Section not found")
    if section.class_id != school_class.id:
        raise BusinessRuleError("Section does not belong to the selected class")
    return school_class, section


async def admission_no_taken(db: AsyncSession, admission_no: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Student.id).where(Student.admission_no == admission_no)
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    if (await db.execute(stmt)).first():
        return True
    # admission_no doubles as the login username
    user_stmt = select(User.id).where(func.lower(User.username) == admission_no.lower())
    if exclude_id is not None:
        owner = await db.get(Student, exclude_id)
        if owner and owner.user_id:
            user_stmt = user_stmt.where(User.id != owner.user_id)
    return (await db.execute(user_stmt)).first() is not None


async def email_taken(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> bool:
    email = email.lower()
    stmt = select(Student.id).where(func.lower(Student.email) == email)
    owner_user_id = None
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
        owner = await db.get(Student, exclude_id)
        owner_user_id = owner.user_id if owner else None
    if (await db.execute(stmt)).first():
        return True
    user_stmt = select(User.id).where(func.lower(User.email) == email)
    if owner_user_id is not None:
        user_stmt = user_stmt.where(User.id != owner_user_id)
    return (await db.execute(user_stmt)).first() is not None


def build_student(
    *,
    admission_no: str,
    name: str,
    email: str,
    phone: Optional[str],
    dob,
    gender: Optional[str],
    address: Optional[str],
    class_id: int,
    section_id: int,
    session_id: int,
) -> Tuple[User, Student]:
    """Return unsaved (user, student). Caller adds both, flushes the user, then links student.user_id."""
    user = User(
        name=name,
        email=email.lower(),
        username=admission_no,
        phone=phone,
        password_hash=hash_password(initial_password(dob)),
        role=UserRole.STUDENT.value,
        status=UserStatus.ACTIVE.value,
    )
    student = Student(
        admission_no=admission_no,
        name=name,
        email=email.lower(),
        phone=phone,
        dob=dob,
        gender=gender,
        address=address,
        class_id=class_id,
        section_id=section_id,
        session_id=session_id,
    )
    return user, student


def _apply_parent(student: Student, parent: Optional[ParentInfo]) -> None:
    if parent is None:
        return
    values = parent.model_dump()
    if student.parent is None:
        student.parent = StudentParent(**values)
    else:
        for key, val in values.items():
            setattr(student.parent, key, val)


def _apply_guardian(student: Student, guardian: Optional[GuardianInfo]) -> None:
    if guardian is None:
        return
    if student.guardian is None:
        student.guardian = Guardian(
            name=guardian.name,
            relationship_to_student=guardian.relationship,
            phone=guardian.phone,
            email=guardian.email,
        )
    else:
        student.guardian.name = guardian.name
        student.guardian.relationship_to_student = guardian.relationship
        student.guardian.phone = guardian.phone
        student.guardian.email = guardian.email


async def _load_student(db: AsyncSession, student_id: int) -> Student:
    result = await db.execute(
        select(Student)
        .options(selectinload(Student.parent), selectinload(Student.guardian))
        .where(Student.id == student_id)
    )
    student = result.scalar_one_or_none()
    if not student:
        raise NotFoundError("Student not found")
    return student


async def list_students(
    db: AsyncSession,
    session_id: int,
    page: int,
    page_size: int,
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Page[StudentResponse]:
    stmt = _student_select().where(Student.session_id == session_id)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    if section_id is not None:
        stmt = stmt.where(Student.section_id == section_id)
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Student.name).like(like),
                func.lower(Student.admission_no).like(like),
                func.lower(Student.email).like(like),
            )
        )
    stmt = stmt.order_by(Student.name, Student.id)
    rows, total = await paginate_rows(db, stmt, page, page_size)
    items = [_to_response(s, class_name, section_name) for s, class_name, section_name in rows]
    return build_page(StudentResponse, items, total, page, page_size)


async def get_student(db: AsyncSession, student_id: int) -> StudentDetail:
    student = await _load_student(db, student_id)
    school_class = await db.get(SchoolClass, student.class_id)
    section = await db.get(Section, student.section_id)
    base = _to_response(
        student,
        school_class.name if school_class else None,
        section.name if section else None,
    )
    return StudentDetail(
        **base.model_dump(),
        parent=ParentInfo.model_validate(student.parent) if student.parent else None,
        guardian=_guardian_info(student.guardian),
    )


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentDetail:
    """Create the student, their login and optional parent/guardian rows in one transaction."""
    await resolve_placement(db, payload.session_id, payload.class_id, payload.section_id)
    errors = {}
    if await admission_no_taken(db, payload.admission_no):
        errors["admission_no"] = ["The admission number has already been taken."]
    if await email_taken(db, payload.email):
        errors["email"] = ["The email has already been taken."]
    if errors:
        raise BusinessRuleError(" ".join(m for msgs in errors.values() for m in msgs), errors=errors)

    user, student = build_student(
        admission_no=payload.admission_no,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        dob=payload.dob,
        gender=payload.gender.value if payload.gender else None,
        address=payload.address,
        class_id=payload.class_id,
        section_id=payload.section_id,
        session_id=payload.session_id,
    )
    try:
        db.add(user)
        await db.flush()
        student.user_id = user.id
        _apply_parent(student, payload.parent)
        _apply_guardian(student, payload.guardian)
        db.add(student)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError("Admission number or email already exists")
    except Exception:
        await db.rollback()
        raise
    logger.info("Student %s (%s) created in class %s", student.id, student.admission_no, student.class_id)
    return await get_student(db, student.id)


async def update_student(db: AsyncSession, student_id: int, payload: StudentUpdate) -> StudentDetail:
    student = await _load_student(db, student_id)
    class_id = payload.class_id if payload.class_id is not None else student.class_id
    section_id = payload.section_id if payload.section_id is not None else student.section_id
    if payload.class_id is not None or payload.section_id is not None:
        await resolve_placement(db, student.session_id, class_id, section_id)

    errors = {}
    if payload.admission_no is not None and await admission_no_taken(db, payload.admission_no, exclude_id=student.id):
        errors["admission_no"] = ["The admission number has already been taken."]
    if payload.email is not None and await email_taken(db, payload.email, exclude_id=student.id):
        errors["email"] = ["The email has already been taken."]
    if errors:
        raise BusinessRuleError(" ".join(m for msgs in errors.values() for m in msgs), errors=errors)

    if payload.admission_no is not None:
        student.admission_no = payload.admission_no
    if payload.name is not None:
        student.name = payload.name
    if payload.email is not None:
        student.email = payload.email.lower()
    if payload.phone is not None:
        student.phone = payload.phone
    if payload.dob is not None:
        student.dob = payload.dob
    if payload.gender is not None:
        student.gender = payload.gender.value
    if payload.address is not None:
        student.address = payload.address
    student.class_id = class_id
    student.section_id = section_id
    _apply_parent(student, payload.parent)
    _apply_guardian(student, payload.guardian)

    # Keep the login in sync with the student record
    if student.user_id:
        user = await db.get(User, student.user_id)
        if user:
            user.name = student.name
            user.email = student.email
            user.username = student.admission_no
            user.phone = student.phone
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError("Admission number or email already exists")
    logger.info("Student %s updated", student.id)
    return await get_student(db, student.id)


async def delete_student(db: AsyncSession, student_id: int) -> None:
    """Delete the student and their login. Blocked once fee rows or payments exist."""
    student = await _load_student(db, student_id)
    has_fees = await db.execute(select(StudentFee.id).where(StudentFee.student_id == student_id).limit(1))
    has_payments = await db.execute(
        select(FeeTransaction.id).where(FeeTransaction.student_id == student_id).limit(1)
    )
    if has_fees.scalar_one_or_none() is not None or has_payments.scalar_one_or_none() is not None:
        raise BusinessRuleError("Cannot delete student with fee records")
    user = await db.get(User, student.user_id) if student.user_id else None
    await db.delete(student)
    if user is not None:
        await db.delete(user)
    await db.commit()
    logger.info("Student %s deleted", student_id)
