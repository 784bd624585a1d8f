import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import SessionStatus
from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import AcademicSession, FeeGroup, SchoolClass, Section, Student

from .schemas import SessionCreate, SessionResponse, SessionStats, SessionUpdate

logger = logging.getLogger(__name__)


def _to_response(s: AcademicSession) -> SessionResponse:
    return SessionResponse(
        id=s.id,
        name=s.name,
        start_date=s.start_date,
        end_date=s.end_date,
        status=s.status,
        is_current=s.is_active(),
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise BusinessRuleError(
            "end_date must be after start_date",
            errors={"end_date": ["end_date must be after start_date"]},
        )


async def _deactivate_others(db: AsyncSession, keep_id: Optional[int] = None) -> None:
    stmt = update(AcademicSession).where(AcademicSession.status == SessionStatus.ACTIVE.value)
    if keep_id is not None:
        stmt = stmt.where(AcademicSession.id != keep_id)
    await db.execute(stmt.values(status=SessionStatus.INACTIVE.value))


async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(AcademicSession.id).where(func.lower(AcademicSession.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(AcademicSession.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise BusinessRuleError(
            f"Session with name '{name}' already exists",
            errors={"name": ["The name has already been taken."]},
        )


async def get_session_or_404(db: AsyncSession, session_id: int) -> AcademicSession:
    obj = await db.get(AcademicSession, session_id)
    if not obj:
        raise NotFoundError("Session not found")
    return obj


async def list_sessions(db: AsyncSession) -> List[SessionResponse]:
    result = await db.execute(select(AcademicSession).order_by(AcademicSession.start_date.desc()))
    return [_to_response(s) for s in result.scalars().all()]


async def get_session(db: AsyncSession, session_id: int) -> SessionResponse:
    return _to_response(await get_session_or_404(db, session_id))


async def get_active_session(db: AsyncSession) -> SessionResponse:
    result = await db.execute(
        select(AcademicSession).where(AcademicSession.status == SessionStatus.ACTIVE.value)
    )
    obj = result.scalars().first()
    if not obj:
        raise NotFoundError("No active session found")
    return _to_response(obj)


async def create_session(db: AsyncSession, payload: SessionCreate) -> SessionResponse:
    """Create a session. status=active deactivates every other session in the same transaction."""
    name = payload.name.strip()
    await _ensure_name_free(db, name)
    if payload.status == SessionStatus.ACTIVE:
        await _deactivate_others(db)
    obj = AcademicSession(
        name=name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=payload.status.value,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError(f"Session with name '{name}' already exists")
    await db.refresh(obj)
    logger.info("Session %s (%s) created, status=%s", obj.id, obj.name, obj.status)
    return _to_response(obj)


async def update_session(db: AsyncSession, session_id: int, payload: SessionUpdate) -> SessionResponse:
    obj = await get_session_or_404(db, session_id)
    if payload.name is not None:
        name = payload.name.strip()
        await _ensure_name_free(db, name, exclude_id=obj.id)
        obj.name = name
    start_date = payload.start_date or obj.start_date
    end_date = payload.end_date or obj.end_date
    _validate_dates(start_date, end_date)
    obj.start_date = start_date
    obj.end_date = end_date
    if payload.status is not None:
        if payload.status == SessionStatus.ACTIVE:
            await _deactivate_others(db, keep_id=obj.id)
        obj.status = payload.status.value
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BusinessRuleError("Session name already exists")
    await db.refresh(obj)
    logger.info("Session %s updated", obj.id)
    return _to_response(obj)


async def switch_session(db: AsyncSession, session_id: int) -> SessionResponse:
    """Make session_id the only active session."""
    obj = await get_session_or_404(db, session_id)
    await _deactivate_others(db, keep_id=obj.id)
    obj.status = SessionStatus.ACTIVE.value
    await db.commit()
    await db.refresh(obj)
    logger.info("Active session switched to %s (%s)", obj.id, obj.name)
    return _to_response(obj)


async def _count(db: AsyncSession, model, session_id: int) -> int:
    result = await db.execute(select(func.count(model.id)).where(model.session_id == session_id))
    return result.scalar() or 0


async def delete_session(db: AsyncSession, session_id: int) -> None:
    obj = await get_session_or_404(db, session_id)
    for model in (Student, SchoolClass, Section, FeeGroup):
        if await _count(db, model, session_id):
            raise BusinessRuleError("Cannot delete session with associated data")
    await db.delete(obj)
    await db.commit()
    logger.info("Session %s deleted", session_id)


async def get_session_stats(db: AsyncSession, session_id: int) -> SessionStats:
    obj = await get_session_or_404(db, session_id)
    today = date.today()
    total_days = (obj.end_date - obj.start_date).days
    elapsed = (today - obj.start_date).days
    if total_days > 0:
        progress = min(max(elapsed / total_days * 100, 0.0), 100.0)
    else:
        progress = 100.0
    return SessionStats(
        session=_to_response(obj),
        total_students=await _count(db, Student, session_id),
        total_classes=await _count(db, SchoolClass, session_id),
        total_sections=await _count(db, Section, session_id),
        is_active=obj.is_active(today),
        days_remaining=max((obj.end_date - today).days, 0),
        progress_percentage=round(progress, 2),
    )
