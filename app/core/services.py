"""Query helpers shared by the resource services."""

from decimal import Decimal
from typing import Any, Callable, List, Tuple, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.core.schemas import Page

T = TypeVar("T")


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


async def paginate_rows(
    db: AsyncSession,
    stmt: Select,
    page: int,
    page_size: int,
) -> Tuple[List[Any], int]:
    """Run stmt with offset/limit and return (rows, total) where total ignores paging."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar() or 0
    offset = (page - 1) * page_size
    result = await db.execute(stmt.offset(offset).limit(page_size))
    return list(result.all()), total


def build_page(item_type: Type[T], items: List[T], total: int, page: int, page_size: int) -> Page[T]:
    total_pages = (total + page_size - 1) // page_size if page_size else 0
    return Page[item_type](
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: int,
    page_size: int,
    convert: Callable[[Any], T],
    item_type: Type[T],
) -> Page[T]:
    """Paginate a single-entity select, converting each scalar with convert."""
    rows, total = await paginate_rows(db, stmt, page, page_size)
    return build_page(item_type, [convert(row[0]) for row in rows], total, page, page_size)
