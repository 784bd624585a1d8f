"""Response envelope shared by every endpoint: { success, data?, message?, errors? }."""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class MessageResponse(BaseModel):
    """Envelope without payload (deletes, logout)."""

    success: bool = True
    message: str


class Page(BaseModel, Generic[T]):
    """Paginated list: items plus total count and page info."""

    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int

