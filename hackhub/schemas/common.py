from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    per_page: int
    has_next_page: bool
    has_prev_page: bool
    next_page: Optional[int] = None
    prev_page: Optional[int] = None


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None
    pagination: Optional[Pagination] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
