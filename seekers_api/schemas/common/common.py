# seekers_api/schemas/common/common.py
from typing import Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    data: None = None
    error: str
    minutes_left: Optional[int] = None


class EnvelopeResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Any = None
    error: Optional[str] = None


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def from_page(cls, page) -> "PaginationMeta":
        return cls(page=page.page, limit=page.limit, total=page.total, total_pages=page.total_pages)
