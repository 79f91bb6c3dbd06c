import math
from dataclasses import dataclass, field
from typing import Generic, List, TypeVar

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def page_offset(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit
