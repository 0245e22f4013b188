from dataclasses import dataclass, field
from typing import Generic, List, Tuple, TypeVar
import math

from app.core.config import settings
from app.core.exceptions import ValidationError

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def normalize_paging(page: int = 1, limit: int = None) -> Tuple[int, int, int]:
    """Return (page, limit, offset), rejecting out-of-range values"""
    limit = settings.DEFAULT_PAGE_SIZE if limit is None else limit
    if page < 1:
        raise ValidationError("Page must be 1 or greater")
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationError(f"Limit must be between 1 and {settings.MAX_PAGE_SIZE}")
    return page, limit, (page - 1) * limit
