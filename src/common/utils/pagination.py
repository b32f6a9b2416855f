# common/utils/pagination.py

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

from src.common.exceptions import ValidationError

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    data: List[T]
    meta: PaginationMeta


def validate_page(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be greater than or equal to 1.")
    if limit < 1:
        raise ValidationError("limit must be greater than or equal to 1.")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from query strings are read as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_date_range(date_from: Optional[datetime], date_to: Optional[datetime]) -> None:
    date_from, date_to = as_utc(date_from), as_utc(date_to)
    if date_from and date_to and date_from > date_to:
        raise ValidationError("'from' must not be later than 'to'.")


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def build_meta(total: int, page: int, limit: int) -> PaginationMeta:
    return PaginationMeta(
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )
