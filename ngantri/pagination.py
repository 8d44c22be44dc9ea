"""
Cursor pagination over time-sortable UUIDv7 ids
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, TypeVar

from fastapi.responses import JSONResponse
from sqlalchemy.orm import Query

from .errors import success_response

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    data: List[T] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False
    limit: int = DEFAULT_LIMIT

    def meta(self) -> dict:
        return {
            "nextCursor": self.next_cursor,
            "hasMore": self.has_more,
            "limit": self.limit,
        }


def clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def paginate(query: Query, id_column: Any, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page:
    """Newest first; the cursor is the last id of the previous page"""
    limit = clamp_limit(limit)

    if cursor:
        query = query.filter(id_column < cursor)

    # One extra row tells us whether another page exists
    rows = query.order_by(id_column.desc()).limit(limit + 1).all()

    has_more = len(rows) > limit
    data = rows[:limit]
    next_cursor = getattr(data[-1], "id", None) if has_more and data else None

    return Page(data=data, next_cursor=next_cursor, has_more=has_more, limit=limit)


def page_response(page: Page, serialize: Callable[[Any], Any]) -> JSONResponse:
    return success_response([serialize(row) for row in page.data], pagination=page.meta())
