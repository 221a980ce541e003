"""
Offset cursor pagination shared by the owner gallery, the public gallery and the
admin featured list. Cursors are opaque strings to the client.
"""
from typing import Any

from sqlalchemy.orm import Query

from animeleak.services.errors import ValidationError

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def parse_cursor(cursor: str | None) -> int:
    if cursor in (None, ""):
        return 0
    try:
        offset = int(cursor)
    except (TypeError, ValueError):
        raise ValidationError("Invalid cursor")
    if offset < 0:
        raise ValidationError("Invalid cursor")
    return offset


def clamp_limit(limit: int | None) -> int:
    if not limit or limit < 1:
        return DEFAULT_PAGE_SIZE
    return min(limit, MAX_PAGE_SIZE)


def fetch_page(query: Query, cursor: str | None, limit: int | None) -> tuple[list[Any], bool, str | None]:
    """Rows for one page plus (is_done, continue_cursor). The query must already be ordered."""
    offset = parse_cursor(cursor)
    size = clamp_limit(limit)
    rows = query.offset(offset).limit(size + 1).all()
    is_done = len(rows) <= size
    continue_cursor = None if is_done else str(offset + size)
    return rows[:size], is_done, continue_cursor
