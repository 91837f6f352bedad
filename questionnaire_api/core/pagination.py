# questionnaire_api/core/pagination.py
"""
Zero-based page windows. Entity lists use pages of ITEMS_PER_PAGE items;
questionnaire groups and questionnaires use GROUP_PAGE_SIZE.
"""
from __future__ import annotations

from typing import Any, List, NamedTuple, Tuple, TypeVar

from sqlalchemy.orm import Query

ITEMS_PER_PAGE = 100
GROUP_PAGE_SIZE = 20

T = TypeVar("T")


class Page(NamedTuple):
    items: List[Any]
    total: int
    has_more: bool


def get_pagination_params(index: int, per_page: int = ITEMS_PER_PAGE) -> Tuple[int, int]:
    """(offset, limit) for page `index`; negative indexes are clamped to 0."""
    index = max(int(index or 0), 0)
    return index * per_page, per_page


def create_paginated_result(items: List[T], total: int, index: int, per_page: int = ITEMS_PER_PAGE) -> Page:
    offset, limit = get_pagination_params(index, per_page)
    return Page(items=list(items), total=total, has_more=offset + limit < total)


def paginate(query: Query, index: int, per_page: int = ITEMS_PER_PAGE) -> Page:
    """Counts the filtered query, then fetches one window of it."""
    offset, limit = get_pagination_params(index, per_page)
    total = query.order_by(None).count()
    items = query.offset(offset).limit(limit).all()
    return create_paginated_result(items, total, index, per_page)


def slice_page(items: List[T], index: int, per_page: int = ITEMS_PER_PAGE) -> Page:
    """Windows an already filtered in-memory list."""
    offset, limit = get_pagination_params(index, per_page)
    return create_paginated_result(items[offset:offset + limit], len(items), index, per_page)


def ilike_pattern(value: str) -> str:
    return f"%{value}%"
