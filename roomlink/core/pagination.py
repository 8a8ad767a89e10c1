"""
Pagination helpers shared by repositories and routers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from roomlink.core.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


@dataclass(frozen=True)
class PaginationParams:
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def normalize_pagination(page: Optional[int], page_size: Optional[int]) -> PaginationParams:
    """
    Clean raw page inputs.

    - page < 1 or None -> DEFAULT_PAGE
    - page_size < 1 or None -> DEFAULT_PAGE_SIZE
    - page_size > MAX_PAGE_SIZE -> MAX_PAGE_SIZE
    """
    if page is None or page < 1:
        page = DEFAULT_PAGE
    if page_size is None or page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    if page_size > MAX_PAGE_SIZE:
        page_size = MAX_PAGE_SIZE
    return PaginationParams(page=page, page_size=page_size)


def pagination_meta(total_items: int, params: PaginationParams) -> Dict[str, Any]:
    total_pages = math.ceil(total_items / params.page_size) if total_items else 0
    return {
        "page": params.page,
        "page_size": params.page_size,
        "total_items": total_items,
        "total_pages": total_pages,
        "has_next": params.page < total_pages,
        "has_previous": params.page > 1,
    }
