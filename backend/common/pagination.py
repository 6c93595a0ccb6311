"""Page/limit pagination over already-filtered result lists."""

import math
from typing import Any, Dict, List, Sequence, Tuple

from .common_functions import as_int


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def normalize_page(page: Any, limit: Any) -> Tuple[int, int]:
    """Clamp page and limit to at least 1, using defaults for junk input."""
    return max(1, as_int(page, DEFAULT_PAGE)), max(1, as_int(limit, DEFAULT_LIMIT))


def paginate(items: Sequence[Any], page: Any = DEFAULT_PAGE, limit: Any = DEFAULT_LIMIT) -> Tuple[List[Any], Dict[str, int]]:
    """Slice `items` for one page and build the pagination block.

    Returns:
        The page items and ``{"totalDocuments", "currentPage", "totalPages", "limit"}``.
    """
    current_page, page_size = normalize_page(page, limit)
    total = len(items)
    start = (current_page - 1) * page_size
    page_items = list(items[start : start + page_size])
    meta = {
        "totalDocuments": total,
        "currentPage": current_page,
        "totalPages": int(math.ceil(total / float(page_size))) if total else 0,
        "limit": page_size,
    }
    return page_items, meta
