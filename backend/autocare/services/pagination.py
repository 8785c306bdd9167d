from __future__ import annotations

import math


MAX_PAGE_SIZE = 500


def normalize_page(page, limit, *, default_limit: int = 10) -> tuple[int, int]:
    """Clamp page >= 1 and 1 <= limit <= MAX_PAGE_SIZE."""
    try:
        page = int(page) if page is not None else 1
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit) if limit is not None else default_limit
    except (TypeError, ValueError):
        limit = default_limit

    if page < 1:
        page = 1
    if limit < 1:
        limit = 1
    if limit > MAX_PAGE_SIZE:
        limit = MAX_PAGE_SIZE
    return page, limit


def page_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
        "has_next": page * limit < total,
        "has_prev": page > 1,
    }


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """%term% for ilike(), with % and _ in the term matched literally."""
    escaped = (
        term.strip()
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
