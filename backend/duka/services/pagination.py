from __future__ import annotations

from typing import Callable

MAX_PER_PAGE = 100
DEFAULT_PER_PAGE = 20


def paginate(base_query, *, page: int | None, per_page: int | None, serialize: Callable) -> dict:
    """
    Run a list query with optional pagination.

    page=None returns every row. Otherwise per_page defaults to 20 and is
    capped at 100, and a "pagination" block is added to the result.
    """
    if page is None:
        rows = base_query.all()
        return {
            "items": [serialize(r) for r in rows],
            "count": len(rows),
        }

    per_page = min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE)
    per_page = max(per_page, 1)
    page = max(page, 1)

    total = base_query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(r) for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
