from __future__ import annotations

from flask import current_app


def page_params(page, per_page) -> tuple[int, int]:
    default = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 100)
    page = max(int(page or 1), 1)
    per_page = max(1, min(int(per_page or default), maximum))
    return page, per_page


def paginate(query, *, page=None, per_page=None, serialize=None) -> dict:
    """
    Run `query` one page at a time.

    Returns {'items', 'count', 'pagination'}; items are passed through
    `serialize` (default: to_dict()).
    """
    page, per_page = page_params(page, per_page)
    serialize = serialize or (lambda row: row.to_dict())

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

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
