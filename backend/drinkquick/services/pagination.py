# Overview: Shared page/limit/sort parsing for list endpoints.

from __future__ import annotations

from flask import current_app

from ..errors import ValidationError


def parse_page_args(args) -> tuple[int, int]:
    """
    Read page/limit from query args.

    page defaults to 1; limit defaults to PAGINATION_DEFAULT_LIMIT and is
    clamped to PAGINATION_MAX_LIMIT.
    """
    default_limit = current_app.config.get("PAGINATION_DEFAULT_LIMIT", 10)
    max_limit = current_app.config.get("PAGINATION_MAX_LIMIT", 100)

    try:
        page = int(args.get("page", 1))
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")

    return max(page, 1), min(max(limit, 1), max_limit)


def parse_sort(raw: str | None, columns: dict, default: str):
    """
    Translate "field" / "-field" into an ORDER BY clause.

    columns maps the public field name to a model column; anything outside
    it is rejected.
    """
    key = (raw or default).strip()
    descending = key.startswith("-")
    name = key.lstrip("-")
    column = columns.get(name)
    if column is None:
        raise ValidationError.for_field(
            "sort", f"Cannot sort by {name}. Allowed: {', '.join(sorted(columns))}"
        )
    return column.desc() if descending else column.asc()


def paginate(query, page: int, limit: int) -> tuple[list, dict]:
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    pages = (total + limit - 1) // limit if total > 0 else 0
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
    }
