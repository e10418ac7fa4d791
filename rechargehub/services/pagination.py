import math

from rechargehub.core.config import get_settings
from rechargehub.core.errors import ValidationError
from rechargehub.schemas.common import Pagination


def page_window(page, limit) -> tuple[int, int]:
    """Validate ``page`` and clamp ``limit`` into [1, max page size]."""
    settings = get_settings()
    try:
        page = int(page if page is not None else 1)
        limit = int(limit if limit is not None else settings.orders_default_page_size)
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")
    if page < 1:
        raise ValidationError("page must be >= 1")
    limit = max(1, min(limit, settings.orders_max_page_size))
    return page, limit


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    return Pagination(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit) if total else 0)
