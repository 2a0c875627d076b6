from typing import Tuple

from django.conf import settings

from dispatch.exceptions import ValidationError


def page_bounds(page, page_size, *, default_size: int = 20) -> Tuple[int, int, int]:
    """Validate 1-indexed ``page``/``page_size`` and return ``(page, page_size, offset)``.

    Non-positive values are rejected; oversized pages are capped at
    ``DISPATCH_MAX_PAGE_SIZE``.
    """
    try:
        page = 1 if page is None else int(page)
        page_size = default_size if page_size is None else int(page_size)
    except (TypeError, ValueError):
        raise ValidationError('page and pageSize must be integers')
    if page < 1 or page_size < 1:
        raise ValidationError('page and pageSize must be positive')
    page_size = min(page_size, settings.DISPATCH_MAX_PAGE_SIZE)
    return page, page_size, (page - 1) * page_size
