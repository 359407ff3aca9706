import math
from typing import Tuple

from ..core.config import settings


def normalize_page(page: int, limit: int) -> Tuple[int, int]:
    page = max(page or 1, 1)
    limit = min(max(limit or settings.DEFAULT_PAGE_SIZE, 1), settings.MAX_PAGE_SIZE)
    return page, limit


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0
