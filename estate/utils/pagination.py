"""Pagination helpers for list endpoints."""
import math
from typing import Dict, Tuple


def parse_page_args(args, default_limit: int = 10, max_limit: int = 100) -> Tuple[int, int]:
    """Read page/limit query args, clamped to sane bounds."""
    try:
        page = int(args.get('page', 1))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(args.get('limit', default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def build_pagination(page: int, limit: int, total_count: int) -> Dict[str, object]:
    """Pagination block returned next to list payloads."""
    total_pages = math.ceil(total_count / limit) if limit else 0
    return {
        'page': page,
        'limit': limit,
        'totalCount': total_count,
        'totalPages': total_pages,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }
