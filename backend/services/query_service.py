"""
Wingmann Engine - Query Service

Newest-first listing of the canonical store with page/limit pagination.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from ..core.models import Submission

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _created_key(record: Submission) -> datetime:
    try:
        parsed = datetime.fromisoformat(record.created_at)
    except ValueError:
        return _OLDEST
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_newest_first(records: Iterable[Submission]) -> list[Submission]:
    """
    Sort by created_at descending.

    The sort is stable: records with equal created_at keep append order.
    Unparseable timestamps sort last.
    """
    return sorted(records, key=_created_key, reverse=True)


def parse_positive_int(value: Any, default: int) -> int:
    """Lenient query-string integer: missing, non-numeric or < 1 gives default."""
    if value is None:
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return default
    return parsed if parsed >= 1 else default


@dataclass
class Page:
    records: list[Submission]
    page: int
    limit: int
    total: int
    total_pages: int

    def pagination(self) -> dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


def list_submissions(
    records: list[Submission],
    page: Any = None,
    limit: Any = None,
) -> Page:
    """
    Return one page of records, newest first.

    An out-of-range page yields an empty list, not an error.
    """
    page_no = parse_positive_int(page, DEFAULT_PAGE)
    page_size = min(parse_positive_int(limit, DEFAULT_LIMIT), MAX_LIMIT)

    ordered = sort_newest_first(records)
    offset = (page_no - 1) * page_size
    total = len(ordered)

    return Page(
        records=ordered[offset : offset + page_size],
        page=page_no,
        limit=page_size,
        total=total,
        total_pages=math.ceil(total / page_size),
    )
