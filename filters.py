"""Client-side filtering and pagination helpers for admin tables."""

from __future__ import annotations

import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from models import Pagination

ALL = "All"


def html_to_text(html: Optional[str]) -> str:
    """Flatten rich-text HTML (descriptions, article bodies) to plain text."""
    if not html:
        return ""
    if "<" not in html:
        return html.strip()
    return BeautifulSoup(html, "html.parser").get_text(" ", strip=True)


def _is_unset(value: Any) -> bool:
    return value is None or value == "" or value == ALL


def record_matches(
    record: Mapping[str, Any],
    search: Optional[str] = None,
    fields: Sequence[str] = ("title", "name", "description"),
    **exact: Any,
) -> bool:
    """
    Returns True if ``search`` appears in any of ``fields`` and every ``exact``
    filter equals the record's value. Empty or "All" filters are ignored.
    """
    for name, expected in exact.items():
        if _is_unset(expected):
            continue
        if str(record.get(name, "")).lower() != str(expected).lower():
            return False

    if _is_unset(search):
        return True
    text = " ".join(html_to_text(str(record.get(f) or "")) for f in fields).lower()
    return search.strip().lower() in text


def filter_records(
    records: Iterable[Mapping[str, Any]],
    search: Optional[str] = None,
    fields: Sequence[str] = ("title", "name", "description"),
    **exact: Any,
) -> List[Mapping[str, Any]]:
    return [record for record in records if record_matches(record, search, fields, **exact)]


def paginate(items: Sequence[Any], page: int, per_page: int) -> Tuple[List[Any], Pagination]:
    if per_page <= 0:
        raise ValueError("per_page must be positive")
    total_pages = max(1, math.ceil(len(items) / per_page))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * per_page
    return list(items[start : start + per_page]), Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=len(items),
        items_per_page=per_page,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


def page_window(current_page: int, total_pages: int, size: int = 5) -> List[int]:
    """Page numbers (1-based) for the pager buttons, centred on ``current_page`` where possible."""
    count = min(size, total_pages)
    if count <= 0:
        return []
    first = max(0, min(total_pages - size, current_page - 1 - size // 2)) + 1
    return list(range(first, first + count))
