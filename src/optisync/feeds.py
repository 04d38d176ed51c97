"""Pure helpers for paginated feeds and the records inside them.

Every helper returns a new value and never mutates its input. When nothing
changes the input object itself is returned, which lets callers skip
no-op writes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from optisync.types import InfiniteData, Page

Record = dict[str, Any]


def step_counter(value: int | None, up: bool) -> int:
    """Move a counter by exactly one, never below zero."""
    return max(0, (value or 0) + (1 if up else -1))


def map_records(data: InfiniteData, fn: Callable[[Record], Record]) -> InfiniteData:
    """Apply fn to every record of every page."""
    changed = False
    pages = []
    for page in data.pages:
        records = tuple(fn(record) for record in page.records)
        if any(new is not old for new, old in zip(records, page.records, strict=True)):
            changed = True
            pages.append(Page(records=records, next_cursor=page.next_cursor))
        else:
            pages.append(page)
    if not changed:
        return data
    return InfiniteData(pages=tuple(pages), page_params=data.page_params)


def filter_records(data: InfiniteData, keep: Callable[[Record], bool]) -> InfiniteData:
    """Drop records for which keep() is false, on every page."""
    changed = False
    pages = []
    for page in data.pages:
        records = tuple(record for record in page.records if keep(record))
        if len(records) != len(page.records):
            changed = True
            pages.append(Page(records=records, next_cursor=page.next_cursor))
        else:
            pages.append(page)
    if not changed:
        return data
    return InfiniteData(pages=tuple(pages), page_params=data.page_params)


def prepend_to_first_page(data: InfiniteData, record: Record) -> InfiniteData:
    """Insert a record at the top of the first page."""
    if not data.pages:
        return data
    first = data.pages[0]
    new_first = Page(records=(record, *first.records), next_cursor=first.next_cursor)
    return InfiniteData(pages=(new_first, *data.pages[1:]), page_params=data.page_params)


def append_to_first_page(data: InfiniteData, record: Record) -> InfiniteData:
    """Insert a record at the end of the first page.

    Comment feeds are ordered newest-last, so the newest comment belongs at
    the end of the first (most recent) page.
    """
    if not data.pages:
        return data
    first = data.pages[0]
    new_first = Page(records=(*first.records, record), next_cursor=first.next_cursor)
    return InfiniteData(pages=(new_first, *data.pages[1:]), page_params=data.page_params)


def replace_record(data: InfiniteData, record_id: str, record: Record) -> InfiniteData:
    """Swap the record with record_id for a new one, wherever it is."""
    return map_records(data, lambda r: record if r.get("id") == record_id else r)


def remove_record(data: InfiniteData, record_id: str) -> InfiniteData:
    return filter_records(data, lambda r: r.get("id") != record_id)


def adjust_count(record: Record, field: str, up: bool) -> Record:
    """Step record["_count"][field] by one, clamped at zero."""
    counts = dict(record.get("_count") or {})
    counts[field] = step_counter(counts.get(field), up)
    return {**record, "_count": counts}


def set_membership(record: Record, field: str, user_id: str, member: bool) -> Record:
    """Set whether user_id appears in a per-viewer relation list.

    Posts carry e.g. ``likes: [{"userId": viewer}]`` filtered to the viewer,
    so membership of the viewer is what "liked by user" means on a record.
    """
    id_field = "followerId" if field == "followers" else "userId"
    current = [item for item in record.get(field) or [] if item.get(id_field) != user_id]
    if member:
        current.append({id_field: user_id})
    return {**record, field: current}

