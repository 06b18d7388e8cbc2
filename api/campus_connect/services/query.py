"""SQL building blocks shared by both opportunity stores.

Everything here is pure: filters, sort options and paging values arrive as the
loosely-typed query bag handed over by the routes and leave as SQL fragments
with ``$n`` placeholders plus the values to bind, ready for asyncpg.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

SORT_FIELDS = ("posted_date", "deadline", "view_count", "created_at", "event_date", "title")
NULLABLE_SORT_FIELDS = {"deadline", "event_date"}
SORT_DIRECTIONS = {"asc", "desc"}
DEFAULT_SORT_FIELD = "posted_date"
DEFAULT_SORT_DIRECTION = "desc"

# Both "upcoming" and "this_month" look 30 days ahead.
DEADLINE_WINDOWS_DAYS = {"upcoming": 30, "this_week": 7, "this_month": 30}

TRUE_STRINGS = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class FilterProfile:
    """Which columns a store exposes to the filter and sort compilers."""

    type_column: str
    search_columns: tuple[str, ...]
    array_filters: frozenset[str]
    exact_filters: frozenset[str]
    sort_fields: tuple[str, ...] = SORT_FIELDS


WORK_FILTER_PROFILE = FilterProfile(
    type_column="work_type",
    search_columns=("title", "organization", "company"),
    array_filters=frozenset({"tags", "skills"}),
    exact_filters=frozenset({"work_style"}),
    sort_fields=tuple(name for name in SORT_FIELDS if name != "event_date"),
)

EVENT_FILTER_PROFILE = FilterProfile(
    type_column="event_type",
    search_columns=("title", "organization"),
    array_filters=frozenset({"tags", "domain"}),
    exact_filters=frozenset({"fees"}),
)


@dataclass(slots=True)
class CompiledFilters:
    conditions: list[str] = field(default_factory=list)
    values: list[Any] = field(default_factory=list)
    next_index: int = 1

    def bind(self, value: Any) -> str:
        self.values.append(value)
        token = f"${self.next_index}"
        self.next_index += 1
        return token

    @property
    def where_sql(self) -> str:
        return " and ".join(self.conditions) if self.conditions else "true"


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def compile_filters(
    filters: Mapping[str, Any],
    profile: FilterProfile,
    *,
    now: datetime | None = None,
    start_index: int = 1,
) -> CompiledFilters:
    """Translate a query bag into AND-ed predicates for one store.

    Keys the store does not know are ignored, and so are empty values. The
    returned ``next_index`` is the first placeholder number still free, so
    callers can append ``limit``/``offset`` binds after the predicates.
    """
    compiled = CompiledFilters(next_index=start_index)

    opportunity_type = _text(filters.get("type")) or _text(filters.get(profile.type_column))
    if opportunity_type:
        compiled.conditions.append(f"{profile.type_column} = {compiled.bind(opportunity_type)}")

    status = _text(filters.get("status"))
    if status:
        compiled.conditions.append(f"status = {compiled.bind(status)}")
    elif not _is_true(filters.get("include_inactive")):
        compiled.conditions.append(f"status = {compiled.bind('active')}")

    for column in ("city", "country"):
        value = _text(filters.get(column))
        if value:
            compiled.conditions.append(f"lower({column}) like lower({compiled.bind(f'%{value}%')})")

    for column in sorted(profile.exact_filters):
        value = _text(filters.get(column))
        if value:
            compiled.conditions.append(f"{column} = {compiled.bind(value)}")

    if _is_true(filters.get("featured")):
        compiled.conditions.append("is_featured = true")
    if _is_true(filters.get("verified")):
        compiled.conditions.append("is_verified = true")

    search = _text(filters.get("search"))
    if search:
        compiled.conditions.append(
            f"to_tsvector('english', {search_document_sql(profile)}) "
            f"@@ plainto_tsquery('english', {compiled.bind(search)})"
        )

    for column in sorted(profile.array_filters):
        items = _text_list(filters.get(column))
        if items:
            compiled.conditions.append(f"{column} && {compiled.bind(items)}::text[]")

    window = _text(filters.get("deadline"))
    if window and window.lower() in DEADLINE_WINDOWS_DAYS:
        starts_at = now or datetime.now(timezone.utc)
        ends_at = starts_at + timedelta(days=DEADLINE_WINDOWS_DAYS[window.lower()])
        lower_token = compiled.bind(starts_at)
        upper_token = compiled.bind(ends_at)
        compiled.conditions.append(f"deadline between {lower_token} and {upper_token}")

    return compiled


def search_document_sql(profile: FilterProfile) -> str:
    # Must match the expression of the GIN search index in db/schema.sql.
    first, *rest = profile.search_columns
    parts = [first, *(f"coalesce({column}, '')" for column in rest)]
    return " || ' ' || ".join(parts)


def compile_order(sort: Any, order: Any, *, allowed: tuple[str, ...] = SORT_FIELDS) -> str:
    sort_field = _text(_first(sort))
    if sort_field not in allowed:
        sort_field = DEFAULT_SORT_FIELD

    direction = _text(_first(order))
    direction = direction.lower() if direction else DEFAULT_SORT_DIRECTION
    if direction not in SORT_DIRECTIONS:
        direction = DEFAULT_SORT_DIRECTION

    nulls_sql = " nulls last" if sort_field in NULLABLE_SORT_FIELDS else ""
    return f"order by {sort_field} {direction}{nulls_sql}, id asc"


def paginate(page: Any, limit: Any, *, default_limit: int = 10, max_limit: int = 50) -> PageRequest:
    page_number = _coerce_int(_first(page)) or 1
    page_size = _coerce_int(_first(limit)) or default_limit
    return PageRequest(page=max(1, page_number), limit=min(max_limit, max(1, page_size)))


def page_meta(total: int, request: PageRequest) -> dict[str, Any]:
    return {
        "total": total,
        "page": request.page,
        "limit": request.limit,
        "total_pages": math.ceil(total / request.limit),
        "has_more": request.page * request.limit < total,
    }


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _text(value: Any) -> str | None:
    value = _first(value)
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return str(value)


def _text_list(value: Any) -> list[str]:
    if value is None:
        return []
    raw_items = value if isinstance(value, (list, tuple)) else str(value).split(",")
    items: list[str] = []
    for item in raw_items:
        stripped = str(item).strip()
        if stripped:
            items.append(stripped)
    return items


def _is_true(value: Any) -> bool:
    value = _first(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return False


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
