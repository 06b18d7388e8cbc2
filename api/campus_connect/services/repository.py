from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]

from campus_connect.core.config import get_settings
from campus_connect.schemas.opportunities import TYPE_FIELDS
from campus_connect.services.query import (
    EVENT_FILTER_PROFILE,
    WORK_FILTER_PROFILE,
    FilterProfile,
    PageRequest,
    compile_filters,
    compile_order,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


@dataclass(frozen=True, slots=True)
class StoreSpec:
    """Table identity and column roles of one opportunity store."""

    category: str
    table: str
    type_column: str
    types: tuple[str, ...]
    statuses: frozenset[str]
    revivable_statuses: tuple[str, ...]
    insert_columns: tuple[str, ...]
    refresh_columns: tuple[str, ...]
    writable_columns: frozenset[str]
    array_columns: frozenset[str]
    organization_columns: tuple[str, ...]
    window_columns: frozenset[str]
    hard_delete: bool
    filter_profile: FilterProfile


WORK_STORE_SPEC = StoreSpec(
    category="work",
    table="opportunities_work",
    type_column="work_type",
    types=("internship", "job"),
    statuses=frozenset({"active", "expired"}),
    revivable_statuses=("expired",),
    insert_columns=(
        "title",
        "apply_url",
        "city",
        "country",
        "work_style",
        "organization",
        "company",
        "image_url",
        "stipend",
        "duration",
        "salary",
        "experience",
        "skills",
        "who_can_apply",
        "deadline",
        "tags",
        "source",
        "external_id",
        "is_verified",
        "is_featured",
    ),
    refresh_columns=(
        "title",
        "city",
        "country",
        "work_style",
        "organization",
        "company",
        "deadline",
        "tags",
        "stipend",
        "duration",
        "salary",
        "experience",
        "skills",
    ),
    writable_columns=frozenset(
        {
            "title",
            "city",
            "country",
            "work_style",
            "organization",
            "company",
            "image_url",
            "deadline",
            "tags",
            "stipend",
            "duration",
            "salary",
            "experience",
            "skills",
            "who_can_apply",
            "is_verified",
            "is_featured",
            "status",
        }
    ),
    array_columns=frozenset({"tags", "skills"}),
    organization_columns=("organization", "company"),
    window_columns=frozenset({"deadline"}),
    hard_delete=True,
    filter_profile=WORK_FILTER_PROFILE,
)

EVENT_STORE_SPEC = StoreSpec(
    category="event",
    table="opportunities_event",
    type_column="event_type",
    types=("hackathon", "learning", "scholarship"),
    statuses=frozenset({"active", "expired", "archived"}),
    revivable_statuses=("expired", "archived"),
    insert_columns=(
        "title",
        "apply_url",
        "city",
        "country",
        "organization",
        "image_url",
        "team_size",
        "fees",
        "perks",
        "event_date",
        "learning_type",
        "deadline",
        "tags",
        "domain",
        "source",
        "external_id",
        "is_verified",
        "is_featured",
    ),
    refresh_columns=(
        "title",
        "city",
        "country",
        "organization",
        "deadline",
        "event_date",
        "tags",
        "domain",
        "team_size",
        "fees",
        "perks",
    ),
    writable_columns=frozenset(
        {
            "title",
            "city",
            "country",
            "organization",
            "image_url",
            "deadline",
            "tags",
            "team_size",
            "fees",
            "perks",
            "event_date",
            "learning_type",
            "domain",
            "is_verified",
            "is_featured",
            "status",
        }
    ),
    array_columns=frozenset({"tags", "domain"}),
    organization_columns=("organization",),
    window_columns=frozenset({"deadline", "event_date"}),
    hard_delete=False,
    filter_profile=EVENT_FILTER_PROFILE,
)


class OpportunityStore:
    """Queries for one opportunity table.

    Every method takes ``conn`` so callers can hand in either the pool or an
    acquired connection.
    """

    def __init__(self, spec: StoreSpec) -> None:
        self.spec = spec
        self._upsert_sql = self._build_upsert_sql()

    @property
    def category(self) -> str:
        return self.spec.category

    def handles(self, opportunity_type: Any) -> bool:
        return isinstance(opportunity_type, str) and opportunity_type in self.spec.types

    async def upsert(self, conn: Any, payload: Mapping[str, Any], opportunity_type: str) -> dict[str, Any]:
        """Insert or refresh by (type, apply_url); the row's ``action`` tells which happened."""
        if not self.handles(opportunity_type):
            raise RepositoryValidationError(
                f"{self.spec.type_column} must be one of: {', '.join(self.spec.types)}",
                field=self.spec.type_column,
            )
        row = await conn.fetchrow(self._upsert_sql, *self._insert_values(payload, opportunity_type))
        return self._row_to_dict(row)

    async def list_page(
        self,
        conn: Any,
        filters: Mapping[str, Any],
        page_request: PageRequest,
    ) -> tuple[list[dict[str, Any]], int]:
        compiled = compile_filters(filters, self.spec.filter_profile)
        order_sql = compile_order(
            filters.get("sort"),
            filters.get("order"),
            allowed=self.spec.filter_profile.sort_fields,
        )
        where_sql = compiled.where_sql

        total = await conn.fetchval(
            f"select count(*) from {self.spec.table} where {where_sql}",
            *compiled.values,
        )

        limit_token = compiled.bind(page_request.limit)
        offset_token = compiled.bind(page_request.offset)
        rows = await conn.fetch(
            f"""
            select *
            from {self.spec.table}
            where {where_sql}
            {order_sql}
            limit {limit_token}
            offset {offset_token}
            """,
            *compiled.values,
        )
        return [self._row_to_dict(row) for row in rows], int(total or 0)

    async def find_matching(self, conn: Any, filters: Mapping[str, Any], limit: int) -> list[dict[str, Any]]:
        compiled = compile_filters(filters, self.spec.filter_profile)
        limit_token = compiled.bind(limit)
        rows = await conn.fetch(
            f"""
            select *
            from {self.spec.table}
            where {compiled.where_sql}
            order by posted_date desc, id asc
            limit {limit_token}
            """,
            *compiled.values,
        )
        return [self._row_to_dict(row) for row in rows]

    async def find_by_id(self, conn: Any, opportunity_id: str) -> dict[str, Any] | None:
        row = await conn.fetchrow(f"select * from {self.spec.table} where id = $1::uuid", opportunity_id)
        return self._row_to_dict(row) if row else None

    async def find_featured(self, conn: Any, opportunity_type: str, limit: int) -> list[dict[str, Any]]:
        rows = await conn.fetch(
            f"""
            select *
            from {self.spec.table}
            where {self.spec.type_column} = $1
              and status = 'active'
              and is_featured = true
            order by posted_date desc, id asc
            limit $2
            """,
            opportunity_type,
            limit,
        )
        return [self._row_to_dict(row) for row in rows]

    async def find_by_organization(self, conn: Any, name: str, limit: int) -> list[dict[str, Any]]:
        matches = " or ".join(f"lower({column}) like lower($1)" for column in self.spec.organization_columns)
        rows = await conn.fetch(
            f"""
            select *
            from {self.spec.table}
            where ({matches})
              and status = 'active'
            order by posted_date desc, id asc
            limit $2
            """,
            f"%{name}%",
            limit,
        )
        return [self._row_to_dict(row) for row in rows]

    async def find_within_days(self, conn: Any, *, column: str, days: int, limit: int) -> list[dict[str, Any]]:
        """Active rows whose ``column`` timestamp falls between now and ``days`` ahead."""
        if column not in self.spec.window_columns:
            raise ValueError(f"{column} is not a window column of {self.spec.table}")
        rows = await conn.fetch(
            f"""
            select *
            from {self.spec.table}
            where status = 'active'
              and {column} is not null
              and {column} between now() and now() + make_interval(days => $1)
            order by {column} asc, id asc
            limit $2
            """,
            days,
            limit,
        )
        return [self._row_to_dict(row) for row in rows]

    async def increment_view_count(self, conn: Any, opportunity_id: str) -> int | None:
        return await conn.fetchval(
            f"""
            update {self.spec.table}
            set view_count = view_count + 1,
                updated_at = now()
            where id = $1::uuid
            returning view_count
            """,
            opportunity_id,
        )

    async def update(self, conn: Any, opportunity_id: str, updates: Mapping[str, Any]) -> dict[str, Any] | None:
        fields = {column: value for column, value in updates.items() if column in self.spec.writable_columns}
        if not fields:
            raise RepositoryValidationError("No valid fields to update")
        status = fields.get("status")
        if "status" in fields and status not in self.spec.statuses:
            raise RepositoryValidationError(
                f"status must be one of: {', '.join(sorted(self.spec.statuses))}",
                field="status",
            )

        values: list[Any] = []
        assignments: list[str] = []
        for column, value in fields.items():
            values.append(value)
            assignments.append(f"{column} = ${len(values)}")
        assignments.append("updated_at = now()")
        values.append(opportunity_id)

        row = await conn.fetchrow(
            f"""
            update {self.spec.table}
            set {', '.join(assignments)}
            where id = ${len(values)}::uuid
            returning *
            """,
            *values,
        )
        return self._row_to_dict(row) if row else None

    async def delete(self, conn: Any, opportunity_id: str) -> bool:
        if self.spec.hard_delete:
            sql = f"delete from {self.spec.table} where id = $1::uuid returning id"
        else:
            sql = f"""
            update {self.spec.table}
            set status = 'archived', updated_at = now()
            where id = $1::uuid
            returning id
            """
        return await conn.fetchval(sql, opportunity_id) is not None

    async def stats(self, conn: Any) -> list[dict[str, Any]]:
        rows = await conn.fetch(
            f"""
            select
              {self.spec.type_column} as type,
              count(*) as total,
              count(*) filter (where status = 'active') as active,
              count(*) filter (where status = 'expired') as expired,
              count(*) filter (where status = 'archived') as archived,
              count(*) filter (where is_featured = true) as featured,
              count(*) filter (where is_verified = true) as verified
            from {self.spec.table}
            group by {self.spec.type_column}
            order by {self.spec.type_column}
            """
        )
        return [
            {
                "type": row["type"],
                "total": int(row["total"]),
                "active": int(row["active"]),
                "expired": int(row["expired"]),
                "archived": int(row["archived"]),
                "featured": int(row["featured"]),
                "verified": int(row["verified"]),
            }
            for row in rows
        ]

    def _build_upsert_sql(self) -> str:
        spec = self.spec
        columns = (spec.type_column, *spec.insert_columns)
        placeholders = ", ".join(f"${index}" for index in range(1, len(columns) + 1))
        revivable = ", ".join(f"'{status}'" for status in spec.revivable_statuses)
        refreshed = ",\n              ".join(f"{column} = excluded.{column}" for column in spec.refresh_columns)
        return f"""
            insert into {spec.table} ({', '.join(columns)})
            values ({placeholders})
            on conflict ({spec.type_column}, apply_url) do update set
              last_seen_date = now(),
              status = case
                when {spec.table}.status in ({revivable}) then 'active'
                else {spec.table}.status
              end,
              {refreshed},
              updated_at = now()
            returning *, case when xmax = 0 then 'created' else 'updated' end as action
            """

    def _insert_values(self, payload: Mapping[str, Any], opportunity_type: str) -> list[Any]:
        values: list[Any] = [opportunity_type]
        for column in self.spec.insert_columns:
            value = payload.get(column)
            if column in {"is_verified", "is_featured"}:
                value = bool(value)
            elif column == "source":
                value = value or "manual"
            elif column == "company":
                value = value or payload.get("organization") or None
            elif value == "" or value == []:
                value = None
            values.append(value)
        return values

    def _row_to_dict(self, row: Any) -> dict[str, Any]:
        item = dict(row)
        item["id"] = str(item["id"])
        for column in self.spec.array_columns:
            item[column] = list(item.get(column) or [])
        return item


class OpportunityRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float = 15.0,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self.work = OpportunityStore(WORK_STORE_SPEC)
        self.event = OpportunityStore(EVENT_STORE_SPEC)
        # Identifier lookups probe stores in this order.
        self.stores: tuple[OpportunityStore, ...] = (self.work, self.event)
        self._pool: asyncpg.Pool | None = None

    async def close(self, timeout: float | None = None) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        try:
            await asyncio.wait_for(pool.close(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("database pool did not drain within %.1fs; terminating connections", timeout)
            pool.terminate()

    def store_for_type(self, opportunity_type: Any) -> OpportunityStore | None:
        return next((store for store in self.stores if store.handles(opportunity_type)), None)

    async def create_opportunity(self, *, opportunity_type: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        store = self._require_store(opportunity_type)
        pool = await self._get_pool()
        row = await store.upsert(pool, payload, opportunity_type)
        logger.info(
            "opportunity upserted table=%s type=%s action=%s id=%s",
            store.spec.table,
            opportunity_type,
            row.get("action"),
            row["id"],
        )
        return row

    async def list_opportunities(
        self,
        *,
        opportunity_type: str,
        filters: Mapping[str, Any],
        page_request: PageRequest,
    ) -> tuple[list[dict[str, Any]], int]:
        store = self._require_store(opportunity_type)
        pool = await self._get_pool()
        return await store.list_page(pool, {**filters, "type": opportunity_type}, page_request)

    async def list_featured(self, *, opportunity_type: str, limit: int) -> list[dict[str, Any]]:
        store = self._require_store(opportunity_type)
        pool = await self._get_pool()
        return await store.find_featured(pool, opportunity_type, limit)

    async def find_work_by_organization(self, *, name: str, limit: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        return await self.work.find_by_organization(pool, name, limit)

    async def find_expiring_work(self, *, days: int, limit: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        return await self.work.find_within_days(pool, column="deadline", days=days, limit=limit)

    async def find_upcoming_events(self, *, days: int, limit: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        return await self.event.find_within_days(pool, column="event_date", days=days, limit=limit)

    async def find_free_events(self, *, event_type: str | None, limit: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        filters: dict[str, Any] = {"fees": "unpaid"}
        if event_type:
            filters["type"] = event_type
        return await self.event.find_matching(pool, filters, limit)

    async def find_events_by_domain(self, *, domains: Sequence[str], limit: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        return await self.event.find_matching(pool, {"domain": list(domains)}, limit)

    async def get_opportunity(self, opportunity_id: str) -> dict[str, Any]:
        """Fetch by id across both stores and count the view."""
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            store, row = await self._resolve(conn, opportunity_id)
            view_count = await store.increment_view_count(conn, opportunity_id)
        if view_count is not None:
            row["view_count"] = int(view_count)
        return {**row, "category": store.category}

    async def update_opportunity(self, opportunity_id: str, updates: Mapping[str, Any]) -> dict[str, Any]:
        if any(field in updates for field in TYPE_FIELDS):
            raise RepositoryValidationError("Cannot change opportunity type: work_type and event_type cannot be modified")

        pool = await self._get_pool()
        async with pool.acquire() as conn:
            store, _ = await self._resolve(conn, opportunity_id)
            row = await store.update(conn, opportunity_id, updates)
        if row is None:
            raise RepositoryNotFoundError("Opportunity not found")
        return {**row, "category": store.category}

    async def delete_opportunity(self, opportunity_id: str) -> str:
        """Hard-delete work rows, archive event rows; returns the resolved category."""
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            store, _ = await self._resolve(conn, opportunity_id)
            deleted = await store.delete(conn, opportunity_id)
        if not deleted:
            raise RepositoryNotFoundError("Opportunity not found")
        logger.info("opportunity deleted table=%s id=%s hard=%s", store.spec.table, opportunity_id, store.spec.hard_delete)
        return store.category

    async def get_stats(self) -> dict[str, list[dict[str, Any]]]:
        pool = await self._get_pool()
        work_stats, event_stats = await asyncio.gather(self.work.stats(pool), self.event.stats(pool))
        return {"work": work_stats, "event": event_stats}

    async def _resolve(self, conn: Any, opportunity_id: str) -> tuple[OpportunityStore, dict[str, Any]]:
        for store in self.stores:
            row = await store.find_by_id(conn, opportunity_id)
            if row is not None:
                return store, row
        raise RepositoryNotFoundError(f"No opportunity found with ID: {opportunity_id}")

    def _require_store(self, opportunity_type: str) -> OpportunityStore:
        store = self.store_for_type(opportunity_type)
        if store is None:
            raise RepositoryValidationError(f"unknown opportunity type: {opportunity_type}", field="type")
        return store

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("CC_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc


@lru_cache
def get_repository() -> OpportunityRepository:
    settings = get_settings()
    return OpportunityRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )
