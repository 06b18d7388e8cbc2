from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from opentelemetry import trace
from pydantic import BaseModel, ValidationError

from campus_connect.core.config import get_settings
from campus_connect.schemas.opportunities import EventOpportunityCreate, WorkOpportunityCreate
from campus_connect.services.repository import (
    EVENT_STORE_SPEC,
    WORK_STORE_SPEC,
    RepositoryValidationError,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_BATCH_SOURCE = "batch"
ITEM_FAILURES = (ValidationError, RepositoryValidationError, asyncpg.PostgresError)

_CATEGORY_SCHEMAS: dict[str, type[BaseModel]] = {
    WORK_STORE_SPEC.category: WorkOpportunityCreate,
    EVENT_STORE_SPEC.category: EventOpportunityCreate,
}
_CATEGORY_TYPES: dict[str, tuple[str, ...]] = {
    WORK_STORE_SPEC.category: WORK_STORE_SPEC.types,
    EVENT_STORE_SPEC.category: EVENT_STORE_SPEC.types,
}


@dataclass(slots=True)
class BatchOutcome:
    summary: dict[str, int]
    breakdown: dict[str, dict[str, dict[str, int]]]
    results: list[dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Processed {self.summary['total']} opportunities: "
            f"{self.summary['created']} created, "
            f"{self.summary['updated']} updated, "
            f"{self.summary['failed']} failed"
        )


def check_batch_shape(opportunities: Any, *, max_items: int) -> list[Any]:
    if not isinstance(opportunities, list):
        raise RepositoryValidationError("opportunities must be an array", field="opportunities")
    if not opportunities:
        raise RepositoryValidationError("opportunities array cannot be empty", field="opportunities")
    if len(opportunities) > max_items:
        raise RepositoryValidationError(f"Maximum {max_items} opportunities per batch", field="opportunities")
    return opportunities


def partition_batch(opportunities: list[Any], source: str | None) -> dict[str, list[dict[str, Any]]]:
    """Split items by store family; items without a known ``type`` are dropped."""
    partitions: dict[str, list[dict[str, Any]]] = {category: [] for category in _CATEGORY_TYPES}
    for item in opportunities:
        if not isinstance(item, Mapping):
            continue
        category = _category_for_type(item.get("type"))
        if category is None:
            continue
        partitions[category].append({**item, "source": source or DEFAULT_BATCH_SOURCE})
    return partitions


async def run_batch(
    repository: Any,
    *,
    source: str | None,
    opportunities: Any,
    max_items: int = 500,
) -> BatchOutcome:
    items = check_batch_shape(opportunities, max_items=max_items)
    partitions = partition_batch(items, source)

    results: list[dict[str, Any]] = []
    with tracer.start_as_current_span("batch.run") as span:
        span.set_attribute("batch.size", len(items))
        span.set_attribute("batch.source", source or DEFAULT_BATCH_SOURCE)
        for category, category_items in partitions.items():
            for item in category_items:
                results.append(await _upsert_item(repository, category, item))

    outcome = _tally(total=len(items), results=results)
    logger.info(
        "batch processed source=%s total=%s created=%s updated=%s failed=%s",
        source or DEFAULT_BATCH_SOURCE,
        outcome.summary["total"],
        outcome.summary["created"],
        outcome.summary["updated"],
        outcome.summary["failed"],
    )
    return outcome


async def _upsert_item(repository: Any, category: str, item: dict[str, Any]) -> dict[str, Any]:
    opportunity_type = item["type"]
    try:
        payload = _CATEGORY_SCHEMAS[category].model_validate(item).model_dump()
        row = await repository.create_opportunity(opportunity_type=opportunity_type, payload=payload)
    except ITEM_FAILURES as exc:
        logger.warning("batch item failed type=%s url=%s: %s", opportunity_type, item.get("apply_url"), exc)
        return {
            "id": None,
            "type": opportunity_type,
            "category": category,
            "status": "failed",
            "url": item.get("apply_url"),
            "error": _describe_failure(exc),
        }

    return {
        "id": row["id"],
        "type": opportunity_type,
        "category": category,
        "status": row.get("action") or "created",
        "url": row.get("apply_url"),
        "error": None,
    }


def _tally(*, total: int, results: list[dict[str, Any]]) -> BatchOutcome:
    summary = {"total": total, "created": 0, "updated": 0, "failed": 0}
    breakdown = {
        category: {opportunity_type: {"created": 0, "updated": 0, "failed": 0} for opportunity_type in types}
        for category, types in _CATEGORY_TYPES.items()
    }
    for result in results:
        summary[result["status"]] += 1
        breakdown[result["category"]][result["type"]][result["status"]] += 1
    return BatchOutcome(summary=summary, breakdown=breakdown, results=results)


def _category_for_type(opportunity_type: Any) -> str | None:
    for category, types in _CATEGORY_TYPES.items():
        if opportunity_type in types:
            return category
    return None


def _describe_failure(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
    if isinstance(exc, asyncpg.PostgresError) and not get_settings().is_development:
        return f"Database rejected the opportunity ({exc.sqlstate})"
    return str(exc)
