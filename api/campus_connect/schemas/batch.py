from typing import Any, Literal

from pydantic import BaseModel, Field

ItemStatus = Literal["created", "updated", "failed"]


class BatchRequest(BaseModel):
    source: str | None = None
    # Shape is checked by the batch coordinator so that a bad list yields a
    # batch-level 400 rather than a per-field validation error.
    opportunities: Any = None


class BatchItemResult(BaseModel):
    id: str | None = None
    type: str | None = None
    category: Literal["work", "event"]
    status: ItemStatus
    url: str | None = None
    error: str | None = None


class TypeTally(BaseModel):
    created: int = 0
    updated: int = 0
    failed: int = 0


class BatchSummary(BaseModel):
    total: int
    created: int
    updated: int
    failed: int


class BatchOut(BaseModel):
    summary: BatchSummary
    breakdown: dict[str, dict[str, TypeTally]] = Field(default_factory=dict)
    results: list[BatchItemResult] | None = None
    message: str
