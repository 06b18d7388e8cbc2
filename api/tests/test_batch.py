from __future__ import annotations

import asyncio
from typing import Any

import asyncpg  # type: ignore[import-untyped]
import pytest

from campus_connect.core.config import get_settings
from campus_connect.services.batch import check_batch_shape, partition_batch, run_batch
from campus_connect.services.repository import RepositoryValidationError


class FakeBatchRepository:
    def __init__(self, *, fail_urls: set[str] | None = None) -> None:
        self.fail_urls = fail_urls or set()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._seen: set[tuple[str, str]] = set()

    async def create_opportunity(self, *, opportunity_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((opportunity_type, payload))
        if payload["apply_url"] in self.fail_urls:
            raise RepositoryValidationError("rejected by store")
        key = (opportunity_type, payload["apply_url"])
        action = "updated" if key in self._seen else "created"
        self._seen.add(key)
        return {"id": f"id-{len(self.calls)}", "apply_url": payload["apply_url"], "action": action}


def _item(opportunity_type: str | None, index: int, **extra: Any) -> dict[str, Any]:
    item: dict[str, Any] = {"title": f"Opportunity {index}", "apply_url": f"https://example.com/{index}"}
    if opportunity_type is not None:
        item["type"] = opportunity_type
    item.update(extra)
    return item


def test_check_batch_shape_rejects_bad_batches() -> None:
    with pytest.raises(RepositoryValidationError, match="must be an array"):
        check_batch_shape(None, max_items=500)
    with pytest.raises(RepositoryValidationError, match="cannot be empty"):
        check_batch_shape([], max_items=500)
    with pytest.raises(RepositoryValidationError, match="Maximum 500"):
        check_batch_shape([{}] * 501, max_items=500)
    assert len(check_batch_shape([{}] * 500, max_items=500)) == 500


def test_oversized_batch_never_touches_storage() -> None:
    repository = FakeBatchRepository()
    items = [_item("job", index) for index in range(501)]

    with pytest.raises(RepositoryValidationError):
        asyncio.run(run_batch(repository, source="feed", opportunities=items))

    assert repository.calls == []


def test_partition_batch_drops_unknown_types_and_stamps_source() -> None:
    partitions = partition_batch(
        [_item("job", 1), _item("hackathon", 2), _item("meetup", 3), _item(None, 4), "junk"],
        None,
    )

    assert [item["type"] for item in partitions["work"]] == ["job"]
    assert [item["type"] for item in partitions["event"]] == ["hackathon"]
    assert all(item["source"] == "batch" for item in partitions["work"] + partitions["event"])


def test_run_batch_tallies_mixed_types() -> None:
    repository = FakeBatchRepository()
    items = [
        _item("internship", 1),
        _item("job", 2),
        _item("hackathon", 3, fees="unpaid"),
        _item("learning", 4, learning_type="course"),
        _item("scholarship", 5),
        _item("internship", 1),
        _item("conference", 6),
    ]

    outcome = asyncio.run(run_batch(repository, source="crawler", opportunities=items))

    assert outcome.summary == {"total": 7, "created": 5, "updated": 1, "failed": 0}
    assert outcome.breakdown["work"]["internship"] == {"created": 1, "updated": 1, "failed": 0}
    assert outcome.breakdown["event"]["hackathon"]["created"] == 1
    assert len(repository.calls) == 6
    assert all(payload["source"] == "crawler" for _, payload in repository.calls)
    assert outcome.message == "Processed 7 opportunities: 5 created, 1 updated, 0 failed"


def test_run_batch_records_item_failures_without_aborting() -> None:
    repository = FakeBatchRepository(fail_urls={"https://example.com/2"})
    items = [
        _item("job", 1),
        _item("job", 2),
        _item("job", 3, apply_url="http://localhost/apply"),
        _item("hackathon", 4, title=""),
        _item("hackathon", 5),
    ]

    outcome = asyncio.run(run_batch(repository, source=None, opportunities=items))

    assert outcome.summary == {"total": 5, "created": 2, "updated": 0, "failed": 3}
    assert outcome.breakdown["work"]["job"] == {"created": 1, "updated": 0, "failed": 2}
    assert outcome.breakdown["event"]["hackathon"] == {"created": 1, "updated": 0, "failed": 1}
    failures = [result for result in outcome.results if result["status"] == "failed"]
    assert {failure["url"] for failure in failures} == {
        "https://example.com/2",
        "http://localhost/apply",
        "https://example.com/4",
    }
    assert all(failure["error"] for failure in failures)
    # Schema failures are caught before the repository is called.
    assert len(repository.calls) == 3


class ConstraintRepository(FakeBatchRepository):
    async def create_opportunity(self, *, opportunity_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        if payload["apply_url"] in self.fail_urls:
            self.calls.append((opportunity_type, payload))
            raise asyncpg.UniqueViolationError('duplicate key value violates unique constraint "unique_event_external_id"')
        return await super().create_opportunity(opportunity_type=opportunity_type, payload=payload)


def test_run_batch_keeps_database_messages_out_of_results() -> None:
    repository = ConstraintRepository(fail_urls={"https://example.com/2"})
    items = [_item("hackathon", 1), _item("hackathon", 2, external_id="ext-1")]

    outcome = asyncio.run(run_batch(repository, source="feed", opportunities=items))

    assert outcome.summary == {"total": 2, "created": 1, "updated": 0, "failed": 1}
    [failure] = [result for result in outcome.results if result["status"] == "failed"]
    assert failure["error"] == "Database rejected the opportunity (23505)"
    assert "unique_event_external_id" not in failure["error"]


def test_run_batch_shows_database_messages_in_dev(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CC_ENVIRONMENT", "dev")
    get_settings.cache_clear()
    try:
        repository = ConstraintRepository(fail_urls={"https://example.com/1"})
        outcome = asyncio.run(run_batch(repository, source="feed", opportunities=[_item("hackathon", 1)]))
    finally:
        get_settings.cache_clear()

    assert "unique_event_external_id" in outcome.results[0]["error"]
