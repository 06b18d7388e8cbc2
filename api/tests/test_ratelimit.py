from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

from campus_connect.core import ratelimit
from campus_connect.core.config import Settings, get_settings
from campus_connect.core.ratelimit import FixedWindowRateLimiter, RateLimitRule, build_rules, classify_request
from campus_connect.main import app


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_limiter_blocks_after_limit_and_resets_with_window() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(clock=clock)
    rule = RateLimitRule(tier="write", limit=2, window_seconds=60, message="slow down")

    first = limiter.hit(rule, "1.2.3.4")
    second = limiter.hit(rule, "1.2.3.4")
    third = limiter.hit(rule, "1.2.3.4")

    assert (first.allowed, first.remaining) == (True, 1)
    assert (second.allowed, second.remaining) == (True, 0)
    assert third.allowed is False
    assert third.headers() == {"RateLimit-Limit": "2", "RateLimit-Remaining": "0", "RateLimit-Reset": "60"}

    clock.now += 60
    assert limiter.hit(rule, "1.2.3.4").allowed is True


def test_limiter_counts_clients_and_tiers_separately() -> None:
    limiter = FixedWindowRateLimiter(clock=FakeClock())
    write = RateLimitRule(tier="write", limit=1, window_seconds=60, message="")
    read = RateLimitRule(tier="read", limit=1, window_seconds=60, message="")

    assert limiter.hit(write, "a").allowed
    assert limiter.hit(write, "b").allowed
    assert limiter.hit(read, "a").allowed
    assert not limiter.hit(write, "a").allowed


def test_pruning_keeps_batch_windows_younger_than_an_hour(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ratelimit, "PRUNE_THRESHOLD", 2)
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(clock=clock)
    batch = RateLimitRule(tier="batch", limit=1, window_seconds=3600, message="")
    read = RateLimitRule(tier="read", limit=100, window_seconds=900, message="")

    assert limiter.hit(batch, "client").allowed
    assert not limiter.hit(batch, "client").allowed
    for client_key in ("a", "b", "c"):
        limiter.hit(read, client_key)

    clock.now += 1000
    limiter.hit(read, "d")

    decision = limiter.hit(batch, "client")
    assert decision.allowed is False
    assert decision.reset_seconds == 2600


def test_classify_request() -> None:
    assert classify_request("GET", "/internships") == "read"
    assert classify_request("POST", "/internships") == "write"
    assert classify_request("PATCH", "/opportunities/x") == "write"
    assert classify_request("DELETE", "/opportunities/x") == "write"
    assert classify_request("POST", "/opportunities/batch") == "batch"
    assert classify_request("GET", "/health") is None
    assert classify_request("OPTIONS", "/internships") is None


def test_build_rules_uses_configured_quotas() -> None:
    rules = build_rules(Settings(rate_limit_read_max=300, rate_limit_write_max=20, rate_limit_batch_max=10))

    assert rules["read"].limit == 300
    assert rules["read"].window_seconds == 900
    assert rules["write"].limit == 20
    assert rules["batch"].limit == 10
    assert rules["batch"].window_seconds == 3600


@pytest.fixture
def limited_client() -> TestClient:
    os.environ["CC_RATE_LIMIT_ENABLED"] = "true"
    os.environ["CC_RATE_LIMIT_READ_MAX"] = "2"
    get_settings.cache_clear()
    ratelimit.limiter.reset()

    with TestClient(app) as client:
        yield client

    ratelimit.limiter.reset()
    os.environ["CC_RATE_LIMIT_ENABLED"] = "false"
    os.environ.pop("CC_RATE_LIMIT_READ_MAX", None)
    get_settings.cache_clear()


def test_middleware_returns_429_when_quota_exhausted(limited_client: TestClient) -> None:
    first = limited_client.get("/no-such-route")
    second = limited_client.get("/no-such-route")
    third = limited_client.get("/no-such-route")

    assert first.status_code == 404
    assert first.headers["RateLimit-Remaining"] == "1"
    assert second.status_code == 404
    assert third.status_code == 429
    assert third.json()["error"] == "Too many requests"
    assert third.headers["RateLimit-Limit"] == "2"


def test_middleware_skips_health(limited_client: TestClient) -> None:
    for _ in range(5):
        assert limited_client.get("/health").status_code == 200
