from __future__ import annotations

import logging
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from campus_connect.core.config import Settings, get_settings
from campus_connect.core.errors import error_response

logger = logging.getLogger(__name__)

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
BATCH_PATH = "/opportunities/batch"
UNLIMITED_PATHS = {"/", "/health", "/healthz"}
PRUNE_THRESHOLD = 10_000


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    tier: str
    limit: int
    window_seconds: int
    message: str


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_seconds),
        }


class FixedWindowRateLimiter:
    """In-process fixed-window counters keyed by (tier, client)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        # (tier, client) -> (window start, hits, window length)
        self._windows: dict[tuple[str, str], tuple[float, int, int]] = {}

    def hit(self, rule: RateLimitRule, client_key: str) -> RateLimitDecision:
        now = self._clock()
        if len(self._windows) > PRUNE_THRESHOLD:
            self._prune(now)

        key = (rule.tier, client_key)
        started_at, count, _ = self._windows.get(key, (now, 0, rule.window_seconds))
        if now - started_at >= rule.window_seconds:
            started_at, count = now, 0
        count += 1
        self._windows[key] = (started_at, count, rule.window_seconds)

        return RateLimitDecision(
            allowed=count <= rule.limit,
            limit=rule.limit,
            remaining=max(0, rule.limit - count),
            reset_seconds=max(0, math.ceil(started_at + rule.window_seconds - now)),
        )

    def reset(self) -> None:
        self._windows.clear()

    def _prune(self, now: float) -> None:
        self._windows = {
            key: entry
            for key, entry in self._windows.items()
            if now - entry[0] < entry[2]
        }


def build_rules(settings: Settings) -> dict[str, RateLimitRule]:
    return {
        "read": RateLimitRule(
            tier="read",
            limit=settings.rate_limit_read_max,
            window_seconds=settings.rate_limit_window_seconds,
            message="Too many read requests. Please try again later.",
        ),
        "write": RateLimitRule(
            tier="write",
            limit=settings.rate_limit_write_max,
            window_seconds=settings.rate_limit_window_seconds,
            message="Too many write requests. Please try again later.",
        ),
        "batch": RateLimitRule(
            tier="batch",
            limit=settings.rate_limit_batch_max,
            window_seconds=settings.rate_limit_batch_window_seconds,
            message=f"Too many batch requests. Limit: {settings.rate_limit_batch_max} per hour.",
        ),
    }


def classify_request(method: str, path: str) -> str | None:
    if method == "OPTIONS" or path in UNLIMITED_PATHS:
        return None
    if method == "POST" and path.rstrip("/") == BATCH_PATH:
        return "batch"
    if method in WRITE_METHODS:
        return "write"
    return "read"


limiter = FixedWindowRateLimiter()


async def rate_limit_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    settings = get_settings()
    tier = classify_request(request.method, request.url.path)
    if not settings.rate_limit_enabled or tier is None:
        return await call_next(request)

    rule = build_rules(settings)[tier]
    client_key = request.client.host if request.client else "anonymous"
    decision = limiter.hit(rule, client_key)
    if not decision.allowed:
        logger.warning("rate limit exceeded tier=%s client=%s path=%s", tier, client_key, request.url.path)
        return error_response(429, "Too many requests", rule.message, headers=decision.headers())

    response = await call_next(request)
    response.headers.update(decision.headers())
    return response
