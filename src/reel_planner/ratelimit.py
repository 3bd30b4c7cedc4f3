"""Fixed-window per-caller rate limiting."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from fastapi import Request

from reel_planner.client import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SECONDS

logger = logging.getLogger(__name__)

UNKNOWN_CALLER = "unknown"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int


@runtime_checkable
class QuotaChecker(Protocol):
    """Allow/deny decision per caller key."""

    window_seconds: int

    def check(self, key: str | None) -> RateLimitDecision:
        ...


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """In-process fixed-window counter keyed by caller identity.

    Windows expire lazily on access. Updates are last-writer-wins; the
    count may be off by a little under concurrent requests.
    """

    def __init__(
        self,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def check(self, key: str | None) -> RateLimitDecision:
        key = key or UNKNOWN_CALLER
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now > window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return RateLimitDecision(allowed=True, remaining=self.max_requests - 1)

        if window.count >= self.max_requests:
            logger.warning("Rate limit exceeded for %s", key)
            return RateLimitDecision(allowed=False, remaining=0)

        window.count += 1
        return RateLimitDecision(
            allowed=True, remaining=self.max_requests - window.count
        )

    def reset(self) -> None:
        self._windows.clear()


def client_ip(request: Request) -> str | None:
    """Caller identity: first X-Forwarded-For hop, X-Real-IP, then the peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None
