"""
Sliding-window rate limiting for the admin endpoints.

The limiter is injected into the app rather than living in module state, and
its hit log sits behind ``RateLimitStore`` so a shared store can replace the
in-memory one when the service runs on several hosts.
"""
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import Request

from academy.errors import RateLimitExceededError


class RateLimitStore(ABC):
    """Keeps request timestamps per key."""

    @abstractmethod
    def hit(self, key: str, since: float, now: float, limit: int) -> Tuple[bool, List[float]]:
        """
        Drop timestamps of ``key`` at or before ``since`` and record ``now``
        if fewer than ``limit`` remain, as one atomic step.

        Returns whether ``now`` was recorded and the timestamps that were in
        the window before it.
        """


class MemoryRateLimitStore(RateLimitStore):

    def __init__(self):
        self._hits: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def hit(self, key, since, now, limit):
        with self._lock:
            recent = [t for t in self._hits.get(key, ()) if t > since]
            allowed = len(recent) < limit
            if allowed:
                self._hits[key] = recent + [now]
            elif recent:
                self._hits[key] = recent
            else:
                self._hits.pop(key, None)
            return allowed, recent


class SlidingWindowRateLimiter:

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.store = store or MemoryRateLimitStore()
        self.clock = clock

    def is_allowed(self, key: str) -> Tuple[bool, Optional[int]]:
        """Record a request for ``key``; returns (allowed, seconds until retry)."""
        now = self.clock()
        allowed, recent = self.store.hit(key, now - self.window_seconds, now, self.max_requests)
        if allowed:
            return True, None
        return False, int(min(recent, default=now) + self.window_seconds - now) + 1

    def check(self, key: str):
        allowed, retry_after = self.is_allowed(key)
        if not allowed:
            raise RateLimitExceededError(key, retry_after)


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "anonymous"


def rate_limited(limiter: SlidingWindowRateLimiter):
    """FastAPI dependency enforcing ``limiter`` per client address."""
    def dependency(request: Request):
        limiter.check(client_key(request))
    return dependency
