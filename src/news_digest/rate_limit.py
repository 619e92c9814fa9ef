"""Fixed-window rate limiter on top of a key-value store (INCR + EXPIRE).

The first hit in a window sets the expiry; later hits only increment. A burst
straddling the window boundary can exceed the nominal maximum.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .errors import RateLimitExceeded, StoreError
from .store import KeyValueStore

log = logging.getLogger("news_digest.rate_limit")


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int
    current: int
    key: str

    def retry_after(self, now: int) -> int:
        return max(1, self.reset_at - now)


class RateLimiter:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        prefix: str,
        window_seconds: int,
        max_hits: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._prefix = prefix.rstrip(":")
        self._window = window_seconds
        self._max = max_hits
        self._clock = clock

    def key_for(self, client_id: str) -> str:
        return f"{self._prefix}:{client_id or 'unknown'}"

    def check(self, client_id: str) -> RateLimitResult:
        key = self.key_for(client_id)
        now = int(self._clock())

        current = self._store.incr(key)
        if current == 1:
            self._store.expire(key, self._window)

        ttl: Optional[int] = None
        try:
            ttl = self._store.ttl(key)
        except (StoreError, httpx.HTTPError) as exc:
            log.debug("TTL lookup failed for %s: %s", key, exc)
        else:
            if ttl is None and current > 1:
                # A counter without expiry never resets; restart it as a fresh window.
                log.warning("Rate limit key %s had no expiry, starting a new window", key)
                self._store.setex(key, "1", self._window)
                current = 1
                ttl = self._window

        # None means the lookup failed or the key vanished: assume a fresh window.
        reset_at = now + ttl if ttl is not None and ttl > 0 else now + self._window
        return RateLimitResult(
            allowed=current <= self._max,
            remaining=max(0, self._max - current),
            reset_at=reset_at,
            current=current,
            key=key,
        )

    def enforce(self, client_id: str) -> Optional[RateLimitResult]:
        """
        Raise RateLimitExceeded when over the limit.

        Store failures fail open and return None; the limiter is best-effort.
        """
        try:
            result = self.check(client_id)
        except (StoreError, httpx.HTTPError) as exc:
            log.warning("Rate limiter store unavailable, allowing request: %s", exc)
            return None
        if not result.allowed:
            raise RateLimitExceeded(
                retry_after=result.retry_after(int(self._clock())), limit=self._max
            )
        return result
