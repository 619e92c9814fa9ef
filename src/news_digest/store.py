"""String key-value store adapters used for caching and rate limiting.

Every operation is a single independent call; nothing here is atomic across
calls. ``UpstashStore`` talks to the Upstash Redis REST API, ``InMemoryStore``
keeps entries in-process for local runs and tests.
"""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx

from .config import Settings
from .errors import StoreError

log = logging.getLogger("news_digest.store")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def setex(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def incr(self, key: str) -> int: ...

    def expire(self, key: str, ttl_seconds: int) -> None: ...

    def ttl(self, key: str) -> Optional[int]: ...


class UpstashStore:
    """
    Thin wrapper around the Upstash REST endpoint.

    Commands are POSTed as JSON arrays (``["SETEX", key, ttl, value]``) so large
    values never end up in the URL.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout_s: float = 3.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_s))
        self._headers = {"Authorization": f"Bearer {token}"}

    def close(self) -> None:
        self._client.close()

    def _command(self, *args: Any) -> Any:
        resp = self._client.post(
            self._base_url,
            json=[str(arg) for arg in args],
            headers=self._headers,
        )
        if resp.status_code >= 400:
            raise StoreError(f"Upstash error {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise StoreError("Upstash returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise StoreError("Upstash returned an unexpected body")
        if data.get("error"):
            raise StoreError(f"Upstash error: {data['error']}")
        return data.get("result")

    def get(self, key: str) -> Optional[str]:
        result = self._command("GET", key)
        return result if isinstance(result, str) else None

    def setex(self, key: str, value: str, ttl_seconds: int) -> None:
        self._command("SETEX", key, ttl_seconds, value)

    def incr(self, key: str) -> int:
        result = self._command("INCR", key)
        if not isinstance(result, int) or isinstance(result, bool):
            raise StoreError("Upstash INCR invalid response")
        return result

    def expire(self, key: str, ttl_seconds: int) -> None:
        self._command("EXPIRE", key, ttl_seconds)

    def ttl(self, key: str) -> Optional[int]:
        # Redis answers -2 for a missing key and -1 for a key without expiry; both become None.
        result = self._command("TTL", key)
        if not isinstance(result, int) or isinstance(result, bool):
            return None
        return result if result >= 0 else None


class InMemoryStore:
    """Process-local store with per-key expiry."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = Lock()

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def setex(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    def incr(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._data[key] = ("1", None)
                return 1
            value, expires_at = entry
            try:
                current = int(value) + 1
            except ValueError as exc:
                raise StoreError(f"value at {key!r} is not an integer") from exc
            self._data[key] = (str(current), expires_at)
            return current

    def expire(self, key: str, ttl_seconds: int) -> None:
        with self._lock:
            entry = self._live(key)
            if entry is not None:
                self._data[key] = (entry[0], self._clock() + ttl_seconds)

    def ttl(self, key: str) -> Optional[int]:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[1] is None:
                return None
            return max(0, int(round(entry[1] - self._clock())))

    def keys(self) -> List[str]:
        with self._lock:
            return [key for key in list(self._data) if self._live(key) is not None]


def build_store(settings: Settings) -> Optional[KeyValueStore]:
    """Upstash when configured, else an in-memory store if enabled, else no store."""
    if settings.upstash_redis_rest_url and settings.upstash_redis_rest_token:
        return UpstashStore(
            settings.upstash_redis_rest_url,
            settings.upstash_redis_rest_token,
            timeout_s=settings.store_timeout_seconds,
        )
    if settings.memory_store:
        log.info("Upstash not configured; using in-memory store")
        return InMemoryStore()
    return None
