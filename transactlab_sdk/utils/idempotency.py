"""
Idempotency key derivation and client-side response cache.
"""

import copy
import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

# Expired entries are swept once the cache grows past this many keys
SWEEP_THRESHOLD = 100

# Returned by IdempotencyCache.get on a miss; a cached body may itself be None
MISSING = object()


def derive_idempotency_key(method: str, url: str, body: Optional[Any] = None) -> str:
    """
    Derive a deterministic idempotency key for a request.

    The key is the SHA-256 hex digest of the canonical JSON encoding of
    ``(method, url, body or {})``. Equal inputs always give the same key, so a
    retried write replays against the same cache entry.

    Args:
        method: HTTP method
        url: Request URL or path
        body: Request body

    Returns:
        64-character hex digest

    Examples:
        >>> key = derive_idempotency_key("POST", "/sandbox/sessions", {"amount": 300000})
        >>> len(key)
        64
    """
    content = json.dumps(
        {"method": method.upper(), "url": url, "body": body if body is not None else {}},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass
class IdempotencyCacheEntry:
    key: str
    response: Any
    expires_at: float


class IdempotencyCache:
    """
    In-memory cache of successful responses keyed by idempotency key.

    Owned by a single HTTP client instance; never shared through module state.
    All access is serialized with a lock so the cache is safe to use from
    several threads. There is no single-flight: two concurrent misses for the
    same key both reach the network.
    """

    def __init__(
        self,
        sweep_threshold: int = SWEEP_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize idempotency cache.

        Args:
            sweep_threshold: Size above which expired entries are swept on insert
            clock: Time source in seconds
        """
        self.sweep_threshold = sweep_threshold
        self._clock = clock
        self._entries: Dict[str, IdempotencyCacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, MISSING) is not MISSING

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the cached response for ``key``, or ``default`` on a miss.

        Pass ``MISSING`` as the default to tell a miss from a cached null body.

        Expired entries are removed on lookup.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if self._clock() > entry.expires_at:
                del self._entries[key]
                return default
            return copy.deepcopy(entry.response)

    def set(self, key: str, response: Any, ttl_seconds: float) -> None:
        """
        Cache a successful response.

        Args:
            key: Idempotency key
            response: Parsed response body
            ttl_seconds: Entry lifetime
        """
        with self._lock:
            self._entries[key] = IdempotencyCacheEntry(
                key=key,
                response=copy.deepcopy(response),
                expires_at=self._clock() + ttl_seconds,
            )
            if len(self._entries) > self.sweep_threshold:
                self._sweep_locked()

    def sweep(self) -> int:
        """Remove expired entries. Returns the number removed."""
        with self._lock:
            return self._sweep_locked()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _sweep_locked(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)
