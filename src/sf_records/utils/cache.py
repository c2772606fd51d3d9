"""In-memory token cache shared by token managers."""

from __future__ import annotations

import logging
import threading

from sf_records.models.auth import Token

logger = logging.getLogger(__name__)

# The system holds exactly one active identity
DEFAULT_KEY = "default"


class TokenCache:
    """Thread-safe keyed token store with a per-key refresh gate.

    Reads and writes take a short internal lock. ``refresh_lock(key)`` hands
    out one lock per key so that at most one credential exchange is in flight
    for that key at a time. Each finished exchange bumps a per-key counter and
    records its failure, if any, so callers that queued behind it can share
    the outcome instead of exchanging again.
    """

    def __init__(self) -> None:
        self._store: dict[str, Token] = {}
        self._lock = threading.Lock()
        self._refresh_locks: dict[str, threading.Lock] = {}
        self._refresh_counts: dict[str, int] = {}
        self._failures: dict[str, Exception] = {}

    def get(self, key: str = DEFAULT_KEY) -> Token | None:
        """Return the cached token for a key, expired or not."""
        with self._lock:
            return self._store.get(key)

    def put(self, token: Token, key: str = DEFAULT_KEY) -> None:
        """Store a token, replacing any previous entry wholesale."""
        with self._lock:
            self._store[key] = token

    def invalidate(self, key: str = DEFAULT_KEY, stale: Token | None = None) -> bool:
        """Drop the entry for a key.

        When ``stale`` is given, the entry is dropped only if it is still that
        token. Returns True if an entry was removed.
        """
        with self._lock:
            current = self._store.get(key)
            if current is None:
                return False
            if stale is not None and current is not stale:
                logger.debug("Token for '%s' already replaced; not invalidating", key)
                return False
            del self._store[key]
            return True

    def refresh_lock(self, key: str = DEFAULT_KEY) -> threading.Lock:
        """The lock serializing refreshes for a key."""
        with self._lock:
            lock = self._refresh_locks.get(key)
            if lock is None:
                lock = self._refresh_locks[key] = threading.Lock()
            return lock

    def refresh_count(self, key: str = DEFAULT_KEY) -> int:
        """Number of exchanges finished for a key, successful or not."""
        with self._lock:
            return self._refresh_counts.get(key, 0)

    def record_refresh(self, key: str = DEFAULT_KEY, error: Exception | None = None) -> None:
        """Mark an exchange for a key as finished, with its error if it failed."""
        with self._lock:
            self._refresh_counts[key] = self._refresh_counts.get(key, 0) + 1
            if error is None:
                self._failures.pop(key, None)
            else:
                self._failures[key] = error

    def last_failure(self, key: str = DEFAULT_KEY) -> Exception | None:
        """Error of the most recent exchange for a key, or None if it succeeded."""
        with self._lock:
            return self._failures.get(key)

    def clear(self) -> int:
        """Drop every entry."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
            self._failures.clear()
            return count

    @property
    def size(self) -> int:
        """Number of entries currently in the cache."""
        with self._lock:
            return len(self._store)
