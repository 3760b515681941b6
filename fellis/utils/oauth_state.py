"""
Short-lived OAuth CSRF state.

A state token is issued when the Facebook login starts and consumed exactly
once by the callback. Entries older than the TTL are swept whenever a new
one is issued. Tokens are random and single-use, so concurrent requests for
different tokens never contend.
"""

import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class _StateEntry:
    lang: str
    created_at: float


class OAuthStateStore:
    """In-process state store with an injectable clock."""

    def __init__(self, ttl_seconds: int = 600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _StateEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def issue(self, lang: str = "da") -> str:
        self.sweep()
        state = secrets.token_urlsafe(32)
        self._entries[state] = _StateEntry(lang=lang, created_at=self._clock())
        return state

    def consume(self, state: str | None) -> str | None:
        """Pop the state and return its language; None if unknown or expired."""
        if not state:
            return None
        entry = self._entries.pop(state, None)
        if entry is None or self._expired(entry, self._clock()):
            return None
        return entry.lang

    def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        stale = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def _expired(self, entry: _StateEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds
