"""TTL cache of resolved contexts, keyed by raw credential."""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ghlbridge.config import config
from ghlbridge.ghl.context import ResolvedContext

DEFAULT_TTL_SECONDS = 600.0

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """Memoized context, invalid once the clock passes `expires_at`."""

    expires_at: float
    context: ResolvedContext

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class ContextCache:
    """Credential -> ResolvedContext store with lazy expiry.

    Expired entries are evicted on the next lookup; there is no background
    sweep. The clock is injectable so tests can move time explicitly.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Optional[Clock] = None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, credential: str) -> Optional[ResolvedContext]:
        """Return the cached context, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(credential)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[credential]
                return None
            return entry.context

    def set(self, credential: str, context: ResolvedContext) -> CacheEntry:
        entry = CacheEntry(expires_at=self._clock() + self.ttl_seconds, context=context)
        with self._lock:
            self._entries[credential] = entry
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# Process-wide default, shared by clients that are not given their own cache.
shared_cache = ContextCache(ttl_seconds=config.cache_ttl_seconds)
