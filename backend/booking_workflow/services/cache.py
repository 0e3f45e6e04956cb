# backend/booking_workflow/services/cache.py
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from time import monotonic
from typing import Any, Dict, Optional

from ..core.config import settings

log = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class InMemoryCache:
    """
    *Very* simple process-local TTL cache for search responses.
    A ttl of 0 disables storing.
    """
    def __init__(self, default_ttl: Optional[int] = None) -> None:
        self._store: Dict[str, CacheEntry] = {}
        self.default_ttl = settings.SEARCH_CACHE_TTL if default_ttl is None else max(0, default_ttl)

    def get(self, key: str) -> Optional[Any]:
        now = monotonic()
        e = self._store.get(key)
        if not e:
            log.debug("[cache] MISS %s", key[:80])
            return None
        if e.expires_at < now:
            log.debug("[cache] EXPIRED %s", key[:80])
            self._store.pop(key, None)
            return None
        log.debug("[cache] HIT %s", key[:80])
        return e.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return
        now = monotonic()
        self.prune(now)
        self._store[key] = CacheEntry(value=value, expires_at=now + ttl)
        log.debug("[cache] SET %s (ttl=%ss)", key[:80], ttl)

    def prune(self, now: Optional[float] = None) -> int:
        """Drop every expired entry; returns how many went."""
        now = monotonic() if now is None else now
        expired = [k for k, e in self._store.items() if e.expires_at < now]
        for k in expired:
            del self._store[k]
        if expired:
            log.debug("[cache] PRUNED %d", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


def criteria_hash(criteria: Dict[str, Any]) -> str:
    """Stable sha1 of the *normalized* JSON (sorted keys)."""
    payload = json.dumps(criteria, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def search_key(slot: str, criteria: Dict[str, Any]) -> str:
    return f"{slot.upper()}:{criteria_hash(criteria)}"


cache = InMemoryCache()
