"""Per-corporation caching of list snapshots read from Supabase.

``CorporationCache`` keeps one snapshot per corporation UUID. Reads consult
the in-memory entry first, then the local persistence layer (Django's cache
framework) and finally the loader; every successful load is written back to
both. Mutations call ``invalidate`` for the affected corporation.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from django.conf import settings
from django.core.cache import cache as local_store

logger = logging.getLogger(__name__)


T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Snapshot of one corporation's list plus its freshness."""

    value: T
    fetched_at: float
    fresh: bool = True


class CorporationCache(Generic[T]):
    """Per-corporation list cache with explicit invalidation.

    ``loader`` receives the corporation UUID and returns the list to cache.
    Entries older than ``ttl`` seconds are treated as stale.
    """

    def __init__(self, name: str, loader: Callable[[str], T], ttl: int | None = None):
        self.name = name
        self.loader = loader
        self.ttl = ttl if ttl is not None else getattr(settings, "PROCUREMENT_CACHE_TTL", 300)
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def _store_key(self, corporation_uuid: str) -> str:
        return f"{self.name}:{corporation_uuid}"

    def _is_fresh(self, entry: CacheEntry[T] | None, now: float) -> bool:
        return entry is not None and entry.fresh and now - entry.fetched_at < self.ttl

    def peek(self, corporation_uuid: str) -> Optional[CacheEntry[T]]:
        """Return the in-memory entry without loading anything."""
        return self._entries.get(corporation_uuid)

    def get(self, corporation_uuid: str, force: bool = False) -> T:
        """Return the cached list for ``corporation_uuid``, loading it if needed."""
        with self._lock:
            now = time.time()
            entry = self._entries.get(corporation_uuid)
            if not force and self._is_fresh(entry, now):
                return entry.value  # type: ignore[union-attr]

            if not force:
                persisted = local_store.get(self._store_key(corporation_uuid))
                if persisted is not None:
                    self._entries[corporation_uuid] = CacheEntry(persisted, now)
                    return persisted

            return self._load(corporation_uuid, now, entry)

    def refresh(self, corporation_uuid: str) -> T:
        """Reload ``corporation_uuid`` from the store immediately."""
        return self.get(corporation_uuid, force=True)

    def invalidate(self, corporation_uuid: str) -> None:
        """Mark the corporation's snapshot stale and drop the persisted copy."""
        with self._lock:
            entry = self._entries.get(corporation_uuid)
            if entry is not None:
                entry.fresh = False
            local_store.delete(self._store_key(corporation_uuid))
        logger.debug("Invalidated %s cache for %s", self.name, corporation_uuid)

    def clear(self) -> None:
        with self._lock:
            for corporation_uuid in list(self._entries):
                local_store.delete(self._store_key(corporation_uuid))
            self._entries.clear()

    def _load(self, corporation_uuid: str, now: float, previous: CacheEntry[T] | None) -> T:
        try:
            value = self.loader(corporation_uuid)
        except Exception:
            if previous is not None:
                logger.exception("Failed to refresh %s for %s", self.name, corporation_uuid)
                return previous.value
            raise
        self._entries[corporation_uuid] = CacheEntry(value, now)
        local_store.set(self._store_key(corporation_uuid), value, self.ttl)
        return value


_registry: List[CorporationCache] = []


def corporation_cache(name: str, loader: Callable[[str], T], ttl: int | None = None) -> CorporationCache[T]:
    """Create a ``CorporationCache`` and register it for ``clear_all``."""
    cache_obj: CorporationCache[T] = CorporationCache(name, loader, ttl)
    _registry.append(cache_obj)
    return cache_obj


def clear_all() -> None:
    """Empty every registered corporation cache."""
    for cache_obj in _registry:
        cache_obj.clear()


__all__ = ["CacheEntry", "CorporationCache", "corporation_cache", "clear_all"]
