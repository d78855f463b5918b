"""Generation cache keyed by a fingerprint of the sanitized input.

Entries hold sanitized documents only. Rehydration is the caller's job and
happens after every get(), so personal data never lands in the cache.

Storage is a cachetools TTLCache guarded by an RLock: a get() hit refreshes
recency, inserting into a full cache evicts the least recently used entry, and
expired entries are dropped on access, on insert and by purge_expired() / the
background sweeper.
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from cachetools import Cache, TTLCache

from contracts.document_contracts import GeneratedDocument
from contracts.project import SanitizedProjectData

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    fingerprint: str
    documents: List[GeneratedDocument]
    provider: str
    created_at: float
    hits: int = 0


@dataclass
class CacheStats:
    size: int = 0
    max_size: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    providers: Dict[str, int] = field(default_factory=dict)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class _CountingTTLCache(TTLCache):
    """TTLCache that reports LRU evictions and TTL expirations into CacheStats."""

    def __init__(self, maxsize: int, ttl: float, timer: Callable[[], float], stats: CacheStats):
        super().__init__(maxsize=maxsize, ttl=ttl, timer=timer)
        self._stats = stats

    def popitem(self) -> Tuple[str, CacheEntry]:
        key, entry = super().popitem()
        self._stats.evictions += 1
        logger.debug("Cache full, evicted %s", key[:12])
        return key, entry

    def expire(self, time: Optional[float] = None) -> List[Tuple[str, CacheEntry]]:
        expired = super().expire(time)
        self._stats.expirations += len(expired)
        return expired

    def peek_entries(self) -> List[CacheEntry]:
        """Live entries, read without refreshing their recency."""
        self.expire()
        return [Cache.__getitem__(self, key) for key in list(Cache.__iter__(self))]


def fingerprint(
    data: SanitizedProjectData,
    project_id: str,
    provider: str,
    document_types: Optional[Iterable[Any]] = None,
) -> str:
    """SHA-256 over the canonical JSON of everything that affects the output."""
    types = sorted(getattr(t, "value", str(t)) for t in (document_types or ()))
    payload = {
        "data": data.fingerprint_payload(),
        "project_id": project_id,
        "provider": provider,
        "document_types": types,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class GenerationCache:
    """Thread-safe LRU + TTL cache of generated document sets."""

    def __init__(
        self,
        max_size: int = 50,
        ttl_minutes: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl_minutes * 60
        self._clock = clock
        self._lock = RLock()
        self._stats = CacheStats(max_size=max_size)
        self._entries = self._new_store()
        self._sweeper: Optional[asyncio.Task] = None

    def _new_store(self) -> _CountingTTLCache:
        return _CountingTTLCache(maxsize=self.max_size, ttl=self.ttl, timer=self._clock, stats=self._stats)

    def get(
        self,
        data: SanitizedProjectData,
        project_id: str,
        provider: str,
        document_types: Optional[Iterable[Any]] = None,
    ) -> Optional[List[GeneratedDocument]]:
        """Return a copy of the cached documents, or None on a miss."""
        key = fingerprint(data, project_id, provider, document_types)
        with self._lock:
            self._entries.expire()
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            entry.hits += 1
            self._stats.hits += 1
            documents = [doc.model_copy(deep=True) for doc in entry.documents]
        logger.debug("Cache hit for %s (%s), %d documents", project_id, provider, len(documents))
        return documents

    def set(
        self,
        data: SanitizedProjectData,
        project_id: str,
        documents: List[GeneratedDocument],
        provider: str,
        document_types: Optional[Iterable[Any]] = None,
    ) -> str:
        """Store a copy of sanitized documents; returns the entry's fingerprint."""
        key = fingerprint(data, project_id, provider, document_types)
        entry = CacheEntry(
            fingerprint=key,
            documents=[doc.model_copy(deep=True) for doc in documents],
            provider=provider,
            created_at=self._clock(),
        )
        with self._lock:
            # Overwriting an existing key replaces it in place and never evicts.
            self._entries[key] = entry
        return key

    def get_stats(self) -> CacheStats:
        with self._lock:
            entries = self._entries.peek_entries()
            providers: Dict[str, int] = {}
            for entry in entries:
                providers[entry.provider] = providers.get(entry.provider, 0) + 1
            return CacheStats(
                size=len(entries),
                max_size=self.max_size,
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
                expirations=self._stats.expirations,
                providers=providers,
            )

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            expired = self._entries.expire()
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries = self._new_store()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def start_sweeper(self, interval_seconds: float = 300) -> asyncio.Task:
        """Start a background task that purges expired entries periodically."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.ensure_future(self._sweep(interval_seconds))
        return self._sweeper

    async def _sweep(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.purge_expired()

    async def close(self) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
        self._sweeper = None
