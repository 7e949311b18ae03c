"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Bounded cache for the SiYuan MCP server.

Entries expire after a per-entry TTL, and the cache is bounded both by entry
count and by an estimated memory budget. Least-recently-used entries are
evicted under count pressure; large, rarely read entries are evicted under
memory pressure. A background task sweeps expired entries periodically.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Cache configuration constants
DEFAULT_MAX_ENTRIES = 1000
DEFAULT_TTL = 300.0
DEFAULT_MAX_MEMORY_MB = 50.0
DEFAULT_CLEANUP_INTERVAL = 60.0
DEFAULT_ENTRY_SIZE = 1000

# Share of entries dropped when the entry-count budget is reached
LRU_EVICTION_RATIO = 0.1


def estimate_size(value: Any) -> int:
    """
    Estimate the in-memory size of a value in bytes.

    This is an approximation: the JSON form of the value, counted at two bytes
    per character. Values that cannot be serialized get a fixed default size.
    """
    try:
        return len(json.dumps(value)) * 2
    except (TypeError, ValueError):
        return DEFAULT_ENTRY_SIZE


@dataclass
class CacheConfig:
    """Limits and timings for a CacheManager."""
    max_entries: int = DEFAULT_MAX_ENTRIES
    default_ttl: float = DEFAULT_TTL
    max_memory_mb: float = DEFAULT_MAX_MEMORY_MB
    cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL

    @property
    def max_memory_bytes(self) -> int:
        return int(self.max_memory_mb * 1024 * 1024)


@dataclass
class CacheEntry:
    """A single cached value with its bookkeeping."""
    key: str
    value: Any
    created_at: float
    ttl: float
    last_accessed: float
    access_count: int
    size: int

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass
class CacheStatistics:
    """Point-in-time view of the cache."""
    total_entries: int
    total_size: int
    memory_usage_mb: float
    hit_rate: float
    miss_rate: float
    total_hits: int
    total_misses: int
    evictions: int
    cleanups: int
    oldest_entry: Optional[float] = None
    newest_entry: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalEntries": self.total_entries,
            "totalSize": self.total_size,
            "memoryUsageMB": self.memory_usage_mb,
            "hitRate": self.hit_rate,
            "missRate": self.miss_rate,
            "totalHits": self.total_hits,
            "totalMisses": self.total_misses,
            "evictions": self.evictions,
            "cleanups": self.cleanups,
            "oldestEntry": self.oldest_entry,
            "newestEntry": self.newest_entry,
        }


class CacheManager:
    """TTL cache bounded by entry count and estimated memory usage."""

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        size_estimator: Callable[[Any], int] = estimate_size,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or CacheConfig()
        self._size_estimator = size_estimator
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._cleanups = 0
        self._cleanup_task: Optional[asyncio.Task] = None

    # Lifecycle

    def initialize(self) -> None:
        """Start the periodic expiry sweep. Requires a running event loop."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="cache-cleanup")
        logger.info(
            "Cache initialized (max_entries=%d, max_memory_mb=%s, default_ttl=%ss)",
            self.config.max_entries,
            self.config.max_memory_mb,
            self.config.default_ttl,
        )

    async def destroy(self) -> None:
        """Stop the expiry sweep and drop every entry."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.clear()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval)
            try:
                self.cleanup()
            except Exception:
                logger.exception("Cache cleanup pass failed")

    # Public contract

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss or an expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        now = self._clock()
        if entry.is_expired(now):
            self._remove(key)
            self._misses += 1
            return None

        entry.access_count += 1
        entry.last_accessed = now
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Insert or replace a value, evicting other entries if a budget requires it."""
        now = self._clock()
        size = self._size_estimator(value)

        # Re-insertion replaces the old entry wholesale
        self._remove(key)

        if not self._ensure_space(size):
            return

        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            ttl=self.config.default_ttl if ttl is None else ttl,
            last_accessed=now,
            access_count=1,
            size=size,
        )
        self._total_size += size

    def has(self, key: str) -> bool:
        """Check presence without touching access statistics."""
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def delete(self, key: str) -> bool:
        """Remove key from cache. Absent keys are a no-op."""
        return self._remove(key)

    def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix and return how many were removed."""
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            self._remove(key)
        return len(keys)

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        self._entries.clear()
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._cleanups = 0

    def statistics(self) -> CacheStatistics:
        total_requests = self._hits + self._misses
        timestamps = [entry.created_at for entry in self._entries.values()]
        return CacheStatistics(
            total_entries=len(self._entries),
            total_size=self._total_size,
            memory_usage_mb=self._total_size / (1024 * 1024),
            hit_rate=self._hits / total_requests if total_requests else 0.0,
            miss_rate=self._misses / total_requests if total_requests else 0.0,
            total_hits=self._hits,
            total_misses=self._misses,
            evictions=self._evictions,
            cleanups=self._cleanups,
            oldest_entry=min(timestamps) if timestamps else None,
            newest_entry=max(timestamps) if timestamps else None,
        )

    def cleanup(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)

        if expired:
            self._cleanups += 1
            logger.info("Cleaned up %d expired cache entries", len(expired))
        return len(expired)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return len(self._entries)

    # Eviction

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_size -= entry.size
        return True

    def _ensure_space(self, size: int) -> bool:
        """Make room for an entry of the given size. False if it can never fit."""
        max_bytes = self.config.max_memory_bytes
        if self.config.max_entries <= 0 or size > max_bytes:
            if self.config.max_entries > 0:
                logger.warning("Cache entry of %d bytes exceeds the %d byte budget; not cached", size, max_bytes)
            return False

        if len(self._entries) >= self.config.max_entries:
            self._evict_least_recently_used()

        if self._total_size + size > max_bytes:
            self._evict_by_memory_pressure(size)

        return True

    def _evict_least_recently_used(self) -> None:
        ordered = sorted(self._entries.values(), key=lambda entry: entry.last_accessed)
        to_remove = max(1, int(len(ordered) * LRU_EVICTION_RATIO))

        for entry in ordered[:to_remove]:
            self._remove(entry.key)
            self._evictions += 1

        logger.info("Evicted %d least recently used cache entries", to_remove)

    def _evict_by_memory_pressure(self, required: int) -> None:
        # Largest and least accessed entries go first
        ordered = sorted(self._entries.values(), key=lambda entry: entry.access_count - entry.size)
        max_bytes = self.config.max_memory_bytes

        freed = 0
        removed = 0
        for entry in ordered:
            if self._total_size + required <= max_bytes:
                break
            self._remove(entry.key)
            freed += entry.size
            removed += 1
            self._evictions += 1

        logger.info("Evicted %d cache entries to free %d bytes", removed, freed)


# Cache key builders shared by resources, tools and prompts

NOTEBOOKS_LIST_KEY = "notebooks:list"
WORKSPACE_KEY = "workspace:info"
SEARCH_KEY_PREFIX = "search:"
DOCUMENT_KEY_PREFIX = "document:"
BLOCK_CHILDREN_KEY_PREFIX = "block-children:"


def notebook_key(notebook_id: str) -> str:
    return f"notebook:{notebook_id}"


def document_key(document_id: str) -> str:
    return f"{DOCUMENT_KEY_PREFIX}{document_id}"


def block_key(block_id: str) -> str:
    return f"block:{block_id}"


def block_children_key(block_id: str) -> str:
    return f"{BLOCK_CHILDREN_KEY_PREFIX}{block_id}"


def search_key(query: str, method: int, limit: int) -> str:
    return f"{SEARCH_KEY_PREFIX}{query}:{method}:{limit}"
