"""
In-memory result cache for engine operations.

The cache is constructed explicitly and handed to whoever needs it; there is
no module-level instance. Keys are built by callers with fingerprint().
"""

import dataclasses
import hashlib
import json
import sys
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from .config import CacheOptions
from .log import get_logger

logger = get_logger(__name__)

_MB = 1024 * 1024


def _normalize(obj):
    """json.dumps fallback for the values engine parameters are made of."""
    if isinstance(obj, np.ndarray):
        data = np.ascontiguousarray(obj)
        return {"__array__": hashlib.sha256(data.tobytes()).hexdigest(),
                "shape": list(data.shape), "dtype": str(data.dtype)}
    if isinstance(obj, np.generic):
        return obj.item()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {"__type__": type(obj).__name__,
                **{f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}}
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"cannot fingerprint {type(obj).__name__}")


def fingerprint(operation: str, **params) -> str:
    """Deterministic key for an operation and its parameters.

    Parameters are rendered as sorted-key JSON; arrays contribute a hash of
    their content, so equal inputs give equal keys regardless of identity.
    """
    payload = json.dumps({"operation": operation, "params": params},
                         sort_keys=True, default=_normalize)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def estimate_size(data: Any) -> int:
    """Approximate memory footprint in bytes (numpy nbytes for arrays)."""
    if isinstance(data, np.ndarray):
        return int(data.nbytes)
    if isinstance(data, (str, bytes)):
        return len(data)
    if isinstance(data, (list, tuple)):
        return sum(estimate_size(item) for item in data)
    if isinstance(data, dict):
        return sum(estimate_size(k) + estimate_size(v) for k, v in data.items())
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return sum(estimate_size(getattr(data, f.name)) for f in dataclasses.fields(data))
    return sys.getsizeof(data)


@dataclass
class CacheEntry:
    value: Any
    size_bytes: int
    created_at: float
    last_access: float
    hit_count: int = 0


class ResultCache:
    """LRU cache bounded by entry count and estimated byte size.

    Thread-safe: every read and mutation runs under one lock. Maintenance
    (expire_older_than, prune_below_hits) only happens when called.
    """

    def __init__(self, max_entries: int = 100, max_memory_mb: float = 100.0,
                 clock: Callable[[], float] = time.monotonic):
        options = CacheOptions(max_entries=max_entries, max_memory_mb=max_memory_mb)
        self.max_entries = int(options.max_entries)
        self.max_size_bytes = int(options.max_memory_mb * _MB)
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @classmethod
    def from_options(cls, options: CacheOptions, clock: Callable[[], float] = time.monotonic):
        return cls(options.max_entries, options.max_memory_mb, clock)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    @property
    def total_size(self) -> int:
        with self._lock:
            return self._total_size

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return default
            self._hit(key, entry)
            return entry.value

    def set(self, key: str, value: Any) -> bool:
        """Store a value; False (and nothing evicted) when it alone exceeds the budget."""
        size = estimate_size(value)
        if size > self.max_size_bytes:
            logger.warning("Not caching %s: %.2f MB exceeds the %.2f MB budget",
                           key[:12], size / _MB, self.max_size_bytes / _MB)
            return False

        with self._lock:
            if key in self._entries:
                self._remove(key)
            while self._entries and (len(self._entries) >= self.max_entries
                                     or self._total_size + size > self.max_size_bytes):
                self._evict_oldest()
            now = self._clock()
            self._entries[key] = CacheEntry(value=value, size_bytes=size, created_at=now,
                                            last_access=now)
            self._total_size += size
        return True

    def get_or_compute(self, key: str, compute: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._hit(key, entry)
                return entry.value
            self._misses += 1
        value = compute()
        self.set(key, value)
        return value

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._entries:
                self._remove(key)
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._total_size = 0

    def expire_older_than(self, max_age_seconds: float) -> int:
        """Drop entries not read or written for max_age_seconds; returns how many."""
        with self._lock:
            now = self._clock()
            stale = [k for k, e in self._entries.items() if now - e.last_access > max_age_seconds]
            for key in stale:
                self._remove(key)
        if stale:
            logger.debug("Expired %d cache entries idle for more than %.0f s", len(stale), max_age_seconds)
        return len(stale)

    def prune_below_hits(self, min_hits: int = 2) -> int:
        """Drop entries read fewer than min_hits times; returns how many."""
        with self._lock:
            cold = [k for k, e in self._entries.items() if e.hit_count < min_hits]
            for key in cold:
                self._remove(key)
        if cold:
            logger.debug("Pruned %d cache entries with fewer than %d hits", len(cold), min_hits)
        return len(cold)

    def stats(self) -> dict:
        with self._lock:
            requests = self._hits + self._misses
            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "size_mb": self._total_size / _MB,
                "max_size_mb": self.max_size_bytes / _MB,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / requests if requests else 0.0,
                "evictions": self._evictions,
            }

    # lock held by callers of the helpers below

    def _hit(self, key: str, entry: CacheEntry) -> None:
        self._entries.move_to_end(key)
        entry.hit_count += 1
        entry.last_access = self._clock()
        self._hits += 1

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._total_size -= entry.size_bytes

    def _evict_oldest(self) -> None:
        key, entry = self._entries.popitem(last=False)
        self._total_size -= entry.size_bytes
        self._evictions += 1
        logger.debug("Evicted cache entry %s", key[:12])
