"""In-memory LRU cache for derived suggestion data (TTL 5 minutes)."""

from __future__ import annotations

import hashlib
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from suggestion_engine.models.suggestion import Suggestion
from suggestion_engine.utils.validation import InvalidSuggestion, validate_positions

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100
DEFAULT_TTL_SECONDS = 300.0

T = TypeVar("T")

Fingerprint = tuple


@dataclass(frozen=True)
class CachedView:
    """Validated view of one (suggestion set, content) pair."""

    fingerprint: Fingerprint
    available: tuple[Suggestion, ...]
    invalid: tuple[InvalidSuggestion, ...]
    drifted: tuple[str, ...]
    by_type: dict[str, tuple[Suggestion, ...]]
    overlaps: dict[str, tuple[str, ...]]

    @property
    def available_ids(self) -> tuple[str, ...]:
        return tuple(s.id for s in self.available)


@dataclass
class _Entry:
    value: Any
    stored_at: float
    hits: int = 0


def fingerprint(suggestions: Sequence[Suggestion], content: str) -> Fingerprint:
    """Exact identity of a suggestion set against a content string.

    Every field of each record takes part, not just its range.
    """
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    records = tuple(tuple(s.model_dump().values()) for s in suggestions)
    return (len(content), digest, records)


def _overlap_map(suggestions: Sequence[Suggestion]) -> dict[str, tuple[str, ...]]:
    ordered = sorted(suggestions, key=lambda s: (s.start_offset, s.end_offset))
    found: dict[str, list[str]] = {}
    for i, current in enumerate(ordered):
        for other in ordered[i + 1:]:
            if other.start_offset >= current.end_offset:
                break
            found.setdefault(current.id, []).append(other.id)
            found.setdefault(other.id, []).append(current.id)
    return {key: tuple(ids) for key, ids in found.items()}


class SuggestionCache:
    """LRU cache with TTL expiration for validated views and segment maps."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[Any, _Entry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.stored_at > self.ttl_seconds

    def lookup(self, key: Any) -> Any | None:
        """Return a cached value if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._expired(entry, self._clock()):
            del self._entries[key]
            self._evictions += 1
            self._misses += 1
            return None
        self._entries.move_to_end(key)
        entry.hits += 1
        self._hits += 1
        return entry.value

    def put(self, key: Any, value: Any) -> None:
        """Cache a value, evicting the least recently used entries if full."""
        if key in self._entries:
            del self._entries[key]
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Evicted least recently used cache entry (%d max)", self.max_entries)
        self._entries[key] = _Entry(value=value, stored_at=self._clock())

    def get_or_compute(self, key: Any, compute: Callable[[], T]) -> T:
        cached = self.lookup(key)
        if cached is not None:
            return cached
        value = compute()
        self.put(key, value)
        return value

    def get(self, suggestions: Sequence[Suggestion], content: str) -> CachedView:
        """Validated view of ``suggestions`` against ``content``."""
        key = ("view", fingerprint(suggestions, content))
        return self.get_or_compute(key, lambda: self._build_view(key[1], suggestions, content))

    @staticmethod
    def _build_view(fp: Fingerprint, suggestions: Sequence[Suggestion], content: str) -> CachedView:
        result = validate_positions(suggestions, content)
        by_type: dict[str, list[Suggestion]] = {}
        for suggestion in result.valid:
            by_type.setdefault(suggestion.type.value, []).append(suggestion)
        return CachedView(
            fingerprint=fp,
            available=result.valid,
            invalid=result.invalid,
            drifted=result.drifted,
            by_type={k: tuple(v) for k, v in by_type.items()},
            overlaps=_overlap_map(result.valid),
        )

    def delete(self, key: Any) -> bool:
        return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        """Drop expired entries. Returns count of removed entries."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._expired(e, now)]
        for key in expired:
            del self._entries[key]
        self._evictions += len(expired)
        return len(expired)

    def optimize(self) -> int:
        """Drop expired entries, then trim to 70% of capacity when above 80%."""
        removed = self.cleanup()
        if len(self._entries) > self.max_entries * 0.8:
            target = int(self.max_entries * 0.7)
            while len(self._entries) > target:
                self._entries.popitem(last=False)
                self._evictions += 1
                removed += 1
        return removed

    def clear(self) -> int:
        """Clear all cached entries. Returns count of deleted entries."""
        count = len(self._entries)
        self._entries.clear()
        self._hits = self._misses = self._evictions = 0
        return count

    def stats(self) -> dict:
        """Return cache statistics."""
        requests = self._hits + self._misses
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": self._hits / requests if requests else 0.0,
        }

    def __len__(self) -> int:
        return len(self._entries)
