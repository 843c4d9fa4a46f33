"""
In-memory response cache.

Entries are keyed by a SHA256 over the normalized request tuple and expire
after a TTL chosen from the prompt's category. When full, the oldest inserted
entry is evicted. This is insertion-order eviction, not a true LRU: a hit does
not refresh an entry's position. Nothing is persisted across restarts.
"""

import hashlib
import json
import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .models import AiResponse
from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ENTRIES = 500
DEFAULT_MIN_CONTENT_LENGTH = 20


def build_cache_key(
    prompt: str,
    provider_id: str,
    model: str,
    temperature: float,
    max_tokens: int,
) -> str:
    """Deterministic key over (prompt, provider, model, temperature, max_tokens).

    Prompt whitespace is normalized; any other difference in any field yields
    a different key.
    """
    normalized = {
        "prompt": " ".join(prompt.split()),
        "provider": provider_id or "",
        "model": model or "",
        "temperature": round(float(temperature), 4),
        "max_tokens": int(max_tokens),
    }
    # sort_keys keeps the serialization stable across dict orderings
    stable_string = json.dumps(normalized, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(stable_string.encode("utf-8")).hexdigest()


def _marker_pattern(markers: Sequence[str]) -> "re.Pattern[str]":
    # "complete" must not match "incomplete" or "completely"
    alternatives = "|".join(re.escape(marker) for marker in markers)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


@dataclass(frozen=True)
class TTLPolicy:
    """TTL selection by prompt category, using whole-word markers."""
    short_seconds: float = 60.0
    default_seconds: float = 300.0
    long_seconds: float = 900.0
    short_markers: Sequence[str] = (
        "complete", "completion", "autocomplete", "suggest", "suggestion", "next line",
    )
    long_markers: Sequence[str] = (
        "explain", "explains", "explanation", "documentation", "document", "docstring",
        "describe",
    )

    def __post_init__(self):
        for name in ("short_seconds", "default_seconds", "long_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        object.__setattr__(self, "_short_pattern", _marker_pattern(self.short_markers))
        object.__setattr__(self, "_long_pattern", _marker_pattern(self.long_markers))

    def ttl_for(self, prompt: str) -> float:
        """TTL in seconds for a prompt. Completion-style prompts win ties."""
        if self._short_pattern.search(prompt):
            return self.short_seconds
        if self._long_pattern.search(prompt):
            return self.long_seconds
        return self.default_seconds


@dataclass(frozen=True)
class CacheEntry:
    """A cached response and its validity window."""
    key: str
    response: AiResponse
    inserted_at: float
    expires_at: float

    def __post_init__(self):
        if self.expires_at <= self.inserted_at:
            raise ValueError("expires_at must be after inserted_at")

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache counters."""
    size: int
    hits: int
    misses: int
    hit_rate: float
    total_savings: float
    evictions: int


class ResponseCache:
    """Key -> response map with category TTLs and bounded size."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        min_content_length: int = DEFAULT_MIN_CONTENT_LENGTH,
        ttl_policy: Optional[TTLPolicy] = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        if min_content_length < 0:
            raise ValueError("min_content_length cannot be negative")
        self.max_entries = max_entries
        self.min_content_length = min_content_length
        self.ttl_policy = ttl_policy or TTLPolicy()
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._savings = 0.0

    def get(self, key: str) -> Optional[AiResponse]:
        """Return the cached response, or None on miss.

        Expired entries are removed on access and counted as misses. Each hit
        adds the cached response's cost to the savings counter.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                logger.debug("Cache entry %s expired", key[:12])
                return None
            self._hits += 1
            self._savings += entry.response.cost
            return entry.response.as_cache_hit()

    def put(self, key: str, response: AiResponse, prompt: str) -> bool:
        """Insert a response with the TTL for its prompt's category.

        Returns:
            False when the response is too short to be worth caching
        """
        if len(response.content) < self.min_content_length:
            logger.debug("Response %s too short to cache", response.id)
            return False
        ttl = self.ttl_policy.ttl_for(prompt)
        with self._lock:
            now = self._clock()
            # Re-inserting a key makes it the newest entry
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted oldest cache entry %s", evicted_key[:12])
            self._entries[key] = CacheEntry(
                key=key,
                response=response,
                inserted_at=now,
                expires_at=now + ttl,
            )
        return True

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        """Remove all entries and reset the counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._savings = 0.0

    def stats(self) -> CacheStats:
        with self._lock:
            lookups = self._hits + self._misses
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / lookups if lookups else 0.0,
                total_savings=self._savings,
                evictions=self._evictions,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
