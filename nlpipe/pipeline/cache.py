"""
In-process TTL cache for sub-query results and whole answers.

Used two ways:
  - Entity search memoization, keyed ``{collection}:{tenant}:{term}``
  - Whole-answer memoization, keyed by tenant + MD5 of the normalized
    question, so a repeated question skips the pipeline entirely

Expiry is lazy: an entry is only evicted when a read finds it stale
(or when a pattern invalidation sweeps it).  One instance is created
at process start and shared by every request, so every operation runs
under a lock.
"""

from __future__ import annotations

import hashlib
import re
import threading
import time
from typing import Any, Callable

from pydantic import BaseModel

from nlpipe.core.config import settings
from nlpipe.utils.logging import get_logger
from nlpipe.utils.text import normalize_text

logger = get_logger("nlpipe.pipeline.cache")

_AI_RESPONSE_PREFIX = "ai_response"


class CacheEntry(BaseModel):
    key: str
    value: Any
    timestamp: float
    ttl: float  # seconds
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now > self.timestamp + self.ttl


class AICache:
    """
    Key → value store with per-entry TTL and regex invalidation.

    Args:
        default_ttl: TTL (seconds) for ``set`` calls that don't pass one.
        response_ttl: TTL (seconds) for whole-answer entries.
        clock: Returns the current time in seconds (injectable for tests).
    """

    def __init__(
        self,
        *,
        default_ttl: float | None = None,
        response_ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.default_ttl = float(
            default_ttl if default_ttl is not None else settings.default_cache_ttl_seconds
        )
        self.response_ttl = float(
            response_ttl if response_ttl is not None else settings.response_cache_ttl_seconds
        )

    # ── Generic API ─────────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug("[CACHE] Expired: %s", key)
                return None
            entry.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` under ``key``; overwriting resets timestamp and hits."""
        entry = CacheEntry(
            key=key,
            value=value,
            timestamp=self._clock(),
            ttl=float(ttl if ttl is not None else self.default_ttl),
        )
        with self._lock:
            self._entries[key] = entry

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """Delete every key matching ``pattern`` (``re.search``).  Returns the count."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        with self._lock:
            doomed = [key for key in list(self._entries) if regex.search(key)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.info("[CACHE] Invalidated %d entries matching %s", len(doomed), regex.pattern)
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> dict[str, Any]:
        """Entry counts and hit totals.  Expired entries still count until read."""
        now = self._clock()
        with self._lock:
            entries = list(self._entries.values())
        expired = sum(1 for e in entries if e.is_expired(now))
        return {
            "total_entries": len(entries),
            "valid_entries": len(entries) - expired,
            "expired_entries": expired,
            "total_hits": sum(e.hits for e in entries),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── Whole-answer memoization ────────────────────────────────────

    @staticmethod
    def ai_response_key(question: str, tenant_id: str) -> str:
        digest = hashlib.md5(normalize_text(question).encode("utf-8")).hexdigest()
        return f"{_AI_RESPONSE_PREFIX}:{tenant_id}:{digest}"

    def get_ai_response(self, question: str, tenant_id: str) -> Any | None:
        value = self.get(self.ai_response_key(question, tenant_id))
        if value is not None:
            logger.info("[CACHE] Answer hit for tenant %s", tenant_id)
        return value

    def cache_ai_response(
        self,
        question: str,
        tenant_id: str,
        value: Any,
        ttl: float | None = None,
    ) -> None:
        self.set(
            self.ai_response_key(question, tenant_id),
            value,
            ttl if ttl is not None else self.response_ttl,
        )
