"""Caching of per-source results, aggregated searches and rolling source statistics."""
from __future__ import annotations

import copy
import hashlib
import json
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Protocol

LOGGER = logging.getLogger(__name__)

CACHE_PREFIX = "prospect_search"
DEFAULT_TTL_SECONDS = 3600
STATS_TTL_SECONDS = 86400


class CacheBackend(Protocol):
    """Minimal key/value store contract (Redis, memcached, in-process...)."""

    def get(self, key: str) -> Any:  # pragma: no cover - runtime protocol
        """Return the stored value or ``None``."""

    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:  # pragma: no cover - runtime protocol
        """Store ``value`` for ``ttl`` seconds (forever when ``None``)."""

    def forget(self, key: str) -> None:  # pragma: no cover - runtime protocol
        """Drop ``key`` if present."""


class InMemoryCache:
    """Thread-safe dictionary cache with per-entry expiry.

    Values are deep-copied on the way in and out, so callers never share
    state with a stored entry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, tuple[Optional[float], Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._entries[key] = (expires_at, copy.deepcopy(value))

    def forget(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def normalize_filters(filters: Mapping[str, Any] | None) -> Dict[str, Any]:
    """Drop blank values, lowercase strings and sort lists so equivalent filters share a key."""

    normalized: Dict[str, Any] = {}
    for key, value in (filters or {}).items():
        if value is None or value == "" or value == [] or value == ():
            continue
        if isinstance(value, str):
            normalized[key] = value.strip().lower()
        elif isinstance(value, (list, tuple, set)):
            normalized[key] = sorted(str(item).lower() for item in value if item)
        else:
            normalized[key] = value
    return dict(sorted(normalized.items()))


def _digest(payload: Mapping[str, Any]) -> str:
    serialized = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.md5(serialized.encode("utf-8")).hexdigest()


def _unique(values: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class SearchCache:
    """Key scheme and read/write helpers on top of a :class:`CacheBackend`.

    Search keys embed ``algorithm_version`` so results computed with other
    thresholds or weights are never served.
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        algorithm_version: str = "",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend if backend is not None else InMemoryCache()
        self.ttl_seconds = ttl_seconds
        self.algorithm_version = algorithm_version
        self._clock = clock

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    def search_key(self, query: str, filters: Mapping[str, Any] | None, sources: Iterable[str]) -> str:
        digest = _digest(
            {
                "query": query.strip().lower(),
                "filters": normalize_filters(filters),
                "sources": _unique(sources),
                "version": self.algorithm_version,
            }
        )
        return f"{CACHE_PREFIX}:search:{digest}"

    def source_key(self, source: str, query: str, filters: Mapping[str, Any] | None) -> str:
        digest = _digest({"source": source, "query": query.strip().lower(), "filters": normalize_filters(filters)})
        return f"{CACHE_PREFIX}:source:{source}:{digest}"

    def stats_key(self, source: str, moment: Optional[datetime] = None) -> str:
        moment = moment or datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        return f"{CACHE_PREFIX}:stats:{source}:{moment:%Y-%m-%d-%H}"

    # ------------------------------------------------------------------
    # Per-source raw results
    # ------------------------------------------------------------------
    def get_source_data(self, source: str, query: str, filters: Mapping[str, Any] | None) -> Optional[Dict[str, Any]]:
        try:
            return self.backend.get(self.source_key(source, query, filters))
        except Exception:
            LOGGER.exception("Failed to read cached results for source %s", source)
            return None

    def put_source_data(
        self,
        source: str,
        query: str,
        filters: Mapping[str, Any] | None,
        results: list[Dict[str, Any]],
    ) -> bool:
        entry = {
            "source": source,
            "query": query,
            "filters": dict(filters or {}),
            "results": results,
            "count": len(results),
            "cached_at": int(self._clock()),
        }
        try:
            self.backend.put(self.source_key(source, query, filters), entry, self.ttl_seconds)
            return True
        except Exception:
            LOGGER.exception("Failed to cache results for source %s", source)
            return False

    # ------------------------------------------------------------------
    # Aggregated searches
    # ------------------------------------------------------------------
    def get_search_results(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            cached = self.backend.get(key)
        except Exception:
            LOGGER.exception("Failed to read cached search %s", key)
            return None
        if not cached:
            return None
        if "timestamp" not in cached or "response" not in cached:
            LOGGER.warning("Discarding malformed cache entry %s", key)
            self.invalidate(key)
            return None

        response = dict(cached["response"])
        response["cache_info"] = {
            "cached_at": cached["timestamp"],
            "age_seconds": int(self._clock()) - cached["timestamp"],
            "from_cache": True,
        }
        return response

    def put_search_results(self, key: str, response: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        entry = {"timestamp": int(self._clock()), "response": dict(response)}
        try:
            self.backend.put(key, entry, ttl or self.ttl_seconds)
            return True
        except Exception:
            LOGGER.exception("Failed to cache search %s", key)
            return False

    def invalidate(self, key: str) -> bool:
        try:
            self.backend.forget(key)
            return True
        except Exception:
            LOGGER.exception("Failed to invalidate cache entry %s", key)
            return False

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------
    def record_stat(self, source: str, stats: Mapping[str, Any]) -> bool:
        """Fold one request into the source's hourly bucket."""

        key = self.stats_key(source)
        try:
            current = self.backend.get(key) or {
                "requests": 0,
                "total_response_time": 0.0,
                "total_results": 0,
                "errors": 0,
            }
            requests = current["requests"] + 1
            updated = {
                "requests": requests,
                "total_response_time": current["total_response_time"] + float(stats.get("response_time") or 0),
                "total_results": current["total_results"] + int(stats.get("results_count") or 0),
                "errors": current["errors"] + (1 if stats.get("error") else 0),
                "last_request": int(self._clock()),
            }
            updated["avg_response_time"] = updated["total_response_time"] / requests
            updated["avg_results"] = updated["total_results"] / requests
            updated["error_rate"] = updated["errors"] / requests * 100
            self.backend.put(key, updated, STATS_TTL_SECONDS)
            return True
        except Exception:
            LOGGER.exception("Failed to record statistics for source %s", source)
            return False

    def source_stats(self, source: str) -> Optional[Dict[str, Any]]:
        try:
            return self.backend.get(self.stats_key(source))
        except Exception:
            LOGGER.exception("Failed to read statistics for source %s", source)
            return None
