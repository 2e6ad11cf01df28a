"""Search orchestration across sources and the aggregated search entry point."""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..cache import SearchCache
from ..config import DEFAULT_SOURCES, AggregationSettings
from ..models import SearchResponse, SourceOutcome
from ..pipeline import ResultMerger
from ..sources.base import SourceAdapter, SourceTimeoutError
from ..sources.email_finder import EmailFinder

LOGGER = logging.getLogger(__name__)

EMAIL_FINDER_SOURCE = "hunter"
ENRICHED_EMAIL_LIMIT = 3


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _unique(names: Iterable[str]) -> List[str]:
    ordered: List[str] = []
    for name in names:
        if name and name not in ordered:
            ordered.append(name)
    return ordered


class SourceOrchestrator:
    """Runs the requested sources for one query and reports a per-source outcome."""

    def __init__(
        self,
        sources: Mapping[str, SourceAdapter] | Sequence[SourceAdapter],
        cache: Optional[SearchCache] = None,
        *,
        concurrent: bool = True,
        max_workers: Optional[int] = None,
        timeout_seconds: Optional[float] = 30.0,
        default_sources: Sequence[str] = DEFAULT_SOURCES,
    ) -> None:
        if isinstance(sources, Mapping):
            self._sources: Dict[str, SourceAdapter] = dict(sources)
        else:
            self._sources = {source.name: source for source in sources}
        self._cache = cache
        self._concurrent = concurrent
        self._max_workers = max_workers
        self._timeout_seconds = timeout_seconds
        self._default_sources = tuple(default_sources)

    @property
    def sources(self) -> Dict[str, SourceAdapter]:
        return dict(self._sources)

    @property
    def default_sources(self) -> tuple[str, ...]:
        return self._default_sources

    def resolve_sources(self, sources: Optional[Iterable[str]]) -> List[str]:
        requested = _unique(sources or ())
        return requested or list(self._default_sources)

    def search(
        self,
        query: str,
        filters: Optional[Mapping[str, Any]] = None,
        sources: Optional[Iterable[str]] = None,
    ) -> Dict[str, SourceOutcome]:
        """Query every requested source; the result preserves the requested order."""

        filters = dict(filters or {})
        names = self.resolve_sources(sources)
        LOGGER.info("Searching %s source(s) for %r: %s", len(names), query, ", ".join(names))

        if not self._concurrent or len(names) <= 1:
            outcomes = self._run_sequential(names, query, filters)
        else:
            try:
                outcomes = self._run_concurrent(names, query, filters)
            except RuntimeError:
                LOGGER.exception("Concurrent source search failed, retrying sequentially")
                outcomes = self._run_sequential(names, query, filters)

        self._record_statistics(outcomes)
        return outcomes

    def _run_sequential(self, names: Sequence[str], query: str, filters: Mapping[str, Any]) -> Dict[str, SourceOutcome]:
        return {name: self._execute_source(name, query, filters) for name in names}

    def _run_concurrent(self, names: Sequence[str], query: str, filters: Mapping[str, Any]) -> Dict[str, SourceOutcome]:
        # Deadlines start when a worker picks a call up, not when it is queued.
        with ThreadPoolExecutor(max_workers=self._max_workers or len(names)) as executor:
            futures = {
                name: executor.submit(self._execute_source, name, query, filters, bounded=True) for name in names
            }
            wait(futures.values())
        return {name: future.result() for name, future in futures.items()}

    def _execute_source(
        self,
        name: str,
        query: str,
        filters: Mapping[str, Any],
        *,
        bounded: bool = False,
    ) -> SourceOutcome:
        started = time.perf_counter()
        try:
            if self._cache is not None:
                cached = self._cache.get_source_data(name, query, filters)
                if cached:
                    LOGGER.debug("Serving %s results for %r from cache", name, query)
                    return SourceOutcome(source=name, results=list(cached.get("results") or []), cached=True)

            adapter = self._sources.get(name)
            if adapter is None:
                LOGGER.warning("Unknown search source: %s", name)
                return SourceOutcome(source=name, response_time_ms=_elapsed_ms(started))

            LOGGER.debug("Running source %s for %r", name, query)
            if bounded and self._timeout_seconds:
                fetched = self._fetch_with_deadline(adapter, name, query, filters)
            else:
                fetched = adapter.fetch(query, filters)
            results = [dict(item) for item in fetched or []]
            outcome = SourceOutcome(source=name, results=results, response_time_ms=_elapsed_ms(started))
        except SourceTimeoutError as exc:
            LOGGER.warning("Source %s timed out for %r: %s", name, query, exc)
            return SourceOutcome.failure(name, str(exc), response_time_ms=_elapsed_ms(started))
        except Exception as exc:
            LOGGER.exception("Source %s failed for %r", name, query)
            return SourceOutcome.failure(name, str(exc), response_time_ms=_elapsed_ms(started))

        if self._cache is not None:
            self._cache.put_source_data(name, query, filters, outcome.results)
        return outcome

    def _fetch_with_deadline(
        self,
        adapter: SourceAdapter,
        name: str,
        query: str,
        filters: Mapping[str, Any],
    ) -> Iterable[Mapping[str, Any]]:
        """Run ``adapter.fetch`` on a daemon thread and give up after ``timeout_seconds``.

        A call that overruns keeps its thread until the adapter returns, but its
        result is discarded and the worker moves on to the next queued source.
        """

        box: Dict[str, Any] = {}

        def _call() -> None:
            try:
                box["results"] = list(adapter.fetch(query, filters) or [])
            except Exception as exc:  # re-raised on the worker below
                box["error"] = exc

        caller = threading.Thread(target=_call, name=f"source-{name}", daemon=True)
        caller.start()
        caller.join(self._timeout_seconds)
        if caller.is_alive():
            raise SourceTimeoutError(f"Timed out after {self._timeout_seconds}s")
        if "error" in box:
            raise box["error"]
        return box.get("results") or []

    def _record_statistics(self, outcomes: Mapping[str, SourceOutcome]) -> None:
        if self._cache is None:
            return
        for name, outcome in outcomes.items():
            self._cache.record_stat(
                name,
                {
                    "response_time": outcome.response_time_ms,
                    "results_count": outcome.count,
                    "error": not outcome.success,
                },
            )


def compute_search_stats(outcomes: Mapping[str, SourceOutcome], elapsed_seconds: float) -> Dict[str, Any]:
    """Summarise one orchestrator run."""

    return {
        "total_time_seconds": round(elapsed_seconds, 3),
        "sources_used": len(outcomes),
        "sources_successful": sum(1 for outcome in outcomes.values() if outcome.success),
        "total_raw_results": sum(outcome.count for outcome in outcomes.values()),
        "by_source": {name: outcome.stats_entry() for name, outcome in outcomes.items()},
    }


class SearchAggregator:
    """Cache-aware search: orchestrate sources, deduplicate, score and rank."""

    def __init__(
        self,
        orchestrator: SourceOrchestrator,
        *,
        cache: Optional[SearchCache] = None,
        settings: Optional[AggregationSettings] = None,
        merger: Optional[ResultMerger] = None,
        email_finder: Optional[EmailFinder] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.settings = settings or AggregationSettings()
        self.cache = cache
        self.merger = merger or ResultMerger(self.settings)
        self.email_finder = email_finder
        if self.cache is not None and not self.cache.algorithm_version:
            self.cache.algorithm_version = self.settings.fingerprint()

    def search(
        self,
        query: str,
        filters: Optional[Mapping[str, Any]] = None,
        sources: Optional[Iterable[str]] = None,
    ) -> SearchResponse:
        filters = dict(filters or {})
        requested = self.orchestrator.resolve_sources(sources)
        started = time.perf_counter()

        try:
            cache_key = self.cache.search_key(query, filters, requested) if self.cache is not None else None
            if cache_key is not None:
                cached = self.cache.get_search_results(cache_key)
                if cached:
                    LOGGER.info(
                        "Serving search %r from cache (age %ss)",
                        query,
                        cached["cache_info"].get("age_seconds", 0),
                    )
                    return SearchResponse.from_dict(cached)

            outcomes = self.orchestrator.search(query, filters, requested)
            search_stats = compute_search_stats(outcomes, time.perf_counter() - started)
            aggregation = self.merger.merge_and_deduplicate(outcomes)

            response = SearchResponse(
                query=query,
                filters=filters,
                sources_requested=requested,
                aggregated_results=[record.as_dict() for record in aggregation.merged],
                duplicates_found=[group.as_dict() for group in aggregation.duplicates],
                deduplication_info=aggregation.deduplication_info.as_dict(),
                total_found=len(aggregation.merged),
                search_stats=search_stats,
                cache_info={"cached_at": int(time.time()), "from_cache": False},
            )
            if cache_key is not None:
                self.cache.put_search_results(cache_key, response.as_dict())

            LOGGER.info(
                "Aggregated search for %r finished: %s result(s) in %sms",
                query,
                response.total_found,
                _elapsed_ms(started),
            )
            return response
        except Exception as exc:
            LOGGER.exception("Aggregated search for %r failed", query)
            return SearchResponse(query=query, filters=filters, sources_requested=requested, error=str(exc))

    def enrich_results(
        self,
        records: Iterable[Mapping[str, Any]],
        *,
        limit: int = ENRICHED_EMAIL_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Attach up to ``limit`` finder results as ``emails`` to every record carrying a ``domain``.

        A finder failure is logged against that record only; the record is
        returned unchanged and the remaining records are still enriched.
        """

        finder = self._resolve_email_finder()
        enriched: List[Dict[str, Any]] = []
        for record in records:
            prospect = dict(record)
            domain = str(prospect.get("domain") or "").strip()
            if domain and finder is not None:
                try:
                    found = list(finder(domain) or [])
                except Exception as exc:
                    LOGGER.warning("Could not enrich prospect %s: %s", prospect.get("id", "unknown"), exc)
                else:
                    if found:
                        prospect["emails"] = [dict(entry) for entry in found[:limit]]
            enriched.append(prospect)
        return enriched

    def _resolve_email_finder(self) -> Optional[EmailFinder]:
        if self.email_finder is not None:
            return self.email_finder
        adapter = self.orchestrator.sources.get(EMAIL_FINDER_SOURCE)
        find_emails = getattr(adapter, "find_emails", None)
        check = getattr(adapter, "is_configured", None)
        if not callable(find_emails) or (callable(check) and not check()):
            return None
        return find_emails

    def available_sources(self) -> Dict[str, Dict[str, Any]]:
        """Describe every configured source and whether it can currently answer."""

        described: Dict[str, Dict[str, Any]] = {}
        for name, adapter in self.orchestrator.sources.items():
            describe = getattr(adapter, "describe", None)
            if callable(describe):
                described[name] = describe()
                continue
            check = getattr(adapter, "is_configured", None)
            described[name] = {
                "name": getattr(adapter, "display_name", name),
                "available": bool(check()) if callable(check) else True,
                "description": getattr(adapter, "description", ""),
                "type": getattr(adapter, "source_type", "generic"),
            }
        return described


def aggregate_search(
    query: str,
    filters: Optional[Mapping[str, Any]] = None,
    sources: Optional[Iterable[str]] = None,
    *,
    aggregator: Optional[SearchAggregator] = None,
) -> Dict[str, Any]:
    """Run one aggregated search and return the serialisable response.

    Without an ``aggregator`` the search runs against an instance with no
    configured sources, so every requested source answers with no results.
    """

    if aggregator is None:
        aggregator = SearchAggregator(SourceOrchestrator({}, SearchCache()))
    return aggregator.search(query, filters, sources).as_dict()
