"""Workflow orchestration for coordinating sources, deduplication, and caching."""

from .service import SearchAggregator, SourceOrchestrator, aggregate_search, compute_search_stats

__all__ = ["SearchAggregator", "SourceOrchestrator", "aggregate_search", "compute_search_stats"]
