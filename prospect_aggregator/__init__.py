"""Top-level package for the multi-source prospect search aggregator."""

from . import models  # noqa: F401
from .cache import InMemoryCache, SearchCache
from .config import AggregationSettings, ConfigurationError, RuntimeSettings
from .dedup import DuplicateDetector
from .merge import ClusterMerger
from .models import (
    AggregationResult,
    Candidate,
    ConfidenceScore,
    DuplicateGroup,
    SearchResponse,
    SourceOutcome,
)
from .orchestrator import SearchAggregator, SourceOrchestrator, aggregate_search
from .pipeline import ResultMerger, aggregate
from .scoring import ConfidenceScorer, rank

__all__ = [
    "AggregationResult",
    "AggregationSettings",
    "Candidate",
    "ClusterMerger",
    "ConfidenceScore",
    "ConfidenceScorer",
    "ConfigurationError",
    "DuplicateDetector",
    "DuplicateGroup",
    "InMemoryCache",
    "ResultMerger",
    "RuntimeSettings",
    "SearchAggregator",
    "SearchCache",
    "SearchResponse",
    "SourceOrchestrator",
    "SourceOutcome",
    "aggregate",
    "aggregate_search",
    "rank",
    "orchestrator",
    "sources",
]
