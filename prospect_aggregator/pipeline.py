"""Deduplication pipeline: collect, detect, merge, score and rank source results."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Mapping, Optional

from .config import AggregationSettings
from .dedup import DuplicateDetector
from .merge import ClusterMerger
from .models import AggregationResult, Candidate, DeduplicationInfo, SourceOutcome, StageResult
from .scoring import ConfidenceScorer, rank

LOGGER = logging.getLogger(__name__)


def collect_candidates(outcomes: Mapping[str, SourceOutcome]) -> List[Candidate]:
    """Flatten successful source results into one indexed candidate list.

    Sources are walked in mapping order and records in the order each source
    returned them, so indices are deterministic for a given input.
    """

    candidates: List[Candidate] = []
    for source, outcome in outcomes.items():
        if not outcome.success or not outcome.results:
            continue
        for raw in outcome.results:
            candidates.append(Candidate.from_mapping(raw, source=source, index=len(candidates)))
    return candidates


def run_stage(stage: str, func: Callable[..., Any], *args: Any) -> StageResult[Any]:
    try:
        return StageResult(stage=stage, value=func(*args))
    except Exception as exc:
        LOGGER.exception("Aggregation stage '%s' failed", stage)
        return StageResult(stage=stage, error=f"{stage}: {exc}")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class ResultMerger:
    """Runs the deduplication stages over one batch of source outcomes."""

    def __init__(
        self,
        settings: Optional[AggregationSettings] = None,
        *,
        detector: Optional[DuplicateDetector] = None,
        merger: Optional[ClusterMerger] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ) -> None:
        self.settings = settings or AggregationSettings()
        self.detector = detector or DuplicateDetector(self.settings)
        self.merger = merger or ClusterMerger(self.settings)
        self.scorer = scorer or ConfidenceScorer(self.settings)

    def merge_and_deduplicate(self, outcomes: Mapping[str, SourceOutcome]) -> AggregationResult:
        started = time.perf_counter()

        collected = run_stage("collect", collect_candidates, outcomes)
        if not collected.ok:
            return self._degraded([], collected.error, started)
        candidates: List[Candidate] = collected.value

        detected = run_stage("detect", self.detector.detect, candidates)
        if not detected.ok:
            return self._degraded(candidates, detected.error, started)

        merged = run_stage("merge", self.merger.merge_all, detected.value, candidates)
        if not merged.ok:
            return self._degraded(candidates, merged.error, started)

        scored = run_stage("score", self.scorer.score_all, merged.value)
        if not scored.ok:
            return self._degraded(candidates, scored.error, started)

        ranked = run_stage("rank", rank, scored.value)
        if not ranked.ok:
            return self._degraded(candidates, ranked.error, started)

        records: List[Candidate] = ranked.value
        info = DeduplicationInfo(
            original_count=len(candidates),
            final_count=len(records),
            duplicates_removed=len(candidates) - len(records),
            duplicate_groups=len(detected.value),
            processing_time_ms=_elapsed_ms(started),
        )
        LOGGER.info(
            "Deduplication finished: %s candidates -> %s records (%s groups) in %sms",
            info.original_count,
            info.final_count,
            info.duplicate_groups,
            info.processing_time_ms,
        )
        return AggregationResult(merged=records, duplicates=detected.value, deduplication_info=info)

    def _degraded(self, candidates: List[Candidate], error: Optional[str], started: float) -> AggregationResult:
        LOGGER.warning("Returning %s raw candidates without deduplication: %s", len(candidates), error)
        return AggregationResult(
            merged=list(candidates),
            duplicates=[],
            deduplication_info=DeduplicationInfo(
                original_count=len(candidates),
                final_count=len(candidates),
                processing_time_ms=_elapsed_ms(started),
                error=error,
            ),
        )


def aggregate(
    outcomes: Mapping[str, Any],
    settings: Optional[AggregationSettings] = None,
) -> AggregationResult:
    """Deduplicate a per-source result map.

    Values may be :class:`SourceOutcome` instances or plain mappings with
    ``results`` / ``success`` keys.
    """

    normalised = {
        source: outcome if isinstance(outcome, SourceOutcome) else SourceOutcome.from_mapping(source, outcome)
        for source, outcome in outcomes.items()
    }
    return ResultMerger(settings).merge_and_deduplicate(normalised)
