"""Confidence scoring and ranking of aggregated records."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional
from urllib.parse import urlparse

from .config import AggregationSettings
from .models import Candidate, ConfidenceScore, is_empty
from .similarity import normalize_phone

_EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)+$")


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and _EMAIL_PATTERN.match(value.strip()) is not None


def is_valid_url(value: Optional[str]) -> bool:
    if not value:
        return False
    parsed = urlparse(value.strip())
    return bool(parsed.scheme) and bool(parsed.netloc) and " " not in parsed.netloc


class ConfidenceScorer:
    """Scores records from source trust, field completeness and field quality."""

    def __init__(self, settings: Optional[AggregationSettings] = None) -> None:
        self.settings = settings or AggregationSettings()

    def source_score(self, record: Candidate) -> float:
        return self.settings.source_weights.get(record.source or "", 0)

    def completeness_score(self, record: Candidate) -> float:
        return sum(weight for field_name, weight in self.settings.field_weights.items() if not is_empty(record.get(field_name)))

    def quality_score(self, record: Candidate) -> float:
        settings = self.settings
        score = 0
        if record.name and len(record.name) > 3:
            score += settings.name_quality_bonus
        if is_valid_email(record.email):
            score += settings.email_quality_bonus
        if record.phone and len(normalize_phone(record.phone)) >= settings.min_phone_length:
            score += settings.phone_quality_bonus
        if is_valid_url(record.website):
            score += settings.website_quality_bonus
        if record.coordinates is not None and record.coordinates.is_complete():
            score += settings.coordinates_quality_bonus
        return score

    def score(self, record: Candidate) -> ConfidenceScore:
        source_score = self.source_score(record)
        completeness_score = self.completeness_score(record)
        quality_score = self.quality_score(record)
        merged_bonus = self.settings.merged_bonus if record.is_merged else None

        total = source_score + completeness_score + quality_score + (merged_bonus or 0)
        return ConfidenceScore(
            total=min(self.settings.max_score, total),
            source_score=source_score,
            completeness_score=completeness_score,
            quality_score=quality_score,
            merged_bonus=merged_bonus,
        )

    def score_all(self, records: Iterable[Candidate]) -> List[Candidate]:
        """Return copies of ``records`` carrying their confidence score."""

        scored: List[Candidate] = []
        for record in records:
            copy = record.copy()
            copy.confidence = self.score(record)
            scored.append(copy)
        return scored


def rank(records: Iterable[Candidate]) -> List[Candidate]:
    """Stable sort by descending confidence; unscored records sink to the bottom."""

    return sorted(records, key=lambda record: -(record.confidence.total if record.confidence else 0))
