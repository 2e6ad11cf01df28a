"""Collapse duplicate groups into single records, keeping the best value per field."""
from __future__ import annotations

import re
from dataclasses import replace
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .config import AggregationSettings
from .models import CORE_FIELDS, Address, Candidate, Coordinates, DuplicateGroup, is_empty

BetterValueRule = Callable[[Any, Any, AggregationSettings], bool]


def _longer_text(current: Any, incoming: Any, settings: AggregationSettings) -> bool:
    return len(str(incoming)) > len(str(current))


@lru_cache(maxsize=None)
def _compiled(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern)


def _national_phone(current: Any, incoming: Any, settings: AggregationSettings) -> bool:
    pattern = _compiled(settings.national_phone_pattern)
    return bool(pattern.match(str(incoming).strip())) and not pattern.match(str(current).strip())


def _https_website(current: Any, incoming: Any, settings: AggregationSettings) -> bool:
    return str(incoming).startswith("https://") and not str(current).startswith("https://")


def _precise_coordinates(current: Any, incoming: Any, settings: AggregationSettings) -> bool:
    return isinstance(incoming, Coordinates) and isinstance(current, Coordinates) and incoming.precision > current.precision


# Fields without an entry keep the first non-empty value seen.
BETTER_VALUE_RULES: Dict[str, BetterValueRule] = {
    "description": _longer_text,
    "phone": _national_phone,
    "website": _https_website,
    "coordinates": _precise_coordinates,
}


def _detached(value: Any) -> Any:
    if isinstance(value, (Coordinates, Address)):
        return replace(value)
    return value


def _distinct_sources(members: Iterable[Candidate]) -> List[str]:
    sources: List[str] = []
    for member in members:
        if member.source and member.source not in sources:
            sources.append(member.source)
    return sources


class ClusterMerger:
    """Folds every member of a duplicate group into the lowest-index member."""

    def __init__(
        self,
        settings: Optional[AggregationSettings] = None,
        *,
        rules: Optional[Dict[str, BetterValueRule]] = None,
    ) -> None:
        self.settings = settings or AggregationSettings()
        self.rules = dict(BETTER_VALUE_RULES if rules is None else rules)

    def is_better_value(self, field_name: str, current: Any, incoming: Any) -> bool:
        if is_empty(incoming):
            return False
        if is_empty(current):
            return True
        rule = self.rules.get(field_name)
        return bool(rule and rule(current, incoming, self.settings))

    def merge(self, group: DuplicateGroup, candidates: Optional[Sequence[Candidate]] = None) -> Candidate:
        """Return the merged record for ``group``.

        Members are taken from ``candidates`` by index when given, otherwise
        from ``group.members``. Input order decides ties.
        """

        members = [candidates[index] for index in group.indices] if candidates is not None else list(group.members)
        if not members:
            raise ValueError("Cannot merge an empty duplicate group")

        merged = members[0].copy()
        for member in members[1:]:
            self._fold(merged, member)

        merged.merged_from_sources = _distinct_sources(members)
        merged.is_merged = True
        return merged

    def merge_all(self, groups: Sequence[DuplicateGroup], candidates: Sequence[Candidate]) -> List[Candidate]:
        """Merged records first (in group order), then untouched singletons in input order."""

        grouped = {index for group in groups for index in group.indices}
        records = [self.merge(group, candidates) for group in groups]
        records.extend(candidate for position, candidate in enumerate(candidates) if position not in grouped)
        return records

    def _fold(self, merged: Candidate, member: Candidate) -> None:
        for field_name in CORE_FIELDS:
            incoming = member.get(field_name)
            if self.is_better_value(field_name, merged.get(field_name), incoming):
                merged.set(field_name, _detached(incoming))

        for key, incoming in member.extra.items():
            if self.is_better_value(key, merged.extra.get(key), incoming):
                merged.extra[key] = incoming
