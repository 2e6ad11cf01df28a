"""Duplicate detection across candidates returned by different sources."""
from __future__ import annotations

import logging
from itertools import combinations
from typing import Dict, List, Optional, Sequence

from .config import AggregationSettings
from .models import Candidate, DuplicateGroup
from .similarity import compare

LOGGER = logging.getLogger(__name__)


class DisjointSet:
    """Union-find over ``0..size-1`` with path halving and union by size."""

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))
        self._size = [1] * size

    def find(self, item: int) -> int:
        parent = self._parent
        while parent[item] != item:
            parent[item] = parent[parent[item]]
            item = parent[item]
        return item

    def union(self, first: int, second: int) -> bool:
        root_a = self.find(first)
        root_b = self.find(second)
        if root_a == root_b:
            return False
        if self._size[root_a] < self._size[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        self._size[root_a] += self._size[root_b]
        return True

    def connected(self, first: int, second: int) -> bool:
        return self.find(first) == self.find(second)


class DuplicateDetector:
    """Groups candidates that describe the same business.

    A pair is a duplicate when, in order of precedence:

    1. both carry the same e-mail address (case and surrounding blanks ignored);
    2. their phone numbers match after normalisation (or share the local 8 digits);
    3. names are similar and either the addresses are similar or the points are close;
    4. names are nearly identical and the points are close.

    Groups are the transitive closure of the pairwise decision.
    """

    def __init__(self, settings: Optional[AggregationSettings] = None) -> None:
        self.settings = settings or AggregationSettings()

    def are_duplicates(self, first: Candidate, second: Candidate) -> bool:
        settings = self.settings
        similarities = compare(first, second)

        if similarities.email_exact:
            return True
        if similarities.phone >= settings.phone_similarity_threshold:
            return True

        close = similarities.distance_meters <= settings.distance_threshold_meters
        if similarities.name >= settings.name_similarity_threshold and (
            similarities.address >= settings.address_similarity_threshold or close
        ):
            return True
        if similarities.name >= settings.strict_name_similarity_threshold and close:
            return True
        return False

    def detect(self, candidates: Sequence[Candidate]) -> List[DuplicateGroup]:
        """Return every group of two or more duplicates, ordered by lowest member index."""

        total = len(candidates)
        links = DisjointSet(total)
        for i, j in combinations(range(total), 2):
            if links.connected(i, j):
                continue
            if self.are_duplicates(candidates[i], candidates[j]):
                links.union(i, j)

        clusters: Dict[int, List[int]] = {}
        for position in range(total):
            clusters.setdefault(links.find(position), []).append(position)

        groups: List[DuplicateGroup] = []
        for positions in sorted(clusters.values(), key=lambda members: members[0]):
            if len(positions) < 2:
                continue
            members = [candidates[position] for position in positions]
            groups.append(
                DuplicateGroup(
                    indices=list(positions),
                    similarity_score=self.group_similarity(members),
                    members=members,
                )
            )

        LOGGER.debug("Detected %s duplicate groups among %s candidates", len(groups), total)
        return groups

    def group_similarity(self, members: Sequence[Candidate]) -> float:
        """Mean of the per-pair (name, address, phone) average similarity."""

        if len(members) < 2:
            return 1.0
        scores = [compare(first, second).average for first, second in combinations(members, 2)]
        return sum(scores) / len(scores)
