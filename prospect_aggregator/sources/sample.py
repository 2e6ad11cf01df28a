"""Example source that serves records held in configuration."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

_SEARCHABLE_FIELDS = ("name", "company", "sector")


def matches_query(record: Mapping[str, Any], query: str) -> bool:
    """Case-insensitive containment of ``query`` in the record's name, company or sector."""

    needle = query.strip().lower()
    if not needle:
        return True
    return any(needle in str(record.get(field) or "").lower() for field in _SEARCHABLE_FIELDS)


def _matches_filters(record: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for key in ("city", "postal_code", "sector"):
        wanted = filters.get(key)
        if wanted and str(wanted).strip().lower() not in str(record.get(key) or "").lower():
            return False
    return True


class StaticSource:
    """Serves a fixed list of records, filtered by query, city, postal code and sector."""

    description = "Records declared in configuration"
    source_type = "static"

    def __init__(self, records: Optional[Iterable[Mapping[str, Any]]] = None, *, name: str = "static", limit: Optional[int] = None) -> None:
        self.name = name
        self._records = [dict(record) for record in records or []]
        self._limit = limit

    def fetch(self, query: str, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        results = [
            dict(record)
            for record in self._records
            if matches_query(record, query) and _matches_filters(record, filters)
        ]
        if self._limit is not None:
            results = results[: self._limit]
        return results
