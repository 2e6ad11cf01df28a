"""Unified data models for the search aggregator, its sources, and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")

# Fields every source is expected to fill (all optional). Anything else rides in ``Candidate.extra``.
CORE_FIELDS: Tuple[str, ...] = (
    "name",
    "company",
    "sector",
    "city",
    "postal_code",
    "address",
    "phone",
    "email",
    "website",
    "description",
    "coordinates",
    "external_id",
)

_TEXT_FIELDS = tuple(name for name in CORE_FIELDS if name not in {"address", "coordinates"})


def is_empty(value: Any) -> bool:
    """Return ``True`` for values that carry no information (``None``, blank strings, empty containers)."""

    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (Coordinates, Address)):
        return value.is_empty()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = value.strip() if isinstance(value, str) else str(value).strip()
    return text or None


def _parse_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _fraction_digits(value: Optional[float]) -> int:
    if value is None:
        return 0
    text = repr(float(value))
    if "e" in text or "E" in text or "." not in text:
        return 0
    fraction = text.split(".", 1)[1]
    return 0 if fraction == "0" else len(fraction)


# --- Core Record Models ---

@dataclass(slots=True)
class Coordinates:
    """Latitude / longitude pair as reported by a source."""

    lat: Optional[float] = None
    lng: Optional[float] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional["Coordinates"]:
        """Build coordinates from a mapping (``lat``/``lng`` or ``latitude``/``longitude``) or a pair."""

        if value is None:
            return None
        if isinstance(value, Coordinates):
            return cls(value.lat, value.lng)
        if isinstance(value, Mapping):
            lat = value.get("lat", value.get("latitude"))
            lng = value.get("lng", value.get("lon", value.get("longitude")))
            return cls(_parse_float(lat), _parse_float(lng))
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(_parse_float(value[0]), _parse_float(value[1]))
        return None

    def is_empty(self) -> bool:
        return self.lat is None and self.lng is None

    def is_complete(self) -> bool:
        # A zero component is treated as missing: several geocoders pad absent values with 0.
        return bool(self.lat) and bool(self.lng)

    @property
    def precision(self) -> int:
        """Number of decimal digits shared by both components (0 when incomplete)."""

        if not self.is_complete():
            return 0
        return min(_fraction_digits(self.lat), _fraction_digits(self.lng))

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(slots=True)
class Address:
    """Structured or free-text postal address."""

    street: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    full: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional["Address"]:
        if value is None:
            return None
        if isinstance(value, Address):
            return replace(value)
        if isinstance(value, Mapping):
            return cls(
                street=_clean_text(value.get("street")),
                city=_clean_text(value.get("city")),
                postal_code=_clean_text(value.get("postal_code")),
                country=_clean_text(value.get("country")),
                full=_clean_text(value.get("full")),
            )
        text = _clean_text(value)
        return cls(full=text) if text else None

    def is_empty(self) -> bool:
        return not any((self.street, self.city, self.postal_code, self.country, self.full))

    def is_free_text(self) -> bool:
        return bool(self.full) and not any((self.street, self.city, self.postal_code, self.country))

    @property
    def line(self) -> Optional[str]:
        """Street line used for matching; falls back to the full text."""

        return self.street or self.full

    def as_value(self) -> Any:
        if self.is_free_text():
            return self.full
        return {
            key: value
            for key, value in {
                "street": self.street,
                "city": self.city,
                "postal_code": self.postal_code,
                "country": self.country,
                "full": self.full,
            }.items()
            if value is not None
        }


@dataclass(slots=True)
class ConfidenceScore:
    """Composite 0-100 trust score for one output record."""

    total: float
    source_score: float = 0
    completeness_score: float = 0
    quality_score: float = 0
    merged_bonus: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {
            "source_score": self.source_score,
            "completeness_score": self.completeness_score,
            "quality_score": self.quality_score,
        }
        if self.merged_bonus is not None:
            details["merged_bonus"] = self.merged_bonus
        return {"total": self.total, "details": details}


@dataclass(slots=True)
class Candidate:
    """One prospect-like record from a single source.

    The explicit fields form the shared schema; provider specific values are
    kept verbatim in :attr:`extra`. ``index`` and ``source`` are assigned on
    ingestion and drive dedup / merge bookkeeping.
    """

    name: Optional[str] = None
    company: Optional[str] = None
    sector: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    address: Optional[Address] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    external_id: Optional[str] = None
    source: Optional[str] = None
    index: int = -1
    extra: Dict[str, Any] = field(default_factory=dict)
    merged_from_sources: List[str] = field(default_factory=list)
    is_merged: bool = False
    confidence: Optional[ConfidenceScore] = None

    @classmethod
    def from_mapping(
        cls,
        raw: Mapping[str, Any],
        *,
        source: Optional[str] = None,
        index: int = -1,
    ) -> "Candidate":
        """Parse a loosely structured source record."""

        data = dict(raw)
        values: Dict[str, Any] = {name: _clean_text(data.pop(name, None)) for name in _TEXT_FIELDS}
        address = Address.from_value(data.pop("address", None))
        coordinates = Coordinates.from_value(data.pop("coordinates", None))
        raw_source = _clean_text(data.pop("source", None))
        return cls(
            address=address,
            coordinates=coordinates,
            source=source or raw_source,
            index=index,
            extra=data,
            **values,
        )

    def get(self, field_name: str) -> Any:
        if field_name in CORE_FIELDS:
            return getattr(self, field_name)
        return self.extra.get(field_name)

    def set(self, field_name: str, value: Any) -> None:
        if field_name in CORE_FIELDS:
            setattr(self, field_name, value)
        else:
            self.extra[field_name] = value

    def copy(self) -> "Candidate":
        return replace(
            self,
            address=replace(self.address) if self.address else None,
            coordinates=replace(self.coordinates) if self.coordinates else None,
            extra=dict(self.extra),
            merged_from_sources=list(self.merged_from_sources),
        )

    def as_dict(self) -> Dict[str, Any]:
        """Return a serialisable representation of the record."""

        row: Dict[str, Any] = {name: getattr(self, name) for name in _TEXT_FIELDS}
        row["address"] = self.address.as_value() if self.address else None
        row["coordinates"] = self.coordinates.as_dict() if self.coordinates else None
        row["source"] = self.source
        for key, value in self.extra.items():
            row.setdefault(key, value)
        if self.is_merged:
            row["_merged_from_sources"] = list(self.merged_from_sources)
            row["_is_merged"] = True
        if self.confidence is not None:
            row["confidence_score"] = self.confidence.as_dict()
        return row


@dataclass(slots=True)
class DuplicateGroup:
    """Transitively linked candidates judged to describe the same entity."""

    indices: List[int]
    similarity_score: float = 0.0
    members: List[Candidate] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "indices": list(self.indices),
            "similarity_score": round(self.similarity_score, 4),
            "members": [member.as_dict() for member in self.members],
        }


# --- Orchestrator Models ---

@dataclass(slots=True)
class SourceOutcome:
    """What one source returned for one search."""

    source: str
    results: List[Dict[str, Any]] = field(default_factory=list)
    success: bool = True
    response_time_ms: float = 0.0
    cached: bool = False
    error: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.results)

    @classmethod
    def from_mapping(cls, source: str, data: Mapping[str, Any]) -> "SourceOutcome":
        return cls(
            source=source,
            results=[dict(item) for item in data.get("results") or []],
            success=bool(data.get("success", False)),
            response_time_ms=float(data.get("response_time_ms") or 0.0),
            cached=bool(data.get("cached", False)),
            error=data.get("error"),
        )

    @classmethod
    def failure(cls, source: str, error: str, response_time_ms: float = 0.0) -> "SourceOutcome":
        return cls(source=source, results=[], success=False, response_time_ms=response_time_ms, error=error)

    def stats_entry(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "count": self.count,
            "response_time_ms": self.response_time_ms,
            "cached": self.cached,
            "error": self.error,
        }


@dataclass(slots=True)
class DeduplicationInfo:
    original_count: int = 0
    final_count: int = 0
    duplicates_removed: int = 0
    duplicate_groups: int = 0
    processing_time_ms: float = 0.0
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "original_count": self.original_count,
            "final_count": self.final_count,
            "duplicates_removed": self.duplicates_removed,
            "duplicate_groups": self.duplicate_groups,
            "processing_time_ms": self.processing_time_ms,
        }
        if self.error is not None:
            info["error"] = self.error
        return info


@dataclass(slots=True)
class AggregationResult:
    """Ranked, deduplicated records for one batch of source outcomes."""

    merged: List[Candidate] = field(default_factory=list)
    duplicates: List[DuplicateGroup] = field(default_factory=list)
    deduplication_info: DeduplicationInfo = field(default_factory=DeduplicationInfo)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "merged": [record.as_dict() for record in self.merged],
            "duplicates": [group.as_dict() for group in self.duplicates],
            "deduplication_info": self.deduplication_info.as_dict(),
        }


@dataclass
class SearchResponse:
    """Serialisable response handed to the calling layer (and cached)."""

    query: str
    filters: Dict[str, Any] = field(default_factory=dict)
    sources_requested: List[str] = field(default_factory=list)
    aggregated_results: List[Dict[str, Any]] = field(default_factory=list)
    duplicates_found: List[Dict[str, Any]] = field(default_factory=list)
    deduplication_info: Dict[str, Any] = field(default_factory=dict)
    total_found: int = 0
    search_stats: Dict[str, Any] = field(default_factory=dict)
    cache_info: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SearchResponse":
        return cls(
            query=data.get("query", ""),
            filters=dict(data.get("filters") or {}),
            sources_requested=list(data.get("sources_requested") or []),
            aggregated_results=list(data.get("aggregated_results") or []),
            duplicates_found=list(data.get("duplicates_found") or []),
            deduplication_info=dict(data.get("deduplication_info") or {}),
            total_found=int(data.get("total_found") or 0),
            search_stats=dict(data.get("search_stats") or {}),
            cache_info=dict(data.get("cache_info") or {}),
            error=data.get("error"),
        )

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "query": self.query,
            "filters": dict(self.filters),
            "sources_requested": list(self.sources_requested),
            "aggregated_results": list(self.aggregated_results),
            "duplicates_found": list(self.duplicates_found),
            "deduplication_info": dict(self.deduplication_info),
            "total_found": self.total_found,
            "search_stats": dict(self.search_stats),
            "cache_info": dict(self.cache_info),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class StageResult(Generic[T]):
    """Outcome of one aggregation stage: either a value or an error message."""

    stage: str
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
