"""Configuration helpers for the search aggregator."""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Tuple

import yaml

LOGGER = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}

DEFAULT_SOURCES: Tuple[str, ...] = ("google_maps", "nominatim")

DEFAULT_SOURCE_WEIGHTS: Dict[str, float] = {
    "google_maps": 40,
    "clearbit": 30,
    "nominatim": 20,
    "hunter": 10,
}

DEFAULT_FIELD_WEIGHTS: Dict[str, float] = {
    "name": 5,
    "company": 3,
    "address": 4,
    "city": 2,
    "postal_code": 2,
    "phone": 4,
    "email": 4,
    "website": 3,
    "description": 2,
    "coordinates": 3,
}


@dataclass(frozen=True)
class AggregationSettings:
    """Thresholds and weights used by matching, merging and scoring."""

    name_similarity_threshold: float = 0.85
    address_similarity_threshold: float = 0.80
    phone_similarity_threshold: float = 0.95
    strict_name_similarity_threshold: float = 0.95
    distance_threshold_meters: float = 100.0
    national_phone_pattern: str = r"^0[1-9](\s?\d{2}){4}$"
    source_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SOURCE_WEIGHTS))
    field_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_FIELD_WEIGHTS))
    name_quality_bonus: float = 3
    email_quality_bonus: float = 4
    phone_quality_bonus: float = 3
    website_quality_bonus: float = 2
    coordinates_quality_bonus: float = 2
    min_phone_length: int = 10
    merged_bonus: float = 10
    max_score: float = 100

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "AggregationSettings":
        """Build settings from the ``aggregation`` section, ignoring runtime-only keys."""

        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in (data or {}).items() if key in known}
        for weights_key, defaults in (("source_weights", DEFAULT_SOURCE_WEIGHTS), ("field_weights", DEFAULT_FIELD_WEIGHTS)):
            if weights_key in values:
                merged = dict(defaults)
                merged.update(values[weights_key] or {})
                values[weights_key] = merged
        return cls(**values)

    def fingerprint(self) -> str:
        """Short stable hash of every tunable; cached results are keyed on it."""

        payload = json.dumps(asdict(self), sort_keys=True)
        return hashlib.md5(payload.encode("utf-8")).hexdigest()[:12]


@dataclass(frozen=True)
class RuntimeSettings:
    """Execution options for the orchestrator and cache."""

    concurrent: bool = True
    max_workers: int | None = None
    timeout_seconds: float = 30.0
    cache_ttl_seconds: int = 3600
    default_sources: Tuple[str, ...] = DEFAULT_SOURCES

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "RuntimeSettings":
        data = data or {}
        max_workers = data.get("max_workers")
        return cls(
            concurrent=bool(data.get("concurrent", True)),
            max_workers=int(max_workers) if max_workers else None,
            timeout_seconds=float(data.get("timeout_seconds", 30.0)),
            cache_ttl_seconds=int(data.get("cache_ttl_seconds", 3600)),
            default_sources=tuple(data.get("default_sources") or DEFAULT_SOURCES),
        )


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Configuration file '{file_path}' is not valid JSON: {exc}") from exc

    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Configuration file '{file_path}' is not valid YAML: {exc}") from exc


def iter_enabled_source_configs(config: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    sources = config.get("sources", [])
    for source in sources:
        if source.get("enabled", True):
            yield source
        else:
            LOGGER.debug("Skipping disabled source %s", source.get("name"))


def aggregation_settings(config: Dict[str, Any]) -> AggregationSettings:
    try:
        return AggregationSettings.from_mapping(config.get("aggregation"))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid aggregation settings: {exc}") from exc


def runtime_settings(config: Dict[str, Any]) -> RuntimeSettings:
    try:
        return RuntimeSettings.from_mapping(config.get("aggregation"))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid aggregation settings: {exc}") from exc
