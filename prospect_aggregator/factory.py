"""Factory helpers for constructing sources and the aggregator from configuration."""
from __future__ import annotations

import importlib
from typing import Any, Dict, Optional

from .cache import CacheBackend, SearchCache
from .config import ConfigurationError, aggregation_settings, iter_enabled_source_configs, runtime_settings
from .orchestrator import SearchAggregator, SourceOrchestrator
from .sources.base import DelayPolicy, GuardedSource, SourceError


def _load_class(path: str):
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ConfigurationError(f"Invalid source class path '{path}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Could not import source module '{module_name}': {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_name}' does not define '{attr}'") from exc


def build_sources(config: Dict[str, Any]) -> Dict[str, GuardedSource]:
    """Instantiate source classes defined in the configuration file, keyed by source name."""

    sources: Dict[str, GuardedSource] = {}
    for source_cfg in iter_enabled_source_configs(config):
        class_path = source_cfg.get("class")
        if not class_path:
            raise ConfigurationError("Source configuration missing required 'class' field")

        options = source_cfg.get("options", {}) or {}
        source_cls = _load_class(class_path)
        try:
            source_instance = source_cls(**options)
        except (TypeError, ImportError, SourceError) as exc:
            raise ConfigurationError(f"Invalid options for source '{class_path}': {exc}") from exc

        name = source_cfg.get("name") or getattr(source_instance, "name", None)
        if not name:
            raise ConfigurationError(f"Source '{class_path}' has no name")
        if name in sources:
            raise ConfigurationError(f"Duplicate source name '{name}'")

        delay_seconds = float(source_cfg.get("delay_seconds", 0) or 0)
        sources[name] = GuardedSource(
            source_instance,
            name=name,
            display_name=source_cfg.get("display_name"),
            description=source_cfg.get("description"),
            source_type=source_cfg.get("type"),
            delay_policy=DelayPolicy(delay_seconds=delay_seconds),
        )
    return sources


def build_aggregator(
    config: Dict[str, Any],
    *,
    backend: Optional[CacheBackend] = None,
    concurrent: Optional[bool] = None,
    max_workers: Optional[int] = None,
) -> SearchAggregator:
    """Wire sources, cache and settings from a loaded configuration mapping.

    ``concurrent`` and ``max_workers`` override the ``aggregation`` section
    when given.
    """

    settings = aggregation_settings(config)
    runtime = runtime_settings(config)
    cache = SearchCache(
        backend,
        ttl_seconds=runtime.cache_ttl_seconds,
        algorithm_version=settings.fingerprint(),
    )
    orchestrator = SourceOrchestrator(
        build_sources(config),
        cache,
        concurrent=runtime.concurrent if concurrent is None else concurrent,
        max_workers=max_workers or runtime.max_workers,
        timeout_seconds=runtime.timeout_seconds,
        default_sources=runtime.default_sources,
    )
    return SearchAggregator(orchestrator, cache=cache, settings=settings)
