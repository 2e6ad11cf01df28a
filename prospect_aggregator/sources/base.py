"""Source adapter contract and the wrapper applied to configured adapters."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol


class SourceError(RuntimeError):
    """Raised by adapters when a provider cannot answer a search."""


class SourceTimeoutError(SourceError):
    """Raised when one source call runs past its deadline."""


class SourceAdapter(Protocol):
    """Protocol defining the interface that source implementations must follow."""

    name: str

    def fetch(self, query: str, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:  # pragma: no cover - runtime protocol
        """Return raw prospect-like records for ``query``."""


@dataclass
class DelayPolicy:
    """Artificial pause applied after each call to a source."""

    delay_seconds: float = 0.0


class GuardedSource:
    """Wrapper that adds a display name, metadata and a delay policy to an adapter."""

    def __init__(
        self,
        adapter,
        *,
        name: Optional[str] = None,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        source_type: Optional[str] = None,
        delay_policy: Optional[DelayPolicy] = None,
    ) -> None:
        self._adapter = adapter
        self._name = name
        self._display_name = display_name
        self._description = description
        self._source_type = source_type
        self._delay_policy = delay_policy or DelayPolicy()

    @property
    def name(self) -> str:
        if self._name:
            return self._name
        return getattr(self._adapter, "name", self._adapter.__class__.__name__)

    @property
    def display_name(self) -> str:
        return self._display_name or getattr(self._adapter, "display_name", None) or self.name

    @property
    def adapter(self):
        return self._adapter

    def is_configured(self) -> bool:
        check = getattr(self._adapter, "is_configured", None)
        return bool(check()) if callable(check) else True

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.display_name,
            "available": self.is_configured(),
            "description": self._description or getattr(self._adapter, "description", ""),
            "type": self._source_type or getattr(self._adapter, "source_type", "generic"),
        }

    def fetch(self, query: str, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        results = self._adapter.fetch(query, filters)
        if self._delay_policy.delay_seconds > 0:
            time.sleep(self._delay_policy.delay_seconds)
        return [dict(item) for item in results or []]

    def __getattr__(self, item):
        return getattr(self._adapter, item)
