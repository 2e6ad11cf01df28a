"""Adapter turning domain email-finder results into prospects."""
from __future__ import annotations

import hashlib
import importlib
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .base import SourceError

LOGGER = logging.getLogger(__name__)

EmailFinder = Callable[[str], Iterable[Mapping[str, Any]]]

_DOMAIN_SUFFIXES = (".com", ".fr", ".org")


def company_from_domain(domain: str) -> str:
    """``acme.fr`` -> ``Acme``."""

    name = domain.strip()
    for suffix in _DOMAIN_SUFFIXES:
        name = name.replace(suffix, "")
    return name[:1].upper() + name[1:]


def email_to_prospect(entry: Mapping[str, Any], domain: str, *, source: str = "hunter") -> Optional[Dict[str, Any]]:
    """Convert one finder entry; only personal addresses with a full name qualify."""

    email = entry.get("email") or entry.get("value")
    first_name = (entry.get("first_name") or "").strip()
    last_name = (entry.get("last_name") or "").strip()
    if entry.get("type") != "personal" or not email or not first_name or not last_name:
        return None
    return {
        "name": f"{first_name} {last_name}",
        "company": company_from_domain(domain),
        "email": email,
        "position": entry.get("position"),
        "phone": entry.get("phone_number"),
        "linkedin_url": entry.get("linkedin"),
        "source": source,
        "external_id": hashlib.md5(str(email).encode("utf-8")).hexdigest(),
    }


def _load_callable(path: str) -> EmailFinder:
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise SourceError(f"Invalid email finder path '{path}'")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise SourceError(f"Module '{module_name}' does not define '{attr}'") from exc


class EmailFinderSource:
    """Runs an email finder for ``filters['domain']``; searches without a domain return nothing."""

    description = "Professional email addresses"
    source_type = "contact"

    def __init__(self, finder: Union[str, EmailFinder, None] = None, *, name: str = "hunter") -> None:
        self.name = name
        self._finder: Optional[EmailFinder] = _load_callable(finder) if isinstance(finder, str) else finder

    def is_configured(self) -> bool:
        return self._finder is not None

    def find_emails(self, domain: str) -> List[Dict[str, Any]]:
        """Raw finder entries for ``domain``."""

        if self._finder is None:
            raise SourceError(f"Source '{self.name}' has no email finder configured")
        return [dict(entry) for entry in self._finder(domain) or []]

    def fetch(self, query: str, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        domain = str(filters.get("domain") or "").strip()
        if not domain:
            LOGGER.debug("Skipping %s: no domain filter supplied", self.name)
            return []

        prospects: List[Dict[str, Any]] = []
        for entry in self.find_emails(domain):
            prospect = email_to_prospect(entry, domain, source=self.name)
            if prospect is not None:
                prospects.append(prospect)
        return prospects
