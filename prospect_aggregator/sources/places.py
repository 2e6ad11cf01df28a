"""Normalise place-search provider payloads into prospect records."""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .base import SourceError
from .sample import matches_query

_POSTAL_PREFIX = re.compile(r"^\d{5}")
_COUNTRY_PART = re.compile(r"France|Frankreich")

GOOGLE_SECTORS: Mapping[str, str] = {
    "restaurant": "Restauration",
    "store": "Commerce",
    "health": "Santé",
    "lawyer": "Services juridiques",
    "dentist": "Santé dentaire",
    "doctor": "Santé",
    "hospital": "Santé",
    "pharmacy": "Pharmacie",
    "bank": "Banque",
    "insurance_agency": "Assurance",
    "real_estate_agency": "Immobilier",
    "beauty_salon": "Beauté",
    "gym": "Sport et fitness",
    "car_dealer": "Automobile",
    "gas_station": "Station-service",
}

OSM_SECTORS: Mapping[str, str] = {
    "restaurant": "Restauration",
    "cafe": "Restauration",
    "bar": "Restauration",
    "bakery": "Alimentation",
    "shop": "Commerce",
    "supermarket": "Grande distribution",
    "pharmacy": "Santé",
    "hospital": "Santé",
    "clinic": "Santé",
    "dentist": "Santé",
    "bank": "Services financiers",
    "office": "Services",
    "hotel": "Hôtellerie",
    "school": "Éducation",
    "university": "Éducation",
    "garage": "Automobile",
    "fuel": "Automobile",
}


def parse_formatted_address(formatted: str) -> Dict[str, Optional[str]]:
    """Split ``"45 Rue de Rivoli, 75001 Paris, France"`` into street, city and postal code."""

    result: Dict[str, Optional[str]] = {"street": None, "city": None, "postal_code": None}
    for part in (formatted or "").split(", "):
        if _POSTAL_PREFIX.match(part):
            result["postal_code"] = part[:5]
            result["city"] = part[6:].strip() or None
        elif result["street"] is None and part and not _COUNTRY_PART.search(part):
            result["street"] = part
    return result


def _google_sector(types: Sequence[str]) -> Optional[str]:
    for place_type in types:
        if place_type in GOOGLE_SECTORS:
            return GOOGLE_SECTORS[place_type]
    return types[0] if types else None


def normalize_google_place(place: Mapping[str, Any], *, source: str = "google_maps") -> Dict[str, Any]:
    formatted = place.get("formatted_address") or ""
    parts = parse_formatted_address(formatted)
    location = (place.get("geometry") or {}).get("location") or {}
    record: Dict[str, Any] = {
        "name": place.get("name") or "Unknown",
        "company": place.get("name"),
        "sector": _google_sector(list(place.get("types") or [])),
        "phone": place.get("formatted_phone_number"),
        "website": place.get("website"),
        "address": {"full": formatted or None, **parts},
        "city": parts["city"],
        "postal_code": parts["postal_code"],
        "coordinates": {"lat": location.get("lat"), "lng": location.get("lng")},
        "rating": place.get("rating"),
        "user_ratings_total": place.get("user_ratings_total"),
        "business_status": place.get("business_status"),
        "source": source,
        "external_id": place.get("place_id"),
    }
    opening_hours = (place.get("opening_hours") or {}).get("weekday_text")
    if opening_hours:
        record["opening_hours"] = opening_hours
    return record


def _osm_name(place: Mapping[str, Any]) -> str:
    localized = (place.get("namedetails") or {}).get("name:fr")
    if localized:
        return localized
    if place.get("name"):
        return place["name"]
    if place.get("display_name"):
        return place["display_name"].split(",")[0].strip()
    return f"Établissement {place.get('type') or 'inconnu'}"


def _osm_street(address: Mapping[str, Any]) -> Optional[str]:
    street = " ".join(str(part) for part in (address.get("house_number"), address.get("road")) if part)
    return street or None


def _osm_description(place: Mapping[str, Any]) -> Optional[str]:
    extratags = place.get("extratags") or {}
    parts: List[str] = []
    if place.get("type"):
        parts.append(str(place["type"]).capitalize())
    if extratags.get("cuisine"):
        parts.append(f"Cuisine: {extratags['cuisine']}")
    if extratags.get("opening_hours"):
        parts.append(f"Horaires: {extratags['opening_hours']}")
    return " - ".join(parts) or None


def normalize_nominatim_place(place: Mapping[str, Any], *, source: str = "nominatim") -> Dict[str, Any]:
    address = place.get("address") or {}
    extratags = place.get("extratags") or {}
    place_type = place.get("type") or ""
    city = address.get("city") or address.get("town") or address.get("village")
    name = _osm_name(place)
    return {
        "name": name,
        "company": name,
        "sector": OSM_SECTORS.get(place_type) or OSM_SECTORS.get(place.get("class") or "") or place_type.capitalize() or None,
        "description": _osm_description(place),
        "phone": extratags.get("phone"),
        "email": extratags.get("email"),
        "website": extratags.get("website"),
        "address": {
            "full": place.get("display_name"),
            "street": _osm_street(address),
            "city": city,
            "postal_code": address.get("postcode"),
        },
        "city": city,
        "postal_code": address.get("postcode"),
        "coordinates": {"lat": place.get("lat"), "lng": place.get("lon")},
        "opening_hours": extratags.get("opening_hours"),
        "source": source,
        "external_id": place.get("place_id"),
    }


NORMALIZERS: Mapping[str, Callable[..., Dict[str, Any]]] = {
    "google_maps": normalize_google_place,
    "nominatim": normalize_nominatim_place,
}


class PayloadSource:
    """Replays a stored provider payload (inline or from a JSON file) through a normalizer."""

    source_type = "geographic"

    def __init__(
        self,
        provider: str,
        *,
        payload: Union[Iterable[Mapping[str, Any]], Mapping[str, Any], None] = None,
        path: Union[str, Path, None] = None,
        name: Optional[str] = None,
        description: str = "",
    ) -> None:
        if provider not in NORMALIZERS:
            raise SourceError(f"Unknown payload provider '{provider}'")
        self.name = name or provider
        self.description = description
        self._normalizer = NORMALIZERS[provider]
        self._payload = payload
        self._path = Path(path) if path else None

    def is_configured(self) -> bool:
        return self._payload is not None or (self._path is not None and self._path.exists())

    def _places(self) -> List[Mapping[str, Any]]:
        data: Any = self._payload
        if data is None:
            if self._path is None:
                raise SourceError(f"Source '{self.name}' has neither a payload nor a payload path")
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                raise SourceError(f"Could not read payload for '{self.name}': {exc}") from exc
        if isinstance(data, Mapping):
            data = data.get("results") or []
        return list(data)

    def fetch(self, query: str, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        records = [self._normalizer(place, source=self.name) for place in self._places()]
        return [record for record in records if matches_query(record, query)]
