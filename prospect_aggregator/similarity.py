"""Field-level similarity measures used to compare candidates from different sources."""
from __future__ import annotations

import math
import re
import unicodedata
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Optional

from .models import Candidate, Coordinates

EARTH_RADIUS_METERS = 6_371_000
NO_DISTANCE = math.inf

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_PHONE_NOISE = re.compile(r"[^\d+]")
_LOCAL_SUFFIX_LENGTH = 8


def normalize_string(value: str) -> str:
    """Fold case and accents, drop punctuation and collapse whitespace."""

    decomposed = unicodedata.normalize("NFKD", value.strip().lower())
    ascii_text = "".join(char for char in decomposed if not unicodedata.combining(char))
    ascii_text = ascii_text.encode("ascii", "ignore").decode("ascii")
    ascii_text = _NON_ALNUM.sub("", ascii_text)
    return _WHITESPACE.sub(" ", ascii_text).strip()


def string_similarity(first: Optional[str], second: Optional[str]) -> float:
    """Character level similarity in ``[0, 1]`` (matching characters over total length)."""

    if not first or not second:
        return 0.0
    left = normalize_string(first)
    right = normalize_string(second)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    # SequenceMatcher breaks ties by argument order; sort so the score is symmetric.
    left, right = sorted((left, right))
    return SequenceMatcher(None, left, right, autojunk=False).ratio()


def normalize_phone(value: Optional[str]) -> str:
    if not value:
        return ""
    return _PHONE_NOISE.sub("", value)


def phone_similarity(first: Optional[str], second: Optional[str]) -> float:
    left = normalize_phone(first)
    right = normalize_phone(second)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    if (
        len(left) >= _LOCAL_SUFFIX_LENGTH
        and len(right) >= _LOCAL_SUFFIX_LENGTH
        and left[-_LOCAL_SUFFIX_LENGTH:] == right[-_LOCAL_SUFFIX_LENGTH:]
    ):
        return 0.95
    return 0.0


def emails_match(first: Optional[str], second: Optional[str]) -> bool:
    if not first or not second:
        return False
    left = first.strip().lower()
    right = second.strip().lower()
    return bool(left) and left == right


def normalized_address(candidate: Candidate) -> str:
    """Street line, city and postal code joined for comparison."""

    parts = []
    if candidate.address is not None and candidate.address.line:
        parts.append(candidate.address.line)
    if candidate.city:
        parts.append(candidate.city)
    if candidate.postal_code:
        parts.append(candidate.postal_code)
    return " ".join(parts)


def haversine_distance(first: Optional[Coordinates], second: Optional[Coordinates]) -> float:
    """Great-circle distance in meters; :data:`NO_DISTANCE` when either side lacks coordinates."""

    if first is None or second is None or not first.is_complete() or not second.is_complete():
        return NO_DISTANCE

    lat1 = math.radians(first.lat)
    lat2 = math.radians(second.lat)
    delta_lat = math.radians(second.lat - first.lat)
    delta_lng = math.radians(second.lng - first.lng)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


@dataclass(slots=True)
class Similarities:
    """Every signal computed for one candidate pair."""

    name: float
    address: float
    phone: float
    email_exact: bool
    distance_meters: float

    @property
    def average(self) -> float:
        return (self.name + self.address + self.phone) / 3


def compare(first: Candidate, second: Candidate) -> Similarities:
    return Similarities(
        name=string_similarity(first.name, second.name),
        address=string_similarity(normalized_address(first), normalized_address(second)),
        phone=phone_similarity(first.phone, second.phone),
        email_exact=emails_match(first.email, second.email),
        distance_meters=haversine_distance(first.coordinates, second.coordinates),
    )
