import hashlib
import json
import sys
import types

import pytest

from prospect_aggregator.sources import (
    EmailFinderSource,
    GuardedSource,
    PayloadSource,
    SourceError,
    StaticSource,
    normalize_google_place,
    normalize_nominatim_place,
)
from prospect_aggregator.sources.email_finder import company_from_domain
from prospect_aggregator.sources.places import parse_formatted_address

GOOGLE_PLACE = {
    "place_id": "demo_place_1",
    "name": "Le Comptoir du Relais",
    "formatted_address": "45 Rue de Rivoli, 75001 Paris, France",
    "formatted_phone_number": "01 42 97 48 23",
    "types": ["establishment", "restaurant"],
    "geometry": {"location": {"lat": 48.8566, "lng": 2.3522}},
    "rating": 4.4,
}

NOMINATIM_PLACE = {
    "place_id": "osm_demo_1",
    "display_name": "Café de la Place, 15 Place de la République, 75003 Paris, France",
    "lat": "48.8674",
    "lon": "2.3636",
    "type": "cafe",
    "class": "amenity",
    "address": {"house_number": "15", "road": "Place de la République", "city": "Paris", "postcode": "75003"},
    "extratags": {"phone": "01 48 87 00 00", "opening_hours": "Mo-Su 08:00-22:00"},
}


def sample_finder(domain):
    return [
        {"email": f"jane.doe@{domain}", "type": "personal", "first_name": "Jane", "last_name": "Doe", "position": "CEO"},
        {"email": f"contact@{domain}", "type": "generic"},
        {"email": f"x@{domain}", "type": "personal", "first_name": "X", "last_name": ""},
    ]


def test_static_source_filters_by_query_and_city() -> None:
    source = StaticSource(
        [
            {"name": "Cafe Central", "city": "Paris"},
            {"name": "Garage", "sector": "Cafe supplies", "city": "Lyon"},
            {"name": "Boulangerie", "city": "Paris"},
        ]
    )

    assert [record["name"] for record in source.fetch("cafe", {})] == ["Cafe Central", "Garage"]
    assert [record["name"] for record in source.fetch("CAFE", {"city": "paris"})] == ["Cafe Central"]


def test_guarded_source_uses_configured_name_and_metadata() -> None:
    guarded = GuardedSource(StaticSource([{"name": "Cafe"}]), name="demo", display_name="Demo data", source_type="static")

    assert guarded.name == "demo"
    assert guarded.fetch("cafe", {}) == [{"name": "Cafe"}]
    assert guarded.describe() == {
        "name": "Demo data",
        "available": True,
        "description": "Records declared in configuration",
        "type": "static",
    }


def test_guarded_source_falls_back_to_adapter_name() -> None:
    assert GuardedSource(StaticSource(name="inline")).name == "inline"


def test_company_from_domain() -> None:
    assert company_from_domain("acme.fr") == "Acme"
    assert company_from_domain("dupont-freres.com") == "Dupont-freres"


def test_email_finder_keeps_named_personal_addresses() -> None:
    source = EmailFinderSource(sample_finder)

    prospects = source.fetch("ignored", {"domain": "acme.fr"})

    assert prospects == [
        {
            "name": "Jane Doe",
            "company": "Acme",
            "email": "jane.doe@acme.fr",
            "position": "CEO",
            "phone": None,
            "linkedin_url": None,
            "source": "hunter",
            "external_id": hashlib.md5(b"jane.doe@acme.fr").hexdigest(),
        }
    ]


def test_email_finder_needs_a_domain() -> None:
    calls = []
    source = EmailFinderSource(lambda domain: calls.append(domain) or [])

    assert source.fetch("cafe", {}) == []
    assert calls == []


def test_email_finder_loads_callable_from_dotted_path(monkeypatch) -> None:
    module = types.ModuleType("finders_for_tests")
    module.sample_finder = sample_finder
    monkeypatch.setitem(sys.modules, "finders_for_tests", module)

    source = EmailFinderSource("finders_for_tests.sample_finder")

    assert source.is_configured()
    assert len(source.fetch("", {"domain": "acme.fr"})) == 1


def test_find_emails_returns_raw_finder_entries() -> None:
    source = EmailFinderSource(sample_finder)

    entries = source.find_emails("acme.fr")

    assert entries == [dict(entry) for entry in sample_finder("acme.fr")]


def test_email_finder_without_finder_is_unavailable() -> None:
    source = EmailFinderSource()

    assert not source.is_configured()
    with pytest.raises(SourceError):
        source.fetch("", {"domain": "acme.fr"})


def test_parse_formatted_address() -> None:
    assert parse_formatted_address("45 Rue de Rivoli, 75001 Paris, France") == {
        "street": "45 Rue de Rivoli",
        "city": "Paris",
        "postal_code": "75001",
    }


def test_normalize_google_place() -> None:
    record = normalize_google_place(GOOGLE_PLACE)

    assert record["name"] == record["company"] == "Le Comptoir du Relais"
    assert record["sector"] == "Restauration"
    assert record["city"] == "Paris"
    assert record["postal_code"] == "75001"
    assert record["address"]["full"] == "45 Rue de Rivoli, 75001 Paris, France"
    assert record["coordinates"] == {"lat": 48.8566, "lng": 2.3522}
    assert record["external_id"] == "demo_place_1"
    assert record["source"] == "google_maps"


def test_normalize_nominatim_place() -> None:
    record = normalize_nominatim_place(NOMINATIM_PLACE)

    assert record["name"] == "Café de la Place"
    assert record["sector"] == "Restauration"
    assert record["description"] == "Cafe - Horaires: Mo-Su 08:00-22:00"
    assert record["address"]["street"] == "15 Place de la République"
    assert record["phone"] == "01 48 87 00 00"
    assert record["coordinates"] == {"lat": "48.8674", "lng": "2.3636"}
    assert record["source"] == "nominatim"


def test_payload_source_reads_json_file(tmp_path) -> None:
    payload_path = tmp_path / "places.json"
    payload_path.write_text(json.dumps({"results": [GOOGLE_PLACE]}), encoding="utf-8")
    source = PayloadSource("google_maps", path=payload_path)

    assert source.is_configured()
    assert [record["name"] for record in source.fetch("comptoir", {})] == ["Le Comptoir du Relais"]
    assert source.fetch("pharmacie", {}) == []


def test_payload_source_rejects_unknown_provider() -> None:
    with pytest.raises(SourceError):
        PayloadSource("yelp", payload=[])
