import pytest

from prospect_aggregator import merge
from prospect_aggregator.config import AggregationSettings
from prospect_aggregator.merge import ClusterMerger
from prospect_aggregator.models import CORE_FIELDS, Address, Candidate, Coordinates, DuplicateGroup, is_empty


def _group(*candidates: Candidate) -> DuplicateGroup:
    return DuplicateGroup(indices=[candidate.index for candidate in candidates], members=list(candidates))


def test_merge_keeps_longer_description_and_fills_gaps() -> None:
    first = Candidate(index=0, source="google_maps", name="Atelier Martin", email="contact@martin.fr", description="Menuiserie")
    second = Candidate(
        index=1,
        source="nominatim",
        name="Martin SARL",
        email="CONTACT@martin.fr",
        description="Menuiserie et ébénisterie depuis 1950",
        city="Lyon",
    )

    merged = ClusterMerger().merge(_group(first, second))

    assert merged.name == "Atelier Martin"
    assert merged.description == "Menuiserie et ébénisterie depuis 1950"
    assert merged.city == "Lyon"
    assert merged.source == "google_maps"
    assert merged.is_merged is True
    assert merged.merged_from_sources == ["google_maps", "nominatim"]


def test_merge_prefers_national_phone_https_and_precise_coordinates() -> None:
    first = Candidate(
        index=0,
        source="google_maps",
        phone="+33 1 42 97 48 23",
        website="http://martin.fr",
        coordinates=Coordinates(48.85, 2.35),
    )
    second = Candidate(
        index=1,
        source="nominatim",
        phone="01 42 97 48 23",
        website="https://martin.fr",
        coordinates=Coordinates(48.856614, 2.352222),
    )

    merged = ClusterMerger().merge(_group(first, second))

    assert merged.phone == "01 42 97 48 23"
    assert merged.website == "https://martin.fr"
    assert merged.coordinates == Coordinates(48.856614, 2.352222)


def test_fields_without_a_rule_keep_the_first_value() -> None:
    first = Candidate(index=0, source="google_maps", name="Short", company="First Co")
    second = Candidate(index=1, source="nominatim", name="A much longer name", company="Second Company")

    merged = ClusterMerger().merge(_group(first, second))

    assert merged.name == "Short"
    assert merged.company == "First Co"


def test_merge_does_not_drop_any_present_field() -> None:
    members = [
        Candidate(index=0, source="google_maps", name="Cafe Central", coordinates=Coordinates(48.85, 2.35)),
        Candidate(index=1, source="nominatim", phone="0102030405", address=Address(full="3 rue X"), extra={"rating": 4.5}),
        Candidate(index=2, source="hunter", email="a@b.fr", website="https://b.fr", extra={"position": "CEO"}),
    ]

    merged = ClusterMerger().merge(_group(*members))

    for field_name in CORE_FIELDS:
        if any(not is_empty(member.get(field_name)) for member in members):
            assert not is_empty(merged.get(field_name)), field_name
    assert merged.extra == {"rating": 4.5, "position": "CEO"}
    assert merged.merged_from_sources == ["google_maps", "nominatim", "hunter"]


def test_merge_does_not_mutate_members() -> None:
    first = Candidate(index=0, source="google_maps", coordinates=Coordinates(48.85, 2.35))
    second = Candidate(index=1, source="nominatim", city="Paris")

    merged = ClusterMerger().merge(_group(first, second))
    merged.coordinates.lat = 0.0

    assert first.city is None
    assert first.coordinates.lat == 48.85
    assert first.is_merged is False


def test_merge_all_puts_merged_records_first_then_singletons() -> None:
    candidates = [
        Candidate(index=0, source="google_maps", name="Solo"),
        Candidate(index=1, source="google_maps", name="Pair", email="pair@x.fr"),
        Candidate(index=2, source="nominatim", name="Other"),
        Candidate(index=3, source="nominatim", name="Pair bis", email="pair@x.fr"),
    ]
    groups = [DuplicateGroup(indices=[1, 3], members=[candidates[1], candidates[3]])]

    records = ClusterMerger().merge_all(groups, candidates)

    assert [record.name for record in records] == ["Pair", "Solo", "Other"]
    assert records[0].merged_from_sources == ["google_maps", "nominatim"]


def test_custom_rules_replace_the_defaults() -> None:
    first = Candidate(index=0, source="a", description="long description")
    second = Candidate(index=1, source="b", description="short")

    merger = ClusterMerger(rules={"description": lambda current, incoming, settings: len(incoming) < len(current)})

    assert merger.merge(_group(first, second)).description == "short"


def test_merging_an_empty_group_fails() -> None:
    with pytest.raises(ValueError):
        ClusterMerger().merge(DuplicateGroup(indices=[]))


def test_custom_national_phone_pattern_is_compiled_once() -> None:
    merger = ClusterMerger(AggregationSettings(national_phone_pattern=r"^\(\d{3}\) \d{3}-\d{4}$"))
    merge._compiled.cache_clear()

    for _ in range(3):
        assert merger.is_better_value("phone", "+1 415 555 0100", "(415) 555-0100")
    assert not merger.is_better_value("phone", "(415) 555-0100", "+1 415 555 0100")

    assert merge._compiled.cache_info().misses == 1
