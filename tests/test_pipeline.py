from prospect_aggregator.dedup import DuplicateDetector
from prospect_aggregator.models import SourceOutcome
from prospect_aggregator.pipeline import ResultMerger, aggregate, collect_candidates


def _outcomes():
    return {
        "google_maps": SourceOutcome(
            source="google_maps",
            results=[
                {
                    "name": "Boulangerie Dupont",
                    "phone": "+33 1 42 97 48 23",
                    "website": "http://dupont.fr",
                    "coordinates": {"lat": 48.8566, "lng": 2.3522},
                    "rating": 4.6,
                },
                {"name": "Fleuriste Lila", "city": "Paris"},
            ],
        ),
        "hunter": SourceOutcome.failure("hunter", "quota exceeded"),
        "nominatim": SourceOutcome(
            source="nominatim",
            results=[
                {
                    "name": "Boulangerie Dupont",
                    "phone": "01 42 97 48 23",
                    "email": "bonjour@dupont.fr",
                    "description": "Boulangerie artisanale",
                    "opening_hours": "Mo-Sa 07:00-20:00",
                },
            ],
        ),
    }


def test_collect_candidates_flattens_successful_sources_in_order() -> None:
    candidates = collect_candidates(_outcomes())

    assert [(candidate.index, candidate.source, candidate.name) for candidate in candidates] == [
        (0, "google_maps", "Boulangerie Dupont"),
        (1, "google_maps", "Fleuriste Lila"),
        (2, "nominatim", "Boulangerie Dupont"),
    ]
    assert candidates[0].extra == {"rating": 4.6}


def test_merge_and_deduplicate_end_to_end() -> None:
    result = ResultMerger().merge_and_deduplicate(_outcomes())

    info = result.deduplication_info
    assert (info.original_count, info.final_count, info.duplicates_removed, info.duplicate_groups) == (3, 2, 1, 1)
    assert info.error is None
    assert [group.indices for group in result.duplicates] == [[0, 2]]

    best = result.merged[0]
    assert best.is_merged
    assert best.phone == "01 42 97 48 23"
    assert best.email == "bonjour@dupont.fr"
    assert best.extra == {"rating": 4.6, "opening_hours": "Mo-Sa 07:00-20:00"}
    assert best.confidence.merged_bonus == 10
    assert result.merged[0].confidence.total >= result.merged[1].confidence.total

    serialized = best.as_dict()
    assert serialized["_merged_from_sources"] == ["google_maps", "nominatim"]
    assert serialized["_is_merged"] is True
    assert serialized["confidence_score"]["total"] == best.confidence.total


def test_empty_input_yields_an_empty_result() -> None:
    result = aggregate({})

    assert result.merged == []
    assert result.duplicates == []
    assert result.deduplication_info.original_count == 0
    assert result.deduplication_info.error is None


def test_aggregate_accepts_plain_mappings() -> None:
    result = aggregate(
        {
            "google_maps": {"success": True, "results": [{"name": "Chez Paul", "email": "paul@x.fr"}]},
            "nominatim": {"success": True, "results": [{"name": "Paul", "email": "PAUL@x.fr"}]},
            "hunter": {"success": False, "results": [{"name": "ignored"}]},
        }
    )

    assert len(result.merged) == 1
    assert result.merged[0].merged_from_sources == ["google_maps", "nominatim"]


class ExplodingDetector(DuplicateDetector):
    def detect(self, candidates):
        raise RuntimeError("boom")


def test_failing_stage_degrades_to_raw_candidates() -> None:
    result = ResultMerger(detector=ExplodingDetector()).merge_and_deduplicate(_outcomes())

    assert [candidate.name for candidate in result.merged] == ["Boulangerie Dupont", "Fleuriste Lila", "Boulangerie Dupont"]
    assert result.duplicates == []
    assert result.deduplication_info.error == "detect: boom"
    assert result.deduplication_info.original_count == result.deduplication_info.final_count == 3
    assert "error" in result.as_dict()["deduplication_info"]
