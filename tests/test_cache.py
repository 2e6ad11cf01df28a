import pytest

from prospect_aggregator.cache import InMemoryCache, SearchCache, normalize_filters


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class BrokenBackend:
    def get(self, key):
        raise ConnectionError("cache down")

    def put(self, key, value, ttl=None):
        raise ConnectionError("cache down")

    def forget(self, key):
        raise ConnectionError("cache down")


def test_in_memory_cache_expires_entries() -> None:
    clock = FakeClock(100.0)
    cache = InMemoryCache(clock=clock)

    cache.put("short", "value", ttl=10)
    cache.put("forever", "value")
    assert cache.get("short") == "value"

    clock.now = 110.0
    assert cache.get("short") is None
    assert cache.get("forever") == "value"

    cache.forget("forever")
    assert len(cache) == 0


def test_in_memory_cache_isolates_stored_values() -> None:
    cache = InMemoryCache()
    record = {"name": "Cafe", "tags": ["bar"]}

    cache.put("key", record)
    record["tags"].append("late")
    served = cache.get("key")
    served["name"] = "Changed"

    assert cache.get("key") == {"name": "Cafe", "tags": ["bar"]}


def test_normalize_filters_drops_blanks_and_sorts() -> None:
    normalized = normalize_filters({"sector": " Restauration ", "city": "", "tags": ["B", "a"], "radius": 5, "empty": None})

    assert normalized == {"radius": 5, "sector": "restauration", "tags": ["a", "b"]}
    assert list(normalized) == ["radius", "sector", "tags"]


def test_search_key_ignores_filter_order_and_case() -> None:
    cache = SearchCache()

    first = cache.search_key("Boulangerie", {"city": "Paris", "sector": "Food"}, ["google_maps"])
    second = cache.search_key(" boulangerie ", {"sector": "food", "city": "PARIS", "domain": ""}, ["google_maps"])

    assert first == second
    assert first.startswith("prospect_search:search:")
    assert first != cache.search_key("Boulangerie", {"city": "Paris"}, ["google_maps", "nominatim"])


def test_search_key_depends_on_algorithm_version() -> None:
    backend = InMemoryCache()

    old = SearchCache(backend, algorithm_version="v1").search_key("cafe", {}, ["google_maps"])
    new = SearchCache(backend, algorithm_version="v2").search_key("cafe", {}, ["google_maps"])

    assert old != new


def test_search_results_round_trip_adds_cache_info() -> None:
    clock = FakeClock()
    cache = SearchCache(clock=clock)
    key = cache.search_key("cafe", {}, ["google_maps"])

    assert cache.get_search_results(key) is None
    assert cache.put_search_results(key, {"query": "cafe", "total_found": 2})

    clock.now += 42
    cached = cache.get_search_results(key)

    assert cached["total_found"] == 2
    assert cached["cache_info"] == {"cached_at": 1_700_000_000, "age_seconds": 42, "from_cache": True}


def test_malformed_search_entries_are_discarded() -> None:
    backend = InMemoryCache()
    cache = SearchCache(backend)
    backend.put("prospect_search:search:bad", {"unexpected": True})

    assert cache.get_search_results("prospect_search:search:bad") is None
    assert backend.get("prospect_search:search:bad") is None


def test_source_data_is_keyed_per_source() -> None:
    cache = SearchCache()
    cache.put_source_data("google_maps", "cafe", {"city": "Paris"}, [{"name": "Cafe"}])

    cached = cache.get_source_data("google_maps", "Cafe", {"city": "paris"})

    assert cached["results"] == [{"name": "Cafe"}]
    assert cached["count"] == 1
    assert cache.get_source_data("nominatim", "cafe", {"city": "Paris"}) is None


def test_record_stat_accumulates_hourly_bucket() -> None:
    cache = SearchCache(clock=FakeClock())

    cache.record_stat("google_maps", {"response_time": 100.0, "results_count": 4, "error": False})
    cache.record_stat("google_maps", {"response_time": 300.0, "results_count": 0, "error": True})

    stats = cache.source_stats("google_maps")
    assert stats["requests"] == 2
    assert stats["avg_response_time"] == pytest.approx(200.0)
    assert stats["avg_results"] == pytest.approx(2.0)
    assert stats["error_rate"] == pytest.approx(50.0)
    assert cache.stats_key("google_maps").startswith("prospect_search:stats:google_maps:2023-11-14-")


def test_backend_failures_are_absorbed() -> None:
    cache = SearchCache(BrokenBackend())
    key = cache.search_key("cafe", {}, ["google_maps"])

    assert cache.get_search_results(key) is None
    assert cache.put_search_results(key, {"query": "cafe"}) is False
    assert cache.get_source_data("google_maps", "cafe", {}) is None
    assert cache.put_source_data("google_maps", "cafe", {}, []) is False
    assert cache.record_stat("google_maps", {"response_time": 1}) is False
    assert cache.source_stats("google_maps") is None
