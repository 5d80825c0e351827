"""Tests for CacheService and the analyzer response cache."""

from unittest.mock import AsyncMock

import pytest

from core.exceptions import StoreError
from database.kv_store import InMemoryKeyValueStore
from schemas.responses import AnalyzerResult, Issue
from services.analysis_cache import AnalysisCache
from services.cache_service import CacheService

CODE = """<?php
class Invoice {
    public function total($items) {
        return array_sum($items);
    }
}
"""

# Same identifiers and size, different body → different fingerprint
SIMILAR_CODE = CODE.replace("array_sum", "array_max")

UNRELATED_CODE = """<?php
function render($template, $vars) { foreach ($vars as $k => $v) { echo $k; } }
"""


def make_result(analyzer: str = "security") -> AnalyzerResult:
    return AnalyzerResult(
        analyzer=analyzer,
        issues=[Issue(line=3, type="xss", severity="high", message="unescaped output")],
        security_score=4,
    )


class TestCacheService:
    async def test_round_trip(self, store):
        cache = CacheService(store, key_prefix="results")
        result = make_result()

        assert await cache.set("abc", result) is True
        assert await cache.get("abc", AnalyzerResult) == result
        assert await store.get("results:abc") is not None

    async def test_disabled_cache_never_stores(self, store):
        cache = CacheService(store, enabled=False)

        assert await cache.set("abc", make_result()) is False
        assert await cache.get("abc", AnalyzerResult) is None
        assert len(store) == 0

    async def test_default_ttl_applied(self, store, clock):
        cache = CacheService(store, default_ttl=10)
        await cache.set("abc", make_result())

        clock.advance(11)

        assert await cache.get("abc", AnalyzerResult) is None

    async def test_store_errors_degrade_to_miss(self):
        store = AsyncMock()
        store.get.side_effect = StoreError("down")
        store.set.side_effect = StoreError("down")
        cache = CacheService(store)

        assert await cache.get("abc", AnalyzerResult) is None
        assert await cache.set("abc", make_result()) is False

    async def test_corrupt_entry_is_a_miss(self, store):
        cache = CacheService(store)
        await store.set("cache:abc", "{not json")

        assert await cache.get("abc", AnalyzerResult) is None

    async def test_clear_only_touches_own_prefix(self, store):
        cache = CacheService(store, key_prefix="results")
        await cache.set("a", make_result())
        await cache.set("b", make_result())
        await store.set("rate_limit:x:1", "3")

        assert await cache.clear() == 2
        assert await store.get("rate_limit:x:1") == "3"

    async def test_stats_count_own_entries(self, store):
        cache = CacheService(store, key_prefix="results", default_ttl=60)
        await cache.set("a", make_result())
        await cache.set("b", make_result())
        await store.set("other:c", "{}")

        assert await cache.get_stats() == {
            "prefix": "results",
            "cached_items": 2,
            "default_ttl": 60,
            "enabled": True,
        }

    def test_hash_key_is_deterministic(self):
        first = CacheService.generate_hash_key("code", analyzers=["a"], use_cache=True)
        second = CacheService.generate_hash_key("code", use_cache=True, analyzers=["a"])

        assert first == second
        assert len(first) == 32
        assert first != CacheService.generate_hash_key("other", analyzers=["a"], use_cache=True)


@pytest.fixture
def analysis_cache(store) -> AnalysisCache:
    return AnalysisCache(CacheService(store, key_prefix="cache_analysis"), ttl=3600)


class TestAnalysisCache:
    async def test_miss_then_exact_hit(self, analysis_cache):
        assert await analysis_cache.lookup(CODE, "security") is None

        await analysis_cache.store(CODE, "security", make_result())

        assert await analysis_cache.lookup(CODE, "security") == make_result()
        assert analysis_cache.hits == 1
        assert analysis_cache.misses == 1

    async def test_exact_hit_ignores_formatting(self, analysis_cache):
        await analysis_cache.store(CODE, "security", make_result())

        reformatted = "// header comment\n" + CODE.replace("    ", "  ")

        assert await analysis_cache.lookup(reformatted, "security") is not None
        assert analysis_cache.hits == 1
        assert analysis_cache.semantic_hits == 0

    async def test_entries_are_per_analyzer(self, analysis_cache):
        await analysis_cache.store(CODE, "security", make_result())

        assert await analysis_cache.lookup(CODE, "performance") is None

    async def test_semantic_hit_is_promoted_to_exact(self, analysis_cache):
        await analysis_cache.store(CODE, "security", make_result())

        first = await analysis_cache.lookup(SIMILAR_CODE, "security")
        second = await analysis_cache.lookup(SIMILAR_CODE, "security")

        assert first == make_result()
        assert second == make_result()
        assert analysis_cache.semantic_hits == 1
        assert analysis_cache.hits == 1

    async def test_dissimilar_code_misses(self, analysis_cache):
        await analysis_cache.store(CODE, "security", make_result())

        assert await analysis_cache.lookup(UNRELATED_CODE, "security") is None
        assert analysis_cache.misses == 1

    async def test_threshold_above_one_disables_similarity(self, store):
        cache = AnalysisCache(CacheService(store), similarity_threshold=1.01)
        await cache.store(CODE, "security", make_result())

        assert await cache.lookup(SIMILAR_CODE, "security") is None

    async def test_similarity_needs_scan_support(self, clock):
        store = InMemoryKeyValueStore(clock=clock, supports_scan=False)
        cache = AnalysisCache(CacheService(store))
        await cache.store(CODE, "security", make_result())

        assert await cache.lookup(CODE, "security") is not None
        assert await cache.lookup(SIMILAR_CODE, "security") is None

    async def test_entries_expire(self, analysis_cache, clock):
        await analysis_cache.store(CODE, "security", make_result())
        clock.advance(3601)

        assert await analysis_cache.lookup(CODE, "security") is None

    async def test_metrics_count_semantic_hits_as_hits(self, analysis_cache):
        await analysis_cache.store(CODE, "security", make_result())
        await analysis_cache.lookup(CODE, "security")
        await analysis_cache.lookup(SIMILAR_CODE, "security")
        await analysis_cache.lookup(UNRELATED_CODE, "security")
        await analysis_cache.lookup(UNRELATED_CODE, "quality")

        metrics = analysis_cache.get_metrics()

        assert metrics.hits == 1
        assert metrics.semantic_hits == 1
        assert metrics.misses == 2
        assert metrics.total_requests == 4
        assert metrics.hit_rate == 50.0

    async def test_reset_metrics(self, analysis_cache):
        await analysis_cache.lookup(CODE, "security")
        analysis_cache.reset_metrics()

        assert analysis_cache.get_metrics().total_requests == 0
        assert analysis_cache.get_metrics().hit_rate == 0.0
