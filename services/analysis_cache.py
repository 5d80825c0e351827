"""
Analyzer Response Cache

Per-analyzer cache of AnalyzerResult objects with two lookup paths:

1. Exact: key "{analyzer}:{code_hash}" where code_hash ignores comments
   and whitespace
2. Similarity (exact miss only): compare the code signature with the
   signatures of other entries of the same analyzer; the best match at or
   above the threshold is a semantic hit and is re-stored under the exact
   key so the next lookup is a direct hit

The similarity scan is bounded by max_scan_keys and needs a store that can
enumerate keys by prefix; without it the similarity path always misses.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from schemas.metrics import CacheMetrics
from schemas.responses import AnalyzerResult
from services.cache_service import CacheService
from services.code_signature import (
    CodeSignature,
    calculate_similarity,
    code_hash,
    extract_signature,
)

logger = logging.getLogger(__name__)


class CacheEntry(BaseModel):
    """Stored analyzer result with the data needed for similarity lookup"""

    result: AnalyzerResult
    analyzer: str
    code_hash: str
    code_signature: CodeSignature
    cached_at: datetime = Field(default_factory=datetime.utcnow)


class AnalysisCache:
    """
    Exact + similarity cache for analyzer results

    Counters are per instance: hits, misses, semantic_hits.
    """

    def __init__(
        self,
        cache: CacheService,
        ttl: int = 3600,
        similarity_threshold: float = 0.85,
        max_scan_keys: int = 200
    ):
        """
        Args:
            cache: Underlying cache (prefix "cache_analysis")
            ttl: Entry lifetime in seconds
            similarity_threshold: Minimum score for a semantic hit
            max_scan_keys: Upper bound on entries compared per lookup
        """
        self.cache = cache
        self.ttl = ttl
        self.similarity_threshold = similarity_threshold
        self.max_scan_keys = max_scan_keys

        self.hits = 0
        self.misses = 0
        self.semantic_hits = 0

    @property
    def enabled(self) -> bool:
        return self.cache.enabled

    @staticmethod
    def _entry_key(analyzer: str, fingerprint: str) -> str:
        return f"{analyzer}:{fingerprint}"

    async def lookup(self, code: str, analyzer: str) -> Optional[AnalyzerResult]:
        """
        Find a cached result for code

        Args:
            code: Source code
            analyzer: Analyzer name

        Returns:
            AnalyzerResult or None (miss)
        """
        if not self.enabled:
            return None

        fingerprint = code_hash(code)
        entry = await self.cache.get(self._entry_key(analyzer, fingerprint), CacheEntry)

        if entry is not None:
            self.hits += 1
            logger.debug("Cache hit for %s (%s)", analyzer, fingerprint[:12])
            return entry.result

        match = await self._find_similar(code, analyzer, fingerprint)
        if match is not None:
            similar_entry, score = match
            self.semantic_hits += 1
            logger.info(
                "Semantic cache hit for %s (similarity %.2f, matched %s)",
                analyzer, score, similar_entry.code_hash[:12],
            )
            await self._write(code, analyzer, fingerprint, similar_entry.result)
            return similar_entry.result

        self.misses += 1
        return None

    async def _find_similar(
        self,
        code: str,
        analyzer: str,
        fingerprint: str
    ) -> Optional[Tuple[CacheEntry, float]]:
        """Best entry of the same analyzer with similarity ≥ threshold"""
        keys = await self.cache.scan_keys(f"{analyzer}:", limit=self.max_scan_keys)
        if not keys:
            return None

        signature = extract_signature(code)
        best: Optional[Tuple[CacheEntry, float]] = None

        for key in keys:
            if key == self._entry_key(analyzer, fingerprint):
                continue
            candidate = await self.cache.get(key, CacheEntry)
            # Expired between scan and get
            if candidate is None:
                continue

            score = calculate_similarity(signature, candidate.code_signature)
            if score >= self.similarity_threshold and (best is None or score > best[1]):
                best = (candidate, score)

        return best

    async def _write(
        self,
        code: str,
        analyzer: str,
        fingerprint: str,
        result: AnalyzerResult
    ) -> bool:
        entry = CacheEntry(
            result=result,
            analyzer=analyzer,
            code_hash=fingerprint,
            code_signature=extract_signature(code),
        )
        return await self.cache.set(self._entry_key(analyzer, fingerprint), entry, ttl=self.ttl)

    async def store(self, code: str, analyzer: str, result: AnalyzerResult) -> bool:
        """
        Cache a result (re-storing refreshes the TTL)

        Returns:
            bool: True when written
        """
        if not self.enabled:
            return False
        return await self._write(code, analyzer, code_hash(code), result)

    async def clear(self) -> int:
        """Drop every cached analyzer result"""
        return await self.cache.clear()

    def get_metrics(self) -> CacheMetrics:
        """
        Counters and hit rate

        Semantic hits count as hits for the hit rate.
        """
        total = self.hits + self.semantic_hits + self.misses
        hit_rate = (self.hits + self.semantic_hits) / total * 100 if total else 0.0

        return CacheMetrics(
            enabled=self.enabled,
            hits=self.hits,
            misses=self.misses,
            semantic_hits=self.semantic_hits,
            total_requests=total,
            hit_rate=round(hit_rate, 2),
        )

    def reset_metrics(self) -> None:
        self.hits = 0
        self.misses = 0
        self.semantic_hits = 0
