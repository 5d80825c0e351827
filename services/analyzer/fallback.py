"""
Fallback Results

Results used when an analyzer cannot produce a parsed answer:
- unparseable answer: unknown scores, no issues, raw text as summary
- provider failure: error field set, no issues
"""
from typing import Any, Dict

from schemas.responses import AnalyzerResult


class FallbackEngine:
    """Builds degraded AnalyzerResult objects"""

    # Analyzer specific keys the regular answer would carry
    EMPTY_DETAILS: Dict[str, Dict[str, Any]] = {
        "security": {},
        "performance": {"optimizations": []},
        "quality": {
            "metrics": {
                "complexity": "unknown",
                "maintainability": "unknown",
                "readability": "unknown",
            }
        },
        "documentation": {
            "coverage": {
                "classes": "unknown",
                "methods": "unknown",
                "properties": "unknown",
            },
            "suggestions": [],
        },
    }

    def _details(self, analyzer: str) -> Dict[str, Any]:
        details = self.EMPTY_DETAILS.get(analyzer, {})
        # Copy nested dicts so results never share state
        return {k: (dict(v) if isinstance(v, dict) else list(v)) for k, v in details.items()}

    def create_unparsed_result(self, analyzer: str, raw_response: str) -> AnalyzerResult:
        """
        Result for an answer without usable JSON

        Args:
            analyzer: Analyzer name
            raw_response: Model answer, kept as summary

        Returns:
            AnalyzerResult: Unknown scores, empty issue list
        """
        return AnalyzerResult(
            analyzer=analyzer,
            issues=[],
            severity="unknown" if analyzer == "security" else None,
            summary=raw_response,
            details=self._details(analyzer),
        )

    def create_error_result(self, analyzer: str, error: Exception) -> AnalyzerResult:
        """Result for a failed provider call"""
        return AnalyzerResult(
            analyzer=analyzer,
            issues=[],
            error=f"Failed to analyze {analyzer}: {error}",
        )
