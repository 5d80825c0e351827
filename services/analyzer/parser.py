"""
Response Parser

Turns free-text model answers into AnalyzerResult objects.
The JSON object is taken from the first "{" to the last "}" of the
answer, so prose or markdown fences around it are ignored.
"""
import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from schemas.responses import AnalyzerResult

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.S)

# Keys mapped onto AnalyzerResult fields; anything else goes to details
_KNOWN_KEYS = {
    "issues",
    "severity",
    "summary",
    "quality_score",
    "security_score",
    "performance_score",
    "documentation_score",
}


class ParseError(Exception):
    """Answer did not contain a usable JSON object"""
    pass


class ResponseParser:
    """
    Parses and validates analyzer answers

    - JSON extraction
    - Issue normalization (performance "impact" → severity)
    - Pydantic validation
    """

    def extract_json(self, response_text: str) -> Dict[str, Any]:
        """
        Decode the first {...} span of the answer

        Raises:
            ParseError: No object found or invalid JSON
        """
        match = _JSON_OBJECT_RE.search(response_text or "")
        if match is None:
            raise ParseError("No JSON object found in response")

        try:
            data = json.loads(match.group())
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ParseError("JSON root is not an object")
        return data

    def parse(self, analyzer: str, response_text: str) -> AnalyzerResult:
        """
        Answer → AnalyzerResult

        Args:
            analyzer: Analyzer name
            response_text: Raw model answer

        Returns:
            AnalyzerResult: Validated result

        Raises:
            ParseError: Extraction or validation failed
        """
        data = self.extract_json(response_text)

        issues = data.get("issues") or []
        if not isinstance(issues, list):
            raise ParseError("'issues' is not a list")

        normalized = []
        for issue in issues:
            if not isinstance(issue, dict):
                continue
            issue = dict(issue)
            if "severity" not in issue and "impact" in issue:
                issue["severity"] = issue.pop("impact")
            normalized.append(issue)

        try:
            return AnalyzerResult(
                analyzer=analyzer,
                issues=normalized,
                severity=data.get("severity") if isinstance(data.get("severity"), str) else None,
                quality_score=data.get("quality_score"),
                security_score=data.get("security_score"),
                performance_score=data.get("performance_score"),
                documentation_score=data.get("documentation_score"),
                summary=data.get("summary", ""),
                details={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
            )
        except ValidationError as e:
            raise ParseError(f"Invalid result format: {e}") from e

    def try_parse(
        self,
        analyzer: str,
        response_text: str
    ) -> Tuple[Optional[AnalyzerResult], Optional[str]]:
        """
        Parse without raising

        Returns:
            tuple: (result, None) on success, (None, error_msg) on failure
        """
        try:
            return self.parse(analyzer, response_text), None
        except ParseError as e:
            logger.warning(
                "Could not parse %s response: %s (response: %.200s)",
                analyzer, e, response_text,
            )
            return None, str(e)
