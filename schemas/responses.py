"""
Response Schemas
Analysis results returned by the coordinator, the API and the CLI
"""
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator


# ============================================================================
# ENUMS
# ============================================================================

class Severity(str, Enum):
    """Canonical issue severities"""
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def normalize(cls, value: Any) -> "Severity":
        """
        Map analyzer vocabularies onto the canonical scale

        Quality and documentation prompts answer with info|warning|error,
        security with low|medium|high|critical and performance reports
        an impact level. Unknown values degrade to info.
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        aliases = {
            "error": cls.CRITICAL,
            "warning": cls.MEDIUM,
            "warn": cls.MEDIUM,
            "notice": cls.INFO,
        }
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            return cls.INFO


class RiskLevel(str, Enum):
    """Aggregate risk buckets"""
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _lenient_score(value: Any) -> Optional[float]:
    """'unknown', '', None or non-numeric → None; '7/10' → 7.0"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(r"\s*(\d+(?:\.\d+)?)", str(value))
    return float(match.group(1)) if match else None


# ============================================================================
# ISSUES AND PER-ANALYZER RESULTS
# ============================================================================

class Issue(BaseModel):
    """Single finding reported by an analyzer"""

    line: Optional[int] = Field(
        default=None,
        description="Line number (None when the model did not give one)"
    )

    type: str = Field(
        default="general",
        description="Issue category (sql_injection, n_plus_one, naming, ...)"
    )

    severity: Severity = Field(
        default=Severity.INFO,
        description="Canonical severity"
    )

    message: str = Field(
        default="",
        description="Description of the problem"
    )

    suggestion: str = Field(
        default="",
        description="How to fix it"
    )

    analyzer: Optional[str] = Field(
        default=None,
        description="Analyzer that reported the issue (set on merge)"
    )

    @field_validator("line", mode="before")
    @classmethod
    def parse_line(cls, v: Any) -> Optional[int]:
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v
        match = re.search(r"\d+", str(v))
        return int(match.group()) if match else None

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v: Any) -> Severity:
        return Severity.normalize(v)

    @field_validator("type", "message", "suggestion", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class AnalyzerResult(BaseModel):
    """Parsed output of one analyzer for one request"""

    analyzer: str = Field(description="Analyzer name")

    issues: List[Issue] = Field(default_factory=list)

    severity: Optional[str] = Field(
        default=None,
        description="Overall severity reported by the analyzer (security)"
    )

    quality_score: Optional[float] = Field(default=None, description="1-10, None = unknown")
    security_score: Optional[float] = Field(default=None, description="1-10, None = unknown")
    performance_score: Optional[float] = Field(default=None, description="1-10, None = unknown")
    documentation_score: Optional[float] = Field(default=None, description="1-10, None = unknown")

    summary: str = Field(default="", description="Free-form summary (raw text on parse failure)")

    error: Optional[str] = Field(
        default=None,
        description="Set when the provider call failed"
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Analyzer specific extras (metrics, optimizations, coverage, suggestions)"
    )

    @field_validator(
        "quality_score", "security_score", "performance_score", "documentation_score",
        mode="before"
    )
    @classmethod
    def parse_score(cls, v: Any) -> Optional[float]:
        return _lenient_score(v)

    @field_validator("summary", mode="before")
    @classmethod
    def coerce_summary(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def failed(self) -> bool:
        return self.error is not None


# ============================================================================
# AGGREGATE RESULT
# ============================================================================

class AnalysisSummary(BaseModel):
    """Severity tallies and headline scores"""

    total_issues: int = Field(default=0, ge=0)
    critical: int = Field(default=0, ge=0)
    high: int = Field(default=0, ge=0)
    medium: int = Field(default=0, ge=0)
    low: int = Field(default=0, ge=0)
    info: int = Field(default=0, ge=0)
    quality_score: Optional[float] = None
    security_score: Optional[float] = None


class AnalysisErrorEntry(BaseModel):
    """Inline failure of one analyzer"""
    analyzer: str
    message: str


class AnalysisResult(BaseModel):
    """Merged result of all analyzers for one code string"""

    filename: str = Field(default="")

    analyzers: Dict[str, AnalyzerResult] = Field(
        default_factory=dict,
        description="Per-analyzer results keyed by analyzer name"
    )

    issues: List[Issue] = Field(
        default_factory=list,
        description="Merged issues, each tagged with its analyzer"
    )

    summary: AnalysisSummary = Field(default_factory=AnalysisSummary)

    risk_score: int = Field(default=0, ge=0)
    risk_level: RiskLevel = Field(default=RiskLevel.VERY_LOW)

    metrics: Dict[str, Any] = Field(default_factory=dict)

    execution_time: float = Field(default=0.0, ge=0, description="Seconds")

    cached: bool = Field(default=False)

    errors: List[AnalysisErrorEntry] = Field(default_factory=list)

    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @computed_field
    @property
    def successful(self) -> bool:
        return not self.errors

    @computed_field
    @property
    def has_critical_issues(self) -> bool:
        return self.summary.critical > 0

    def issues_by_severity(self, severity: Severity) -> List[Issue]:
        return [i for i in self.issues if i.severity == Severity.normalize(severity)]


class DirectoryAnalysisResult(BaseModel):
    """Batch result of a directory scan"""

    directory: str
    files_found: int = 0
    files_analyzed: int = 0
    files_with_issues: int = 0
    files_failed: int = 0
    total_issues: int = 0
    results: Dict[str, AnalysisResult] = Field(
        default_factory=dict,
        description="Relative path → result"
    )
    failures: Dict[str, str] = Field(
        default_factory=dict,
        description="Relative path → error message"
    )
    analysis_timestamp: datetime = Field(default_factory=datetime.utcnow)

    @computed_field
    @property
    def has_critical_issues(self) -> bool:
        return any(r.has_critical_issues for r in self.results.values())


class SuggestionsResponse(BaseModel):
    """AI improvement suggestions (empty on failure)"""
    suggestions: List[Dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = Field(description="ok | degraded")
    timestamp: str = Field(description="Check time (ISO 8601)")
    uptime_seconds: float = Field(description="Process uptime (seconds)")
    analyzers: List[str] = Field(default_factory=list)
    providers: Dict[str, bool] = Field(
        default_factory=dict,
        description="Provider name → availability"
    )
    services: Dict[str, Any] = Field(default_factory=dict)
