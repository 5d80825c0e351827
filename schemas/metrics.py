"""
Monitoring Schemas
Per-run analysis metrics, window aggregates and cache counters
"""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from schemas.responses import RiskLevel


# ============================================================================
# ANALYSIS METRICS
# ============================================================================

class AnalysisMetric(BaseModel):
    """Metrics of one completed analysis"""

    analysis_id: str = Field(description="Unique id (UUID)")

    filename: str = Field(default="")

    code_length: int = Field(ge=0, description="Characters analyzed")

    execution_time: float = Field(ge=0, description="Seconds")

    total_issues: int = Field(ge=0)

    risk_level: RiskLevel

    cached: bool = False

    analyzer_errors: int = Field(default=0, ge=0)

    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ProviderFailureEvent(BaseModel):
    """A provider raised during a fallback chain"""

    provider: str
    error: str
    error_type: str
    prompt_length: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class AggregatedAnalysisMetrics(BaseModel):
    """Metrics aggregated over a time window"""

    total_analyses: int = Field(ge=0)

    cached_analyses: int = Field(default=0, ge=0)

    average_execution_time: float = Field(default=0.0, ge=0)

    p95_execution_time: Optional[float] = Field(
        None,
        ge=0,
        description="95th percentile execution time (seconds)"
    )

    max_execution_time: float = Field(default=0.0, ge=0)

    total_issues: int = Field(default=0, ge=0)

    risk_distribution: Dict[RiskLevel, int] = Field(default_factory=dict)

    provider_failures: Dict[str, int] = Field(
        default_factory=dict,
        description="Provider name → failures in the window"
    )

    time_window_start: datetime
    time_window_end: datetime


# ============================================================================
# CACHE METRICS
# ============================================================================

class CacheMetrics(BaseModel):
    """Response cache counters"""

    enabled: bool = True
    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    semantic_hits: int = Field(default=0, ge=0)
    total_requests: int = Field(default=0, ge=0)
    hit_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="(hits + semantic_hits) / total_requests in percent"
    )
