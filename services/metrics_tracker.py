"""
Analysis Monitor
Observer called by the coordinator and the fallback manager.
Collects per-analysis metrics in memory and logs unusual runs.
"""
import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import List

from core.exceptions import ProviderError
from schemas.metrics import AggregatedAnalysisMetrics, AnalysisMetric, ProviderFailureEvent
from schemas.responses import AnalysisResult

logger = logging.getLogger(__name__)


class AnalysisMonitor:
    """Metric collection and threshold logging"""

    def __init__(
        self,
        slow_analysis_seconds: float = 10.0,
        large_code_bytes: int = 100 * 1024,
        max_records: int = 10000
    ):
        """
        Args:
            slow_analysis_seconds: Runs above this are logged as slow
            large_code_bytes: Inputs above this are logged before analysis
            max_records: Oldest records are dropped beyond this count
        """
        self.slow_analysis_seconds = slow_analysis_seconds
        self.large_code_bytes = large_code_bytes
        self.max_records = max_records

        # In memory only, lost on restart
        self.metrics: List[AnalysisMetric] = []
        self.provider_failures: List[ProviderFailureEvent] = []

    def _trim(self, records: list) -> None:
        overflow = len(records) - self.max_records
        if overflow > 0:
            del records[:overflow]

    # ════════════════════════════════════════════════════════════════
    # HOOKS
    # ════════════════════════════════════════════════════════════════

    def on_pre_analysis(self, filename: str, code_length: int) -> None:
        """Called after validation, before any analyzer runs"""
        if code_length > self.large_code_bytes:
            logger.warning(
                "Large code submitted for analysis: %s (%d bytes, threshold %d)",
                filename or "<inline>", code_length, self.large_code_bytes,
            )
        logger.debug("Analysis started: %s (%d bytes)", filename or "<inline>", code_length)

    def on_post_analysis(self, result: AnalysisResult, code_length: int) -> AnalysisMetric:
        """
        Record a finished analysis

        Returns:
            AnalysisMetric: The stored record
        """
        metric = AnalysisMetric(
            analysis_id=str(uuid.uuid4()),
            filename=result.filename,
            code_length=code_length,
            execution_time=result.execution_time,
            total_issues=result.summary.total_issues,
            risk_level=result.risk_level,
            cached=result.cached,
            analyzer_errors=len(result.errors),
            timestamp=datetime.utcnow(),
        )
        self.metrics.append(metric)
        self._trim(self.metrics)

        if result.execution_time > self.slow_analysis_seconds:
            logger.warning(
                "Slow analysis: %s took %.2fs (threshold %.1fs)",
                result.filename or "<inline>", result.execution_time, self.slow_analysis_seconds,
            )

        logger.info(
            "Analysis finished: %s issues=%d risk=%s cached=%s time=%.2fs",
            result.filename or "<inline>",
            result.summary.total_issues,
            result.risk_level.value,
            result.cached,
            result.execution_time,
        )
        return metric

    def on_provider_failure(self, provider: str, error: Exception, prompt_length: int) -> None:
        """Failure listener registered on the AIManager"""
        self.provider_failures.append(ProviderFailureEvent(
            provider=provider,
            error=str(error),
            error_type=type(error).__name__,
            prompt_length=prompt_length,
        ))
        self._trim(self.provider_failures)

        # Credentials and billing need a human, other failures are transient
        if isinstance(error, ProviderError) and error.status_code in (401, 402, 403):
            logger.error("Provider %s needs attention: %s", provider, error)
        else:
            logger.warning("Provider %s failed: %s", provider, error)

    # ════════════════════════════════════════════════════════════════
    # AGGREGATION
    # ════════════════════════════════════════════════════════════════

    def get_aggregated_metrics(self, time_window_minutes: int = 60) -> AggregatedAnalysisMetrics:
        """
        Aggregate the records of the last time_window_minutes

        Args:
            time_window_minutes: Window size

        Returns:
            AggregatedAnalysisMetrics: Counts, timings, risk distribution
        """
        now = datetime.utcnow()
        window_start = now - timedelta(minutes=time_window_minutes)

        recent = [m for m in self.metrics if m.timestamp >= window_start]
        failures = Counter(
            f.provider for f in self.provider_failures if f.timestamp >= window_start
        )

        if not recent:
            return AggregatedAnalysisMetrics(
                total_analyses=0,
                provider_failures=dict(failures),
                time_window_start=window_start,
                time_window_end=now,
            )

        times = sorted(m.execution_time for m in recent)

        # 95th percentile
        p95_index = int(len(times) * 0.95)
        p95_time = times[p95_index] if p95_index < len(times) else times[-1]

        return AggregatedAnalysisMetrics(
            total_analyses=len(recent),
            cached_analyses=sum(1 for m in recent if m.cached),
            average_execution_time=round(sum(times) / len(times), 3),
            p95_execution_time=round(p95_time, 3),
            max_execution_time=round(times[-1], 3),
            total_issues=sum(m.total_issues for m in recent),
            risk_distribution=dict(Counter(m.risk_level for m in recent)),
            provider_failures=dict(failures),
            time_window_start=window_start,
            time_window_end=now,
        )
