"""
Analysis Coordinator

Runs the selected analyzers over one code string and merges the results.

Flow (analyze):
1. Validate (non-empty code, known analyzers, syntax pre-check)
2. Aggregate cache lookup (HIT → return, no analyzer runs)
3. Pre-analysis hook
4. Analyzers one after another, each behind the response cache
5. Merge issues, tally severities, compute the risk score
6. Cache the result (only when every analyzer succeeded)
7. Post-analysis hook

Failure policy:
- Validation and file errors are raised before any provider call
- An analyzer that fails becomes an inline error entry
- A ProviderError escaping an analyzer (no provider can be called)
  aborts the request as AnalysisError
"""
import fnmatch
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from core.exceptions import (
    AnalysisError,
    AssistantError,
    FileError,
    InvalidCodeError,
    ProviderError,
)
from schemas.requests import AnalysisRequest, DirectoryScanOptions
from schemas.responses import (
    AnalysisErrorEntry,
    AnalysisResult,
    AnalysisSummary,
    AnalyzerResult,
    DirectoryAnalysisResult,
    Issue,
    RiskLevel,
    Severity,
)
from services.ai_manager import AIManager
from services.analysis_cache import AnalysisCache
from services.analyzer.analyzers import BaseAnalyzer
from services.analyzer.config import AnalyzerConfig
from services.analyzer.parser import ParseError, ResponseParser
from services.analyzer.prompts import PromptBuilder
from services.cache_service import CacheService
from services.code_signature import code_hash
from services.metrics_tracker import AnalysisMonitor
from services.syntax_checker import SyntaxChecker

logger = logging.getLogger(__name__)

# Risk weights per severity; info does not count
RISK_WEIGHTS = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 7,
    Severity.MEDIUM: 4,
    Severity.LOW: 1,
}

# Upper bound (inclusive) of each bucket; above the last one is critical
RISK_BUCKETS: List[Tuple[int, RiskLevel]] = [
    (0, RiskLevel.VERY_LOW),
    (5, RiskLevel.LOW),
    (15, RiskLevel.MEDIUM),
    (30, RiskLevel.HIGH),
]

_SKIPPED_DIRS = {".git", ".svn", ".hg", ".idea", "__pycache__"}


def calculate_risk(summary: AnalysisSummary) -> Tuple[int, RiskLevel]:
    """
    Weighted severity sum and its bucket

    critical x10 + high x7 + medium x4 + low x1
    → very_low (0), low (1-5), medium (6-15), high (16-30), critical (>30)
    """
    score = (
        summary.critical * RISK_WEIGHTS[Severity.CRITICAL]
        + summary.high * RISK_WEIGHTS[Severity.HIGH]
        + summary.medium * RISK_WEIGHTS[Severity.MEDIUM]
        + summary.low * RISK_WEIGHTS[Severity.LOW]
    )
    for upper, level in RISK_BUCKETS:
        if score <= upper:
            return score, level
    return score, RiskLevel.CRITICAL


def merge_results(results: Dict[str, AnalyzerResult]) -> Tuple[List[Issue], AnalysisSummary]:
    """
    Concatenate issues and tally severities

    Each issue is tagged with its analyzer; analyzer order is kept.
    quality/security score: maximum over analyzers that reported one.
    """
    issues: List[Issue] = []
    counts = {severity: 0 for severity in Severity}
    quality_scores: List[float] = []
    security_scores: List[float] = []

    for name, result in results.items():
        for issue in result.issues:
            issues.append(issue.model_copy(update={"analyzer": name}))
            counts[issue.severity] += 1
        if result.quality_score is not None:
            quality_scores.append(result.quality_score)
        if result.security_score is not None:
            security_scores.append(result.security_score)

    summary = AnalysisSummary(
        total_issues=len(issues),
        critical=counts[Severity.CRITICAL],
        high=counts[Severity.HIGH],
        medium=counts[Severity.MEDIUM],
        low=counts[Severity.LOW],
        info=counts[Severity.INFO],
        quality_score=max(quality_scores) if quality_scores else None,
        security_score=max(security_scores) if security_scores else None,
    )
    return issues, summary


class CodeAnalyzer:
    """
    Coordinates validation, caching and the analyzers

    Components:
    - analyzers (name → BaseAnalyzer)
    - AnalysisCache: per-analyzer response cache
    - CacheService: aggregate result cache
    - SyntaxChecker: external linter
    - AnalysisMonitor: pre/post hooks
    """

    def __init__(
        self,
        analyzers: Dict[str, BaseAnalyzer],
        config: Optional[AnalyzerConfig] = None,
        ai_manager: Optional[AIManager] = None,
        analysis_cache: Optional[AnalysisCache] = None,
        result_cache: Optional[CacheService] = None,
        syntax_checker: Optional[SyntaxChecker] = None,
        monitor: Optional[AnalysisMonitor] = None
    ):
        """
        Args:
            analyzers: Available analyzers keyed by name
            config: Settings (None → from environment)
            ai_manager: Used for AI suggestions
            analysis_cache: Per-analyzer cache (None → disabled)
            result_cache: Aggregate cache (None → disabled)
            syntax_checker: Linter (None → no syntax pre-check)
            monitor: Observer (None → a private AnalysisMonitor)
        """
        self.analyzers = analyzers
        self.config = config or AnalyzerConfig.from_env()
        self.ai_manager = ai_manager
        self.analysis_cache = analysis_cache
        self.result_cache = result_cache
        self.syntax_checker = syntax_checker
        self.monitor = monitor or AnalysisMonitor()
        self.prompt_builder = PromptBuilder()
        self.parser = ResponseParser()

    def get_analyzer_names(self) -> List[str]:
        return list(self.analyzers)

    # ═══════════════════════════════════════════════════════════════════════
    # VALIDATION
    # ═══════════════════════════════════════════════════════════════════════

    def _resolve_analyzers(self, requested: Sequence[str]) -> List[str]:
        """
        Requested names (or the configured default) in canonical order

        Raises:
            InvalidCodeError: Unknown analyzer name
        """
        names = list(requested) or list(self.config.enabled_analyzers)
        unknown = [n for n in names if n not in self.analyzers]
        if unknown:
            raise InvalidCodeError.unknown_analyzers(unknown, self.get_analyzer_names())
        return [n for n in self.analyzers if n in names]

    def validate_file(self, path: Union[str, Path]) -> Path:
        """
        Check existence, readability, size and extension

        Raises:
            FileError: Missing, unreadable or too large
            InvalidCodeError: Unsupported extension
        """
        file_path = Path(path)

        if not file_path.exists():
            raise FileError.file_not_found(str(path))
        if not file_path.is_file() or not os.access(file_path, os.R_OK):
            raise FileError.file_not_readable(str(path))

        size = file_path.stat().st_size
        if size > self.config.max_file_size:
            raise FileError.file_too_big(str(path), size, self.config.max_file_size)

        extension = file_path.suffix.lstrip(".").lower()
        if extension not in self.config.supported_extensions:
            raise InvalidCodeError.unsupported_file_type(extension, self.config.supported_extensions)

        return file_path

    # ═══════════════════════════════════════════════════════════════════════
    # ANALYSIS
    # ═══════════════════════════════════════════════════════════════════════

    async def analyze_code(
        self,
        code: str,
        filename: str = "",
        enabled_analyzers: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
        use_cache: bool = True
    ) -> AnalysisResult:
        """Analyze a code string (see analyze)"""
        if not code or not code.strip():
            raise InvalidCodeError.empty_code()

        request = AnalysisRequest(
            code=code,
            filename=filename,
            enabled_analyzers=tuple(enabled_analyzers or ()),
            options=options or {},
            use_cache=use_cache,
        )
        return await self.analyze(request)

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Analyze one request

        Args:
            request: Validated analysis request

        Returns:
            AnalysisResult: Merged result (cached=True on aggregate cache hit)

        Raises:
            InvalidCodeError: Unknown analyzer or invalid syntax
            AnalysisError: No provider could be called
        """
        names = self._resolve_analyzers(request.enabled_analyzers)

        if self.syntax_checker is not None:
            await self.syntax_checker.check(request.code, request.filename)

        use_cache = request.use_cache and self.result_cache is not None and self.result_cache.enabled
        cache_key = self._cache_key(request, names)

        if use_cache:
            cached = await self.result_cache.get(cache_key, AnalysisResult)
            if cached is not None:
                logger.info("Analysis cache hit for %s", request.filename or "<inline>")
                cached.cached = True
                self.monitor.on_post_analysis(cached, len(request.code))
                return cached

        self.monitor.on_pre_analysis(request.filename, len(request.code))
        start = time.perf_counter()

        try:
            results = await self._run_analyzers(request, names)
        except ProviderError as e:
            logger.error(
                "Provider infrastructure failure while analyzing %s (code_length=%d): %s",
                request.filename or "<inline>", len(request.code), e,
            )
            raise AnalysisError.wrap(e, filename=request.filename) from e

        issues, summary = merge_results(results)
        risk_score, risk_level = calculate_risk(summary)

        result = AnalysisResult(
            filename=request.filename,
            analyzers=results,
            issues=issues,
            summary=summary,
            risk_score=risk_score,
            risk_level=risk_level,
            metrics={
                "lines_analyzed": request.code.count("\n") + 1,
                "analyzers_run": len(results),
            },
            execution_time=round(time.perf_counter() - start, 4),
            errors=[
                AnalysisErrorEntry(analyzer=name, message=r.error)
                for name, r in results.items() if r.error is not None
            ],
        )

        if use_cache and result.successful:
            await self.result_cache.set(cache_key, result, ttl=self.config.cache_ttl)

        self.monitor.on_post_analysis(result, len(request.code))
        return result

    def _cache_key(self, request: AnalysisRequest, names: List[str]) -> str:
        return CacheService.generate_hash_key(
            code_hash(request.code),
            request.filename,
            sorted(names),
            dict(request.options),
        )

    async def _run_analyzers(
        self,
        request: AnalysisRequest,
        names: List[str]
    ) -> Dict[str, AnalyzerResult]:
        """Run analyzers sequentially; a ProviderError aborts the rest"""
        options = dict(request.options)
        options.setdefault("max_tokens", request.max_tokens)
        options.setdefault("timeout", request.timeout_seconds)

        results: Dict[str, AnalyzerResult] = {}

        for name in names:
            started = time.perf_counter()
            try:
                results[name] = await self._run_analyzer(
                    self.analyzers[name], request, options
                )
            except ProviderError:
                raise
            except Exception as e:
                logger.exception(
                    "Analyzer %s crashed on %s", name, request.filename or "<inline>"
                )
                failure = AnalysisError.analyzer_failed(name, str(e))
                results[name] = AnalyzerResult(analyzer=name, error=failure.message)

            logger.debug("Analyzer %s took %.3fs", name, time.perf_counter() - started)

        return results

    async def _run_analyzer(
        self,
        analyzer: BaseAnalyzer,
        request: AnalysisRequest,
        options: Dict[str, Any]
    ) -> AnalyzerResult:
        use_cache = request.use_cache and self.analysis_cache is not None

        if use_cache:
            cached = await self.analysis_cache.lookup(request.code, analyzer.name)
            if cached is not None:
                return cached

        result = await analyzer.analyze(request.code, request.filename, options)

        if use_cache and result.error is None:
            await self.analysis_cache.store(request.code, analyzer.name, result)

        return result

    async def analyze_file(
        self,
        path: Union[str, Path],
        enabled_analyzers: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
        use_cache: bool = True
    ) -> AnalysisResult:
        """
        Validate and analyze a file

        Raises:
            FileError / InvalidCodeError: before any provider call
        """
        file_path = self.validate_file(path)

        try:
            code = file_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise FileError.file_not_readable(str(path)) from e

        return await self.analyze_code(
            code,
            filename=str(path),
            enabled_analyzers=enabled_analyzers,
            options=options,
            use_cache=use_cache,
        )

    # ═══════════════════════════════════════════════════════════════════════
    # DIRECTORY SCAN
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _is_excluded(relative_path: str, patterns: Sequence[str]) -> bool:
        for pattern in patterns:
            if any(ch in pattern for ch in "*?["):
                if fnmatch.fnmatch(relative_path, pattern):
                    return True
            elif pattern in relative_path:
                return True
        return False

    def find_files(self, root: Path, options: DirectoryScanOptions) -> List[Path]:
        """Supported, non-excluded files under root, sorted by path"""
        iterator = root.rglob("*") if options.recursive else root.glob("*")
        extensions = {f".{ext.lower()}" for ext in self.config.supported_extensions}
        patterns = (
            options.exclude_patterns
            if options.exclude_patterns is not None
            else self.config.excluded_paths
        )

        files = []
        for file_path in iterator:
            relative = file_path.relative_to(root)
            if any(part in _SKIPPED_DIRS for part in relative.parts[:-1]):
                continue
            if not file_path.is_file() or file_path.suffix.lower() not in extensions:
                continue
            if self._is_excluded(relative.as_posix(), patterns):
                continue
            files.append(file_path)

        return sorted(files)

    async def analyze_directory(
        self,
        path: Union[str, Path],
        options: Optional[DirectoryScanOptions] = None
    ) -> DirectoryAnalysisResult:
        """
        Analyze every matching file (up to max_files)

        Per-file failures are recorded in `failures` and never abort
        the batch.

        Raises:
            FileError: Directory does not exist
        """
        options = options or DirectoryScanOptions()
        max_files = options.max_files or self.config.max_files
        root = Path(path)
        if not root.is_dir():
            raise FileError.directory_not_found(str(path))

        files = self.find_files(root, options)
        batch = DirectoryAnalysisResult(directory=str(root), files_found=len(files))

        if len(files) > max_files:
            logger.warning(
                "%d files found in %s, analyzing the first %d",
                len(files), root, max_files,
            )
            files = files[:max_files]

        for file_path in files:
            relative = file_path.relative_to(root).as_posix()
            try:
                result = await self.analyze_file(
                    file_path,
                    enabled_analyzers=options.analyzers,
                    use_cache=options.use_cache,
                )
            except AssistantError as e:
                logger.warning("Skipping %s: %s", relative, e)
                batch.failures[relative] = str(e)
                continue
            except Exception as e:
                logger.exception("Unexpected failure while analyzing %s", relative)
                batch.failures[relative] = str(e)
                continue

            batch.results[relative] = result
            batch.total_issues += result.summary.total_issues
            if result.summary.total_issues:
                batch.files_with_issues += 1

        batch.files_analyzed = len(batch.results)
        batch.files_failed = len(batch.failures)
        return batch

    # ═══════════════════════════════════════════════════════════════════════
    # SUGGESTIONS
    # ═══════════════════════════════════════════════════════════════════════

    async def get_ai_suggestions(
        self,
        code: str,
        issues: Sequence[Union[Issue, Dict[str, Any]]]
    ) -> Dict[str, Any]:
        """
        Optional improvement suggestions

        Any failure degrades to an empty dict.
        """
        if self.ai_manager is None:
            return {}

        issue_dicts = [
            i.model_dump(mode="json") if isinstance(i, Issue) else dict(i) for i in issues
        ]
        prompt = self.prompt_builder.build_suggestions_prompt(code, issue_dicts)

        try:
            response = await self.ai_manager.request(prompt)
            return self.parser.extract_json(response)
        except (AssistantError, ParseError) as e:
            logger.warning("AI suggestions unavailable: %s", e)
            return {}
