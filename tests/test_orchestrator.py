"""Tests for the analysis coordinator."""

from unittest.mock import AsyncMock

import pytest

from core.exceptions import AnalysisError, FileError, InvalidCodeError, ProviderError
from schemas.requests import AnalysisRequest, DirectoryScanOptions
from schemas.responses import AnalysisSummary, RiskLevel, Severity
from services.analyzer.orchestrator import calculate_risk
from services.factory import build_services
from tests.conftest import FakeProvider, analyzer_answer, answer_by_analyzer

CODE = """<?php
class UserController {
    public function show($id) {
        return $this->db->query("SELECT * FROM users WHERE id = $id");
    }
}
"""

ANSWERS = {
    "security": analyzer_answer(
        [
            {"line": 4, "type": "sql_injection", "severity": "critical", "message": "raw id in query"},
            {"line": 4, "type": "information_disclosure", "severity": "high", "message": "select *"},
        ],
        severity="critical",
        security_score=3,
    ),
    "quality": analyzer_answer(
        [
            {"line": 2, "type": "typing", "severity": "warning", "message": "no return type"},
            {"line": 3, "type": "naming", "severity": "info", "message": "short name"},
        ],
        quality_score=6,
    ),
}


def make_services(config, store, *providers):
    return build_services(config, store, providers=list(providers))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider("openai", priority=30, response=answer_by_analyzer(ANSWERS))


@pytest.fixture
def services(config, store, provider):
    return make_services(config, store, provider)


@pytest.fixture
def analyzer(services):
    return services.code_analyzer


class TestRiskScore:
    @pytest.mark.parametrize("counts, score, level", [
        ({}, 0, RiskLevel.VERY_LOW),
        ({"info": 5}, 0, RiskLevel.VERY_LOW),
        ({"low": 1}, 1, RiskLevel.LOW),
        ({"low": 5}, 5, RiskLevel.LOW),
        ({"medium": 1, "low": 2}, 6, RiskLevel.MEDIUM),
        ({"critical": 1, "low": 5}, 15, RiskLevel.MEDIUM),
        ({"critical": 1, "high": 1, "low": 1}, 18, RiskLevel.HIGH),
        ({"critical": 3}, 30, RiskLevel.HIGH),
        ({"critical": 3, "low": 1}, 31, RiskLevel.CRITICAL),
    ])
    def test_buckets(self, counts, score, level):
        assert calculate_risk(AnalysisSummary(**counts)) == (score, level)


class TestAnalyzeCode:
    async def test_merges_all_analyzers(self, analyzer, provider):
        result = await analyzer.analyze_code(CODE, filename="UserController.php")

        assert list(result.analyzers) == ["security", "performance", "quality", "documentation"]
        assert len(provider.calls) == 4
        assert result.summary.total_issues == 4
        assert result.summary.critical == 1
        assert result.summary.high == 1
        assert result.summary.medium == 1
        assert result.summary.info == 1
        assert result.summary.total_issues == len(result.issues)
        assert result.summary.security_score == 3.0
        assert result.summary.quality_score == 6.0
        assert result.risk_score == 21
        assert result.risk_level == RiskLevel.HIGH
        assert result.has_critical_issues
        assert result.successful
        assert result.cached is False
        assert result.metrics["analyzers_run"] == 4

    async def test_issues_tagged_in_analyzer_order(self, analyzer):
        result = await analyzer.analyze_code(CODE)

        assert [i.analyzer for i in result.issues] == ["security", "security", "quality", "quality"]
        assert result.issues_by_severity(Severity.CRITICAL)[0].type == "sql_injection"

    async def test_requested_subset_runs_in_canonical_order(self, analyzer, provider):
        result = await analyzer.analyze_code(CODE, enabled_analyzers=["quality", "security"])

        assert list(result.analyzers) == ["security", "quality"]
        assert len(provider.calls) == 2

    async def test_second_call_is_served_from_cache(self, analyzer, provider):
        first = await analyzer.analyze_code(CODE)
        second = await analyzer.analyze_code(CODE)

        assert len(provider.calls) == 4
        assert second.cached is True
        assert second.summary == first.summary
        assert second.risk_score == first.risk_score

    async def test_use_cache_false_always_calls_providers(self, analyzer, provider):
        await analyzer.analyze_code(CODE, use_cache=False)
        await analyzer.analyze_code(CODE, use_cache=False)

        assert len(provider.calls) == 8

    async def test_per_analyzer_cache_reused_across_selections(self, analyzer, provider):
        await analyzer.analyze_code(CODE, enabled_analyzers=["security"])
        await analyzer.analyze_code(CODE, enabled_analyzers=["security", "quality"])

        assert len(provider.calls) == 2

    async def test_options_reach_provider(self, analyzer, provider):
        await analyzer.analyze_code(CODE, enabled_analyzers=["security"], options={"temperature": 0.1})

        assert provider.options[0] == {"temperature": 0.1, "max_tokens": 4000, "timeout": 30}

    async def test_monitor_records_each_analysis(self, services):
        await services.code_analyzer.analyze_code(CODE)
        await services.code_analyzer.analyze_code(CODE)

        assert len(services.monitor.metrics) == 2
        assert services.monitor.metrics[1].cached is True


class TestValidation:
    async def test_empty_code_rejected_before_provider_call(self, analyzer, provider):
        with pytest.raises(InvalidCodeError, match="Code cannot be empty"):
            await analyzer.analyze_code("   \n")

        assert provider.calls == []

    async def test_unknown_analyzer_rejected(self, analyzer, provider):
        with pytest.raises(InvalidCodeError, match="Unknown analyzers: style"):
            await analyzer.analyze_code(CODE, enabled_analyzers=["security", "style"])

        assert provider.calls == []

    async def test_syntax_error_rejected_before_provider_call(self, analyzer, provider):
        analyzer.syntax_checker = AsyncMock()
        analyzer.syntax_checker.check.side_effect = InvalidCodeError.invalid_syntax(
            "PHP Parse error: syntax error, unexpected end of file", "a.php"
        )

        with pytest.raises(InvalidCodeError) as exc_info:
            await analyzer.analyze_code("<?php function (", filename="a.php")

        assert exc_info.value.http_status == 422
        assert provider.calls == []

    async def test_request_object(self, analyzer):
        request = AnalysisRequest(code=CODE, enabled_analyzers=("quality",))

        result = await analyzer.analyze(request)

        assert list(result.analyzers) == ["quality"]


class TestFailures:
    async def test_failed_analyzers_become_inline_errors(self, config, store):
        failing = FakeProvider("openai", error=ProviderError.server_error("openai", 500))
        analyzer = make_services(config, store, failing).code_analyzer

        result = await analyzer.analyze_code(CODE)

        assert not result.successful
        assert [e.analyzer for e in result.errors] == [
            "security", "performance", "quality", "documentation"
        ]
        assert result.summary.total_issues == 0

    async def test_failed_results_are_not_cached(self, config, store):
        failing = FakeProvider("openai", error=ProviderError.server_error("openai", 500))
        analyzer = make_services(config, store, failing).code_analyzer

        await analyzer.analyze_code(CODE, enabled_analyzers=["security"])
        second = await analyzer.analyze_code(CODE, enabled_analyzers=["security"])

        assert len(failing.calls) == 2
        assert second.cached is False

    async def test_partial_failure_keeps_other_results(self, config, store):
        def respond(prompt):
            if "for performance issues" in prompt:
                raise ProviderError.server_error("openai", 500)
            return answer_by_analyzer(ANSWERS)(prompt)

        provider = FakeProvider("openai", response=respond)
        result = await make_services(config, store, provider).code_analyzer.analyze_code(CODE)

        assert [e.analyzer for e in result.errors] == ["performance"]
        assert result.summary.total_issues == 4

    async def test_crashing_analyzer_becomes_error_entry(self, analyzer):
        analyzer.analyzers["quality"].analyze = AsyncMock(side_effect=RuntimeError("boom"))

        result = await analyzer.analyze_code(CODE)

        assert result.analyzers["quality"].error == "Analyzer 'quality' failed: boom"
        assert [e.analyzer for e in result.errors] == ["quality"]
        assert result.summary.critical == 1

    async def test_no_available_provider_aborts_analysis(self, config, store):
        offline = FakeProvider("openai", available=False)
        analyzer = make_services(config, store, offline).code_analyzer

        with pytest.raises(AnalysisError) as exc_info:
            await analyzer.analyze_code(CODE)

        assert exc_info.value.http_status == 503
        assert offline.calls == []


class TestFiles:
    async def test_analyze_file(self, analyzer, tmp_path):
        path = tmp_path / "UserController.php"
        path.write_text(CODE)

        result = await analyzer.analyze_file(path, enabled_analyzers=["security"])

        assert result.filename == str(path)
        assert result.summary.critical == 1

    async def test_missing_file(self, analyzer, tmp_path):
        with pytest.raises(FileError) as exc_info:
            await analyzer.analyze_file(tmp_path / "missing.php")

        assert exc_info.value.http_status == 404

    async def test_unsupported_extension(self, analyzer, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        with pytest.raises(InvalidCodeError, match="Unsupported file type"):
            await analyzer.analyze_file(path)

    async def test_file_too_big(self, analyzer, tmp_path):
        analyzer.config.max_file_size = 10
        path = tmp_path / "big.php"
        path.write_text(CODE)

        with pytest.raises(FileError) as exc_info:
            await analyzer.analyze_file(path)

        assert exc_info.value.http_status == 413


class TestDirectory:
    @pytest.fixture
    def project(self, tmp_path):
        for i in range(5):
            (tmp_path / "src").mkdir(exist_ok=True)
            (tmp_path / "src" / f"Service{i}.php").write_text(f"<?php\nfunction run{i}() {{}}\n")
        (tmp_path / "vendor").mkdir()
        (tmp_path / "vendor" / "Lib.php").write_text("<?php\nfunction lib() {}\n")
        (tmp_path / "README.md").write_text("# docs")
        return tmp_path

    async def test_max_files_limits_batch(self, analyzer, project):
        result = await analyzer.analyze_directory(project, DirectoryScanOptions(max_files=3))

        assert result.files_found == 5
        assert result.files_analyzed == 3
        assert sorted(result.results) == ["src/Service0.php", "src/Service1.php", "src/Service2.php"]

    async def test_excluded_paths_skipped(self, analyzer, project):
        files = analyzer.find_files(project, DirectoryScanOptions())

        assert all("vendor" not in str(f) for f in files)
        assert len(files) == 5

    async def test_glob_exclusion(self, analyzer, project):
        files = analyzer.find_files(project, DirectoryScanOptions(exclude_patterns=["src/Service[0-2].php"]))

        # Only the glob applies here, so vendor/ is scanned too
        assert [f.name for f in files] == ["Service3.php", "Service4.php", "Lib.php"]

    async def test_failures_recorded_without_aborting(self, analyzer, project):
        (project / "src" / "Empty.php").write_text("")

        result = await analyzer.analyze_directory(project, DirectoryScanOptions())

        assert result.files_analyzed == 5
        assert result.files_failed == 1
        assert "src/Empty.php" in result.failures

    async def test_configured_exclusions_apply_by_default(self, config, store, provider, tmp_path):
        config.excluded_paths = ["legacy/"]
        analyzer = make_services(config, store, provider).code_analyzer
        (tmp_path / "legacy").mkdir()
        (tmp_path / "legacy" / "Old.php").write_text("<?php\nfunction old() {}\n")
        (tmp_path / "New.php").write_text("<?php\nfunction fresh() {}\n")

        result = await analyzer.analyze_directory(tmp_path)

        assert list(result.results) == ["New.php"]
        assert result.files_found == 1

    async def test_configured_max_files(self, config, store, provider, project):
        config.max_files = 2
        analyzer = make_services(config, store, provider).code_analyzer

        result = await analyzer.analyze_directory(project)

        assert result.files_found == 5
        assert result.files_analyzed == 2

    async def test_missing_directory(self, analyzer, tmp_path):
        with pytest.raises(FileError):
            await analyzer.analyze_directory(tmp_path / "nope")


class TestSuggestions:
    async def test_suggestions_parsed(self, config, store):
        provider = FakeProvider(
            "openai", response='Sure: {"suggestions": [{"title": "Use prepared statements"}]}'
        )
        analyzer = make_services(config, store, provider).code_analyzer

        data = await analyzer.get_ai_suggestions(CODE, [{"type": "sql_injection"}])

        assert data["suggestions"][0]["title"] == "Use prepared statements"

    async def test_suggestions_degrade_to_empty(self, config, store):
        provider = FakeProvider("openai", error=ProviderError.server_error("openai", 500))
        analyzer = make_services(config, store, provider).code_analyzer

        assert await analyzer.get_ai_suggestions(CODE, []) == {}
