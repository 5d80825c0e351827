"""
Command line entry point

    ai-dev-assistant analyze PATH [-a security,quality] [-f text|json]
                                  [-x vendor/ ...] [-m 100] [--no-cache]
    ai-dev-assistant health
    ai-dev-assistant config-test [--generate-env]

analyze exits with 1 when any critical issue was found or the input was
rejected, so it can gate CI pipelines.
"""
import argparse
import asyncio
import platform
import sys
from pathlib import Path
from typing import List, Optional

from core.exceptions import AssistantError, ConfigurationError
from core.logging_config import setup_logging
from database.kv_store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from database.redis_connection import RedisManager
from schemas.requests import DirectoryScanOptions
from schemas.responses import AnalysisResult, DirectoryAnalysisResult
from services.analyzer.config import ALL_ANALYZERS, PROVIDER_INSTRUCTIONS, AnalyzerConfig
from services.factory import build_providers, build_services
from services.syntax_checker import SyntaxChecker


EXIT_OK = 0
EXIT_FAILURE = 1


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point, returns the exit code"""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = AnalyzerConfig.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    setup_logging("DEBUG" if args.verbose else config.log_level)

    if args.command == "analyze":
        return asyncio.run(_run_analyze(args, config))
    if args.command == "health":
        return asyncio.run(_run_health(config))
    if args.command == "config-test":
        return _run_config_test(args, config)

    parser.print_help()
    return EXIT_FAILURE


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ai-dev-assistant",
        description="LLM-backed PHP code analysis.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")

    analyze = sub.add_parser("analyze", help="Analyze a PHP file or directory")
    analyze.add_argument("path", help="File or directory to analyze")
    analyze.add_argument(
        "--analyzers",
        "-a",
        help=f"Comma separated analyzers ({','.join(ALL_ANALYZERS)})",
    )
    analyze.add_argument(
        "--format",
        "-f",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    analyze.add_argument(
        "--exclude",
        "-x",
        action="append",
        default=None,
        help="Exclude pattern, repeatable (default: configured excluded paths)",
    )
    analyze.add_argument(
        "--max-files",
        "-m",
        type=int,
        default=None,
        help="Maximum files to analyze in a directory (default: 100)",
    )
    analyze.add_argument("--no-cache", action="store_true", help="Bypass the cache")

    sub.add_parser("health", help="Check configuration, providers and requirements")

    config_test = sub.add_parser("config-test", help="Validate the configuration")
    config_test.add_argument(
        "--generate-env",
        action="store_true",
        help="Print a .env template",
    )

    return parser


def parse_analyzers(value: Optional[str]) -> List[str]:
    """
    "security, quality" → ["security", "quality"]

    Raises:
        ValueError: Unknown analyzer name
    """
    if not value:
        return []
    names = [n.strip() for n in value.split(",") if n.strip()]
    unknown = [n for n in names if n not in ALL_ANALYZERS]
    if unknown:
        raise ValueError(
            f"Unknown analyzers: {', '.join(unknown)}. "
            f"Available: {', '.join(ALL_ANALYZERS)}"
        )
    return names


async def _open_store(config: AnalyzerConfig) -> KeyValueStore:
    if await RedisManager.initialize(config.redis_url):
        return RedisKeyValueStore(RedisManager.get_client())
    return InMemoryKeyValueStore()


# ============================================================================
# analyze
# ============================================================================

async def _run_analyze(args: argparse.Namespace, config: AnalyzerConfig) -> int:
    try:
        analyzers = parse_analyzers(args.analyzers)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    target = Path(args.path)
    store = await _open_store(config)
    try:
        services = build_services(config, store, strict=True)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        await RedisManager.close()
        return EXIT_FAILURE

    try:
        if target.is_dir():
            options = DirectoryScanOptions(
                max_files=args.max_files,
                exclude_patterns=args.exclude,
                analyzers=analyzers or None,
                use_cache=not args.no_cache,
            )
            batch = await services.code_analyzer.analyze_directory(target, options)
            _print_directory(batch, args.format)
            has_critical = batch.has_critical_issues
        else:
            result = await services.code_analyzer.analyze_file(
                target,
                enabled_analyzers=analyzers or None,
                use_cache=not args.no_cache,
            )
            _print_result(result, args.format)
            has_critical = result.has_critical_issues
    except AssistantError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        await services.aclose()
        await RedisManager.close()

    return EXIT_FAILURE if has_critical else EXIT_OK


def _print_result(result: AnalysisResult, output_format: str) -> None:
    if output_format == "json":
        print(result.model_dump_json(indent=2))
        return
    print(_format_result(result))


def _format_result(result: AnalysisResult) -> str:
    summary = result.summary
    lines = [
        f"File: {result.filename or '<inline>'}",
        f"Risk: {result.risk_level.value} (score {result.risk_score})"
        + (" [cached]" if result.cached else ""),
        f"Issues: {summary.total_issues} "
        f"(critical {summary.critical}, high {summary.high}, medium {summary.medium}, "
        f"low {summary.low}, info {summary.info})",
    ]
    for issue in result.issues:
        location = f"line {issue.line}" if issue.line is not None else "line ?"
        lines.append(
            f"  [{issue.severity.value.upper():8}] {issue.analyzer}/{issue.type} "
            f"({location}): {issue.message}"
        )
        if issue.suggestion:
            lines.append(f"             -> {issue.suggestion}")
    for error in result.errors:
        lines.append(f"  [ERROR   ] {error.analyzer}: {error.message}")
    return "\n".join(lines)


def _print_directory(batch: DirectoryAnalysisResult, output_format: str) -> None:
    if output_format == "json":
        print(batch.model_dump_json(indent=2))
        return

    for result in batch.results.values():
        print(_format_result(result))
        print()
    for path, message in batch.failures.items():
        print(f"FAILED {path}: {message}")
    print(
        f"Analyzed {batch.files_analyzed}/{batch.files_found} files, "
        f"{batch.files_with_issues} with issues, {batch.total_issues} issues total, "
        f"{batch.files_failed} failed"
    )


# ============================================================================
# health / config-test
# ============================================================================

async def _run_health(config: AnalyzerConfig) -> int:
    report = config.validate()
    ok = not report["errors"]

    print("Configuration:")
    for error in report["errors"]:
        print(f"  ERROR   {error}")
    for warning in report["warnings"]:
        print(f"  WARNING {warning}")
    if ok and not report["warnings"]:
        print("  OK")

    print("\nProviders:")
    print(f"  {'name':<10} {'model':<28} {'priority':>8}  available")
    for provider in sorted(build_providers(config), key=lambda p: p.priority, reverse=True):
        print(
            f"  {provider.name:<10} {provider.model:<28} {provider.priority:>8}  "
            f"{'yes' if provider.is_available() else 'no'}"
        )

    checker = SyntaxChecker(config.syntax_check_command, enabled=config.syntax_check_enabled)
    redis_ok = await RedisManager.initialize(config.redis_url)
    await RedisManager.close()

    print("\nSystem:")
    print(f"  python          {platform.python_version()}")
    print(f"  syntax checker  {'found' if checker.is_installed() else 'missing (checks skipped)'}")
    print(f"  redis           {'reachable' if redis_ok else 'unreachable (in-memory fallback)'}")

    return EXIT_OK if ok else EXIT_FAILURE


def _run_config_test(args: argparse.Namespace, config: AnalyzerConfig) -> int:
    if args.generate_env:
        print(config.generate_env_content(), end="")
        return EXIT_OK

    report = config.validate()
    print(str(config))
    for error in report["errors"]:
        print(f"ERROR   {error}")
    for warning in report["warnings"]:
        print(f"WARNING {warning}")

    for name, settings in config.providers.items():
        if settings.is_configured:
            continue
        info = PROVIDER_INSTRUCTIONS[name]
        print(f"\n{info['name']} is not configured:")
        print(f"  1. Create a key at {info['url']}")
        print(f"  2. Set {info['env']}={info['format']} in .env")

    print("\nConfiguration is valid" if config.is_valid else "\nConfiguration is invalid")
    return EXIT_OK if config.is_valid else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
