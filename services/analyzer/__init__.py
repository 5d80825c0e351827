"""
Code Analyzer Package

Components:
- AnalyzerConfig: central configuration
- PromptBuilder: analyzer prompt templates
- ResponseParser: JSON extraction from model answers
- FallbackEngine: degraded results (unparsed / provider error)
- SecurityAnalyzer, PerformanceAnalyzer, QualityAnalyzer,
  DocumentationAnalyzer: one per issue category
- CodeAnalyzer: coordinator (validation, caching, merge, risk score)
"""

from services.analyzer.config import AnalyzerConfig, ALL_ANALYZERS
from services.analyzer.prompts import PromptBuilder
from services.analyzer.parser import ResponseParser, ParseError
from services.analyzer.fallback import FallbackEngine
from services.analyzer.analyzers import (
    BaseAnalyzer,
    SecurityAnalyzer,
    PerformanceAnalyzer,
    QualityAnalyzer,
    DocumentationAnalyzer,
    build_analyzers,
)
from services.analyzer.orchestrator import CodeAnalyzer, calculate_risk, merge_results

__all__ = [
    # Coordinator
    'CodeAnalyzer',
    'calculate_risk',
    'merge_results',

    # Config
    'AnalyzerConfig',
    'ALL_ANALYZERS',

    # Analyzers
    'BaseAnalyzer',
    'SecurityAnalyzer',
    'PerformanceAnalyzer',
    'QualityAnalyzer',
    'DocumentationAnalyzer',
    'build_analyzers',

    # Components
    'PromptBuilder',
    'ResponseParser',
    'FallbackEngine',

    # Exceptions
    'ParseError',
]
