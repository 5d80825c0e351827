"""
Analyzers

One analyzer per issue category. All share the same flow:
prompt → AIManager.request → parse (or fallback result).

Failures stay inside the analyzer:
- unparseable answer → unknown scores, raw text as summary
- every provider failed → result with `error` set
Only NoAvailableProviderError (nothing configured to call) propagates.
"""
import logging
from typing import Any, Dict, Optional

from core.exceptions import NoAvailableProviderError
from schemas.responses import AnalyzerResult
from services.ai_manager import AIManager
from services.analyzer.fallback import FallbackEngine
from services.analyzer.parser import ResponseParser
from services.analyzer.prompts import PromptBuilder

logger = logging.getLogger(__name__)


class BaseAnalyzer:
    """Prompt template + response parser for one category"""

    name: str = ""

    def __init__(
        self,
        ai_manager: AIManager,
        prompt_builder: Optional[PromptBuilder] = None,
        parser: Optional[ResponseParser] = None,
        fallback: Optional[FallbackEngine] = None
    ):
        self.ai_manager = ai_manager
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.parser = parser or ResponseParser()
        self.fallback = fallback or FallbackEngine()

    def build_prompt(self, code: str, filename: str = "") -> str:
        return self.prompt_builder.build_analysis_prompt(self.name, code, filename)

    async def analyze(
        self,
        code: str,
        filename: str = "",
        options: Optional[Dict[str, Any]] = None
    ) -> AnalyzerResult:
        """
        Run the analysis

        Args:
            code: Source code
            filename: Used in the prompt and in logs
            options: Provider options (model, max_tokens, temperature, timeout)

        Returns:
            AnalyzerResult: Parsed, unparsed-fallback or error result

        Raises:
            NoAvailableProviderError: No provider can be called at all
        """
        prompt = self.build_prompt(code, filename)

        try:
            response = await self.ai_manager.request(prompt, options)
        except NoAvailableProviderError:
            raise
        except Exception as e:
            logger.error(
                "%s analysis failed for %s (code_length=%d): %s",
                self.name, filename or "<inline>", len(code), e,
            )
            return self.fallback.create_error_result(self.name, e)

        result, error = self.parser.try_parse(self.name, response)
        if result is None:
            logger.warning("%s answer for %s kept as raw summary: %s", self.name, filename or "<inline>", error)
            return self.fallback.create_unparsed_result(self.name, response)

        return result


class SecurityAnalyzer(BaseAnalyzer):
    """SQL injection, XSS, CSRF, auth, uploads, disclosure, crypto"""
    name = "security"


class PerformanceAnalyzer(BaseAnalyzer):
    """N+1 queries, memory, loops, I/O, caching"""
    name = "performance"


class QualityAnalyzer(BaseAnalyzer):
    """SOLID, complexity, duplication, naming, typing, PSR"""
    name = "quality"


class DocumentationAnalyzer(BaseAnalyzer):
    """PHPDoc coverage and comment quality"""
    name = "documentation"


ANALYZER_CLASSES = {
    cls.name: cls
    for cls in (SecurityAnalyzer, PerformanceAnalyzer, QualityAnalyzer, DocumentationAnalyzer)
}


def build_analyzers(ai_manager: AIManager) -> Dict[str, BaseAnalyzer]:
    """All four analyzers sharing one manager, prompt builder and parser"""
    prompt_builder = PromptBuilder()
    parser = ResponseParser()
    fallback = FallbackEngine()
    return {
        name: cls(ai_manager, prompt_builder, parser, fallback)
        for name, cls in ANALYZER_CLASSES.items()
    }
