"""Shared test fixtures: in-memory store, fake clock, fake providers."""

import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from database.kv_store import InMemoryKeyValueStore
from services.analyzer.config import AnalyzerConfig


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """Provider double recording every prompt it receives.

    `response` may be a string or a callable(prompt) -> str.
    """

    def __init__(
        self,
        name: str,
        priority: int = 0,
        available: bool = True,
        response: Union[str, Callable[[str], str], None] = "{}",
        error: Optional[Exception] = None,
    ) -> None:
        self.name = name
        self.priority = priority
        self.available = available
        self.response = response
        self.error = error
        self.model = f"{name}-model"
        self.calls: List[str] = []
        self.options: List[Optional[Dict[str, Any]]] = []

    def is_available(self) -> bool:
        return self.available

    async def request(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        self.calls.append(prompt)
        self.options.append(options)
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(prompt)
        return self.response


def analyzer_answer(issues: List[Dict[str, Any]], **extra: Any) -> str:
    """Model answer wrapped in prose, like real providers return."""
    payload = {"issues": issues, "summary": "done", **extra}
    return f"Here is the analysis:\n```json\n{json.dumps(payload)}\n```"


def answer_by_analyzer(answers: Dict[str, str], default: str = "{}") -> Callable[[str], str]:
    """Route a prompt to the answer of the analyzer it was built for."""

    def respond(prompt: str) -> str:
        for name, answer in answers.items():
            if f"for {name} issues" in prompt:
                return answer
        return default

    return respond


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def config() -> AnalyzerConfig:
    return AnalyzerConfig(syntax_check_enabled=False)
