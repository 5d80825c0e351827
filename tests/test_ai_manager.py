"""Tests for the provider fallback chain."""

from unittest.mock import MagicMock

import pytest

from core.exceptions import AllProvidersFailedError, NoAvailableProviderError, ProviderError
from services.ai_manager import AIManager
from tests.conftest import FakeProvider


class TestOrdering:
    def test_sorted_by_priority_descending(self):
        manager = AIManager([
            FakeProvider("google", priority=10),
            FakeProvider("openai", priority=30),
            FakeProvider("anthropic", priority=20),
        ])

        assert manager.provider_names() == ["openai", "anthropic", "google"]

    def test_ties_keep_given_order(self):
        manager = AIManager([FakeProvider("b", priority=5), FakeProvider("a", priority=5)])

        assert manager.provider_names() == ["b", "a"]

    def test_available_providers(self):
        manager = AIManager([
            FakeProvider("openai", priority=30, available=False),
            FakeProvider("google", priority=10),
        ])

        assert [p.name for p in manager.get_available_providers()] == ["google"]
        assert manager.has_available_provider() is True


class TestRequest:
    async def test_first_success_wins(self):
        first = FakeProvider("openai", priority=30, response="from openai")
        second = FakeProvider("anthropic", priority=20, response="from anthropic")
        manager = AIManager([first, second])

        assert await manager.request("prompt") == "from openai"
        assert second.calls == []

    async def test_falls_back_in_order(self):
        first = FakeProvider("p1", priority=30, error=ProviderError.server_error("p1", 500))
        second = FakeProvider("p2", priority=20, error=ProviderError.rate_limit_exceeded("p2"))
        third = FakeProvider("p3", priority=10, response="ok")
        fourth = FakeProvider("p4", priority=5, response="never")
        listener = MagicMock()
        manager = AIManager([first, second, third, fourth], failure_listeners=[listener])

        assert await manager.request("hello") == "ok"

        assert len(first.calls) == 1
        assert len(second.calls) == 1
        assert fourth.calls == []
        assert [c.args[0] for c in listener.call_args_list] == ["p1", "p2"]
        assert listener.call_args_list[0].args[2] == len("hello")

    async def test_unavailable_providers_are_never_called(self):
        skipped = FakeProvider("openai", priority=30, available=False, response="no")
        used = FakeProvider("google", priority=10, response="yes")
        manager = AIManager([skipped, used])

        assert await manager.request("prompt") == "yes"
        assert skipped.calls == []

    async def test_options_passed_through(self):
        provider = FakeProvider("openai", response="ok")
        manager = AIManager([provider])

        await manager.request("prompt", {"max_tokens": 100})

        assert provider.options == [{"max_tokens": 100}]

    async def test_none_available(self):
        manager = AIManager([FakeProvider("openai", available=False)])

        with pytest.raises(NoAvailableProviderError) as exc_info:
            await manager.request("prompt")

        assert exc_info.value.failures == []

    async def test_no_providers_configured(self):
        with pytest.raises(NoAvailableProviderError):
            await AIManager([]).request("prompt")

    async def test_all_failed_wraps_last_error(self):
        last = ProviderError.authentication_failed("p2")
        manager = AIManager([
            FakeProvider("p1", priority=2, error=ProviderError.server_error("p1", 502)),
            FakeProvider("p2", priority=1, error=last),
        ])

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await manager.request("prompt")

        error = exc_info.value
        assert not isinstance(error, NoAvailableProviderError)
        assert error.last_error is last
        assert error.__cause__ is last
        assert error.context["failed_providers"] == ["p1", "p2"]
        assert "p2" in str(error)

    async def test_non_provider_errors_also_fall_back(self):
        manager = AIManager([
            FakeProvider("p1", priority=2, error=RuntimeError("boom")),
            FakeProvider("p2", priority=1, response="ok"),
        ])

        assert await manager.request("prompt") == "ok"

    async def test_listener_errors_do_not_break_the_chain(self):
        def broken_listener(provider, error, prompt_length):
            raise RuntimeError("listener down")

        manager = AIManager(
            [
                FakeProvider("p1", priority=2, error=ProviderError.server_error("p1", 500)),
                FakeProvider("p2", priority=1, response="ok"),
            ],
            failure_listeners=[broken_listener],
        )

        assert await manager.request("prompt") == "ok"

    async def test_listener_added_after_construction(self):
        listener = MagicMock()
        manager = AIManager([
            FakeProvider("p1", priority=2, error=ProviderError.server_error("p1", 502)),
            FakeProvider("p2", priority=1, response="ok"),
        ])
        manager.add_failure_listener(listener)

        await manager.request("prompt")

        listener.assert_called_once()
        assert listener.call_args.args[0] == "p1"
