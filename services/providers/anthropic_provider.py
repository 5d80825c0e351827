"""
Anthropic Messages API adapter
"""
from typing import Any, Dict

from core.exceptions import ProviderError
from services.providers.base import HttpAIProvider

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(HttpAIProvider):
    """POST /v1/messages, text at content[0].text"""

    name = "anthropic"
    key_prefixes = ("sk-ant-",)
    endpoint = "https://api.anthropic.com/v1/messages"

    async def _send(self, prompt: str, options: Dict[str, Any]) -> str:
        model, max_tokens, temperature, timeout = self._options(options)

        data = await self._post_json(
            payload={
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": self.settings.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError.invalid_response(self.name, "missing content[0].text") from e

        if not isinstance(text, str):
            raise ProviderError.invalid_response(self.name, "content is not text")
        return text
