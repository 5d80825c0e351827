"""
OpenAI Chat Completions adapter
"""
from typing import Any, Dict

from core.exceptions import ProviderError
from services.providers.base import HttpAIProvider


class OpenAIProvider(HttpAIProvider):
    """POST /v1/chat/completions, text at choices[0].message.content"""

    name = "openai"
    key_prefixes = ("sk-",)
    endpoint = "https://api.openai.com/v1/chat/completions"

    async def _send(self, prompt: str, options: Dict[str, Any]) -> str:
        model, max_tokens, temperature, timeout = self._options(options)

        data = await self._post_json(
            payload={
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
            headers={
                "Authorization": f"Bearer {self.settings.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError.invalid_response(
                self.name, "missing choices[0].message.content"
            ) from e

        if not isinstance(content, str):
            raise ProviderError.invalid_response(self.name, "content is not text")
        return content
