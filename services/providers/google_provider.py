"""
Google Generative AI adapter

Uses the google-generativeai SDK (native async generate_content_async)
and maps google.api_core errors onto ProviderError:

- ResourceExhausted (429)          → rate limit, retryable
- Unauthenticated / PermissionDenied → authentication, not retryable
- ServiceUnavailable / InternalServerError → server error, retryable
- DeadlineExceeded / asyncio timeout → network error, retryable
- Blocked or empty candidates      → invalid response
"""
import asyncio
from typing import Any, Dict

import google.generativeai as genai
from google.api_core.exceptions import (
    DeadlineExceeded,
    GoogleAPICallError,
    InternalServerError,
    PermissionDenied,
    ResourceExhausted,
    ServiceUnavailable,
    Unauthenticated,
)

from core.exceptions import ProviderError
from services.providers.base import AIProvider


class GoogleProvider(AIProvider):
    """Gemini models through the google-generativeai SDK"""

    name = "google"
    key_prefixes = ("AI",)

    def _key_format_ok(self, api_key: str) -> bool:
        return api_key.startswith(self.key_prefixes) or len(api_key) > 20

    def _build_model(self, model: str, max_tokens: int, temperature: float) -> genai.GenerativeModel:
        genai.configure(api_key=self.settings.api_key)
        return genai.GenerativeModel(
            model_name=model,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_tokens,
            },
        )

    async def _send(self, prompt: str, options: Dict[str, Any]) -> str:
        model_name, max_tokens, temperature, timeout = self._options(options)
        model = self._build_model(model_name, max_tokens, temperature)

        try:
            response = await asyncio.wait_for(model.generate_content_async(prompt), timeout)
        except ResourceExhausted as e:
            raise ProviderError.rate_limit_exceeded(self.name) from e
        except (Unauthenticated, PermissionDenied) as e:
            raise ProviderError.authentication_failed(self.name) from e
        except (ServiceUnavailable, InternalServerError) as e:
            raise ProviderError.server_error(self.name, e.code or 503, e.message) from e
        except (DeadlineExceeded, asyncio.TimeoutError) as e:
            raise ProviderError.network_error(self.name, f"timeout after {timeout}s") from e
        except GoogleAPICallError as e:
            raise ProviderError.from_status(self.name, e.code or 0, e.message) from e

        try:
            return response.text
        except (ValueError, IndexError, AttributeError) as e:
            # .text raises when the candidate was blocked or is empty
            raise ProviderError.invalid_response(self.name, str(e) or "empty candidates") from e
