"""
LLM Provider Adapters

- OpenAIProvider: Chat Completions over httpx
- AnthropicProvider: Messages API over httpx
- GoogleProvider: google-generativeai SDK
"""

from services.providers.base import AIProvider, HttpAIProvider
from services.providers.openai_provider import OpenAIProvider
from services.providers.anthropic_provider import AnthropicProvider
from services.providers.google_provider import GoogleProvider

__all__ = [
    'AIProvider',
    'HttpAIProvider',
    'OpenAIProvider',
    'AnthropicProvider',
    'GoogleProvider',
]
