"""Custom provider: any OpenAI-compatible API."""

from __future__ import annotations

from src.model_providers.config import ProviderType
from src.model_providers.openai_provider import OpenAIProvider


class CustomProvider(OpenAIProvider):
    """Provider for self-hosted or third-party OpenAI-compatible endpoints.

    Inherits the chat-completions wire format from ``OpenAIProvider``;
    there is no default endpoint, so the provider record must carry one.
    """

    provider_type = ProviderType.CUSTOM
