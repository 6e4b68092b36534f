"""Provider registry: create, cache, and look up adapter instances."""

from __future__ import annotations

from typing import Optional, Union

import httpx

from src.gateway_errors import UnsupportedProviderError
from src.model_providers.base import BaseProvider
from src.model_providers.config import DEFAULT_TIMEOUT_SECONDS, ProviderType


def parse_provider_type(value: Union[str, ProviderType]) -> ProviderType:
    """Map a stored type tag to ``ProviderType``."""
    if isinstance(value, ProviderType):
        return value
    try:
        return ProviderType(str(value).lower())
    except ValueError:
        raise UnsupportedProviderError(str(value)) from None


# ── Factory ───────────────────────────────────────────────────────────


def create_provider(
    provider_type: Union[str, ProviderType],
    http_client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> BaseProvider:
    """Instantiate the adapter for a provider type tag."""
    ptype = parse_provider_type(provider_type)
    if ptype == ProviderType.OPENAI:
        from src.model_providers.openai_provider import OpenAIProvider
        return OpenAIProvider(http_client, timeout)
    elif ptype == ProviderType.ANTHROPIC:
        from src.model_providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(http_client, timeout)
    elif ptype == ProviderType.GOOGLE:
        from src.model_providers.google_provider import GoogleProvider
        return GoogleProvider(http_client, timeout)
    elif ptype == ProviderType.CUSTOM:
        from src.model_providers.custom_provider import CustomProvider
        return CustomProvider(http_client, timeout)
    raise UnsupportedProviderError(ptype.value)


# ── Registry ──────────────────────────────────────────────────────────


class ProviderRegistry:
    """Caches one adapter per provider type, sharing an HTTP client.

    Usage::

        async with httpx.AsyncClient() as client:
            registry = ProviderRegistry(http_client=client)
            adapter = registry.get_provider("anthropic")
            reply = await adapter.call(api_key, "claude-3-5-haiku-20241022", "Hi")
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._http_client = http_client
        self._timeout = timeout
        self._providers: dict[ProviderType, BaseProvider] = {}

    def get_provider(self, provider_type: Union[str, ProviderType]) -> BaseProvider:
        """Get a cached adapter. Raises ``UnsupportedProviderError`` for unknown tags."""
        ptype = parse_provider_type(provider_type)
        if ptype not in self._providers:
            self._providers[ptype] = create_provider(ptype, self._http_client, self._timeout)
        return self._providers[ptype]

    def register(self, provider: BaseProvider) -> None:
        """Install a specific adapter instance for its provider type."""
        self._providers[provider.provider_type] = provider
