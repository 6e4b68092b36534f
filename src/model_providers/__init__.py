"""Provider Adapter Set.

One adapter per provider family (OpenAI-compatible, Anthropic, Google)
behind a uniform ``call`` contract, plus model discovery and a pricing
catalog.
"""

from src.model_providers.config import (
    ANTHROPIC_VERSION,
    DEFAULT_ENDPOINTS,
    CallOptions,
    NormalizedReply,
    ProviderType,
)
from src.model_providers.catalog import (
    DiscoveredModel,
    describe_model,
    lookup_max_tokens,
    lookup_pricing,
)
from src.model_providers.base import BaseProvider
from src.model_providers.openai_provider import OpenAIProvider
from src.model_providers.anthropic_provider import AnthropicProvider
from src.model_providers.google_provider import GoogleProvider
from src.model_providers.custom_provider import CustomProvider
from src.model_providers.registry import (
    ProviderRegistry,
    create_provider,
    parse_provider_type,
)

__all__ = [
    # Config
    "ProviderType",
    "CallOptions",
    "NormalizedReply",
    "DEFAULT_ENDPOINTS",
    "ANTHROPIC_VERSION",
    # Catalog
    "DiscoveredModel",
    "describe_model",
    "lookup_pricing",
    "lookup_max_tokens",
    # Adapters
    "BaseProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "GoogleProvider",
    "CustomProvider",
    # Registry
    "ProviderRegistry",
    "create_provider",
    "parse_provider_type",
]
