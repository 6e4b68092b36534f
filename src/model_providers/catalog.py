"""Model catalog: pricing and limits for discovered models.

Prices are USD per 1,000,000 tokens. Lookups are fuzzy substring
matches on the native model id; the longest matching key wins so that
``gpt-4o-mini`` is not priced as ``gpt-4``. Unknown models are free.
"""

from dataclasses import dataclass
from typing import Optional

from src.model_providers.config import ProviderType


@dataclass
class DiscoveredModel:
    """A model reported by a provider, enriched with catalog data."""

    model_id: str
    name: str
    description: str = ""
    input_price: float = 0.0
    output_price: float = 0.0
    max_tokens: int = 4096
    context_window: int = 4096
    supports_vision: bool = False


# ── Pricing ───────────────────────────────────────────────────────────

PRICING: dict[ProviderType, dict[str, tuple[float, float]]] = {
    ProviderType.OPENAI: {
        "gpt-4": (30.0, 60.0),
        "gpt-4-turbo": (10.0, 30.0),
        "gpt-4o": (5.0, 15.0),
        "gpt-4o-mini": (0.15, 0.6),
        "gpt-3.5-turbo": (0.5, 1.5),
        "gpt-3.5-turbo-16k": (3.0, 4.0),
    },
    ProviderType.ANTHROPIC: {
        "claude-3-5-sonnet": (3.0, 15.0),
        "claude-3-5-haiku": (0.8, 4.0),
        "claude-3-opus": (15.0, 75.0),
        "claude-3-sonnet": (3.0, 15.0),
        "claude-3-haiku": (0.25, 1.25),
    },
    ProviderType.GOOGLE: {
        "gemini-1.5-pro": (3.5, 10.5),
        "gemini-1.5-flash": (0.35, 1.05),
        "gemini-pro": (0.5, 1.5),
    },
}

ANTHROPIC_KNOWN_MODELS: list[tuple[str, str]] = [
    ("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
    ("claude-3-5-haiku-20241022", "Claude 3.5 Haiku"),
    ("claude-3-opus-20240229", "Claude 3 Opus"),
    ("claude-3-sonnet-20240229", "Claude 3 Sonnet"),
    ("claude-3-haiku-20240307", "Claude 3 Haiku"),
]


def _family(provider_type: ProviderType) -> ProviderType:
    # Custom endpoints speak the OpenAI dialect and usually host its models.
    if provider_type == ProviderType.CUSTOM:
        return ProviderType.OPENAI
    return provider_type


def lookup_pricing(provider_type: ProviderType, model_id: str) -> tuple[float, float]:
    """Return ``(input_price, output_price)`` per million tokens."""
    table = PRICING.get(_family(provider_type), {})
    matches = [key for key in table if key in model_id]
    if not matches:
        return 0.0, 0.0
    return table[max(matches, key=len)]


def lookup_max_tokens(provider_type: ProviderType, model_id: str) -> int:
    family = _family(provider_type)
    if family == ProviderType.OPENAI:
        if "16k" in model_id:
            return 16384
        if "32k" in model_id:
            return 32768
        if "gpt-4" in model_id:
            return 8192
        return 4096
    if family == ProviderType.ANTHROPIC:
        return 200_000 if "claude-3" in model_id else 100_000
    if family == ProviderType.GOOGLE:
        if "1.5" in model_id:
            return 1_000_000
        if "pro" in model_id:
            return 32768
        return 8192
    return 4096


def _supports_vision(provider_type: ProviderType, model_id: str) -> bool:
    family = _family(provider_type)
    if family == ProviderType.OPENAI:
        return "vision" in model_id or "gpt-4" in model_id
    if family == ProviderType.ANTHROPIC:
        return "claude-3" in model_id
    return "vision" in model_id or "gemini-pro" in model_id


def describe_model(
    provider_type: ProviderType,
    model_id: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> DiscoveredModel:
    """Build a catalog entry for a model id reported by a provider."""
    input_price, output_price = lookup_pricing(provider_type, model_id)
    limit = lookup_max_tokens(provider_type, model_id)
    display = name or model_id
    return DiscoveredModel(
        model_id=model_id,
        name=display,
        description=description or f"{provider_type.value} model: {display}",
        input_price=input_price,
        output_price=output_price,
        max_tokens=limit,
        context_window=limit,
        supports_vision=_supports_vision(provider_type, model_id),
    )
