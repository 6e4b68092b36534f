"""Anthropic (Claude) messages adapter."""

from __future__ import annotations

from typing import Optional

from src.model_providers.base import BaseProvider, as_int, as_text, dig
from src.model_providers.catalog import ANTHROPIC_KNOWN_MODELS, DiscoveredModel, describe_model
from src.model_providers.config import (
    ANTHROPIC_VERSION,
    CallOptions,
    NormalizedReply,
    ProviderType,
)

# Cheapest model, used to validate a key before listing.
KEY_CHECK_MODEL = "claude-3-5-haiku-20241022"


class AnthropicProvider(BaseProvider):
    """Provider for Anthropic Claude models via the messages API."""

    provider_type = ProviderType.ANTHROPIC

    def _headers(self, api_key: str) -> dict:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def build_request(
        self,
        api_key: str,
        model_id: str,
        prompt: str,
        api_endpoint: str,
        options: CallOptions,
    ) -> dict:
        return {
            "url": f"{api_endpoint}/messages",
            "headers": self._headers(api_key),
            "json": {
                "model": model_id,
                "max_tokens": options.max_tokens,
                "temperature": options.temperature,
                "messages": [{"role": "user", "content": prompt}],
                "stream": options.stream,
            },
        }

    def parse_reply(self, payload: dict) -> NormalizedReply:
        return NormalizedReply(
            text=as_text(dig(payload, "content")),
            input_tokens=as_int(dig(payload, "usage", "input_tokens")),
            output_tokens=as_int(dig(payload, "usage", "output_tokens")),
        )

    async def list_models(
        self, api_key: str, api_endpoint: Optional[str] = None
    ) -> list[DiscoveredModel]:
        """Return the known Claude models once the key has been verified.

        The messages API has no listing endpoint, so a minimal request
        proves the key works; a rejected key raises ``ProviderAPIError``.
        """
        endpoint = self.resolve_endpoint(api_endpoint)
        await self._request(
            "POST",
            f"{endpoint}/messages",
            headers=self._headers(api_key),
            json={
                "model": KEY_CHECK_MODEL,
                "max_tokens": 10,
                "messages": [{"role": "user", "content": "test"}],
            },
        )
        return [
            describe_model(self.provider_type, model_id, name=name)
            for model_id, name in ANTHROPIC_KNOWN_MODELS
        ]
