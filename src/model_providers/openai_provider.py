"""OpenAI chat-completions adapter."""

from __future__ import annotations

from typing import Optional

from src.model_providers.base import BaseProvider, as_int, as_text, dig
from src.model_providers.catalog import DiscoveredModel, describe_model
from src.model_providers.config import CallOptions, NormalizedReply, ProviderType


class OpenAIProvider(BaseProvider):
    """Provider for OpenAI GPT models.

    Also serves as base class for OpenAI-compatible APIs (``custom``).
    """

    provider_type = ProviderType.OPENAI

    def _headers(self, api_key: str) -> dict:
        return {
            "Authorization": f"Bearer {api_key}",
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
            "url": f"{api_endpoint}/chat/completions",
            "headers": self._headers(api_key),
            "json": {
                "model": model_id,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": options.temperature,
                "max_tokens": options.max_tokens,
                "stream": options.stream,
            },
        }

    def parse_reply(self, payload: dict) -> NormalizedReply:
        return NormalizedReply(
            text=as_text(dig(payload, "choices", 0, "message", "content")),
            input_tokens=as_int(dig(payload, "usage", "prompt_tokens")),
            output_tokens=as_int(dig(payload, "usage", "completion_tokens")),
        )

    async def list_models(
        self, api_key: str, api_endpoint: Optional[str] = None
    ) -> list[DiscoveredModel]:
        endpoint = self.resolve_endpoint(api_endpoint)
        payload = await self._request(
            "GET", f"{endpoint}/models", headers=self._headers(api_key)
        )
        models = []
        for entry in payload.get("data") or []:
            model_id = entry.get("id") if isinstance(entry, dict) else None
            if model_id:
                models.append(describe_model(self.provider_type, model_id))
        return models
