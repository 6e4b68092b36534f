"""Google Gemini generateContent adapter."""

from __future__ import annotations

from typing import Optional

from src.model_providers.base import BaseProvider, as_int, as_text, dig
from src.model_providers.catalog import DiscoveredModel, describe_model
from src.model_providers.config import CallOptions, NormalizedReply, ProviderType


class GoogleProvider(BaseProvider):
    """Provider for Google Gemini models.

    The API key travels as the ``key`` query parameter rather than a header.
    """

    provider_type = ProviderType.GOOGLE

    def build_request(
        self,
        api_key: str,
        model_id: str,
        prompt: str,
        api_endpoint: str,
        options: CallOptions,
    ) -> dict:
        return {
            "url": f"{api_endpoint}/{model_id}:generateContent",
            "params": {"key": api_key},
            "headers": {"Content-Type": "application/json"},
            "json": {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": options.temperature,
                    "maxOutputTokens": options.max_tokens,
                },
            },
        }

    def parse_reply(self, payload: dict) -> NormalizedReply:
        return NormalizedReply(
            text=as_text(dig(payload, "candidates", 0, "content", "parts")),
            input_tokens=as_int(dig(payload, "usageMetadata", "promptTokenCount")),
            output_tokens=as_int(dig(payload, "usageMetadata", "candidatesTokenCount")),
        )

    async def list_models(
        self, api_key: str, api_endpoint: Optional[str] = None
    ) -> list[DiscoveredModel]:
        endpoint = self.resolve_endpoint(api_endpoint)
        payload = await self._request(
            "GET",
            f"{endpoint}/models",
            params={"key": api_key},
            headers={"Content-Type": "application/json"},
        )
        models = []
        for entry in payload.get("models") or []:
            if "generateContent" not in (entry.get("supportedGenerationMethods") or []):
                continue
            name = entry.get("name") or ""
            model_id = name.split("/")[-1]
            if not model_id:
                continue
            models.append(
                describe_model(
                    self.provider_type,
                    model_id,
                    name=entry.get("displayName"),
                    description=entry.get("description"),
                )
            )
        return models
