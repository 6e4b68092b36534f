"""Abstract base class for all provider adapters."""

from __future__ import annotations

import abc
import logging
from typing import Any, Optional

import httpx

from src.gateway_errors import ProviderAPIError
from src.model_providers.catalog import DiscoveredModel
from src.model_providers.config import (
    DEFAULT_ENDPOINTS,
    DEFAULT_TIMEOUT_SECONDS,
    CallOptions,
    NormalizedReply,
    ProviderType,
)

logger = logging.getLogger(__name__)

# Upstream bodies are kept on errors for diagnostics, truncated.
MAX_ERROR_BODY = 2000


def dig(payload: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning None at the first missing step."""
    node = payload
    for step in path:
        if isinstance(node, dict):
            node = node.get(step)
        elif isinstance(node, list) and isinstance(step, int):
            node = node[step] if -len(node) <= step < len(node) else None
        else:
            return None
        if node is None:
            return None
    return node


def as_text(value: Any) -> str:
    """Coerce extracted content to a string.

    Strings pass through. A list of content parts (``[{"type": "text",
    "text": ...}, ...]`` or bare strings) is joined. Anything else is "".
    """
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        pieces = []
        for part in value:
            if isinstance(part, str):
                pieces.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                pieces.append(part["text"])
        return "".join(pieces)
    return ""


def as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class BaseProvider(abc.ABC):
    """Interface that every provider adapter must implement.

    Subclasses handle:
    1. Building the provider-native request for a single user prompt
    2. Parsing the native response into a ``NormalizedReply``
    3. Listing the models the provider offers for a key

    All HTTP goes through :meth:`_request`, which maps non-2xx
    responses and transport failures to ``ProviderAPIError``.
    """

    provider_type: ProviderType

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._http_client = http_client
        self.timeout = timeout

    # ── Abstract methods ──────────────────────────────────────────────

    @abc.abstractmethod
    def build_request(
        self,
        api_key: str,
        model_id: str,
        prompt: str,
        api_endpoint: str,
        options: CallOptions,
    ) -> dict:
        """Return ``url``, ``headers``, ``json`` and optional ``params``."""

    @abc.abstractmethod
    def parse_reply(self, payload: dict) -> NormalizedReply:
        """Extract text and token counts; missing fields default to empty/0."""

    @abc.abstractmethod
    async def list_models(
        self, api_key: str, api_endpoint: Optional[str] = None
    ) -> list[DiscoveredModel]:
        """Discover the models available to ``api_key``."""

    # ── Shared helpers ────────────────────────────────────────────────

    @property
    def label(self) -> str:
        return self.provider_type.value

    def resolve_endpoint(self, api_endpoint: Optional[str]) -> str:
        endpoint = api_endpoint or DEFAULT_ENDPOINTS.get(self.provider_type)
        if not endpoint:
            raise ProviderAPIError(
                f"{self.label} provider has no API endpoint configured",
                provider=self.label,
                retryable=False,
            )
        return endpoint.rstrip("/")

    async def call(
        self,
        api_key: str,
        model_id: str,
        prompt: str,
        api_endpoint: Optional[str] = None,
        options: Optional[CallOptions] = None,
        timeout: Optional[float] = None,
    ) -> NormalizedReply:
        """Send ``prompt`` as a single user message and normalize the reply."""
        options = options or CallOptions()
        request = self.build_request(
            api_key, model_id, prompt, self.resolve_endpoint(api_endpoint), options
        )
        payload = await self._request(
            "POST",
            request["url"],
            headers=request.get("headers"),
            params=request.get("params"),
            json=request["json"],
            timeout=timeout,
        )
        reply = self.parse_reply(payload)
        reply.raw_response = payload
        return reply

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        timeout = timeout or self.timeout
        try:
            if self._http_client is not None:
                response = await self._http_client.request(
                    method, url, headers=headers, params=params, json=json, timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.request(
                        method, url, headers=headers, params=params, json=json
                    )
        except (httpx.InvalidURL, UnicodeEncodeError) as exc:
            # Malformed endpoint or a key that cannot be sent as a header.
            raise ProviderAPIError(
                f"{self.label} request could not be built: {type(exc).__name__}",
                provider=self.label,
                retryable=False,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderAPIError(
                f"{self.label} request failed: {type(exc).__name__}: {exc}",
                provider=self.label,
            ) from exc

        if not response.is_success:
            body = response.text[:MAX_ERROR_BODY]
            logger.debug(
                f"{self.label} returned HTTP {response.status_code}",
                extra={"provider": self.label, "status_code": response.status_code},
            )
            raise ProviderAPIError(
                f"{self.label} API error ({response.status_code}): {body}",
                status_code=response.status_code,
                body=body,
                provider=self.label,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderAPIError(
                f"{self.label} returned a non-JSON response",
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
                provider=self.label,
                retryable=False,
            ) from exc
        return data if isinstance(data, dict) else {}
