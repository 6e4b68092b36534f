"""Model Registry.

Resolves a configured model id to its model record, owning provider
and the adapter for that provider's type.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from src.ai_routing.models import ModelRecord, ProviderRecord
from src.ai_routing.repository import RoutingRepository
from src.gateway_errors import (
    ModelInactiveError,
    ModelNotFoundError,
    ProviderInactiveError,
    ProviderNotFoundError,
)
from src.model_providers import BaseProvider, ProviderRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedModel:
    """An eligible model together with everything needed to call it."""

    model: ModelRecord
    provider: ProviderRecord
    adapter: BaseProvider


class ModelRegistry:
    """Read access to configured providers and models."""

    def __init__(
        self,
        repository: RoutingRepository,
        providers: Optional[ProviderRegistry] = None,
    ):
        self.repository = repository
        self.providers = providers or ProviderRegistry()

    async def resolve(self, model_id: str) -> ResolvedModel:
        """Resolve ``model_id`` (the model record id) for a call.

        Raises:
            ModelNotFoundError, ModelInactiveError, ProviderNotFoundError,
            ProviderInactiveError, UnsupportedProviderError
        """
        model = await self.repository.get_model(model_id)
        if model is None:
            raise ModelNotFoundError(model_id)
        if not model.is_active:
            raise ModelInactiveError(model_id)

        provider = await self.repository.get_provider(model.provider_id)
        if provider is None:
            raise ProviderNotFoundError(model.provider_id)
        if not provider.is_active:
            raise ProviderInactiveError(provider.id, provider.name)

        adapter = self.providers.get_provider(provider.type)
        logger.debug(
            f"Resolved {model_id} to {provider.type}:{model.model_id}",
            extra={"model_id": model_id, "provider": provider.type},
        )
        return ResolvedModel(model=model, provider=provider, adapter=adapter)
