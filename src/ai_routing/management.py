"""Routing Administration.

Write path used by administrators: providers with encrypted keys,
models, the routing config singleton, model discovery, credential
migration and usage reporting.
"""

import asyncio
import dataclasses
import logging
from datetime import timedelta
from typing import Any, Optional

from src.ai_routing.models import (
    ModelRecord,
    ProviderRecord,
    RoutingConfigRecord,
    SyncReport,
    UsageSummary,
    new_record_id,
    utcnow,
)
from src.ai_routing.repository import RoutingRepository
from src.gateway_errors import (
    InvalidConfigurationError,
    ModelNotFoundError,
    ProviderNotFoundError,
    UnsupportedProviderError,
)
from src.logging_config import log_performance
from src.model_providers import (
    DEFAULT_ENDPOINTS,
    ProviderRegistry,
    describe_model,
    parse_provider_type,
)
from src.secrets_vault import CredentialVault

logger = logging.getLogger(__name__)

HIDDEN_KEY = "***hidden***"
RETRY_ATTEMPTS_RANGE = (1, 10)
TIMEOUT_SECONDS_RANGE = (5, 300)


def _check_range(field: str, value: int, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise InvalidConfigurationError(
            f"{field} must be an integer between {low} and {high}", field=field
        )


def _check_api_key(api_key: str) -> None:
    """Keys travel in HTTP headers, so they must be printable ASCII."""
    if not api_key:
        raise InvalidConfigurationError("API key is required", field="api_key")
    if not api_key.isascii() or not api_key.isprintable():
        raise InvalidConfigurationError(
            "API key must contain only printable ASCII characters", field="api_key"
        )


async def summarize_usage(
    repository: RoutingRepository, days: int = 30, model_id: Optional[str] = None
) -> UsageSummary:
    """Usage over the last ``days`` days. Needs no credentials."""
    if days < 1:
        raise InvalidConfigurationError("days must be >= 1", field="days")
    since = utcnow() - timedelta(days=days)
    return await repository.usage_summary(since, model_id=model_id)


class RoutingAdmin:
    """Management interface over a ``RoutingRepository``."""

    def __init__(
        self,
        repository: RoutingRepository,
        vault: CredentialVault,
        providers: Optional[ProviderRegistry] = None,
    ):
        self.repository = repository
        self.vault = vault
        self.providers = providers or ProviderRegistry()

    # ── Providers ─────────────────────────────────────────────────────

    async def create_provider(
        self,
        name: str,
        provider_type: str,
        api_key: str,
        api_endpoint: Optional[str] = None,
        description: Optional[str] = None,
        is_active: bool = True,
        sort_order: int = 0,
    ) -> ProviderRecord:
        """Register a provider; the API key is encrypted before storage."""
        if not name or not name.strip():
            raise InvalidConfigurationError("Provider name is required", field="name")
        _check_api_key(api_key)
        try:
            ptype = parse_provider_type(provider_type)
        except UnsupportedProviderError as exc:
            raise InvalidConfigurationError(exc.message, field="type") from exc

        endpoint = api_endpoint or DEFAULT_ENDPOINTS.get(ptype)
        if not endpoint:
            raise InvalidConfigurationError(
                f"{ptype.value} providers require an API endpoint", field="api_endpoint"
            )

        record = ProviderRecord(
            id=new_record_id(),
            name=name.strip(),
            type=ptype.value,
            api_endpoint=endpoint.rstrip("/"),
            encrypted_api_key=self.vault.encrypt(api_key),
            is_active=is_active,
            description=description,
            sort_order=sort_order,
        )
        saved = await self.repository.save_provider(record)
        logger.info(f"Created {ptype.value} provider {saved.name}", extra={"provider": ptype.value})
        return saved

    async def _require_provider(self, provider_id: str) -> ProviderRecord:
        provider = await self.repository.get_provider(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        return provider

    async def rotate_provider_key(self, provider_id: str, api_key: str) -> ProviderRecord:
        _check_api_key(api_key)
        provider = await self._require_provider(provider_id)
        updated = dataclasses.replace(provider, encrypted_api_key=self.vault.encrypt(api_key))
        logger.info(f"Rotated API key for provider {provider.name}")
        return await self.repository.save_provider(updated)

    async def set_provider_active(self, provider_id: str, active: bool) -> ProviderRecord:
        provider = await self._require_provider(provider_id)
        return await self.repository.save_provider(
            dataclasses.replace(provider, is_active=active)
        )

    async def toggle_provider(self, provider_id: str) -> ProviderRecord:
        provider = await self._require_provider(provider_id)
        return await self.set_provider_active(provider_id, not provider.is_active)

    @staticmethod
    def provider_view(provider: ProviderRecord) -> dict[str, Any]:
        """Serializable provider representation that never exposes the key."""
        return {
            "id": provider.id,
            "name": provider.name,
            "type": provider.type,
            "api_endpoint": provider.api_endpoint,
            "api_key": HIDDEN_KEY,
            "is_active": provider.is_active,
            "description": provider.description,
            "sort_order": provider.sort_order,
        }

    async def list_provider_views(self) -> list[dict[str, Any]]:
        return [self.provider_view(p) for p in await self.repository.list_providers()]

    # ── Models ────────────────────────────────────────────────────────

    async def add_model(
        self,
        provider_id: str,
        model_id: str,
        name: Optional[str] = None,
        input_price: Optional[float] = None,
        output_price: Optional[float] = None,
        max_tokens: Optional[int] = None,
        context_window: Optional[int] = None,
        is_active: bool = True,
        description: Optional[str] = None,
    ) -> ModelRecord:
        """Add a model by hand; unset fields are filled from the catalog."""
        if not model_id:
            raise InvalidConfigurationError("model_id is required", field="model_id")
        provider = await self._require_provider(provider_id)
        catalog = describe_model(parse_provider_type(provider.type), model_id, name=name)

        for field, value in (("input_price", input_price), ("output_price", output_price)):
            if value is not None and value < 0:
                raise InvalidConfigurationError(f"{field} must be >= 0", field=field)

        for existing in await self.repository.list_models(provider_id):
            if existing.model_id == model_id:
                raise InvalidConfigurationError(
                    f"Model {model_id} already exists for provider {provider.name}",
                    field="model_id",
                )

        record = ModelRecord(
            id=new_record_id(),
            provider_id=provider_id,
            model_id=model_id,
            name=catalog.name,
            description=description or catalog.description,
            input_price=catalog.input_price if input_price is None else input_price,
            output_price=catalog.output_price if output_price is None else output_price,
            max_tokens=max_tokens or catalog.max_tokens,
            context_window=context_window or catalog.context_window,
            is_active=is_active,
            is_manual=True,
        )
        return await self.repository.save_model(record)

    async def set_model_active(self, model_id: str, active: bool) -> ModelRecord:
        model = await self.repository.get_model(model_id)
        if model is None:
            raise ModelNotFoundError(model_id)
        return await self.repository.save_model(dataclasses.replace(model, is_active=active))

    @log_performance(threshold_ms=5_000)
    async def sync_models(self, provider_id: str) -> SyncReport:
        """Discover the provider's models and upsert them with catalog pricing.

        Existing models keep their active flag and call counters.
        """
        provider = await self._require_provider(provider_id)
        adapter = self.providers.get_provider(provider.type)
        api_key = await asyncio.to_thread(self.vault.decrypt, provider.encrypted_api_key)
        discovered = await adapter.list_models(api_key, provider.api_endpoint)

        report = SyncReport(provider_id=provider_id)
        for item in discovered:
            record, created = await self.repository.upsert_model(provider_id, item)
            (report.created if created else report.updated).append(record.model_id)

        logger.info(
            f"Synced {report.total} models for provider {provider.name} "
            f"({len(report.created)} new, {len(report.updated)} updated)",
            extra={"provider": provider.type},
        )
        return report

    # ── Routing config ────────────────────────────────────────────────

    async def get_routing_config(self) -> RoutingConfigRecord:
        """Return the routing config, creating the defaults if absent."""
        config = await self.repository.get_routing_config()
        if config is None:
            config = await self.repository.save_routing_config(RoutingConfigRecord())
        return config

    async def update_routing_config(
        self,
        primary_model_id: Optional[str] = None,
        fallback1_model_id: Optional[str] = None,
        fallback2_model_id: Optional[str] = None,
        enable_fallback: bool = True,
        retry_attempts: int = 3,
        timeout_seconds: int = 30,
    ) -> RoutingConfigRecord:
        """Validate and store the routing config singleton.

        Every referenced model must exist and be active.
        """
        _check_range("retry_attempts", retry_attempts, RETRY_ATTEMPTS_RANGE)
        _check_range("timeout_seconds", timeout_seconds, TIMEOUT_SECONDS_RANGE)

        references = {
            "primary_model_id": primary_model_id,
            "fallback1_model_id": fallback1_model_id,
            "fallback2_model_id": fallback2_model_id,
        }
        for field, model_id in references.items():
            if not model_id:
                continue
            model = await self.repository.get_model(model_id)
            if model is None or not model.is_active:
                raise InvalidConfigurationError(
                    f"Model {model_id} is not found or inactive", field=field
                )

        current = await self.repository.get_routing_config()
        config = RoutingConfigRecord(
            id=current.id if current else None,
            primary_model_id=primary_model_id or None,
            fallback1_model_id=fallback1_model_id or None,
            fallback2_model_id=fallback2_model_id or None,
            enable_fallback=enable_fallback,
            retry_attempts=retry_attempts,
            timeout_seconds=timeout_seconds,
        )
        saved = await self.repository.save_routing_config(config)
        logger.info(
            "Routing config updated",
            extra={"extra_data": {k: v for k, v in references.items() if v}},
        )
        return saved

    # ── Credentials ───────────────────────────────────────────────────

    async def migrate_legacy_credentials(self) -> list[str]:
        """Re-encrypt every legacy CBC provider key with the current scheme.

        Requires a vault built with legacy support; returns the ids of
        the providers that were migrated.
        """
        migrated = []
        for provider in await self.repository.list_providers():
            if not self.vault.is_legacy(provider.encrypted_api_key):
                continue
            upgraded = self.vault.reencrypt(provider.encrypted_api_key)
            await self.repository.save_provider(
                dataclasses.replace(provider, encrypted_api_key=upgraded)
            )
            migrated.append(provider.id)
        if migrated:
            logger.info(f"Migrated {len(migrated)} legacy provider credential(s)")
        return migrated

    # ── Reporting ─────────────────────────────────────────────────────

    async def usage_summary(self, days: int = 30, model_id: Optional[str] = None) -> UsageSummary:
        return await summarize_usage(self.repository, days, model_id)
